"""Series math over plain float sequences.

Every series function returns an array aligned to its input with NaN for the
leading bars that lack history. NaN means "not available" and is never
replaced by 0. Scalar helpers return None for the same case.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

@dataclass
class MACDResult:
    macd: np.ndarray
    signal: np.ndarray
    histogram: np.ndarray

@dataclass
class BollingerResult:
    upper: np.ndarray
    middle: np.ndarray
    lower: np.ndarray

def last_value(series: Sequence[float]) -> Optional[float]:
    """Latest element as float, or None if empty / not available."""
    if len(series) == 0:
        return None
    v = float(series[-1])
    return None if math.isnan(v) else v

def rolling_sma(values: Sequence[float], period: int) -> np.ndarray:
    """Simple moving average aligned to each index (NaN until enough bars)."""
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    out = np.full(n, np.nan)
    if n < period or period <= 0:
        return out
    cumsum = np.cumsum(arr)
    out[period - 1 :] = (cumsum[period - 1 :] - np.concatenate(([0.0], cumsum[: -period]))) / period
    return out

def ema(values: Sequence[float], period: int) -> np.ndarray:
    """Exponential moving average seeded with the SMA of the first `period` values."""
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    out = np.full(n, np.nan)
    if n < period or period <= 0:
        return out
    k = 2.0 / (period + 1)
    prev = float(np.mean(arr[:period]))
    out[period - 1] = prev
    for i in range(period, n):
        prev = (float(arr[i]) - prev) * k + prev
        out[i] = prev
    return out

def rsi_wilder(values: Sequence[float], period: int = 14) -> np.ndarray:
    """RSI with Wilder smoothing.

    The first `period` gains/losses are averaged arithmetically to seed the
    value at index `period`; later bars use
    avg = (avg * (period - 1) + x) / period.
    An average loss of 0 gives RSI 100 (this includes a flat series).
    """
    c = np.asarray(values, dtype=float)
    n = len(c)
    out = np.full(n, np.nan)
    if n < period + 1 or period <= 0:
        return out

    d = np.diff(c)
    gains = np.clip(d, 0, None)
    losses = np.clip(-d, 0, None)

    avg_gain = float(np.mean(gains[:period]))
    avg_loss = float(np.mean(losses[:period]))
    out[period] = _rsi_from_averages(avg_gain, avg_loss)

    # gains[j] is the change into index j+1
    for i in range(period + 1, n):
        avg_gain = (avg_gain * (period - 1) + float(gains[i - 1])) / period
        avg_loss = (avg_loss * (period - 1) + float(losses[i - 1])) / period
        out[i] = _rsi_from_averages(avg_gain, avg_loss)
    return out

def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0.0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)

def macd(values: Sequence[float], fast: int = 12, slow: int = 26, signal: int = 9) -> MACDResult:
    """MACD line, signal line and histogram.

    The signal EMA runs over the defined MACD values only (re-indexed), then
    is mapped back onto the input positions.
    """
    fast_ema = ema(values, fast)
    slow_ema = ema(values, slow)
    line = fast_ema - slow_ema  # NaN wherever either EMA is missing

    sig = np.full(len(line), np.nan)
    defined = ~np.isnan(line)
    if defined.any():
        sig[defined] = ema(line[defined], signal)
    hist = line - sig
    return MACDResult(macd=line, signal=sig, histogram=hist)

def band_is_flat(upper: float, lower: float) -> bool:
    """True when the band has collapsed to (numerically) zero width."""
    return math.isclose(upper, lower, rel_tol=1e-9, abs_tol=0.0)

def bollinger_bands(values: Sequence[float], period: int = 20, std_dev: float = 2.0) -> BollingerResult:
    """Window mean +/- std_dev population standard deviations.

    Each window's mean is taken directly rather than from the running-sum SMA,
    so a run of identical closes collapses all three bands onto that close.
    """
    c = np.asarray(values, dtype=float)
    n = len(c)
    middle = np.full(n, np.nan)
    upper = np.full(n, np.nan)
    lower = np.full(n, np.nan)
    if period <= 0:
        return BollingerResult(upper=upper, middle=middle, lower=lower)
    for i in range(period - 1, n):
        window = c[i - period + 1 : i + 1]
        if window.max() == window.min():
            middle[i] = upper[i] = lower[i] = float(window[0])
            continue
        mean = float(window.mean())
        sd = math.sqrt(float(np.mean((window - mean) ** 2))) * std_dev
        middle[i] = mean
        upper[i] = mean + sd
        lower[i] = mean - sd
    return BollingerResult(upper=upper, middle=middle, lower=lower)

def percent_b(price: float, upper: Optional[float], lower: Optional[float]) -> float:
    """Position of price inside the band (0 = lower, 1 = upper); 0.5 if the band is flat or missing."""
    if upper is None or lower is None:
        return 0.5
    if band_is_flat(upper, lower) or upper < lower:
        return 0.5
    return (price - lower) / (upper - lower)

def true_range(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float]) -> np.ndarray:
    """TR[i] = max(high-low, |high-prev_close|, |low-prev_close|); TR[0] is 0."""
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    c = np.asarray(closes, dtype=float)
    n = len(c)
    tr = np.zeros(n, dtype=float)
    if n < 2:
        return tr
    prev_close = c[:-1]
    tr[1:] = np.maximum(h[1:] - l[1:], np.maximum(np.abs(h[1:] - prev_close), np.abs(l[1:] - prev_close)))
    return tr

def atr_sma(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> np.ndarray:
    """ATR series: simple moving average of True Range over `period` bars.

    NaN until index >= period; TR[0] has no previous close and is never averaged.
    """
    n = len(closes)
    out = np.full(n, np.nan)
    if n < period + 1 or period <= 0:
        return out

    tr = true_range(highs, lows, closes)
    s = float(np.sum(tr[1 : period + 1]))
    out[period] = s / period
    for i in range(period + 1, n):
        s += float(tr[i] - tr[i - period])
        out[i] = s / period
    return out

def atr(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> Optional[float]:
    """Latest ATR; None with fewer than period+1 bars."""
    return last_value(atr_sma(highs, lows, closes, period))

def adx(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> Optional[float]:
    """Wilder ADX, latest value only. Needs at least 2*period+1 bars.

    A flat market (zero true range) yields directional indexes of 0 and ADX 0.
    """
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    n = len(h)
    if period <= 0 or n < 2 * period + 1:
        return None

    tr = true_range(highs, lows, closes)[1:]
    up = h[1:] - h[:-1]
    down = l[:-1] - l[1:]
    plus_dm = np.where((up > down) & (up > 0), up, 0.0)
    minus_dm = np.where((down > up) & (down > 0), down, 0.0)

    s_tr = float(np.sum(tr[:period]))
    s_plus = float(np.sum(plus_dm[:period]))
    s_minus = float(np.sum(minus_dm[:period]))

    dx = [_dx(s_plus, s_minus, s_tr)]
    for i in range(period, len(tr)):
        s_tr = s_tr - s_tr / period + float(tr[i])
        s_plus = s_plus - s_plus / period + float(plus_dm[i])
        s_minus = s_minus - s_minus / period + float(minus_dm[i])
        dx.append(_dx(s_plus, s_minus, s_tr))

    value = float(np.mean(dx[:period]))
    for x in dx[period:]:
        value = (value * (period - 1) + x) / period
    return value

def _dx(s_plus: float, s_minus: float, s_tr: float) -> float:
    if s_tr <= 0:
        return 0.0
    plus_di = 100.0 * s_plus / s_tr
    minus_di = 100.0 * s_minus / s_tr
    total = plus_di + minus_di
    if total <= 0:
        return 0.0
    return 100.0 * abs(plus_di - minus_di) / total

def volume_ratio(volumes: Sequence[float], window: int = 20) -> Optional[float]:
    """Latest volume over the mean of the trailing `window` volumes (fewer if not available)."""
    v = np.asarray(volumes, dtype=float)
    if len(v) == 0 or window <= 0:
        return None
    avg = float(np.mean(v[-window:]))
    if avg <= 0:
        return None
    return float(v[-1]) / avg

def trailing_runs(series: Sequence[float]) -> tuple[int, int]:
    """(falling, rising): consecutive strict moves ending at the last element."""
    s = np.asarray(series, dtype=float)
    falling = 0
    i = len(s) - 1
    while i >= 1 and not math.isnan(s[i]) and not math.isnan(s[i - 1]) and s[i] < s[i - 1]:
        falling += 1
        i -= 1
    rising = 0
    i = len(s) - 1
    while i >= 1 and not math.isnan(s[i]) and not math.isnan(s[i - 1]) and s[i] > s[i - 1]:
        rising += 1
        i -= 1
    return falling, rising

from __future__ import annotations

import math
from typing import List, Optional, Sequence

from .config import EngineConfig
from .indicators import band_is_flat, bollinger_bands, last_value, macd, rolling_sma, rsi_wilder, volume_ratio
from .models import BEARISH, BULLISH, NEUTRAL, DailyBar, Signal, bar_columns

def _defined(*xs: float) -> bool:
    return all(not math.isnan(float(x)) for x in xs)

def detect_signals(bars: Sequence[DailyBar], cfg: Optional[EngineConfig] = None) -> List[Signal]:
    """Independent UI tags from the latest indicator values. Each check adds zero or one Signal."""
    cfg = cfg or EngineConfig()
    signals: List[Signal] = []
    if len(bars) == 0:
        return signals

    _o, _h, _l, c, v = bar_columns(bars)
    n = len(c)

    # RSI zone
    rsi_value = last_value(rsi_wilder(c, cfg.rsi_period))
    if rsi_value is not None:
        label = f"RSI {rsi_value:.0f}"
        if rsi_value >= 70:
            signals.append(Signal(BEARISH, label, "overbought"))
        elif rsi_value <= 30:
            signals.append(Signal(BULLISH, label, "oversold"))
        else:
            signals.append(Signal(NEUTRAL, label, "neutral"))

    # SMA fast/trend cross
    fast = rolling_sma(c, cfg.sma_fast)
    slow = rolling_sma(c, cfg.sma_trend)
    if n >= 2 and _defined(fast[-1], slow[-1], fast[-2], slow[-2]):
        prev_above = fast[-2] > slow[-2]
        curr_above = fast[-1] > slow[-1]
        pair = f"SMA{cfg.sma_fast}/SMA{cfg.sma_trend}"
        if not prev_above and curr_above:
            signals.append(Signal(BULLISH, "golden cross", f"{pair} crossed up"))
        elif prev_above and not curr_above:
            signals.append(Signal(BEARISH, "death cross", f"{pair} crossed down"))
        elif curr_above:
            signals.append(Signal(BULLISH, f"SMA{cfg.sma_fast} > SMA{cfg.sma_trend}", "uptrend"))
        else:
            signals.append(Signal(BEARISH, f"SMA{cfg.sma_fast} < SMA{cfg.sma_trend}", "downtrend"))

    # MACD histogram
    hist = macd(c, cfg.macd_fast, cfg.macd_slow, cfg.macd_signal).histogram
    if n >= 2 and _defined(hist[-1], hist[-2]):
        latest, prev = float(hist[-1]), float(hist[-2])
        if prev < 0 <= latest:
            signals.append(Signal(BULLISH, "MACD cross up", "MACD crossed above signal line"))
        elif prev >= 0 > latest:
            signals.append(Signal(BEARISH, "MACD cross down", "MACD crossed below signal line"))
        elif latest >= 0:
            signals.append(Signal(BULLISH, "MACD+", "positive momentum"))
        else:
            signals.append(Signal(BEARISH, "MACD-", "negative momentum"))

    # Bollinger touch
    bb = bollinger_bands(c, cfg.bb_period, cfg.bb_std)
    upper, lower = last_value(bb.upper), last_value(bb.lower)
    if upper is not None and lower is not None:
        price = float(c[-1])
        # a collapsed band sits on the close
        if price >= upper or band_is_flat(upper, lower):
            signals.append(Signal(BEARISH, "upper band touch", "at upper Bollinger band, pullback risk"))
        elif price <= lower:
            signals.append(Signal(BULLISH, "lower band touch", "at lower Bollinger band, rebound candidate"))

    # Volume spike
    ratio = volume_ratio(v, cfg.volume_window)
    if ratio is not None and ratio > cfg.volume_spike_mult:
        up = n >= 2 and c[-1] > c[-2]
        signals.append(Signal(BULLISH if up else BEARISH, "volume spike", f"{ratio:.1f}x average"))

    return signals

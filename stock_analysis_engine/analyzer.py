from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import EngineConfig
from .indicators import (
    adx,
    atr,
    band_is_flat,
    bollinger_bands,
    last_value,
    macd,
    percent_b,
    rolling_sma,
    rsi_wilder,
    trailing_runs,
    volume_ratio,
)
from .models import BEARISH, BULLISH, NEUTRAL, DailyBar, NextAction, Reason, StockAnalysis, bar_columns
from .swings import (
    DOWNTREND,
    UPTREND,
    classify_structure,
    find_swing_highs,
    find_swing_lows,
    support_resistance,
)

# (lower bound, label, verdict_type), checked top-down
VERDICT_BANDS: Tuple[Tuple[float, str, str], ...] = (
    (40.0, "strong buy", BULLISH),
    (20.0, "buy", BULLISH),
    (5.0, "slight buy", BULLISH),
)
LOWER_BANDS: Tuple[Tuple[float, str, str], ...] = (
    (-5.0, "neutral", NEUTRAL),
    (-20.0, "slight sell", BEARISH),
    (-40.0, "sell", BEARISH),
)

def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))

def verdict_from_score(score: float) -> Tuple[str, str]:
    """(verdict, verdict_type). Bullish bands are inclusive (>=), the rest exclusive (>)."""
    for bound, label, kind in VERDICT_BANDS:
        if score >= bound:
            return label, kind
    for bound, label, kind in LOWER_BANDS:
        if score > bound:
            return label, kind
    return "strong sell", BEARISH

def calibrate(score: float, anchors: Sequence[Tuple[float, float, float]]) -> Tuple[float, float]:
    """Piecewise-linear (win_rate %, expected_value %) for a score; clamps outside the table."""
    pts = sorted(anchors)
    xs = [p[0] for p in pts]
    win = float(np.interp(score, xs, [p[1] for p in pts]))
    ev = float(np.interp(score, xs, [p[2] for p in pts]))
    return win, ev

def compute_score(
    *,
    price: float,
    rsi_value: Optional[float],
    bb_upper: Optional[float],
    bb_middle: Optional[float],
    bb_lower: Optional[float],
    macd_falling_days: int,
    macd_rising_days: int,
    vol_ratio: Optional[float],
    adx_value: Optional[float],
    cfg: EngineConfig,
) -> Tuple[float, Dict[str, float]]:
    """Weighted bullishness score in [-100, 100] plus the per-term contributions.

    Terms whose inputs are not available contribute 0. The Bollinger offset
    is clamped to [-1, 1], so a close outside the bands counts as sitting on
    the band edge; a collapsed band skips the term. The ADX amplifier
    multiplies the summed score and is applied last.
    """
    parts = {"rsi": 0.0, "bollinger": 0.0, "macd": 0.0, "volume": 0.0}

    if rsi_value is not None:
        parts["rsi"] = (50.0 - rsi_value) * 2.0 * cfg.w_rsi

    if bb_upper is not None and bb_middle is not None and bb_lower is not None:
        half_width = (bb_upper - bb_lower) / 2.0
        if half_width > 0 and not band_is_flat(bb_upper, bb_lower):
            pos = clamp((price - bb_middle) / half_width, -1.0, 1.0)
            parts["bollinger"] = -pos * 50.0 * cfg.w_bollinger

    if macd_falling_days > 0:
        parts["macd"] = -min(macd_falling_days * 15, 50) * cfg.w_macd
    elif macd_rising_days > 0:
        parts["macd"] = min(macd_rising_days * 15, 50) * cfg.w_macd

    if vol_ratio is not None and rsi_value is not None:
        if vol_ratio < 0.8 and rsi_value > 70:
            parts["volume"] = -10.0 * cfg.w_volume
        elif vol_ratio > 1.2 and rsi_value < 35:
            parts["volume"] = 15.0 * cfg.w_volume

    score = sum(parts.values())
    amp = 1.0
    if adx_value is not None and adx_value > cfg.adx_threshold:
        amp = 1.0 + (adx_value - cfg.adx_threshold) / 100.0
        score *= amp
    parts["adx_amplifier"] = amp

    return clamp(score, -100.0, 100.0), parts

def build_next_actions(
    price: float,
    structure: str,
    support: Sequence[int],
    resistance: Sequence[int],
    rsi_value: Optional[float],
) -> List[NextAction]:
    """Conditional triggers; priority is high when the trigger agrees with the structure."""
    actions: List[NextAction] = []

    above = [r for r in resistance if r > price]
    if above:
        actions.append(NextAction(
            trigger=f"close above resistance {min(above)}",
            action="buy",
            priority="high" if structure == UPTREND else "medium",
        ))
    below = [s for s in support if s < price]
    if below:
        actions.append(NextAction(
            trigger=f"close below support {max(below)}",
            action="sell",
            priority="high" if structure == DOWNTREND else "medium",
        ))

    if rsi_value is not None and rsi_value < 30:
        actions.append(NextAction(trigger="RSI recovers above 30", action="buy", priority="medium"))
    elif rsi_value is not None and rsi_value > 70:
        actions.append(NextAction(trigger="RSI falls back below 70", action="sell", priority="medium"))

    if not actions:
        actions.append(NextAction(trigger="wait for a new swing level", action="wait", priority="low"))
    return actions

def _reasons(
    *,
    structure: str,
    price: float,
    prev_close: Optional[float],
    sma_trend: Optional[float],
    sma_trend_period: int,
    rsi_value: Optional[float],
    vol_ratio: Optional[float],
    bb_upper: Optional[float],
    bb_lower: Optional[float],
    from_high: float,
    window_bars: int,
    adx_value: Optional[float],
    amplifier: float,
) -> List[Reason]:
    reasons: List[Reason] = []

    if structure == UPTREND:
        reasons.append(Reason(BULLISH, f"structure: {structure}"))
    elif structure == DOWNTREND:
        reasons.append(Reason(BEARISH, f"structure: {structure}"))
    else:
        reasons.append(Reason(NEUTRAL, f"structure: {structure}"))

    if sma_trend is not None:
        if price > sma_trend:
            reasons.append(Reason(BULLISH, f"above SMA{sma_trend_period} (${sma_trend:.0f})"))
        else:
            reasons.append(Reason(BEARISH, f"below SMA{sma_trend_period} (${sma_trend:.0f})"))

    if rsi_value is not None:
        if rsi_value < 20:
            reasons.append(Reason(BULLISH, f"RSI={rsi_value:.0f} deeply oversold"))
        elif rsi_value < 30:
            reasons.append(Reason(BULLISH, f"RSI={rsi_value:.0f} oversold"))
        elif rsi_value > 70:
            reasons.append(Reason(BEARISH, f"RSI={rsi_value:.0f} overbought"))
        else:
            reasons.append(Reason(NEUTRAL, f"RSI={rsi_value:.0f}"))

    if vol_ratio is not None and vol_ratio > 1.5:
        direction = "up day" if prev_close is not None and price > prev_close else "down day"
        reasons.append(Reason(NEUTRAL, f"volume {vol_ratio:.1f}x average on {direction}"))

    if bb_lower is not None and price <= bb_lower * 0.99:
        reasons.append(Reason(BULLISH, "well below lower Bollinger band, rebound zone"))
    elif bb_lower is not None and price <= bb_lower * 1.01:
        reasons.append(Reason(BULLISH, "near lower Bollinger band"))
    elif bb_upper is not None and price >= bb_upper * 0.99:
        reasons.append(Reason(BEARISH, "near upper Bollinger band"))

    if from_high < -15:
        reasons.append(Reason(NEUTRAL, f"{from_high:.0f}% below {window_bars}-day high"))
    elif from_high >= -2:
        reasons.append(Reason(BEARISH, f"near {window_bars}-day high ({from_high:.1f}%)"))

    if adx_value is not None and amplifier > 1.0:
        reasons.append(Reason(NEUTRAL, f"ADX={adx_value:.0f} strong trend, score x{amplifier:.2f}"))

    return reasons

def _opt(x: Optional[float], nd: int = 4) -> Optional[float]:
    return round(float(x), nd) if x is not None else None

def analyze(bars: Sequence[DailyBar], cfg: Optional[EngineConfig] = None) -> StockAnalysis:
    """Technical verdict for one symbol from split-adjusted bars, oldest first."""
    if len(bars) == 0:
        raise ValueError("analyze() needs at least one bar")
    cfg = cfg or EngineConfig()

    _o, h, l, c, v = bar_columns(bars)
    price = float(c[-1])
    prev_close = float(c[-2]) if len(c) >= 2 else None

    # 1. market structure
    swing_highs = find_swing_highs(c, cfg.swing_window)
    swing_lows = find_swing_lows(c, cfg.swing_window)
    structure = classify_structure(swing_highs, swing_lows)

    # 2-4. trend, momentum, participation
    sma_trend = last_value(rolling_sma(c, cfg.sma_trend))
    rsi_value = last_value(rsi_wilder(c, cfg.rsi_period))
    vol_ratio = volume_ratio(v, cfg.volume_window)

    # 5. volatility plan
    atr_value = atr(h, l, c, cfg.atr_period)
    atr_stop = atr_target = upside_pct = downside_risk = None
    if atr_value is not None:
        atr_stop = price - cfg.atr_stop_mult * atr_value
        atr_target = price + cfg.atr_target_mult * atr_value
        if price > 0:
            upside_pct = (atr_target - price) / price * 100.0
            downside_risk = (price - atr_stop) / price * 100.0

    # 6. range context
    high_n = float(np.max(h))
    from_high = (price - high_n) / high_n * 100.0 if high_n > 0 else 0.0

    # 7. bollinger
    bb = bollinger_bands(c, cfg.bb_period, cfg.bb_std)
    bb_upper = last_value(bb.upper)
    bb_middle = last_value(bb.middle)
    bb_lower = last_value(bb.lower)

    # 8. levels
    support, resistance = support_resistance(swing_lows, swing_highs, cfg.swing_levels)

    hist = macd(c, cfg.macd_fast, cfg.macd_slow, cfg.macd_signal).histogram
    falling, rising = trailing_runs(hist)
    adx_value = adx(h, l, c, cfg.adx_period)

    score, parts = compute_score(
        price=price,
        rsi_value=rsi_value,
        bb_upper=bb_upper,
        bb_middle=bb_middle,
        bb_lower=bb_lower,
        macd_falling_days=falling,
        macd_rising_days=rising,
        vol_ratio=vol_ratio,
        adx_value=adx_value,
        cfg=cfg,
    )
    verdict, verdict_type = verdict_from_score(score)
    win_rate, expected_value = calibrate(score, cfg.calibration)

    reasons = _reasons(
        structure=structure,
        price=price,
        prev_close=prev_close,
        sma_trend=sma_trend,
        sma_trend_period=cfg.sma_trend,
        rsi_value=rsi_value,
        vol_ratio=vol_ratio,
        bb_upper=bb_upper,
        bb_lower=bb_lower,
        from_high=from_high,
        window_bars=len(bars),
        adx_value=adx_value,
        amplifier=parts["adx_amplifier"],
    )

    snapshot: Dict[str, Any] = {
        "date": bars[-1].date,
        "price": price,
        "sma_trend": _opt(sma_trend),
        "rsi": _opt(rsi_value),
        "volume_ratio": _opt(vol_ratio),
        "atr": _opt(atr_value),
        "adx": _opt(adx_value),
        "bb_upper": _opt(bb_upper),
        "bb_middle": _opt(bb_middle),
        "bb_lower": _opt(bb_lower),
        "percent_b": round(percent_b(price, bb_upper, bb_lower), 4),
        "macd_histogram": _opt(last_value(hist)),
        "macd_falling_days": falling,
        "macd_rising_days": rising,
        "from_high_pct": round(from_high, 4),
        "score_parts": {k: round(x, 4) for k, x in parts.items()},
    }

    logging.debug(
        "analyze date=%s bars=%d structure=%s score=%.2f verdict=%s",
        bars[-1].date, len(bars), structure, score, verdict,
    )

    return StockAnalysis(
        structure=structure,
        score=score,
        verdict=verdict,
        verdict_type=verdict_type,
        win_rate=win_rate,
        expected_value=expected_value,
        reasons=reasons,
        support=support,
        resistance=resistance,
        atr_stop=atr_stop,
        atr_target=atr_target,
        upside_pct=upside_pct,
        downside_risk=downside_risk,
        next_actions=build_next_actions(price, structure, support, resistance, rsi_value),
        snapshot=snapshot,
    )

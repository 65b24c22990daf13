import json
import math

import pytest

from conftest import make_bar, make_bars, wave_closes
from stock_analysis_engine.analyzer import analyze, build_next_actions, calibrate, compute_score, verdict_from_score
from stock_analysis_engine.config import DEFAULT_CALIBRATION, EngineConfig
from stock_analysis_engine.swings import DOWNTREND, RANGE_BOUND, UPTREND

CFG = EngineConfig()


def score(**kw):
    args = dict(
        price=100.0,
        rsi_value=None,
        bb_upper=None,
        bb_middle=None,
        bb_lower=None,
        macd_falling_days=0,
        macd_rising_days=0,
        vol_ratio=None,
        adx_value=None,
        cfg=CFG,
    )
    args.update(kw)
    return compute_score(**args)[0]


# --- verdict table ---------------------------------------------------------

@pytest.mark.parametrize(
    "value,verdict,kind",
    [
        (100.0, "strong buy", "bullish"),
        (40.0, "strong buy", "bullish"),
        (39.99, "buy", "bullish"),
        (20.0, "buy", "bullish"),
        (5.0, "slight buy", "bullish"),
        (4.99, "neutral", "neutral"),
        (0.0, "neutral", "neutral"),
        (-4.99, "neutral", "neutral"),
        (-5.0, "slight sell", "bearish"),
        (-20.0, "sell", "bearish"),
        (-39.99, "sell", "bearish"),
        (-40.0, "strong sell", "bearish"),
        (-100.0, "strong sell", "bearish"),
    ],
)
def test_verdict_boundaries(value, verdict, kind):
    assert verdict_from_score(value) == (verdict, kind)


# --- calibration -----------------------------------------------------------

@pytest.mark.parametrize("anchor", DEFAULT_CALIBRATION)
def test_calibration_hits_anchors_exactly(anchor):
    s, win, ev = anchor
    assert calibrate(s, DEFAULT_CALIBRATION) == pytest.approx((win, ev))


def test_calibration_interpolates_between_anchors():
    win, ev = calibrate(-20.0, DEFAULT_CALIBRATION)
    assert win == pytest.approx(52.0)
    assert ev == pytest.approx(0.5)


def test_calibration_monotonic_inside_brackets():
    wins = [calibrate(s, DEFAULT_CALIBRATION)[0] for s in (-90, -70, -50, -30, -10, 10, 20, 30, 35)]
    assert all(a < b for a, b in zip(wins, wins[1:]))


def test_calibration_clamps_outside_table():
    assert calibrate(-150.0, DEFAULT_CALIBRATION) == pytest.approx((48.0, -0.1))
    assert calibrate(150.0, DEFAULT_CALIBRATION) == pytest.approx((67.0, 2.6))


# --- scoring model ---------------------------------------------------------

def test_no_inputs_scores_zero():
    assert score() == 0.0


def test_rsi_term():
    assert score(rsi_value=30.0) == pytest.approx(14.0)
    assert score(rsi_value=80.0) == pytest.approx(-21.0)


def test_bollinger_term():
    assert score(price=110.0, bb_upper=110.0, bb_middle=100.0, bb_lower=90.0) == pytest.approx(-12.5)
    assert score(price=95.0, bb_upper=110.0, bb_middle=100.0, bb_lower=90.0) == pytest.approx(6.25)
    # beyond the band is capped at the band edge
    assert score(price=130.0, bb_upper=110.0, bb_middle=100.0, bb_lower=90.0) == pytest.approx(-12.5)


def test_bollinger_zero_width_skipped():
    assert score(price=100.0, bb_upper=100.0, bb_middle=100.0, bb_lower=100.0) == 0.0


def test_macd_run_term():
    assert score(macd_falling_days=2) == pytest.approx(-6.0)
    assert score(macd_falling_days=9) == pytest.approx(-10.0)
    assert score(macd_rising_days=1) == pytest.approx(3.0)


def test_volume_confirmation():
    # exhaustion: thin volume into overbought
    assert score(rsi_value=75.0, vol_ratio=0.5) == pytest.approx(-17.5 - 2.0)
    # capitulation: heavy volume into oversold
    assert score(rsi_value=30.0, vol_ratio=2.0) == pytest.approx(14.0 + 3.0)
    assert score(rsi_value=50.0, vol_ratio=2.0) == 0.0


def test_adx_amplifies_whole_score():
    assert score(rsi_value=30.0, adx_value=45.0) == pytest.approx(14.0 * 1.2)
    assert score(rsi_value=30.0, adx_value=20.0) == pytest.approx(14.0)


def test_score_clamped():
    s = score(
        price=50.0,
        rsi_value=0.0,
        bb_upper=110.0,
        bb_middle=100.0,
        bb_lower=90.0,
        macd_rising_days=10,
        vol_ratio=2.0,
        adx_value=100.0,
    )
    assert s == 100.0


def test_score_parts_reported():
    _s, parts = compute_score(
        price=100.0, rsi_value=30.0, bb_upper=None, bb_middle=None, bb_lower=None,
        macd_falling_days=0, macd_rising_days=0, vol_ratio=1.0, adx_value=None, cfg=CFG,
    )
    assert parts["rsi"] == pytest.approx(14.0)
    assert parts["adx_amplifier"] == 1.0


# --- next actions ----------------------------------------------------------

def test_next_actions_priority_follows_structure():
    up = build_next_actions(100.0, UPTREND, [95], [105], 50.0)
    assert [(a.action, a.priority) for a in up] == [("buy", "high"), ("sell", "medium")]
    down = build_next_actions(100.0, DOWNTREND, [95], [105], 50.0)
    assert [(a.action, a.priority) for a in down] == [("buy", "medium"), ("sell", "high")]


def test_next_actions_rsi_and_fallback():
    assert build_next_actions(100.0, RANGE_BOUND, [], [], 25.0)[0].trigger == "RSI recovers above 30"
    wait = build_next_actions(100.0, RANGE_BOUND, [], [], None)
    assert [(a.action, a.priority) for a in wait] == [("wait", "low")]


# --- full analysis ---------------------------------------------------------

def test_flat_prices(flat_bars):
    a = analyze(flat_bars)
    assert a.structure == RANGE_BOUND
    assert a.snapshot["rsi"] == 100.0
    assert a.snapshot["bb_upper"] == a.snapshot["bb_lower"] == 100.0
    assert a.snapshot["atr"] == 0.0
    # only the RSI term fires: (50 - 100) * 2 * 0.35
    assert a.score == pytest.approx(-35.0)
    assert (a.verdict, a.verdict_type) == ("sell", "bearish")
    assert a.win_rate == pytest.approx(51.25)
    assert a.expected_value == pytest.approx(0.425)
    assert a.support == [100] and a.resistance == [100]
    assert a.atr_stop == pytest.approx(100.0)
    assert a.upside_pct == pytest.approx(0.0)


def test_steady_rise_overbought_and_amplified(rising_bars):
    a = analyze(rising_bars)
    # no pullbacks -> no swing points
    assert a.structure == RANGE_BOUND
    assert a.snapshot["rsi"] == 100.0
    assert a.snapshot["adx"] == pytest.approx(100.0)
    assert a.snapshot["score_parts"]["adx_amplifier"] == pytest.approx(1.75)
    assert -100.0 <= a.score <= -40.0
    assert a.verdict == "strong sell"
    texts = [r.text for r in a.reasons]
    assert any("90-day high" in t for t in texts)
    assert any(t.startswith("ADX=") for t in texts)


def test_wave_uptrend_structure():
    a = analyze(make_bars(wave_closes(90, drift=0.3)))
    assert a.structure == UPTREND
    assert a.reasons[0].type == "bullish"
    assert any(r.text.startswith("above SMA50") and r.type == "bullish" for r in a.reasons)
    assert len(a.resistance) == 3 and a.resistance == sorted(a.resistance)


def test_wave_downtrend_structure():
    a = analyze(make_bars(wave_closes(90, drift=-0.3, base=150.0)))
    assert a.structure == DOWNTREND
    assert a.reasons[0].type == "bearish"


def test_atr_plan_is_two_to_three():
    bars = [make_bar(i, 100, 101, 99, 100) for i in range(30)]
    a = analyze(bars)
    assert a.atr_stop == pytest.approx(96.0)
    assert a.atr_target == pytest.approx(106.0)
    assert a.downside_risk == pytest.approx(4.0)
    assert a.upside_pct == pytest.approx(6.0)


def test_short_history_degrades():
    a = analyze(make_bars([10.0 + (i % 3) for i in range(25)]))
    assert a.snapshot["sma_trend"] is None
    assert a.snapshot["adx"] is None
    assert not any("SMA50" in r.text for r in a.reasons)
    assert -100.0 <= a.score <= 100.0


def test_single_bar():
    a = analyze(make_bars([42.0]))
    assert a.structure == RANGE_BOUND
    assert a.score == 0.0
    assert a.verdict == "neutral"
    assert (a.win_rate, a.expected_value) == pytest.approx((53.0, 0.6))
    assert a.atr_stop is None and a.upside_pct is None


def test_empty_rejected():
    with pytest.raises(ValueError):
        analyze([])


def test_volume_spike_reason():
    closes = [100.0] * 59 + [101.0]
    volumes = [1_000] * 59 + [5_000]
    a = analyze(make_bars(closes, volumes))
    assert any(r.text.startswith("volume") and "up day" in r.text for r in a.reasons)


def test_input_not_mutated(rising_bars):
    before = list(rising_bars)
    analyze(rising_bars)
    assert rising_bars == before


def test_to_dict_is_json_ready(rising_bars):
    d = analyze(rising_bars).to_dict()
    json.dumps(d)
    assert set(d) >= {
        "structure", "score", "verdict", "verdict_type", "win_rate", "expected_value", "reasons",
        "support", "resistance", "atr_stop", "atr_target", "upside_pct", "downside_risk", "next_actions",
    }
    assert d["reasons"][0]["type"] in ("bullish", "bearish", "neutral")


def test_flat_tail_after_trading_skips_bollinger_term():
    closes = [100.0 + 3.0 * math.sin(i / 3.0) + 0.1 * i for i in range(70)] + [123.37] * 20
    a = analyze(make_bars(closes))
    assert a.snapshot["score_parts"]["bollinger"] == 0.0
    assert a.snapshot["percent_b"] == 0.5

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

def _env_float(key: str, default: float) -> float:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default

def _env_int(key: str, default: int) -> int:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default

def _env_str(key: str, default: str) -> str:
    v = os.getenv(key)
    return v if v not in (None, "") else default

def _env_bool(key: str, default: bool = True) -> bool:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    return v.strip().lower() not in ("0", "false", "no", "off")

# (score, win_rate %, expected value %) from a 30 symbol x 2y backtest, 7 trading day horizon.
# Fixed table; revalidate with `stock-analysis calibrate` rather than editing by feel.
DEFAULT_CALIBRATION: Tuple[Tuple[float, float, float], ...] = (
    (-100.0, 48.0, -0.1),
    (-40.0, 51.0, 0.4),
    (0.0, 53.0, 0.6),
    (25.0, 56.0, 1.1),
    (40.0, 67.0, 2.6),
    (100.0, 67.0, 2.6),
)

@dataclass(frozen=True)
class EngineConfig:
    # Data
    db_path: str = _env_str("STOCK_DB_PATH", "market_data.db")
    table: str = _env_str("STOCK_DB_TABLE", "daily_price")
    lookback_bars: int = _env_int("SA_LOOKBACK_BARS", 90)

    # Indicators
    sma_fast: int = _env_int("SA_SMA_FAST", 20)
    sma_trend: int = _env_int("SA_SMA_TREND", 50)
    rsi_period: int = _env_int("SA_RSI_PERIOD", 14)
    macd_fast: int = _env_int("SA_MACD_FAST", 12)
    macd_slow: int = _env_int("SA_MACD_SLOW", 26)
    macd_signal: int = _env_int("SA_MACD_SIGNAL", 9)
    bb_period: int = _env_int("SA_BB_PERIOD", 20)
    bb_std: float = _env_float("SA_BB_STD", 2.0)
    atr_period: int = _env_int("SA_ATR_PERIOD", 14)
    adx_period: int = _env_int("SA_ADX_PERIOD", 14)
    volume_window: int = _env_int("SA_VOLUME_WINDOW", 20)
    swing_window: int = _env_int("SA_SWING_WINDOW", 5)
    swing_levels: int = _env_int("SA_SWING_LEVELS", 3)

    # Stop / target plan: stop = price - stop_mult*ATR, target = price + target_mult*ATR
    atr_stop_mult: float = _env_float("SA_ATR_STOP_MULT", 2.0)
    atr_target_mult: float = _env_float("SA_ATR_TARGET_MULT", 3.0)

    # Scoring weights
    w_rsi: float = _env_float("SA_W_RSI", 0.35)
    w_bollinger: float = _env_float("SA_W_BOLLINGER", 0.25)
    w_macd: float = _env_float("SA_W_MACD", 0.20)
    w_volume: float = _env_float("SA_W_VOLUME", 0.20)
    adx_threshold: float = _env_float("SA_ADX_THRESHOLD", 25.0)

    # Signals
    volume_spike_mult: float = _env_float("SA_VOLUME_SPIKE_MULT", 1.5)

    # Split detection: open/prev_close below forward_split_ratio => N:1 split,
    # above reverse_split_ratio => 1:N reverse split. Heuristic guards, not derived.
    forward_split_ratio: float = _env_float("SA_FORWARD_SPLIT_RATIO", 0.4)
    reverse_split_ratio: float = _env_float("SA_REVERSE_SPLIT_RATIO", 2.5)
    adjust_splits: bool = _env_bool("SA_ADJUST_SPLITS", True)

    calibration: Tuple[Tuple[float, float, float], ...] = DEFAULT_CALIBRATION

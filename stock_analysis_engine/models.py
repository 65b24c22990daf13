from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

BULLISH = "bullish"
BEARISH = "bearish"
NEUTRAL = "neutral"

@dataclass(frozen=True)
class DailyBar:
    """One trading day. `date` is YYYY-MM-DD so string order is chronological."""

    date: str
    open: float
    high: float
    low: float
    close: float
    volume: int

@dataclass(frozen=True)
class SwingPoint:
    index: int
    value: float

@dataclass(frozen=True)
class Reason:
    type: str
    text: str

@dataclass(frozen=True)
class NextAction:
    trigger: str
    action: str  # buy | sell | wait
    priority: str  # high | medium | low

@dataclass(frozen=True)
class Signal:
    type: str
    label: str
    description: str

@dataclass(frozen=True)
class StockQuote:
    symbol: str
    price: float
    change: float
    change_percent: float
    last_trading_day: str

@dataclass
class StockAnalysis:
    structure: str
    score: float
    verdict: str
    verdict_type: str
    win_rate: float
    expected_value: float
    reasons: List[Reason] = field(default_factory=list)
    support: List[int] = field(default_factory=list)
    resistance: List[int] = field(default_factory=list)
    atr_stop: Optional[float] = None
    atr_target: Optional[float] = None
    upside_pct: Optional[float] = None
    downside_risk: Optional[float] = None
    next_actions: List[NextAction] = field(default_factory=list)
    snapshot: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["score"] = round(self.score, 2)
        out["win_rate"] = round(self.win_rate, 2)
        out["expected_value"] = round(self.expected_value, 3)
        for k in ("atr_stop", "atr_target", "upside_pct", "downside_risk"):
            if out[k] is not None:
                out[k] = round(out[k], 4)
        return out

def bar_columns(bars: Sequence[DailyBar]) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """(open, high, low, close, volume) arrays, oldest first."""
    o = np.asarray([b.open for b in bars], dtype=float)
    h = np.asarray([b.high for b in bars], dtype=float)
    l = np.asarray([b.low for b in bars], dtype=float)
    c = np.asarray([b.close for b in bars], dtype=float)
    v = np.asarray([b.volume for b in bars], dtype=float)
    return o, h, l, c, v

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from .analyzer import analyze
from .config import EngineConfig
from .models import BEARISH, DailyBar

VERDICT_ORDER = ("strong buy", "buy", "slight buy", "neutral", "slight sell", "sell", "strong sell")

@dataclass
class BucketMetrics:
    verdict: str
    n: int
    hit_rate: float
    avg_return: float
    median_return: float
    predicted_win_rate: float
    predicted_ev: float

def evaluate_calibration(
    bars: Sequence[DailyBar],
    cfg: Optional[EngineConfig] = None,
    *,
    horizon: int = 7,
    window: Optional[int] = None,
    step: int = 1,
) -> Dict[str, BucketMetrics]:
    """Check the fixed score anchors against realised forward returns.

    For each day t with a full trailing `window` and `horizon` bars after it:
      - analyse bars[t-window+1 .. t]
      - forward return = close[t+horizon] / close[t] - 1

    Hit rate counts up moves for bullish/neutral verdicts and down moves for
    bearish ones, matching how the anchor win rates were measured. Nothing is
    fitted; the output only shows whether the anchors still hold.
    """
    cfg = cfg or EngineConfig()
    window = int(window or cfg.lookback_bars)
    closes = np.asarray([b.close for b in bars], dtype=float)
    n = len(closes)

    rets: Dict[str, List[float]] = {}
    kinds: Dict[str, str] = {}
    wins: Dict[str, List[float]] = {}
    evs: Dict[str, List[float]] = {}

    for t in range(window - 1, n - horizon, max(1, int(step))):
        a = analyze(bars[t - window + 1 : t + 1], cfg)
        r = float(closes[t + horizon] / closes[t] - 1.0) * 100.0
        rets.setdefault(a.verdict, []).append(r)
        wins.setdefault(a.verdict, []).append(a.win_rate)
        evs.setdefault(a.verdict, []).append(a.expected_value)
        kinds[a.verdict] = a.verdict_type

    out: Dict[str, BucketMetrics] = {}
    for verdict in VERDICT_ORDER:
        if verdict not in rets:
            continue
        arr = np.asarray(rets[verdict])
        hits = arr < 0 if kinds[verdict] == BEARISH else arr > 0
        out[verdict] = BucketMetrics(
            verdict=verdict,
            n=int(len(arr)),
            hit_rate=float(hits.mean() * 100.0),
            avg_return=float(arr.mean()),
            median_return=float(np.median(arr)),
            predicted_win_rate=float(np.mean(wins[verdict])),
            predicted_ev=float(np.mean(evs[verdict])),
        )
    return out

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np

from .models import SwingPoint

UPTREND = "uptrend (higher-highs + higher-lows)"
DOWNTREND = "downtrend (lower-highs + lower-lows)"
CONVERGING = "converging"
EXPANDING = "expanding"
RANGE_BOUND = "range-bound"

def find_swing_highs(series: Sequence[float], window: int = 5) -> List[SwingPoint]:
    """Indices whose value equals the max of [i-window, i+window].

    A plateau yields one swing point per index on it.
    """
    arr = np.asarray(series, dtype=float)
    out: List[SwingPoint] = []
    for i in range(window, len(arr) - window):
        if arr[i] == arr[i - window : i + window + 1].max():
            out.append(SwingPoint(index=i, value=float(arr[i])))
    return out

def find_swing_lows(series: Sequence[float], window: int = 5) -> List[SwingPoint]:
    arr = np.asarray(series, dtype=float)
    out: List[SwingPoint] = []
    for i in range(window, len(arr) - window):
        if arr[i] == arr[i - window : i + window + 1].min():
            out.append(SwingPoint(index=i, value=float(arr[i])))
    return out

def classify_structure(highs: Sequence[SwingPoint], lows: Sequence[SwingPoint]) -> str:
    """Compare the last two swing highs and the last two swing lows."""
    if len(highs) < 2 or len(lows) < 2:
        return RANGE_BOUND

    h_prev, h_last = highs[-2].value, highs[-1].value
    l_prev, l_last = lows[-2].value, lows[-1].value
    higher_high = h_last > h_prev
    lower_high = h_last < h_prev
    higher_low = l_last > l_prev
    lower_low = l_last < l_prev

    if higher_high and higher_low:
        return UPTREND
    if lower_high and lower_low:
        return DOWNTREND
    if lower_high and higher_low:
        return CONVERGING
    if higher_high and lower_low:
        return EXPANDING
    return RANGE_BOUND

def _levels(points: Sequence[SwingPoint], count: int) -> List[int]:
    if count <= 0:
        return []
    return sorted({int(round(p.value)) for p in points[-count:]})

def support_resistance(
    lows: Sequence[SwingPoint],
    highs: Sequence[SwingPoint],
    count: int = 3,
) -> Tuple[List[int], List[int]]:
    """(support, resistance) from the `count` most recent swing lows/highs, rounded and ascending."""
    return _levels(lows, count), _levels(highs, count)

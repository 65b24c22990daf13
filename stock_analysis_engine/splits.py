from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Sequence

from .models import DailyBar

FORWARD_SPLIT_RATIO = 0.4
REVERSE_SPLIT_RATIO = 2.5

def adjust_for_splits(
    bars: Sequence[DailyBar],
    forward_threshold: float = FORWARD_SPLIT_RATIO,
    reverse_threshold: float = REVERSE_SPLIT_RATIO,
) -> List[DailyBar]:
    """Back-adjust unadjusted daily bars for stock splits.

    Walks forward comparing each open with the previous close:
      - ratio < forward_threshold: N:1 split, N = round(1/ratio).
        Earlier bars get prices / N and volume * N.
      - ratio > reverse_threshold: 1:N reverse split, N = round(ratio).
        Earlier bars get prices * N and volume / N (rounded).

    Only bars strictly before the split day are rescaled, so several splits
    in one sequence compound onto the older bars. Returns a new list; the
    input is left untouched.
    """
    out = list(bars)
    if len(out) < 2:
        return out

    for i in range(1, len(out)):
        prev_close = out[i - 1].close
        curr_open = out[i].open
        if prev_close <= 0 or curr_open <= 0:
            continue

        ratio = curr_open / prev_close
        if ratio < forward_threshold:
            n = round(1.0 / ratio)
            logging.info("split detected %s: %d:1 (open/prev_close=%.4f)", out[i].date, n, ratio)
            for j in range(i):
                b = out[j]
                out[j] = replace(
                    b,
                    open=b.open / n,
                    high=b.high / n,
                    low=b.low / n,
                    close=b.close / n,
                    volume=int(b.volume * n),
                )
        elif ratio > reverse_threshold:
            n = round(ratio)
            logging.info("reverse split detected %s: 1:%d (open/prev_close=%.4f)", out[i].date, n, ratio)
            for j in range(i):
                b = out[j]
                out[j] = replace(
                    b,
                    open=b.open * n,
                    high=b.high * n,
                    low=b.low * n,
                    close=b.close * n,
                    volume=int(round(b.volume / n)),
                )
    return out

"""
Shared bar builders for engine tests.
"""

import math
from datetime import date, timedelta

import pytest

from stock_analysis_engine.models import DailyBar


def make_bar(
    index: int,
    open_: float,
    high: float,
    low: float,
    close: float,
    volume: int = 1_000_000,
) -> DailyBar:
    """DailyBar dated 2024-01-01 + index days."""
    return DailyBar(
        date=(date(2024, 1, 1) + timedelta(days=index)).isoformat(),
        open=float(open_),
        high=float(high),
        low=float(low),
        close=float(close),
        volume=int(volume),
    )


def make_bars(closes, volumes=None):
    """Bars with open=high=low=close, constant volume unless given."""
    volumes = volumes or [1_000_000] * len(closes)
    return [make_bar(i, c, c, c, c, v) for i, (c, v) in enumerate(zip(closes, volumes))]


def wave_closes(n: int, drift: float, amplitude: float = 4.0, period: int = 12, base: float = 100.0):
    """Trend plus a sine wave, so swing points form every `period` bars."""
    return [base + drift * i + amplitude * math.sin(2 * math.pi * i / period) for i in range(n)]


@pytest.fixture
def flat_bars():
    return make_bars([100.0] * 90)


@pytest.fixture
def rising_bars():
    return make_bars([100.0 + i for i in range(90)])

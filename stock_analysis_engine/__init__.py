"""Technical-analysis verdict engine for daily OHLCV bars.

Core idea (daily bars, one verdict per symbol):
- Split-adjust the raw bars, then compute SMA/EMA/RSI/MACD/Bollinger/ATR/ADX
- Classify market structure from swing highs/lows (window 5 on closes)
- Blend RSI, Bollinger position, MACD histogram run and volume into a score:
    * score in [-100, 100], amplified by ADX above 25
    * verdict label from fixed score bands
    * win rate / expected value interpolated from fixed backtest anchors
- Stop = price - 2*ATR, target = price + 3*ATR
- Pure functions: no I/O, no state between calls.
"""

from .analyzer import analyze
from .models import DailyBar, Signal, StockAnalysis
from .signals import detect_signals
from .splits import adjust_for_splits

__all__ = [
    "analyze",
    "detect_signals",
    "adjust_for_splits",
    "DailyBar",
    "Signal",
    "StockAnalysis",
]

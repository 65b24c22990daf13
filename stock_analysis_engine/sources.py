"""Bar ingestion adapters.

The engine itself never fetches data; these helpers turn what an upstream
collaborator hands over (an Alpha Vantage daily payload, a CSV export) into
validated, ascending DailyBar lists.
"""
from __future__ import annotations

import logging
import math
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from .models import DailyBar, StockQuote

SYMBOL_RE = re.compile(r"^[A-Z]{1,5}$")
AV_SERIES_KEY = "Time Series (Daily)"
BAR_COLUMNS = ["date", "open", "high", "low", "close", "volume"]

class DataSourceError(RuntimeError):
    """Upstream payload is missing or malformed."""

class RateLimitError(DataSourceError):
    """Upstream refused the request because of its rate limit."""

def validate_symbol(symbol: str) -> bool:
    return bool(SYMBOL_RE.match(symbol or ""))

def require_symbol(symbol: str) -> str:
    if not validate_symbol(symbol):
        raise DataSourceError(f"invalid symbol: {symbol!r}")
    return symbol

def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        v = float(str(value).replace(",", ""))
    except ValueError:
        return None
    return v if math.isfinite(v) else None

def _to_int(value: Any) -> Optional[int]:
    v = _to_float(value)
    return int(v) if v is not None else None

def _make_bar(date: str, o: Any, h: Any, l: Any, c: Any, vol: Any) -> Optional[DailyBar]:
    prices = [_to_float(x) for x in (o, h, l, c)]
    volume = _to_int(vol)
    if any(p is None or p <= 0 for p in prices) or volume is None or volume < 0:
        return None
    return DailyBar(date=str(date)[:10], open=prices[0], high=prices[1], low=prices[2], close=prices[3], volume=volume)

def bars_from_alpha_vantage(payload: Dict[str, Any], limit: Optional[int] = 90) -> List[DailyBar]:
    """TIME_SERIES_DAILY JSON -> ascending bars, trailing `limit` kept."""
    if not isinstance(payload, dict):
        raise DataSourceError(f"expected a JSON object, got {type(payload).__name__}")
    if payload.get("Note") or payload.get("Information"):
        raise RateLimitError(str(payload.get("Note") or payload.get("Information")))
    series = payload.get(AV_SERIES_KEY)
    if not isinstance(series, dict) or not series:
        raise DataSourceError(payload.get("Error Message") or "no daily time series in payload")

    bars: List[DailyBar] = []
    for date, values in series.items():
        if not isinstance(values, dict):
            logging.warning("skip malformed bar %s: %r", date, values)
            continue
        bar = _make_bar(
            date,
            values.get("1. open"),
            values.get("2. high"),
            values.get("3. low"),
            values.get("4. close"),
            values.get("5. volume"),
        )
        if bar is None:
            logging.warning("skip malformed bar %s: %s", date, values)
            continue
        bars.append(bar)

    bars.sort(key=lambda b: b.date)
    if limit is not None:
        bars = bars[-int(limit):]
    return bars

def bars_from_frame(df: pd.DataFrame) -> List[DailyBar]:
    """DataFrame with date/open/high/low/close/volume columns -> ascending bars."""
    missing = [col for col in BAR_COLUMNS if col not in df.columns]
    if missing:
        raise DataSourceError(f"missing columns: {', '.join(missing)}")

    df = df[BAR_COLUMNS].copy()
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    for col in ("open", "high", "low", "close", "volume"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    n_before = len(df)
    df = df.dropna()
    df = df[(df[["open", "high", "low", "close"]] > 0).all(axis=1) & (df["volume"] >= 0)]
    if len(df) < n_before:
        logging.warning("dropped %d malformed rows", n_before - len(df))

    df = df.sort_values("date", kind="mergesort").drop_duplicates(subset="date", keep="last")
    return [
        DailyBar(
            date=r.date.strftime("%Y-%m-%d"),
            open=float(r.open),
            high=float(r.high),
            low=float(r.low),
            close=float(r.close),
            volume=int(r.volume),
        )
        for r in df.itertuples(index=False)
    ]

def bars_from_csv(path: Union[str, Path]) -> List[DailyBar]:
    csv_path = Path(path)
    if not csv_path.exists():
        raise DataSourceError(f"CSV not found: {csv_path}")
    try:
        df = pd.read_csv(csv_path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise DataSourceError(f"unreadable CSV {csv_path}: {exc}") from exc
    df.columns = [str(col).strip().lower() for col in df.columns]
    return bars_from_frame(df)

def build_quote(symbol: str, bars: Sequence[DailyBar]) -> StockQuote:
    """Latest close and day-over-day change."""
    if not bars:
        raise DataSourceError(f"no bars for {symbol}")
    latest = bars[-1]
    prev_close = bars[-2].close if len(bars) >= 2 else latest.close
    change = latest.close - prev_close
    change_pct = change / prev_close * 100.0 if prev_close else 0.0
    return StockQuote(
        symbol=symbol,
        price=latest.close,
        change=change,
        change_percent=change_pct,
        last_trading_day=latest.date,
    )

from __future__ import annotations

import sqlite3
from typing import Iterable, List, Optional, Tuple

from .models import DailyBar

SCHEMA = """
CREATE TABLE IF NOT EXISTS {table} (
    date TEXT NOT NULL,
    code TEXT NOT NULL,
    open REAL,
    high REAL,
    low REAL,
    close REAL,
    volume INTEGER,
    PRIMARY KEY (date, code)
)
"""

def connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn

def list_codes(db_path: str, table: str = "daily_price", min_rows: int = 1) -> List[Tuple[str, int]]:
    """Return [(code, n_rows), ...]"""
    conn = connect(db_path)
    try:
        cur = conn.execute(
            f"SELECT code, COUNT(*) as n FROM {table} GROUP BY code HAVING n >= ? ORDER BY code",
            (int(min_rows),),
        )
        return [(str(r[0]), int(r[1])) for r in cur.fetchall()]
    finally:
        conn.close()

def fetch_bars(
    db_path: str,
    code: str,
    table: str = "daily_price",
    limit: Optional[int] = None,
) -> List[DailyBar]:
    """Most recent `limit` bars for a code, returned oldest first.

    Rows with a NULL price or volume are skipped.
    """
    conn = connect(db_path)
    try:
        lim_sql = f" LIMIT {int(limit)}" if limit is not None else ""
        cur = conn.execute(
            f"SELECT date, open, high, low, close, volume FROM {table} "
            f"WHERE code=? ORDER BY date DESC{lim_sql}",
            (code,),
        )
        rows = list(reversed(cur.fetchall()))
    finally:
        conn.close()

    bars: List[DailyBar] = []
    for r in rows:
        if any(r[k] is None for k in ("open", "high", "low", "close", "volume")):
            continue
        bars.append(DailyBar(
            date=str(r["date"]),
            open=float(r["open"]),
            high=float(r["high"]),
            low=float(r["low"]),
            close=float(r["close"]),
            volume=int(r["volume"]),
        ))
    return bars

def upsert_bars(db_path: str, code: str, bars: Iterable[DailyBar], table: str = "daily_price") -> int:
    """INSERT OR REPLACE bars for a code; returns the number of rows written."""
    rows = [(b.date, code, b.open, b.high, b.low, b.close, int(b.volume)) for b in bars]
    conn = connect(db_path)
    try:
        conn.execute(SCHEMA.format(table=table))
        conn.executemany(
            f"INSERT OR REPLACE INTO {table} (date, code, open, high, low, close, volume) VALUES (?,?,?,?,?,?,?)",
            rows,
        )
        conn.commit()
    finally:
        conn.close()
    return len(rows)

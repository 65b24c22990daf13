from __future__ import annotations

import argparse
import json
import logging
import sqlite3
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from .analyzer import analyze
from .backtester import evaluate_calibration
from .config import EngineConfig
from .db import fetch_bars, list_codes, upsert_bars
from .models import DailyBar
from .signals import detect_signals
from .sources import DataSourceError, bars_from_alpha_vantage, bars_from_csv, build_quote, require_symbol
from .splits import adjust_for_splits

def _p(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2, default=str))

def _config(args: argparse.Namespace) -> EngineConfig:
    return EngineConfig(db_path=args.db, table=args.table)

def _prepare(bars: List[DailyBar], cfg: EngineConfig, limit: Optional[int]) -> List[DailyBar]:
    # adjust on the full history first so splits older than the window still rescale it
    if cfg.adjust_splits:
        bars = adjust_for_splits(bars, cfg.forward_split_ratio, cfg.reverse_split_ratio)
    if limit is not None:
        bars = bars[-int(limit):]
    return bars

def _load_bars(args: argparse.Namespace, cfg: EngineConfig, limit: Optional[int]) -> List[DailyBar]:
    if getattr(args, "csv", None):
        bars = bars_from_csv(args.csv)
    elif getattr(args, "alpha_json", None):
        try:
            payload = json.loads(Path(args.alpha_json).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise DataSourceError(f"unreadable Alpha Vantage file {args.alpha_json}: {exc}") from exc
        bars = bars_from_alpha_vantage(payload, limit=None)
    elif getattr(args, "code", None):
        bars = fetch_bars(cfg.db_path, require_symbol(args.code), table=cfg.table)
    else:
        raise DataSourceError("one of --code, --csv or --alpha-json is required")
    return _prepare(bars, cfg, limit)

def _symbol(args: argparse.Namespace) -> str:
    if getattr(args, "code", None):
        return args.code
    src = getattr(args, "csv", None) or getattr(args, "alpha_json", None) or ""
    return Path(src).stem.upper()

def cmd_analyze(args: argparse.Namespace) -> Dict[str, Any]:
    cfg = _config(args)
    bars = _load_bars(args, cfg, args.lookback or cfg.lookback_bars)
    if not bars:
        return {"ok": False, "code": _symbol(args), "error": "no_data"}
    symbol = _symbol(args)
    analysis = analyze(bars, cfg)
    return {
        "ok": True,
        "code": symbol,
        "quote": asdict(build_quote(symbol, bars)),
        "analysis": analysis.to_dict(),
        "signals": [asdict(s) for s in detect_signals(bars, cfg)],
    }

def cmd_signals(args: argparse.Namespace) -> Dict[str, Any]:
    cfg = _config(args)
    bars = _load_bars(args, cfg, args.lookback or cfg.lookback_bars)
    if not bars:
        return {"ok": False, "code": _symbol(args), "error": "no_data"}
    return {"ok": True, "code": _symbol(args), "signals": [asdict(s) for s in detect_signals(bars, cfg)]}

def cmd_scan(args: argparse.Namespace) -> Dict[str, Any]:
    cfg = _config(args)
    rows: List[Dict[str, Any]] = []
    for code, _n in list_codes(cfg.db_path, table=cfg.table, min_rows=args.min_rows):
        bars = _prepare(fetch_bars(cfg.db_path, code, table=cfg.table), cfg, cfg.lookback_bars)
        if not bars:
            continue
        a = analyze(bars, cfg)
        rows.append({
            "code": code,
            "date": bars[-1].date,
            "price": bars[-1].close,
            "score": round(a.score, 2),
            "verdict": a.verdict,
            "verdict_type": a.verdict_type,
            "win_rate": round(a.win_rate, 2),
            "expected_value": round(a.expected_value, 3),
            "structure": a.structure,
        })
    rows.sort(key=lambda x: x["score"], reverse=True)
    return {"ok": True, "n_codes": len(rows), "rows": rows[: int(args.limit)]}

def cmd_calibrate(args: argparse.Namespace) -> Dict[str, Any]:
    cfg = _config(args)
    bars = _load_bars(args, cfg, None)
    window = args.window or cfg.lookback_bars
    if len(bars) < window + args.horizon:
        return {"ok": False, "error": "not_enough_data", "min_required": window + args.horizon, "n": len(bars)}
    buckets = evaluate_calibration(bars, cfg, horizon=args.horizon, window=window, step=args.step)
    return {
        "ok": True,
        "code": _symbol(args),
        "horizon": int(args.horizon),
        "window": int(window),
        "buckets": [asdict(m) for m in buckets.values()],
    }

def cmd_import_csv(args: argparse.Namespace) -> Dict[str, Any]:
    cfg = _config(args)
    code = require_symbol(args.code)
    bars = bars_from_csv(args.csv)
    n = upsert_bars(cfg.db_path, code, bars, table=cfg.table)
    logging.info("imported %d rows for %s into %s", n, code, cfg.db_path)
    return {"ok": True, "code": code, "rows": n}

def _add_source_args(p: argparse.ArgumentParser) -> None:
    g = p.add_mutually_exclusive_group(required=True)
    g.add_argument("--code", help="Symbol stored in the SQLite table")
    g.add_argument("--csv", help="CSV with date,open,high,low,close,volume columns")
    g.add_argument("--alpha-json", help="Saved Alpha Vantage TIME_SERIES_DAILY response")

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="stock-analysis", description="Technical-analysis verdicts from daily OHLCV bars.")
    p.add_argument("--db", default="market_data.db", help="SQLite DB path (default: market_data.db)")
    p.add_argument("--table", default="daily_price", help="Price table (default: daily_price)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = p.add_subparsers(dest="cmd", required=True)

    p_an = sub.add_parser("analyze", help="Score, verdict, levels and signals for one symbol")
    _add_source_args(p_an)
    p_an.add_argument("--lookback", type=int, default=None, help="Bars to analyse (default: config, 90)")
    p_an.set_defaults(func=cmd_analyze)

    p_sig = sub.add_parser("signals", help="Indicator tags only")
    _add_source_args(p_sig)
    p_sig.add_argument("--lookback", type=int, default=None)
    p_sig.set_defaults(func=cmd_signals)

    p_scan = sub.add_parser("scan", help="Analyse every code in the DB, best score first")
    p_scan.add_argument("--min-rows", type=int, default=60)
    p_scan.add_argument("--limit", type=int, default=20)
    p_scan.set_defaults(func=cmd_scan)

    p_cal = sub.add_parser("calibrate", help="Compare score bands with realised forward returns")
    _add_source_args(p_cal)
    p_cal.add_argument("--horizon", type=int, default=7, help="Forward bars (default 7)")
    p_cal.add_argument("--window", type=int, default=None, help="Analysis window (default: config, 90)")
    p_cal.add_argument("--step", type=int, default=1)
    p_cal.set_defaults(func=cmd_calibrate)

    p_imp = sub.add_parser("import-csv", help="Upsert a CSV of daily bars into the DB")
    p_imp.add_argument("--csv", required=True)
    p_imp.add_argument("--code", required=True)
    p_imp.set_defaults(func=cmd_import_csv)

    return p

def main(argv: Optional[List[str]] = None) -> None:
    p = build_parser()
    args = p.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    try:
        out = args.func(args)
    except DataSourceError as exc:
        logging.warning("%s failed: %s", args.cmd, exc)
        out = {"ok": False, "error": str(exc)}
    except sqlite3.Error as exc:
        logging.warning("%s failed on %s: %s", args.cmd, args.db, exc)
        out = {"ok": False, "error": f"database error: {exc}"}
    _p(out)

if __name__ == "__main__":
    main()

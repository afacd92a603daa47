"""Reporting helpers.

Writes a finished backtest pass as deterministic, human-reviewable files:
- `summary.json`: metadata, summary metrics and trade highlights
- `trades.csv`: the ledger's trade log with per-trade realized PnL
- `timeseries.csv`: per-snapshot PnL, position and cumulative volume

Non-finite floats (e.g. an infinite profit factor) are written as null.
"""

import json
import math
import os

import pandas as pd

from . import metrics

RECENT_TRADES = 10


def ensure_dir(path):
    if not os.path.exists(path):
        os.makedirs(path)


def _clean(obj):
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    if isinstance(obj, dict):
        return {k: _clean(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_clean(v) for v in obj]
    return obj


def write_json(path, obj):
    with open(path, "w") as f:
        json.dump(_clean(obj), f, indent=2, sort_keys=True)


def trade_rows(trades):
    """Trade log as dicts, each with the PnL it realized."""
    rows = []
    for i, (t, pnl) in enumerate(zip(trades, metrics.trade_pnls(trades))):
        rows.append({
            "id": i,
            "timestamp_us": t.timestamp_us,
            "side": "buy" if t.is_buy() else "sell",
            "price": t.price,
            "size": t.quantity,
            "notional": t.notional(),
            "pnl_impact": pnl,
        })
    return rows


def write_trades_csv(path, trades):
    df = pd.DataFrame(trade_rows(trades), columns=["id", "timestamp_us", "side", "price", "size", "notional", "pnl_impact"])
    df.to_csv(path, index=False)


def write_timeseries_csv(path, timeseries):
    df = pd.DataFrame([p._asdict() for p in timeseries],
                      columns=["snapshot", "timestamp_us", "total_pnl", "position", "volume"])
    df.to_csv(path, index=False)


def build_export(result, starting_capital=10000.0):
    """JSON-ready dict describing one pass."""
    summary = metrics.summarize(result)
    rows = trade_rows(result.position.trades)
    total_pnl = summary["total_pnl"]
    starting_capital = float(starting_capital)

    return {
        "metadata": {
            "strategy_name": result.name,
            "dataset_size": result.snapshots_processed,
            "duration_ms": result.duration_seconds * 1000.0,
            "throughput": result.throughput,
            "start_price": result.start_price,
            "final_price": result.final_price,
            "starting_capital": starting_capital,
            "final_capital": starting_capital + total_pnl,
            "return_pct": total_pnl / starting_capital * 100.0 if starting_capital else 0.0,
        },
        "summary": summary,
        "risk": {
            "max_drawdown": summary["max_drawdown"],
            "max_drawdown_pct": summary["max_drawdown_pct"],
            "sharpe_ratio": summary["sharpe_ratio"],
            "max_position_long": summary["max_position_long"],
            "max_position_short": summary["max_position_short"],
            "avg_position": summary["avg_position"],
        },
        "trades": {
            "count": len(rows),
            "best_trade": max(rows, key=lambda r: r["pnl_impact"]) if rows else None,
            "worst_trade": min(rows, key=lambda r: r["pnl_impact"]) if rows else None,
            "recent_trades": rows[-RECENT_TRADES:],
        },
    }


def write_run(outdir, result, starting_capital=10000.0):
    """Write summary.json, trades.csv and timeseries.csv into `outdir`."""
    ensure_dir(outdir)
    write_json(os.path.join(outdir, "summary.json"), build_export(result, starting_capital))
    write_trades_csv(os.path.join(outdir, "trades.csv"), result.position.trades)
    write_timeseries_csv(os.path.join(outdir, "timeseries.csv"), result.timeseries)
    return outdir

"""Metrics for evaluating a finished backtest pass.

Pure functions over the ledger's trade log and the runner's timeseries.
Per-trade PnL is the PnL each trade realized when replayed through a fresh
ledger. Win/loss statistics take the PnLs of closing trades only, i.e. trades
that reduced an open position; a breakeven close counts as a closed trade.
"""

import math

import numpy as np

from .contracts import Side
from .ledger import Position


def trade_pnls(trades):
    """Realized PnL of each trade, in order."""
    ledger = Position()
    return [ledger.execute_trade(t) for t in trades]


def closing_pnls(trades):
    """Realized PnL of each trade that reduced an open position, in order."""
    ledger = Position()
    out = []
    for t in trades:
        before = ledger.quantity
        pnl = ledger.execute_trade(t)
        if before * t.side.sign < 0.0:
            out.append(pnl)
    return out


def hit_rate(closed):
    if not closed:
        return 0.0
    wins = sum(1 for p in closed if p > 0)
    return wins / float(len(closed))


def avg_win_loss(pnls):
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]
    avg_win = sum(wins) / float(len(wins)) if wins else 0.0
    avg_loss = sum(losses) / float(len(losses)) if losses else 0.0
    return avg_win, avg_loss


def expectancy(closed):
    if not closed:
        return 0.0
    hr = hit_rate(closed)
    lr = sum(1 for p in closed if p < 0) / float(len(closed))
    aw, al = avg_win_loss(closed)
    # Note: al is negative; breakeven closes add nothing
    return hr * aw + lr * al


def profit_factor(pnls):
    gross_win = sum(p for p in pnls if p > 0)
    gross_loss = -sum(p for p in pnls if p < 0)
    if gross_loss > 0:
        return gross_win / gross_loss
    if gross_win > 0:
        return math.inf
    return 0.0


def max_drawdown(series):
    """Return (absolute, percent-of-peak) max drawdown of a PnL series.

    The percentage is 0 while the running peak is not positive.
    """
    series = list(series)
    if not series:
        return 0.0, 0.0
    peak = series[0]
    max_dd = 0.0
    max_dd_pct = 0.0
    for x in series:
        peak = max(peak, x)
        dd = peak - x
        if dd > max_dd:
            max_dd = dd
            max_dd_pct = dd / peak * 100.0 if peak > 0 else 0.0
    return max_dd, max_dd_pct


def sharpe_ratio(series, periods=252):
    """Mean over std of step-to-step PnL changes, scaled by sqrt(periods)."""
    values = np.asarray(list(series), dtype=float)
    if len(values) < 2:
        return 0.0
    returns = np.diff(values)
    std = float(returns.std())
    if std < 1e-10:
        return 0.0
    return float(returns.mean()) / std * math.sqrt(periods)


def position_path_stats(trades):
    """Max long, max short and average position after each trade."""
    current = 0.0
    max_long = 0.0
    max_short = 0.0
    total = 0.0
    for t in trades:
        current += t.quantity if t.side is Side.BID else -t.quantity
        max_long = max(max_long, current)
        max_short = min(max_short, current)
        total += current
    n = len(trades)
    return {
        "max_long": max_long,
        "max_short": max_short,
        "avg_position": total / n if n else 0.0,
    }


def summarize(result):
    """Plain-dict summary of a `BacktestResult`."""
    position = result.position
    trades = position.trades
    closed = closing_pnls(trades)
    aw, al = avg_win_loss(closed)
    pnl_curve = [p.total_pnl for p in result.timeseries]
    dd, dd_pct = max_drawdown(pnl_curve)
    stats = result.stats
    updates = stats.updates_processed

    out = {
        "name": result.name,
        "realized_pnl": position.realized_pnl,
        "unrealized_pnl": result.unrealized_pnl(),
        "total_pnl": result.total_pnl(),
        "final_position": position.quantity,
        "avg_entry_price": position.avg_entry_price,
        "total_trades": position.trade_count,
        "winning_trades": sum(1 for p in closed if p > 0),
        "losing_trades": sum(1 for p in closed if p < 0),
        "closed_trades": len(closed),
        "hit_rate": hit_rate(closed),
        "avg_win": aw,
        "avg_loss": al,
        "largest_win": max([p for p in closed if p > 0], default=0.0),
        "largest_loss": min([p for p in closed if p < 0], default=0.0),
        "expectancy": expectancy(closed),
        "profit_factor": profit_factor(closed),
        "max_drawdown": dd,
        "max_drawdown_pct": dd_pct,
        "sharpe_ratio": sharpe_ratio(pnl_curve),
        "total_volume": position.total_bought + position.total_sold,
        "buy_volume": position.total_bought,
        "sell_volume": position.total_sold,
        "updates_processed": updates,
        "trades_generated": stats.trades_generated,
        "quotes_placed": stats.quotes_placed,
        "quote_rate": stats.quotes_placed / float(updates) if updates else 0.0,
        "snapshots_processed": result.snapshots_processed,
        "snapshots_skipped": result.snapshots_skipped,
        "duration_seconds": result.duration_seconds,
        "throughput_per_sec": result.throughput,
        "time_per_snapshot_ns": result.time_per_snapshot_ns,
    }
    path = position_path_stats(trades)
    out["max_position_long"] = path["max_long"]
    out["max_position_short"] = path["max_short"]
    out["avg_position"] = path["avg_position"]
    return out

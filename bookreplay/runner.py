"""Backtest driver.

Sequencing
----------
For each snapshot, strictly in input order:

1) Check validity via `DepthView.is_valid()`; skip (or abort when
   `skip_invalid=False`) on a crossed or malformed book.
2) Call `strategy.on_market_data(snapshot, position)`.
3) Apply every returned trade to the ledger, in order.
4) Record a timeseries point (PnL marked at mid, position, cumulative volume).

The runner owns its `Position` and resets it at the start of every pass, so
the trade log always describes exactly one pass. Strategy state is not reset;
build a fresh strategy per pass. Comparisons between strategies are
independent sequential passes, each with its own ledger.
"""

import logging
import time
from typing import Callable, Dict, NamedTuple, Optional, Sequence

from .book import DepthView
from .contracts import DepthSnapshot, Strategy
from .ledger import Position


class TimeseriesPoint(NamedTuple):
    snapshot: int
    timestamp_us: int
    total_pnl: float
    position: float
    volume: float


class BacktestResult(object):
    """Everything a finished pass exposes to metrics and reporting."""

    __slots__ = (
        "name",
        "position",
        "stats",
        "timeseries",
        "snapshots_processed",
        "snapshots_skipped",
        "start_price",
        "final_price",
        "duration_seconds",
    )

    def __init__(self, name, position, stats, timeseries, snapshots_processed, snapshots_skipped,
                 start_price, final_price, duration_seconds):
        self.name = name
        self.position = position
        self.stats = stats
        self.timeseries = timeseries
        self.snapshots_processed = int(snapshots_processed)
        self.snapshots_skipped = int(snapshots_skipped)
        self.start_price = start_price
        self.final_price = final_price
        self.duration_seconds = float(duration_seconds)

    @property
    def throughput(self):
        if self.duration_seconds <= 0:
            return 0.0
        return self.snapshots_processed / self.duration_seconds

    @property
    def time_per_snapshot_ns(self):
        if self.snapshots_processed == 0:
            return 0.0
        return self.duration_seconds * 1e9 / self.snapshots_processed

    def unrealized_pnl(self):
        if self.final_price is None:
            return 0.0
        return self.position.unrealized_pnl(self.final_price)

    def total_pnl(self):
        return self.position.realized_pnl + self.unrealized_pnl()


class BacktestRunner(object):
    def __init__(self, strategy: Strategy, position: Optional[Position] = None, skip_invalid=True, logger=None):
        self.strategy = strategy
        self.position = position if position is not None else Position()
        self.skip_invalid = bool(skip_invalid)
        self._l = logger or logging.getLogger(__name__)

    def run(self, snapshots: Sequence[DepthSnapshot]) -> BacktestResult:
        strategy = self.strategy
        position = self.position
        position.reset()
        timeseries = []
        processed = 0
        skipped = 0
        volume = 0.0
        start_price = None
        last_mid = None

        self._l.info("backtest start: %s", strategy.name())
        t0 = time.perf_counter()

        for idx, snapshot in enumerate(snapshots):
            book = DepthView(snapshot)
            if not book.is_valid():
                if not self.skip_invalid:
                    raise ValueError("invalid snapshot at row %s (ts=%s)" % (snapshot.row_index, snapshot.timestamp_us))
                skipped += 1
                self._l.warning("skipping invalid snapshot row=%s bid=%.4f ask=%.4f",
                                snapshot.row_index, book.best_bid(), book.best_ask())
                continue

            mid = book.mid_price()
            if start_price is None:
                start_price = mid
            last_mid = mid

            for trade in strategy.on_market_data(snapshot, position):
                position.execute_trade(trade)
                volume += trade.quantity

            processed += 1
            timeseries.append(TimeseriesPoint(
                snapshot=idx,
                timestamp_us=snapshot.timestamp_us,
                total_pnl=position.total_pnl(mid),
                position=position.quantity,
                volume=volume,
            ))

        elapsed = time.perf_counter() - t0

        result = BacktestResult(
            name=strategy.name(),
            position=position,
            stats=strategy.stats(),
            timeseries=timeseries,
            snapshots_processed=processed,
            snapshots_skipped=skipped,
            start_price=start_price,
            final_price=last_mid,
            duration_seconds=elapsed,
        )
        self._l.info(
            "backtest done: %s processed=%d skipped=%d trades=%d qty=%.4f realized=%.4f total=%.4f",
            result.name, processed, skipped, position.trade_count, position.quantity,
            position.realized_pnl, result.total_pnl())
        return result


def run_comparison(factories: Dict[str, Callable[[], Strategy]], snapshots, skip_invalid=True, logger=None):
    """Run each strategy over the same snapshots with its own fresh ledger.

    `factories` maps a label to a zero-argument callable that builds a new
    strategy instance. Returns label -> BacktestResult, in input order.
    """
    snapshots = list(snapshots)
    results = {}
    for label, factory in factories.items():
        runner = BacktestRunner(factory(), position=Position(), skip_invalid=skip_invalid, logger=logger)
        results[label] = runner.run(snapshots)
    return results

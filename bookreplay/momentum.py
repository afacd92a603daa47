"""Lookback momentum strategy.

Keeps a bounded history of mid prices and crosses the spread when the
change over `lookback` snapshots exceeds `trigger_threshold`. At most one
trade per snapshot.
"""

import logging
from collections import deque
from typing import List, Optional

from .book import DepthView
from .contracts import MomentumConfig, Side, Strategy, StrategyStats, Trade


class MomentumStrategy(Strategy):
    def __init__(self, config=None, logger=None):
        self.config = config or MomentumConfig()
        self._l = logger or logging.getLogger(__name__)

        self.price_history = deque(maxlen=self.config.history_cap)

        self.updates_processed = 0
        self.trades_generated = 0
        self.signals_generated = 0

    def name(self):
        return "Momentum Strategy"

    def stats(self):
        return StrategyStats(
            name=self.name(),
            updates_processed=self.updates_processed,
            trades_generated=self.trades_generated,
            quotes_placed=self.signals_generated,
        )

    def momentum(self) -> Optional[float]:
        """Mid change over the lookback window, or None while warming up."""
        lookback = self.config.lookback
        n = len(self.price_history)
        if n < lookback:
            return None
        return self.price_history[-1] - self.price_history[n - lookback]

    def on_market_data(self, snapshot, position) -> List[Trade]:
        self.updates_processed += 1
        cfg = self.config

        book = DepthView(snapshot)
        self.price_history.append(book.mid_price())

        momentum = self.momentum()
        if momentum is None:
            return []

        position_qty = float(position.quantity)
        if momentum > cfg.trigger_threshold and position_qty < cfg.max_position:
            trade = Trade(Side.BID, book.best_ask(), cfg.trade_size, snapshot.timestamp_us)
        elif momentum < -cfg.trigger_threshold and position_qty > -cfg.max_position:
            trade = Trade(Side.ASK, book.best_bid(), cfg.trade_size, snapshot.timestamp_us)
        else:
            return []

        self.trades_generated += 1
        self.signals_generated += 1
        self._l.debug("signal %s momentum=%.4f pos=%.4f price=%.4f",
                      trade.side.value, momentum, position_qty, trade.price)
        return [trade]

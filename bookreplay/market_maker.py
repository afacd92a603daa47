"""Inventory-aware market maker.

Per snapshot, in this order:

1) compute top of book, mid and the mid-to-mid trend
2) fill resting quotes the book has crossed
3) hedge inventory beyond `max_position * hedge_inventory_ratio`
4) compute skewed bid/ask prices
5) gate each side on inventory limits and the trend filter
6) re-quote a side only if its price moved by at least half a tick
7) if anything was re-quoted, check fills once more on the same snapshot

Resting quotes are owned by the strategy instance and never shared.
"""

import logging
from typing import List, NamedTuple, Optional

from .book import DepthView
from .contracts import MarketMakerConfig, Side, Strategy, StrategyStats, Trade

# Hedge trades below this size are not worth sending.
MIN_HEDGE_QTY = 1e-9


class RestingQuote(NamedTuple):
    price: float
    quantity: float


class MarketMaker(Strategy):
    def __init__(self, config=None, logger=None):
        self.config = config or MarketMakerConfig()
        self._l = logger or logging.getLogger(__name__)

        self.updates_processed = 0
        self.trades_generated = 0
        self.quotes_placed = 0

        self.active_bid = None  # type: Optional[RestingQuote]
        self.active_ask = None  # type: Optional[RestingQuote]
        self.last_mid_price = None  # type: Optional[float]

    # ---- Strategy contract ----

    def name(self):
        return "Market Maker"

    def stats(self):
        return StrategyStats(
            name=self.name(),
            updates_processed=self.updates_processed,
            trades_generated=self.trades_generated,
            quotes_placed=self.quotes_placed,
        )

    def on_market_data(self, snapshot, position) -> List[Trade]:
        self.updates_processed += 1
        trades = []
        position_qty = float(position.quantity)
        cfg = self.config

        book = DepthView(snapshot)
        best_bid = book.best_bid()
        best_ask = book.best_ask()
        mid_price = (best_bid + best_ask) / 2.0
        trend = mid_price - self.last_mid_price if self.last_mid_price is not None else 0.0
        self.last_mid_price = mid_price

        self._check_resting_fills(book, trades)

        self._hedge_inventory(book, position_qty, trades)

        desired_bid = self.bid_price(best_bid, position_qty)
        desired_ask = self.ask_price(best_ask, position_qty)

        quote_bid = self.should_quote_bid(position_qty)
        quote_ask = self.should_quote_ask(position_qty)
        trend_threshold = cfg.trend_filter_ticks * cfg.tick_size
        if trend_threshold > 0.0:
            if trend > trend_threshold and position_qty <= 0.0:
                quote_ask = False
            if trend < -trend_threshold and position_qty >= 0.0:
                quote_bid = False

        placed = False
        if quote_bid:
            placed |= self._update_resting_bid(desired_bid)
        elif self.active_bid is not None:
            self._l.debug("cancel bid %.4f (gated, pos=%.4f)", self.active_bid.price, position_qty)
            self.active_bid = None

        if quote_ask:
            placed |= self._update_resting_ask(desired_ask)
        elif self.active_ask is not None:
            self._l.debug("cancel ask %.4f (gated, pos=%.4f)", self.active_ask.price, position_qty)
            self.active_ask = None

        if placed:
            self._check_resting_fills(book, trades)

        return trades

    # ---- pricing and gating ----

    def inventory_skew(self, position_qty):
        cfg = self.config
        ratio = max(-1.0, min(1.0, position_qty / cfg.max_position))
        return ratio * cfg.inventory_skew_ticks * cfg.tick_size

    def bid_price(self, best_bid, position_qty):
        cfg = self.config
        return best_bid - cfg.spread_ticks * cfg.tick_size - self.inventory_skew(position_qty)

    def ask_price(self, best_ask, position_qty):
        cfg = self.config
        return best_ask + cfg.spread_ticks * cfg.tick_size - self.inventory_skew(position_qty)

    def should_quote_bid(self, position_qty):
        cfg = self.config
        if position_qty >= cfg.max_position:
            return False
        return position_qty / cfg.max_position < cfg.inventory_threshold

    def should_quote_ask(self, position_qty):
        cfg = self.config
        if position_qty <= -cfg.max_position:
            return False
        return position_qty / cfg.max_position > -cfg.inventory_threshold

    # ---- order handling ----

    def _hedge_inventory(self, book, position_qty, trades):
        """Cross the spread to cut inventory beyond the hedge threshold.

        A hedge clears both resting quotes so the rest of the snapshot
        re-quotes from scratch.
        """
        cfg = self.config
        threshold = cfg.max_position * cfg.hedge_inventory_ratio
        timestamp = book.snapshot.timestamp_us

        if position_qty > threshold:
            qty = min(position_qty - threshold, cfg.quote_size)
            if qty < MIN_HEDGE_QTY:
                return
            trade = Trade(Side.ASK, book.best_bid(), qty, timestamp)
        elif position_qty < -threshold:
            qty = min(abs(position_qty) - threshold, cfg.quote_size)
            if qty < MIN_HEDGE_QTY:
                return
            trade = Trade(Side.BID, book.best_ask(), qty, timestamp)
        else:
            return

        self._l.debug("hedge %s %.6f @ %.4f (pos=%.4f, threshold=%.4f)",
                      trade.side.value, trade.quantity, trade.price, position_qty, threshold)
        trades.append(trade)
        self.trades_generated += 1
        self.active_bid = None
        self.active_ask = None

    def _check_resting_fills(self, book, trades):
        timestamp = book.snapshot.timestamp_us

        bid = self.active_bid
        if bid is not None and book.best_ask() <= bid.price:
            trades.append(Trade(Side.BID, bid.price, bid.quantity, timestamp))
            self.trades_generated += 1
            self.active_bid = None
            self._l.debug("bid filled %.6f @ %.4f", bid.quantity, bid.price)

        ask = self.active_ask
        if ask is not None and book.best_bid() >= ask.price:
            trades.append(Trade(Side.ASK, ask.price, ask.quantity, timestamp))
            self.trades_generated += 1
            self.active_ask = None
            self._l.debug("ask filled %.6f @ %.4f", ask.quantity, ask.price)

    def _needs_requote(self, existing, desired_price):
        if existing is None:
            return True
        return abs(existing.price - desired_price) >= self.config.tick_size * 0.5

    def _update_resting_bid(self, desired_price):
        if not self._needs_requote(self.active_bid, desired_price):
            return False
        self.active_bid = RestingQuote(desired_price, self.config.quote_size)
        self.quotes_placed += 1
        return True

    def _update_resting_ask(self, desired_price):
        if not self._needs_requote(self.active_ask, desired_price):
            return False
        self.active_ask = RestingQuote(desired_price, self.config.quote_size)
        self.quotes_placed += 1
        return True

"""Read-only depth view over a single snapshot.

Used by the strategies for top-of-book prices and by research tooling to
estimate execution cost by walking the ten levels on one side.

Side convention for the walks: `Side.ASK` consumes asks (buying),
`Side.BID` consumes bids (selling).
"""

import math
from typing import List, NamedTuple, Optional

from .contracts import DepthSnapshot, PriceLevel, Side


class LiquidityFill(NamedTuple):
    quantity: float
    avg_price: float
    levels_consumed: int


class SlippageEstimate(NamedTuple):
    avg_price: float
    slippage_bps: float
    levels_consumed: int


class DepthView(object):
    """Wrap a `DepthSnapshot` and expose derived prices and depth walks."""

    __slots__ = ("_snap",)

    def __init__(self, snapshot: DepthSnapshot) -> None:
        self._snap = snapshot

    @property
    def snapshot(self) -> DepthSnapshot:
        return self._snap

    # ---- top of book ----

    def best_bid(self) -> float:
        return self._snap.bids[0].price

    def best_ask(self) -> float:
        return self._snap.asks[0].price

    def spread(self) -> float:
        return self.best_ask() - self.best_bid()

    def mid_price(self) -> float:
        return (self.best_bid() + self.best_ask()) / 2.0

    def bids(self) -> List[PriceLevel]:
        return list(self._snap.bids)

    def asks(self) -> List[PriceLevel]:
        return list(self._snap.asks)

    def levels(self, side: Side) -> List[PriceLevel]:
        return self.bids() if side is Side.BID else self.asks()

    # ---- aggregate depth ----

    def total_bid_qty(self) -> float:
        return sum(level.quantity for level in self._snap.bids)

    def total_ask_qty(self) -> float:
        return sum(level.quantity for level in self._snap.asks)

    def total_bid_notional(self) -> float:
        return sum(level.notional() for level in self._snap.bids)

    def total_ask_notional(self) -> float:
        return sum(level.notional() for level in self._snap.asks)

    def imbalance(self) -> float:
        """Depth imbalance in [-1, 1]; positive when bids outweigh asks."""
        bid_qty = self.total_bid_qty()
        ask_qty = self.total_ask_qty()
        total = bid_qty + ask_qty
        if total <= 0:
            return 0.0
        return (bid_qty - ask_qty) / total

    def is_valid(self) -> bool:
        """True when all levels are finite and the book is uncrossed, sorted and has no negative sizes."""
        for level in list(self._snap.bids) + list(self._snap.asks):
            if not (math.isfinite(level.price) and math.isfinite(level.quantity)):
                return False

        if not self.spread() > 0.0:
            return False

        bids = self._snap.bids
        for i in range(len(bids)):
            if bids[i].quantity < 0.0:
                return False
            if i + 1 < len(bids) and bids[i].price < bids[i + 1].price:
                return False

        asks = self._snap.asks
        for i in range(len(asks)):
            if asks[i].quantity < 0.0:
                return False
            if i + 1 < len(asks) and asks[i].price > asks[i + 1].price:
                return False

        return True

    # ---- depth walks ----

    def liquidity_for_notional(self, side: Side, notional: float) -> LiquidityFill:
        """Walk `side` until `notional` is spent.

        The last level touched contributes only `remaining_notional / price`.
        If the whole side is worth less than `notional`, every level is
        consumed and the fill is simply smaller than requested.
        """
        total_qty = 0.0
        total_notional = 0.0
        levels_consumed = 0

        for level in self.levels(side):
            if total_notional >= notional:
                break
            level_notional = level.notional()
            if total_notional + level_notional <= notional:
                total_qty += level.quantity
                total_notional += level_notional
                levels_consumed += 1
            else:
                remaining = notional - total_notional
                total_qty += remaining / level.price
                total_notional = notional
                levels_consumed += 1
                break

        avg_price = total_notional / total_qty if total_qty > 0.0 else 0.0
        return LiquidityFill(total_qty, avg_price, levels_consumed)

    def slippage_for_quantity(self, side: Side, quantity: float) -> Optional[SlippageEstimate]:
        """Cost of filling `quantity` against `side`.

        Returns None when the ten levels cannot fill the whole size; there is
        no partial answer.
        """
        levels = self.levels(side)
        if not levels or quantity <= 0.0:
            return None
        best_price = levels[0].price

        remaining = quantity
        total_notional = 0.0
        levels_consumed = 0
        for level in levels:
            if remaining <= 0.0:
                break
            fill_qty = min(remaining, level.quantity)
            total_notional += fill_qty * level.price
            remaining -= fill_qty
            levels_consumed += 1

        if remaining > 0.0:
            return None

        avg_price = total_notional / quantity
        slippage_bps = abs((avg_price - best_price) / best_price * 10000.0)
        return SlippageEstimate(avg_price, slippage_bps, levels_consumed)

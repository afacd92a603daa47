"""Position ledger for a single strategy run.

The ledger is the single source of truth for quantity, average entry price,
realized PnL and the trade log. It is mutated only through `execute_trade`.

Accounting rules
----------------
- Realized PnL is computed *before* quantity changes, and only for the
  closing part of a trade: `min(trade.quantity, |position|)`.
- When a trade flips the position, the residual is a fresh position opened
  at the trade price (no blending with the old average).
- Adding to a position blends the average entry price by quantity.
- Reducing without flipping leaves the average entry price alone.
"""

import math
from typing import List, NamedTuple

from .contracts import EPSILON, InvalidTradeError, Side, Trade


class PositionStats(NamedTuple):
    position_qty: float
    avg_entry_price: float
    current_price: float
    realized_pnl: float
    unrealized_pnl: float
    total_pnl: float
    trade_count: int
    total_bought: float
    total_sold: float


class Position(object):
    """Signed position (>0 long, <0 short) with average-price accounting."""

    __slots__ = (
        "quantity",
        "avg_entry_price",
        "realized_pnl",
        "trade_count",
        "total_bought",
        "total_sold",
        "_trades",
    )

    def __init__(self):
        self.reset()

    def reset(self):
        self.quantity = 0.0
        self.avg_entry_price = 0.0
        self.realized_pnl = 0.0
        self.trade_count = 0
        self.total_bought = 0.0
        self.total_sold = 0.0
        self._trades = []

    # ---- mutation ----

    def execute_trade(self, trade: Trade) -> float:
        """Apply `trade` and return the PnL it realized."""
        price = float(trade.price)
        qty = float(trade.quantity)
        if not (math.isfinite(price) and price > 0.0):
            raise InvalidTradeError("trade price must be positive, got %r" % (trade.price,))
        if not (math.isfinite(qty) and qty > 0.0):
            raise InvalidTradeError("trade quantity must be positive, got %r" % (trade.quantity,))

        signed_qty = qty if trade.side is Side.BID else -qty

        realized = self._closing_pnl(trade.side, price, qty)
        self.realized_pnl += realized

        old_qty = self.quantity
        self.quantity += signed_qty

        self._update_avg_entry_price(old_qty, trade.side, price, qty)

        self.trade_count += 1
        if trade.side is Side.BID:
            self.total_bought += qty
        else:
            self.total_sold += qty

        self._trades.append(trade)
        return realized

    def _closing_pnl(self, side, price, qty):
        if self.quantity == 0.0:
            return 0.0

        is_long = self.quantity > 0.0
        closing = (is_long and side is Side.ASK) or (not is_long and side is Side.BID)
        if not closing:
            return 0.0

        closing_qty = min(qty, abs(self.quantity))
        if is_long:
            return (price - self.avg_entry_price) * closing_qty
        return (self.avg_entry_price - price) * closing_qty

    def _update_avg_entry_price(self, old_qty, side, price, qty):
        new_qty = self.quantity

        if abs(new_qty) < EPSILON:
            self.avg_entry_price = 0.0
            return

        was_open = abs(old_qty) > EPSILON
        if was_open and (old_qty > 0.0) != (new_qty > 0.0):
            # flipped: residual opens fresh at the trade price
            self.avg_entry_price = price
            return

        if not was_open:
            self.avg_entry_price = price
            return

        adding = (old_qty > 0.0 and side is Side.BID) or (old_qty < 0.0 and side is Side.ASK)
        if adding:
            old_notional = abs(old_qty) * self.avg_entry_price
            self.avg_entry_price = (old_notional + qty * price) / abs(new_qty)

    # ---- queries ----

    @property
    def trades(self) -> List[Trade]:
        return list(self._trades)

    def unrealized_pnl(self, current_price: float) -> float:
        if abs(self.quantity) < EPSILON:
            return 0.0
        if self.quantity > 0.0:
            return (current_price - self.avg_entry_price) * self.quantity
        return (self.avg_entry_price - current_price) * abs(self.quantity)

    def total_pnl(self, current_price: float) -> float:
        return self.realized_pnl + self.unrealized_pnl(current_price)

    def is_long(self) -> bool:
        return self.quantity > EPSILON

    def is_short(self) -> bool:
        return self.quantity < -EPSILON

    def is_flat(self) -> bool:
        return abs(self.quantity) < EPSILON

    def stats(self, current_price: float) -> PositionStats:
        unrealized = self.unrealized_pnl(current_price)
        return PositionStats(
            position_qty=self.quantity,
            avg_entry_price=self.avg_entry_price,
            current_price=float(current_price),
            realized_pnl=self.realized_pnl,
            unrealized_pnl=unrealized,
            total_pnl=self.realized_pnl + unrealized,
            trade_count=self.trade_count,
            total_bought=self.total_bought,
            total_sold=self.total_sold,
        )

    def __repr__(self):
        return "Position(qty=%.6f, avg=%.4f, realized=%.4f, trades=%d)" % (
            self.quantity, self.avg_entry_price, self.realized_pnl, self.trade_count)

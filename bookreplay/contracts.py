"""Contracts shared by the depth view, the ledger and the strategies.

This module defines the **value objects** that flow through a replay:

- `Side`, `Trade`, `PriceLevel` and `DepthSnapshot` describe market data and
  executions.
- `MarketMakerConfig` and `MomentumConfig` hold strategy parameters.
- `Strategy` is the interface the backtest driver calls once per snapshot.

Nothing here performs I/O or keeps run state.
"""

import abc
import math
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence

DEPTH_LEVELS = 10

# Quantities closer to zero than this are treated as flat.
EPSILON = 1e-10


class InvalidTradeError(ValueError):
    """Raised when a trade with a non-positive price or quantity reaches the ledger."""


# ----------------------------
# Market data value objects
# ----------------------------


class Side(str, Enum):
    """Order side. BID buys (long-increasing), ASK sells (short-increasing)."""

    BID = "bid"
    ASK = "ask"

    def opposite(self) -> "Side":
        return Side.ASK if self is Side.BID else Side.BID

    @property
    def sign(self) -> int:
        return 1 if self is Side.BID else -1


class Trade(NamedTuple):
    """An executed trade.

    `timestamp_us` is the snapshot timestamp (microseconds) at which the
    trade was generated.
    """

    side: Side
    price: float
    quantity: float
    timestamp_us: int

    def notional(self) -> float:
        return self.price * self.quantity

    def is_buy(self) -> bool:
        return self.side is Side.BID

    def is_sell(self) -> bool:
        return self.side is Side.ASK


class PriceLevel(NamedTuple):
    price: float
    quantity: float

    def notional(self) -> float:
        return self.price * self.quantity


class DepthSnapshot(NamedTuple):
    """Ten levels of depth on each side plus a timestamp and row index.

    Level 0 is the top of book. Bids are expected to be non-increasing and
    asks non-decreasing in price; `DepthView.is_valid()` checks this.
    """

    row_index: int
    timestamp_us: int
    bids: Sequence[PriceLevel]
    asks: Sequence[PriceLevel]
    datetime: Optional[str] = None

    @classmethod
    def from_levels(cls, row_index, timestamp_us, bids, asks, datetime=None):
        bids = tuple(PriceLevel(float(p), float(q)) for p, q in bids)
        asks = tuple(PriceLevel(float(p), float(q)) for p, q in asks)
        if len(bids) != DEPTH_LEVELS or len(asks) != DEPTH_LEVELS:
            raise ValueError(
                "snapshot %s must have %d levels per side, got %d bids / %d asks"
                % (row_index, DEPTH_LEVELS, len(bids), len(asks)))
        return cls(
            row_index=int(row_index),
            timestamp_us=int(timestamp_us),
            bids=bids,
            asks=asks,
            datetime=datetime,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any], row_index: Optional[int] = None) -> "DepthSnapshot":
        """Build a snapshot from a flat `bid_price_1 ... ask_qty_10` mapping."""
        try:
            bids = [(row["bid_price_%d" % i], row["bid_qty_%d" % i]) for i in range(1, DEPTH_LEVELS + 1)]
            asks = [(row["ask_price_%d" % i], row["ask_qty_%d" % i]) for i in range(1, DEPTH_LEVELS + 1)]
            timestamp_us = row["timestamp_us"]
        except KeyError as e:
            raise ValueError("snapshot row is missing column %s" % e)
        if row_index is None:
            row_index = row.get("row_index", 0)
        dt = row.get("datetime")
        return cls.from_levels(
            row_index,
            timestamp_us,
            bids,
            asks,
            datetime=str(dt) if dt is not None else None,
        )


def level_columns() -> List[str]:
    """Column names of a flat snapshot row, in file order."""
    cols = ["row_index", "timestamp_us", "datetime"]
    for i in range(1, DEPTH_LEVELS + 1):
        cols += ["bid_price_%d" % i, "bid_qty_%d" % i]
    for i in range(1, DEPTH_LEVELS + 1):
        cols += ["ask_price_%d" % i, "ask_qty_%d" % i]
    return cols


# ----------------------------
# Strategy configuration
# ----------------------------


def _require_positive(name, value):
    if not math.isfinite(value) or value <= 0:
        raise ValueError("%s must be positive, got %r" % (name, value))


class MarketMakerConfig(object):
    """Market maker parameters.

    Offsets are expressed in ticks and scaled by `tick_size`. Ratios
    (`inventory_threshold`, `hedge_inventory_ratio`) are fractions of
    `max_position`.
    """

    def __init__(
        self,
        spread_ticks=0.5,
        quote_size=0.1,
        max_position=1.0,
        tick_size=0.05,
        inventory_threshold=0.9,
        inventory_skew_ticks=0.5,
        trend_filter_ticks=0.5,
        hedge_inventory_ratio=0.5,
    ):
        self.spread_ticks = float(spread_ticks)
        self.quote_size = float(quote_size)
        self.max_position = float(max_position)
        self.tick_size = float(tick_size)
        self.inventory_threshold = float(inventory_threshold)
        self.inventory_skew_ticks = float(inventory_skew_ticks)
        self.trend_filter_ticks = float(trend_filter_ticks)
        self.hedge_inventory_ratio = float(hedge_inventory_ratio)

        _require_positive("quote_size", self.quote_size)
        _require_positive("max_position", self.max_position)
        _require_positive("tick_size", self.tick_size)

    def as_dict(self) -> Dict[str, float]:
        return dict(vars(self))


class MomentumConfig(object):
    """Momentum parameters. `lookback` counts snapshots."""

    # Extra history kept beyond the lookback window before evicting.
    HISTORY_SLACK = 100

    def __init__(self, trigger_threshold=5.0, trade_size=0.1, max_position=2.0, lookback=100):
        self.trigger_threshold = float(trigger_threshold)
        self.trade_size = float(trade_size)
        self.max_position = float(max_position)
        self.lookback = int(lookback)

        _require_positive("trade_size", self.trade_size)
        _require_positive("max_position", self.max_position)
        if self.lookback < 1:
            raise ValueError("lookback must be >= 1, got %r" % self.lookback)

    @property
    def history_cap(self) -> int:
        return self.lookback + self.HISTORY_SLACK

    def as_dict(self) -> Dict[str, float]:
        return dict(vars(self))


# ----------------------------
# Strategy contract
# ----------------------------


class StrategyStats(NamedTuple):
    """Per-strategy counters.

    For the momentum strategy `quotes_placed` carries the number of signals.
    """

    name: str
    updates_processed: int
    trades_generated: int
    quotes_placed: int


class Strategy(abc.ABC):
    """Contract between the backtest driver and a trading strategy.

    The driver calls `on_market_data` once per snapshot, in arrival order,
    and applies every returned trade to the ledger before the next call.
    Implementations must not mutate `position`.
    """

    @abc.abstractmethod
    def on_market_data(self, snapshot: DepthSnapshot, position: Any) -> List[Trade]:
        """Return the trades generated for this snapshot (possibly empty)."""

    @abc.abstractmethod
    def name(self) -> str:
        """Human-readable strategy name."""

    @abc.abstractmethod
    def stats(self) -> StrategyStats:
        """Counters accumulated so far."""

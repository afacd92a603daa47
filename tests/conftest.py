import pytest

from bookreplay.contracts import DepthSnapshot


def make_snapshot(bid, ask, step=1.0, qty=1.0, ts=0, row_index=0):
    """Ten evenly spaced levels per side below `bid` / above `ask`."""
    bids = [(bid - i * step, qty) for i in range(10)]
    asks = [(ask + i * step, qty) for i in range(10)]
    return DepthSnapshot.from_levels(row_index, ts, bids, asks)


def flat_row(snapshot):
    row = {"row_index": snapshot.row_index, "timestamp_us": snapshot.timestamp_us, "datetime": "2023-01-09 22:17:40"}
    for i, level in enumerate(snapshot.bids, 1):
        row["bid_price_%d" % i] = level.price
        row["bid_qty_%d" % i] = level.quantity
    for i, level in enumerate(snapshot.asks, 1):
        row["ask_price_%d" % i] = level.price
        row["ask_qty_%d" % i] = level.quantity
    return row


@pytest.fixture
def ladder_snapshot():
    """Bids 100..91 and asks 101..110, sizes growing by 10 per level."""
    bids = [(100.0 - i, 10.0 * (i + 1)) for i in range(10)]
    asks = [(101.0 + i, 10.0 * (i + 1)) for i in range(10)]
    return DepthSnapshot.from_levels(0, 1673302660926, bids, asks)


@pytest.fixture
def flat_ask_snapshot():
    """Asks 101..110 with 10 units each."""
    bids = [(100.0 - i, 10.0) for i in range(10)]
    asks = [(101.0 + i, 10.0) for i in range(10)]
    return DepthSnapshot.from_levels(0, 0, bids, asks)

import pytest

from bookreplay.book import DepthView
from bookreplay.contracts import DepthSnapshot, Side

from conftest import make_snapshot


def test_top_of_book(ladder_snapshot):
    book = DepthView(ladder_snapshot)
    assert book.best_bid() == 100.0
    assert book.best_ask() == 101.0
    assert book.spread() == pytest.approx(1.0)
    assert book.mid_price() == pytest.approx(100.5)
    assert len(book.bids()) == 10
    assert book.asks()[0].quantity == 10.0


def test_slippage_walks_two_levels(flat_ask_snapshot):
    est = DepthView(flat_ask_snapshot).slippage_for_quantity(Side.ASK, 15.0)
    assert est is not None
    assert est.avg_price == pytest.approx((10 * 101 + 5 * 102) / 15.0)
    assert est.levels_consumed == 2
    assert est.slippage_bps == pytest.approx(abs(est.avg_price - 101.0) / 101.0 * 10000.0)


def test_slippage_within_first_level_is_zero(flat_ask_snapshot):
    est = DepthView(flat_ask_snapshot).slippage_for_quantity(Side.ASK, 4.0)
    assert est.avg_price == 101.0
    assert est.slippage_bps == 0.0
    assert est.levels_consumed == 1


def test_slippage_on_bid_side(ladder_snapshot):
    est = DepthView(ladder_snapshot).slippage_for_quantity(Side.BID, 20.0)
    assert est.avg_price == pytest.approx((10 * 100 + 10 * 99) / 20.0)
    assert est.levels_consumed == 2


def test_slippage_insufficient_depth_returns_none(flat_ask_snapshot):
    assert DepthView(flat_ask_snapshot).slippage_for_quantity(Side.ASK, 100.5) is None
    assert DepthView(flat_ask_snapshot).slippage_for_quantity(Side.ASK, 100.0) is not None


def test_liquidity_for_notional_prorates_last_level(flat_ask_snapshot):
    fill = DepthView(flat_ask_snapshot).liquidity_for_notional(Side.ASK, 1010.0 + 510.0)
    assert fill.quantity == pytest.approx(15.0)
    assert fill.avg_price == pytest.approx(1520.0 / 15.0)
    assert fill.levels_consumed == 2


def test_liquidity_for_notional_exact_level(flat_ask_snapshot):
    fill = DepthView(flat_ask_snapshot).liquidity_for_notional(Side.ASK, 1010.0)
    assert fill.quantity == pytest.approx(10.0)
    assert fill.avg_price == pytest.approx(101.0)
    assert fill.levels_consumed == 1


def test_liquidity_for_notional_beyond_book(flat_ask_snapshot):
    book = DepthView(flat_ask_snapshot)
    fill = book.liquidity_for_notional(Side.ASK, 1e9)
    assert fill.quantity == pytest.approx(100.0)
    assert fill.levels_consumed == 10
    assert fill.avg_price == pytest.approx(book.total_ask_notional() / 100.0)


def test_is_valid(ladder_snapshot):
    assert DepthView(ladder_snapshot).is_valid()


def test_crossed_and_locked_books_are_invalid():
    assert not DepthView(make_snapshot(101.0, 100.0)).is_valid()
    assert not DepthView(make_snapshot(100.0, 100.0)).is_valid()


def test_unsorted_levels_are_invalid():
    bids = [(100.0 - i, 1.0) for i in range(10)]
    asks = [(101.0 + i, 1.0) for i in range(10)]
    bids[3] = (99.5, 1.0)
    assert not DepthView(DepthSnapshot.from_levels(0, 0, bids, asks)).is_valid()

    bids = [(100.0 - i, 1.0) for i in range(10)]
    asks[5] = (101.5, 1.0)
    assert not DepthView(DepthSnapshot.from_levels(0, 0, bids, asks)).is_valid()


def test_negative_quantity_is_invalid():
    bids = [(100.0 - i, 1.0) for i in range(10)]
    asks = [(101.0 + i, 1.0) for i in range(10)]
    asks[9] = (110.0, -1.0)
    assert not DepthView(DepthSnapshot.from_levels(0, 0, bids, asks)).is_valid()


@pytest.mark.parametrize("side,index,level", [
    ("asks", 0, (float("nan"), 1.0)),
    ("bids", 0, (float("nan"), 1.0)),
    ("asks", 4, (105.0, float("nan"))),
    ("bids", 9, (float("-inf"), 1.0)),
])
def test_non_finite_levels_are_invalid(side, index, level):
    levels = {
        "bids": [(100.0 - i, 1.0) for i in range(10)],
        "asks": [(101.0 + i, 1.0) for i in range(10)],
    }
    levels[side][index] = level
    snap = DepthSnapshot.from_levels(0, 0, levels["bids"], levels["asks"])
    assert not DepthView(snap).is_valid()


def test_imbalance(ladder_snapshot):
    assert DepthView(ladder_snapshot).imbalance() == pytest.approx(0.0)
    bids = [(100.0 - i, 3.0) for i in range(10)]
    asks = [(101.0 + i, 1.0) for i in range(10)]
    assert DepthView(DepthSnapshot.from_levels(0, 0, bids, asks)).imbalance() == pytest.approx(0.5)


def test_imbalance_empty_book_is_zero():
    assert DepthView(make_snapshot(100.0, 101.0, qty=0.0)).imbalance() == 0.0


def test_snapshot_requires_ten_levels():
    with pytest.raises(ValueError):
        DepthSnapshot.from_levels(0, 0, [(100.0, 1.0)] * 9, [(101.0, 1.0)] * 10)

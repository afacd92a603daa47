import pytest

from bookreplay import metrics
from bookreplay.contracts import MarketMakerConfig, MomentumConfig, Side, Strategy, StrategyStats, Trade
from bookreplay.ledger import Position
from bookreplay.market_maker import MarketMaker
from bookreplay.momentum import MomentumStrategy
from bookreplay.runner import BacktestRunner, run_comparison

from conftest import make_snapshot


def oscillating(n=60):
    snaps = []
    for i in range(n):
        mid = 100.0 + (0.3 if (i // 3) % 2 else -0.3)
        snaps.append(make_snapshot(mid - 0.05, mid + 0.05, ts=i * 1000, row_index=i))
    return snaps


class Scripted(Strategy):
    """Emits a fixed list of trades per call."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = 0
        self.seen_quantities = []

    def on_market_data(self, snapshot, position):
        self.seen_quantities.append(position.quantity)
        out = self.script[self.calls] if self.calls < len(self.script) else []
        self.calls += 1
        return out

    def name(self):
        return "Scripted"

    def stats(self):
        return StrategyStats(self.name(), self.calls, sum(len(s) for s in self.script), 0)


def test_trades_applied_before_next_snapshot():
    strat = Scripted([
        [Trade(Side.BID, 100.0, 1.0, 0)],
        [Trade(Side.BID, 101.0, 1.0, 1), Trade(Side.ASK, 102.0, 0.5, 1)],
        [],
    ])
    result = BacktestRunner(strat).run([make_snapshot(100.0, 100.1, ts=i) for i in range(3)])

    assert strat.seen_quantities == [0.0, 1.0, 1.5]
    assert result.position.quantity == pytest.approx(1.5)
    assert result.snapshots_processed == 3
    assert [p.volume for p in result.timeseries] == [1.0, 2.5, 2.5]
    assert result.timeseries[-1].position == pytest.approx(1.5)


def test_invalid_snapshots_are_skipped():
    snaps = [make_snapshot(100.0, 100.1, ts=0), make_snapshot(100.2, 100.1, ts=1), make_snapshot(100.0, 100.1, ts=2)]
    strat = Scripted([])
    result = BacktestRunner(strat).run(snaps)
    assert result.snapshots_skipped == 1
    assert result.snapshots_processed == 2
    assert strat.calls == 2
    assert [p.snapshot for p in result.timeseries] == [0, 2]


def test_invalid_snapshot_aborts_when_asked():
    snaps = [make_snapshot(100.0, 100.1), make_snapshot(100.1, 100.1)]
    with pytest.raises(ValueError):
        BacktestRunner(Scripted([]), skip_invalid=False).run(snaps)


def test_market_maker_run_is_consistent():
    result = BacktestRunner(MarketMaker(MarketMakerConfig(tick_size=0.05))).run(oscillating())
    position = result.position
    signed = sum(t.quantity * t.side.sign for t in position.trades)
    assert position.quantity == pytest.approx(signed)
    assert result.stats.trades_generated == position.trade_count
    assert result.stats.updates_processed == 60
    assert position.trade_count > 0
    # 60 snapshots in blocks of three: the last block (i // 3 == 19) is the high one
    assert result.final_price == pytest.approx(100.3)


def test_final_and_start_price():
    snaps = [make_snapshot(99.0, 101.0), make_snapshot(109.0, 111.0)]
    result = BacktestRunner(Scripted([])).run(snaps)
    assert result.start_price == 100.0
    assert result.final_price == 110.0
    assert result.total_pnl() == 0.0


def test_empty_run():
    result = BacktestRunner(Scripted([])).run([])
    assert result.snapshots_processed == 0
    assert result.final_price is None
    assert result.total_pnl() == 0.0
    assert result.throughput >= 0.0


def test_comparison_uses_independent_ledgers():
    snaps = oscillating()
    results = run_comparison({
        "mm": lambda: MarketMaker(MarketMakerConfig(tick_size=0.05)),
        "mom": lambda: MomentumStrategy(MomentumConfig(lookback=3, trigger_threshold=0.1, max_position=0.5)),
    }, snaps)

    assert list(results) == ["mm", "mom"]
    assert results["mm"].position is not results["mom"].position
    for result in results.values():
        assert result.snapshots_processed == len(snaps)
        signed = sum(t.quantity * t.side.sign for t in result.position.trades)
        assert result.position.quantity == pytest.approx(signed)

    solo = BacktestRunner(MarketMaker(MarketMakerConfig(tick_size=0.05)), position=Position()).run(snaps)
    assert solo.position.trades == results["mm"].position.trades


def test_each_pass_starts_from_an_empty_ledger():
    preloaded = Position()
    preloaded.execute_trade(Trade(Side.ASK, 90.0, 5.0, 0))
    strat = Scripted([[Trade(Side.BID, 100.0, 1.0, 0)], [Trade(Side.ASK, 101.0, 1.0, 1)]])
    runner = BacktestRunner(strat, position=preloaded)
    snaps = [make_snapshot(100.0, 100.1, ts=i) for i in range(2)]

    first = runner.run(snaps)
    assert strat.seen_quantities == [0.0, 1.0]
    assert first.position.trade_count == 2
    assert first.position.realized_pnl == pytest.approx(1.0)

    strat.calls = 0
    second = runner.run(snaps)
    assert second.position.trade_count == 2
    assert second.position.realized_pnl == pytest.approx(1.0)
    assert metrics.trade_pnls(second.position.trades) == pytest.approx([0.0, 1.0])

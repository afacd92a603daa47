"""Research CLI for depth-snapshot backtests.

Usage
-----
python research.py backtest --data data/L2_processed.csv --strategy both --limit 200000
python research.py analyze --data data/L2_processed.csv --sizes 1 5 10 20

Each invocation writes into `<outdir>/<cmd>/<YYYYmmdd_HHMMSS>/`, starting with
`run_config.json` for reproducibility.
"""

import argparse
import json
import logging
import os
import time

from bookreplay.book import DepthView
from bookreplay.contracts import MarketMakerConfig, MomentumConfig, Side
from bookreplay.data_source import SnapshotStats, load_snapshots, snapshot_frame
from bookreplay.market_maker import MarketMaker
from bookreplay.metrics import summarize
from bookreplay.momentum import MomentumStrategy
from bookreplay.report import write_json, write_run
from bookreplay.runner import run_comparison

logger = logging.getLogger()


def _mm_config(args):
    return MarketMakerConfig(
        spread_ticks=args.mm_spread_ticks,
        quote_size=args.mm_quote_size,
        max_position=args.mm_max_position,
        tick_size=args.mm_tick_size,
        inventory_threshold=args.mm_inventory_threshold,
        inventory_skew_ticks=args.mm_inventory_skew_ticks,
        trend_filter_ticks=args.mm_trend_filter_ticks,
        hedge_inventory_ratio=args.mm_hedge_inventory_ratio,
    )


def _momentum_config(args):
    return MomentumConfig(
        trigger_threshold=args.mom_trigger_threshold,
        trade_size=args.mom_trade_size,
        max_position=args.mom_max_position,
        lookback=args.mom_lookback,
    )


def cmd_backtest(args, out):
    mm_cfg = _mm_config(args)
    mom_cfg = _momentum_config(args)

    factories = {}
    if args.strategy in ("market_maker", "both"):
        factories["market_maker"] = lambda: MarketMaker(mm_cfg, logger=logger.getChild("market_maker"))
    if args.strategy in ("momentum", "both"):
        factories["momentum"] = lambda: MomentumStrategy(mom_cfg, logger=logger.getChild("momentum"))

    snapshots = load_snapshots(args.data, limit=args.limit)
    logger.info("loaded %d snapshots from %s", len(snapshots), args.data)

    results = run_comparison(
        factories,
        snapshots,
        skip_invalid=not args.abort_on_invalid,
        logger=logger.getChild("runner"),
    )

    comparison = {}
    for label, result in results.items():
        write_run(os.path.join(out, label), result, starting_capital=args.starting_capital)
        s = summarize(result)
        comparison[label] = s
        logger.info(
            "%s: total_pnl=%.4f realized=%.4f position=%.4f trades=%d quotes=%d",
            result.name, s["total_pnl"], s["realized_pnl"], s["final_position"],
            s["total_trades"], s["quotes_placed"])
    write_json(os.path.join(out, "comparison.json"), comparison)


def cmd_analyze(args, out):
    snapshots = load_snapshots(args.data, limit=args.limit)
    stats = SnapshotStats.from_snapshots(snapshots)
    logger.info("snapshot stats: %s", stats)

    frame = snapshot_frame(snapshots)
    frame.to_csv(os.path.join(out, "top_of_book.csv"))

    first = DepthView(snapshots[0])
    slippage = []
    for size in args.sizes:
        est = first.slippage_for_quantity(Side.ASK, size)
        if est is None:
            logger.info("buy %.4f: not enough liquidity in %d levels", size, len(first.asks()))
            slippage.append({"size": size, "available": False})
            continue
        logger.info("buy %.4f: avg=%.4f slippage=%.2fbps levels=%d",
                    size, est.avg_price, est.slippage_bps, est.levels_consumed)
        slippage.append({"size": size, "available": True, **est._asdict()})

    write_json(os.path.join(out, "analysis.json"), {
        "stats": stats._asdict(),
        "invalid_snapshots": int((~frame["valid"]).sum()),
        "mid_change": float(frame["mid"].iloc[-1] - frame["mid"].iloc[0]),
        "avg_imbalance": float(frame["imbalance"].mean()),
        "slippage_first_snapshot": slippage,
    })


def build_parser():
    p = argparse.ArgumentParser(description="Depth-snapshot research tools")
    p.add_argument("--log-level", default="INFO")
    sub = p.add_subparsers(dest="cmd")

    bt = sub.add_parser("backtest", help="Replay snapshots through one or both strategies")
    bt.add_argument("--data", required=True, help="CSV or Parquet file of depth snapshots")
    bt.add_argument("--strategy", choices=["market_maker", "momentum", "both"], default="both")
    bt.add_argument("--limit", type=int, default=None, help="Only replay the first N snapshots.")
    bt.add_argument("--outdir", default="outputs")
    bt.add_argument("--starting-capital", type=float, default=10000.0)
    bt.add_argument("--abort-on-invalid", action="store_true",
                    help="Stop on the first crossed/malformed snapshot instead of skipping it.")

    mm = MarketMakerConfig()
    bt.add_argument("--mm-spread-ticks", type=float, default=mm.spread_ticks)
    bt.add_argument("--mm-quote-size", type=float, default=mm.quote_size)
    bt.add_argument("--mm-max-position", type=float, default=mm.max_position)
    bt.add_argument("--mm-tick-size", type=float, default=mm.tick_size)
    bt.add_argument("--mm-inventory-threshold", type=float, default=mm.inventory_threshold,
                    help="Stop quoting a side once |position|/max_position reaches this.")
    bt.add_argument("--mm-inventory-skew-ticks", type=float, default=mm.inventory_skew_ticks)
    bt.add_argument("--mm-trend-filter-ticks", type=float, default=mm.trend_filter_ticks,
                    help="Mid move (in ticks) that suppresses quoting against the trend. 0 disables.")
    bt.add_argument("--mm-hedge-inventory-ratio", type=float, default=mm.hedge_inventory_ratio)

    mom = MomentumConfig()
    bt.add_argument("--mom-trigger-threshold", type=float, default=mom.trigger_threshold)
    bt.add_argument("--mom-trade-size", type=float, default=mom.trade_size)
    bt.add_argument("--mom-max-position", type=float, default=mom.max_position)
    bt.add_argument("--mom-lookback", type=int, default=mom.lookback)

    an = sub.add_parser("analyze", help="Summarize a snapshot file")
    an.add_argument("--data", required=True)
    an.add_argument("--limit", type=int, default=None)
    an.add_argument("--outdir", default="outputs")
    an.add_argument("--sizes", type=float, nargs="+", default=[1.0, 5.0, 10.0, 20.0],
                    help="Order sizes for the slippage table.")
    return p


def main(argv=None):
    p = build_parser()
    args = p.parse_args(argv)

    fmt = '%(asctime)s:%(filename)s:%(lineno)d:%(levelname)s:%(name)s:%(message)s'
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.INFO), format=fmt)

    if args.cmd is None:
        p.print_help()
        return

    run_id = time.strftime("%Y%m%d_%H%M%S")
    out = os.path.join(args.outdir, args.cmd, run_id)
    if not os.path.exists(out):
        os.makedirs(out)

    fh = logging.FileHandler(os.path.join(out, 'console.log'))
    fh.setFormatter(logging.Formatter(fmt))
    logger.addHandler(fh)

    # Persist run config for reproducibility
    with open(os.path.join(out, "run_config.json"), "w") as f:
        json.dump(vars(args), f, indent=2, sort_keys=True)

    if args.cmd == "backtest":
        cmd_backtest(args, out)
    elif args.cmd == "analyze":
        cmd_analyze(args, out)


if __name__ == "__main__":
    main()

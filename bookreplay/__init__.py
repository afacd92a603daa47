"""Depth-snapshot backtesting: ledger, depth view and quoting strategies."""

from .contracts import (
    DEPTH_LEVELS,
    DepthSnapshot,
    InvalidTradeError,
    MarketMakerConfig,
    MomentumConfig,
    PriceLevel,
    Side,
    Strategy,
    StrategyStats,
    Trade,
)
from .book import DepthView, LiquidityFill, SlippageEstimate
from .ledger import Position, PositionStats
from .market_maker import MarketMaker
from .momentum import MomentumStrategy
from .runner import BacktestResult, BacktestRunner, run_comparison

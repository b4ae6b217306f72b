"""Historical backtesting over the live evaluation path."""

from courtside.services.backtest.engine import (
    BacktestEngine,
    BacktestResult,
    BacktestSummary,
    BetRecord,
    compare_strategies,
)
from courtside.services.backtest.replay import replay_deltas

__all__ = [
    "BacktestEngine",
    "BacktestResult",
    "BacktestSummary",
    "BetRecord",
    "compare_strategies",
    "replay_deltas",
]

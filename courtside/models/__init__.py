"""Database models for Courtside."""

from courtside.models.base import Base, async_session_factory, engine
from courtside.models.records import (
    BacktestRun,
    HistoricalGameRecord,
    SignalRecord,
    StrategyRecord,
    TriggerRecord,
)

__all__ = [
    # Base
    "Base",
    "engine",
    "async_session_factory",
    # Records
    "StrategyRecord",
    "TriggerRecord",
    "SignalRecord",
    "HistoricalGameRecord",
    "BacktestRun",
]

"""Typed core model shared by the live engine and the backtest."""

from courtside.domain.context import EvaluationContext
from courtside.domain.definitions import (
    BetSide,
    Condition,
    EntryOrClose,
    Market,
    Operator,
    RuleType,
    Strategy,
    StrategyRule,
    Trigger,
    TriggerMode,
    parse_conditions,
)
from courtside.domain.fields import ContextField, FieldKind
from courtside.domain.game import (
    DataIntegrityCorrection,
    GameDelta,
    GameSnapshot,
    GameStatus,
    HalftimeScore,
    HistoricalGame,
    PlayerMatchup,
    PlayerStats,
    QuarterScores,
)
from courtside.domain.signals import (
    Outcome,
    Signal,
    SignalSlot,
    SignalStatus,
    SignalTransition,
    SignalValue,
    TriggerFireEvent,
    TriggerSnapshot,
)

__all__ = [
    "BetSide",
    "Condition",
    "ContextField",
    "DataIntegrityCorrection",
    "EntryOrClose",
    "EvaluationContext",
    "FieldKind",
    "GameDelta",
    "GameSnapshot",
    "GameStatus",
    "HalftimeScore",
    "HistoricalGame",
    "Market",
    "Operator",
    "Outcome",
    "PlayerMatchup",
    "PlayerStats",
    "QuarterScores",
    "RuleType",
    "Signal",
    "SignalSlot",
    "SignalStatus",
    "SignalTransition",
    "SignalValue",
    "Strategy",
    "StrategyRule",
    "Trigger",
    "TriggerFireEvent",
    "TriggerMode",
    "TriggerSnapshot",
    "parse_conditions",
]

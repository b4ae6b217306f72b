"""Signal lifecycle records and the events the engine emits."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from courtside.domain.base import CamelModel
from courtside.domain.definitions import Condition, EntryOrClose


class SignalStatus(str, Enum):
    ACTIVE = "active"
    WON = "won"
    LOST = "lost"
    PUSHED = "pushed"

    @property
    def is_terminal(self) -> bool:
        return self is not SignalStatus.ACTIVE


class Outcome(str, Enum):
    """Terminal result of a graded bet."""
    WON = "won"
    LOST = "lost"
    PUSHED = "pushed"

    @property
    def status(self) -> SignalStatus:
        return SignalStatus(self.value)


class SignalValue(CamelModel):
    """Game state captured when a signal opens or closes."""

    quarter: int
    time_remaining: str
    home_score: int
    away_score: int
    leading_team: Optional[str] = None  # "home", "away" or None when tied
    spread: Optional[float] = None
    total: Optional[float] = None
    moneyline_home: Optional[int] = None
    moneyline_away: Optional[int] = None
    odds: Optional[int] = None  # American odds taken at entry


class Signal(CamelModel):
    strategy_id: str
    game_id: str
    status: SignalStatus = SignalStatus.ACTIVE
    entry_trigger_id: Optional[str] = None
    entry_value: SignalValue
    entry_time: datetime
    close_trigger_id: Optional[str] = None
    close_value: Optional[SignalValue] = None
    close_time: Optional[datetime] = None


class TriggerSnapshot(CamelModel):
    """Game state at the moment a trigger fired."""

    trigger_id: str
    quarter: int
    time_remaining: str
    home_score: int
    away_score: int
    leading_team: Optional[str] = None
    lead: int = 0
    spread: Optional[float] = None
    total: Optional[float] = None
    moneyline_home: Optional[int] = None
    moneyline_away: Optional[int] = None


class SignalSlot(CamelModel):
    """Registry state for one (strategy, game) pair.

    ``fired_trigger_ids`` tracks sequential staging for the current
    sequence and resets when the signal closes. ``signal`` holds the
    latest signal, active or terminal.
    """

    signal: Optional[Signal] = None
    fired_trigger_ids: list[str] = Field(default_factory=list)
    last_fire: Optional[TriggerSnapshot] = None

    @property
    def active(self) -> Optional[Signal]:
        if self.signal is not None and self.signal.status is SignalStatus.ACTIVE:
            return self.signal
        return None


class SignalTransition(CamelModel):
    """Lifecycle change handed to the ledger."""

    strategy_id: str
    game_id: str
    status: SignalStatus
    entry_value: SignalValue
    entry_time: datetime
    close_value: Optional[SignalValue] = None
    close_time: Optional[datetime] = None

    @classmethod
    def from_signal(cls, signal: Signal) -> "SignalTransition":
        return cls(
            strategy_id=signal.strategy_id,
            game_id=signal.game_id,
            status=signal.status,
            entry_value=signal.entry_value,
            entry_time=signal.entry_time,
            close_value=signal.close_value,
            close_time=signal.close_time,
        )


class TriggerFireEvent(CamelModel):
    """Emitted for the notifier every time a trigger fires."""

    strategy_id: str
    strategy_name: str = ""
    game_id: str
    trigger_id: str
    trigger_name: str = ""
    entry_or_close: EntryOrClose
    matched_conditions: list[Condition]
    context_snapshot: dict[str, Any]
    trigger_snapshot: TriggerSnapshot

"""Game records: inbound deltas, the authoritative snapshot, history."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field, NonNegativeInt, computed_field, field_validator, model_validator

from courtside.domain.base import CamelModel

# Upstream status spellings normalized at the boundary
STATUS_ALIASES = {
    "finished": "final",
    "ended": "final",
    "in_progress": "live",
}


class GameStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    HALFTIME = "halftime"
    FINAL = "final"

    @property
    def in_play(self) -> bool:
        """Scores are only allowed to grow while a game is in play."""
        return self in (GameStatus.LIVE, GameStatus.HALFTIME)


class QuarterScores(CamelModel):
    """Per-quarter points. ``None`` means the quarter has not been reported."""

    q1_home: Optional[NonNegativeInt] = None
    q1_away: Optional[NonNegativeInt] = None
    q2_home: Optional[NonNegativeInt] = None
    q2_away: Optional[NonNegativeInt] = None
    q3_home: Optional[NonNegativeInt] = None
    q3_away: Optional[NonNegativeInt] = None
    q4_home: Optional[NonNegativeInt] = None
    q4_away: Optional[NonNegativeInt] = None

    def quarter(self, number: int) -> tuple[Optional[int], Optional[int]]:
        """Return (home, away) points for quarter ``number``."""
        return (
            getattr(self, f"q{number}_home", None),
            getattr(self, f"q{number}_away", None),
        )

    def merged(self, other: "QuarterScores") -> "QuarterScores":
        """Overlay the quarters reported in ``other`` onto this breakdown."""
        reported = other.model_dump(exclude_none=True)
        return self.model_copy(update=reported)

    @property
    def is_complete(self) -> bool:
        return all(v is not None for v in self.model_dump().values())


class HalftimeScore(CamelModel):
    home: NonNegativeInt
    away: NonNegativeInt


class PlayerStats(CamelModel):
    """Career numbers for the player controlling one side."""

    name: Optional[str] = None
    win_rate: Optional[float] = None  # percent, 0-100
    avg_points_for: Optional[float] = None
    games_played: Optional[int] = None
    recent_form: Optional[list[str]] = None  # "W"/"L", most recent last

    @property
    def form_wins(self) -> Optional[int]:
        if self.recent_form is None:
            return None
        return sum(1 for r in self.recent_form if r.upper() == "W")


class PlayerMatchup(CamelModel):
    home: Optional[PlayerStats] = None
    away: Optional[PlayerStats] = None


def _normalize_status(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip().lower()
        return STATUS_ALIASES.get(v, v)
    return v


class GameDelta(CamelModel):
    """Inbound game update. Every field except the id is optional."""

    game_id: str
    league: Optional[str] = None
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    home_team_id: Optional[str] = None
    away_team_id: Optional[str] = None
    home_score: Optional[NonNegativeInt] = None
    away_score: Optional[NonNegativeInt] = None
    quarter: Optional[NonNegativeInt] = None
    time_remaining: Optional[str] = None
    status: Optional[GameStatus] = None
    spread: Optional[float] = None  # home spread
    moneyline_home: Optional[int] = None
    moneyline_away: Optional[int] = None
    total: Optional[float] = None
    quarter_scores: Optional[QuarterScores] = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize(cls, v: Any) -> Any:
        return _normalize_status(v)


class GameSnapshot(CamelModel):
    """Authoritative live game record, written only by the reducer."""

    game_id: str
    league: Optional[str] = None
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    home_team_id: Optional[str] = None
    away_team_id: Optional[str] = None
    home_score: int = 0
    away_score: int = 0
    quarter: int = 0
    time_remaining: str = "0:00"
    status: GameStatus = GameStatus.SCHEDULED
    quarter_scores: QuarterScores = Field(default_factory=QuarterScores)
    halftime: Optional[HalftimeScore] = None
    spread: Optional[float] = None
    moneyline_home: Optional[int] = None
    moneyline_away: Optional[int] = None
    total: Optional[float] = None


class HistoricalGame(CamelModel):
    """Finalized game from the archive, used for backtesting.

    Final scores must be at least the sum of the reported quarters
    (overtime makes up any difference).
    """

    id: str
    date: Optional[datetime] = None
    league: Optional[str] = None
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    home_score: NonNegativeInt
    away_score: NonNegativeInt
    quarter_scores: QuarterScores
    spread: Optional[float] = None  # opening home spread
    total: Optional[float] = None
    moneyline_home: Optional[int] = None
    moneyline_away: Optional[int] = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "HistoricalGame":
        qs = self.quarter_scores
        if not qs.is_complete:
            raise ValueError("historical game needs all four quarters")
        home = sum(qs.quarter(q)[0] for q in range(1, 5))
        away = sum(qs.quarter(q)[1] for q in range(1, 5))
        if home > self.home_score or away > self.away_score:
            raise ValueError("quarter scores exceed final score")
        return self

    @computed_field
    @property
    def winner(self) -> str:
        if self.home_score > self.away_score:
            return "home"
        if self.away_score > self.home_score:
            return "away"
        return "tie"

    @computed_field
    @property
    def spread_result(self) -> Optional[str]:
        """Home cover, away cover or push against the opening home spread."""
        if self.spread is None:
            return None
        adjusted = self.home_score - self.away_score + self.spread
        if adjusted > 0:
            return "home_cover"
        if adjusted < 0:
            return "away_cover"
        return "push"

    @computed_field
    @property
    def total_result(self) -> Optional[str]:
        if self.total is None:
            return None
        combined = self.home_score + self.away_score
        if combined > self.total:
            return "over"
        if combined < self.total:
            return "under"
        return "push"


@dataclass(frozen=True)
class DataIntegrityCorrection:
    """Note emitted when an inbound delta field is rejected.

    Corrections are never raised; the stored value is retained and the
    note is handed to the caller for logging.
    """

    game_id: str
    field: str
    inbound: Any
    retained: Any
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_id": self.game_id,
            "field": self.field,
            "inbound": self.inbound,
            "retained": self.retained,
            "reason": self.reason,
        }

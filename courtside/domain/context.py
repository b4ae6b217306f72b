"""Flat evaluation context derived from a game snapshot."""

from dataclasses import dataclass
from typing import Any, Optional

from courtside.domain.fields import ContextField


@dataclass(frozen=True)
class EvaluationContext:
    """Immutable view of a game at one instant.

    One attribute per ``ContextField``. Fields that cannot be derived yet
    (unplayed quarters, halftime before it happens, missing player data,
    no previous trigger) are ``None`` and never match a condition.
    """

    game_id: str

    # Game clock
    quarter: int
    time_remaining: str
    time_remaining_seconds: int
    status: str

    # Teams
    league: Optional[str]
    home_team: Optional[str]
    away_team: Optional[str]

    # Score
    home_score: int
    away_score: int
    total_score: int
    score_differential: int
    abs_score_differential: int
    home_leading: bool
    away_leading: bool
    current_lead: int
    halftime_lead: Optional[int]

    # Quarter breakdown
    q1_home: Optional[int]
    q1_away: Optional[int]
    q1_total: Optional[int]
    q1_differential: Optional[int]
    q2_home: Optional[int]
    q2_away: Optional[int]
    q2_total: Optional[int]
    q2_differential: Optional[int]
    q3_home: Optional[int]
    q3_away: Optional[int]
    q3_total: Optional[int]
    q3_differential: Optional[int]
    q4_home: Optional[int]
    q4_away: Optional[int]
    q4_total: Optional[int]
    q4_differential: Optional[int]

    # Halves
    halftime_home: Optional[int]
    halftime_away: Optional[int]
    halftime_total: Optional[int]
    halftime_differential: Optional[int]
    first_half_total: Optional[int]
    second_half_total: Optional[int]

    # Lines
    spread: Optional[float]
    total: Optional[float]
    home_spread: Optional[float]
    away_spread: Optional[float]
    home_moneyline: Optional[int]
    away_moneyline: Optional[int]
    leading_team_spread: Optional[float]
    losing_team_spread: Optional[float]
    leading_team_moneyline: Optional[int]
    losing_team_moneyline: Optional[int]

    # Player stats
    home_player_win_pct: Optional[float] = None
    away_player_win_pct: Optional[float] = None
    home_player_ppm: Optional[float] = None
    away_player_ppm: Optional[float] = None
    home_player_games: Optional[int] = None
    away_player_games: Optional[int] = None
    home_player_form_wins: Optional[int] = None
    away_player_form_wins: Optional[int] = None
    win_pct_diff: Optional[float] = None
    ppm_diff: Optional[float] = None
    experience_diff: Optional[int] = None

    # Previous trigger in the current sequence
    prev_leader_still_leads: Optional[int] = None
    prev_leader_current_score: Optional[int] = None
    prev_trailer_current_score: Optional[int] = None
    prev_leader_current_margin: Optional[int] = None
    prev_leader_was_home: Optional[int] = None

    def value(self, field: ContextField) -> Any:
        """Look up a field through the static attribute table."""
        return getattr(self, field.attribute)

    @property
    def leading_team(self) -> Optional[str]:
        if self.home_leading:
            return "home"
        if self.away_leading:
            return "away"
        return None

    def to_dict(self) -> dict[str, Any]:
        """Wire form keyed by context field name."""
        data = {f.value: self.value(f) for f in ContextField}
        data["gameId"] = self.game_id
        return data

"""Closed vocabulary of evaluation context fields.

Conditions reference fields by their camelCase wire name. Each name maps
to exactly one attribute of ``EvaluationContext`` through a static table,
so unknown names are rejected when a trigger is validated rather than
when it is evaluated.
"""

from enum import Enum


class FieldKind(str, Enum):
    """Value type carried by a context field."""
    NUMBER = "number"
    BOOLEAN = "boolean"
    TEXT = "text"


class ContextField(str, Enum):
    """Every field a condition may reference."""

    # Game clock
    QUARTER = "quarter"
    TIME_REMAINING = "timeRemaining"
    TIME_REMAINING_SECONDS = "timeRemainingSeconds"
    STATUS = "status"

    # Teams
    LEAGUE = "league"
    HOME_TEAM = "homeTeam"
    AWAY_TEAM = "awayTeam"

    # Score
    HOME_SCORE = "homeScore"
    AWAY_SCORE = "awayScore"
    TOTAL_SCORE = "totalScore"
    SCORE_DIFFERENTIAL = "scoreDifferential"
    ABS_SCORE_DIFFERENTIAL = "absScoreDifferential"
    HOME_LEADING = "homeLeading"
    AWAY_LEADING = "awayLeading"
    CURRENT_LEAD = "currentLead"
    HALFTIME_LEAD = "halftimeLead"

    # Quarter breakdown
    Q1_HOME = "q1Home"
    Q1_AWAY = "q1Away"
    Q1_TOTAL = "q1Total"
    Q1_DIFFERENTIAL = "q1Differential"
    Q2_HOME = "q2Home"
    Q2_AWAY = "q2Away"
    Q2_TOTAL = "q2Total"
    Q2_DIFFERENTIAL = "q2Differential"
    Q3_HOME = "q3Home"
    Q3_AWAY = "q3Away"
    Q3_TOTAL = "q3Total"
    Q3_DIFFERENTIAL = "q3Differential"
    Q4_HOME = "q4Home"
    Q4_AWAY = "q4Away"
    Q4_TOTAL = "q4Total"
    Q4_DIFFERENTIAL = "q4Differential"

    # Halves
    HALFTIME_HOME = "halftimeHome"
    HALFTIME_AWAY = "halftimeAway"
    HALFTIME_TOTAL = "halftimeTotal"
    HALFTIME_DIFFERENTIAL = "halftimeDifferential"
    FIRST_HALF_TOTAL = "firstHalfTotal"
    SECOND_HALF_TOTAL = "secondHalfTotal"

    # Lines
    SPREAD = "spread"
    TOTAL = "total"
    HOME_SPREAD = "homeSpread"
    AWAY_SPREAD = "awaySpread"
    HOME_MONEYLINE = "homeMoneyline"
    AWAY_MONEYLINE = "awayMoneyline"
    LEADING_TEAM_SPREAD = "leadingTeamSpread"
    LOSING_TEAM_SPREAD = "losingTeamSpread"
    LEADING_TEAM_MONEYLINE = "leadingTeamMoneyline"
    LOSING_TEAM_MONEYLINE = "losingTeamMoneyline"

    # Player stats (null until player data is known)
    HOME_PLAYER_WIN_PCT = "homePlayerWinPct"
    AWAY_PLAYER_WIN_PCT = "awayPlayerWinPct"
    HOME_PLAYER_PPM = "homePlayerPpm"
    AWAY_PLAYER_PPM = "awayPlayerPpm"
    HOME_PLAYER_GAMES = "homePlayerGames"
    AWAY_PLAYER_GAMES = "awayPlayerGames"
    HOME_PLAYER_FORM_WINS = "homePlayerFormWins"
    AWAY_PLAYER_FORM_WINS = "awayPlayerFormWins"
    WIN_PCT_DIFF = "winPctDiff"
    PPM_DIFF = "ppmDiff"
    EXPERIENCE_DIFF = "experienceDiff"

    # Previous trigger in the current sequence
    PREV_LEADER_STILL_LEADS = "prevLeaderStillLeads"
    PREV_LEADER_CURRENT_SCORE = "prevLeaderCurrentScore"
    PREV_TRAILER_CURRENT_SCORE = "prevTrailerCurrentScore"
    PREV_LEADER_CURRENT_MARGIN = "prevLeaderCurrentMargin"
    PREV_LEADER_WAS_HOME = "prevLeaderWasHome"

    @property
    def attribute(self) -> str:
        """Name of the EvaluationContext attribute holding this field."""
        return FIELD_ATTRIBUTES[self]

    @property
    def kind(self) -> FieldKind:
        """Value type of this field."""
        return FIELD_KINDS.get(self, FieldKind.NUMBER)


_TEXT_FIELDS = {
    ContextField.TIME_REMAINING,
    ContextField.STATUS,
    ContextField.LEAGUE,
    ContextField.HOME_TEAM,
    ContextField.AWAY_TEAM,
}

_BOOLEAN_FIELDS = {
    ContextField.HOME_LEADING,
    ContextField.AWAY_LEADING,
}

FIELD_KINDS: dict[ContextField, FieldKind] = {
    **{f: FieldKind.TEXT for f in _TEXT_FIELDS},
    **{f: FieldKind.BOOLEAN for f in _BOOLEAN_FIELDS},
}


def _snake_case(name: str) -> str:
    out = []
    for ch in name:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)


# Static lookup table: wire name -> context attribute
FIELD_ATTRIBUTES: dict[ContextField, str] = {
    f: _snake_case(f.value) for f in ContextField
}

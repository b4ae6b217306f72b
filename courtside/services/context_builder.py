"""Context builder.

Turns a ``GameSnapshot`` into the flat ``EvaluationContext`` that
conditions are evaluated against. The same function serves live games
and backtest replays, so both paths see identical field semantics.

Pure: no I/O, no logging, deterministic for identical input.
"""

import re
from typing import Optional, TypeVar

from courtside.domain.context import EvaluationContext
from courtside.domain.game import GameSnapshot, PlayerMatchup, QuarterScores
from courtside.domain.signals import TriggerSnapshot

_TIME_RE = re.compile(r"^\s*(\d{1,2}):([0-5]\d)\s*$")

N = TypeVar("N", int, float)


def parse_time_remaining(value: Optional[str]) -> int:
    """Parse an ``M:SS`` clock string into seconds.

    Malformed input yields 0 instead of raising.

    Examples:
        "5:30" -> 330
        "0:07" -> 7
        "5:3"  -> 0
    """
    if not isinstance(value, str):
        return 0
    match = _TIME_RE.match(value)
    if match is None:
        return 0
    return int(match.group(1)) * 60 + int(match.group(2))


def _sum(a: Optional[N], b: Optional[N]) -> Optional[N]:
    if a is None or b is None:
        return None
    return a + b


def _diff(a: Optional[N], b: Optional[N]) -> Optional[N]:
    if a is None or b is None:
        return None
    return a - b


def _quarter_fields(qs: QuarterScores) -> dict[str, Optional[int]]:
    fields: dict[str, Optional[int]] = {}
    for q in range(1, 5):
        home, away = qs.quarter(q)
        fields[f"q{q}_home"] = home
        fields[f"q{q}_away"] = away
        fields[f"q{q}_total"] = _sum(home, away)
        fields[f"q{q}_differential"] = _diff(home, away)
    return fields


def _player_fields(players: Optional[PlayerMatchup]) -> dict:
    home = players.home if players else None
    away = players.away if players else None

    home_win_pct = home.win_rate if home else None
    away_win_pct = away.win_rate if away else None
    home_ppm = home.avg_points_for if home else None
    away_ppm = away.avg_points_for if away else None
    home_games = home.games_played if home else None
    away_games = away.games_played if away else None

    return {
        "home_player_win_pct": home_win_pct,
        "away_player_win_pct": away_win_pct,
        "home_player_ppm": home_ppm,
        "away_player_ppm": away_ppm,
        "home_player_games": home_games,
        "away_player_games": away_games,
        "home_player_form_wins": home.form_wins if home else None,
        "away_player_form_wins": away.form_wins if away else None,
        # Head-to-head diffs only when both sides are known
        "win_pct_diff": _diff(home_win_pct, away_win_pct),
        "ppm_diff": _diff(home_ppm, away_ppm),
        "experience_diff": _diff(home_games, away_games),
    }


def _previous_trigger_fields(
    snapshot: GameSnapshot, previous: Optional[TriggerSnapshot]
) -> dict[str, Optional[int]]:
    if previous is None or previous.leading_team not in ("home", "away"):
        return {}

    was_home = previous.leading_team == "home"
    leader = snapshot.home_score if was_home else snapshot.away_score
    trailer = snapshot.away_score if was_home else snapshot.home_score
    margin = leader - trailer

    return {
        "prev_leader_still_leads": 1 if margin > 0 else 0,
        "prev_leader_current_score": leader,
        "prev_trailer_current_score": trailer,
        "prev_leader_current_margin": margin,
        "prev_leader_was_home": 1 if was_home else 0,
    }


def build_context(
    snapshot: GameSnapshot,
    players: Optional[PlayerMatchup] = None,
    previous: Optional[TriggerSnapshot] = None,
) -> EvaluationContext:
    """Derive the evaluation context for a game.

    Args:
        snapshot: Current authoritative game record
        players: Player stats for each side, if known
        previous: Snapshot of the last trigger that fired in the current
            sequence for this strategy and game

    Returns:
        EvaluationContext with every field populated or ``None``
    """
    differential = snapshot.home_score - snapshot.away_score
    home_leading = differential > 0
    away_leading = differential < 0

    halftime = snapshot.halftime
    if halftime is not None:
        halftime_home: Optional[int] = halftime.home
        halftime_away: Optional[int] = halftime.away
        halftime_total = halftime.home + halftime.away
        halftime_differential = halftime.home - halftime.away
        halftime_lead = abs(halftime_differential)
    else:
        halftime_home = halftime_away = None
        halftime_total = halftime_differential = halftime_lead = None

    quarters = _quarter_fields(snapshot.quarter_scores)

    home_spread = snapshot.spread
    away_spread = -home_spread if home_spread is not None else None
    home_ml = snapshot.moneyline_home
    away_ml = snapshot.moneyline_away

    # Ties default to the home side's lines
    if away_leading:
        leading_spread, losing_spread = away_spread, home_spread
        leading_ml, losing_ml = away_ml, home_ml
    else:
        leading_spread, losing_spread = home_spread, away_spread
        leading_ml, losing_ml = home_ml, away_ml

    return EvaluationContext(
        game_id=snapshot.game_id,
        quarter=snapshot.quarter,
        time_remaining=snapshot.time_remaining,
        time_remaining_seconds=parse_time_remaining(snapshot.time_remaining),
        status=snapshot.status.value,
        league=snapshot.league,
        home_team=snapshot.home_team,
        away_team=snapshot.away_team,
        home_score=snapshot.home_score,
        away_score=snapshot.away_score,
        total_score=snapshot.home_score + snapshot.away_score,
        score_differential=differential,
        abs_score_differential=abs(differential),
        home_leading=home_leading,
        away_leading=away_leading,
        current_lead=abs(differential),
        halftime_lead=halftime_lead,
        **quarters,
        halftime_home=halftime_home,
        halftime_away=halftime_away,
        halftime_total=halftime_total,
        halftime_differential=halftime_differential,
        first_half_total=_sum(quarters["q1_total"], quarters["q2_total"]),
        second_half_total=_sum(quarters["q3_total"], quarters["q4_total"]),
        spread=snapshot.spread,
        total=snapshot.total,
        home_spread=home_spread,
        away_spread=away_spread,
        home_moneyline=home_ml,
        away_moneyline=away_ml,
        leading_team_spread=leading_spread,
        losing_team_spread=losing_spread,
        leading_team_moneyline=leading_ml,
        losing_team_moneyline=losing_ml,
        **_player_fields(players),
        **_previous_trigger_fields(snapshot, previous),
    )


def snapshot_trigger(trigger_id: str, context: EvaluationContext) -> TriggerSnapshot:
    """Record the game state at the moment ``trigger_id`` fired."""
    return TriggerSnapshot(
        trigger_id=trigger_id,
        quarter=context.quarter,
        time_remaining=context.time_remaining,
        home_score=context.home_score,
        away_score=context.away_score,
        leading_team=context.leading_team,
        lead=context.current_lead,
        spread=context.spread,
        total=context.total,
        moneyline_home=context.home_moneyline,
        moneyline_away=context.away_moneyline,
    )

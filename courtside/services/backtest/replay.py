"""Synthesize a chronological delta stream from a finished game.

Historical records only carry quarter totals, so a replay is a short
sequence of deltas at quarter boundaries followed by the final result.
Each delta only reveals quarters that have been completed at its
checkpoint, so evaluation never sees later scoring early.
"""

from courtside.domain.game import GameDelta, GameStatus, HistoricalGame, QuarterScores
from courtside.services.context_builder import parse_time_remaining


def _completed_quarters(quarter: int, time_remaining: str) -> int:
    # A checkpoint inside a quarter only knows the quarters before it
    completed = quarter if time_remaining.strip() in ("0:00", "00:00") else quarter - 1
    return max(0, min(completed, 4))


def _quarters_through(game: HistoricalGame, completed: int) -> QuarterScores:
    revealed = {}
    for q in range(1, completed + 1):
        home, away = game.quarter_scores.quarter(q)
        revealed[f"q{q}_home"] = home
        revealed[f"q{q}_away"] = away
    return QuarterScores(**revealed)


def replay_deltas(
    game: HistoricalGame, checkpoints: list[tuple[int, str]]
) -> list[GameDelta]:
    """Build the delta sequence replayed for ``game``.

    Args:
        game: Validated historical record
        checkpoints: (quarter, time_remaining) pairs in chronological order

    Returns:
        One live/halftime delta per checkpoint, then a final delta
    """
    deltas = []
    lines = {
        "spread": game.spread,
        "total": game.total,
        "moneyline_home": game.moneyline_home,
        "moneyline_away": game.moneyline_away,
    }

    for quarter, time_remaining in sorted(
        checkpoints, key=lambda c: (c[0], -parse_time_remaining(c[1]))
    ):
        completed = _completed_quarters(quarter, time_remaining)
        revealed = _quarters_through(game, completed)
        home = sum(revealed.quarter(q)[0] for q in range(1, completed + 1))
        away = sum(revealed.quarter(q)[1] for q in range(1, completed + 1))
        at_half = quarter == 2 and completed == 2

        deltas.append(
            GameDelta(
                game_id=game.id,
                league=game.league,
                home_team=game.home_team,
                away_team=game.away_team,
                home_score=home,
                away_score=away,
                quarter=quarter,
                time_remaining=time_remaining,
                status=GameStatus.HALFTIME if at_half else GameStatus.LIVE,
                quarter_scores=revealed,
                **lines,
            )
        )

    deltas.append(
        GameDelta(
            game_id=game.id,
            league=game.league,
            home_team=game.home_team,
            away_team=game.away_team,
            home_score=game.home_score,
            away_score=game.away_score,
            quarter=4,
            time_remaining="0:00",
            status=GameStatus.FINAL,
            quarter_scores=game.quarter_scores,
            **lines,
        )
    )
    return deltas

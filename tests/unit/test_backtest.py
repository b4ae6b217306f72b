"""Unit tests for historical replay and the backtest engine.

CRITICAL TESTS:
- Replays only reveal quarters completed at each checkpoint
- A Q3 blowout registers exactly one entry per game
- Win rate ignores pushes
"""

from decimal import Decimal

from courtside.config.engine import BacktestConfig, StakeConfig
from courtside.domain.game import GameStatus
from courtside.domain.signals import Outcome
from courtside.services.backtest import (
    BacktestEngine,
    BacktestSummary,
    BetRecord,
    compare_strategies,
    replay_deltas,
)

CHECKPOINTS = [(1, "0:00"), (2, "0:00"), (3, "0:00"), (4, "0:00")]


def bet(outcome, profit):
    return BetRecord(
        game_id="h",
        outcome=outcome,
        odds=None,
        profit=Decimal(profit),
        entry_quarter=3,
        entry_time_remaining="0:00",
    )


class TestReplayDeltas:
    """Test synthetic delta streams."""

    def test_quarter_boundaries_then_final(self, historical_blowout):
        deltas = replay_deltas(historical_blowout, CHECKPOINTS)

        assert [d.quarter for d in deltas] == [1, 2, 3, 4, 4]
        assert [d.status for d in deltas] == [
            GameStatus.LIVE,
            GameStatus.HALFTIME,
            GameStatus.LIVE,
            GameStatus.LIVE,
            GameStatus.FINAL,
        ]
        assert (deltas[2].home_score, deltas[2].away_score) == (85, 73)
        assert (deltas[-1].home_score, deltas[-1].away_score) == (110, 95)

    def test_no_future_quarters(self, historical_blowout):
        """A checkpoint never carries a quarter that has not finished."""
        q2 = replay_deltas(historical_blowout, CHECKPOINTS)[1]

        assert q2.quarter_scores.quarter(2) == (27, 24)
        assert q2.quarter_scores.quarter(3) == (None, None)

    def test_mid_quarter_checkpoint(self, historical_blowout):
        """Mid-quarter checkpoints only know the earlier quarters."""
        delta = replay_deltas(historical_blowout, [(3, "6:00")])[0]

        assert delta.quarter == 3
        assert (delta.home_score, delta.away_score) == (55, 49)
        assert delta.quarter_scores.quarter(3) == (None, None)

    def test_checkpoints_sorted(self, historical_blowout):
        deltas = replay_deltas(historical_blowout, [(3, "0:00"), (1, "0:00"), (3, "6:00")])

        assert [(d.quarter, d.time_remaining) for d in deltas[:3]] == [
            (1, "0:00"), (3, "6:00"), (3, "0:00"),
        ]


class TestBacktestSummary:
    def test_win_rate_excludes_pushes(self):
        summary = BacktestSummary(strategy_id="s", strategy_name="s")
        stake = Decimal("100")
        summary.record(bet(Outcome.WON, "100"), stake)
        summary.record(bet(Outcome.LOST, "-100"), stake)
        summary.record(bet(Outcome.WON, "100"), stake)
        summary.record(bet(Outcome.PUSHED, "0"), stake)

        assert summary.wins == 2
        assert summary.pushes == 1
        assert summary.win_rate == 2 / 3
        assert summary.net_profit == Decimal("100")
        assert summary.roi == 0.25

    def test_empty_summary(self):
        summary = BacktestSummary(strategy_id="s", strategy_name="s")

        assert summary.win_rate == 0.0
        assert summary.roi == 0.0

    def test_compare_strategies(self):
        a = BacktestSummary(strategy_id="a", strategy_name="a", triggers_found=5)
        b = BacktestSummary(strategy_id="b", strategy_name="b", triggers_found=2)
        b.record(bet(Outcome.WON, "100"), Decimal("100"))

        comparison = compare_strategies([a, b])

        assert comparison == {
            "best_win_rate": "b",
            "best_roi": "b",
            "most_triggers": "a",
        }
        assert compare_strategies([]) is None


class TestBacktestEngine:
    """Test corpus replay through the live evaluator."""

    def setup_method(self):
        """Set up test fixtures."""
        self.engine = BacktestEngine(
            BacktestConfig(checkpoints=list(CHECKPOINTS), max_concurrency=4),
            StakeConfig(base_stake=Decimal("100")),
        )

    async def test_q3_blowout_single_entry(self, blowout_strategy, historical_blowout):
        """A Q3 lead of ten or more registers exactly one entry."""
        result = await self.engine.run([blowout_strategy], [historical_blowout])
        summary = result.summaries[0]

        assert result.partial is False
        assert result.games_replayed == 1
        assert summary.games_analyzed == 1
        assert summary.triggers_found == 1
        assert summary.potential_bets == 1
        # Forced close at the final score: home -6.5 won by 15
        assert summary.wins == 1
        assert summary.net_profit == Decimal("100.00")

    async def test_close_game_no_entry(self, blowout_strategy, historical_close_game):
        result = await self.engine.run([blowout_strategy], [historical_close_game])
        summary = result.summaries[0]

        assert summary.games_analyzed == 1
        assert summary.triggers_found == 0
        assert summary.bets == []

    async def test_malformed_records_skipped(self, blowout_strategy, historical_blowout):
        """Bad records are counted and the rest of the corpus still runs."""
        corpus = [
            {"id": "bad", "homeScore": 100},
            historical_blowout.model_dump(by_alias=True),
            {"id": "worse", "homeScore": -5, "awayScore": 1, "quarterScores": {}},
        ]
        result = await self.engine.run([blowout_strategy], corpus)

        assert result.skipped_records == 2
        assert result.games_replayed == 1
        assert result.summaries[0].triggers_found == 1

    async def test_max_games_marks_partial(
        self, blowout_strategy, historical_blowout, historical_close_game
    ):
        result = await self.engine.run(
            [blowout_strategy], [historical_close_game, historical_blowout], max_games=1
        )

        assert result.partial is True
        assert result.games_replayed == 1
        assert result.summaries[0].triggers_found == 0

    async def test_zero_time_budget_marks_partial(self, blowout_strategy, historical_blowout):
        result = await self.engine.run(
            [blowout_strategy], [historical_blowout], max_seconds=0
        )

        assert result.partial is True
        assert result.games_replayed == 0

    async def test_games_are_isolated(self, blowout_strategy, historical_blowout):
        """The same game twice gives two independent entries."""
        second = historical_blowout.model_copy(update={"id": "h1-again"})
        result = await self.engine.run([blowout_strategy], [historical_blowout, second])
        summary = result.summaries[0]

        assert summary.potential_bets == 2
        assert [b.game_id for b in summary.bets] == ["h1", "h1-again"]

    async def test_inactive_strategies_skipped(self, blowout_strategy, historical_blowout):
        inactive = blowout_strategy.model_copy(update={"is_active": False})
        result = await self.engine.run([inactive], [historical_blowout])

        assert result.summaries == []

    async def test_result_serializes(self, blowout_strategy, historical_blowout):
        data = (await self.engine.run([blowout_strategy], [historical_blowout])).to_dict()

        assert data["summaries"][0]["win_rate"] == 1.0
        assert data["summaries"][0]["bets"][0]["outcome"] == "won"
        assert data["partial"] is False

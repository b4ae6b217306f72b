"""Unit tests for the context builder."""

from courtside.domain.fields import ContextField
from courtside.domain.game import (
    GameSnapshot,
    GameStatus,
    HalftimeScore,
    PlayerMatchup,
    PlayerStats,
)
from courtside.domain.signals import TriggerSnapshot
from courtside.services.context_builder import (
    build_context,
    parse_time_remaining,
    snapshot_trigger,
)


class TestParseTimeRemaining:
    """Test clock string parsing."""

    def test_minutes_and_seconds(self):
        """Test M:SS converts to seconds."""
        assert parse_time_remaining("5:30") == 330
        assert parse_time_remaining("12:00") == 720
        assert parse_time_remaining("0:07") == 7

    def test_malformed_input_is_zero(self):
        """Malformed clocks yield 0 instead of raising."""
        for value in ("5:3", "abc", "", "5:75", "1:2:3", None):
            assert parse_time_remaining(value) == 0, value


class TestBuildContext:
    """Test context derivation from a snapshot."""

    def test_score_fields(self, live_snapshot):
        """homeScore=75, awayScore=70 gives the expected derived fields."""
        context = build_context(live_snapshot)

        assert context.total_score == 145
        assert context.score_differential == 5
        assert context.abs_score_differential == 5
        assert context.home_leading is True
        assert context.away_leading is False
        assert context.current_lead == 5
        assert context.leading_team == "home"

    def test_clock_fields(self, live_snapshot):
        """Test clock and status fields are carried over."""
        context = build_context(live_snapshot)

        assert context.quarter == 3
        assert context.time_remaining == "5:30"
        assert context.time_remaining_seconds == 330
        assert context.status == "live"

    def test_reported_quarters(self, live_snapshot):
        """Reported quarters give totals, unreported ones stay None."""
        context = build_context(live_snapshot)

        assert context.q1_total == 47
        assert context.q1_differential == 3
        assert context.q2_differential == -2
        assert context.first_half_total == 97
        assert context.q3_home is None
        assert context.q3_total is None
        assert context.second_half_total is None

    def test_halftime_fields_absent_before_capture(self, live_snapshot):
        """Halftime fields are None until the reducer captures them."""
        context = build_context(live_snapshot)

        assert context.halftime_home is None
        assert context.halftime_lead is None

    def test_halftime_fields_after_capture(self, live_snapshot):
        """Test halftime fields derive from the captured score."""
        snapshot = live_snapshot.model_copy(
            update={"halftime": HalftimeScore(home=49, away=48)}
        )
        context = build_context(snapshot)

        assert context.halftime_total == 97
        assert context.halftime_differential == 1
        assert context.halftime_lead == 1

    def test_lines_follow_leader(self, live_snapshot):
        """Leading and losing lines are taken from the right side."""
        context = build_context(live_snapshot)

        assert context.home_spread == -4.5
        assert context.away_spread == 4.5
        assert context.leading_team_spread == -4.5
        assert context.losing_team_spread == 4.5
        assert context.leading_team_moneyline == -180
        assert context.losing_team_moneyline == 150

    def test_tie_takes_home_lines(self, live_snapshot):
        """A tied game reports the home side as the leading line."""
        snapshot = live_snapshot.model_copy(update={"away_score": 75})
        context = build_context(snapshot)

        assert context.home_leading is False
        assert context.away_leading is False
        assert context.leading_team is None
        assert context.leading_team_spread == -4.5
        assert context.leading_team_moneyline == -180

    def test_player_fields_none_without_data(self, live_snapshot):
        """Player fields are None when no player data is known."""
        context = build_context(live_snapshot)

        assert context.home_player_win_pct is None
        assert context.win_pct_diff is None

    def test_player_diffs_need_both_sides(self, live_snapshot):
        """Head-to-head diffs stay None when one side is missing."""
        players = PlayerMatchup(
            home=PlayerStats(win_rate=62.0, avg_points_for=55.5, games_played=120)
        )
        context = build_context(live_snapshot, players)

        assert context.home_player_win_pct == 62.0
        assert context.away_player_win_pct is None
        assert context.win_pct_diff is None
        assert context.experience_diff is None

    def test_player_diffs(self, live_snapshot):
        """Test diffs are home minus away."""
        players = PlayerMatchup(
            home=PlayerStats(
                win_rate=62.0, avg_points_for=55.5, games_played=120,
                recent_form=["W", "W", "L", "W", "L"],
            ),
            away=PlayerStats(win_rate=50.0, avg_points_for=52.0, games_played=100),
        )
        context = build_context(live_snapshot, players)

        assert context.win_pct_diff == 12.0
        assert context.ppm_diff == 3.5
        assert context.experience_diff == 20
        assert context.home_player_form_wins == 3
        assert context.away_player_form_wins is None

    def test_previous_trigger_fields(self, live_snapshot):
        """prevLeader fields compare the earlier leader with the current score."""
        previous = TriggerSnapshot(
            trigger_id="t1",
            quarter=2,
            time_remaining="0:00",
            home_score=40,
            away_score=45,
            leading_team="away",
            lead=5,
        )
        context = build_context(live_snapshot, previous=previous)

        assert context.prev_leader_was_home == 0
        assert context.prev_leader_current_score == 70
        assert context.prev_trailer_current_score == 75
        assert context.prev_leader_current_margin == -5
        assert context.prev_leader_still_leads == 0

    def test_previous_trigger_while_tied(self, live_snapshot):
        """A previous trigger fired on a tie gives no prevLeader fields."""
        previous = TriggerSnapshot(
            trigger_id="t1", quarter=1, time_remaining="0:00",
            home_score=20, away_score=20,
        )
        context = build_context(live_snapshot, previous=previous)

        assert context.prev_leader_still_leads is None

    def test_deterministic(self, live_snapshot):
        """Identical snapshots build identical contexts."""
        assert build_context(live_snapshot) == build_context(live_snapshot.model_copy())

    def test_every_field_resolves(self, live_snapshot):
        """Every context field maps to an attribute of the context."""
        context = build_context(live_snapshot)
        data = context.to_dict()

        for field in ContextField:
            assert field.value in data
        assert data["gameId"] == "g1"

    def test_scheduled_game_defaults(self):
        """A bare snapshot builds without errors."""
        context = build_context(GameSnapshot(game_id="g2"))

        assert context.status == GameStatus.SCHEDULED.value
        assert context.total_score == 0
        assert context.spread is None
        assert context.away_spread is None


class TestSnapshotTrigger:
    def test_captures_leader_and_lead(self, live_snapshot):
        """Test the fire snapshot records the leader at fire time."""
        fire = snapshot_trigger("t1", build_context(live_snapshot))

        assert fire.trigger_id == "t1"
        assert fire.leading_team == "home"
        assert fire.lead == 5
        assert fire.spread == -4.5

"""Unit tests for definition and game record validation."""

import json

import pytest
from pydantic import ValidationError

from courtside.domain.definitions import (
    Condition,
    Market,
    Strategy,
    Trigger,
    TriggerMode,
    parse_conditions,
)
from courtside.domain.fields import ContextField, FieldKind
from courtside.domain.game import GameDelta, GameStatus, HistoricalGame, QuarterScores


class TestCondition:
    """Test condition validation at the definition boundary."""

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            Condition(field="shotClock", operator="equals", value=24)

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValidationError):
            Condition(field="quarter", operator="roughly", value=3)

    def test_between_requires_value2(self):
        with pytest.raises(ValidationError):
            Condition(field="currentLead", operator="between", value=3)

    def test_value_must_fit_field_kind(self):
        """A word cannot be compared to a numeric field."""
        with pytest.raises(ValidationError):
            Condition(field="quarter", operator="equals", value="third")
        with pytest.raises(ValidationError):
            Condition(field="quarter", operator="equals", value=True)

    def test_numeric_strings_coerced(self):
        c = Condition(field="currentLead", operator="between", value="3", value2="5.5")

        assert c.value == 3
        assert c.value2 == 5.5

    def test_describe(self):
        c = Condition(field="currentLead", operator="between", value=3, value2=5)

        assert c.describe() == "currentLead between 3 and 5"


class TestParseConditions:
    """Test decoding of string-encoded condition lists."""

    def test_parse_json_string(self):
        raw = json.dumps([
            {"field": "quarter", "operator": "equals", "value": 3},
            {"field": "homeLeading", "operator": "equals", "value": True},
        ])
        conditions = parse_conditions(raw)

        assert [c.field for c in conditions] == [
            ContextField.QUARTER,
            ContextField.HOME_LEADING,
        ]

    def test_malformed_json_rejected(self):
        with pytest.raises(ValidationError):
            parse_conditions("[{not json")

    def test_invalid_entry_rejected(self):
        with pytest.raises(ValidationError):
            parse_conditions([{"field": "nope", "operator": "equals", "value": 1}])


class TestTriggerAndStrategy:
    """Test trigger and strategy models."""

    def test_trigger_accepts_encoded_conditions(self):
        """Conditions stored as a JSON string are decoded."""
        trigger = Trigger(
            id="t1",
            conditions='[{"field": "quarter", "operator": "equals", "value": 4}]',
        )

        assert trigger.conditions[0].value == 4
        assert trigger.is_entry

    def test_odds_must_be_american(self):
        with pytest.raises(ValidationError):
            Trigger(id="t1", conditions=[], odds=50)
        assert Trigger(id="t1", conditions=[], odds=-110).odds == -110

    def test_blank_trigger_id_rejected(self):
        with pytest.raises(ValidationError):
            Trigger(id="  ", conditions=[])

    def test_strategy_orders_triggers(self):
        """Triggers are sorted by order and pick up the strategy id."""
        strategy = Strategy.model_validate({
            "id": "s1",
            "triggerMode": "parallel",
            "triggers": [
                {"id": "close", "conditions": [], "order": 3, "entryOrClose": "close"},
                {"id": "b", "conditions": [], "order": 1},
                {"id": "a", "conditions": [], "order": 1},
            ],
        })

        assert [t.id for t in strategy.triggers] == ["b", "a", "close"]
        assert all(t.strategy_id == "s1" for t in strategy.triggers)
        assert [t.id for t in strategy.close_triggers] == ["close"]
        assert strategy.trigger_mode is TriggerMode.PARALLEL
        assert strategy.market is Market.SPREAD
        assert strategy.trigger("a").order == 1
        assert strategy.trigger("missing") is None

    def test_sequential_close_before_entry_rejected(self):
        """A sequential close stage ahead of an entry stage is unreachable."""
        triggers = [
            {"id": "e1", "conditions": [], "order": 1},
            {"id": "c1", "conditions": [], "order": 2, "entryOrClose": "close"},
            {"id": "e2", "conditions": [], "order": 3},
        ]

        with pytest.raises(ValidationError, match="ordered after a close trigger"):
            Strategy.model_validate({"id": "s1", "triggerMode": "sequential", "triggers": triggers})

        # Parallel strategies do not walk stages, so the same layout is fine
        parallel = Strategy.model_validate(
            {"id": "s1", "triggerMode": "parallel", "triggers": triggers}
        )
        assert [t.id for t in parallel.entry_triggers] == ["e1", "e2"]


class TestFields:
    def test_field_kinds(self):
        assert ContextField.QUARTER.kind is FieldKind.NUMBER
        assert ContextField.HOME_LEADING.kind is FieldKind.BOOLEAN
        assert ContextField.LEAGUE.kind is FieldKind.TEXT

    def test_attribute_table(self):
        assert ContextField.ABS_SCORE_DIFFERENTIAL.attribute == "abs_score_differential"
        assert ContextField.Q3_TOTAL.attribute == "q3_total"


class TestGameRecords:
    """Test game delta and historical record validation."""

    @pytest.mark.parametrize("raw", ["finished", "ended", "Final", "FINAL"])
    def test_final_aliases(self, raw):
        """Upstream spellings of final are normalized."""
        assert GameDelta(game_id="g1", status=raw).status is GameStatus.FINAL

    def test_in_progress_alias(self):
        assert GameDelta(game_id="g1", status="in_progress").status is GameStatus.LIVE

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            GameDelta(game_id="g1", status="postponed")

    def test_negative_score_rejected(self):
        with pytest.raises(ValidationError):
            GameDelta(game_id="g1", home_score=-1)

    def test_camel_case_payload(self):
        delta = GameDelta.model_validate(
            {"gameId": "g1", "homeScore": 10, "quarterScores": {"q1Home": 10}}
        )

        assert delta.home_score == 10
        assert delta.quarter_scores.q1_home == 10

    def test_historical_needs_all_quarters(self):
        with pytest.raises(ValidationError):
            HistoricalGame(
                id="h1",
                home_score=50,
                away_score=40,
                quarter_scores=QuarterScores(q1_home=25, q1_away=20),
            )

    def test_historical_quarters_cannot_exceed_final(self):
        with pytest.raises(ValidationError):
            HistoricalGame(
                id="h1",
                home_score=90,
                away_score=90,
                quarter_scores=QuarterScores(
                    q1_home=25, q1_away=20, q2_home=25, q2_away=20,
                    q3_home=25, q3_away=20, q4_home=25, q4_away=20,
                ),
            )

    def test_historical_results(self, historical_blowout):
        assert historical_blowout.winner == "home"
        assert historical_blowout.spread_result == "home_cover"
        assert historical_blowout.total_result == "under"

"""Unit tests for condition, trigger and rule evaluation."""

import pytest

from courtside.domain.definitions import Condition, StrategyRule, Trigger
from courtside.services.conditions import (
    evaluate_condition,
    evaluate_trigger,
    parse_stop_at,
    passes_rules,
)
from courtside.services.context_builder import build_context


def condition(field, operator, value, value2=None):
    return Condition(field=field, operator=operator, value=value, value2=value2)


class TestEvaluateTrigger:
    """Test trigger evaluation against the live fixture."""

    def test_all_conditions_match(self, live_snapshot, home_leading_trigger):
        """quarter equals 3 AND homeLeading equals true passes."""
        result = evaluate_trigger(home_leading_trigger, build_context(live_snapshot))

        assert result.passed is True
        assert len(result.matched_conditions) == 2
        assert len(result.failed_conditions) == 0

    def test_one_condition_fails(self, live_snapshot, big_lead_trigger):
        """currentLead greater_than 10 fails against a lead of 5."""
        result = evaluate_trigger(big_lead_trigger, build_context(live_snapshot))

        assert result.passed is False
        assert len(result.matched_conditions) == 2
        assert len(result.failed_conditions) == 1
        assert result.failed_conditions[0].field.value == "currentLead"

    def test_partition(self, live_snapshot, big_lead_trigger):
        """Matched and failed together cover every condition exactly once."""
        result = evaluate_trigger(big_lead_trigger, build_context(live_snapshot))

        combined = result.matched_conditions + result.failed_conditions
        assert len(combined) == len(big_lead_trigger.conditions)
        for c in big_lead_trigger.conditions:
            assert c in combined

    def test_empty_trigger_never_passes(self, live_snapshot):
        """A trigger without conditions does not fire."""
        trigger = Trigger(id="empty", conditions=[])
        result = evaluate_trigger(trigger, build_context(live_snapshot))

        assert result.passed is False
        assert result.matched_conditions == []


class TestEvaluateCondition:
    """Test individual operators."""

    def setup_method(self):
        """Set up test fixtures."""
        self.between = condition("currentLead", "between", 3, 5)

    def test_between_is_inclusive(self, live_snapshot):
        """between 3..5 matches 3, 4 and 5 only."""
        for lead, expected in ((2, False), (3, True), (4, True), (5, True), (6, False)):
            snapshot = live_snapshot.model_copy(update={"away_score": 75 - lead})
            context = build_context(snapshot)
            assert evaluate_condition(self.between, context) is expected, lead

    def test_ordering_operators(self, live_snapshot):
        """Test the four ordering operators against totalScore=145."""
        context = build_context(live_snapshot)

        assert evaluate_condition(condition("totalScore", "greater_than", 144), context)
        assert not evaluate_condition(condition("totalScore", "greater_than", 145), context)
        assert evaluate_condition(condition("totalScore", "greater_than_or_equal", 145), context)
        assert evaluate_condition(condition("totalScore", "less_than", 146), context)
        assert evaluate_condition(condition("totalScore", "less_than_or_equal", 145), context)
        assert not evaluate_condition(condition("totalScore", "less_than", 145), context)

    def test_not_equals(self, live_snapshot):
        context = build_context(live_snapshot)

        assert evaluate_condition(condition("quarter", "not_equals", 4), context)
        assert not evaluate_condition(condition("quarter", "not_equals", 3), context)

    def test_null_value_never_matches(self, live_snapshot):
        """Unknown player stats match nothing, not even not_equals."""
        context = build_context(live_snapshot)

        assert not evaluate_condition(condition("homePlayerWinPct", "greater_than", 0), context)
        assert not evaluate_condition(condition("homePlayerWinPct", "not_equals", 50), context)
        assert not evaluate_condition(condition("q4Total", "less_than", 1000), context)

    def test_contains_is_case_sensitive(self, live_snapshot):
        context = build_context(live_snapshot)

        assert evaluate_condition(condition("league", "contains", "2K"), context)
        assert not evaluate_condition(condition("league", "contains", "2k"), context)
        assert evaluate_condition(condition("homeTeam", "equals", "Lakers"), context)

    def test_string_values_are_coerced(self, live_snapshot):
        """Numbers and booleans stored as strings compare by value."""
        context = build_context(live_snapshot)

        assert evaluate_condition(condition("quarter", "equals", "3"), context)
        assert evaluate_condition(condition("homeLeading", "equals", "true"), context)
        assert evaluate_condition(condition("awayLeading", "equals", False), context)

    def test_ordering_on_text_never_matches(self, live_snapshot):
        """Ordering operators only apply to numbers."""
        context = build_context(live_snapshot)

        assert not evaluate_condition(condition("homeTeam", "greater_than", "A"), context)


class TestRules:
    """Test strategy entry gating rules."""

    def test_no_rules_pass(self, live_snapshot):
        assert passes_rules([], build_context(live_snapshot)).passed

    def test_half_rules(self, live_snapshot):
        """Test first and second half gating in Q3."""
        context = build_context(live_snapshot)

        first = passes_rules([StrategyRule(type="first_half_only")], context)
        second = passes_rules([StrategyRule(type="second_half_only")], context)

        assert first.passed is False
        assert first.failed_rule.type.value == "first_half_only"
        assert second.passed is True

    def test_specific_quarter(self, live_snapshot):
        context = build_context(live_snapshot)

        assert passes_rules([StrategyRule(type="specific_quarter", value=3)], context).passed
        assert not passes_rules([StrategyRule(type="specific_quarter", value="2")], context).passed

    def test_exclude_overtime(self, live_snapshot):
        """Quarter five and later is overtime."""
        overtime = build_context(live_snapshot.model_copy(update={"quarter": 5}))
        rules = [StrategyRule(type="exclude_overtime")]

        assert passes_rules(rules, build_context(live_snapshot)).passed
        assert not passes_rules(rules, overtime).passed

    def test_minimum_score(self, live_snapshot):
        context = build_context(live_snapshot)

        assert passes_rules([StrategyRule(type="minimum_score", value=145)], context).passed
        assert not passes_rules([StrategyRule(type="minimum_score", value=146)], context).passed

    @pytest.mark.parametrize(
        "quarter,clock,expected",
        [
            (3, "5:30", True),
            (4, "2:21", True),
            (4, "2:20", True),
            (4, "2:19", False),
            (5, "4:00", False),
        ],
    )
    def test_stop_at(self, live_snapshot, quarter, clock, expected):
        """Entries stop once the game clock passes the stop point."""
        snapshot = live_snapshot.model_copy(
            update={"quarter": quarter, "time_remaining": clock}
        )
        rules = [StrategyRule(type="stop_at", value="Q4 2:20")]

        assert passes_rules(rules, build_context(snapshot)).passed is expected

    def test_invalid_stop_at_is_ignored(self, live_snapshot):
        """An unparseable stop point does not block entries."""
        rules = [StrategyRule(type="stop_at", value="fourth quarter")]

        assert passes_rules(rules, build_context(live_snapshot)).passed

    def test_parse_stop_at(self):
        assert parse_stop_at("Q4 2:20") == (4, 140)
        assert parse_stop_at("q2 0:00") == (2, 0)
        assert parse_stop_at("Q4") is None
        assert parse_stop_at(None) is None

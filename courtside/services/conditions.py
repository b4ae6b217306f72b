"""Condition and trigger evaluation.

Evaluation never raises on validated input. A ``None`` context value or
a value whose type does not fit the operator is simply a no-match; that
is how player-stat conditions stay quiet until player data arrives.
"""

import operator as op
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import structlog

from courtside.domain.context import EvaluationContext
from courtside.domain.definitions import (
    Condition,
    Operator,
    RuleType,
    StrategyRule,
    Trigger,
)

logger = structlog.get_logger(__name__)

_STOP_AT_RE = re.compile(r"^\s*Q(\d+)\s+(\d{1,2}):([0-5]\d)\s*$", re.IGNORECASE)

_ORDERING: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.GREATER_THAN: op.gt,
    Operator.LESS_THAN: op.lt,
    Operator.GREATER_THAN_OR_EQUAL: op.ge,
    Operator.LESS_THAN_OR_EQUAL: op.le,
}


def _is_number(value: Any) -> bool:
    # bool is an int subclass but is not a number here
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _same_kind(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool)
    if _is_number(a) or _is_number(b):
        return _is_number(a) and _is_number(b)
    return isinstance(a, str) and isinstance(b, str)


def evaluate_condition(condition: Condition, context: EvaluationContext) -> bool:
    """Check one condition against the context."""
    actual = context.value(condition.field)
    expected = condition.value

    if actual is None or not _same_kind(actual, expected):
        return False

    if condition.operator is Operator.EQUALS:
        return actual == expected

    if condition.operator is Operator.NOT_EQUALS:
        return actual != expected

    if condition.operator in _ORDERING:
        if not _is_number(actual):
            return False
        return _ORDERING[condition.operator](actual, expected)

    if condition.operator is Operator.BETWEEN:
        high = condition.value2
        if not (_is_number(actual) and _is_number(high)):
            return False
        return expected <= actual <= high

    if condition.operator is Operator.CONTAINS:
        return isinstance(actual, str) and expected in actual

    return False


@dataclass
class TriggerEvaluation:
    """Result of evaluating every condition of one trigger."""

    trigger: Trigger
    matched_conditions: list[Condition] = field(default_factory=list)
    failed_conditions: list[Condition] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        # An unconditioned trigger never fires
        return not self.failed_conditions and bool(self.trigger.conditions)


def evaluate_trigger(trigger: Trigger, context: EvaluationContext) -> TriggerEvaluation:
    """Evaluate all conditions of a trigger without short-circuiting."""
    result = TriggerEvaluation(trigger=trigger)
    for condition in trigger.conditions:
        if evaluate_condition(condition, context):
            result.matched_conditions.append(condition)
        else:
            result.failed_conditions.append(condition)

    logger.debug(
        "trigger_evaluated",
        trigger_id=trigger.id,
        game_id=context.game_id,
        passed=result.passed,
        failed=[c.describe() for c in result.failed_conditions],
    )
    return result


@dataclass
class RuleCheck:
    passed: bool
    failed_rule: Optional[StrategyRule] = None
    reason: Optional[str] = None


def parse_stop_at(value: Any) -> Optional[tuple[int, int]]:
    """Parse a ``"Q4 2:20"`` stop point into (quarter, seconds)."""
    if not isinstance(value, str):
        return None
    match = _STOP_AT_RE.match(value)
    if match is None:
        return None
    quarter, minutes, seconds = (int(g) for g in match.groups())
    return quarter, minutes * 60 + seconds


def passes_rules(rules: list[StrategyRule], context: EvaluationContext) -> RuleCheck:
    """Check a strategy's entry gating rules against the context.

    Rules are checked in order; the first failure is reported.
    """
    quarter = context.quarter

    for rule in rules:
        if rule.type is RuleType.FIRST_HALF_ONLY and quarter > 2:
            return RuleCheck(False, rule, f"Q{quarter} is past the first half")

        if rule.type is RuleType.SECOND_HALF_ONLY and quarter < 3:
            return RuleCheck(False, rule, f"Q{quarter} is before the second half")

        if rule.type is RuleType.SPECIFIC_QUARTER and quarter != rule.value:
            return RuleCheck(False, rule, f"Q{quarter} is not Q{rule.value}")

        if rule.type is RuleType.EXCLUDE_OVERTIME and quarter > 4:
            return RuleCheck(False, rule, f"Q{quarter} is overtime")

        if rule.type is RuleType.MINIMUM_SCORE and context.total_score < rule.value:
            return RuleCheck(
                False, rule, f"total score {context.total_score} below {rule.value}"
            )

        if rule.type is RuleType.STOP_AT:
            stop = parse_stop_at(rule.value)
            if stop is None:
                logger.warning("invalid_stop_at_rule", value=rule.value)
                continue
            stop_quarter, stop_seconds = stop
            if quarter > stop_quarter or (
                quarter == stop_quarter
                and context.time_remaining_seconds < stop_seconds
            ):
                return RuleCheck(False, rule, f"game has passed {rule.value}")

    return RuleCheck(True)

"""Strategy, trigger and condition definitions.

These pydantic models are the validation boundary for definitions coming
from the record store or the API. Anything that reaches the evaluators
has already been checked here: unknown fields, unknown operators and
values that do not fit the field's kind raise ``ValidationError``.
"""

import json
from enum import Enum
from typing import Any, Optional, Union

from pydantic import TypeAdapter, field_validator, model_validator

from courtside.domain.base import CamelModel
from courtside.domain.fields import ContextField, FieldKind


class Operator(str, Enum):
    """Comparison operators supported by conditions."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    BETWEEN = "between"
    CONTAINS = "contains"


class EntryOrClose(str, Enum):
    ENTRY = "entry"
    CLOSE = "close"


class TriggerMode(str, Enum):
    """How a strategy's triggers relate to each other."""
    SEQUENTIAL = "sequential"  # staged confirmation by order
    PARALLEL = "parallel"  # all eligible triggers each cycle


class Market(str, Enum):
    SPREAD = "spread"
    MONEYLINE = "moneyline"
    TOTAL_OVER = "total_over"
    TOTAL_UNDER = "total_under"


class BetSide(str, Enum):
    LEADING_TEAM = "leading_team"
    TRAILING_TEAM = "trailing_team"
    HOME = "home"
    AWAY = "away"


class RuleType(str, Enum):
    """Entry gating rules attached to a strategy."""
    FIRST_HALF_ONLY = "first_half_only"
    SECOND_HALF_ONLY = "second_half_only"
    SPECIFIC_QUARTER = "specific_quarter"
    EXCLUDE_OVERTIME = "exclude_overtime"
    STOP_AT = "stop_at"
    MINIMUM_SCORE = "minimum_score"


ConditionValue = Union[bool, int, float, str]


def _coerce_value(kind: FieldKind, value: Any) -> ConditionValue:
    """Coerce a raw condition value to the kind of its field."""
    if kind is FieldKind.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValueError(f"expected a boolean, got {value!r}")

    if kind is FieldKind.NUMBER:
        if isinstance(value, bool):
            raise ValueError(f"expected a number, got {value!r}")
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            try:
                number = float(value)
            except ValueError:
                raise ValueError(f"expected a number, got {value!r}") from None
            return int(number) if number.is_integer() else number
        raise ValueError(f"expected a number, got {value!r}")

    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ValueError(f"expected text, got {value!r}")


class Condition(CamelModel):
    """Single comparison of a context field against a literal."""

    field: ContextField
    operator: Operator
    value: ConditionValue
    value2: Optional[ConditionValue] = None

    @model_validator(mode="after")
    def _check_value_kind(self) -> "Condition":
        kind = self.field.kind
        object.__setattr__(self, "value", _coerce_value(kind, self.value))
        if self.operator is Operator.BETWEEN:
            if self.value2 is None:
                raise ValueError("between requires value2")
            object.__setattr__(self, "value2", _coerce_value(kind, self.value2))
        elif self.value2 is not None:
            object.__setattr__(self, "value2", _coerce_value(kind, self.value2))
        return self

    def describe(self) -> str:
        """Human readable form used in logs and notifications."""
        if self.operator is Operator.BETWEEN:
            return f"{self.field.value} between {self.value} and {self.value2}"
        return f"{self.field.value} {self.operator.value} {self.value}"


_CONDITION_LIST = TypeAdapter(list[Condition])


def parse_conditions(raw: Union[str, list[Any]]) -> list[Condition]:
    """Parse the string-encoded condition list stored with a trigger.

    Raises:
        pydantic.ValidationError: on malformed JSON or invalid conditions.
    """
    if isinstance(raw, str):
        return _CONDITION_LIST.validate_json(raw)
    return _CONDITION_LIST.validate_python(raw)


class Trigger(CamelModel):
    """Named set of AND-combined conditions, either entry or close."""

    id: str
    strategy_id: str = ""
    name: str = ""
    conditions: list[Condition]
    order: int = 0
    entry_or_close: EntryOrClose = EntryOrClose.ENTRY
    odds: Optional[int] = None  # American odds recorded for this trigger

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("trigger id must not be blank")
        return v

    @field_validator("conditions", mode="before")
    @classmethod
    def _decode_conditions(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"conditions are not valid JSON: {e}") from e
        return v

    @field_validator("odds")
    @classmethod
    def _odds_valid(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and -100 < v < 100:
            raise ValueError("American odds must be <= -100 or >= 100")
        return v

    @property
    def is_entry(self) -> bool:
        return self.entry_or_close is EntryOrClose.ENTRY


class StrategyRule(CamelModel):
    type: RuleType
    value: Optional[Union[int, str]] = None

    @model_validator(mode="after")
    def _check_value(self) -> "StrategyRule":
        if self.type in (RuleType.SPECIFIC_QUARTER, RuleType.MINIMUM_SCORE):
            try:
                object.__setattr__(self, "value", int(self.value))
            except (TypeError, ValueError):
                raise ValueError(f"{self.type.value} requires an integer value") from None
        return self


class Strategy(CamelModel):
    """A user-defined strategy: triggers, gating rules and the bet to place."""

    id: str
    name: str = ""
    trigger_mode: TriggerMode = TriggerMode.SEQUENTIAL
    is_active: bool = True
    triggers: list[Trigger] = []
    rules: list[StrategyRule] = []
    market: Market = Market.SPREAD
    bet_side: BetSide = BetSide.LEADING_TEAM

    @model_validator(mode="after")
    def _normalize_triggers(self) -> "Strategy":
        # Stable sort keeps definition order for equal ``order`` values
        triggers = sorted(self.triggers, key=lambda t: t.order)
        triggers = [
            t if t.strategy_id else t.model_copy(update={"strategy_id": self.id})
            for t in triggers
        ]
        if self.trigger_mode is TriggerMode.SEQUENTIAL:
            # Staging walks triggers in order; a close stage before an entry
            # stage could never be reached without an open signal
            seen_close = False
            for t in triggers:
                if not t.is_entry:
                    seen_close = True
                elif seen_close:
                    raise ValueError(
                        f"sequential strategy {self.id!r}: entry trigger {t.id!r} "
                        "is ordered after a close trigger"
                    )
        object.__setattr__(self, "triggers", triggers)
        return self

    @property
    def entry_triggers(self) -> list[Trigger]:
        return [t for t in self.triggers if t.is_entry]

    @property
    def close_triggers(self) -> list[Trigger]:
        return [t for t in self.triggers if not t.is_entry]

    def trigger(self, trigger_id: str) -> Optional[Trigger]:
        for t in self.triggers:
            if t.id == trigger_id:
                return t
        return None

"""Price conditions: discounts, taxes and fees applied in priority order."""
import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable

from shopcart.errors import (
    ValidationError,
    ERROR_INVALID_CONDITION_EXPRESSION,
    ERROR_INVALID_CONDITION_VALUE,
)
from shopcart.money import (
    HUNDRED,
    ZERO,
    clamp_non_negative,
    parse_amount,
    round_money,
)


class ConditionType(str, Enum):
    """How the condition value is interpreted."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ConditionOperation(str, Enum):
    """Direction of the price change."""
    ADD = "add"
    SUBTRACT = "subtract"


class ConditionTarget(str, Enum):
    """Where in the price computation the condition applies."""
    ITEM = "item"
    SUBTOTAL = "subtotal"
    TOTAL = "total"


CART_TARGETS = (ConditionTarget.SUBTOTAL, ConditionTarget.TOTAL)

# "+15%", "-10 %", "2.50", "-0.99"
_EXPRESSION_RE = re.compile(r"^\s*([+-]?)\s*(\d+(?:\.\d+)?|\.\d+)\s*(%?)\s*$")


@dataclass(frozen=True)
class Condition:
    """
    Named price modifier.

    Sign is carried only by ``operation``; ``value`` is always non-negative.
    Conditions with a lower ``priority`` apply first.
    """
    name: str
    type: ConditionType
    operation: ConditionOperation
    target: ConditionTarget
    value: Decimal
    priority: int = 0

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise ValidationError("condition name must be a non-empty string")
        try:
            object.__setattr__(self, "type", ConditionType(self.type))
            object.__setattr__(self, "operation", ConditionOperation(self.operation))
            object.__setattr__(self, "target", ConditionTarget(self.target))
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if isinstance(self.priority, bool) or not isinstance(self.priority, int):
            raise ValidationError("condition priority must be an integer")
        value = parse_amount(self.value, "condition value")
        if value < ZERO:
            raise ValidationError(ERROR_INVALID_CONDITION_VALUE)
        object.__setattr__(self, "value", value)

    @classmethod
    def parse(
        cls,
        name: str,
        expression: str,
        target: ConditionTarget | str = ConditionTarget.TOTAL,
        priority: int = 0,
    ) -> "Condition":
        """
        Build a condition from a signed expression.

        A trailing ``%`` makes it a percentage; a leading ``-`` makes it
        subtractive. ``"-10%"`` is a ten percent discount, ``"5"`` a fee.
        """
        match = _EXPRESSION_RE.match(str(expression))
        if not match:
            raise ValidationError(f"{ERROR_INVALID_CONDITION_EXPRESSION}: {expression!r}")
        sign, number, pct = match.groups()
        return cls(
            name=name,
            type=ConditionType.PERCENTAGE if pct else ConditionType.FIXED,
            operation=ConditionOperation.SUBTRACT if sign == "-" else ConditionOperation.ADD,
            target=target,
            value=Decimal(number),
            priority=priority,
        )

    def delta(self, base: Decimal) -> Decimal:
        """Unsigned amount this condition moves ``base`` by."""
        if self.type is ConditionType.PERCENTAGE:
            return base * self.value / HUNDRED
        return self.value

    def apply(self, base: Decimal) -> Decimal:
        """Apply to ``base``. Only ``total`` targets are floored at zero."""
        delta = self.delta(base)
        if self.operation is ConditionOperation.ADD:
            result = round_money(base + delta)
        else:
            result = round_money(base - delta)
        if self.target is ConditionTarget.TOTAL:
            return clamp_non_negative(result)
        return result

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "type": self.type.value,
            "operation": self.operation.value,
            "target": self.target.value,
            "value": str(self.value),
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Condition":
        """Create from dictionary."""
        return cls(
            name=data["name"],
            type=data["type"],
            operation=data["operation"],
            target=data["target"],
            value=data["value"],
            priority=int(data.get("priority", 0)),
        )


def ordered(conditions: Iterable[Condition]) -> list[Condition]:
    """Ascending priority; ties keep insertion order (sorted() is stable)."""
    return sorted(conditions, key=lambda c: c.priority)


def apply_conditions(base: Decimal, conditions: Iterable[Condition]) -> Decimal:
    """Run ``base`` through ``conditions`` in priority order."""
    value = base
    for condition in ordered(conditions):
        value = condition.apply(value)
    return value


def upsert_condition(conditions: list[Condition], condition: Condition) -> list[Condition]:
    """
    Return a new list with ``condition`` attached.

    A condition with the same name is replaced in its original slot.
    """
    result = list(conditions)
    for index, existing in enumerate(result):
        if existing.name == condition.name:
            result[index] = condition
            return result
    result.append(condition)
    return result


def without_condition(conditions: list[Condition], name: str) -> list[Condition]:
    """Return a new list without the named condition (no-op when absent)."""
    return [c for c in conditions if c.name != name]

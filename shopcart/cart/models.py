"""Cart line items and the Buyable capability."""
import hashlib
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from shopcart.errors import (
    ValidationError,
    ERROR_INVALID_CONDITION_TARGET,
    ERROR_INVALID_PRICE,
    ERROR_INVALID_PRODUCT_REF,
    ERROR_INVALID_QUANTITY,
)
from shopcart.money import ZERO, clamp_non_negative, parse_amount, round_money
from .conditions import (
    Condition,
    ConditionTarget,
    apply_conditions,
    upsert_condition,
    without_condition,
)


class Buyable(ABC):
    """
    What a product must expose to be added to a cart.

    Subclassing is optional: the manager only calls the three methods.
    """

    @abstractmethod
    def identifier(self) -> str:
        ...

    @abstractmethod
    def price(self) -> Decimal:
        ...

    @abstractmethod
    def name(self) -> str:
        ...


def make_item_key(product_ref: str, attributes: dict[str, Any]) -> str:
    """Identity key: product ref plus attributes, independent of attribute order."""
    payload = json.dumps(
        [product_ref, attributes], sort_keys=True, separators=(",", ":"), default=str
    )
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


def _validate_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError(f"{ERROR_INVALID_QUANTITY}, got {quantity!r}")
    return quantity


@dataclass
class CartItem:
    """Single priced line in a cart instance."""
    product_ref: str
    quantity: int
    unit_price: Decimal
    name: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)
    conditions: list[Condition] = field(default_factory=list)
    added_at: str = ""

    def __post_init__(self):
        if not self.product_ref or not isinstance(self.product_ref, str):
            raise ValidationError(ERROR_INVALID_PRODUCT_REF)
        self.quantity = _validate_quantity(self.quantity)
        self.unit_price = parse_amount(self.unit_price, "unit_price")
        if self.unit_price < ZERO:
            raise ValidationError(f"{ERROR_INVALID_PRICE}, got {self.unit_price}")
        if any(not isinstance(k, str) for k in self.attributes):
            raise ValidationError("attribute keys must be strings")
        for condition in self.conditions:
            self._check_target(condition)
        self.attributes = dict(self.attributes)
        self.conditions = list(self.conditions)
        if not self.added_at:
            self.added_at = datetime.now(timezone.utc).isoformat()

    @property
    def key(self) -> str:
        """Identity key, always derived from the current ref and attributes."""
        return make_item_key(self.product_ref, self.attributes)

    @classmethod
    def create(
        cls,
        product_ref: str,
        quantity: int,
        unit_price: Any,
        attributes: Optional[dict[str, Any]] = None,
        name: str = "",
    ) -> "CartItem":
        """Validated constructor; raises ValidationError on bad input."""
        return cls(
            product_ref=product_ref,
            quantity=quantity,
            unit_price=unit_price,
            name=name,
            attributes=attributes or {},
        )

    @classmethod
    def from_buyable(
        cls,
        buyable: Any,
        quantity: int = 1,
        attributes: Optional[dict[str, Any]] = None,
    ) -> "CartItem":
        """Build an item from anything exposing identifier(), price() and name()."""
        return cls.create(
            product_ref=str(buyable.identifier()),
            quantity=quantity,
            unit_price=buyable.price(),
            attributes=attributes,
            name=buyable.name(),
        )

    @staticmethod
    def _check_target(condition: Condition) -> None:
        if condition.target is not ConditionTarget.ITEM:
            raise ValidationError(
                f"{ERROR_INVALID_CONDITION_TARGET}: {condition.target.value} on item"
            )

    def copy(self) -> "CartItem":
        """Independent copy; attribute values themselves are shared."""
        return replace(self, attributes=dict(self.attributes), conditions=list(self.conditions))

    def with_quantity(self, quantity: int) -> "CartItem":
        """New item with ``quantity``; conditions and attributes are carried over."""
        _validate_quantity(quantity)
        return replace(
            self,
            quantity=quantity,
            attributes=dict(self.attributes),
            conditions=list(self.conditions),
        )

    def subtotal(self) -> Decimal:
        """Unit price times quantity, before conditions."""
        return self.unit_price * self.quantity

    def total(self) -> Decimal:
        """Subtotal after item conditions, never below zero."""
        if not self.conditions:
            return round_money(self.subtotal())
        return round_money(clamp_non_negative(apply_conditions(self.subtotal(), self.conditions)))

    def add_condition(self, condition: Condition) -> None:
        self._check_target(condition)
        self.conditions = upsert_condition(self.conditions, condition)

    def remove_condition(self, name: str) -> None:
        self.conditions = without_condition(self.conditions, name)

    def get_condition(self, name: str) -> Optional[Condition]:
        return next((c for c in self.conditions if c.name == name), None)

    def to_dict(self) -> dict:
        """Snapshot used for events and summaries."""
        return {
            "key": self.key,
            "product_ref": self.product_ref,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "attributes": dict(self.attributes),
            "conditions": [c.to_dict() for c in self.conditions],
            "subtotal": str(round_money(self.subtotal())),
            "total": str(self.total()),
            "added_at": self.added_at,
        }

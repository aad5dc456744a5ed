"""Versioned storage shape for cart instances."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from shopcart.money import parse_amount
from .conditions import Condition, ConditionOperation, ConditionTarget, ConditionType
from .instance import CartInstance
from .models import CartItem

SCHEMA_VERSION = 1


class SerializedCondition(BaseModel):
    """Stored condition."""
    name: str
    type: ConditionType
    operation: ConditionOperation
    target: ConditionTarget
    value: Decimal
    priority: int = 0

    @field_validator("value", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return parse_amount(v)

    @classmethod
    def from_condition(cls, condition: Condition) -> "SerializedCondition":
        return cls(
            name=condition.name,
            type=condition.type,
            operation=condition.operation,
            target=condition.target,
            value=condition.value,
            priority=condition.priority,
        )

    def to_condition(self) -> Condition:
        return Condition(
            name=self.name,
            type=self.type,
            operation=self.operation,
            target=self.target,
            value=self.value,
            priority=self.priority,
        )


class SerializedItem(BaseModel):
    """Stored line item."""
    key: str
    product_ref: str
    name: str = ""
    quantity: int
    unit_price: Decimal
    attributes: dict[str, Any] = {}
    conditions: list[SerializedCondition] = []
    added_at: str = ""

    @field_validator("unit_price", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return parse_amount(v)

    @classmethod
    def from_item(cls, item: CartItem) -> "SerializedItem":
        return cls(
            key=item.key,
            product_ref=item.product_ref,
            name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            attributes=item.attributes,
            conditions=[SerializedCondition.from_condition(c) for c in item.conditions],
            added_at=item.added_at,
        )

    def to_item(self) -> CartItem:
        return CartItem(
            product_ref=self.product_ref,
            quantity=self.quantity,
            unit_price=self.unit_price,
            name=self.name,
            attributes=self.attributes,
            conditions=[c.to_condition() for c in self.conditions],
            added_at=self.added_at,
        )


class SerializedCart(BaseModel):
    """Everything needed to rebuild a CartInstance after a restart."""
    model_config = ConfigDict(extra="ignore")

    version: int = SCHEMA_VERSION
    instance: str
    items: list[SerializedItem] = []
    conditions: list[SerializedCondition] = []
    created_at: str = ""
    updated_at: str = ""

    @field_validator("version")
    @classmethod
    def check_version(cls, v: int) -> int:
        if v != SCHEMA_VERSION:
            raise ValueError(f"unsupported cart schema version {v}")
        return v


def serialize_instance(instance: CartInstance) -> SerializedCart:
    """Snapshot an instance for storage."""
    now = datetime.now(timezone.utc).isoformat()
    return SerializedCart(
        instance=instance.name,
        items=[SerializedItem.from_item(item) for item in instance.items()],
        conditions=[SerializedCondition.from_condition(c) for c in instance.conditions()],
        created_at=instance.created_at or now,
        updated_at=now,
    )


def deserialize_instance(data: SerializedCart, name: str | None = None) -> CartInstance:
    """Rebuild an instance; ``name`` overrides the stored instance name."""
    return CartInstance(
        name=name or data.instance,
        items=[item.to_item() for item in data.items],
        conditions=[c.to_condition() for c in data.conditions],
        created_at=data.created_at,
    )

"""Named cart instance: items plus cart-level conditions."""
from decimal import Decimal
from typing import Callable, Iterator, Optional

from shopcart.errors import (
    NotFoundError,
    ValidationError,
    ERROR_IDENTITY_CHANGED,
    ERROR_INSTANCE_DESTROYED,
    ERROR_INVALID_CONDITION_TARGET,
    ERROR_INVALID_INSTANCE_NAME,
    ERROR_ITEM_NOT_FOUND,
)
from shopcart.money import clamp_non_negative, round_money
from .conditions import (
    CART_TARGETS,
    Condition,
    ConditionTarget,
    apply_conditions,
    upsert_condition,
    without_condition,
)
from .models import CartItem


class CartInstance:
    """
    Isolated collection of cart items keyed by identity key.

    Insertion order is preserved; adding a key that already exists sums the
    quantities in place. Every method validates before it mutates, so a
    raised error leaves the instance untouched.

    This class does no I/O and emits nothing; CartManager wraps it for
    persistence and events.
    """

    def __init__(
        self,
        name: str,
        items: Optional[list[CartItem]] = None,
        conditions: Optional[list[Condition]] = None,
        created_at: str = "",
    ):
        if not name or not isinstance(name, str):
            raise ValidationError(ERROR_INVALID_INSTANCE_NAME)
        self.name = name
        self.created_at = created_at
        self._items: dict[str, CartItem] = {}
        self._conditions: list[Condition] = []
        self._destroyed = False
        for item in items or []:
            self.add(item)
        for condition in conditions or []:
            self.add_condition(condition)

    def __repr__(self) -> str:
        return f"CartInstance(name={self.name!r}, items={len(self._items)})"

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CartItem]:
        return iter(self.items())

    def __contains__(self, key: object) -> bool:
        return key in self._items

    # ==================== State ====================

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def is_empty(self) -> bool:
        return not self._items

    def _ensure_alive(self) -> None:
        if self._destroyed:
            raise NotFoundError(f"{ERROR_INSTANCE_DESTROYED}: {self.name}")

    def _require(self, key: str) -> CartItem:
        item = self._items.get(key)
        if item is None:
            raise NotFoundError(f"{ERROR_ITEM_NOT_FOUND}: {key}")
        return item

    # ==================== Items ====================

    def add(self, item: CartItem) -> CartItem:
        """
        Insert ``item`` or merge it into the line with the same key.

        On merge the existing line keeps its position and its conditions;
        conditions on the incoming item are dropped.
        """
        self._ensure_alive()
        existing = self._items.get(item.key)
        if existing is None:
            stored = item.copy()
        else:
            stored = existing.with_quantity(existing.quantity + item.quantity)
        self._items[stored.key] = stored
        return stored

    def update(self, key: str, mutator: Callable[[CartItem], CartItem]) -> CartItem:
        """
        Replace the item under ``key`` with ``mutator(copy)``.

        The mutator receives a copy, so an exception inside it leaves the
        stored item as it was. The result is rebuilt through the validating
        constructor, so in-place edits to the copy are checked too.
        """
        self._ensure_alive()
        current = self._require(key)
        updated = mutator(current.copy())
        if not isinstance(updated, CartItem):
            raise ValidationError("update mutator must return a CartItem")
        updated = updated.copy()
        if updated.key != key:
            raise ValidationError(ERROR_IDENTITY_CHANGED)
        self._items[key] = updated
        return updated

    def remove(self, key: str) -> CartItem:
        """Remove and return the item under ``key``."""
        self._ensure_alive()
        self._require(key)
        return self._items.pop(key)

    def get(self, key: str) -> Optional[CartItem]:
        self._ensure_alive()
        return self._items.get(key)

    def items(self) -> list[CartItem]:
        self._ensure_alive()
        return list(self._items.values())

    def search(self, predicate: Callable[[CartItem], bool]) -> list[CartItem]:
        """Items matching ``predicate``, in cart order."""
        return [item for item in self.items() if predicate(item)]

    def item_count(self) -> int:
        """Sum of quantities, not the number of lines."""
        self._ensure_alive()
        return sum(item.quantity for item in self._items.values())

    def clear(self) -> None:
        """Drop all items. Cart-level conditions stay."""
        self._ensure_alive()
        self._items.clear()

    # ==================== Conditions ====================

    def conditions(self) -> list[Condition]:
        self._ensure_alive()
        return list(self._conditions)

    def get_condition(self, name: str) -> Optional[Condition]:
        self._ensure_alive()
        return next((c for c in self._conditions if c.name == name), None)

    def add_condition(self, condition: Condition) -> Condition:
        """Attach a cart condition; one with the same name is replaced."""
        self._ensure_alive()
        if condition.target not in CART_TARGETS:
            raise ValidationError(
                f"{ERROR_INVALID_CONDITION_TARGET}: {condition.target.value} on cart"
            )
        self._conditions = upsert_condition(self._conditions, condition)
        return condition

    def remove_condition(self, name: str) -> Optional[Condition]:
        """Detach a cart condition. Unknown names are ignored."""
        self._ensure_alive()
        removed = self.get_condition(name)
        self._conditions = without_condition(self._conditions, name)
        return removed

    # ==================== Totals ====================

    def subtotal(self) -> Decimal:
        """Sum of unit price times quantity, ignoring every condition."""
        self._ensure_alive()
        return sum((item.subtotal() for item in self._items.values()), Decimal("0"))

    def items_total(self) -> Decimal:
        """Sum of item totals (item conditions applied, cart conditions not)."""
        self._ensure_alive()
        return sum((item.total() for item in self._items.values()), Decimal("0"))

    def total(self) -> Decimal:
        """
        Final amount.

        Calculation order:
        1. Item totals (item conditions applied per line)
        2. Cart conditions targeting ``subtotal``, by priority
        3. Cart conditions targeting ``total``, by priority
        4. Floor at zero
        """
        value = self.items_total()
        value = apply_conditions(
            value, [c for c in self._conditions if c.target is ConditionTarget.SUBTOTAL]
        )
        value = apply_conditions(
            value, [c for c in self._conditions if c.target is ConditionTarget.TOTAL]
        )
        return round_money(clamp_non_negative(value))

    # ==================== Lifecycle ====================

    def destroy(self) -> None:
        """Terminal: every later call raises NotFoundError."""
        self._items.clear()
        self._conditions.clear()
        self._destroyed = True

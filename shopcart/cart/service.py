"""Cart manager: instance resolution, persistence and events for one session."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from shopcart.config import get_settings
from shopcart.errors import CartError, ValidationError, ERROR_INVALID_INSTANCE_NAME
from shopcart.logging import get_logger, sanitize_id_for_logging
from shopcart.money import format_money, round_money, to_float
from .conditions import Condition
from .events import CartEvent, CartEventName, EventSink, NullEventSink
from .instance import CartInstance
from .models import CartItem
from .serializer import deserialize_instance, serialize_instance
from .storage import InMemoryCartStorage, PersistenceAdapter

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartContext:
    """Session or request scope that owns a set of cart instances."""
    session_id: str

    def __post_init__(self):
        if not self.session_id or not isinstance(self.session_id, str):
            raise ValidationError("session_id must be a non-empty string")


class CartManager:
    """
    Public cart API for one session.

    Features:
    - Named instances ("default", "wishlist", ...) created lazily
    - Explicit save; nothing is persisted automatically
    - An event after every successful mutation, so callers can auto-save

    Mutations go through the instance first; storage and events are only
    touched once the instance accepted the change.
    """

    def __init__(
        self,
        context: CartContext,
        storage: Optional[PersistenceAdapter] = None,
        events: Optional[EventSink] = None,
        default_instance: Optional[str] = None,
    ):
        self.context = context
        self.storage = storage if storage is not None else InMemoryCartStorage()
        self.events = events if events is not None else NullEventSink()
        self.default_instance = default_instance or get_settings().default_instance
        self._instances: dict[str, CartInstance] = {}

    # ==================== Instances ====================

    def _resolve_name(self, name: Optional[str]) -> str:
        name = self.default_instance if name is None else name
        if not name or not isinstance(name, str):
            raise ValidationError(ERROR_INVALID_INSTANCE_NAME)
        return name

    def storage_name(self, name: Optional[str] = None) -> str:
        """Storage key for ``name`` within this session."""
        return f"{self.context.session_id}:{self._resolve_name(name)}"

    def loaded_instances(self) -> list[str]:
        """Names of instances resolved so far, in resolution order."""
        return list(self._instances)

    async def instance(self, name: Optional[str] = None) -> CartInstance:
        """
        Get a cart instance by name, loading it from storage on first access.

        A storage miss (or an unreadable stored cart) yields a fresh empty
        instance.
        """
        name = self._resolve_name(name)
        existing = self._instances.get(name)
        if existing is not None:
            return existing

        data = await self.storage.load(self.storage_name(name))
        cart = None
        if data is not None:
            try:
                cart = deserialize_instance(data, name=name)
            except CartError as e:
                logger.warning(
                    f"Discarding invalid stored cart {sanitize_id_for_logging(self.context.session_id)}"
                    f"/{name}: {e}"
                )
                await self.storage.delete(self.storage_name(name))

        if cart is None:
            cart = CartInstance(name=name, created_at=datetime.now(timezone.utc).isoformat())
            self._instances[name] = cart
            return cart

        self._instances[name] = cart
        logger.debug(f"Restored cart {name} with {len(cart)} lines")
        await self._emit(CartEventName.CART_RESTORED, cart, {"items": len(cart)})
        return cart

    async def save(self, instance: Union[CartInstance, str, None] = None) -> None:
        """Write an instance (items and cart conditions) through the storage adapter."""
        cart = instance if isinstance(instance, CartInstance) else await self.instance(instance)
        data = serialize_instance(cart)
        await self.storage.save(self.storage_name(cart.name), data)
        logger.debug(f"Saved cart {cart.name} with {len(data.items)} lines")
        await self._emit(CartEventName.CART_STORED, cart, {"items": len(data.items)})

    async def destroy(self, name: Optional[str] = None) -> None:
        """
        Remove an instance and its stored state.

        Held references to the old instance become unusable; asking for the
        same name again returns a fresh empty cart.
        """
        name = self._resolve_name(name)
        await self.storage.delete(self.storage_name(name))
        cart = self._instances.pop(name, None)
        if cart is not None:
            cart.destroy()
        logger.debug(f"Destroyed cart {name}")
        await self.events.emit(
            CartEvent(
                event=CartEventName.CART_DESTROYED,
                session_id=self.context.session_id,
                instance=name,
            )
        )

    # ==================== Items ====================

    async def add(
        self,
        product: Any,
        quantity: int = 1,
        attributes: Optional[dict[str, Any]] = None,
        *,
        price: Any = None,
        name: str = "",
        instance: Optional[str] = None,
    ) -> CartItem:
        """
        Add to a cart instance.

        ``product`` may be a ready CartItem, a Buyable (identifier(), price(),
        name()), or a product reference string together with ``price``.
        Existing lines with the same identity key have their quantity raised.
        """
        item = self._build_item(product, quantity, attributes, price, name)
        cart = await self.instance(instance)
        stored = cart.add(item)
        logger.debug(f"Added {item.quantity} x {item.key[:8]} to cart {cart.name}")
        await self._emit(CartEventName.ITEM_ADDED, cart, stored.to_dict())
        return stored

    @staticmethod
    def _build_item(product, quantity, attributes, price, name) -> CartItem:
        if isinstance(product, CartItem):
            return product
        if isinstance(product, str):
            if price is None:
                raise ValidationError("price is required when adding by product reference")
            return CartItem.create(product, quantity, price, attributes, name=name)
        if all(callable(getattr(product, attr, None)) for attr in ("identifier", "price", "name")):
            return CartItem.from_buyable(product, quantity, attributes)
        raise ValidationError(f"cannot add {type(product).__name__} to cart")

    async def update(
        self,
        key: str,
        mutator: Callable[[CartItem], CartItem],
        instance: Optional[str] = None,
    ) -> CartItem:
        """Replace an item with ``mutator(item)``. Raises NotFoundError for unknown keys."""
        cart = await self.instance(instance)
        updated = cart.update(key, mutator)
        await self._emit(CartEventName.ITEM_UPDATED, cart, updated.to_dict())
        return updated

    async def set_quantity(self, key: str, quantity: int, instance: Optional[str] = None) -> CartItem:
        """Set an item's quantity (must stay >= 1; use remove() to drop it)."""
        return await self.update(key, lambda item: item.with_quantity(quantity), instance)

    async def remove(self, key: str, instance: Optional[str] = None) -> CartItem:
        """Remove an item. Raises NotFoundError for unknown keys."""
        cart = await self.instance(instance)
        removed = cart.remove(key)
        await self._emit(CartEventName.ITEM_REMOVED, cart, removed.to_dict())
        return removed

    async def clear(self, instance: Optional[str] = None) -> None:
        """Empty an instance's items; its cart conditions are kept."""
        cart = await self.instance(instance)
        count = len(cart)
        cart.clear()
        await self._emit(CartEventName.CART_CLEARED, cart, {"items_removed": count})

    async def get(self, key: str, instance: Optional[str] = None) -> Optional[CartItem]:
        cart = await self.instance(instance)
        return cart.get(key)

    async def search(
        self, predicate: Callable[[CartItem], bool], instance: Optional[str] = None
    ) -> list[CartItem]:
        cart = await self.instance(instance)
        return cart.search(predicate)

    # ==================== Conditions ====================

    async def add_condition(
        self,
        condition: Condition,
        key: Optional[str] = None,
        instance: Optional[str] = None,
    ) -> Condition:
        """
        Attach a condition to the cart, or to the item under ``key``.

        A condition with the same name in the same scope is replaced.
        """
        cart = await self.instance(instance)
        if key is None:
            cart.add_condition(condition)
        else:
            cart.update(key, lambda item: _with_condition(item, condition))
        await self._emit(
            CartEventName.CONDITION_ADDED, cart, {**condition.to_dict(), "item_key": key}
        )
        return condition

    async def remove_condition(
        self,
        name: str,
        key: Optional[str] = None,
        instance: Optional[str] = None,
    ) -> Optional[Condition]:
        """
        Detach a condition by name from the cart or from one item.

        Unknown condition names are a no-op (no event); an unknown item key
        raises NotFoundError.
        """
        cart = await self.instance(instance)
        if key is None:
            removed = cart.remove_condition(name)
        else:
            current = cart.get(key)
            removed = current.get_condition(name) if current is not None else None
            cart.update(key, lambda item: _without_condition(item, name))
        if removed is not None:
            await self._emit(
                CartEventName.CONDITION_REMOVED, cart, {**removed.to_dict(), "item_key": key}
            )
        return removed

    # ==================== Bulk ====================

    async def merge(
        self,
        source: str,
        into: Optional[str] = None,
        with_conditions: bool = False,
    ) -> CartInstance:
        """
        Add every item of ``source`` into ``into`` with normal add semantics.

        With ``with_conditions`` the source's cart conditions are copied
        over unless the target already has one of the same name. The source
        instance is left unchanged.
        """
        into = self._resolve_name(into)
        if source == into:
            raise ValidationError("cannot merge a cart instance into itself")
        src = await self.instance(source)
        target = await self.instance(into)

        for item in src.items():
            target.add(item)
        if with_conditions:
            for condition in src.conditions():
                if target.get_condition(condition.name) is None:
                    target.add_condition(condition)

        await self._emit(
            CartEventName.CART_MERGED,
            target,
            {"source": source, "items": len(src), "item_count": target.item_count()},
        )
        return target

    async def summary(self, instance: Optional[str] = None, currency: str = "USD") -> dict:
        """Flat totals for rendering layers."""
        cart = await self.instance(instance)
        subtotal = round_money(cart.subtotal())
        total = cart.total()
        return {
            "instance": cart.name,
            "is_empty": cart.is_empty,
            "lines": len(cart),
            "item_count": cart.item_count(),
            "items": [
                {
                    "key": item.key,
                    "product_ref": item.product_ref,
                    "name": item.name,
                    "quantity": item.quantity,
                    "unit_price": to_float(item.unit_price),
                    "total": to_float(item.total()),
                    "attributes": dict(item.attributes),
                }
                for item in cart.items()
            ],
            "conditions": [c.to_dict() for c in cart.conditions()],
            "subtotal": to_float(subtotal),
            "total": to_float(total),
            "subtotal_formatted": format_money(subtotal, currency),
            "total_formatted": format_money(total, currency),
        }

    # ==================== Events ====================

    async def _emit(self, name: CartEventName, cart: CartInstance, data: dict) -> None:
        await self.events.emit(
            CartEvent(
                event=name,
                session_id=self.context.session_id,
                instance=cart.name,
                data=data,
            )
        )


def _with_condition(item: CartItem, condition: Condition) -> CartItem:
    item.add_condition(condition)
    return item


def _without_condition(item: CartItem, name: str) -> CartItem:
    item.remove_condition(name)
    return item

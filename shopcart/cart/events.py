"""Cart events and the sinks that receive them."""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from shopcart.db import RedisKeys, get_redis
from shopcart.logging import get_logger

logger = get_logger(__name__)


class CartEventName(str, Enum):
    """Event names emitted after successful mutations."""
    ITEM_ADDED = "item.added"
    ITEM_UPDATED = "item.updated"
    ITEM_REMOVED = "item.removed"
    CART_CLEARED = "cart.cleared"
    CART_DESTROYED = "cart.destroyed"
    CART_STORED = "cart.stored"
    CART_RESTORED = "cart.restored"
    CART_MERGED = "cart.merged"
    CONDITION_ADDED = "condition.added"
    CONDITION_REMOVED = "condition.removed"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CartEvent(BaseModel):
    """One state change: instance name plus a snapshot of what changed."""
    event: CartEventName
    session_id: str
    instance: str
    data: dict[str, Any] = {}
    occurred_at: str = Field(default_factory=_now)


class EventSink(ABC):
    """Receiver for cart events, awaited inline by CartManager."""

    @abstractmethod
    async def emit(self, event: CartEvent) -> None:
        ...


class NullEventSink(EventSink):
    """Discards events."""

    async def emit(self, event: CartEvent) -> None:
        return None


class RecordingEventSink(EventSink):
    """Keeps events in memory, in emission order."""

    def __init__(self):
        self.events: list[CartEvent] = []

    async def emit(self, event: CartEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.event.value for e in self.events]


class RedisStreamEventSink(EventSink):
    """
    Publishes events to a per-session Redis Stream (XADD).

    Delivery is best effort: transport failures are logged, never raised,
    so a broken stream cannot undo a cart mutation.
    """

    def __init__(self, redis=None):
        self._redis = redis

    @property
    def redis(self):
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    async def emit(self, event: CartEvent) -> None:
        try:
            stream_key = RedisKeys.event_stream_key(event.session_id)
            await self.redis.xadd(stream_key, "*", {"data": event.model_dump_json()})
            logger.debug(f"Emitted {event.event.value} for instance {event.instance}")
        except Exception as e:
            logger.warning(f"Failed to emit {event.event.value}: {e}", exc_info=True)

"""Cart package: items, conditions, instances, storage and the manager facade."""
from .conditions import Condition, ConditionOperation, ConditionTarget, ConditionType
from .events import (
    CartEvent,
    CartEventName,
    EventSink,
    NullEventSink,
    RecordingEventSink,
    RedisStreamEventSink,
)
from .instance import CartInstance
from .models import Buyable, CartItem
from .serializer import SCHEMA_VERSION, SerializedCart
from .service import CartContext, CartManager
from .storage import InMemoryCartStorage, PersistenceAdapter, RedisCartStorage

__all__ = [
    "Buyable",
    "CartItem",
    "Condition",
    "ConditionOperation",
    "ConditionTarget",
    "ConditionType",
    "CartInstance",
    "CartContext",
    "CartManager",
    "CartEvent",
    "CartEventName",
    "EventSink",
    "NullEventSink",
    "RecordingEventSink",
    "RedisStreamEventSink",
    "PersistenceAdapter",
    "InMemoryCartStorage",
    "RedisCartStorage",
    "SerializedCart",
    "SCHEMA_VERSION",
]

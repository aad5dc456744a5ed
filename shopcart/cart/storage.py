"""Persistence adapters for cart instances."""
import secrets
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from pydantic import ValidationError as SchemaError

from shopcart.config import get_settings
from shopcart.db import RedisKeys, get_redis
from shopcart.errors import (
    PersistenceError,
    ERROR_LOCK_NOT_ACQUIRED,
    ERROR_STORAGE_UNAVAILABLE,
)
from shopcart.logging import get_logger, sanitize_id_for_logging
from .serializer import SerializedCart

logger = get_logger(__name__)

# Delete the lock only if we still own it
_RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class PersistenceAdapter(ABC):
    """Key-value storage for serialized carts, keyed by storage name."""

    @abstractmethod
    async def load(self, name: str) -> Optional[SerializedCart]:
        """Stored cart, or None when nothing (valid) is stored."""

    @abstractmethod
    async def save(self, name: str, data: SerializedCart) -> None:
        ...

    @abstractmethod
    async def delete(self, name: str) -> None:
        ...


class InMemoryCartStorage(PersistenceAdapter):
    """
    Process-local storage.

    Carts are kept as JSON so loads go through the same validation as Redis.
    """

    def __init__(self):
        self._data: dict[str, str] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._data

    async def load(self, name: str) -> Optional[SerializedCart]:
        raw = self._data.get(name)
        if raw is None:
            return None
        try:
            return SerializedCart.model_validate_json(raw)
        except SchemaError as e:
            logger.warning(f"Corrupted cart data for {sanitize_id_for_logging(name)}: {e}")
            self._data.pop(name, None)
            return None

    async def save(self, name: str, data: SerializedCart) -> None:
        self._data[name] = data.model_dump_json()

    async def delete(self, name: str) -> None:
        self._data.pop(name, None)


class RedisCartStorage(PersistenceAdapter):
    """
    Upstash Redis storage with a TTL for abandoned carts.

    Every Redis failure is re-raised as PersistenceError; nothing is retried.
    """

    def __init__(self, redis=None, ttl: Optional[int] = None, lock_ttl: Optional[int] = None):
        self._redis = redis
        settings = get_settings()
        self.ttl = ttl if ttl is not None else settings.cart_ttl
        self.lock_ttl = lock_ttl if lock_ttl is not None else settings.lock_ttl

    @property
    def redis(self):
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            try:
                self._redis = get_redis()
            except ValueError as e:
                raise PersistenceError(f"{ERROR_STORAGE_UNAVAILABLE}: {e}") from e
        return self._redis

    async def load(self, name: str) -> Optional[SerializedCart]:
        key = RedisKeys.cart_key(name)
        try:
            raw = await self.redis.get(key)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(f"Failed to load cart from Redis: {e}")
            raise PersistenceError(f"{ERROR_STORAGE_UNAVAILABLE}: {e}") from e

        if not raw:
            return None

        try:
            return SerializedCart.model_validate_json(raw)
        except SchemaError as e:
            # Corrupted or foreign payload: drop it and start fresh
            logger.warning(f"Corrupted cart data for {sanitize_id_for_logging(name)}: {e}")
            await self.delete(name)
            return None

    async def save(self, name: str, data: SerializedCart) -> None:
        try:
            await self.redis.set(RedisKeys.cart_key(name), data.model_dump_json(), ex=self.ttl)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(f"Failed to save cart to Redis: {e}")
            raise PersistenceError(f"{ERROR_STORAGE_UNAVAILABLE}: {e}") from e

    async def delete(self, name: str) -> None:
        try:
            await self.redis.delete(RedisKeys.cart_key(name))
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(f"Failed to delete cart from Redis: {e}")
            raise PersistenceError(f"{ERROR_STORAGE_UNAVAILABLE}: {e}") from e

    @asynccontextmanager
    async def lock(self, name: str) -> AsyncIterator[str]:
        """
        Hold an exclusive lock on ``name`` for a load-mutate-save sequence.

        Usage:
            async with storage.lock(manager.storage_name("default")):
                cart = await manager.instance("default")
                ...
                await manager.save(cart)

        Raises:
            PersistenceError: lock is held elsewhere or Redis failed
        """
        key = RedisKeys.lock_key(name)
        token = secrets.token_hex(16)
        try:
            acquired = await self.redis.set(key, token, nx=True, ex=self.lock_ttl)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(f"Failed to acquire cart lock: {e}")
            raise PersistenceError(f"{ERROR_STORAGE_UNAVAILABLE}: {e}") from e
        if not acquired:
            raise PersistenceError(f"{ERROR_LOCK_NOT_ACQUIRED}: {sanitize_id_for_logging(name)}")
        try:
            yield token
        finally:
            try:
                await self.redis.eval(_RELEASE_LOCK_SCRIPT, keys=[key], args=[token])
            except Exception as e:
                # Lock expires on its own after lock_ttl
                logger.warning(f"Failed to release cart lock: {e}", exc_info=True)

"""Pytest configuration and fixtures"""
import os
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

# Set test environment variables
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_token")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from shopcart.cart import (  # noqa: E402
    CartContext,
    CartItem,
    CartManager,
    InMemoryCartStorage,
    RecordingEventSink,
)


class Product:
    """Buyable product used across tests."""

    def __init__(self, product_id: str, title: str, amount: str):
        self._id = product_id
        self._title = title
        self._amount = Decimal(amount)

    def identifier(self) -> str:
        return self._id

    def price(self) -> Decimal:
        return self._amount

    def name(self) -> str:
        return self._title


@pytest.fixture
def product():
    """Sample buyable product"""
    return Product("P1", "ChatGPT Plus", "10.00")


@pytest.fixture
def make_item():
    """Factory for cart items"""
    def _make(product_ref="P1", quantity=1, unit_price="10.00", attributes=None, name=""):
        return CartItem.create(product_ref, quantity, unit_price, attributes, name=name)
    return _make


@pytest.fixture
def storage():
    """Process-local cart storage"""
    return InMemoryCartStorage()


@pytest.fixture
def sink():
    """Event sink that records emitted events"""
    return RecordingEventSink()


@pytest.fixture
def context():
    return CartContext(session_id="session-123")


@pytest.fixture
def manager(context, storage, sink):
    """Cart manager wired to in-memory storage and a recording sink"""
    return CartManager(context, storage=storage, events=sink, default_instance="default")


@pytest.fixture
def mock_redis():
    """Mock Upstash async Redis client"""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.eval = AsyncMock(return_value=1)
    redis.xadd = AsyncMock(return_value="1-0")
    return redis

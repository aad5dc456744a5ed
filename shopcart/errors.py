"""
Cart error types and message constants.

Messages are centralized to keep wording identical across modules.
"""

# Validation
ERROR_INVALID_QUANTITY = "quantity must be a positive integer"
ERROR_INVALID_PRICE = "unit_price must be a non-negative amount"
ERROR_INVALID_CONDITION_VALUE = "condition value must be a non-negative amount"
ERROR_INVALID_CONDITION_EXPRESSION = "condition expression is not a number or percentage"
ERROR_INVALID_CONDITION_TARGET = "condition target is not allowed at this scope"
ERROR_INVALID_PRODUCT_REF = "product_ref must be a non-empty string"
ERROR_IDENTITY_CHANGED = "update must not change the item identity key"
ERROR_INVALID_INSTANCE_NAME = "instance name must be a non-empty string"

# Lookups
ERROR_ITEM_NOT_FOUND = "Item not found"
ERROR_INSTANCE_DESTROYED = "Cart instance was destroyed"

# Storage
ERROR_STORAGE_UNAVAILABLE = "Cart storage unavailable"
ERROR_LOCK_NOT_ACQUIRED = "Cart is locked by another request"


class CartError(Exception):
    """Base class for all cart errors."""


class ValidationError(CartError, ValueError):
    """Rejected input; raised before any state is touched."""


class NotFoundError(CartError, LookupError):
    """Item key absent, or the instance has been destroyed."""


class PersistenceError(CartError):
    """Persistence adapter I/O failure. Never retried by the core."""


__all__ = [
    "CartError",
    "ValidationError",
    "NotFoundError",
    "PersistenceError",
    "ERROR_INVALID_QUANTITY",
    "ERROR_INVALID_PRICE",
    "ERROR_INVALID_CONDITION_VALUE",
    "ERROR_INVALID_CONDITION_EXPRESSION",
    "ERROR_INVALID_CONDITION_TARGET",
    "ERROR_INVALID_PRODUCT_REF",
    "ERROR_IDENTITY_CHANGED",
    "ERROR_INVALID_INSTANCE_NAME",
    "ERROR_ITEM_NOT_FOUND",
    "ERROR_INSTANCE_DESTROYED",
    "ERROR_STORAGE_UNAVAILABLE",
    "ERROR_LOCK_NOT_ACQUIRED",
]

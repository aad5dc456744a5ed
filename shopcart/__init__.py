"""shopcart - multi-instance shopping cart with ordered price conditions."""
from shopcart.errors import CartError, NotFoundError, PersistenceError, ValidationError

__all__ = ["CartError", "NotFoundError", "PersistenceError", "ValidationError"]

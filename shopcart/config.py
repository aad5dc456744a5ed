"""Cart configuration read from the environment."""
import os
from dataclasses import dataclass

DEFAULT_INSTANCE = "default"
DEFAULT_CART_TTL = 86400  # 24 hours
DEFAULT_LOCK_TTL = 10


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class CartSettings:
    """Runtime settings for storage and instance resolution."""
    redis_url: str = ""
    redis_token: str = ""
    cart_ttl: int = DEFAULT_CART_TTL
    lock_ttl: int = DEFAULT_LOCK_TTL
    default_instance: str = DEFAULT_INSTANCE

    @property
    def redis_configured(self) -> bool:
        return bool(self.redis_url and self.redis_token)


def load_settings() -> CartSettings:
    """
    Build settings from environment variables.

    Upstash uses REST_URL and REST_TOKEN; the remaining variables are
    optional and fall back to module defaults.
    """
    return CartSettings(
        redis_url=os.environ.get("UPSTASH_REDIS_REST_URL", ""),
        redis_token=os.environ.get("UPSTASH_REDIS_REST_TOKEN", ""),
        cart_ttl=_int_env("CART_TTL_SECONDS", DEFAULT_CART_TTL),
        lock_ttl=_int_env("CART_LOCK_TTL_SECONDS", DEFAULT_LOCK_TTL),
        default_instance=os.environ.get("CART_DEFAULT_INSTANCE") or DEFAULT_INSTANCE,
    )


_settings: CartSettings | None = None


def get_settings() -> CartSettings:
    """Get settings (singleton, read once per process)."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None

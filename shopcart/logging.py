"""
Logging setup for shopcart.

    from shopcart.logging import get_logger
    logger = get_logger(__name__)
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_root_logger() -> None:
    """Give the root logger a stdout handler, unless the host application already configured one."""
    root = logging.getLogger()
    if root.handlers:
        return

    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.setLevel(level)
    root.addHandler(handler)

    # upstash_redis talks REST through httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)


_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def sanitize_id_for_logging(id_value: str | None) -> str:
    """
    Session or instance identifier safe to log.

    Control characters are escaped (CWE-117) and the value is cut to
    8 characters. Empty values become "N/A".
    """
    if not id_value:
        return "N/A"
    safe_value = str(id_value).replace("\n", "\\n").replace("\r", "\\r").replace("\x00", "")
    return safe_value[:8]


__all__ = ["get_logger", "sanitize_id_for_logging"]

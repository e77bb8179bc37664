"""Runtime settings for the storefront domain, read from the environment.

Values are read on every call so tests and operators can change them without
re-importing modules.
"""

import os


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def return_window_days() -> int:
    """Days after delivery during which a customer may return an order."""
    return _int_from_env("STOREFRONT_RETURN_WINDOW_DAYS", 30)


def cart_idle_hours() -> int:
    """Hours of inactivity after which an active cart counts as abandoned."""
    return _int_from_env("STOREFRONT_CART_IDLE_HOURS", 24)


def stock_write_attempts() -> int:
    """Compare-and-swap attempts for a single stock record write."""
    return max(1, _int_from_env("STOREFRONT_STOCK_WRITE_ATTEMPTS", 5))


def default_minimum_stock() -> int:
    return _int_from_env("STOREFRONT_MINIMUM_STOCK", 5)


def default_currency() -> str:
    return os.getenv("STOREFRONT_CURRENCY", "USD").upper()

"""
Stockkeeper configuration.

Usage in settings.py:
    STOCKKEEPER = {
        "RESERVATION_TTL_MINUTES": 60 * 24,
        "LOCK_TIMEOUT_SECONDS": 5,
        "ORDER_NOTIFIER": "shop.notifications.EmailOrderNotifier",
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class StockkeeperSettings:
    """Stockkeeper configuration settings."""

    # Default reservation TTL in minutes (0 = no expiration)
    RESERVATION_TTL_MINUTES: int = 60 * 24

    # Expire a product's overdue reservations before reserving against it
    SWEEP_ON_RESERVE: bool = True

    # Max reservations expired per product per sweep round
    EXPIRED_BATCH_SIZE: int = 200

    # Bounded wait for stock row locks
    LOCK_TIMEOUT_SECONDS: int = 5

    # Planning hints for newly registered products
    DEFAULT_REORDER_POINT: int = 5
    DEFAULT_REORDER_QUANTITY: int = 10
    DEFAULT_MAX_STOCK_LEVEL: int = 100

    ORDER_NUMBER_PREFIX: str = "ORD"

    # Post-commit order notifier (dotted path)
    ORDER_NOTIFIER: str = "stockkeeper.adapters.noop.NoopOrderNotifier"

    AUDIT_PAGE_SIZE: int = 50


def get_stockkeeper_settings() -> StockkeeperSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STOCKKEEPER", {})
    return StockkeeperSettings(**{
        k: v for k, v in user_settings.items()
        if k in StockkeeperSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_stockkeeper_settings(), name)


stockkeeper_settings = _LazySettings()

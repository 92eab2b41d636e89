"""
Stockkeeper Adapters.

Loads the configured OrderNotifier implementation.

Usage:
    from stockkeeper.adapters import get_order_notifier

    notifier = get_order_notifier()
    notifier.order_placed(notification)

Settings:
    STOCKKEEPER = {
        "ORDER_NOTIFIER": "shop.notifications.EmailOrderNotifier",
    }
"""

from __future__ import annotations

import logging
import threading

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from stockkeeper.conf import stockkeeper_settings
from stockkeeper.protocols.notifications import OrderNotifier

logger = logging.getLogger(__name__)


# Cached notifier instance
_lock = threading.Lock()
_order_notifier: OrderNotifier | None = None


def get_order_notifier() -> OrderNotifier:
    """
    Return the configured order notifier.

    Raises:
        ImproperlyConfigured: If ORDER_NOTIFIER is empty or import fails
    """
    global _order_notifier

    if _order_notifier is None:
        with _lock:
            if _order_notifier is None:  # double-checked
                notifier_path = stockkeeper_settings.ORDER_NOTIFIER

                if not notifier_path:
                    raise ImproperlyConfigured(
                        "STOCKKEEPER['ORDER_NOTIFIER'] must be a dotted path. "
                        "Example: 'stockkeeper.adapters.noop.NoopOrderNotifier'"
                    )

                try:
                    notifier_class = import_string(notifier_path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import order notifier '{notifier_path}': {e}"
                    ) from e

                _order_notifier = notifier_class()
                logger.debug("Loaded order notifier: %s", notifier_path)

    return _order_notifier


def reset_order_notifier() -> None:
    """Reset the cached notifier. Useful for testing."""
    global _order_notifier
    _order_notifier = None


__all__ = [
    "get_order_notifier",
    "reset_order_notifier",
]

"""
Noop Order Notifier — Default adapter for development and testing.

Implements the OrderNotifier protocol by logging each event and doing
nothing else.

Usage in settings.py:
    STOCKKEEPER = {
        "ORDER_NOTIFIER": "stockkeeper.adapters.noop.NoopOrderNotifier",
    }

Replace it in production with an adapter that actually tells someone.
"""

from __future__ import annotations

import logging

from stockkeeper.protocols.notifications import OrderNotification

logger = logging.getLogger(__name__)


class NoopOrderNotifier:
    """
    No-operation order notifier.

    Suitable for:

    - Local development without a mail server or queue
    - Tests that don't assert on delivery
    """

    def order_placed(self, notification: OrderNotification) -> None:
        logger.debug(
            "Order placed: %s (%s %s)",
            notification.order_number,
            notification.total_amount,
            notification.currency,
        )

    def order_cancelled(self, notification: OrderNotification) -> None:
        logger.debug("Order cancelled: %s", notification.order_number)

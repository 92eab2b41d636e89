"""
Order Notification Protocol — Interface for post-commit order events.

Stockkeeper defines this protocol; the host project (email, webhooks,
queues) implements it. Delivery itself is out of scope for the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class OrderLine:
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class OrderNotification:
    """Committed order state handed to the notifier."""

    order_id: int
    order_number: str
    status: str
    total_amount: Decimal
    currency: str
    customer_name: str = ''
    customer_email: str = ''
    lines: tuple[OrderLine, ...] = field(default_factory=tuple)

    @classmethod
    def from_order(cls, order) -> OrderNotification:
        return cls(
            order_id=order.pk,
            order_number=order.order_number,
            status=order.status,
            total_amount=order.total_amount,
            currency=order.currency,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            lines=tuple(
                OrderLine(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in order.items.all()
            ),
        )


@runtime_checkable
class OrderNotifier(Protocol):
    """
    Protocol for order event delivery.

    Called only after the order transaction has committed. Failures are
    logged by the engine and never undo the order.
    """

    def order_placed(self, notification: OrderNotification) -> None:
        """
        A new order was committed and its stock decremented.

        Args:
            notification: Snapshot of the committed order
        """
        ...

    def order_cancelled(self, notification: OrderNotification) -> None:
        """
        An order was cancelled and its stock restored.

        Args:
            notification: Snapshot of the cancelled order
        """
        ...

"""
Stockkeeper Protocols.

Defines interfaces for external system integration.
"""

from stockkeeper.protocols.notifications import (
    OrderLine,
    OrderNotification,
    OrderNotifier,
)

__all__ = [
    "OrderLine",
    "OrderNotification",
    "OrderNotifier",
]

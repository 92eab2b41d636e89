"""
Stockkeeper Models.

Core models for stock management:
- StockRecord: Per-product physical/reserved counters
- Reservation: Time-bounded holds
- AuditEntry: Immutable ledger of stock changes
- Order / OrderItem: Orders written by the atomic orchestrator
- ReorderAlert: Low-stock trigger per product
"""

from stockkeeper.models.alert import ReorderAlert
from stockkeeper.models.audit import AuditEntry
from stockkeeper.models.enums import (
    AdjustmentType,
    AlertStatus,
    AlertType,
    AuditOperation,
    AuditReason,
    OrderStatus,
    ProductStatus,
    ReservationStatus,
    StockLevel,
)
from stockkeeper.models.order import Order, OrderItem
from stockkeeper.models.reservation import Reservation
from stockkeeper.models.stock import StockRecord

__all__ = [
    'AdjustmentType',
    'AlertStatus',
    'AlertType',
    'AuditOperation',
    'AuditReason',
    'OrderStatus',
    'ProductStatus',
    'ReservationStatus',
    'StockLevel',
    'StockRecord',
    'Reservation',
    'AuditEntry',
    'Order',
    'OrderItem',
    'ReorderAlert',
]

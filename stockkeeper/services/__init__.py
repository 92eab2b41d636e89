"""
Stock services — modular organization of stock operations.

    from stockkeeper.services import StockLedger, StockReservations, OrderFulfillment
"""

from stockkeeper.services.adjustments import StockAdjustments
from stockkeeper.services.audit import AuditLog
from stockkeeper.services.ledger import StockLedger, unit_of_work
from stockkeeper.services.orders import OrderFulfillment
from stockkeeper.services.reservations import StockReservations

__all__ = [
    'AuditLog',
    'OrderFulfillment',
    'StockAdjustments',
    'StockLedger',
    'StockReservations',
    'unit_of_work',
]

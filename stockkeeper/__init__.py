"""
Django Stockkeeper — inventory reservation and atomic order fulfillment.

Usage:
    from stockkeeper import stock, StockError

    stock.reserve('sku-1', 'cart-42', 3)
    stock.available('sku-1')
    stock.create_order([{'product_id': 'sku-1', 'quantity': 3, 'unit_price': '12000'}],
                       reservation_ids=['res:1'])
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'stock':
        from stockkeeper.service import Stock
        return Stock
    elif name == 'StockError':
        from stockkeeper.exceptions import StockError
        return StockError
    elif name == 'StockRecord':
        from stockkeeper.models.stock import StockRecord
        return StockRecord
    elif name == 'Reservation':
        from stockkeeper.models.reservation import Reservation
        return Reservation
    elif name == 'AuditEntry':
        from stockkeeper.models.audit import AuditEntry
        return AuditEntry
    elif name == 'Order':
        from stockkeeper.models.order import Order
        return Order
    elif name == 'ReorderAlert':
        from stockkeeper.models.alert import ReorderAlert
        return ReorderAlert
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'stock',
    'StockError',
    'StockRecord',
    'Reservation',
    'AuditEntry',
    'Order',
    'ReorderAlert',
]

__version__ = '0.1.0'

"""
Stock Service — The single public interface for all stock operations.

Usage:
    from stockkeeper import stock, StockError

    stock.register('sku-1', 'SKU-1', 'Blue mug', price=12000, initial_stock=10)
    result = stock.reserve('sku-1', 'cart-42', 3)
    stock.available('sku-1')  # 7
    stock.fulfill('sku-1', 'cart-42')
"""

from stockkeeper.services import alerts
from stockkeeper.services.adjustments import StockAdjustments
from stockkeeper.services.audit import AuditLog
from stockkeeper.services.ledger import StockLedger, unit_of_work
from stockkeeper.services.orders import OrderFulfillment
from stockkeeper.services.reservations import StockReservations


class Stock(StockLedger, StockAdjustments, StockReservations, OrderFulfillment):
    """
    Single interface for all stock operations.

    Parameter convention: (product_id, order_ref, quantity, ...)

    IMPORTANT: All state-changing methods run in one transaction with the
    affected stock records locked in ascending product id order. Failures
    raise StockError and leave nothing behind.
    """

    # ══════════════════════════════════════════════════════════════
    # AUDIT
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def audit(cls, **filters):
        """Paginated audit feed. See AuditLog.query for filters."""
        return AuditLog.query(**filters)

    @classmethod
    def history(cls, product_id):
        """All audit entries of one product, oldest first."""
        record = cls.get_record(product_id)
        return record.audit_entries.order_by('timestamp', 'pk')

    # ══════════════════════════════════════════════════════════════
    # RECONCILIATION
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def recalculate(cls, product_id) -> tuple[int, int]:
        """
        Rebuild a record's counters from reservations and audit trail.

        Returns:
            (physical_stock, reserved_stock) after recalculation
        """
        with unit_of_work('recalculate'):
            record = cls.lock(product_id)
            return record.recalculate()

    # ══════════════════════════════════════════════════════════════
    # REORDER ALERTS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def check_reorder_alerts(cls, product_id=None):
        return alerts.check_reorder_alerts(product_id)

    @classmethod
    def acknowledge_alert(cls, alert_id, user=None, notes=''):
        return alerts.acknowledge_alert(alert_id, user=user, notes=notes)

    @classmethod
    def list_alerts(cls, status=None):
        return alerts.list_alerts(status)

"""
Reorder alerts — open, refresh and resolve low-stock alerts.

Usage:
    from stockkeeper.services.alerts import check_reorder_alerts

    # Run periodically (cron, celery beat) or after stock changes
    triggered = check_reorder_alerts()
    # Returns newly opened ReorderAlert rows
"""

import logging

from django.utils import timezone

from stockkeeper.exceptions import StockError
from stockkeeper.models.alert import ReorderAlert
from stockkeeper.models.enums import AlertStatus, AlertType
from stockkeeper.models.stock import StockRecord

logger = logging.getLogger('stockkeeper')


def suggested_quantity(record) -> int:
    """Reorder quantity, raised to refill up to max_stock_level."""
    return max(record.reorder_quantity, record.max_stock_level - record.available, 0)


def check_reorder_alerts(product_id=None) -> list[ReorderAlert]:
    """
    Compare every active product against its reorder point.

    - available <= reorder_point: open an alert, or refresh the open one
    - available > reorder_point: resolve the open alert, if any

    Args:
        product_id: Optional product to check (None = all active products)

    Returns:
        Alerts opened by this run.
    """
    records = StockRecord.objects.active()
    if product_id is not None:
        records = records.filter(pk=product_id)

    open_alerts = {
        alert.product_id: alert
        for alert in ReorderAlert.objects.open().filter(product__in=records)
    }

    triggered = []
    now = timezone.now()

    for record in records:
        available = record.available
        alert = open_alerts.get(record.pk)

        if available > record.reorder_point:
            if alert is not None:
                alert.status = AlertStatus.RESOLVED
                alert.resolved_at = now
                alert.save(update_fields=['status', 'resolved_at'])
                logger.info(
                    "stock.alert.resolved",
                    extra={"alert_id": alert.pk, "product_id": record.pk, "available": available},
                )
            continue

        alert_type = AlertType.OUT_OF_STOCK if available == 0 else AlertType.LOW_STOCK

        if alert is None:
            alert = ReorderAlert.objects.create(
                product=record,
                alert_type=alert_type,
                available_stock=available,
                reorder_point=record.reorder_point,
                suggested_quantity=suggested_quantity(record),
                triggered_at=now,
            )
            triggered.append(alert)
            logger.warning(
                "stock.alert.triggered",
                extra={
                    "alert_id": alert.pk,
                    "product_id": record.pk,
                    "alert_type": alert_type,
                    "available": available,
                    "reorder_point": record.reorder_point,
                },
            )
        elif alert.available_stock != available or alert.alert_type != alert_type:
            alert.alert_type = alert_type
            alert.available_stock = available
            alert.reorder_point = record.reorder_point
            alert.suggested_quantity = suggested_quantity(record)
            alert.save(update_fields=[
                'alert_type', 'available_stock', 'reorder_point', 'suggested_quantity',
            ])

    return triggered


def acknowledge_alert(alert_id, user=None, notes='') -> ReorderAlert:
    """
    Mark an open alert as seen. It stays open until stock recovers.

    Raises:
        StockError('ALERT_NOT_FOUND'): No open alert with this id
    """
    try:
        alert = ReorderAlert.objects.open().get(pk=alert_id)
    except (ReorderAlert.DoesNotExist, ValueError):
        raise StockError('ALERT_NOT_FOUND', alert_id=alert_id) from None

    alert.status = AlertStatus.ACKNOWLEDGED
    alert.acknowledged_by = user
    alert.acknowledged_at = timezone.now()
    if notes:
        alert.notes = notes
    alert.save(update_fields=['status', 'acknowledged_by', 'acknowledged_at', 'notes'])
    return alert


def list_alerts(status=None):
    """Open alerts by default; pass a status to filter instead."""
    qs = ReorderAlert.objects.select_related('product')
    if status is None:
        return qs.open()
    if status not in AlertStatus.values:
        raise StockError('INVALID_QUERY', field='status', value=status)
    return qs.filter(status=status)

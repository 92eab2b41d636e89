"""
ReorderAlert model — raised when available stock reaches the reorder point.

Usage:
    from stockkeeper.services.alerts import check_reorder_alerts
    triggered = check_reorder_alerts()
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockkeeper.models.enums import AlertStatus, AlertType


OPEN_STATUSES = (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED)


class ReorderAlertQuerySet(models.QuerySet):

    def open(self):
        return self.filter(status__in=OPEN_STATUSES)


class ReorderAlert(models.Model):
    """
    Low-stock or out-of-stock alert for one product.

    At most one open (active or acknowledged) alert exists per product;
    check_reorder_alerts() refreshes it while stock stays low and resolves
    it once stock climbs back above the reorder point.
    """

    product = models.ForeignKey(
        'stockkeeper.StockRecord',
        on_delete=models.CASCADE,
        related_name='alerts',
        verbose_name=_('Product'),
    )
    alert_type = models.CharField(
        max_length=20,
        choices=AlertType.choices,
        verbose_name=_('Type'),
    )
    available_stock = models.PositiveIntegerField(verbose_name=_('Available at trigger'))
    reorder_point = models.PositiveIntegerField(verbose_name=_('Reorder point'))
    suggested_quantity = models.PositiveIntegerField(verbose_name=_('Suggested reorder quantity'))

    status = models.CharField(
        max_length=20,
        choices=AlertStatus.choices,
        default=AlertStatus.ACTIVE,
        db_index=True,
        verbose_name=_('Status'),
    )
    triggered_at = models.DateTimeField(default=timezone.now)
    acknowledged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')

    objects = ReorderAlertQuerySet.as_manager()

    class Meta:
        verbose_name = _('Reorder alert')
        verbose_name_plural = _('Reorder alerts')
        ordering = ['-triggered_at']
        constraints = [
            models.UniqueConstraint(
                fields=['product'],
                condition=Q(status__in=['active', 'acknowledged']),
                name='one_open_reorder_alert_per_product',
            ),
        ]

    def __str__(self) -> str:
        return f"Alert: {self.product_id} {self.alert_type} ({self.available_stock} <= {self.reorder_point})"

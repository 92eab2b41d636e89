"""
StockRecord model — per-product stock counters.
"""

import logging

from django.db import models
from django.db.models import F, Q, Sum
from django.db.models.functions import Coalesce
from django.utils.translation import gettext_lazy as _

from stockkeeper.models.enums import ProductStatus, ReservationStatus, StockLevel


class StockRecordQuerySet(models.QuerySet):
    """QuerySet with helper filters for stock records."""

    def active(self):
        return self.filter(status=ProductStatus.ACTIVE)

    def at_or_below_reorder_point(self):
        """Records whose available stock has reached the reorder point."""
        return self.annotate(
            _available=F('physical_stock') - F('reserved_stock'),
        ).filter(_available__lte=F('reorder_point'))


class StockRecord(models.Model):
    """
    Stock counters for one product.

    Counters:
    - physical_stock: units owned
    - reserved_stock: sum of active reservations (counter, see recalculate())
    - available: physical - reserved, always derived, never stored

    Counters only change through the stock services, under a row lock
    and with a guarded UPDATE (see StockLedger.apply).
    """

    product_id = models.CharField(
        primary_key=True,
        max_length=64,
        verbose_name=_('Product ID'),
    )
    sku = models.CharField(max_length=100, db_index=True, verbose_name=_('SKU'))
    name = models.CharField(max_length=255, verbose_name=_('Name'))
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=0,
        verbose_name=_('Price'),
    )
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
        db_index=True,
        verbose_name=_('Status'),
    )

    physical_stock = models.PositiveIntegerField(default=0, verbose_name=_('Physical stock'))
    reserved_stock = models.PositiveIntegerField(default=0, verbose_name=_('Reserved stock'))

    # Planning hints, not enforced
    reorder_point = models.PositiveIntegerField(default=0, verbose_name=_('Reorder point'))
    reorder_quantity = models.PositiveIntegerField(default=0, verbose_name=_('Reorder quantity'))
    max_stock_level = models.PositiveIntegerField(default=0, verbose_name=_('Max stock level'))

    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = StockRecordQuerySet.as_manager()

    class Meta:
        verbose_name = _('Stock record')
        verbose_name_plural = _('Stock records')
        ordering = ['product_id']
        constraints = [
            models.CheckConstraint(
                condition=Q(reserved_stock__lte=F('physical_stock')),
                name='stock_reserved_within_physical',
            ),
        ]

    # ══════════════════════════════════════════════════════════════
    # PROPERTIES
    # ══════════════════════════════════════════════════════════════

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE

    @property
    def available(self) -> int:
        """Units that can be newly promised."""
        return max(self.physical_stock - self.reserved_stock, 0)

    @property
    def stock_status(self) -> str:
        available = self.available
        if available == 0:
            return StockLevel.OUT_OF_STOCK
        if available <= self.reorder_point:
            return StockLevel.LOW_STOCK
        return StockLevel.IN_STOCK

    # ══════════════════════════════════════════════════════════════
    # METHODS
    # ══════════════════════════════════════════════════════════════

    def recalculate(self) -> tuple[int, int]:
        """
        Recalculate counters from their sources.

        - reserved_stock from active reservations
        - physical_stock from the audit trail (sum of physical changes)

        Use for integrity audits and to repair detected drift.

        Returns:
            (physical_stock, reserved_stock) after recalculation
        """
        reserved = self.reservations.filter(
            status=ReservationStatus.ACTIVE,
        ).aggregate(t=Coalesce(Sum('quantity'), 0))['t']
        physical = self.audit_entries.aggregate(
            t=Coalesce(Sum('physical_stock_change'), 0)
        )['t']

        if (physical, reserved) != (self.physical_stock, self.reserved_stock):
            old = (self.physical_stock, self.reserved_stock)
            StockRecord.objects.filter(pk=self.pk).update(
                physical_stock=physical,
                reserved_stock=reserved,
                version=F('version') + 1,
            )
            self.refresh_from_db()

            logger = logging.getLogger('stockkeeper')
            logger.warning(
                "stock.record.recalculated",
                extra={
                    "product_id": self.pk,
                    "before": old,
                    "after": (physical, reserved),
                },
            )

        return physical, reserved

    def __str__(self) -> str:
        return f"{self.name} [{self.sku}]: {self.physical_stock} ({self.reserved_stock} reserved)"

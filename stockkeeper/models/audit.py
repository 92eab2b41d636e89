"""
AuditEntry model — immutable record of stock-affecting operations.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockkeeper.models.enums import AuditOperation, AuditReason


IMMUTABLE_MESSAGE = (
    "Audit entries are immutable. "
    "To correct stock, record a new adjustment."
)


class AuditEntryQuerySet(models.QuerySet):
    """Bulk writes are refused like instance writes."""

    def update(self, **kwargs):
        raise ValueError(IMMUTABLE_MESSAGE)

    def delete(self):
        raise ValueError(IMMUTABLE_MESSAGE)


class AuditEntry(models.Model):
    """
    Immutable record of one stock-affecting operation.

    Rules:
    - NEVER update() or delete()
    - Corrections are new entries
    - physical_stock_change is always after - before

    Exactly one entry per successful reserve, fulfill, cancel, expiry,
    adjustment, or per product line of an atomic order.
    """

    product = models.ForeignKey(
        'stockkeeper.StockRecord',
        on_delete=models.PROTECT,
        related_name='audit_entries',
        verbose_name=_('Product'),
    )
    operation = models.CharField(
        max_length=20,
        choices=AuditOperation.choices,
        db_index=True,
        verbose_name=_('Operation'),
    )

    physical_stock_before = models.PositiveIntegerField()
    physical_stock_after = models.PositiveIntegerField()
    physical_stock_change = models.IntegerField(
        help_text=_('Positive = units in, negative = units out'),
    )
    reserved_stock_before = models.PositiveIntegerField(default=0)
    reserved_stock_after = models.PositiveIntegerField(default=0)

    reason = models.CharField(
        max_length=30,
        choices=AuditReason.choices,
        db_index=True,
        verbose_name=_('Reason'),
    )
    notes = models.TextField(blank=True, default='', verbose_name=_('Notes'))
    order_ref = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Order reference'),
    )

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Actor'),
    )
    timestamp = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Timestamp'))

    objects = AuditEntryQuerySet.as_manager()

    class Meta:
        verbose_name = _('Audit entry')
        verbose_name_plural = _('Audit entries')
        ordering = ['timestamp', 'pk']
        indexes = [
            models.Index(fields=['product', 'timestamp'], name='audit_product_timestamp_idx'),
        ]

    @property
    def reserved_stock_change(self) -> int:
        return self.reserved_stock_after - self.reserved_stock_before

    @property
    def available_before(self) -> int:
        return self.physical_stock_before - self.reserved_stock_before

    @property
    def available_after(self) -> int:
        return self.physical_stock_after - self.reserved_stock_after

    def save(self, *args, **kwargs):
        """Insert only."""
        if self.pk:
            raise ValueError(IMMUTABLE_MESSAGE)

        if not self.reason:
            raise ValueError("Reason is required")

        self.physical_stock_change = self.physical_stock_after - self.physical_stock_before
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Prevent deletion — entries are immutable."""
        raise ValueError(IMMUTABLE_MESSAGE)

    def __str__(self) -> str:
        sign = '+' if self.physical_stock_change > 0 else ''
        return f"{self.product_id} {self.operation} {sign}{self.physical_stock_change} | {self.reason}"

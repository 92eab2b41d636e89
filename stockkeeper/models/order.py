"""
Order models — the order aggregate written by the atomic orchestrator.

Customer and payment modeling live outside the engine; these rows carry
what stock fulfillment needs plus the checkout fields handed to us.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockkeeper.models.enums import OrderStatus


class Order(models.Model):
    """Customer order created by stock.create_order()."""

    order_number = models.CharField(max_length=40, unique=True, verbose_name=_('Order number'))
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
        verbose_name=_('Status'),
    )

    customer_name = models.CharField(max_length=255, blank=True, default='')
    customer_email = models.EmailField(blank=True, default='')
    customer_phone = models.CharField(max_length=40, blank=True, default='')
    shipping_address = models.JSONField(default=dict, blank=True)
    notes = models.TextField(blank=True, default='')
    currency = models.CharField(max_length=3, default='UGX')

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    shipping_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))

    metadata = models.JSONField(default=dict, blank=True)
    placed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _('Order')
        verbose_name_plural = _('Orders')
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(models.Model):
    """One order line. Name and SKU are snapshots taken at order time."""

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='items',
    )
    product = models.ForeignKey(
        'stockkeeper.StockRecord',
        on_delete=models.PROTECT,
        related_name='order_items',
    )
    product_name = models.CharField(max_length=255)
    product_sku = models.CharField(max_length=100)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    line_total = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        verbose_name = _('Order item')
        verbose_name_plural = _('Order items')
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name='order_item_quantity_positive',
            ),
        ]

    def __str__(self) -> str:
        return f"{self.quantity}x {self.product_name} @ {self.unit_price}"

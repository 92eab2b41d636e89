"""
Enums for Stockkeeper models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class ProductStatus(models.TextChoices):
    """Catalog status. Inactive products reject new reservations and orders."""
    ACTIVE = 'active', _('Active')
    INACTIVE = 'inactive', _('Inactive')


class StockLevel(models.TextChoices):
    """Derived classification used by dashboards and alerts."""
    IN_STOCK = 'in_stock', _('In stock')
    LOW_STOCK = 'low_stock', _('Low stock')
    OUT_OF_STOCK = 'out_of_stock', _('Out of stock')


class ReservationStatus(models.TextChoices):
    """
    Reservation lifecycle status.

    ACTIVE is the only non-terminal state.
    """
    ACTIVE = 'active', _('Active')
    FULFILLED = 'fulfilled', _('Fulfilled')
    CANCELLED = 'cancelled', _('Cancelled')
    EXPIRED = 'expired', _('Expired')


class AuditOperation(models.TextChoices):
    """What a stock-affecting operation did."""
    INCREASE = 'increase', _('Increase')
    DECREASE = 'decrease', _('Decrease')
    SET = 'set', _('Set')
    RESERVE = 'reserve', _('Reserve')
    RELEASE = 'release', _('Release')
    FULFILL = 'fulfill', _('Fulfill')


class AuditReason(models.TextChoices):
    """Why a stock-affecting operation happened."""
    RECEIVED = 'received', _('Received')
    DAMAGED = 'damaged', _('Damaged')
    LOST = 'lost', _('Lost')
    CORRECTION = 'correction', _('Correction')
    RETURN = 'return', _('Return')
    SALE = 'sale', _('Sale')
    TRANSFER = 'transfer', _('Transfer')
    ORDER_RESERVATION = 'order_reservation', _('Order reservation')
    ORDER_FULFILLMENT = 'order_fulfillment', _('Order fulfillment')
    ORDER_CANCELLATION = 'order_cancellation', _('Order cancellation')
    OTHER = 'other', _('Other')


class AdjustmentType(models.TextChoices):
    """Administrative adjustment kinds."""
    INCREASE = 'increase', _('Increase')
    DECREASE = 'decrease', _('Decrease')
    SET = 'set', _('Set')


class OrderStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    CONFIRMED = 'confirmed', _('Confirmed')
    DELIVERED = 'delivered', _('Delivered')
    CANCELLED = 'cancelled', _('Cancelled')


class AlertType(models.TextChoices):
    LOW_STOCK = 'low_stock', _('Low stock')
    OUT_OF_STOCK = 'out_of_stock', _('Out of stock')


class AlertStatus(models.TextChoices):
    ACTIVE = 'active', _('Active')
    ACKNOWLEDGED = 'acknowledged', _('Acknowledged')
    RESOLVED = 'resolved', _('Resolved')

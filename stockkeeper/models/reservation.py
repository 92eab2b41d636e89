"""
Reservation model — time-bounded hold on stock.
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockkeeper.exceptions import StockError
from stockkeeper.models.enums import ReservationStatus


TERMINAL_STATUSES = (
    ReservationStatus.FULFILLED,
    ReservationStatus.CANCELLED,
    ReservationStatus.EXPIRED,
)


class ReservationQuerySet(models.QuerySet):

    def active(self):
        return self.filter(status=ReservationStatus.ACTIVE)

    def expired(self, now=None):
        """Active reservations past their expiry (not yet swept)."""
        now = now or timezone.now()
        return self.active().filter(expires_at__isnull=False, expires_at__lt=now)

    def for_order(self, order_ref):
        return self.filter(order_ref=order_ref)


class Reservation(models.Model):
    """
    Quantity held for an order or cart.

    LIFECYCLE:

        ┌────────┐   fulfill()   ┌───────────┐
        │ ACTIVE │ ────────────► │ FULFILLED │
        └────────┘               └───────────┘
          │    │   cancel()      ┌───────────┐
          │    └───────────────► │ CANCELLED │
          │                      └───────────┘
          │  sweep_expired()     ┌───────────┐
          └────────────────────► │  EXPIRED  │
                                 └───────────┘

    Terminal states are immutable. Expiry is lazy: an active reservation
    past expires_at keeps holding stock until a sweep expires it.
    """

    product = models.ForeignKey(
        'stockkeeper.StockRecord',
        on_delete=models.PROTECT,
        related_name='reservations',
        verbose_name=_('Product'),
    )
    order_ref = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Order reference'),
        help_text=_('Order, cart or session the units are held for'),
    )
    order = models.ForeignKey(
        'stockkeeper.Order',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reservations',
        verbose_name=_('Order'),
        help_text=_('Set when an order consumes the reservation'),
    )

    quantity = models.PositiveIntegerField(verbose_name=_('Quantity'))
    status = models.CharField(
        max_length=20,
        choices=ReservationStatus.choices,
        default=ReservationStatus.ACTIVE,
        db_index=True,
        verbose_name=_('Status'),
    )

    created_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Expires at'),
    )
    resolved_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Resolved at'),
        help_text=_('When the reservation reached a terminal state'),
    )
    notes = models.TextField(blank=True, default='')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )

    objects = ReservationQuerySet.as_manager()

    class Meta:
        verbose_name = _('Reservation')
        verbose_name_plural = _('Reservations')
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name='reservation_quantity_positive',
            ),
            models.UniqueConstraint(
                fields=['product', 'order_ref'],
                condition=Q(status='active'),
                name='one_active_reservation_per_order_product',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'expires_at'], name='reservation_status_expiry_idx'),
            models.Index(fields=['product', 'status'], name='reservation_product_status_idx'),
        ]

    @property
    def reservation_id(self) -> str:
        """Return reservation identifier in standard format."""
        return f"res:{self.pk}"

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_expired(self) -> bool:
        """Past expires_at, whether or not a sweep has run."""
        if self.expires_at is None:
            return False
        return timezone.now() > self.expires_at

    def transition_to(self, status):
        """
        Move to a terminal status.

        Does not save; callers persist inside their transaction.

        Raises:
            StockError('INVALID_RESERVATION_TRANSITION')
        """
        if self.status != ReservationStatus.ACTIVE or status not in TERMINAL_STATUSES:
            raise StockError(
                'INVALID_RESERVATION_TRANSITION',
                reservation_id=self.reservation_id,
                current=self.status,
                requested=status,
            )
        self.status = status
        self.resolved_at = timezone.now()

    def __str__(self) -> str:
        return f"{self.reservation_id} {self.quantity}x {self.product_id} ({self.status})"

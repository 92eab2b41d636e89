"""
Stock reservations — reserve, fulfill, cancel and expire holds.

Lock order inside every transaction: stock record first, then the
reservation rows of that record.
"""

import logging
from datetime import timedelta

from django.utils import timezone

from stockkeeper.conf import stockkeeper_settings
from stockkeeper.exceptions import StockError
from stockkeeper.models.enums import AuditOperation, AuditReason, ReservationStatus
from stockkeeper.models.reservation import Reservation
from stockkeeper.results import ReservationResult
from stockkeeper.services.audit import AuditLog
from stockkeeper.services.ledger import StockLedger, unit_of_work

logger = logging.getLogger('stockkeeper')


def _parse_reservation_id(reservation_id: str) -> int:
    """Extract PK from reservation_id."""
    if isinstance(reservation_id, str) and reservation_id.startswith('res:'):
        try:
            return int(reservation_id.split(':')[1])
        except (IndexError, ValueError):
            pass
    raise StockError('INVALID_RESERVATION', reservation_id=reservation_id)


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _expires_at(ttl_minutes):
    """None means no expiry."""
    if ttl_minutes is None:
        ttl_minutes = stockkeeper_settings.RESERVATION_TTL_MINUTES
    if not _is_count(ttl_minutes) or ttl_minutes < 0:
        raise StockError('INVALID_QUANTITY', ttl_minutes=ttl_minutes)
    if ttl_minutes == 0:
        return None
    return timezone.now() + timedelta(minutes=ttl_minutes)


def _result(reservation, record, already_terminal=False) -> ReservationResult:
    return ReservationResult(
        reservation_id=reservation.reservation_id,
        product_id=record.pk,
        order_ref=reservation.order_ref,
        quantity=reservation.quantity,
        status=reservation.status,
        available_after=record.available if record.is_active else 0,
        already_terminal=already_terminal,
    )


class StockReservations:
    """Reservation lifecycle methods."""

    # ══════════════════════════════════════════════════════════════
    # RESERVE
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def reserve(cls, product_id, order_ref, quantity, ttl_minutes=None,
                notes='', actor=None) -> ReservationResult:
        """
        Hold stock for an order or cart.

        A second reserve for the same (product, order_ref) tops up the
        existing active reservation and renews its expiry.

        Args:
            ttl_minutes: Lifetime; None uses RESERVATION_TTL_MINUTES, 0 never expires

        Raises:
            StockError('INVALID_QUANTITY')
            StockError('PRODUCT_NOT_FOUND')
            StockError('PRODUCT_INACTIVE')
            StockError('INSUFFICIENT_STOCK'): data has available, requested
        """
        if not _is_count(quantity) or quantity <= 0:
            raise StockError('INVALID_QUANTITY', requested=quantity)
        expires_at = _expires_at(ttl_minutes)

        with unit_of_work('reserve'):
            record = StockLedger.lock(product_id)
            if not record.is_active:
                raise StockError('PRODUCT_INACTIVE', product_id=product_id)

            if stockkeeper_settings.SWEEP_ON_RESERVE:
                cls._expire_overdue(record, timezone.now())

            if quantity > record.available:
                logger.info(
                    "stock.reservation.rejected",
                    extra={
                        "product_id": product_id,
                        "order_ref": order_ref,
                        "requested": quantity,
                        "available": record.available,
                    },
                )
                raise StockError(
                    'INSUFFICIENT_STOCK',
                    product_id=product_id,
                    available=record.available,
                    requested=quantity,
                )

            existing = None
            if order_ref:
                existing = (
                    Reservation.objects.select_for_update()
                    .active()
                    .filter(product=record, order_ref=order_ref)
                    .first()
                )

            before = StockLedger.apply(record, reserved_delta=quantity)

            if existing:
                existing.quantity += quantity
                existing.expires_at = expires_at
                if notes:
                    existing.notes = f"{existing.notes}\n{notes}".strip()
                existing.save(update_fields=['quantity', 'expires_at', 'notes'])
                reservation = existing
            else:
                reservation = Reservation.objects.create(
                    product=record,
                    order_ref=order_ref,
                    quantity=quantity,
                    expires_at=expires_at,
                    notes=notes or '',
                    created_by=actor,
                )

            AuditLog.append(
                record, before,
                operation=AuditOperation.RESERVE,
                reason=AuditReason.ORDER_RESERVATION,
                notes=notes,
                order_ref=order_ref,
                actor=actor,
            )

        logger.info(
            "stock.reservation.created",
            extra={
                "reservation_id": reservation.reservation_id,
                "product_id": product_id,
                "order_ref": order_ref,
                "quantity": quantity,
                "topped_up": existing is not None,
            },
        )
        return _result(reservation, record)

    # ══════════════════════════════════════════════════════════════
    # FULFILL / CANCEL BY (PRODUCT, ORDER)
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def fulfill(cls, product_id, order_ref, quantity=None, notes='',
                actor=None) -> ReservationResult:
        """
        Turn the active reservation for (product, order_ref) into a sale.

        Physical stock drops by quantity (default: everything reserved).
        Any unfulfilled remainder is released.

        Raises:
            StockError('RESERVATION_NOT_FOUND')
            StockError('INVALID_QUANTITY'): quantity exceeds the reservation
            StockError('INVALID_RESERVATION_TRANSITION'): Already cancelled/expired
        """
        with unit_of_work('fulfill'):
            record = StockLedger.lock(product_id)
            reservation = cls._reservation_for_order(record, order_ref)

            if reservation.status == ReservationStatus.FULFILLED:
                return _result(reservation, record, already_terminal=True)

            cls._fulfill_locked(record, reservation, quantity, notes, actor)

        return _result(reservation, record)

    @classmethod
    def cancel(cls, product_id, order_ref, notes='', actor=None) -> ReservationResult:
        """
        Release the active reservation for (product, order_ref).

        Raises:
            StockError('RESERVATION_NOT_FOUND')
            StockError('INVALID_RESERVATION_TRANSITION'): Already fulfilled
        """
        with unit_of_work('cancel'):
            record = StockLedger.lock(product_id)
            reservation = cls._reservation_for_order(record, order_ref)

            if reservation.status in (ReservationStatus.CANCELLED, ReservationStatus.EXPIRED):
                return _result(reservation, record, already_terminal=True)

            cls._release_locked(
                record, reservation,
                status=ReservationStatus.CANCELLED,
                reason=AuditReason.ORDER_CANCELLATION,
                notes=notes,
                actor=actor,
            )

        return _result(reservation, record)

    # ══════════════════════════════════════════════════════════════
    # FULFILL / CANCEL BY RESERVATION ID
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def fulfill_reservation(cls, reservation_id, quantity=None, notes='',
                            actor=None) -> ReservationResult:
        pk = _parse_reservation_id(reservation_id)

        with unit_of_work('fulfill'):
            record, reservation = cls._lock_reservation(pk, reservation_id)

            if reservation.status == ReservationStatus.FULFILLED:
                return _result(reservation, record, already_terminal=True)

            cls._fulfill_locked(record, reservation, quantity, notes, actor)

        return _result(reservation, record)

    @classmethod
    def cancel_reservation(cls, reservation_id, notes='', actor=None) -> ReservationResult:
        pk = _parse_reservation_id(reservation_id)

        with unit_of_work('cancel'):
            record, reservation = cls._lock_reservation(pk, reservation_id)

            if reservation.status in (ReservationStatus.CANCELLED, ReservationStatus.EXPIRED):
                return _result(reservation, record, already_terminal=True)

            cls._release_locked(
                record, reservation,
                status=ReservationStatus.CANCELLED,
                reason=AuditReason.ORDER_CANCELLATION,
                notes=notes,
                actor=actor,
            )

        return _result(reservation, record)

    @classmethod
    def get_reservation(cls, reservation_id) -> Reservation:
        pk = _parse_reservation_id(reservation_id)
        try:
            return Reservation.objects.get(pk=pk)
        except Reservation.DoesNotExist:
            raise StockError('RESERVATION_NOT_FOUND', reservation_id=reservation_id) from None

    # ══════════════════════════════════════════════════════════════
    # EXPIRY
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def sweep_expired(cls, now=None) -> int:
        """
        Expire every active reservation past expires_at.

        Works product by product, each batch in its own transaction with
        the stock record locked. Safe to run concurrently with checkout.

        Returns:
            Number of reservations expired
        """
        now = now or timezone.now()
        batch_size = stockkeeper_settings.EXPIRED_BATCH_SIZE

        product_ids = list(
            Reservation.objects.expired(now)
            .order_by('product_id')
            .values_list('product_id', flat=True)
            .distinct()
        )

        total = 0
        for product_id in product_ids:
            while True:
                with unit_of_work('sweep_expired'):
                    record = StockLedger.lock(product_id)
                    expired = cls._expire_overdue(record, now, limit=batch_size)
                total += expired
                if expired < batch_size:
                    break

        if total:
            logger.info(
                "stock.reservation.swept",
                extra={"expired": total, "products": len(product_ids)},
            )
        return total

    @classmethod
    def count_expired(cls, now=None) -> int:
        return Reservation.objects.expired(now).count()

    # ══════════════════════════════════════════════════════════════
    # LOCKED HELPERS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _lock_reservation(cls, pk, reservation_id):
        product_id = (
            Reservation.objects.filter(pk=pk)
            .values_list('product_id', flat=True)
            .first()
        )
        if product_id is None:
            raise StockError('RESERVATION_NOT_FOUND', reservation_id=reservation_id)

        record = StockLedger.lock(product_id)
        reservation = Reservation.objects.select_for_update().get(pk=pk)
        return record, reservation

    @classmethod
    def _reservation_for_order(cls, record, order_ref) -> Reservation:
        """
        Active reservation for (record, order_ref), or the latest terminal
        one so callers can answer repeated calls idempotently.
        """
        candidates = Reservation.objects.select_for_update().filter(
            product=record, order_ref=order_ref,
        )
        reservation = candidates.active().order_by('pk').first()
        if reservation is None:
            reservation = candidates.order_by('-pk').first()
        if reservation is None:
            raise StockError(
                'RESERVATION_NOT_FOUND',
                product_id=record.pk,
                order_ref=order_ref,
            )
        return reservation

    @classmethod
    def _fulfill_locked(cls, record, reservation, quantity, notes, actor):
        reserved = reservation.quantity
        if quantity is None:
            quantity = reserved
        if not _is_count(quantity) or quantity <= 0 or quantity > reserved:
            raise StockError(
                'INVALID_QUANTITY',
                reservation_id=reservation.reservation_id,
                requested=quantity,
                reserved=reserved,
            )

        reservation.transition_to(ReservationStatus.FULFILLED)
        before = StockLedger.apply(
            record,
            physical_delta=-quantity,
            reserved_delta=-reserved,
        )

        if quantity < reserved:
            remainder = f"Fulfilled {quantity} of {reserved}; {reserved - quantity} released"
            notes = f"{notes}\n{remainder}".strip() if notes else remainder
            reservation.notes = f"{reservation.notes}\n{remainder}".strip()
        reservation.save(update_fields=['status', 'resolved_at', 'notes'])

        AuditLog.append(
            record, before,
            operation=AuditOperation.FULFILL,
            reason=AuditReason.ORDER_FULFILLMENT,
            notes=notes,
            order_ref=reservation.order_ref,
            actor=actor,
        )

        logger.info(
            "stock.reservation.fulfilled",
            extra={
                "reservation_id": reservation.reservation_id,
                "product_id": record.pk,
                "quantity": quantity,
                "reserved": reserved,
            },
        )

    @classmethod
    def _release_locked(cls, record, reservation, status, reason, notes='', actor=None):
        reservation.transition_to(status)
        before = StockLedger.apply(record, reserved_delta=-reservation.quantity)
        reservation.save(update_fields=['status', 'resolved_at'])

        AuditLog.append(
            record, before,
            operation=AuditOperation.RELEASE,
            reason=reason,
            notes=notes,
            order_ref=reservation.order_ref,
            actor=actor,
        )

        logger.info(
            f"stock.reservation.{status}",
            extra={
                "reservation_id": reservation.reservation_id,
                "product_id": record.pk,
                "quantity": reservation.quantity,
            },
        )

    @classmethod
    def _expire_overdue(cls, record, now, limit=None) -> int:
        """Expire overdue reservations of an already locked record."""
        overdue = list(
            Reservation.objects.select_for_update()
            .expired(now)
            .filter(product=record)
            .order_by('expires_at', 'pk')[:limit]
        )
        for reservation in overdue:
            cls._release_locked(
                record, reservation,
                status=ReservationStatus.EXPIRED,
                reason=AuditReason.OTHER,
                notes=f"Reservation {reservation.reservation_id} expired at "
                      f"{reservation.expires_at.isoformat()}",
            )
        return len(overdue)

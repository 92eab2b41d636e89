"""
Tests for the reservation lifecycle.
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from stockkeeper import stock, StockError
from stockkeeper.models import AuditEntry, Reservation, ReservationStatus, StockRecord


pytestmark = pytest.mark.django_db


def counters(product_id):
    record = StockRecord.objects.get(pk=product_id)
    return record.physical_stock, record.reserved_stock


class TestReserve:
    """Tests for stock.reserve()."""

    def test_reserve_holds_stock(self, product, user):
        result = stock.reserve('mug', 'cart-1', 3, actor=user)

        assert result.reservation_id.startswith('res:')
        assert result.available_after == 7
        assert result.status == 'active'
        assert counters('mug') == (10, 3)

        entry = AuditEntry.objects.filter(product=product).last()
        assert entry.operation == 'reserve'
        assert entry.reason == 'order_reservation'
        assert entry.physical_stock_change == 0
        assert (entry.reserved_stock_before, entry.reserved_stock_after) == (0, 3)
        assert entry.order_ref == 'cart-1'
        assert entry.actor == user

    def test_insufficient_stock(self, product):
        with pytest.raises(StockError) as exc:
            stock.reserve('mug', 'cart-1', 11)

        assert exc.value.code == 'INSUFFICIENT_STOCK'
        assert exc.value.available == 10
        assert exc.value.requested == 11
        assert counters('mug') == (10, 0)
        assert not Reservation.objects.exists()
        assert AuditEntry.objects.filter(product=product).count() == 1

    @pytest.mark.parametrize('quantity', [0, -1, '3', 1.5, True])
    def test_invalid_quantity(self, product, quantity):
        with pytest.raises(StockError) as exc:
            stock.reserve('mug', 'cart-1', quantity)

        assert exc.value.code == 'INVALID_QUANTITY'

    def test_inactive_product(self, inactive_product):
        with pytest.raises(StockError) as exc:
            stock.reserve('teapot', 'cart-1', 1)

        assert exc.value.code == 'PRODUCT_INACTIVE'

    def test_unknown_product(self, db):
        with pytest.raises(StockError) as exc:
            stock.reserve('ghost', 'cart-1', 1)

        assert exc.value.code == 'PRODUCT_NOT_FOUND'

    def test_same_order_tops_up(self, product):
        """One active reservation per (product, order)."""
        first = stock.reserve('mug', 'cart-1', 2)
        second = stock.reserve('mug', 'cart-1', 3)

        assert first.reservation_id == second.reservation_id
        assert second.quantity == 5
        assert Reservation.objects.active().count() == 1
        assert counters('mug') == (10, 5)
        assert AuditEntry.objects.filter(product=product, operation='reserve').count() == 2

    def test_default_expiry_from_settings(self, product, settings):
        settings.STOCKKEEPER = {'RESERVATION_TTL_MINUTES': 30}

        result = stock.reserve('mug', 'cart-1', 1)

        reservation = stock.get_reservation(result.reservation_id)
        remaining = reservation.expires_at - timezone.now()
        assert timedelta(minutes=29) < remaining <= timedelta(minutes=30)

    def test_zero_ttl_never_expires(self, product):
        result = stock.reserve('mug', 'cart-1', 1, ttl_minutes=0)

        assert stock.get_reservation(result.reservation_id).expires_at is None

    def test_overdue_reservations_swept_before_reserving(self, product, make_overdue):
        stale = stock.reserve('mug', 'cart-1', 8)
        make_overdue(stale.reservation_id)

        result = stock.reserve('mug', 'cart-2', 5)

        assert result.available_after == 5
        assert stock.get_reservation(stale.reservation_id).status == 'expired'
        assert counters('mug') == (10, 5)

    def test_lazy_sweep_can_be_disabled(self, product, make_overdue, settings):
        settings.STOCKKEEPER = {'SWEEP_ON_RESERVE': False}
        stale = stock.reserve('mug', 'cart-1', 8)
        make_overdue(stale.reservation_id)

        with pytest.raises(StockError) as exc:
            stock.reserve('mug', 'cart-2', 5)

        assert exc.value.code == 'INSUFFICIENT_STOCK'
        assert exc.value.available == 2


class TestFulfill:
    """Tests for stock.fulfill()."""

    def test_fulfill_decrements_physical(self, product):
        stock.reserve('mug', 'cart-1', 3)

        result = stock.fulfill('mug', 'cart-1')

        assert result.status == 'fulfilled'
        assert result.already_terminal is False
        assert counters('mug') == (7, 0)

        entry = AuditEntry.objects.filter(product=product).last()
        assert entry.operation == 'fulfill'
        assert entry.reason == 'order_fulfillment'
        assert entry.physical_stock_change == -3
        assert (entry.reserved_stock_before, entry.reserved_stock_after) == (3, 0)

    def test_partial_fulfill_releases_remainder(self, product):
        stock.reserve('mug', 'cart-1', 3)

        result = stock.fulfill('mug', 'cart-1', quantity=2)

        assert counters('mug') == (8, 0)
        assert result.available_after == 8
        reservation = stock.get_reservation(result.reservation_id)
        assert 'released' in reservation.notes

    def test_fulfill_more_than_reserved(self, product):
        stock.reserve('mug', 'cart-1', 3)

        with pytest.raises(StockError) as exc:
            stock.fulfill('mug', 'cart-1', quantity=4)

        assert exc.value.code == 'INVALID_QUANTITY'
        assert counters('mug') == (10, 3)
        assert Reservation.objects.get().status == 'active'

    def test_fulfill_without_reservation(self, product):
        with pytest.raises(StockError) as exc:
            stock.fulfill('mug', 'cart-1')

        assert exc.value.code == 'RESERVATION_NOT_FOUND'

    def test_fulfill_twice_is_noop(self, product):
        stock.reserve('mug', 'cart-1', 3)
        stock.fulfill('mug', 'cart-1')

        again = stock.fulfill('mug', 'cart-1')

        assert again.already_terminal is True
        assert counters('mug') == (7, 0)
        assert AuditEntry.objects.filter(product=product, operation='fulfill').count() == 1

    def test_fulfill_after_cancel_rejected(self, product):
        stock.reserve('mug', 'cart-1', 3)
        stock.cancel('mug', 'cart-1')

        with pytest.raises(StockError) as exc:
            stock.fulfill('mug', 'cart-1')

        assert exc.value.code == 'INVALID_RESERVATION_TRANSITION'
        assert counters('mug') == (10, 0)

    def test_overdue_reservation_still_fulfillable(self, product, make_overdue):
        """Expiry is lazy: until swept, the hold is still good."""
        result = stock.reserve('mug', 'cart-1', 3)
        make_overdue(result.reservation_id)

        stock.fulfill('mug', 'cart-1')

        assert counters('mug') == (7, 0)

    def test_inactive_product_honours_existing_reservation(self, product):
        stock.reserve('mug', 'cart-1', 3)
        stock.deactivate('mug')

        stock.fulfill('mug', 'cart-1')

        assert counters('mug') == (7, 0)


class TestCancel:
    """Tests for stock.cancel()."""

    def test_cancel_releases_hold(self, product):
        stock.reserve('mug', 'cart-1', 3)

        result = stock.cancel('mug', 'cart-1')

        assert result.status == 'cancelled'
        assert counters('mug') == (10, 0)

        entry = AuditEntry.objects.filter(product=product).last()
        assert entry.operation == 'release'
        assert entry.reason == 'order_cancellation'
        assert entry.physical_stock_change == 0

    def test_cancel_twice_is_noop(self, product):
        stock.reserve('mug', 'cart-1', 3)
        stock.cancel('mug', 'cart-1')
        entries = AuditEntry.objects.count()

        again = stock.cancel('mug', 'cart-1')

        assert again.already_terminal is True
        assert again.message == 'Reservation already cancelled'
        assert AuditEntry.objects.count() == entries
        assert counters('mug') == (10, 0)

    def test_cancel_after_fulfill_rejected(self, product):
        stock.reserve('mug', 'cart-1', 3)
        stock.fulfill('mug', 'cart-1')

        with pytest.raises(StockError) as exc:
            stock.cancel('mug', 'cart-1')

        assert exc.value.code == 'INVALID_RESERVATION_TRANSITION'

    def test_cancel_expired_is_noop(self, product, make_overdue):
        result = stock.reserve('mug', 'cart-1', 3)
        make_overdue(result.reservation_id)
        stock.sweep_expired()

        again = stock.cancel('mug', 'cart-1')

        assert again.already_terminal is True
        assert again.status == 'expired'

    def test_new_reservation_after_cancel(self, product):
        """A cancelled hold does not block a fresh one for the same order."""
        stock.reserve('mug', 'cart-1', 3)
        stock.cancel('mug', 'cart-1')

        result = stock.reserve('mug', 'cart-1', 2)

        assert result.quantity == 2
        assert Reservation.objects.filter(order_ref='cart-1').count() == 2


class TestByReservationId:
    """Tests for stock.fulfill_reservation() / stock.cancel_reservation()."""

    def test_fulfill_by_id(self, product):
        result = stock.reserve('mug', 'cart-1', 4)

        fulfilled = stock.fulfill_reservation(result.reservation_id)

        assert fulfilled.status == 'fulfilled'
        assert counters('mug') == (6, 0)

    def test_cancel_by_id(self, product):
        result = stock.reserve('mug', None, 4)

        cancelled = stock.cancel_reservation(result.reservation_id)

        assert cancelled.status == 'cancelled'
        assert counters('mug') == (10, 0)

    @pytest.mark.parametrize('reservation_id', ['abc', 'res:', 'res:x', 'hold:1', None])
    def test_malformed_id(self, reservation_id):
        with pytest.raises(StockError) as exc:
            stock.cancel_reservation(reservation_id)

        assert exc.value.code == 'INVALID_RESERVATION'

    def test_unknown_id(self, product):
        with pytest.raises(StockError) as exc:
            stock.fulfill_reservation('res:9999')

        assert exc.value.code == 'RESERVATION_NOT_FOUND'


class TestTransitions:
    """Tests for Reservation.transition_to()."""

    def test_terminal_states_are_final(self, product):
        result = stock.reserve('mug', 'cart-1', 1)
        reservation = stock.get_reservation(result.reservation_id)
        reservation.transition_to(ReservationStatus.CANCELLED)

        for status in (ReservationStatus.FULFILLED, ReservationStatus.EXPIRED, ReservationStatus.ACTIVE):
            with pytest.raises(StockError) as exc:
                reservation.transition_to(status)
            assert exc.value.code == 'INVALID_RESERVATION_TRANSITION'

    def test_cannot_transition_to_active(self, product):
        result = stock.reserve('mug', 'cart-1', 1)
        reservation = stock.get_reservation(result.reservation_id)

        with pytest.raises(StockError):
            reservation.transition_to(ReservationStatus.ACTIVE)

        assert reservation.resolved_at is None


class TestSweepExpired:
    """Tests for stock.sweep_expired()."""

    def test_sweep_expires_overdue_only(self, product, make_overdue):
        overdue = stock.reserve('mug', 'cart-1', 3)
        stock.reserve('mug', 'cart-2', 2)
        make_overdue(overdue.reservation_id)

        assert stock.sweep_expired() == 1

        assert counters('mug') == (10, 2)
        entry = AuditEntry.objects.filter(product=product).last()
        assert entry.operation == 'release'
        assert entry.reason == 'other'
        assert 'expired' in entry.notes
        assert entry.actor is None

    def test_sweep_in_batches(self, product, make_overdue, settings):
        settings.STOCKKEEPER = {'EXPIRED_BATCH_SIZE': 2, 'SWEEP_ON_RESERVE': False}
        for n in range(5):
            result = stock.reserve('mug', f'cart-{n}', 1)
            make_overdue(result.reservation_id)

        assert stock.sweep_expired() == 5
        assert counters('mug') == (10, 0)
        assert Reservation.objects.filter(status='expired').count() == 5

    def test_sweep_across_products(self, product, other_product, make_overdue):
        make_overdue(stock.reserve('mug', 'cart-1', 1).reservation_id)
        make_overdue(stock.reserve('plate', 'cart-1', 1).reservation_id)

        assert stock.sweep_expired() == 2

    def test_reservation_without_expiry_survives(self, product):
        stock.reserve('mug', 'cart-1', 3, ttl_minutes=0)

        assert stock.sweep_expired() == 0
        assert counters('mug') == (10, 3)

    def test_nothing_to_sweep(self, product):
        assert stock.sweep_expired() == 0

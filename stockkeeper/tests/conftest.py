"""
Pytest fixtures for Stockkeeper tests.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from stockkeeper import stock
from stockkeeper.adapters import reset_order_notifier
from stockkeeper.models import Reservation


User = get_user_model()


@pytest.fixture(autouse=True)
def fresh_notifier():
    """Notifier is cached per process; tests swap it through settings."""
    reset_order_notifier()
    yield
    reset_order_notifier()


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='storekeeper',
        password='testpass123'
    )


@pytest.fixture
def product(db):
    """Active product with 10 units on hand."""
    return stock.register(
        'mug',
        'MUG-001',
        'Blue mug',
        price=Decimal('12000.00'),
        initial_stock=10,
        reorder_point=2,
        reorder_quantity=10,
        max_stock_level=50,
    )


@pytest.fixture
def other_product(db):
    """Second active product with 5 units on hand."""
    return stock.register(
        'plate',
        'PLT-001',
        'Dinner plate',
        price=Decimal('8000.00'),
        initial_stock=5,
        reorder_point=1,
    )


@pytest.fixture
def inactive_product(db):
    """Discontinued product that still has stock."""
    return stock.register(
        'teapot',
        'TEA-001',
        'Teapot',
        price=Decimal('30000.00'),
        initial_stock=4,
        status='inactive',
        reorder_point=0,
    )


@pytest.fixture
def make_overdue():
    """Push a reservation's expiry into the past without sweeping it."""

    def _make_overdue(reservation_id, minutes=5):
        pk = int(reservation_id.split(':')[1])
        Reservation.objects.filter(pk=pk).update(
            expires_at=timezone.now() - timedelta(minutes=minutes)
        )
        return Reservation.objects.get(pk=pk)

    return _make_overdue

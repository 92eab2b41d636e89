"""
Tests for the JSON endpoints.
"""

import json

import pytest
from django.urls import reverse

from stockkeeper import stock
from stockkeeper.models import Order, StockRecord


pytestmark = pytest.mark.django_db


def send(client, method, name, payload=None, **kwargs):
    url = reverse(f'stockkeeper:{name}', kwargs=kwargs or None)
    return getattr(client, method)(
        url,
        data=json.dumps(payload or {}),
        content_type='application/json',
    )


class TestStockLevelEndpoint:

    def test_get(self, client, product):
        response = client.get(reverse('stockkeeper:stock-level', args=['mug']))

        assert response.status_code == 200
        assert response.json() == {
            'product_id': 'mug',
            'physical': 10,
            'reserved': 0,
            'available': 10,
            'status': 'active',
            'stock_status': 'in_stock',
            'flags': [],
        }

    def test_unknown_product(self, client, db):
        response = client.get(reverse('stockkeeper:stock-level', args=['ghost']))

        assert response.status_code == 404
        assert response.json()['code'] == 'PRODUCT_NOT_FOUND'

    def test_method_not_allowed(self, client, product):
        response = send(client, 'post', 'stock-level', product_id='mug')

        assert response.status_code == 405


class TestCheckAvailabilityEndpoint:

    def test_check(self, client, product, other_product):
        stock.reserve('mug', 'cart-1', 8)

        response = send(client, 'post', 'check-availability', {
            'items': [
                {'product_id': 'mug', 'quantity': 3},
                {'product_id': 'plate', 'quantity': 2},
            ],
        })

        assert response.status_code == 200
        body = response.json()
        assert body['all_available'] is False
        assert body['unavailable_items'] == [{
            'product_id': 'mug',
            'code': 'INSUFFICIENT_STOCK',
            'requested': 3,
            'available': 2,
        }]
        assert body['items'][0]['physical'] == 10
        assert body['items'][0]['reserved'] == 8
        assert body['items'][1]['is_available'] is True
        assert stock.available('mug') == 2

    def test_check_requires_items(self, client, db):
        response = send(client, 'post', 'check-availability', {})

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_REQUEST'


class TestReservationEndpoints:

    def test_reserve(self, client, product):
        response = send(client, 'post', 'reservations', {
            'product_id': 'mug', 'order_id': 'cart-1', 'quantity': 3,
        })

        assert response.status_code == 201
        body = response.json()
        assert body['reservation_id'].startswith('res:')
        assert body['available_after'] == 7
        assert body['status'] == 'active'

    def test_reserve_insufficient(self, client, product):
        response = send(client, 'post', 'reservations', {
            'product_id': 'mug', 'order_id': 'cart-1', 'quantity': 30,
        })

        assert response.status_code == 409
        assert response.json()['code'] == 'INSUFFICIENT_STOCK'
        assert response.json()['data'] == {'product_id': 'mug', 'available': 10, 'requested': 30}

    def test_missing_fields(self, client, product):
        response = send(client, 'post', 'reservations', {'product_id': 'mug'})

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_REQUEST'
        assert response.json()['data']['missing'] == ['quantity']

    def test_malformed_json(self, client, product):
        response = client.post(
            reverse('stockkeeper:reservations'),
            data='{not json',
            content_type='application/json',
        )

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_REQUEST'

    def test_cancel_by_reservation_id(self, client, product):
        held = stock.reserve('mug', 'cart-1', 3)

        response = send(client, 'delete', 'reservations', {'reservation_id': held.reservation_id})

        assert response.status_code == 200
        assert response.json()['status'] == 'cancelled'
        assert stock.available('mug') == 10

    def test_cancel_by_order(self, client, product):
        stock.reserve('mug', 'cart-1', 3)

        response = send(client, 'delete', 'reservations', {'product_id': 'mug', 'order_id': 'cart-1'})

        assert response.json()['status'] == 'cancelled'

    def test_fulfill(self, client, product):
        held = stock.reserve('mug', 'cart-1', 3)

        response = send(client, 'post', 'reservation-fulfill', {'reservation_id': held.reservation_id})

        assert response.status_code == 200
        assert response.json()['status'] == 'fulfilled'
        assert StockRecord.objects.get(pk='mug').physical_stock == 7

    def test_fulfill_twice_reports_terminal(self, client, product):
        held = stock.reserve('mug', 'cart-1', 3)
        send(client, 'post', 'reservation-fulfill', {'reservation_id': held.reservation_id})

        response = send(client, 'post', 'reservation-fulfill', {'reservation_id': held.reservation_id})

        assert response.status_code == 200
        assert response.json()['already_terminal'] is True
        assert StockRecord.objects.get(pk='mug').physical_stock == 7

    def test_sweep(self, client, product, make_overdue):
        held = stock.reserve('mug', 'cart-1', 3)
        make_overdue(held.reservation_id)

        response = send(client, 'post', 'reservation-sweep')

        assert response.json() == {'expired_count': 1}


class TestAdjustmentEndpoints:

    def test_adjust(self, client, product, user):
        client.force_login(user)

        response = send(client, 'post', 'adjustments', {
            'product_id': 'mug', 'type': 'increase', 'quantity': 5, 'reason': 'received',
        })

        assert response.status_code == 200
        assert response.json()['new_physical_stock'] == 15
        entry = stock.history('mug').last()
        assert entry.actor == user

    def test_adjust_below_reserved(self, client, product):
        stock.reserve('mug', 'cart-1', 8)

        response = send(client, 'post', 'adjustments', {
            'product_id': 'mug', 'type': 'decrease', 'quantity': 5, 'reason': 'damaged',
        })

        assert response.status_code == 409
        assert response.json()['code'] == 'INSUFFICIENT_UNRESERVED_STOCK'

    def test_bulk(self, client, product, other_product):
        response = send(client, 'put', 'adjustments-bulk', {
            'reason': 'correction',
            'items': [
                {'product_id': 'mug', 'type': 'set', 'quantity': 4},
                {'product_id': 'ghost', 'type': 'set', 'quantity': 4},
            ],
        })

        assert response.status_code == 200
        body = response.json()
        assert body['updated_count'] == 1
        assert body['errors'][0]['code'] == 'PRODUCT_NOT_FOUND'

    def test_bulk_requires_list(self, client, product):
        response = send(client, 'put', 'adjustments-bulk', {'items': 'mug'})

        assert response.status_code == 400

    def test_return(self, client, product):
        response = send(client, 'post', 'returns', {
            'product_id': 'mug', 'order_id': 'ORD-1-ABCD', 'quantity': 2,
        })

        assert response.status_code == 200
        assert response.json()['new_physical_stock'] == 12


class TestOrderEndpoints:

    def test_create(self, client, product):
        response = send(client, 'post', 'orders', {
            'line_items': [{'product_id': 'mug', 'quantity': 2, 'unit_price': '12000.00'}],
            'order_fields': {'customer_name': 'Amina'},
        })

        assert response.status_code == 201
        body = response.json()
        assert body['status'] == 'pending'
        assert body['total_amount'] == '24000.00'
        assert Order.objects.get(pk=body['order_id']).customer_name == 'Amina'

    def test_create_rejected(self, client, product):
        response = send(client, 'post', 'orders', {
            'line_items': [{'product_id': 'mug', 'quantity': 20, 'unit_price': '12000.00'}],
        })

        assert response.status_code == 409
        body = response.json()
        assert body['code'] == 'INSUFFICIENT_STOCK'
        assert body['data']['failed_products'][0]['product_id'] == 'mug'
        assert not Order.objects.exists()

    def test_create_invalid(self, client, product):
        response = send(client, 'post', 'orders', {'line_items': []})

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_ORDER'

    def test_create_with_oversized_price(self, client, product):
        response = send(client, 'post', 'orders', {
            'line_items': [{'product_id': 'mug', 'quantity': 1, 'unit_price': '1e30'}],
        })

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_ORDER'
        assert not Order.objects.exists()

    def test_cancel(self, client, product):
        order = stock.create_order([{'product_id': 'mug', 'quantity': 2, 'unit_price': '10'}])

        response = send(client, 'post', 'order-cancel', {'reason': 'Duplicate'}, order_id=order.order_id)

        assert response.status_code == 200
        assert response.json()['status'] == 'cancelled'
        assert stock.available('mug') == 10

    def test_cancel_unknown(self, client, db):
        response = send(client, 'post', 'order-cancel', order_id=999)

        assert response.status_code == 404


class TestFeedEndpoints:

    def test_audit(self, client, product):
        stock.reserve('mug', 'cart-1', 3)

        response = client.get(reverse('stockkeeper:audit'), {'product_id': 'mug', 'sort_order': 'asc'})

        assert response.status_code == 200
        body = response.json()
        assert body['total'] == 2
        assert [entry['operation'] for entry in body['entries']] == ['increase', 'reserve']
        assert body['entries'][1]['order_id'] == 'cart-1'

    def test_audit_invalid_filter(self, client, db):
        response = client.get(reverse('stockkeeper:audit'), {'sort_by': 'nope'})

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_QUERY'

    def test_alerts(self, client, product):
        stock.adjust('mug', 'set', 1, 'correction')
        stock.check_reorder_alerts('mug')

        response = client.get(reverse('stockkeeper:alerts'))

        alerts = response.json()['alerts']
        assert len(alerts) == 1
        assert alerts[0]['product_id'] == 'mug'
        assert alerts[0]['product_name'] == 'Blue mug'
        assert alerts[0]['suggested_quantity'] == 49

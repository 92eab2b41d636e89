"""
Atomic order fulfillment — create and cancel orders without overselling.

create_order() either commits the order, its items, every stock
decrement and one audit entry per product, or commits nothing.
"""

import logging
import string
from collections import defaultdict
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone
from django.utils.crypto import get_random_string

from stockkeeper.conf import stockkeeper_settings
from stockkeeper.exceptions import StockError
from stockkeeper.models.enums import (
    AuditOperation,
    AuditReason,
    OrderStatus,
    ReservationStatus,
)
from stockkeeper.models.order import Order, OrderItem
from stockkeeper.models.reservation import Reservation
from stockkeeper.results import OrderResult
from stockkeeper.services.audit import AuditLog
from stockkeeper.services.ledger import StockLedger, unit_of_work
from stockkeeper.services.reservations import _parse_reservation_id

logger = logging.getLogger('stockkeeper')

CENT = Decimal('0.01')

# Money columns are DecimalField(max_digits=12, decimal_places=2)
MAX_AMOUNT = Decimal(10) ** 10

TEXT_FIELDS = frozenset({'customer_name', 'customer_email', 'customer_phone', 'notes', 'currency'})
MONEY_FIELDS = frozenset({'tax_amount', 'shipping_amount', 'discount_amount'})
JSON_FIELDS = frozenset({'shipping_address', 'metadata'})
ORDER_FIELDS = TEXT_FIELDS | MONEY_FIELDS | JSON_FIELDS


def generate_order_number() -> str:
    """<PREFIX>-<epoch millis>-<4 random chars>"""
    millis = int(timezone.now().timestamp() * 1000)
    suffix = get_random_string(4, allowed_chars=string.ascii_uppercase + string.digits)
    return f"{stockkeeper_settings.ORDER_NUMBER_PREFIX}-{millis}-{suffix}"


def _money(value):
    """Decimal rounded to cents, or None when not a storable amount."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        amount = Decimal(str(value))
        if not amount.is_finite() or abs(amount) >= MAX_AMOUNT:
            return None
        return amount.quantize(CENT)
    except InvalidOperation:
        return None


def _validate_lines(line_items, problems):
    lines = []
    if not isinstance(line_items, (list, tuple)) or not line_items:
        problems.append({'field': 'line_items', 'message': 'At least one line item is required'})
        return lines

    for index, item in enumerate(line_items):
        if not isinstance(item, dict):
            problems.append({'index': index, 'message': 'Line item must be an object'})
            continue

        product_id = item.get('product_id')
        quantity = item.get('quantity')
        unit_price = _money(item.get('unit_price'))

        if not product_id:
            problems.append({'index': index, 'field': 'product_id', 'message': 'Missing product id'})
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            problems.append({'index': index, 'field': 'quantity', 'message': 'Quantity must be a positive integer'})
            quantity = None
        if unit_price is None or unit_price <= 0:
            problems.append({'index': index, 'field': 'unit_price', 'message': 'Unit price must be positive'})
            unit_price = None

        if quantity is None or unit_price is None or not product_id:
            continue

        line_total = _money(unit_price * quantity)
        if line_total is None:
            problems.append({
                'index': index,
                'field': 'line_total',
                'message': f'Line total must be below {MAX_AMOUNT}',
            })
            continue
        if item.get('line_total') is not None and _money(item['line_total']) != line_total:
            problems.append({
                'index': index,
                'field': 'line_total',
                'message': f'Line total must equal quantity x unit price ({line_total})',
            })
            continue

        lines.append({
            'product_id': str(product_id),
            'quantity': quantity,
            'unit_price': unit_price,
            'line_total': line_total,
        })
    return lines


def _validate_fields(order_fields, problems):
    if order_fields is None:
        return {}
    if not isinstance(order_fields, dict):
        problems.append({'field': 'order_fields', 'message': 'Order fields must be an object'})
        return {}

    fields = {}
    for name, value in order_fields.items():
        if name not in ORDER_FIELDS:
            problems.append({'field': name, 'message': 'Unknown order field'})
        elif name in MONEY_FIELDS:
            amount = _money(value)
            if amount is None or amount < 0:
                problems.append({'field': name, 'message': 'Amount must be zero or positive'})
            else:
                fields[name] = amount
        elif name in JSON_FIELDS:
            if not isinstance(value, dict):
                problems.append({'field': name, 'message': 'Must be an object'})
            else:
                fields[name] = value
        else:
            fields[name] = '' if value is None else str(value)
    return fields


def _validate_reservation_ids(reservation_ids, problems):
    pks = []
    for reservation_id in reservation_ids or ():
        try:
            pks.append(_parse_reservation_id(reservation_id))
        except StockError:
            problems.append({
                'field': 'reservation_ids',
                'message': f'Invalid reservation id: {reservation_id!r}',
            })
    return pks


def _dispatch(event, order_id):
    """Deliver an order event after commit. Never raises."""
    from stockkeeper.adapters import get_order_notifier
    from stockkeeper.protocols.notifications import OrderNotification

    try:
        order = Order.objects.prefetch_related('items').get(pk=order_id)
        getattr(get_order_notifier(), event)(OrderNotification.from_order(order))
    except Exception:
        logger.exception(
            "stock.order.notify_failed",
            extra={"order_id": order_id, "event": event},
        )


class OrderFulfillment:
    """Order creation and cancellation against locked stock."""

    @classmethod
    def create_order(cls, line_items, order_fields=None, reservation_ids=None,
                     actor=None) -> OrderResult:
        """
        Create an order and decrement stock for every line, atomically.

        Args:
            line_items: [{product_id, quantity, unit_price, line_total?}, ...]
            order_fields: customer/shipping/money fields for the order row
            reservation_ids: ["res:<pk>", ...] holds consumed by this order

        Units held by consumed reservations are not checked against
        available stock again; only the unheld part of each product's
        total must be available.

        Raises:
            StockError('INVALID_ORDER'): data['problems'] lists every issue
            StockError('RESERVATION_NOT_FOUND'): Reservation missing or not active
            StockError('INSUFFICIENT_STOCK' | 'PRODUCT_NOT_FOUND' | 'PRODUCT_INACTIVE'):
                data['failed_products'] names every failing product
            StockError('FULFILLMENT_FAILED'): Infrastructure failure, nothing committed
        """
        problems = []
        lines = _validate_lines(line_items, problems)
        fields = _validate_fields(order_fields, problems)
        reservation_pks = _validate_reservation_ids(reservation_ids, problems)

        subtotal = sum((line['line_total'] for line in lines), Decimal('0'))
        total = (
            subtotal
            + fields.get('tax_amount', Decimal('0'))
            + fields.get('shipping_amount', Decimal('0'))
            - fields.get('discount_amount', Decimal('0'))
        )
        if lines and total < 0:
            problems.append({'field': 'discount_amount', 'message': 'Discount exceeds order total'})
        if subtotal >= MAX_AMOUNT or total >= MAX_AMOUNT:
            problems.append({'field': 'total_amount', 'message': f'Order total must be below {MAX_AMOUNT}'})

        if problems:
            logger.info("stock.order.invalid", extra={"problems": problems})
            raise StockError('INVALID_ORDER', problems=problems)

        requested = defaultdict(int)
        for line in lines:
            requested[line['product_id']] += line['quantity']

        with unit_of_work('create_order'):
            records = StockLedger.lock_many(requested)
            reservations = cls._lock_reservations(reservation_pks, requested)

            held = defaultdict(int)
            for reservation in reservations:
                held[reservation.product_id] += reservation.quantity

            failed = []
            for product_id in sorted(requested):
                record = records.get(product_id)
                if record is None:
                    failed.append({
                        'product_id': product_id,
                        'code': 'PRODUCT_NOT_FOUND',
                        'requested': requested[product_id],
                        'available': 0,
                    })
                elif not record.is_active:
                    failed.append({
                        'product_id': product_id,
                        'code': 'PRODUCT_INACTIVE',
                        'requested': requested[product_id],
                        'available': 0,
                    })
                elif requested[product_id] - held[product_id] > record.available:
                    failed.append({
                        'product_id': product_id,
                        'code': 'INSUFFICIENT_STOCK',
                        'requested': requested[product_id],
                        'available': record.available + held[product_id],
                    })

            if failed:
                codes = {item['code'] for item in failed}
                for code in ('INSUFFICIENT_STOCK', 'PRODUCT_NOT_FOUND', 'PRODUCT_INACTIVE'):
                    if code in codes:
                        break
                logger.info(
                    "stock.order.rejected",
                    extra={"code": code, "failed_products": failed},
                )
                raise StockError(
                    code,
                    failed_products=failed,
                    product_id=failed[0]['product_id'],
                    requested=failed[0]['requested'],
                    available=failed[0]['available'],
                )

            order = Order.objects.create(
                order_number=generate_order_number(),
                status=OrderStatus.PENDING,
                subtotal=subtotal,
                total_amount=total,
                placed_by=actor,
                **fields,
            )
            OrderItem.objects.bulk_create([
                OrderItem(
                    order=order,
                    product=records[line['product_id']],
                    product_name=records[line['product_id']].name,
                    product_sku=records[line['product_id']].sku,
                    quantity=line['quantity'],
                    unit_price=line['unit_price'],
                    line_total=line['line_total'],
                )
                for line in lines
            ])

            for product_id in sorted(requested):
                record = records[product_id]
                before = StockLedger.apply(
                    record,
                    physical_delta=-requested[product_id],
                    reserved_delta=-held[product_id],
                )
                AuditLog.append(
                    record, before,
                    operation=AuditOperation.FULFILL,
                    reason=AuditReason.ORDER_FULFILLMENT if held[product_id] else AuditReason.SALE,
                    notes=f"Order {order.order_number}",
                    order_ref=order.order_number,
                    actor=actor,
                )

            for reservation in reservations:
                reservation.transition_to(ReservationStatus.FULFILLED)
                reservation.order = order
                reservation.save(update_fields=['status', 'resolved_at', 'order'])

            transaction.on_commit(lambda: _dispatch('order_placed', order.pk))

        logger.info(
            "stock.order.created",
            extra={
                "order_id": order.pk,
                "order_number": order.order_number,
                "products": len(requested),
                "reservations": len(reservations),
                "total_amount": str(total),
            },
        )
        return OrderResult(
            order_id=order.pk,
            order_number=order.order_number,
            status=order.status,
            total_amount=order.total_amount,
        )

    @classmethod
    def cancel_order(cls, order_id, reason='', actor=None) -> OrderResult:
        """
        Cancel an order and put its units back into physical stock.

        Cancelling twice returns already_cancelled=True and writes nothing.

        Raises:
            StockError('ORDER_NOT_FOUND')
            StockError('ORDER_NOT_CANCELLABLE'): Already delivered
        """
        product_ids = list(
            OrderItem.objects.filter(order_id=order_id)
            .values_list('product_id', flat=True)
        )

        with unit_of_work('cancel_order'):
            records = StockLedger.lock_many(product_ids)
            try:
                order = Order.objects.select_for_update().get(pk=order_id)
            except Order.DoesNotExist:
                raise StockError('ORDER_NOT_FOUND', order_id=order_id) from None

            if order.status == OrderStatus.CANCELLED:
                return OrderResult(
                    order_id=order.pk,
                    order_number=order.order_number,
                    status=order.status,
                    total_amount=order.total_amount,
                    already_cancelled=True,
                )
            if order.status == OrderStatus.DELIVERED:
                raise StockError(
                    'ORDER_NOT_CANCELLABLE',
                    order_id=order.pk,
                    status=order.status,
                )

            restored = defaultdict(int)
            for item in order.items.all():
                restored[item.product_id] += item.quantity

            for product_id in sorted(restored):
                record = records[product_id]
                before = StockLedger.apply(record, physical_delta=restored[product_id])
                AuditLog.append(
                    record, before,
                    operation=AuditOperation.INCREASE,
                    reason=AuditReason.ORDER_CANCELLATION,
                    notes=reason or f"Order {order.order_number} cancelled",
                    order_ref=order.order_number,
                    actor=actor,
                )

            order.status = OrderStatus.CANCELLED
            order.cancelled_at = timezone.now()
            if reason:
                order.notes = f"{order.notes}\nCancelled: {reason}".strip()
            order.save(update_fields=['status', 'cancelled_at', 'notes'])

            transaction.on_commit(lambda: _dispatch('order_cancelled', order.pk))

        logger.info(
            "stock.order.cancelled",
            extra={
                "order_id": order.pk,
                "order_number": order.order_number,
                "products": len(restored),
            },
        )
        return OrderResult(
            order_id=order.pk,
            order_number=order.order_number,
            status=order.status,
            total_amount=order.total_amount,
        )

    @classmethod
    def get_order(cls, order_id) -> Order:
        try:
            return Order.objects.prefetch_related('items').get(pk=order_id)
        except Order.DoesNotExist:
            raise StockError('ORDER_NOT_FOUND', order_id=order_id) from None

    @classmethod
    def _lock_reservations(cls, pks, requested) -> list[Reservation]:
        """Lock consumed reservations. Stock records must already be locked."""
        if not pks:
            return []

        found = {
            reservation.pk: reservation
            for reservation in Reservation.objects.select_for_update()
            .filter(pk__in=pks)
            .order_by('pk')
        }

        reservations = []
        for pk in dict.fromkeys(pks):
            reservation = found.get(pk)
            if reservation is None or not reservation.is_active:
                raise StockError('RESERVATION_NOT_FOUND', reservation_id=f"res:{pk}")
            if reservation.product_id not in requested:
                raise StockError(
                    'INVALID_ORDER',
                    problems=[{
                        'field': 'reservation_ids',
                        'message': f'{reservation.reservation_id} is for a product not in this order',
                    }],
                )
            reservations.append(reservation)
        return reservations

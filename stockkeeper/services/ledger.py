"""
Stock ledger — per-product counters, row locking and the unit of work.

Reads use no locking. Every mutation goes through apply() inside a
unit_of_work() after the record has been locked with lock()/lock_many().
"""

import logging
from contextlib import contextmanager

from django.db import DatabaseError, IntegrityError, connection, transaction
from django.db.models import F
from django.utils import timezone

from stockkeeper.conf import stockkeeper_settings
from stockkeeper.exceptions import StockError
from stockkeeper.models.enums import AuditOperation, AuditReason, ProductStatus
from stockkeeper.models.stock import StockRecord
from stockkeeper.results import AvailabilityCheck, ItemAvailability, StockSnapshot
from stockkeeper.services.audit import AuditLog

logger = logging.getLogger('stockkeeper')

SYNCABLE_FIELDS = frozenset({
    'sku', 'name', 'price', 'reorder_point', 'reorder_quantity', 'max_stock_level',
})


@contextmanager
def unit_of_work(operation: str):
    """
    Run a stock operation in one transaction.

    Database failures (lock timeout, lost connection, constraint race)
    roll everything back and surface as a retryable FULFILLMENT_FAILED.
    StockError passes through untouched.
    """
    try:
        with transaction.atomic():
            yield
    except DatabaseError as exc:
        logger.exception(
            "stock.unit_of_work.failed",
            extra={"operation": operation},
        )
        raise StockError('FULFILLMENT_FAILED', operation=operation) from exc


def _bound_lock_wait():
    """Cap how long the current transaction waits for row locks."""
    if connection.vendor == 'postgresql':
        timeout_ms = int(stockkeeper_settings.LOCK_TIMEOUT_SECONDS * 1000)
        with connection.cursor() as cursor:
            cursor.execute(f"SET LOCAL lock_timeout = {timeout_ms}")


class StockLedger:
    """Stock counter queries and internal mutation primitives."""

    # ══════════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def get_record(cls, product_id) -> StockRecord:
        """
        Raises:
            StockError('PRODUCT_NOT_FOUND')
        """
        try:
            return StockRecord.objects.get(pk=product_id)
        except StockRecord.DoesNotExist:
            raise StockError('PRODUCT_NOT_FOUND', product_id=product_id) from None

    @classmethod
    def available(cls, product_id) -> int:
        """
        Available quantity for new reservations and orders.

        Never negative. Inactive products report 0.
        """
        record = cls.get_record(product_id)
        if not record.is_active:
            return 0
        return record.available

    @classmethod
    def stock_level(cls, product_id) -> StockSnapshot:
        """Physical, reserved and available counters plus status."""
        record = cls.get_record(product_id)
        flags = () if record.is_active else ('PRODUCT_INACTIVE',)
        return StockSnapshot(
            product_id=record.pk,
            physical=record.physical_stock,
            reserved=record.reserved_stock,
            available=record.available if record.is_active else 0,
            status=record.status,
            stock_status=record.stock_status,
            flags=flags,
        )

    @classmethod
    def check_availability(cls, items) -> AvailabilityCheck:
        """
        Check a whole cart against current stock without reserving anything.

        Quantities for the same product are summed, as create_order() does.
        The answer is advisory: stock can change before the order is placed.

        Args:
            items: [{product_id, quantity}, ...]

        Raises:
            StockError('INVALID_REQUEST'): data['problems'] lists every issue
        """
        problems = []
        requested = {}
        if not isinstance(items, (list, tuple)) or not items:
            problems.append({'field': 'items', 'message': 'At least one item is required'})
            items = ()

        for index, item in enumerate(items):
            if not isinstance(item, dict) or not item.get('product_id'):
                problems.append({'index': index, 'field': 'product_id', 'message': 'Missing product id'})
                continue
            quantity = item.get('quantity')
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
                problems.append({'index': index, 'field': 'quantity', 'message': 'Quantity must be a positive integer'})
                continue
            product_id = str(item['product_id'])
            requested[product_id] = requested.get(product_id, 0) + quantity

        if problems:
            raise StockError('INVALID_REQUEST', problems=problems)

        records = StockRecord.objects.in_bulk(list(requested))
        lines = []
        for product_id, quantity in requested.items():
            record = records.get(product_id)
            if record is None:
                lines.append(ItemAvailability(
                    product_id=product_id,
                    requested=quantity,
                    available=0,
                    code='PRODUCT_NOT_FOUND',
                ))
                continue

            available = record.available if record.is_active else 0
            if not record.is_active:
                code = 'PRODUCT_INACTIVE'
            elif quantity > available:
                code = 'INSUFFICIENT_STOCK'
            else:
                code = None
            lines.append(ItemAvailability(
                product_id=product_id,
                requested=quantity,
                available=available,
                physical=record.physical_stock,
                reserved=record.reserved_stock,
                code=code,
            ))

        return AvailabilityCheck(items=tuple(lines))

    @classmethod
    def list_records(cls, status=None, low_stock_only=False):
        qs = StockRecord.objects.all()
        if status is not None:
            qs = qs.filter(status=status)
        if low_stock_only:
            qs = qs.at_or_below_reorder_point()
        return qs

    # ══════════════════════════════════════════════════════════════
    # PRODUCT LIFECYCLE
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def register(cls, product_id, sku, name, price=0, initial_stock=0,
                 status=ProductStatus.ACTIVE, reorder_point=None,
                 reorder_quantity=None, max_stock_level=None,
                 actor=None) -> StockRecord:
        """
        Create the stock record for a newly created product.

        Planning hints default to the configured values. A positive
        initial_stock is recorded as one 'received' audit entry.

        Raises:
            StockError('PRODUCT_EXISTS'): Record already registered
            StockError('INVALID_QUANTITY'): initial_stock < 0
        """
        if initial_stock < 0:
            raise StockError('INVALID_QUANTITY', requested=initial_stock)

        with unit_of_work('register'):
            if StockRecord.objects.filter(pk=product_id).exists():
                raise StockError('PRODUCT_EXISTS', product_id=product_id)

            try:
                with transaction.atomic():
                    record = StockRecord.objects.create(
                        product_id=product_id,
                        sku=sku,
                        name=name,
                        price=price,
                        status=status,
                        reorder_point=(stockkeeper_settings.DEFAULT_REORDER_POINT
                                       if reorder_point is None else reorder_point),
                        reorder_quantity=(stockkeeper_settings.DEFAULT_REORDER_QUANTITY
                                          if reorder_quantity is None else reorder_quantity),
                        max_stock_level=(stockkeeper_settings.DEFAULT_MAX_STOCK_LEVEL
                                         if max_stock_level is None else max_stock_level),
                    )
            except IntegrityError:
                # Registered concurrently between the check and the insert
                raise StockError('PRODUCT_EXISTS', product_id=product_id) from None

            if initial_stock:
                before = cls.apply(record, physical_delta=initial_stock)
                AuditLog.append(
                    record, before,
                    operation=AuditOperation.INCREASE,
                    reason=AuditReason.RECEIVED,
                    notes='Initial stock',
                    actor=actor,
                )

        logger.info(
            "stock.record.registered",
            extra={"product_id": product_id, "initial_stock": initial_stock},
        )
        return record

    @classmethod
    def sync_product(cls, product_id, **fields) -> StockRecord:
        """Copy catalog changes (name, SKU, price, planning hints) onto the record."""
        unknown = set(fields) - SYNCABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot sync fields: {', '.join(sorted(unknown))}")

        record = cls.get_record(product_id)
        for name, value in fields.items():
            setattr(record, name, value)
        record.save(update_fields=[*fields, 'updated_at'])
        return record

    @classmethod
    def set_status(cls, product_id, status) -> StockRecord:
        """
        Activate or soft-deactivate a product.

        Existing reservations stay valid; inactive products only reject
        new reservations and orders.
        """
        record = cls.get_record(product_id)
        if record.status != status:
            record.status = status
            record.save(update_fields=['status', 'updated_at'])
            logger.info(
                "stock.record.status_changed",
                extra={"product_id": product_id, "status": status},
            )
        return record

    @classmethod
    def activate(cls, product_id) -> StockRecord:
        return cls.set_status(product_id, ProductStatus.ACTIVE)

    @classmethod
    def deactivate(cls, product_id) -> StockRecord:
        return cls.set_status(product_id, ProductStatus.INACTIVE)

    # ══════════════════════════════════════════════════════════════
    # INTERNAL PRIMITIVES (call inside unit_of_work only)
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def lock(cls, product_id) -> StockRecord:
        """
        Lock one stock record for the rest of the transaction.

        Raises:
            StockError('PRODUCT_NOT_FOUND')
        """
        _bound_lock_wait()
        try:
            return StockRecord.objects.select_for_update().get(pk=product_id)
        except StockRecord.DoesNotExist:
            raise StockError('PRODUCT_NOT_FOUND', product_id=product_id) from None

    @classmethod
    def lock_many(cls, product_ids) -> dict[str, StockRecord]:
        """
        Lock several stock records in ascending product id order.

        Missing products are simply absent from the returned dict.
        """
        _bound_lock_wait()
        records = (
            StockRecord.objects.select_for_update()
            .filter(pk__in=sorted(set(product_ids)))
            .order_by('pk')
        )
        return {record.pk: record for record in records}

    @classmethod
    def apply(cls, record: StockRecord, physical_delta: int = 0,
              reserved_delta: int = 0) -> tuple[int, int]:
        """
        Apply counter deltas with a guarded UPDATE.

        The row must still satisfy 0 <= reserved <= physical after the
        change; otherwise nothing is written.

        Returns:
            (physical_stock, reserved_stock) as they were before the change.
            The passed record is refreshed in place.

        Raises:
            StockError('CONCURRENT_MODIFICATION'): Guard did not match
        """
        before = (record.physical_stock, record.reserved_stock)

        updated = StockRecord.objects.filter(
            pk=record.pk,
            reserved_stock__gte=-reserved_delta,
            physical_stock__gte=F('reserved_stock') + (reserved_delta - physical_delta),
        ).update(
            physical_stock=F('physical_stock') + physical_delta,
            reserved_stock=F('reserved_stock') + reserved_delta,
            version=F('version') + 1,
            updated_at=timezone.now(),
        )

        if not updated:
            raise StockError(
                'CONCURRENT_MODIFICATION',
                product_id=record.pk,
                physical_delta=physical_delta,
                reserved_delta=reserved_delta,
            )

        record.refresh_from_db(fields=['physical_stock', 'reserved_stock', 'version', 'updated_at'])
        return before

    @classmethod
    def increment_physical(cls, record: StockRecord, quantity: int) -> tuple[int, int]:
        return cls.apply(record, physical_delta=quantity)

    @classmethod
    def decrement_physical(cls, record: StockRecord, quantity: int) -> tuple[int, int]:
        return cls.apply(record, physical_delta=-quantity)

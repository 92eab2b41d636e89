"""
Audit log — append-only record of stock changes, plus the paginated feed.
"""

import datetime

from django.core.paginator import EmptyPage, Paginator
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from stockkeeper.conf import stockkeeper_settings
from stockkeeper.exceptions import StockError
from stockkeeper.models.audit import AuditEntry
from stockkeeper.models.enums import AuditOperation, AuditReason
from stockkeeper.results import AuditPage

MAX_PAGE_SIZE = 100

SORT_FIELDS = {
    'timestamp': 'timestamp',
    'product_id': 'product_id',
    'operation': 'operation',
    'reason': 'reason',
    'change': 'physical_stock_change',
}


def _parse_moment(value, field):
    """Accept date, datetime or ISO string. Dates are returned as date."""
    if value is None or isinstance(value, datetime.date):
        return value
    try:
        parsed = parse_date(value) or parse_datetime(value)
    except (TypeError, ValueError):
        parsed = None
    if parsed is None:
        raise StockError('INVALID_QUERY', field=field, value=value)
    if isinstance(parsed, datetime.datetime) and timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def _positive_int(value, field):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise StockError('INVALID_QUERY', field=field, value=value) from None
    if number < 1:
        raise StockError('INVALID_QUERY', field=field, value=value)
    return number


class AuditLog:
    """Audit entry writes and reads."""

    @classmethod
    def append(cls, record, before, operation, reason, notes='',
               order_ref=None, actor=None) -> AuditEntry:
        """
        Record one stock-affecting operation.

        Runs inside the caller's transaction: if the insert fails the
        whole operation rolls back.

        Args:
            record: StockRecord, already refreshed with the new counters
            before: (physical_stock, reserved_stock) prior to the change
        """
        physical_before, reserved_before = before
        return AuditEntry.objects.create(
            product=record,
            operation=operation,
            physical_stock_before=physical_before,
            physical_stock_after=record.physical_stock,
            reserved_stock_before=reserved_before,
            reserved_stock_after=record.reserved_stock,
            reason=reason,
            notes=notes or '',
            order_ref=order_ref,
            actor=actor,
        )

    @classmethod
    def query(cls, product_id=None, date_from=None, date_to=None,
              operation=None, reason=None, order_ref=None,
              sort_by='timestamp', sort_order='desc',
              page=1, page_size=None):
        """
        Filtered, sorted, paginated audit feed.

        Returns:
            AuditPage with the entries of the requested page

        Raises:
            StockError('INVALID_QUERY'): Unknown filter or sort value
        """
        if operation and operation not in AuditOperation.values:
            raise StockError('INVALID_QUERY', field='operation', value=operation)
        if reason and reason not in AuditReason.values:
            raise StockError('INVALID_QUERY', field='reason', value=reason)
        if sort_by not in SORT_FIELDS:
            raise StockError('INVALID_QUERY', field='sort_by', value=sort_by)
        if sort_order not in ('asc', 'desc'):
            raise StockError('INVALID_QUERY', field='sort_order', value=sort_order)

        page = _positive_int(page, 'page')
        page_size = min(
            _positive_int(page_size or stockkeeper_settings.AUDIT_PAGE_SIZE, 'page_size'),
            MAX_PAGE_SIZE,
        )
        date_from = _parse_moment(date_from, 'date_from')
        date_to = _parse_moment(date_to, 'date_to')

        qs = AuditEntry.objects.select_related('actor')
        if product_id:
            qs = qs.filter(product_id=product_id)
        if operation:
            qs = qs.filter(operation=operation)
        if reason:
            qs = qs.filter(reason=reason)
        if order_ref:
            qs = qs.filter(order_ref=order_ref)
        if date_from is not None:
            if isinstance(date_from, datetime.datetime):
                qs = qs.filter(timestamp__gte=date_from)
            else:
                qs = qs.filter(timestamp__date__gte=date_from)
        if date_to is not None:
            if isinstance(date_to, datetime.datetime):
                qs = qs.filter(timestamp__lte=date_to)
            else:
                qs = qs.filter(timestamp__date__lte=date_to)

        prefix = '-' if sort_order == 'desc' else ''
        qs = qs.order_by(f"{prefix}{SORT_FIELDS[sort_by]}", f"{prefix}pk")

        paginator = Paginator(qs, page_size)
        try:
            entries = list(paginator.page(page).object_list)
        except EmptyPage:
            entries = []

        return AuditPage(
            entries=entries,
            total=paginator.count,
            page=page,
            page_size=page_size,
        )

"""
JSON endpoints for the stock engine.

Thin request/response layer over ``stock``: parse the body, call the
facade, serialize the result. StockError becomes ``{code, message, data}``
with the HTTP status of its category. Authentication is left to the host
project; the actor is ``request.user`` when authenticated.
"""

import json
import logging
from functools import wraps

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from stockkeeper.exceptions import StockError
from stockkeeper.service import Stock as stock

logger = logging.getLogger('stockkeeper')


def stock_endpoint(*methods):
    """Restrict methods, skip CSRF and render StockError as JSON."""

    def decorator(view):
        @csrf_exempt
        @require_http_methods(list(methods))
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            try:
                return view(request, *args, **kwargs)
            except StockError as err:
                if err.is_retryable:
                    logger.warning(
                        "stock.api.unavailable",
                        extra={"path": request.path, "code": err.code},
                    )
                return JsonResponse(err.as_dict(), status=err.status_code)
        return wrapper
    return decorator


def _body(request) -> dict:
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except ValueError:
        raise StockError('INVALID_REQUEST', reason='Body is not valid JSON') from None
    if not isinstance(data, dict):
        raise StockError('INVALID_REQUEST', reason='Body must be a JSON object')
    return data


def _require(data, *keys):
    missing = [key for key in keys if data.get(key) in (None, '')]
    if missing:
        raise StockError('INVALID_REQUEST', missing=missing)


def _actor(request):
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return user
    return None


def _audit_entry(entry) -> dict:
    return {
        'id': entry.pk,
        'product_id': entry.product_id,
        'operation': entry.operation,
        'physical_stock_before': entry.physical_stock_before,
        'physical_stock_after': entry.physical_stock_after,
        'physical_stock_change': entry.physical_stock_change,
        'reserved_stock_before': entry.reserved_stock_before,
        'reserved_stock_after': entry.reserved_stock_after,
        'reason': entry.reason,
        'notes': entry.notes,
        'order_id': entry.order_ref,
        'actor': entry.actor.get_username() if entry.actor_id else None,
        'timestamp': entry.timestamp.isoformat(),
    }


def _alert(alert) -> dict:
    return {
        'id': alert.pk,
        'product_id': alert.product_id,
        'product_name': alert.product.name,
        'alert_type': alert.alert_type,
        'available_stock': alert.available_stock,
        'reorder_point': alert.reorder_point,
        'suggested_quantity': alert.suggested_quantity,
        'status': alert.status,
        'triggered_at': alert.triggered_at.isoformat(),
    }


# ══════════════════════════════════════════════════════════════
# STOCK
# ══════════════════════════════════════════════════════════════

@stock_endpoint('GET')
def stock_level(request, product_id):
    return JsonResponse(stock.stock_level(product_id).as_dict())


@stock_endpoint('POST')
def check_availability(request):
    """Cart pre-check. Reserves nothing."""
    data = _body(request)
    return JsonResponse(stock.check_availability(data.get('items')).as_dict())


# ══════════════════════════════════════════════════════════════
# RESERVATIONS
# ══════════════════════════════════════════════════════════════

@stock_endpoint('POST', 'DELETE')
def reservations(request):
    """POST reserves, DELETE cancels by reservation_id or (product_id, order_id)."""
    data = _body(request)
    actor = _actor(request)

    if request.method == 'DELETE':
        if data.get('reservation_id'):
            result = stock.cancel_reservation(
                data['reservation_id'], notes=data.get('notes', ''), actor=actor,
            )
        else:
            _require(data, 'product_id', 'order_id')
            result = stock.cancel(
                data['product_id'], data['order_id'], notes=data.get('notes', ''), actor=actor,
            )
        return JsonResponse(result.as_dict())

    _require(data, 'product_id', 'quantity')
    result = stock.reserve(
        data['product_id'],
        data.get('order_id'),
        data['quantity'],
        ttl_minutes=data.get('ttl_minutes'),
        notes=data.get('notes', ''),
        actor=actor,
    )
    return JsonResponse(result.as_dict(), status=201)


@stock_endpoint('POST')
def fulfill_reservation(request):
    data = _body(request)
    actor = _actor(request)

    if data.get('reservation_id'):
        result = stock.fulfill_reservation(
            data['reservation_id'],
            quantity=data.get('quantity'),
            notes=data.get('notes', ''),
            actor=actor,
        )
    else:
        _require(data, 'product_id', 'order_id')
        result = stock.fulfill(
            data['product_id'],
            data['order_id'],
            quantity=data.get('quantity'),
            notes=data.get('notes', ''),
            actor=actor,
        )
    return JsonResponse(result.as_dict())


@stock_endpoint('POST')
def sweep_reservations(request):
    return JsonResponse({'expired_count': stock.sweep_expired()})


# ══════════════════════════════════════════════════════════════
# ADJUSTMENTS
# ══════════════════════════════════════════════════════════════

@stock_endpoint('POST')
def adjustments(request):
    data = _body(request)
    _require(data, 'product_id')
    result = stock.adjust(
        data['product_id'],
        data.get('type'),
        data.get('quantity'),
        data.get('reason'),
        notes=data.get('notes', ''),
        actor=_actor(request),
        order_ref=data.get('order_id'),
    )
    return JsonResponse(result.as_dict())


@stock_endpoint('PUT')
def bulk_adjustments(request):
    data = _body(request)
    items = data.get('items')
    if not isinstance(items, list):
        raise StockError('INVALID_REQUEST', reason='items must be a list')
    result = stock.bulk_adjust(
        items,
        reason=data.get('reason'),
        notes=data.get('notes'),
        actor=_actor(request),
    )
    return JsonResponse(result.as_dict())


@stock_endpoint('POST')
def returns(request):
    data = _body(request)
    _require(data, 'product_id', 'order_id')
    result = stock.process_return(
        data['product_id'],
        data['order_id'],
        data.get('quantity'),
        notes=data.get('notes', ''),
        actor=_actor(request),
    )
    return JsonResponse(result.as_dict())


# ══════════════════════════════════════════════════════════════
# ORDERS
# ══════════════════════════════════════════════════════════════

@stock_endpoint('POST')
def orders(request):
    data = _body(request)
    result = stock.create_order(
        data.get('line_items'),
        order_fields=data.get('order_fields'),
        reservation_ids=data.get('reservation_ids'),
        actor=_actor(request),
    )
    return JsonResponse(result.as_dict(), status=201)


@stock_endpoint('POST')
def cancel_order(request, order_id):
    data = _body(request)
    result = stock.cancel_order(
        order_id,
        reason=data.get('reason', ''),
        actor=_actor(request),
    )
    return JsonResponse(result.as_dict())


# ══════════════════════════════════════════════════════════════
# READ-ONLY FEEDS
# ══════════════════════════════════════════════════════════════

@stock_endpoint('GET')
def audit(request):
    params = request.GET
    page = stock.audit(
        product_id=params.get('product_id'),
        date_from=params.get('date_from'),
        date_to=params.get('date_to'),
        operation=params.get('operation'),
        reason=params.get('reason'),
        order_ref=params.get('order_id'),
        sort_by=params.get('sort_by', 'timestamp'),
        sort_order=params.get('sort_order', 'desc'),
        page=params.get('page', 1),
        page_size=params.get('page_size'),
    )
    return JsonResponse({
        'entries': [_audit_entry(entry) for entry in page.entries],
        'total': page.total,
        'page': page.page,
        'page_size': page.page_size,
    })


@stock_endpoint('GET')
def alerts(request):
    qs = stock.list_alerts(request.GET.get('status'))
    return JsonResponse({'alerts': [_alert(alert) for alert in qs]})

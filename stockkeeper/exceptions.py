"""
Exceptions for Stockkeeper.

All errors are StockError with a structured code for programmatic handling.
"""

from typing import Any


VALIDATION_CODES = frozenset({
    'INVALID_ORDER',
    'INVALID_RESERVATION_TRANSITION',
    'INVALID_QUANTITY',
    'INVALID_ADJUSTMENT',
    'INVALID_REASON',
    'INVALID_RESERVATION',
    'INVALID_QUERY',
    'INVALID_REQUEST',
})

INFRASTRUCTURE_CODES = frozenset({
    'FULFILLMENT_FAILED',
    'CONCURRENT_MODIFICATION',
})

NOT_FOUND_CODES = frozenset({
    'PRODUCT_NOT_FOUND',
    'RESERVATION_NOT_FOUND',
    'ORDER_NOT_FOUND',
    'ALERT_NOT_FOUND',
})


class StockError(Exception):
    """
    Structured exception for stock operations.

    Usage:
        try:
            stock.reserve('sku-1', 'cart-9', 10)
        except StockError as e:
            if e.code == 'INSUFFICIENT_STOCK':
                print(f"Only {e.available} available")

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    _default_messages = {
        'INSUFFICIENT_STOCK': 'Requested quantity is not available',
        'INSUFFICIENT_UNRESERVED_STOCK': 'Cannot remove units already promised to orders',
        'PRODUCT_NOT_FOUND': 'Product not found',
        'PRODUCT_INACTIVE': 'Product is not active',
        'PRODUCT_EXISTS': 'Product already has a stock record',
        'RESERVATION_NOT_FOUND': 'No matching active reservation',
        'ORDER_NOT_FOUND': 'Order not found',
        'ORDER_NOT_CANCELLABLE': 'Order can no longer be cancelled',
        'ALERT_NOT_FOUND': 'Reorder alert not found',
        'INVALID_ORDER': 'Invalid order payload',
        'INVALID_RESERVATION_TRANSITION': 'Reservation cannot make this transition',
        'INVALID_RESERVATION': 'Invalid reservation identifier',
        'INVALID_QUANTITY': 'Invalid quantity',
        'INVALID_ADJUSTMENT': 'Adjustment type must be increase, decrease or set',
        'INVALID_REASON': 'Unknown or missing reason code',
        'INVALID_QUERY': 'Invalid query parameters',
        'INVALID_REQUEST': 'Malformed request',
        'FULFILLMENT_FAILED': 'Stock operation failed, nothing was committed',
        'CONCURRENT_MODIFICATION': 'Concurrent modification detected',
    }

    def __init__(self, code: str, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    @property
    def available(self) -> int:
        """Shortcut for data['available']."""
        return self.data.get('available', 0)

    @property
    def requested(self) -> int:
        """Shortcut for data['requested']."""
        return self.data.get('requested', 0)

    @property
    def failed_products(self) -> list[dict]:
        """Per-product failures reported by the order orchestrator."""
        return self.data.get('failed_products', [])

    @property
    def category(self) -> str:
        """validation, business or infrastructure."""
        if self.code in VALIDATION_CODES:
            return 'validation'
        if self.code in INFRASTRUCTURE_CODES:
            return 'infrastructure'
        return 'business'

    @property
    def is_retryable(self) -> bool:
        """Infrastructure failures commit nothing and can be retried."""
        return self.category == 'infrastructure'

    @property
    def status_code(self) -> int:
        """HTTP status equivalent."""
        if self.category == 'validation':
            return 400
        if self.category == 'infrastructure':
            return 503
        if self.code in NOT_FOUND_CODES:
            return 404
        return 409

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': self.data,
        }

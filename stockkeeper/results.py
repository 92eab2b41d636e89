"""
Result types returned by stock operations.

Plain frozen dataclasses so callers (views, tasks) can serialize them
without touching models.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class StockSnapshot:
    """Point-in-time view of a product's counters."""

    product_id: str
    physical: int
    reserved: int
    available: int
    status: str
    stock_status: str
    flags: tuple[str, ...] = ()

    def as_dict(self) -> dict:
        data = asdict(self)
        data['flags'] = list(self.flags)
        return data


@dataclass(frozen=True)
class ReservationResult:
    reservation_id: str
    product_id: str
    order_ref: str | None
    quantity: int
    status: str
    available_after: int
    already_terminal: bool = False

    @property
    def message(self) -> str:
        if self.already_terminal:
            return f"Reservation already {self.status}"
        return f"Reservation {self.status}"

    def as_dict(self) -> dict:
        data = asdict(self)
        data['message'] = self.message
        return data


@dataclass(frozen=True)
class AdjustmentResult:
    product_id: str
    new_physical_stock: int
    available_after: int
    audit_entry_id: int

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BulkAdjustResult:
    """Per-item outcome of stock.bulk_adjust(). Partial success is normal."""

    results: list[AdjustmentResult] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    @property
    def updated_count(self) -> int:
        return len(self.results)

    def as_dict(self) -> dict:
        return {
            'updated_count': self.updated_count,
            'results': [r.as_dict() for r in self.results],
            'errors': self.errors,
        }


@dataclass(frozen=True)
class OrderResult:
    order_id: int
    order_number: str
    status: str
    total_amount: Decimal
    already_cancelled: bool = False

    def as_dict(self) -> dict:
        data = asdict(self)
        data['total_amount'] = str(self.total_amount)
        return data


@dataclass(frozen=True)
class AuditPage:
    entries: list
    total: int
    page: int
    page_size: int


@dataclass(frozen=True)
class ItemAvailability:
    """One product's line in a cart availability check. code is None when it fits."""

    product_id: str
    requested: int
    available: int
    physical: int = 0
    reserved: int = 0
    code: str | None = None

    @property
    def is_available(self) -> bool:
        return self.code is None

    def as_failure(self) -> dict:
        """Same shape as StockError.failed_products entries."""
        return {
            'product_id': self.product_id,
            'code': self.code,
            'requested': self.requested,
            'available': self.available,
        }

    def as_dict(self) -> dict:
        data = asdict(self)
        data['is_available'] = self.is_available
        return data


@dataclass(frozen=True)
class AvailabilityCheck:
    items: tuple[ItemAvailability, ...] = ()

    @property
    def all_available(self) -> bool:
        return all(item.is_available for item in self.items)

    @property
    def unavailable_items(self) -> list[dict]:
        return [item.as_failure() for item in self.items if not item.is_available]

    def as_dict(self) -> dict:
        return {
            'all_available': self.all_available,
            'items': [item.as_dict() for item in self.items],
            'unavailable_items': self.unavailable_items,
        }

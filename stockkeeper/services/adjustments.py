"""
Stock adjustments — administrative increase, decrease and set.

Adjustments change physical stock only. They may never push physical
stock below what is already promised to active reservations.
"""

import logging

from stockkeeper.exceptions import StockError
from stockkeeper.models.enums import AdjustmentType, AuditReason
from stockkeeper.results import AdjustmentResult, BulkAdjustResult
from stockkeeper.services.audit import AuditLog
from stockkeeper.services.ledger import StockLedger, unit_of_work

logger = logging.getLogger('stockkeeper')


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate(adjustment_type, quantity, reason):
    if adjustment_type not in AdjustmentType.values:
        raise StockError('INVALID_ADJUSTMENT', type=adjustment_type)

    minimum = 0 if adjustment_type == AdjustmentType.SET else 1
    if not _is_count(quantity) or quantity < minimum:
        raise StockError('INVALID_QUANTITY', requested=quantity)

    if not reason or reason not in AuditReason.values:
        raise StockError('INVALID_REASON', reason=reason)


class StockAdjustments:
    """Manual stock corrections."""

    @classmethod
    def adjust(cls, product_id, adjustment_type, quantity, reason,
               notes='', actor=None, order_ref=None) -> AdjustmentResult:
        """
        Change physical stock by an administrative action.

        Args:
            adjustment_type: 'increase', 'decrease' or 'set'
            quantity: units to add/remove, or the new physical level for 'set'
            reason: AuditReason value

        Inactive products can be adjusted. Every successful call writes
        exactly one audit entry, including a 'set' to the current level.

        Raises:
            StockError('INVALID_ADJUSTMENT')
            StockError('INVALID_QUANTITY')
            StockError('INVALID_REASON')
            StockError('PRODUCT_NOT_FOUND')
            StockError('INSUFFICIENT_UNRESERVED_STOCK'): Result would drop
                below reserved stock
        """
        _validate(adjustment_type, quantity, reason)

        with unit_of_work('adjust'):
            record = StockLedger.lock(product_id)
            physical, reserved = record.physical_stock, record.reserved_stock

            if adjustment_type == AdjustmentType.INCREASE:
                delta = quantity
            elif adjustment_type == AdjustmentType.DECREASE:
                delta = -quantity
            else:
                delta = quantity - physical

            if physical + delta < reserved:
                logger.info(
                    "stock.adjust.rejected",
                    extra={
                        "product_id": product_id,
                        "type": adjustment_type,
                        "requested": quantity,
                        "physical": physical,
                        "reserved": reserved,
                    },
                )
                raise StockError(
                    'INSUFFICIENT_UNRESERVED_STOCK',
                    product_id=product_id,
                    physical=physical,
                    reserved=reserved,
                    requested=quantity,
                    max_decrease=physical - reserved,
                )

            before = StockLedger.apply(record, physical_delta=delta)
            entry = AuditLog.append(
                record, before,
                operation=adjustment_type,
                reason=reason,
                notes=notes,
                order_ref=order_ref,
                actor=actor,
            )

        logger.info(
            "stock.adjust",
            extra={
                "product_id": product_id,
                "type": adjustment_type,
                "quantity": quantity,
                "change": delta,
                "reason": reason,
                "audit_entry_id": entry.pk,
            },
        )

        return AdjustmentResult(
            product_id=record.pk,
            new_physical_stock=record.physical_stock,
            available_after=record.available if record.is_active else 0,
            audit_entry_id=entry.pk,
        )

    @classmethod
    def bulk_adjust(cls, items, reason=None, notes=None, actor=None) -> BulkAdjustResult:
        """
        Apply many adjustments, each in its own transaction.

        Item keys: product_id, type, quantity, and optionally reason, notes
        and order_id. Batch-level reason/notes fill in where an item has none.

        A failing item is reported in errors and does not affect the others.
        """
        result = BulkAdjustResult()

        for index, item in enumerate(items):
            product_id = item.get('product_id') if isinstance(item, dict) else None
            try:
                if not isinstance(item, dict):
                    raise StockError('INVALID_ADJUSTMENT', item=item)
                result.results.append(cls.adjust(
                    product_id,
                    item.get('type'),
                    item.get('quantity'),
                    item.get('reason') or reason,
                    notes=item.get('notes') or notes or '',
                    actor=actor,
                    order_ref=item.get('order_id'),
                ))
            except StockError as err:
                result.errors.append({
                    'index': index,
                    'product_id': product_id,
                    'code': err.code,
                    'message': err.message,
                    'data': err.data,
                })

        logger.info(
            "stock.bulk_adjust",
            extra={
                "items": len(items),
                "updated": result.updated_count,
                "failed": len(result.errors),
            },
        )
        return result

    @classmethod
    def process_return(cls, product_id, order_ref, quantity,
                       notes='', actor=None) -> AdjustmentResult:
        """Put returned units back into physical stock."""
        return cls.adjust(
            product_id,
            AdjustmentType.INCREASE,
            quantity,
            AuditReason.RETURN,
            notes=notes,
            actor=actor,
            order_ref=order_ref,
        )

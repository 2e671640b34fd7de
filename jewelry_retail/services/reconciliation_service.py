from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from jewelry_retail.errors import NotFoundError
from jewelry_retail.logger_config import logger
from jewelry_retail.models import (
    ItemDirection,
    ReturnExchange,
    ReturnExchangeItem,
    ReturnExchangeType,
    StockMovementType,
)
from jewelry_retail.services.activity_service import log_activity
from jewelry_retail.services.pricing_math_service import quantize_money
from jewelry_retail.services.reconciliation_math_service import ReconciliationPlan, StockDelta
from jewelry_retail.services.reference_service import generate_reference
from jewelry_retail.services.return_selection_service import InvoiceSnapshot
from jewelry_retail.services.stock_service import ledger_entries_for, record_movement, reverse_movements

REFERENCE_TABLE = ReturnExchange.__tablename__
WEIGHT_QUANTUM = Decimal('0.001')


def _movement_reason(plan: ReconciliationPlan, delta: StockDelta, reference_number: str) -> str:
    if plan.type == ReturnExchangeType.RETURN:
        return f'Return - {reference_number}'
    if delta.direction == ItemDirection.RETURNED:
        return f'Exchange return - {reference_number}'
    return f'Exchange new item - {reference_number}'


def _item_rows(record_id: int, plan: ReconciliationPlan) -> list[ReturnExchangeItem]:
    rows = [
        ReturnExchangeItem(
            return_exchange_id=record_id,
            direction=ItemDirection.RETURNED,
            invoice_item_id=item.invoice_item_id,
            product_id=item.product_id,
            product_name=item.product_name,
            sku=item.sku,
            category=item.category,
            quantity=item.quantity,
            weight_grams=item.weight_grams.quantize(WEIGHT_QUANTUM),
            rate_per_gram=quantize_money(item.rate_per_gram),
            making_charges=quantize_money(item.making_charges),
            discount=quantize_money(item.discount),
            line_total=quantize_money(item.line_total),
            gst_percentage=item.gst_percentage,
            gst_amount=quantize_money(item.gst_amount),
            total=quantize_money(item.total),
        )
        for item in plan.returned_items
    ]
    rows.extend(
        ReturnExchangeItem(
            return_exchange_id=record_id,
            direction=ItemDirection.NEW,
            product_id=item.product_id,
            product_name=item.product_name,
            sku=item.sku,
            category=item.category,
            quantity=item.quantity,
            weight_grams=item.weight_grams.quantize(WEIGHT_QUANTUM),
            rate_per_gram=quantize_money(item.rate_per_gram),
            making_charges=quantize_money(item.making_charges),
            discount=quantize_money(item.discount),
            line_total=quantize_money(item.line_total),
            gst_percentage=item.gst_percentage,
            gst_amount=quantize_money(item.gst_amount),
            total=quantize_money(item.total),
        )
        for item in plan.new_items
    )
    return rows


def commit_reconciliation(
    db: Session,
    plan: ReconciliationPlan,
    *,
    invoice: InvoiceSnapshot,
    payment_mode: str | None = None,
    notes: str | None = None,
    created_by: str | None = None,
) -> ReturnExchange:
    """Write the record, its items, ledger entries and quantity changes as one unit of work.

    Nothing is committed here. The caller commits once; any exception leaves the
    session to be rolled back with every write of this reconciliation.
    """
    try:
        reference_number = generate_reference(db, plan.type)
        record = ReturnExchange(
            reference_number=reference_number,
            type=plan.type,
            original_invoice_id=invoice.id,
            original_invoice_number=invoice.invoice_number,
            client_name=invoice.client_name,
            client_phone=invoice.client_phone or None,
            refund_amount=quantize_money(plan.refund_amount),
            additional_charge=quantize_money(plan.additional_charge),
            payment_mode=payment_mode,
            reason=plan.reason,
            notes=(notes or '').strip() or None,
            created_by=created_by,
        )
        db.add(record)
        db.flush()

        db.add_all(_item_rows(record.id, plan))
        for delta in plan.stock_deltas:
            record_movement(
                db,
                product_id=delta.product_id,
                quantity_change=delta.quantity_change,
                movement_type=delta.type,
                reason=_movement_reason(plan, delta, reference_number),
                reference_table=REFERENCE_TABLE,
                reference_id=record.id,
                created_by=created_by,
            )

        log_activity(
            db,
            module=plan.type.value,
            action='create',
            record_id=record.id,
            record_label=reference_number,
            actor=created_by,
            new_value={
                'reference_number': reference_number,
                'original_invoice': invoice.invoice_number,
                'client': invoice.client_name,
                'old_total': plan.old_total,
                'new_total': plan.new_total,
                'difference': plan.difference,
                'returned_items': len(plan.returned_items),
                'new_items': len(plan.new_items),
            },
        )
        db.flush()
    except Exception:
        logger.exception('Failed to commit %s against invoice %s', plan.type.value, invoice.invoice_number)
        raise

    logger.info(
        'Committed %s %s: refund=%s additional_charge=%s ledger_entries=%s',
        plan.type.value,
        reference_number,
        record.refund_amount,
        record.additional_charge,
        len(plan.stock_deltas),
    )
    return record


def reverse_reconciliation(db: Session, *, record_id: int, actor: str | None = None) -> dict:
    record = db.get(ReturnExchange, record_id)
    if not record:
        raise NotFoundError('Return/exchange record not found')

    reference_number = record.reference_number
    record_type = record.type
    try:
        reversed_entries = reverse_movements(db, reference_table=REFERENCE_TABLE, reference_id=record.id)
        db.delete(record)
        log_activity(
            db,
            module=record_type.value,
            action='delete',
            record_id=record_id,
            record_label=reference_number,
            actor=actor,
            new_value={'reversed_ledger_entries': reversed_entries},
        )
        db.flush()
    except Exception:
        logger.exception('Failed to reverse %s %s', record_type.value, reference_number)
        raise

    logger.info('Reversed %s %s (%s ledger entries)', record_type.value, reference_number, reversed_entries)
    return {
        'id': record_id,
        'reference_number': reference_number,
        'type': record_type.value,
        'reversed_ledger_entries': reversed_entries,
    }


def list_records(
    db: Session,
    *,
    type_filter: ReturnExchangeType | None = None,
    search: str | None = None,
    limit: int = 200,
) -> list[ReturnExchange]:
    query = select(ReturnExchange).order_by(ReturnExchange.created_at.desc(), ReturnExchange.id.desc()).limit(limit)
    if type_filter:
        query = query.where(ReturnExchange.type == ReturnExchangeType(type_filter))
    term = (search or '').strip().lower()
    if term:
        pattern = f'%{term}%'
        query = query.where(
            or_(
                func.lower(ReturnExchange.reference_number).like(pattern),
                func.lower(ReturnExchange.original_invoice_number).like(pattern),
                func.lower(func.coalesce(ReturnExchange.client_name, '')).like(pattern),
            )
        )
    return db.execute(query).scalars().all()


def record_counts(db: Session) -> dict[str, int]:
    rows = db.execute(select(ReturnExchange.type, func.count(ReturnExchange.id)).group_by(ReturnExchange.type)).all()
    counts = {record_type.value: 0 for record_type in ReturnExchangeType}
    for record_type, count in rows:
        counts[ReturnExchangeType(record_type).value] = int(count)
    counts['all'] = sum(counts.values())
    return counts


def get_record_detail(db: Session, *, record_id: int) -> dict:
    record = db.get(ReturnExchange, record_id)
    if not record:
        raise NotFoundError('Return/exchange record not found')
    ledger = ledger_entries_for(db, reference_table=REFERENCE_TABLE, reference_id=record.id)
    return {
        'record': record,
        'returned_items': [item for item in record.items if item.direction == ItemDirection.RETURNED],
        'new_items': [item for item in record.items if item.direction == ItemDirection.NEW],
        'ledger': ledger,
        'stock_in': sum(entry.quantity_change for entry in ledger if entry.type == StockMovementType.IN),
        'stock_out': -sum(entry.quantity_change for entry in ledger if entry.type == StockMovementType.OUT),
    }

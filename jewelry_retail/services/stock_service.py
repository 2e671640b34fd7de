from __future__ import annotations

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from jewelry_retail.config import settings
from jewelry_retail.errors import NotFoundError
from jewelry_retail.logger_config import logger
from jewelry_retail.models import Product, StockHistory, StockMovementType


class InsufficientStockError(ValueError):
    pass


def adjust_product_quantity(
    db: Session,
    *,
    product_id: int,
    delta: int,
    allow_negative: bool | None = None,
) -> int:
    """Apply `delta` to on-hand quantity in a single UPDATE and return the new quantity."""
    if allow_negative is None:
        allow_negative = settings.allow_negative_stock

    stmt = update(Product).where(Product.id == product_id).values(quantity=Product.quantity + delta)
    if delta < 0 and not allow_negative:
        stmt = stmt.where(Product.quantity >= -delta)
    new_quantity = db.execute(stmt.returning(Product.quantity)).scalar_one_or_none()
    if new_quantity is not None:
        return new_quantity

    name = db.execute(select(Product.name).where(Product.id == product_id)).scalar_one_or_none()
    if name is None:
        raise NotFoundError('Product not found')
    raise InsufficientStockError(f'Insufficient stock for {name}')


def record_movement(
    db: Session,
    *,
    product_id: int,
    quantity_change: int,
    movement_type: StockMovementType,
    reason: str | None,
    reference_table: str | None,
    reference_id: int | None,
    created_by: str | None = None,
) -> StockHistory:
    if quantity_change == 0:
        raise ValueError('Quantity change cannot be zero')
    if movement_type == StockMovementType.IN and quantity_change < 0:
        raise ValueError('Inbound movement must increase stock')
    if movement_type == StockMovementType.OUT and quantity_change > 0:
        raise ValueError('Outbound movement must decrease stock')

    new_quantity = adjust_product_quantity(db, product_id=product_id, delta=quantity_change)
    entry = StockHistory(
        product_id=product_id,
        quantity_change=quantity_change,
        type=movement_type,
        reason=reason,
        reference_table=reference_table,
        reference_id=reference_id,
        created_by=created_by,
    )
    db.add(entry)
    logger.debug(
        'Stock %s %+d for product %s (now %s), ref %s/%s',
        movement_type.value,
        quantity_change,
        product_id,
        new_quantity,
        reference_table,
        reference_id,
    )
    return entry


def ledger_entries_for(db: Session, *, reference_table: str, reference_id: int) -> list[StockHistory]:
    return db.execute(
        select(StockHistory)
        .where(StockHistory.reference_table == reference_table, StockHistory.reference_id == reference_id)
        .order_by(StockHistory.id.asc())
    ).scalars().all()


def reverse_movements(db: Session, *, reference_table: str, reference_id: int) -> int:
    """Undo every ledger entry scoped to one reference, then drop those entries."""
    db.flush()
    entries = ledger_entries_for(db, reference_table=reference_table, reference_id=reference_id)
    for entry in entries:
        adjust_product_quantity(db, product_id=entry.product_id, delta=-entry.quantity_change)
    db.execute(
        delete(StockHistory).where(
            StockHistory.reference_table == reference_table,
            StockHistory.reference_id == reference_id,
        )
    )
    return len(entries)

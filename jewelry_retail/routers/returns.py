from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from jewelry_retail.db import get_db
from jewelry_retail.dependencies import get_actor, http_error_from
from jewelry_retail.models import ReturnExchangeType
from jewelry_retail.schemas import (
    ExchangeCreate,
    ReturnCreate,
    ReturnExchangeDetailOut,
    ReturnExchangeListOut,
    ReturnExchangeOut,
    ReversalOut,
    SelectionEntryOut,
)
from jewelry_retail.services.invoice_service import new_line_for_product
from jewelry_retail.services.reconciliation_math_service import ReconciliationFlow
from jewelry_retail.services.reconciliation_service import (
    commit_reconciliation,
    get_record_detail,
    list_records,
    record_counts,
    reverse_reconciliation,
)
from jewelry_retail.services.return_selection_service import (
    SelectionError,
    load_invoice_for_return,
    set_reason,
    set_return_quantity,
    toggle_selection,
)

router = APIRouter(prefix='/returns', tags=['returns'])


def _start_flow(db: Session, payload: ReturnCreate) -> ReconciliationFlow:
    invoice, entries = load_invoice_for_return(db, invoice_id=payload.invoice_id)
    flow = ReconciliationFlow()
    flow.invoice_loaded(invoice, entries)

    by_item_id = {entry.invoice_item_id: entry for entry in entries}
    for selection in payload.items:
        entry = by_item_id.get(selection.invoice_item_id)
        if entry is None:
            raise SelectionError(f'Item {selection.invoice_item_id} is not returnable on this invoice')
        if not entry.selected:
            toggle_selection(entry)
        if not 1 <= selection.return_quantity <= entry.max_quantity:
            raise SelectionError(
                f'Return quantity for {entry.product_name} must be between 1 and {entry.max_quantity}'
            )
        set_return_quantity(entry, selection.return_quantity)
        set_reason(entry, selection.reason)
    return flow


@router.get('', response_model=ReturnExchangeListOut)
def list_returns(
    type_filter: ReturnExchangeType | None = Query(default=None, alias='type'),
    search: str | None = None,
    db: Session = Depends(get_db),
):
    return {
        'records': list_records(db, type_filter=type_filter, search=search),
        'counts': record_counts(db),
    }


@router.get('/invoices/{invoice_number}/items', response_model=list[SelectionEntryOut])
def returnable_items(invoice_number: str, db: Session = Depends(get_db)):
    try:
        _, entries = load_invoice_for_return(db, invoice_number=invoice_number)
    except ValueError as exc:
        raise http_error_from(exc) from exc
    return entries


@router.post('', response_model=ReturnExchangeOut, status_code=201)
def create_return(
    payload: ReturnCreate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    try:
        flow = _start_flow(db, payload)
        flow.confirm_items(ReturnExchangeType.RETURN)
        plan = flow.build_plan()
        record = commit_reconciliation(
            db,
            plan,
            invoice=flow.invoice,
            payment_mode=payload.payment_mode,
            notes=payload.notes,
            created_by=payload.created_by or actor,
        )
    except ValueError as exc:
        raise http_error_from(exc) from exc
    db.commit()
    flow.mark_committed(record.id)
    return record


@router.post('/exchange', response_model=ReturnExchangeOut, status_code=201)
def create_exchange(
    payload: ExchangeCreate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    try:
        flow = _start_flow(db, payload)
        flow.confirm_items(ReturnExchangeType.EXCHANGE)
        new_items = [
            new_line_for_product(db, product_id=item.product_id, quantity=item.quantity, metal=payload.metal)
            for item in payload.new_items
        ]
        plan = flow.build_plan(new_items)
        record = commit_reconciliation(
            db,
            plan,
            invoice=flow.invoice,
            payment_mode=payload.payment_mode,
            notes=payload.notes,
            created_by=payload.created_by or actor,
        )
    except ValueError as exc:
        raise http_error_from(exc) from exc
    db.commit()
    flow.mark_committed(record.id)
    return record


@router.get('/{record_id}', response_model=ReturnExchangeDetailOut)
def return_detail(record_id: int, db: Session = Depends(get_db)):
    try:
        return get_record_detail(db, record_id=record_id)
    except ValueError as exc:
        raise http_error_from(exc) from exc


@router.delete('/{record_id}', response_model=ReversalOut)
def delete_return(
    record_id: int,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    try:
        result = reverse_reconciliation(db, record_id=record_id, actor=actor)
    except ValueError as exc:
        raise http_error_from(exc) from exc
    db.commit()
    return result

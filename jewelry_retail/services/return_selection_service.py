from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from jewelry_retail.errors import NotFoundError
from jewelry_retail.models import Invoice, InvoiceItem, ItemDirection, ReturnExchangeItem
from jewelry_retail.services.pricing_math_service import ZERO, to_decimal


class SelectionError(ValueError):
    pass


@dataclass
class SelectionEntry:
    invoice_item_id: int | None
    product_id: int | None
    product_name: str
    sku: str | None
    category: str | None
    weight_grams: Decimal
    quantity: int
    max_quantity: int
    rate_per_gram: Decimal
    making_charges: Decimal
    discount: Decimal
    line_total: Decimal
    gst_percentage: Decimal
    gst_amount: Decimal
    total: Decimal
    selected: bool = False
    return_quantity: int | None = None
    reason: str = ''

    def __post_init__(self) -> None:
        if self.return_quantity is None:
            self.return_quantity = self.max_quantity


@dataclass(frozen=True)
class AllocatedItem:
    """A returned line scaled to `return_quantity / quantity` of what was charged."""

    invoice_item_id: int | None
    product_id: int | None
    product_name: str
    sku: str | None
    category: str | None
    quantity: int
    weight_grams: Decimal
    rate_per_gram: Decimal
    making_charges: Decimal
    discount: Decimal
    line_total: Decimal
    gst_percentage: Decimal
    gst_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class InvoiceSnapshot:
    id: int
    invoice_number: str
    client_name: str
    client_phone: str


def toggle_selection(entry: SelectionEntry) -> SelectionEntry:
    entry.selected = not entry.selected
    return entry


def set_return_quantity(entry: SelectionEntry, quantity: int) -> SelectionEntry:
    entry.return_quantity = min(max(1, int(quantity)), entry.max_quantity)
    return entry


def set_reason(entry: SelectionEntry, reason: str | None) -> SelectionEntry:
    entry.reason = (reason or '').strip()
    return entry


def selected_entries(entries: Iterable[SelectionEntry]) -> list[SelectionEntry]:
    return [entry for entry in entries if entry.selected]


def require_selection(entries: Iterable[SelectionEntry]) -> list[SelectionEntry]:
    chosen = selected_entries(entries)
    if not chosen:
        raise SelectionError('Please select at least one item')
    for entry in chosen:
        if entry.quantity < 1:
            raise SelectionError(f'Invalid original quantity for {entry.product_name}')
        if entry.return_quantity is None or not 1 <= entry.return_quantity <= entry.max_quantity:
            raise SelectionError(
                f'Return quantity for {entry.product_name} must be between 1 and {entry.max_quantity}'
            )
    return chosen


def allocation_ratio(entry: SelectionEntry) -> Decimal:
    return Decimal(entry.return_quantity) / Decimal(entry.quantity)


def _scale(value: Decimal, entry: SelectionEntry) -> Decimal:
    # Multiply before dividing so a full return reproduces the charged amount exactly.
    return to_decimal(value) * Decimal(entry.return_quantity) / Decimal(entry.quantity)


def allocate(entry: SelectionEntry) -> AllocatedItem:
    return AllocatedItem(
        invoice_item_id=entry.invoice_item_id,
        product_id=entry.product_id,
        product_name=entry.product_name,
        sku=entry.sku,
        category=entry.category,
        quantity=entry.return_quantity,
        weight_grams=to_decimal(entry.weight_grams),
        rate_per_gram=to_decimal(entry.rate_per_gram),
        making_charges=_scale(entry.making_charges, entry),
        discount=_scale(entry.discount, entry),
        line_total=_scale(entry.line_total, entry),
        gst_percentage=to_decimal(entry.gst_percentage),
        gst_amount=_scale(entry.gst_amount, entry),
        total=_scale(entry.total, entry),
    )


def selected_total(entries: Iterable[SelectionEntry]) -> Decimal:
    return sum((allocate(entry).total for entry in selected_entries(entries)), ZERO)


def combined_reason(entries: Iterable[SelectionEntry]) -> str | None:
    reasons = [entry.reason for entry in entries if entry.reason]
    return '; '.join(reasons) or None


def entry_from_invoice_item(item: InvoiceItem, *, already_returned: int = 0) -> SelectionEntry:
    remaining = max(item.quantity - already_returned, 0)
    return SelectionEntry(
        invoice_item_id=item.id,
        product_id=item.product_id,
        product_name=item.product_name,
        sku=item.sku or 'N/A',
        category=item.category or '',
        weight_grams=to_decimal(item.weight_grams),
        quantity=item.quantity,
        max_quantity=remaining,
        rate_per_gram=to_decimal(item.rate_per_gram),
        making_charges=to_decimal(item.making_charges),
        discount=to_decimal(item.discount),
        line_total=to_decimal(item.line_total),
        gst_percentage=to_decimal(item.gst_percentage),
        gst_amount=to_decimal(item.gst_amount),
        total=to_decimal(item.total),
    )


def returned_quantities(db: Session, *, invoice_item_ids: list[int]) -> dict[int, int]:
    if not invoice_item_ids:
        return {}
    rows = db.execute(
        select(ReturnExchangeItem.invoice_item_id, func.coalesce(func.sum(ReturnExchangeItem.quantity), 0))
        .where(
            ReturnExchangeItem.invoice_item_id.in_(invoice_item_ids),
            ReturnExchangeItem.direction == ItemDirection.RETURNED,
        )
        .group_by(ReturnExchangeItem.invoice_item_id)
    ).all()
    return {invoice_item_id: int(qty) for invoice_item_id, qty in rows}


def load_invoice_for_return(
    db: Session,
    *,
    invoice_id: int | None = None,
    invoice_number: str | None = None,
) -> tuple[InvoiceSnapshot, list[SelectionEntry]]:
    if invoice_id is None and not (invoice_number or '').strip():
        raise SelectionError('Invoice id or invoice number is required')

    query = select(Invoice)
    if invoice_id is not None:
        query = query.where(Invoice.id == invoice_id)
    else:
        query = query.where(func.upper(Invoice.invoice_number) == invoice_number.strip().upper())
    invoice = db.execute(query).scalar_one_or_none()
    if not invoice:
        raise NotFoundError('Invoice not found')

    items = db.execute(
        select(InvoiceItem).where(InvoiceItem.invoice_id == invoice.id).order_by(InvoiceItem.created_at, InvoiceItem.id)
    ).scalars().all()
    returned = returned_quantities(db, invoice_item_ids=[item.id for item in items])

    entries = []
    for item in items:
        entry = entry_from_invoice_item(item, already_returned=returned.get(item.id, 0))
        if entry.max_quantity < 1:
            continue
        entries.append(entry)

    snapshot = InvoiceSnapshot(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        client_name=invoice.client_name or 'Walk-in Customer',
        client_phone=invoice.client_phone or '',
    )
    return snapshot, entries

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from jewelry_retail.db import get_db
from jewelry_retail.dependencies import get_actor, http_error_from
from jewelry_retail.schemas import (
    CustomOrderItemIn,
    CustomOrderItemOut,
    InvoiceCreate,
    InvoiceOut,
    LineItemIn,
    LineItemOut,
    TotalsIn,
    TotalsOut,
)
from jewelry_retail.services.invoice_service import create_invoice, get_invoice, list_invoices, new_line_for_product
from jewelry_retail.services.pricing_math_service import (
    DiscountSpec,
    LineInputs,
    LineItem,
    apply_discount,
    apply_rate,
    compute_custom_order_item,
    compute_line_item,
)
from jewelry_retail.services.sale_totals_service import aggregate_totals

router = APIRouter(prefix='/invoices', tags=['invoices'])


def _line_from_payload(payload: LineItemIn) -> LineItem:
    return compute_line_item(
        LineInputs(
            pricing_mode=payload.pricing_mode,
            weight_grams=payload.weight_grams,
            quantity=payload.quantity,
            rate_per_gram=payload.rate_per_gram,
            making_charge_rate=payload.making_charge_rate,
            gross_flat_price=payload.gross_flat_price,
        ),
        discount=DiscountSpec(discount_type=payload.discount_type, value=payload.discount_value),
        gst_percentage=payload.gst_percentage,
        product_id=payload.product_id,
        sku=payload.sku,
        product_name=payload.product_name,
        category=payload.category,
    )


@router.post('/line-items/preview', response_model=LineItemOut)
def preview_line_item(payload: LineItemIn):
    return _line_from_payload(payload)


@router.post('/totals/preview', response_model=TotalsOut)
def preview_totals(payload: TotalsIn):
    return aggregate_totals([_line_from_payload(item) for item in payload.items], payload.gst_percentage)


@router.post('/custom-order-items/preview', response_model=CustomOrderItemOut)
def preview_custom_order_item(payload: CustomOrderItemIn):
    return compute_custom_order_item(
        pricing_mode=payload.pricing_mode,
        quantity=payload.quantity,
        expected_weight=payload.expected_weight,
        rate_per_gram=payload.rate_per_gram,
        mc_per_gram=payload.mc_per_gram,
        discount_on_mc=payload.discount_on_mc,
        flat_price=payload.flat_price,
    )


@router.post('', response_model=InvoiceOut, status_code=201)
def create_invoice_route(
    payload: InvoiceCreate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    try:
        items = []
        for line in payload.items:
            item = new_line_for_product(db, product_id=line.product_id, quantity=line.quantity, metal=payload.metal)
            if line.rate_per_gram is not None:
                item = apply_rate(item, line.rate_per_gram)
            items.append(apply_discount(item, line.discount_value, line.discount_type))
        invoice = create_invoice(
            db,
            items=items,
            client_name=payload.client_name,
            client_phone=payload.client_phone,
            payment_mode=payload.payment_mode,
            notes=payload.notes,
            created_by=payload.created_by or actor,
        )
    except ValueError as exc:
        raise http_error_from(exc) from exc
    db.commit()
    return invoice


@router.get('/{invoice_id}', response_model=InvoiceOut)
def invoice_detail(invoice_id: int, db: Session = Depends(get_db)):
    try:
        return get_invoice(db, invoice_id=invoice_id)
    except ValueError as exc:
        raise http_error_from(exc) from exc


@router.get('', response_model=list[InvoiceOut])
def invoice_list(limit: int = 100, db: Session = Depends(get_db)):
    return list_invoices(db, limit=min(max(limit, 1), 500))

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from jewelry_retail.errors import NotFoundError
from jewelry_retail.logger_config import logger
from jewelry_retail.models import Invoice, InvoiceItem, PaymentStatus, Product, StockMovementType
from jewelry_retail.services.activity_service import log_activity
from jewelry_retail.services.metal_rate_service import get_current_rate, invoice_prefix
from jewelry_retail.services.pricing_math_service import LineItem, line_item_from_product, quantize_money
from jewelry_retail.services.reference_service import generate_invoice_number
from jewelry_retail.services.sale_totals_service import aggregate_totals
from jewelry_retail.services.stock_service import record_movement

PAY_LATER = 'pay_later'


def new_line_for_product(db: Session, *, product_id: int, quantity: int = 1, metal: str = 'silver') -> LineItem:
    product = db.get(Product, product_id)
    if not product:
        raise NotFoundError('Product not found')
    if product.quantity <= 0:
        raise ValueError(f'{product.name} is out of stock')
    return line_item_from_product(product, get_current_rate(db, metal), quantity=quantity)


def _invoice_item_row(invoice_id: int, item: LineItem) -> InvoiceItem:
    return InvoiceItem(
        invoice_id=invoice_id,
        product_id=item.product_id,
        sku=item.sku,
        product_name=item.product_name,
        category=item.category,
        pricing_mode=item.pricing_mode,
        weight_grams=item.weight_grams,
        quantity=item.quantity,
        rate_per_gram=quantize_money(item.rate_per_gram),
        making_charge_rate=quantize_money(item.making_charge_rate),
        gross_flat_price=quantize_money(item.gross_flat_price),
        base_price=quantize_money(item.base_price),
        making_charges=quantize_money(item.making_charges),
        discount_type=item.discount_type,
        discount_value=quantize_money(item.discount_value),
        discount=quantize_money(item.discount),
        discounted_making=quantize_money(item.discounted_making),
        line_total=quantize_money(item.line_total),
        gst_percentage=item.gst_percentage,
        gst_amount=quantize_money(item.gst_amount),
        total=quantize_money(item.total),
    )


def create_invoice(
    db: Session,
    *,
    items: Sequence[LineItem],
    client_name: str | None = None,
    client_phone: str | None = None,
    payment_mode: str | None = None,
    notes: str | None = None,
    created_by: str | None = None,
    gst_percentage: Decimal | None = None,
) -> Invoice:
    if not items:
        raise ValueError('Please add at least one product')

    totals = aggregate_totals(items, gst_percentage)
    invoice_number = generate_invoice_number(db, invoice_prefix(db))
    invoice = Invoice(
        invoice_number=invoice_number,
        client_name=(client_name or '').strip() or None,
        client_phone=(client_phone or '').strip() or None,
        subtotal=quantize_money(totals.subtotal),
        discount_amount=quantize_money(totals.discount_total),
        gst_amount=quantize_money(totals.tax_amount),
        grand_total=quantize_money(totals.grand_total),
        payment_status=PaymentStatus.PENDING if payment_mode == PAY_LATER else PaymentStatus.PAID,
        payment_mode=payment_mode,
        notes=(notes or '').strip() or None,
        created_by=created_by,
    )
    db.add(invoice)
    db.flush()

    for item in items:
        db.add(_invoice_item_row(invoice.id, item))
    for item in items:
        if item.product_id is None:
            continue
        record_movement(
            db,
            product_id=item.product_id,
            quantity_change=-item.quantity,
            movement_type=StockMovementType.OUT,
            reason=f'Sale - {invoice_number}',
            reference_table=Invoice.__tablename__,
            reference_id=invoice.id,
            created_by=created_by,
        )

    log_activity(
        db,
        module='invoice',
        action='create',
        record_id=invoice.id,
        record_label=invoice_number,
        actor=created_by,
        new_value={
            'invoice_number': invoice_number,
            'client': invoice.client_name,
            'grand_total': invoice.grand_total,
            'items': len(items),
        },
    )
    db.flush()
    logger.info('Created invoice %s with %s items, grand total %s', invoice_number, len(items), invoice.grand_total)
    return invoice


def get_invoice(db: Session, *, invoice_id: int) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError('Invoice not found')
    return invoice


def list_invoices(db: Session, *, limit: int = 100) -> list[Invoice]:
    return db.execute(select(Invoice).order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(limit)).scalars().all()

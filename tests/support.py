from __future__ import annotations

from decimal import Decimal

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from jewelry_retail.models import Base, DiscountType, PricingMode, Product, StockHistory
from jewelry_retail.services.invoice_service import create_invoice
from jewelry_retail.services.pricing_math_service import apply_discount, line_item_from_product

SILVER_RATE = Decimal('95')


def make_session_factory() -> sessionmaker:
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


def add_product(
    db: Session,
    *,
    sku: str,
    name: str,
    quantity: int,
    pricing_mode: PricingMode = PricingMode.WEIGHT_BASED,
    weight_grams: str = '10',
    making_charge_rate: str = '20',
    selling_price: str = '0',
) -> Product:
    product = Product(
        sku=sku,
        name=name,
        category='Rings',
        metal_type='silver',
        pricing_mode=pricing_mode,
        weight_grams=Decimal(weight_grams),
        making_charge_rate=Decimal(making_charge_rate),
        selling_price=Decimal(selling_price),
        gst_percentage=Decimal('3'),
        quantity=quantity,
    )
    db.add(product)
    db.flush()
    return product


def sell(db: Session, lines: list[tuple[Product, int, str]], *, client_name: str = 'Asha Verma'):
    """Create and commit an invoice of (product, quantity, percentage discount) lines."""
    items = []
    for product, quantity, discount_pct in lines:
        item = line_item_from_product(product, SILVER_RATE, quantity=quantity)
        items.append(apply_discount(item, Decimal(discount_pct), DiscountType.PERCENTAGE))
    invoice = create_invoice(db, items=items, client_name=client_name, client_phone='9800000000', payment_mode='cash')
    db.commit()
    return invoice


def on_hand(db: Session, product_id: int) -> int:
    return db.execute(select(Product.quantity).where(Product.id == product_id)).scalar_one()


def ledger_count(db: Session, *, reference_table: str, reference_id: int) -> int:
    return len(
        db.execute(
            select(StockHistory.id).where(
                StockHistory.reference_table == reference_table,
                StockHistory.reference_id == reference_id,
            )
        ).all()
    )

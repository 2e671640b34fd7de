from decimal import Decimal

from sqlalchemy import select

from jewelry_retail.db import SessionLocal, engine
from jewelry_retail.models import Base, PricingMode, Product
from jewelry_retail.services.metal_rate_service import get_business_settings, update_metal_rates

DEMO_PRODUCTS = [
    ('SLV-RING-001', 'Oxidised Silver Ring', 'Rings', PricingMode.WEIGHT_BASED, '10.000', '20.00', '0', 12),
    ('SLV-ANK-002', 'Silver Anklet Pair', 'Anklets', PricingMode.WEIGHT_BASED, '42.500', '18.00', '0', 6),
    ('SLV-CHN-003', 'Silver Rope Chain', 'Chains', PricingMode.WEIGHT_BASED, '25.000', '15.00', '0', 8),
    ('GFT-BOX-001', 'Silver Coated Gift Box', 'Gifts', PricingMode.FLAT_PRICE, '0', '0', '5000.00', 5),
]


def seed() -> None:
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        if not get_business_settings(db):
            update_metal_rates(db, gold_rate_per_gram=Decimal('6200'), silver_rate_per_gram=Decimal('95'))

        for sku, name, category, mode, weight, mc_rate, price, qty in DEMO_PRODUCTS:
            product = db.execute(select(Product).where(Product.sku == sku)).scalar_one_or_none()
            if product:
                continue
            db.add(
                Product(
                    sku=sku,
                    name=name,
                    category=category,
                    metal_type='silver',
                    pricing_mode=mode,
                    weight_grams=Decimal(weight),
                    making_charge_rate=Decimal(mc_rate),
                    selling_price=Decimal(price),
                    gst_percentage=Decimal('3'),
                    quantity=qty,
                )
            )

        db.commit()


if __name__ == '__main__':
    seed()
    print('Seed data inserted/verified.')

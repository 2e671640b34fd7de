from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from jewelry_retail.config import settings
from jewelry_retail.models import BusinessSettings

METALS = ('gold', 'silver')


def get_business_settings(db: Session) -> BusinessSettings | None:
    return db.execute(select(BusinessSettings).order_by(BusinessSettings.id.asc()).limit(1)).scalar_one_or_none()


def _default_rate(metal: str) -> Decimal:
    if metal == 'gold':
        return settings.default_gold_rate_per_gram
    return settings.default_silver_rate_per_gram


def get_current_rate(db: Session, metal: str = 'silver') -> Decimal:
    metal = (metal or 'silver').strip().lower()
    if metal not in METALS:
        raise ValueError(f'Unknown metal: {metal}')

    row = get_business_settings(db)
    if row is None:
        return _default_rate(metal)
    rate = row.gold_rate_per_gram if metal == 'gold' else row.silver_rate_per_gram
    if rate is None or rate <= 0:
        return _default_rate(metal)
    return rate


def update_metal_rates(
    db: Session,
    *,
    gold_rate_per_gram: Decimal | None = None,
    silver_rate_per_gram: Decimal | None = None,
) -> BusinessSettings:
    for label, value in (('Gold', gold_rate_per_gram), ('Silver', silver_rate_per_gram)):
        if value is not None and value < 0:
            raise ValueError(f'{label} rate cannot be negative')

    row = get_business_settings(db)
    if row is None:
        row = BusinessSettings(
            business_name='My Jewellery Store',
            invoice_prefix=settings.invoice_prefix,
            default_gst=settings.gst_percentage,
            gold_rate_per_gram=settings.default_gold_rate_per_gram,
            silver_rate_per_gram=settings.default_silver_rate_per_gram,
        )
        db.add(row)
    if gold_rate_per_gram is not None:
        row.gold_rate_per_gram = gold_rate_per_gram
    if silver_rate_per_gram is not None:
        row.silver_rate_per_gram = silver_rate_per_gram
    db.flush()
    return row


def invoice_prefix(db: Session) -> str:
    row = get_business_settings(db)
    if row and row.invoice_prefix:
        return row.invoice_prefix
    return settings.invoice_prefix

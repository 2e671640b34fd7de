from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from jewelry_retail.config import settings
from jewelry_retail.services.pricing_math_service import HUNDRED, ZERO, LineItem, to_decimal


@dataclass(frozen=True)
class SaleTotals:
    subtotal: Decimal
    discount_total: Decimal
    tax_amount: Decimal
    grand_total: Decimal


def aggregate_totals(items: Iterable[LineItem], gst_percentage: Decimal | None = None) -> SaleTotals:
    # One sale-level rate; per-item gst_percentage is kept on the items for display only.
    rate = to_decimal(settings.gst_percentage if gst_percentage is None else gst_percentage)
    subtotal = ZERO
    discount_total = ZERO
    for item in items:
        subtotal += item.line_total
        discount_total += item.discount
    tax_amount = subtotal * rate / HUNDRED
    return SaleTotals(
        subtotal=subtotal,
        discount_total=discount_total,
        tax_amount=tax_amount,
        grand_total=subtotal + tax_amount,
    )

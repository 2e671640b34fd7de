from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal

from jewelry_retail.config import settings
from jewelry_retail.models import DiscountType, PricingMode

ZERO = Decimal('0')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _non_negative(value: Decimal | int | float | str | None) -> Decimal:
    parsed = to_decimal(value)
    return parsed if parsed > 0 else ZERO


@dataclass(frozen=True)
class DiscountSpec:
    discount_type: DiscountType = DiscountType.FIXED
    value: Decimal = ZERO


@dataclass(frozen=True)
class LineInputs:
    pricing_mode: PricingMode
    weight_grams: Decimal = ZERO
    quantity: int = 1
    rate_per_gram: Decimal = ZERO
    making_charge_rate: Decimal = ZERO
    gross_flat_price: Decimal = ZERO

    def clamped(self) -> LineInputs:
        return LineInputs(
            pricing_mode=self.pricing_mode,
            weight_grams=_non_negative(self.weight_grams),
            quantity=max(int(self.quantity), 1),
            rate_per_gram=_non_negative(self.rate_per_gram),
            making_charge_rate=_non_negative(self.making_charge_rate),
            gross_flat_price=_non_negative(self.gross_flat_price),
        )


@dataclass(frozen=True)
class PricedBase:
    base_price: Decimal
    making_charges: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class LineItem:
    pricing_mode: PricingMode
    weight_grams: Decimal
    quantity: int
    rate_per_gram: Decimal
    making_charge_rate: Decimal
    gross_flat_price: Decimal
    base_price: Decimal
    making_charges: Decimal
    discount_type: DiscountType
    discount_value: Decimal
    discount: Decimal
    discounted_making: Decimal
    line_total: Decimal
    gst_percentage: Decimal
    gst_amount: Decimal
    total: Decimal
    product_id: int | None = None
    sku: str | None = None
    product_name: str = ''
    category: str | None = None

    @property
    def is_flat(self) -> bool:
        return self.pricing_mode == PricingMode.FLAT_PRICE

    @property
    def discount_spec(self) -> DiscountSpec:
        return DiscountSpec(discount_type=self.discount_type, value=self.discount_value)


def price_base(inputs: LineInputs) -> PricedBase:
    """Base price and making charges of a line before any discount.

    Weight-based lines are metal value (weight x rate x quantity) plus a per-gram
    making charge; flat-price lines carry the gross price times quantity and no
    making charge.
    """
    quantity = Decimal(inputs.quantity)
    if inputs.pricing_mode == PricingMode.FLAT_PRICE:
        base_price = inputs.gross_flat_price * quantity
        return PricedBase(base_price=base_price, making_charges=ZERO, line_total=base_price)

    base_price = inputs.weight_grams * inputs.rate_per_gram * quantity
    making_charges = inputs.making_charge_rate * inputs.weight_grams * quantity
    return PricedBase(base_price=base_price, making_charges=making_charges, line_total=base_price + making_charges)


def derive_discount(base: Decimal, spec: DiscountSpec) -> Decimal:
    """Money discount for `spec` against `base`, bounded to [0, base]."""
    base = _non_negative(base)
    value = _non_negative(spec.value)
    if spec.discount_type == DiscountType.PERCENTAGE:
        raw = base * value / HUNDRED
    else:
        raw = value
    return min(base, raw)


def _discount_base(pricing_mode: PricingMode, base_price: Decimal, making_charges: Decimal) -> Decimal:
    # Weight-based discounts only ever reduce the making charge, never the metal value.
    if pricing_mode == PricingMode.FLAT_PRICE:
        return base_price
    return making_charges


def _gst_for(line_total: Decimal, gst_percentage: Decimal) -> Decimal:
    return line_total * gst_percentage / HUNDRED


def _settle(item: LineItem, *, base_price: Decimal, making_charges: Decimal, spec: DiscountSpec) -> LineItem:
    discount = derive_discount(_discount_base(item.pricing_mode, base_price, making_charges), spec)
    if item.pricing_mode == PricingMode.FLAT_PRICE:
        discounted_making = ZERO
        line_total = base_price - discount
    else:
        discounted_making = making_charges - discount
        line_total = base_price + discounted_making
    gst_amount = _gst_for(line_total, item.gst_percentage)
    return replace(
        item,
        base_price=base_price,
        making_charges=making_charges,
        discount_type=spec.discount_type,
        discount_value=_non_negative(spec.value),
        discount=discount,
        discounted_making=discounted_making,
        line_total=line_total,
        gst_amount=gst_amount,
        total=line_total + gst_amount,
    )


def compute_line_item(
    inputs: LineInputs,
    *,
    discount: DiscountSpec | None = None,
    gst_percentage: Decimal | None = None,
    product_id: int | None = None,
    sku: str | None = None,
    product_name: str = '',
    category: str | None = None,
) -> LineItem:
    inputs = inputs.clamped()
    spec = discount or DiscountSpec()
    priced = price_base(inputs)
    is_flat = inputs.pricing_mode == PricingMode.FLAT_PRICE
    draft = LineItem(
        pricing_mode=inputs.pricing_mode,
        weight_grams=inputs.weight_grams,
        quantity=inputs.quantity,
        rate_per_gram=ZERO if is_flat else inputs.rate_per_gram,
        making_charge_rate=ZERO if is_flat else inputs.making_charge_rate,
        gross_flat_price=inputs.gross_flat_price if is_flat else ZERO,
        base_price=priced.base_price,
        making_charges=priced.making_charges,
        discount_type=spec.discount_type,
        discount_value=ZERO,
        discount=ZERO,
        discounted_making=priced.making_charges,
        line_total=priced.line_total,
        gst_percentage=to_decimal(settings.gst_percentage if gst_percentage is None else gst_percentage),
        gst_amount=ZERO,
        total=ZERO,
        product_id=product_id,
        sku=sku,
        product_name=product_name,
        category=category,
    )
    return _settle(draft, base_price=priced.base_price, making_charges=priced.making_charges, spec=spec)


def line_item_from_product(product, rate_per_gram: Decimal, *, quantity: int = 1) -> LineItem:
    """Snapshot a product's current price fields into a new line item."""
    pricing_mode = PricingMode(product.pricing_mode)
    inputs = LineInputs(
        pricing_mode=pricing_mode,
        weight_grams=to_decimal(product.weight_grams),
        quantity=quantity,
        rate_per_gram=ZERO if pricing_mode == PricingMode.FLAT_PRICE else to_decimal(rate_per_gram),
        making_charge_rate=to_decimal(product.making_charge_rate),
        gross_flat_price=to_decimal(product.selling_price),
    )
    return compute_line_item(
        inputs,
        gst_percentage=to_decimal(product.gst_percentage),
        product_id=product.id,
        sku=product.sku,
        product_name=product.name,
        category=product.category,
    )


def apply_discount(item: LineItem, value: Decimal, discount_type: DiscountType | None = None) -> LineItem:
    spec = DiscountSpec(discount_type=discount_type or item.discount_type, value=_non_negative(value))
    return _settle(item, base_price=item.base_price, making_charges=item.making_charges, spec=spec)


def apply_quantity(item: LineItem, new_quantity: int) -> LineItem:
    if new_quantity < 1:
        return item
    priced = price_base(
        LineInputs(
            pricing_mode=item.pricing_mode,
            weight_grams=item.weight_grams,
            quantity=new_quantity,
            rate_per_gram=item.rate_per_gram,
            making_charge_rate=item.making_charge_rate,
            gross_flat_price=item.gross_flat_price,
        )
    )
    resized = replace(item, quantity=new_quantity)
    # The stored discount type and value are re-applied against the new base; the money amount is not carried over.
    return _settle(resized, base_price=priced.base_price, making_charges=priced.making_charges, spec=item.discount_spec)


def apply_rate(item: LineItem, new_rate: Decimal) -> LineItem:
    new_rate = to_decimal(new_rate)
    if item.is_flat or new_rate < 0:
        return item
    base_price = item.weight_grams * new_rate * Decimal(item.quantity)
    line_total = base_price + item.discounted_making
    gst_amount = _gst_for(line_total, item.gst_percentage)
    return replace(
        item,
        rate_per_gram=new_rate,
        base_price=base_price,
        line_total=line_total,
        gst_amount=gst_amount,
        total=line_total + gst_amount,
    )


@dataclass(frozen=True)
class CustomOrderLine:
    base_price: Decimal
    making_charges: Decimal
    item_total: Decimal


def compute_custom_order_item(
    *,
    pricing_mode: PricingMode,
    quantity: int,
    expected_weight: Decimal = ZERO,
    rate_per_gram: Decimal = ZERO,
    mc_per_gram: Decimal = ZERO,
    discount_on_mc: Decimal = ZERO,
    flat_price: Decimal = ZERO,
) -> CustomOrderLine:
    """Price a custom job-work order line; its discount is always a percentage of making charges."""
    quantity = max(int(quantity), 1)
    if pricing_mode == PricingMode.FLAT_PRICE:
        return CustomOrderLine(
            base_price=ZERO, making_charges=ZERO, item_total=_non_negative(flat_price) * Decimal(quantity)
        )
    priced = price_base(
        LineInputs(
            pricing_mode=PricingMode.WEIGHT_BASED,
            weight_grams=_non_negative(expected_weight),
            quantity=quantity,
            rate_per_gram=_non_negative(rate_per_gram),
            making_charge_rate=_non_negative(mc_per_gram),
        )
    )
    discount = derive_discount(
        priced.making_charges, DiscountSpec(discount_type=DiscountType.PERCENTAGE, value=to_decimal(discount_on_mc))
    )
    making_charges = priced.making_charges - discount
    return CustomOrderLine(
        base_price=priced.base_price,
        making_charges=making_charges,
        item_total=priced.base_price + making_charges,
    )

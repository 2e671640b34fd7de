from __future__ import annotations

import unittest
from decimal import Decimal
from types import SimpleNamespace

from jewelry_retail.models import DiscountType, PricingMode
from jewelry_retail.services.pricing_math_service import (
    DiscountSpec,
    LineInputs,
    apply_discount,
    apply_quantity,
    apply_rate,
    compute_custom_order_item,
    compute_line_item,
    derive_discount,
    line_item_from_product,
    price_base,
)


def _weight_item(quantity=2, discount=None):
    return compute_line_item(
        LineInputs(
            pricing_mode=PricingMode.WEIGHT_BASED,
            weight_grams=Decimal('10'),
            quantity=quantity,
            rate_per_gram=Decimal('95'),
            making_charge_rate=Decimal('20'),
        ),
        discount=discount,
        gst_percentage=Decimal('3'),
    )


def _flat_item(quantity=3, discount=None):
    return compute_line_item(
        LineInputs(pricing_mode=PricingMode.FLAT_PRICE, quantity=quantity, gross_flat_price=Decimal('5000')),
        discount=discount,
        gst_percentage=Decimal('3'),
    )


class PricingRulesTests(unittest.TestCase):
    def test_weight_based_base_and_making_charges(self) -> None:
        priced = price_base(
            LineInputs(
                pricing_mode=PricingMode.WEIGHT_BASED,
                weight_grams=Decimal('10'),
                quantity=2,
                rate_per_gram=Decimal('95'),
                making_charge_rate=Decimal('20'),
            )
        )
        self.assertEqual(priced.base_price, Decimal('1900'))
        self.assertEqual(priced.making_charges, Decimal('400'))
        self.assertEqual(priced.line_total, Decimal('2300'))

    def test_flat_price_has_no_making_charge(self) -> None:
        priced = price_base(
            LineInputs(
                pricing_mode=PricingMode.FLAT_PRICE,
                weight_grams=Decimal('12'),
                quantity=3,
                rate_per_gram=Decimal('95'),
                making_charge_rate=Decimal('20'),
                gross_flat_price=Decimal('5000'),
            )
        )
        self.assertEqual(priced.base_price, Decimal('15000'))
        self.assertEqual(priced.making_charges, Decimal('0'))
        self.assertEqual(priced.line_total, Decimal('15000'))

    def test_weight_based_percentage_discount_scenario(self) -> None:
        item = _weight_item(discount=DiscountSpec(DiscountType.PERCENTAGE, Decimal('10')))
        self.assertEqual(item.base_price, Decimal('1900'))
        self.assertEqual(item.making_charges, Decimal('400'))
        self.assertEqual(item.discount, Decimal('40'))
        self.assertEqual(item.discounted_making, Decimal('360'))
        self.assertEqual(item.line_total, Decimal('2260'))
        self.assertEqual(item.gst_amount, Decimal('67.8'))
        self.assertEqual(item.total, Decimal('2327.8'))

    def test_flat_price_fixed_discount_scenario(self) -> None:
        item = _flat_item(discount=DiscountSpec(DiscountType.FIXED, Decimal('1000')))
        self.assertEqual(item.base_price, Decimal('15000'))
        self.assertEqual(item.discount, Decimal('1000'))
        self.assertEqual(item.line_total, Decimal('14000'))
        self.assertEqual(item.rate_per_gram, Decimal('0'))

    def test_negative_inputs_are_clamped(self) -> None:
        item = compute_line_item(
            LineInputs(
                pricing_mode=PricingMode.WEIGHT_BASED,
                weight_grams=Decimal('-5'),
                quantity=0,
                rate_per_gram=Decimal('95'),
                making_charge_rate=Decimal('-20'),
            )
        )
        self.assertEqual(item.quantity, 1)
        self.assertEqual(item.base_price, Decimal('0'))
        self.assertEqual(item.making_charges, Decimal('0'))
        self.assertEqual(item.line_total, Decimal('0'))

    def test_line_from_product_snapshot(self) -> None:
        product = SimpleNamespace(
            id=7,
            sku='SLV-RING-001',
            name='Oxidised Silver Ring',
            category='Rings',
            pricing_mode='weight_based',
            weight_grams=Decimal('10'),
            making_charge_rate=Decimal('20'),
            selling_price=Decimal('0'),
            gst_percentage=Decimal('3'),
        )
        item = line_item_from_product(product, Decimal('95'))
        self.assertEqual(item.product_id, 7)
        self.assertEqual(item.quantity, 1)
        self.assertEqual(item.line_total, Decimal('1150'))

    def test_flat_product_ignores_metal_rate(self) -> None:
        product = SimpleNamespace(
            id=8,
            sku='GFT-BOX-001',
            name='Gift Box',
            category=None,
            pricing_mode='flat_price',
            weight_grams=Decimal('40'),
            making_charge_rate=Decimal('0'),
            selling_price=Decimal('5000'),
            gst_percentage=Decimal('3'),
        )
        item = line_item_from_product(product, Decimal('95'), quantity=2)
        self.assertEqual(item.rate_per_gram, Decimal('0'))
        self.assertEqual(item.line_total, Decimal('10000'))


class DiscountRuleTests(unittest.TestCase):
    def test_percentage_is_share_of_base(self) -> None:
        self.assertEqual(derive_discount(Decimal('400'), DiscountSpec(DiscountType.PERCENTAGE, Decimal('10'))), Decimal('40'))

    def test_discount_never_exceeds_base(self) -> None:
        self.assertEqual(derive_discount(Decimal('400'), DiscountSpec(DiscountType.FIXED, Decimal('900'))), Decimal('400'))
        self.assertEqual(
            derive_discount(Decimal('400'), DiscountSpec(DiscountType.PERCENTAGE, Decimal('150'))), Decimal('400')
        )

    def test_negative_discount_value_becomes_zero(self) -> None:
        self.assertEqual(derive_discount(Decimal('400'), DiscountSpec(DiscountType.FIXED, Decimal('-5'))), Decimal('0'))


class LineItemMutatorTests(unittest.TestCase):
    def test_weight_discount_only_touches_making_charges(self) -> None:
        item = apply_discount(_weight_item(), Decimal('1000'), DiscountType.FIXED)
        self.assertEqual(item.discount, Decimal('400'))
        self.assertEqual(item.line_total, Decimal('1900'))

    def test_flat_discount_applies_to_gross_total(self) -> None:
        item = apply_discount(_flat_item(), Decimal('10'), DiscountType.PERCENTAGE)
        self.assertEqual(item.discount, Decimal('1500'))
        self.assertEqual(item.line_total, Decimal('13500'))

    def test_discount_keeps_existing_type_when_not_given(self) -> None:
        item = _weight_item(discount=DiscountSpec(DiscountType.PERCENTAGE, Decimal('10')))
        item = apply_discount(item, Decimal('25'))
        self.assertEqual(item.discount_type, DiscountType.PERCENTAGE)
        self.assertEqual(item.discount, Decimal('100'))

    def test_quantity_change_reapplies_percentage_discount(self) -> None:
        item = _weight_item(discount=DiscountSpec(DiscountType.PERCENTAGE, Decimal('10')))
        item = apply_quantity(item, 3)
        self.assertEqual(item.base_price, Decimal('2850'))
        self.assertEqual(item.making_charges, Decimal('600'))
        self.assertEqual(item.discount, Decimal('60'))
        self.assertEqual(item.line_total, Decimal('3390'))

    def test_quantity_change_reclamps_fixed_discount(self) -> None:
        item = _weight_item(discount=DiscountSpec(DiscountType.FIXED, Decimal('300')))
        self.assertEqual(item.discount, Decimal('300'))
        item = apply_quantity(item, 1)
        self.assertEqual(item.making_charges, Decimal('200'))
        self.assertEqual(item.discount, Decimal('200'))
        self.assertEqual(item.discount_value, Decimal('300'))
        self.assertEqual(item.line_total, Decimal('950'))

    def test_quantity_below_one_leaves_item_unchanged(self) -> None:
        item = _weight_item()
        self.assertIs(apply_quantity(item, 0), item)

    def test_flat_quantity_change(self) -> None:
        item = apply_quantity(_flat_item(discount=DiscountSpec(DiscountType.FIXED, Decimal('1000'))), 1)
        self.assertEqual(item.base_price, Decimal('5000'))
        self.assertEqual(item.line_total, Decimal('4000'))

    def test_rate_change_keeps_discounted_making(self) -> None:
        item = _weight_item(discount=DiscountSpec(DiscountType.PERCENTAGE, Decimal('10')))
        item = apply_rate(item, Decimal('100'))
        self.assertEqual(item.rate_per_gram, Decimal('100'))
        self.assertEqual(item.base_price, Decimal('2000'))
        self.assertEqual(item.discounted_making, Decimal('360'))
        self.assertEqual(item.line_total, Decimal('2360'))
        self.assertEqual(item.total, Decimal('2430.8'))

    def test_rate_change_ignored_for_flat_items(self) -> None:
        item = _flat_item()
        self.assertIs(apply_rate(item, Decimal('120')), item)

    def test_line_total_formula_holds_after_mutations(self) -> None:
        item = _weight_item()
        for quantity, value, discount_type in (
            (1, Decimal('5'), DiscountType.PERCENTAGE),
            (4, Decimal('250'), DiscountType.FIXED),
            (2, Decimal('100'), DiscountType.PERCENTAGE),
            (5, Decimal('10000'), DiscountType.FIXED),
        ):
            item = apply_discount(apply_quantity(item, quantity), value, discount_type)
            gross_making = Decimal('20') * Decimal('10') * quantity
            expected = Decimal('10') * Decimal('95') * quantity + gross_making - item.discount
            self.assertEqual(item.line_total, expected)
            self.assertGreaterEqual(item.discount, Decimal('0'))
            self.assertLessEqual(item.discount, gross_making)


class CustomOrderPricingTests(unittest.TestCase):
    def test_weight_based_custom_order_discounts_making_by_percentage(self) -> None:
        line = compute_custom_order_item(
            pricing_mode=PricingMode.WEIGHT_BASED,
            quantity=2,
            expected_weight=Decimal('10'),
            rate_per_gram=Decimal('95'),
            mc_per_gram=Decimal('20'),
            discount_on_mc=Decimal('10'),
        )
        self.assertEqual(line.base_price, Decimal('1900'))
        self.assertEqual(line.making_charges, Decimal('360'))
        self.assertEqual(line.item_total, Decimal('2260'))

    def test_flat_custom_order(self) -> None:
        line = compute_custom_order_item(pricing_mode=PricingMode.FLAT_PRICE, quantity=2, flat_price=Decimal('5000'))
        self.assertEqual(line.item_total, Decimal('10000'))
        self.assertEqual(line.base_price, Decimal('0'))


if __name__ == '__main__':
    unittest.main()

from __future__ import annotations

import unittest
from decimal import Decimal

from jewelry_retail.models import ItemDirection, PricingMode, ReturnExchangeType, StockMovementType
from jewelry_retail.services.pricing_math_service import LineInputs, compute_line_item
from jewelry_retail.services.reconciliation_math_service import (
    FlowError,
    FlowState,
    ReconciliationFlow,
    confirm_exchange,
    confirm_return,
    settle_difference,
)
from jewelry_retail.services.return_selection_service import (
    InvoiceSnapshot,
    SelectionEntry,
    SelectionError,
    set_reason,
    set_return_quantity,
    toggle_selection,
)

INVOICE = InvoiceSnapshot(id=1, invoice_number='INV-20261017-0001', client_name='Asha Verma', client_phone='')


def _entry(*, item_id=1, quantity=1, total='2000'):
    total = Decimal(total)
    return SelectionEntry(
        invoice_item_id=item_id,
        product_id=item_id * 10,
        product_name=f'Item {item_id}',
        sku=f'SKU-{item_id}',
        category='Rings',
        weight_grams=Decimal('10'),
        quantity=quantity,
        max_quantity=quantity,
        rate_per_gram=Decimal('95'),
        making_charges=Decimal('200'),
        discount=Decimal('0'),
        line_total=total,
        gst_percentage=Decimal('0'),
        gst_amount=Decimal('0'),
        total=total,
    )


def _new_item(price='2500', quantity=1, product_id=99):
    return compute_line_item(
        LineInputs(pricing_mode=PricingMode.FLAT_PRICE, quantity=quantity, gross_flat_price=Decimal(price)),
        gst_percentage=Decimal('0'),
        product_id=product_id,
        product_name='Silver Chain',
    )


class SettleDifferenceTests(unittest.TestCase):
    def test_more_expensive_exchange_charges_customer(self) -> None:
        self.assertEqual(settle_difference(Decimal('2000'), Decimal('2500')), (Decimal('0'), Decimal('500')))

    def test_cheaper_exchange_refunds_customer(self) -> None:
        self.assertEqual(settle_difference(Decimal('2500'), Decimal('2000')), (Decimal('500'), Decimal('0')))

    def test_even_exchange_settles_nothing(self) -> None:
        self.assertEqual(settle_difference(Decimal('2000'), Decimal('2000')), (Decimal('0'), Decimal('0')))

    def test_never_both_non_zero(self) -> None:
        for old, new in (('0', '10'), ('10', '0'), ('123.45', '123.44'), ('99.99', '100.00')):
            refund, charge = settle_difference(Decimal(old), Decimal(new))
            self.assertTrue(refund == 0 or charge == 0)
            self.assertGreaterEqual(refund, 0)
            self.assertGreaterEqual(charge, 0)
            self.assertEqual(charge - refund, Decimal(new) - Decimal(old))


class ConfirmReturnTests(unittest.TestCase):
    def test_refund_is_sum_of_allocated_totals(self) -> None:
        first = set_return_quantity(toggle_selection(_entry(item_id=1, quantity=4, total='2260')), 1)
        second = toggle_selection(_entry(item_id=2, quantity=1, total='1000'))
        set_reason(second, 'Wrong size')
        plan = confirm_return([first, second, _entry(item_id=3)])

        self.assertEqual(plan.type, ReturnExchangeType.RETURN)
        self.assertEqual(plan.refund_amount, Decimal('1565.00'))
        self.assertEqual(plan.additional_charge, Decimal('0'))
        self.assertEqual(plan.reason, 'Wrong size')
        self.assertEqual(len(plan.returned_items), 2)
        self.assertEqual(
            [(delta.product_id, delta.quantity_change, delta.type) for delta in plan.stock_deltas],
            [(10, 1, StockMovementType.IN), (20, 1, StockMovementType.IN)],
        )

    def test_unselected_return_is_rejected(self) -> None:
        with self.assertRaises(SelectionError):
            confirm_return([_entry()])

    def test_line_without_product_moves_no_stock(self) -> None:
        entry = toggle_selection(_entry())
        entry.product_id = None
        plan = confirm_return([entry])
        self.assertEqual(plan.stock_deltas, ())
        self.assertEqual(plan.refund_amount, Decimal('2000.00'))


class ConfirmExchangeTests(unittest.TestCase):
    def test_upgrade_exchange(self) -> None:
        plan = confirm_exchange([toggle_selection(_entry(total='2000'))], [_new_item('2500')])
        self.assertEqual(plan.type, ReturnExchangeType.EXCHANGE)
        self.assertEqual(plan.old_total, Decimal('2000.00'))
        self.assertEqual(plan.new_total, Decimal('2500.00'))
        self.assertEqual(plan.difference, Decimal('500.00'))
        self.assertEqual(plan.additional_charge, Decimal('500.00'))
        self.assertEqual(plan.refund_amount, Decimal('0'))
        self.assertEqual(
            [(delta.product_id, delta.quantity_change, delta.type, delta.direction) for delta in plan.stock_deltas],
            [
                (10, 1, StockMovementType.IN, ItemDirection.RETURNED),
                (99, -1, StockMovementType.OUT, ItemDirection.NEW),
            ],
        )

    def test_downgrade_exchange_refunds(self) -> None:
        plan = confirm_exchange([toggle_selection(_entry(total='2000'))], [_new_item('750', quantity=2)])
        self.assertEqual(plan.new_total, Decimal('1500.00'))
        self.assertEqual(plan.refund_amount, Decimal('500.00'))
        self.assertEqual(plan.additional_charge, Decimal('0'))
        self.assertEqual(plan.stock_deltas[-1].quantity_change, -2)

    def test_exchange_requires_new_items(self) -> None:
        with self.assertRaises(SelectionError) as raised:
            confirm_exchange([toggle_selection(_entry())], [])
        self.assertIn('new item', str(raised.exception))

    def test_exchange_requires_selection(self) -> None:
        with self.assertRaises(SelectionError):
            confirm_exchange([_entry()], [_new_item()])


class ReconciliationFlowTests(unittest.TestCase):
    def test_return_walkthrough(self) -> None:
        flow = ReconciliationFlow()
        self.assertEqual(flow.state, FlowState.SEARCHING_INVOICE)

        flow.invoice_loaded(INVOICE, [_entry()])
        self.assertEqual(flow.state, FlowState.SELECTING_ITEMS)
        toggle_selection(flow.entries[0])

        flow.confirm_items(ReturnExchangeType.RETURN)
        self.assertEqual(flow.state, FlowState.RETURN_DETAILS)
        plan = flow.build_plan()
        self.assertEqual(plan.refund_amount, Decimal('2000.00'))

        flow.mark_committed(42)
        self.assertEqual(flow.state, FlowState.COMMITTED)
        self.assertEqual(flow.record_id, 42)

    def test_exchange_walkthrough(self) -> None:
        flow = ReconciliationFlow()
        flow.invoice_loaded(INVOICE, [_entry()])
        toggle_selection(flow.entries[0])
        flow.confirm_items(ReturnExchangeType.EXCHANGE)
        self.assertEqual(flow.state, FlowState.EXCHANGE_DETAILS)
        self.assertEqual(flow.build_plan([_new_item()]).additional_charge, Decimal('500.00'))

    def test_confirm_without_selection_stays_on_items(self) -> None:
        flow = ReconciliationFlow()
        flow.invoice_loaded(INVOICE, [_entry()])
        with self.assertRaises(SelectionError):
            flow.confirm_items(ReturnExchangeType.RETURN)
        self.assertEqual(flow.state, FlowState.SELECTING_ITEMS)

    def test_invoice_without_returnable_items(self) -> None:
        with self.assertRaises(FlowError):
            ReconciliationFlow().invoice_loaded(INVOICE, [])

    def test_out_of_order_steps_are_rejected(self) -> None:
        flow = ReconciliationFlow()
        with self.assertRaises(FlowError):
            flow.build_plan()
        with self.assertRaises(FlowError):
            flow.confirm_items(ReturnExchangeType.RETURN)
        with self.assertRaises(FlowError):
            flow.mark_committed(1)

    def test_back_and_reset(self) -> None:
        flow = ReconciliationFlow()
        flow.invoice_loaded(INVOICE, [_entry()])
        toggle_selection(flow.entries[0])
        flow.confirm_items(ReturnExchangeType.RETURN)

        flow.back()
        self.assertEqual(flow.state, FlowState.SELECTING_ITEMS)
        self.assertTrue(flow.entries[0].selected)
        flow.back()
        self.assertEqual(flow.state, FlowState.SEARCHING_INVOICE)
        self.assertIsNone(flow.invoice)
        with self.assertRaises(FlowError):
            flow.back()

        flow.invoice_loaded(INVOICE, [_entry()])
        flow.reset()
        self.assertEqual(flow.state, FlowState.SEARCHING_INVOICE)
        self.assertEqual(flow.entries, [])
        self.assertIsNone(flow.flow_type)


if __name__ == '__main__':
    unittest.main()

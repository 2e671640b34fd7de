from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from jewelry_retail.models import ItemDirection, ReturnExchangeType, StockMovementType
from jewelry_retail.services.pricing_math_service import ZERO, LineItem, quantize_money
from jewelry_retail.services.return_selection_service import (
    AllocatedItem,
    InvoiceSnapshot,
    SelectionEntry,
    SelectionError,
    allocate,
    combined_reason,
    require_selection,
)


@dataclass(frozen=True)
class StockDelta:
    product_id: int
    quantity_change: int
    type: StockMovementType
    direction: ItemDirection


@dataclass(frozen=True)
class ReconciliationPlan:
    type: ReturnExchangeType
    returned_items: tuple[AllocatedItem, ...]
    new_items: tuple[LineItem, ...]
    old_total: Decimal
    new_total: Decimal
    refund_amount: Decimal
    additional_charge: Decimal
    stock_deltas: tuple[StockDelta, ...]
    reason: str | None = None

    @property
    def difference(self) -> Decimal:
        return self.new_total - self.old_total


def settle_difference(old_total: Decimal, new_total: Decimal) -> tuple[Decimal, Decimal]:
    """Split `new_total - old_total` into (refund_amount, additional_charge); at most one is non-zero."""
    difference = new_total - old_total
    if difference > 0:
        return ZERO, difference
    if difference < 0:
        return -difference, ZERO
    return ZERO, ZERO


def _inbound_deltas(returned: Sequence[AllocatedItem]) -> list[StockDelta]:
    return [
        StockDelta(
            product_id=item.product_id,
            quantity_change=item.quantity,
            type=StockMovementType.IN,
            direction=ItemDirection.RETURNED,
        )
        for item in returned
        if item.product_id is not None
    ]


def _outbound_deltas(new_items: Sequence[LineItem]) -> list[StockDelta]:
    return [
        StockDelta(
            product_id=item.product_id,
            quantity_change=-item.quantity,
            type=StockMovementType.OUT,
            direction=ItemDirection.NEW,
        )
        for item in new_items
        if item.product_id is not None
    ]


def confirm_return(entries: Sequence[SelectionEntry]) -> ReconciliationPlan:
    chosen = require_selection(entries)
    returned = tuple(allocate(entry) for entry in chosen)
    refund = quantize_money(sum((item.total for item in returned), ZERO))
    return ReconciliationPlan(
        type=ReturnExchangeType.RETURN,
        returned_items=returned,
        new_items=(),
        old_total=refund,
        new_total=ZERO,
        refund_amount=refund,
        additional_charge=ZERO,
        stock_deltas=tuple(_inbound_deltas(returned)),
        reason=combined_reason(chosen),
    )


def confirm_exchange(entries: Sequence[SelectionEntry], new_items: Sequence[LineItem]) -> ReconciliationPlan:
    chosen = require_selection(entries)
    if not new_items:
        raise SelectionError('Please add at least one new item for exchange')
    for item in new_items:
        if item.quantity < 1:
            raise SelectionError(f'Quantity for {item.product_name} must be at least 1')

    returned = tuple(allocate(entry) for entry in chosen)
    old_total = quantize_money(sum((item.total for item in returned), ZERO))
    new_total = quantize_money(sum((item.total for item in new_items), ZERO))
    refund, charge = settle_difference(old_total, new_total)
    return ReconciliationPlan(
        type=ReturnExchangeType.EXCHANGE,
        returned_items=returned,
        new_items=tuple(new_items),
        old_total=old_total,
        new_total=new_total,
        refund_amount=refund,
        additional_charge=charge,
        stock_deltas=tuple(_inbound_deltas(returned) + _outbound_deltas(new_items)),
        reason=combined_reason(chosen),
    )


class FlowState(str, Enum):
    SEARCHING_INVOICE = 'searching_invoice'
    SELECTING_ITEMS = 'selecting_items'
    RETURN_DETAILS = 'return_details'
    EXCHANGE_DETAILS = 'exchange_details'
    COMMITTED = 'committed'


class FlowError(ValueError):
    pass


_DETAIL_STATES = {
    ReturnExchangeType.RETURN: FlowState.RETURN_DETAILS,
    ReturnExchangeType.EXCHANGE: FlowState.EXCHANGE_DETAILS,
}


@dataclass
class ReconciliationFlow:
    """Step tracker for one return/exchange: find invoice, pick items, fill details, commit."""

    state: FlowState = FlowState.SEARCHING_INVOICE
    invoice: InvoiceSnapshot | None = None
    entries: list[SelectionEntry] = field(default_factory=list)
    flow_type: ReturnExchangeType | None = None
    record_id: int | None = None

    def _expect(self, *states: FlowState) -> None:
        if self.state not in states:
            allowed = ', '.join(state.value for state in states)
            raise FlowError(f'Cannot do that while {self.state.value}; expected {allowed}')

    def invoice_loaded(self, invoice: InvoiceSnapshot, entries: list[SelectionEntry]) -> None:
        self._expect(FlowState.SEARCHING_INVOICE)
        if not entries:
            raise FlowError('Invoice has no returnable items')
        self.invoice = invoice
        self.entries = entries
        self.state = FlowState.SELECTING_ITEMS

    def confirm_items(self, flow_type: ReturnExchangeType) -> list[SelectionEntry]:
        self._expect(FlowState.SELECTING_ITEMS)
        chosen = require_selection(self.entries)
        self.flow_type = ReturnExchangeType(flow_type)
        self.state = _DETAIL_STATES[self.flow_type]
        return chosen

    def build_plan(self, new_items: Sequence[LineItem] = ()) -> ReconciliationPlan:
        self._expect(FlowState.RETURN_DETAILS, FlowState.EXCHANGE_DETAILS)
        if self.state == FlowState.RETURN_DETAILS:
            return confirm_return(self.entries)
        return confirm_exchange(self.entries, new_items)

    def mark_committed(self, record_id: int) -> None:
        self._expect(FlowState.RETURN_DETAILS, FlowState.EXCHANGE_DETAILS)
        self.record_id = record_id
        self.state = FlowState.COMMITTED

    def back(self) -> None:
        if self.state in (FlowState.RETURN_DETAILS, FlowState.EXCHANGE_DETAILS):
            self.state = FlowState.SELECTING_ITEMS
            return
        if self.state == FlowState.SELECTING_ITEMS:
            self.state = FlowState.SEARCHING_INVOICE
            self.invoice = None
            self.entries = []
            return
        raise FlowError(f'Cannot go back from {self.state.value}')

    def reset(self) -> None:
        self.state = FlowState.SEARCHING_INVOICE
        self.invoice = None
        self.entries = []
        self.flow_type = None
        self.record_id = None

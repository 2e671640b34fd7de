from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from jewelry_retail.models import DiscountType, ItemDirection, PricingMode, ReturnExchangeType, StockMovementType


class LineItemIn(BaseModel):
    pricing_mode: PricingMode = PricingMode.WEIGHT_BASED
    product_id: int | None = None
    sku: str | None = None
    product_name: str = ''
    category: str | None = None
    weight_grams: Decimal = Decimal('0')
    quantity: int = Field(default=1, ge=1)
    rate_per_gram: Decimal = Decimal('0')
    making_charge_rate: Decimal = Decimal('0')
    gross_flat_price: Decimal = Decimal('0')
    discount_type: DiscountType = DiscountType.FIXED
    discount_value: Decimal = Field(default=Decimal('0'), ge=0)
    gst_percentage: Decimal | None = None


class LineItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pricing_mode: PricingMode
    product_id: int | None
    sku: str | None
    product_name: str
    category: str | None
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


class TotalsIn(BaseModel):
    items: list[LineItemIn]
    gst_percentage: Decimal | None = None


class TotalsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subtotal: Decimal
    discount_total: Decimal
    tax_amount: Decimal
    grand_total: Decimal


class CustomOrderItemIn(BaseModel):
    pricing_mode: PricingMode = PricingMode.WEIGHT_BASED
    quantity: int = Field(default=1, ge=1)
    expected_weight: Decimal = Decimal('0')
    rate_per_gram: Decimal = Decimal('0')
    mc_per_gram: Decimal = Decimal('0')
    discount_on_mc: Decimal = Field(default=Decimal('0'), ge=0, le=100)
    flat_price: Decimal = Decimal('0')


class CustomOrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    base_price: Decimal
    making_charges: Decimal
    item_total: Decimal


class InvoiceLineIn(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)
    rate_per_gram: Decimal | None = Field(default=None, ge=0)
    discount_type: DiscountType = DiscountType.FIXED
    discount_value: Decimal = Field(default=Decimal('0'), ge=0)


class InvoiceCreate(BaseModel):
    items: list[InvoiceLineIn]
    client_name: str | None = None
    client_phone: str | None = None
    payment_mode: str | None = 'cash'
    notes: str | None = None
    created_by: str | None = None
    metal: str = 'silver'


class InvoiceItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int | None
    sku: str | None
    product_name: str
    pricing_mode: PricingMode
    weight_grams: Decimal
    quantity: int
    rate_per_gram: Decimal
    base_price: Decimal
    making_charges: Decimal
    discount: Decimal
    line_total: Decimal
    gst_amount: Decimal
    total: Decimal


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    client_name: str | None
    subtotal: Decimal
    discount_amount: Decimal
    gst_amount: Decimal
    grand_total: Decimal
    payment_mode: str | None
    items: list[InvoiceItemOut]


class SelectionEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    invoice_item_id: int | None
    product_id: int | None
    product_name: str
    sku: str | None
    quantity: int
    max_quantity: int
    return_quantity: int
    total: Decimal
    selected: bool
    reason: str


class ReturnSelectionIn(BaseModel):
    invoice_item_id: int
    return_quantity: int
    reason: str | None = None


class ReturnCreate(BaseModel):
    invoice_id: int
    items: list[ReturnSelectionIn]
    payment_mode: str | None = 'cash'
    notes: str | None = None
    created_by: str | None = None


class ExchangeNewItemIn(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)


class ExchangeCreate(ReturnCreate):
    new_items: list[ExchangeNewItemIn]
    metal: str = 'silver'


class ReturnExchangeItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    direction: ItemDirection
    invoice_item_id: int | None
    product_id: int | None
    product_name: str
    quantity: int
    weight_grams: Decimal
    making_charges: Decimal
    discount: Decimal
    line_total: Decimal
    gst_amount: Decimal
    total: Decimal


class ReturnExchangeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reference_number: str
    type: ReturnExchangeType
    original_invoice_id: int
    original_invoice_number: str
    client_name: str | None
    refund_amount: Decimal
    additional_charge: Decimal
    payment_mode: str | None
    reason: str | None
    created_at: datetime | None = None


class StockEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    quantity_change: int
    type: StockMovementType
    reason: str | None


class ReturnExchangeDetailOut(BaseModel):
    record: ReturnExchangeOut
    returned_items: list[ReturnExchangeItemOut]
    new_items: list[ReturnExchangeItemOut]
    ledger: list[StockEntryOut]
    stock_in: int
    stock_out: int


class ReturnExchangeListOut(BaseModel):
    records: list[ReturnExchangeOut]
    counts: dict[str, int]


class ReversalOut(BaseModel):
    id: int
    reference_number: str
    type: ReturnExchangeType
    reversed_ledger_entries: int

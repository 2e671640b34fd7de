from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# SQLite only autoincrements INTEGER primary keys.
IdType = BigInteger().with_variant(Integer(), 'sqlite')
Money = Numeric(14, 2)
Weight = Numeric(12, 3)


class Base(DeclarativeBase):
    pass


class PricingMode(str, Enum):
    WEIGHT_BASED = 'weight_based'
    FLAT_PRICE = 'flat_price'


class DiscountType(str, Enum):
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'


class ReturnExchangeType(str, Enum):
    RETURN = 'return'
    EXCHANGE = 'exchange'


class ItemDirection(str, Enum):
    RETURNED = 'returned'
    NEW = 'new'


class StockMovementType(str, Enum):
    IN = 'in'
    OUT = 'out'


class PaymentStatus(str, Enum):
    PAID = 'paid'
    PENDING = 'pending'


class Product(Base):
    __tablename__ = 'products'
    __table_args__ = (CheckConstraint('weight_grams >= 0', name='ck_products_weight_non_negative'),)

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    sku: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(Text)
    metal_type: Mapped[str | None] = mapped_column(Text)
    pricing_mode: Mapped[PricingMode] = mapped_column(
        SQLEnum(PricingMode, name='pricing_mode'), nullable=False, default=PricingMode.WEIGHT_BASED
    )
    weight_grams: Mapped[Decimal] = mapped_column(Weight, nullable=False, default=Decimal('0'))
    making_charge_rate: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    selling_price: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    gst_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal('3'))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class BusinessSettings(Base):
    __tablename__ = 'business_settings'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    business_name: Mapped[str] = mapped_column(Text, nullable=False)
    gst_number: Mapped[str | None] = mapped_column(Text)
    invoice_prefix: Mapped[str] = mapped_column(Text, nullable=False, default='INV')
    default_gst: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal('3'))
    gold_rate_per_gram: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    silver_rate_per_gram: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class Invoice(Base):
    __tablename__ = 'invoices'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    invoice_number: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    client_name: Mapped[str | None] = mapped_column(Text)
    client_phone: Mapped[str | None] = mapped_column(Text)
    subtotal: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    gst_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    grand_total: Mapped[Decimal] = mapped_column(Money, nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, name='payment_status'), nullable=False, default=PaymentStatus.PAID
    )
    payment_mode: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    items: Mapped[list[InvoiceItem]] = relationship(
        back_populates='invoice', cascade='all, delete-orphan', order_by='InvoiceItem.id'
    )


class InvoiceItem(Base):
    __tablename__ = 'invoice_items'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(IdType, ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False)
    product_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('products.id', ondelete='SET NULL'))
    sku: Mapped[str | None] = mapped_column(Text)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(Text)
    pricing_mode: Mapped[PricingMode] = mapped_column(SQLEnum(PricingMode, name='pricing_mode'), nullable=False)
    weight_grams: Mapped[Decimal] = mapped_column(Weight, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    rate_per_gram: Mapped[Decimal] = mapped_column(Money, nullable=False)
    making_charge_rate: Mapped[Decimal] = mapped_column(Money, nullable=False)
    gross_flat_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    base_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    making_charges: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_type: Mapped[DiscountType] = mapped_column(SQLEnum(DiscountType, name='discount_type'), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discounted_making: Mapped[Decimal] = mapped_column(Money, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Money, nullable=False)
    gst_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    gst_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total: Mapped[Decimal] = mapped_column(Money, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    invoice: Mapped[Invoice] = relationship(back_populates='items')


class ReturnExchange(Base):
    __tablename__ = 'return_exchanges'
    __table_args__ = (
        CheckConstraint('refund_amount >= 0', name='ck_return_exchanges_refund_non_negative'),
        CheckConstraint('additional_charge >= 0', name='ck_return_exchanges_charge_non_negative'),
        CheckConstraint(
            'refund_amount = 0 OR additional_charge = 0', name='ck_return_exchanges_single_direction'
        ),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    reference_number: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    type: Mapped[ReturnExchangeType] = mapped_column(
        SQLEnum(ReturnExchangeType, name='return_exchange_type'), nullable=False
    )
    original_invoice_id: Mapped[int] = mapped_column(IdType, ForeignKey('invoices.id'), nullable=False)
    original_invoice_number: Mapped[str] = mapped_column(Text, nullable=False)
    client_name: Mapped[str | None] = mapped_column(Text)
    client_phone: Mapped[str | None] = mapped_column(Text)
    refund_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    additional_charge: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    payment_mode: Mapped[str | None] = mapped_column(Text)
    reason: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    items: Mapped[list[ReturnExchangeItem]] = relationship(
        back_populates='record', cascade='all, delete-orphan', order_by='ReturnExchangeItem.id'
    )


class ReturnExchangeItem(Base):
    __tablename__ = 'return_exchange_items'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    return_exchange_id: Mapped[int] = mapped_column(
        IdType, ForeignKey('return_exchanges.id', ondelete='CASCADE'), nullable=False
    )
    direction: Mapped[ItemDirection] = mapped_column(SQLEnum(ItemDirection, name='item_direction'), nullable=False)
    invoice_item_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('invoice_items.id', ondelete='SET NULL'))
    product_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('products.id', ondelete='SET NULL'))
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    sku: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    weight_grams: Mapped[Decimal] = mapped_column(Weight, nullable=False)
    rate_per_gram: Mapped[Decimal] = mapped_column(Money, nullable=False)
    making_charges: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Money, nullable=False)
    gst_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    gst_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total: Mapped[Decimal] = mapped_column(Money, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    record: Mapped[ReturnExchange] = relationship(back_populates='items')


class StockHistory(Base):
    __tablename__ = 'stock_history'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    product_id: Mapped[int] = mapped_column(IdType, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[StockMovementType] = mapped_column(
        SQLEnum(StockMovementType, name='stock_movement_type'), nullable=False
    )
    reason: Mapped[str | None] = mapped_column(Text)
    reference_table: Mapped[str | None] = mapped_column(Text)
    reference_id: Mapped[int | None] = mapped_column(IdType)
    created_by: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ActivityLog(Base):
    __tablename__ = 'activity_logs'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    module: Mapped[str] = mapped_column(Text, nullable=False)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    record_id: Mapped[int | None] = mapped_column(IdType)
    record_label: Mapped[str | None] = mapped_column(Text)
    new_value: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    actor: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

# app/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Any, Dict, List
from decimal import Decimal
from datetime import datetime

from app.domain.enums import BillStatus, PaymentMethod, SelectFrom, StockModel, UserRole


# ---- users ----

class UserCreate(BaseModel):
    """Schema dla tworzenia użytkownika."""

    id: int = Field(..., gt=0, description="ID użytkownika (musi być > 0)")
    name: str = Field(..., min_length=1, max_length=100, description="Imię użytkownika")
    role: UserRole = UserRole.USER


class UserRead(BaseModel):
    id: int
    name: str
    role: UserRole

    model_config = ConfigDict(from_attributes=True)


# ---- products ----

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    original_price: Decimal = Field(..., ge=0)
    discount_price: Decimal = Field(..., ge=0)
    stock_model: StockModel = StockModel.MANUAL
    stock: int = Field(0, ge=0, description="Tylko dla MANUAL")
    item_codes: List[str] = Field(default_factory=list, description="Tylko dla SERIALIZED")

    @field_validator("original_price", "discount_price")
    @classmethod
    def whole_amount(cls, v: Decimal) -> Decimal:
        # ceny w VND, bez czesci ulamkowej
        if v != v.to_integral_value():
            raise ValueError("Price must be a whole amount")
        return v


class ProductItemsIn(BaseModel):
    codes: List[str] = Field(..., min_length=1)


class ProductOut(BaseModel):
    id: int
    seller_id: int
    name: str
    description: str | None = None
    original_price: Decimal
    discount_price: Decimal
    stock_model: StockModel
    stock: int
    sold: int
    available: int
    is_active: bool
    created_at: datetime


class ProductPageOut(BaseModel):
    items: List[ProductOut]
    total_items: int
    next_cursor: int | None = None
    has_next_page: bool


# ---- cart ----

class CartItemIn(BaseModel):
    """Schema dla dodawania / usuwania produktu z koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    quantity: int = Field(..., gt=0, description="Ilość produktu (musi być > 0)")


class CartItemOut(BaseModel):
    product_id: int
    name: str | None = None
    quantity: int
    unit_price: Decimal | None = None
    price: Decimal | None = None


class CartOut(BaseModel):
    user_id: int
    items: List[CartItemOut]
    total: Decimal


# ---- orders ----

class OrderItemIn(BaseModel):
    product_id: int = Field(..., gt=0)
    product_item_id: int | None = Field(None, gt=0)
    quantity: int = Field(..., gt=0)
    source: SelectFrom = SelectFrom.DIRECT


class OrderCreate(BaseModel):
    items: List[OrderItemIn] = Field(..., min_length=1)
    payment_method: PaymentMethod
    note: str | None = None


class OrderFromCartCreate(BaseModel):
    payment_method: PaymentMethod
    note: str | None = None


class CheckoutOut(BaseModel):
    """Wynik utworzenia zamowienia - link / QR do platnosci."""

    order_id: int
    bill_id: int
    order_code: int
    amount: Decimal
    status: BillStatus
    checkout_url: str | None = None
    qr_code: str | None = None


class BillOut(BaseModel):
    id: int
    status: BillStatus
    payment_method: str
    amount: Decimal
    transaction_id: str | None = None
    note: str | None = None
    created_at: datetime
    updated_at: datetime


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str | None = None
    seller_id: int | None = None
    product_item_id: int | None = None
    product_item_code: str | None = None
    quantity: int
    price: Decimal
    source: SelectFrom


class OrderOut(BaseModel):
    id: int
    user_id: int
    total_price: Decimal
    created_at: datetime
    bill: BillOut
    items: List[OrderItemOut]


class OrderPageOut(BaseModel):
    items: List[OrderOut]
    total_items: int
    next_cursor: int | None = None
    has_next_page: bool


class OrderActionOut(BaseModel):
    message: str
    order_id: int
    status: BillStatus


class InvoiceLineOut(BaseModel):
    product_id: int
    product_name: str
    seller_id: int
    quantity: int
    unit_price: Decimal
    price: Decimal


class InvoiceOut(BaseModel):
    invoice_number: str
    order_id: int
    issued_at: datetime
    buyer_id: int
    buyer_name: str | None = None
    payment_method: str
    transaction_id: str | None = None
    lines: List[InvoiceLineOut]
    total: Decimal


class ExpiredCountOut(BaseModel):
    expired_orders_count: int
    threshold_minutes: int
    current_time: datetime
    threshold_time: datetime


class CleanupOut(BaseModel):
    message: str
    found: int
    deleted: int
    skipped: int
    failed: int


# ---- payment ----

class WebhookResult(BaseModel):
    success: bool
    message: str


class PaymentStatusOut(BaseModel):
    order_id: int
    bill_id: int
    status: BillStatus
    amount: Decimal
    transaction_id: str | None = None
    created_at: datetime
    updated_at: datetime


class GatewayPaymentInfoOut(BaseModel):
    order_id: int
    order_code: int
    bill_status: BillStatus
    gateway_status: str | None = None
    amount: Decimal | None = None
    amount_paid: Decimal | None = None

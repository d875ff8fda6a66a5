# FILE: medicine_corner/schemas/medicine_stock.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict

Money = Decimal

PaymentMethod = Literal["cash", "bank_transfer", "cheque", "credit", "mobile_banking"]
AdjustmentType = Literal["add", "reduce", "expired", "damaged"]


class PurchaseIn(BaseModel):
    vendor_id: int
    medicine_id: int
    batch_number: str | None = None   # auto-generated when empty
    expiry_date: date | None = None   # defaults to DEFAULT_EXPIRY_YEARS ahead

    quantity: int = Field(..., gt=0)
    total_price: Money = Field(..., ge=0)   # price for the whole quantity
    sale_price: Money = Field(..., ge=0)

    paid_amount: Money = Field(default=Decimal("0"), ge=0)
    payment_method: PaymentMethod | None = None
    notes: str | None = ""


class PurchaseCreate(PurchaseIn):
    pass


class PurchaseUpdate(PurchaseIn):
    pass


class StockAdjustIn(BaseModel):
    adjustment_type: AdjustmentType
    quantity: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=255)


class StockTransactionOut(BaseModel):
    id: int
    type: str
    quantity_change: int
    unit_price: Decimal
    total_amount: Money
    reference_type: str | None = ""
    reference_id: int | None = None
    reason: str | None = ""
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockOut(BaseModel):
    id: int
    medicine_id: int
    vendor_id: int
    batch_number: str
    expiry_date: date | None
    purchase_date: date

    quantity: int
    available_quantity: int

    buy_price: Decimal
    total_amount: Money
    sale_price: Money

    paid_amount: Money
    due_amount: Money
    payment_status: str
    payment_method: str | None = None

    notes: str | None = ""
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockDetailOut(StockOut):
    transactions: List[StockTransactionOut] = Field(default_factory=list)


class PurchaseResultOut(BaseModel):
    stock: StockOut
    average_buy_price: Decimal
    total_stock: int
    vendor_balance: Money
    message: Optional[str] = None

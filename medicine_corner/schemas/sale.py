# FILE: medicine_corner/schemas/sale.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict

Money = Decimal


class SaleItemIn(BaseModel):
    stock_id: int
    quantity: int = Field(..., gt=0)
    unit_price: Money = Field(..., ge=0)


class SaleIn(BaseModel):
    items: List[SaleItemIn] = Field(..., min_length=1)

    discount: Money = Field(default=Decimal("0"), ge=0)
    discount_type: Literal["amount", "percentage"] = "amount"
    tax: Money = Field(default=Decimal("0"), ge=0)
    paid_amount: Money = Field(default=Decimal("0"), ge=0)

    patient_id: Optional[int] = None
    customer_name: str | None = ""
    customer_phone: str | None = ""
    payment_method: str | None = "cash"
    sale_date: date | None = None
    notes: str | None = ""


class SaleCreate(SaleIn):
    pass


class SaleUpdate(SaleIn):
    pass


class SalePaymentIn(BaseModel):
    paid_amount: Money = Field(..., ge=0)
    payment_method: str | None = None


class SaleItemOut(BaseModel):
    id: int
    stock_id: int
    quantity: int
    unit_price: Money
    buy_price: Decimal
    total_price: Decimal
    profit: Decimal

    model_config = ConfigDict(from_attributes=True)


class SaleOut(BaseModel):
    id: int
    invoice_number: str
    patient_id: int | None
    customer_name: str | None
    customer_phone: str | None
    sale_date: date

    subtotal: Money
    discount: Money
    discount_type: str
    tax: Money
    total_amount: Money
    paid_amount: Money
    due_amount: Money
    total_profit: Money
    payment_status: str
    payment_method: str | None

    notes: str | None
    items: List[SaleItemOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

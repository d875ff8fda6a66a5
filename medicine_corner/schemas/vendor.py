from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict


Money = Decimal


class VendorBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    company_name: str | None = ""
    contact_person: str | None = ""
    phone: str | None = ""
    email: str | None = ""
    address: str | None = ""
    trade_license: str | None = ""
    credit_limit: Money = Field(default=Decimal("0"), ge=0)
    payment_terms_days: int = Field(default=30, ge=0, le=365)
    is_active: bool = True
    notes: str | None = ""


class VendorCreate(VendorBase):
    opening_balance: Money = Field(default=Decimal("0"), ge=0)


class VendorUpdate(BaseModel):
    name: Optional[str] = None
    company_name: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    trade_license: Optional[str] = None
    credit_limit: Optional[Money] = Field(default=None, ge=0)
    payment_terms_days: Optional[int] = Field(default=None, ge=0, le=365)
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class VendorOut(VendorBase):
    id: int
    opening_balance: Money
    current_balance: Money
    credit_utilization: Decimal = Decimal("0")
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VendorTransactionOut(BaseModel):
    id: int
    transaction_no: str
    vendor_id: int
    type: str
    amount: Money
    paid_amount: Money
    due_amount: Money
    payment_status: str
    stock_id: int | None = None
    description: str | None = ""
    transaction_date: date
    due_date: date | None = None
    is_overdue: bool = False

    model_config = ConfigDict(from_attributes=True)


class VendorPaymentCreate(BaseModel):
    vendor_id: int
    amount: Money = Field(..., gt=0)
    payment_method: Literal["cash", "bank_transfer", "cheque", "mobile_banking"] = "cash"
    reference_no: str | None = None
    payment_date: date | None = None
    description: str | None = ""

    # empty -> every outstanding purchase of the vendor
    transaction_ids: List[int] = Field(default_factory=list)


class VendorAllocationOut(BaseModel):
    transaction_id: int
    amount: Money

    model_config = ConfigDict(from_attributes=True)


class VendorPaymentOut(BaseModel):
    id: int
    payment_no: str
    vendor_id: int
    amount: Money
    payment_method: str
    reference_no: str | None
    payment_date: date
    description: str | None
    allocations: List[VendorAllocationOut] = Field(default_factory=list)
    vendor_balance: Money | None = None
    credit_utilization: Decimal | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BalanceAdjustIn(BaseModel):
    adjustment_type: Literal["increase", "decrease"]
    amount: Money = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=500)


class VendorDueRow(BaseModel):
    vendor_id: int
    name: str
    current_balance: Money
    credit_limit: Money
    credit_utilization: Decimal
    overdue_amount: Money
    near_due_amount: Money
    pending_transactions: int


class VendorDueSummaryOut(BaseModel):
    total_dues: Money
    overdue_amount: Money
    near_due_amount: Money
    vendor_count: int
    vendors: List[VendorDueRow] = Field(default_factory=list)

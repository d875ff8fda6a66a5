from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, ConfigDict

Money = Decimal


class FundIn(BaseModel):
    amount: Money = Field(..., gt=0)
    purpose: str = Field(..., min_length=1, max_length=100)
    description: str | None = ""
    entry_date: date | None = None


class ExpenseIn(BaseModel):
    amount: Money = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=100)
    description: str | None = ""
    entry_date: date | None = None


class AccountTxnOut(BaseModel):
    id: int
    transaction_no: str
    type: str
    amount: Money
    category: str
    reference_type: str | None = None
    reference_id: int | None = None
    description: str | None = ""
    transaction_date: date
    created_by: int | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MonthlyReportOut(BaseModel):
    year: int
    month: int
    income: Money
    expense: Money
    profit: Money
    balance: Money


class BalanceSheetOut(BaseModel):
    balance: Money
    total_income: Money
    total_expense: Money
    total_fund_in: Money
    total_fund_out: Money
    total_medicine_sales: Money
    month_income: Money
    month_expense: Money
    month_profit: Money

# FILE: medicine_corner/schemas/reports.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

Money = Decimal


class DashboardOut(BaseModel):
    total_medicines: int
    medicines_in_stock: int
    low_stock_medicines: int
    total_stock_value: Money
    today_sales: Money
    today_profit: Money
    today_due: Money
    total_vendors: int
    total_vendor_due: Money
    pending_purchases: int
    account_balance: Money
    month_profit: Money


class LowStockRow(BaseModel):
    medicine_id: int
    name: str
    total_stock: int
    minimum_stock: int
    reorder_level: int


class BatchAlertRow(BaseModel):
    stock_id: int
    medicine_id: int
    medicine_name: str
    batch_number: str
    expiry_date: date | None
    available_quantity: int
    days_to_expiry: int | None
    value: Money


class AlertsOut(BaseModel):
    low_stock: List[LowStockRow] = Field(default_factory=list)
    expiring: List[BatchAlertRow] = Field(default_factory=list)
    expired: List[BatchAlertRow] = Field(default_factory=list)


class BuySaleStockRow(BaseModel):
    medicine_id: int
    name: str
    unit: str | None

    buy_qty: int
    buy_total: Money
    buy_price: Decimal

    sale_qty: int
    sale_total: Money
    sale_cost: Money
    profit: Money

    available_qty: int
    available_value: Money


class BuySaleStockReportOut(BaseModel):
    from_date: date
    to_date: date
    rows: List[BuySaleStockRow] = Field(default_factory=list)

# FILE: medicine_corner/schemas/medicine.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

Money = Decimal


class MedicineBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    generic_name: str | None = ""
    type: str | None = ""
    manufacturer: str | None = ""
    description: str | None = ""
    unit: str | None = "pcs"
    standard_sale_price: Money = Field(default=Decimal("0"), ge=0)
    track_stock: bool = True
    is_active: bool = True


class MedicineCreate(MedicineBase):
    pass


class MedicineUpdate(BaseModel):
    name: Optional[str] = None
    generic_name: Optional[str] = None
    type: Optional[str] = None
    manufacturer: Optional[str] = None
    description: Optional[str] = None
    unit: Optional[str] = None
    standard_sale_price: Optional[Money] = Field(default=None, ge=0)
    track_stock: Optional[bool] = None
    is_active: Optional[bool] = None


class MedicineOut(MedicineBase):
    id: int
    average_buy_price: Decimal
    total_stock: int
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockAlertIn(BaseModel):
    minimum_stock: int = Field(default=10, ge=0)
    reorder_level: int = Field(default=20, ge=0)
    low_stock_alert: bool = True
    expiry_alert: bool = True
    expiry_alert_days: int = Field(default=30, ge=1, le=3650)


class StockAlertOut(StockAlertIn):
    id: int
    medicine_id: int

    model_config = ConfigDict(from_attributes=True)

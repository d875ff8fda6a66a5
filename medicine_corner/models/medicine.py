# FILE: medicine_corner/models/medicine.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, Text,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from medicine_corner.db.base import Base

Money = Numeric(14, 2)
Cost = Numeric(18, 6)


class Medicine(Base):
    """
    Catalog entry.
    average_buy_price / total_stock are running totals mutated by every
    purchase, edit, adjustment and sale -> guarded by the version counter.
    """
    __tablename__ = "medicines"
    __table_args__ = (
        CheckConstraint("total_stock >= 0", name="ck_medicines_total_stock_nonneg"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    generic_name = Column(String(255), default="")
    type = Column(String(100), default="")          # tablet / syrup / injection ...
    manufacturer = Column(String(255), default="")
    description = Column(Text, default="")
    unit = Column(String(50), default="pcs")

    standard_sale_price = Column(Money, nullable=False, default=Decimal("0"))
    average_buy_price = Column(Cost, nullable=False, default=Decimal("0"))
    total_stock = Column(Integer, nullable=False, default=0)

    track_stock = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    stocks = relationship("MedicineStock", back_populates="medicine")
    stock_alert = relationship(
        "StockAlert",
        back_populates="medicine",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}


class StockAlert(Base):
    __tablename__ = "medicine_stock_alerts"

    id = Column(Integer, primary_key=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False, unique=True, index=True)

    minimum_stock = Column(Integer, nullable=False, default=10)
    reorder_level = Column(Integer, nullable=False, default=20)
    low_stock_alert = Column(Boolean, nullable=False, default=True)
    expiry_alert = Column(Boolean, nullable=False, default=True)
    expiry_alert_days = Column(Integer, nullable=False, default=30)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    medicine = relationship("Medicine", back_populates="stock_alert")

# FILE: medicine_corner/models/medicine_stock.py
from __future__ import annotations

import enum
from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Numeric, ForeignKey, Text,
    CheckConstraint, Index,
)
from sqlalchemy.orm import relationship

from medicine_corner.db.base import Base

Money = Numeric(14, 2)
Cost = Numeric(18, 6)


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class StockTxnType(str, enum.Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"
    EXPIRED = "expired"
    DAMAGED = "damaged"


class MedicineStock(Base):
    """
    One purchased batch of a medicine from one vendor.
    available_quantity is decremented by sales; quantity is what was bought.
    """
    __tablename__ = "medicine_stocks"
    __table_args__ = (
        CheckConstraint("available_quantity >= 0", name="ck_medicine_stocks_avail_nonneg"),
        CheckConstraint("available_quantity <= quantity", name="ck_medicine_stocks_avail_le_qty"),
        Index("ix_medicine_stocks_medicine_expiry", "medicine_id", "expiry_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("medicine_vendors.id"), nullable=False, index=True)

    batch_number = Column(String(100), nullable=False)
    expiry_date = Column(Date, nullable=True)
    purchase_date = Column(Date, nullable=False, default=date.today)

    quantity = Column(Integer, nullable=False)
    available_quantity = Column(Integer, nullable=False)

    buy_price = Column(Cost, nullable=False, default=Decimal("0"))      # unit cost
    total_amount = Column(Money, nullable=False, default=Decimal("0"))  # purchase total
    sale_price = Column(Money, nullable=False, default=Decimal("0"))

    paid_amount = Column(Money, nullable=False, default=Decimal("0"))
    due_amount = Column(Money, nullable=False, default=Decimal("0"))
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(30), nullable=True)

    notes = Column(Text, default="")
    is_active = Column(Boolean, default=True, nullable=False)
    added_by = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    medicine = relationship("Medicine", back_populates="stocks")
    vendor = relationship("MedicineVendor", back_populates="stocks")
    transactions = relationship("StockTransaction", back_populates="stock")


class StockTransaction(Base):
    __tablename__ = "medicine_stock_txns"
    __table_args__ = (
        Index("ix_medicine_stock_txns_stock_type", "stock_id", "type"),
        Index("ix_medicine_stock_txns_ref", "reference_type", "reference_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    stock_id = Column(Integer, ForeignKey("medicine_stocks.id"), nullable=False, index=True)

    type = Column(String(20), nullable=False)             # StockTxnType
    quantity_change = Column(Integer, nullable=False)     # +IN / -OUT
    unit_price = Column(Cost, nullable=False, default=Decimal("0"))
    total_amount = Column(Money, nullable=False, default=Decimal("0"))

    reference_type = Column(String(50), default="")
    reference_id = Column(Integer, nullable=True)
    vendor_transaction_id = Column(Integer, ForeignKey("medicine_vendor_txns.id"), nullable=True)

    reason = Column(String(500), default="")
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    stock = relationship("MedicineStock", back_populates="transactions")

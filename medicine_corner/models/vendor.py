# medicine_corner/models/vendor.py
from __future__ import annotations

import enum
from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, ForeignKey,
    Numeric, Boolean, UniqueConstraint, Index, Text, CheckConstraint,
)
from sqlalchemy.orm import relationship

from medicine_corner.db.base import Base

Money = Numeric(14, 2)


class VendorTxnType(str, enum.Enum):
    PURCHASE = "purchase"
    OPENING = "opening"
    ADJUSTMENT = "adjustment"


class MedicineVendor(Base):
    __tablename__ = "medicine_vendors"
    __table_args__ = (
        CheckConstraint("current_balance >= 0", name="ck_medicine_vendors_balance_nonneg"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    company_name = Column(String(255), default="")
    contact_person = Column(String(255), default="")
    phone = Column(String(50), default="")
    email = Column(String(255), default="")
    address = Column(String(1000), default="")
    trade_license = Column(String(100), default="")

    opening_balance = Column(Money, nullable=False, default=Decimal("0.00"))
    current_balance = Column(Money, nullable=False, default=Decimal("0.00"))
    credit_limit = Column(Money, nullable=False, default=Decimal("0.00"))
    payment_terms_days = Column(Integer, nullable=False, default=30)

    is_active = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, default="")

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = relationship("MedicineVendorTransaction", back_populates="vendor")
    payments = relationship("MedicineVendorPayment", back_populates="vendor")
    stocks = relationship("MedicineStock", back_populates="vendor")

    __mapper_args__ = {"version_id_col": version}


class MedicineVendorTransaction(Base):
    """
    Due-bearing event for a vendor: a stock purchase, the opening balance
    or a manual adjustment.
    """
    __tablename__ = "medicine_vendor_txns"
    __table_args__ = (
        Index("ix_medicine_vendor_txns_vendor_due", "vendor_id", "due_date"),
        CheckConstraint("due_amount >= 0", name="ck_medicine_vendor_txns_due_nonneg"),
    )

    id = Column(Integer, primary_key=True)
    transaction_no = Column(String(30), nullable=False, unique=True, index=True)

    vendor_id = Column(Integer, ForeignKey("medicine_vendors.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False, default=VendorTxnType.PURCHASE.value)

    amount = Column(Money, nullable=False, default=Decimal("0.00"))
    paid_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    due_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    payment_status = Column(String(20), nullable=False, default="pending")

    # purchase link (one transaction per stock batch)
    stock_id = Column(Integer, ForeignKey("medicine_stocks.id"), nullable=True, unique=True)

    payment_method = Column(String(30), nullable=True)
    description = Column(String(500), default="")
    transaction_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("MedicineVendor", back_populates="transactions")
    stock = relationship("MedicineStock")
    allocations = relationship("VendorPaymentAllocation", back_populates="transaction")


class MedicineVendorPayment(Base):
    __tablename__ = "medicine_vendor_payments"
    __table_args__ = (
        Index("ix_medicine_vendor_payments_vendor_date", "vendor_id", "payment_date"),
    )

    id = Column(Integer, primary_key=True)
    payment_no = Column(String(30), nullable=False, unique=True, index=True)

    vendor_id = Column(Integer, ForeignKey("medicine_vendors.id"), nullable=False, index=True)
    amount = Column(Money, nullable=False, default=Decimal("0.00"))
    payment_method = Column(String(30), nullable=False, default="cash")
    reference_no = Column(String(100), nullable=True)
    payment_date = Column(Date, nullable=False, default=date.today)
    description = Column(String(500), default="")

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    vendor = relationship("MedicineVendor", back_populates="payments")
    allocations = relationship(
        "VendorPaymentAllocation",
        back_populates="payment",
        cascade="all, delete-orphan",
    )


class VendorPaymentAllocation(Base):
    __tablename__ = "medicine_vendor_payment_allocs"
    __table_args__ = (
        UniqueConstraint("payment_id", "transaction_id", name="uq_medicine_vendor_alloc_payment_txn"),
    )

    id = Column(Integer, primary_key=True)
    payment_id = Column(Integer, ForeignKey("medicine_vendor_payments.id"), nullable=False, index=True)
    transaction_id = Column(Integer, ForeignKey("medicine_vendor_txns.id"), nullable=False, index=True)
    amount = Column(Money, nullable=False, default=Decimal("0.00"))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    payment = relationship("MedicineVendorPayment", back_populates="allocations")
    transaction = relationship("MedicineVendorTransaction", back_populates="allocations")

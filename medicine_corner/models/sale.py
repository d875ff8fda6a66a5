# medicine_corner/models/sale.py
from __future__ import annotations

from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, ForeignKey, Numeric, Text, Index,
)
from sqlalchemy.orm import relationship

from medicine_corner.db.base import Base

Money = Numeric(14, 2)
Cost = Numeric(18, 6)


class MedicineSale(Base):
    __tablename__ = "medicine_sales"
    __table_args__ = (
        Index("ix_medicine_sales_date_status", "sale_date", "payment_status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(30), nullable=False, unique=True, index=True)

    patient_id = Column(Integer, nullable=True, index=True)
    customer_name = Column(String(255), default="")
    customer_phone = Column(String(20), default="")

    sale_date = Column(Date, nullable=False, default=date.today)

    subtotal = Column(Money, nullable=False, default=Decimal("0.00"))
    discount = Column(Money, nullable=False, default=Decimal("0.00"))     # amount actually applied
    discount_type = Column(String(20), nullable=False, default="amount")  # amount / percentage
    discount_input = Column(Money, nullable=False, default=Decimal("0.00"))
    tax = Column(Money, nullable=False, default=Decimal("0.00"))
    total_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    paid_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    due_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    total_profit = Column(Money, nullable=False, default=Decimal("0.00"))
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(30), nullable=True)

    notes = Column(Text, default="")
    sold_by = Column(Integer, nullable=True)
    updated_by = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    items = relationship(
        "MedicineSaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="MedicineSaleItem.id",
    )


class MedicineSaleItem(Base):
    __tablename__ = "medicine_sale_items"

    id = Column(Integer, primary_key=True)
    sale_id = Column(Integer, ForeignKey("medicine_sales.id"), nullable=False, index=True)
    stock_id = Column(Integer, ForeignKey("medicine_stocks.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Money, nullable=False, default=Decimal("0.00"))
    buy_price = Column(Cost, nullable=False, default=Decimal("0"))  # batch cost at sale time

    sale = relationship("MedicineSale", back_populates="items")
    stock = relationship("MedicineStock")

    @property
    def total_price(self) -> Decimal:
        return Decimal(self.quantity or 0) * Decimal(str(self.unit_price or 0))

    @property
    def profit(self) -> Decimal:
        return (Decimal(str(self.unit_price or 0)) - Decimal(str(self.buy_price or 0))) * Decimal(self.quantity or 0)

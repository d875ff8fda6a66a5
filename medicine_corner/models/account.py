# medicine_corner/models/account.py
from __future__ import annotations

import enum
from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, Index

from medicine_corner.db.base import Base

Money = Numeric(14, 2)


class AccountTxnType(str, enum.Enum):
    INCOME = "income"
    EXPENSE = "expense"
    FUND_IN = "fund_in"
    FUND_OUT = "fund_out"


class MedicineAccount(Base):
    """
    Cash account of the medicine corner (a single row).
    balance = income + fund_in - expense - fund_out
    """
    __tablename__ = "medicine_account"

    id = Column(Integer, primary_key=True)
    balance = Column(Money, nullable=False, default=Decimal("0.00"))

    version = Column(Integer, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}


class MedicineAccountTxn(Base):
    """
    Account ledger. amount is always positive, the type gives the direction.
      income   -> sale income (category medicine_sale)
      expense  -> expenses, sale reversals / cancellations
      fund_in  -> money put into the account
      fund_out -> money taken out
    """
    __tablename__ = "medicine_account_txns"
    __table_args__ = (
        Index("ix_medicine_account_txns_type_date", "type", "transaction_date"),
        Index("ix_medicine_account_txns_ref", "reference_type", "reference_id"),
    )

    id = Column(Integer, primary_key=True)
    transaction_no = Column(String(30), nullable=False, unique=True, index=True)

    type = Column(String(20), nullable=False)
    amount = Column(Money, nullable=False)
    category = Column(String(100), nullable=False, default="")

    reference_type = Column(String(50), nullable=True)
    reference_id = Column(Integer, nullable=True)

    description = Column(String(500), default="")
    transaction_date = Column(Date, nullable=False, default=date.today)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

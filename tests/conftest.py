import os

# must be set before the package reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENFORCE_CREDIT_LIMIT"] = "true"
os.environ["PAYMENT_ALLOCATION_ORDER"] = "oldest_due_first"

from decimal import Decimal

import pytest

from medicine_corner.db.base import Base
from medicine_corner.db.session import SessionLocal, engine, unit_of_work
from medicine_corner.models.medicine import Medicine
from medicine_corner.schemas.medicine_stock import PurchaseCreate
from medicine_corner.services.purchase_reconciler import create_purchase
from medicine_corner.services.vendor_ledger import create_vendor


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def make_medicine(db):
    def _make(name="Napa 500mg", **kw):
        m = Medicine(name=name, unit="pcs", **kw)
        db.add(m)
        db.commit()
        return m
    return _make


@pytest.fixture()
def make_vendor(db):
    """Vendor created through the ledger, so an opening balance is a payable transaction."""
    def _make(name="Acme Pharma", balance="0", credit_limit="0", terms=30, **kw):
        data = dict(
            name=name,
            opening_balance=Decimal(balance),
            credit_limit=Decimal(credit_limit),
            payment_terms_days=terms,
            **kw,
        )
        with unit_of_work(db):
            v = create_vendor(db, data, user_id=1)
        return v
    return _make


@pytest.fixture()
def buy(db):
    """Commit a purchase through the service."""
    def _buy(medicine, vendor, quantity, total, paid="0", sale_price="0", **kw):
        data = PurchaseCreate(
            vendor_id=vendor.id,
            medicine_id=medicine.id,
            quantity=quantity,
            total_price=Decimal(str(total)),
            paid_amount=Decimal(str(paid)),
            sale_price=Decimal(str(sale_price)),
            **kw,
        )
        with unit_of_work(db):
            stock = create_purchase(db, data, user_id=1)
        return stock
    return _buy

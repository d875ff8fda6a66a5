from datetime import date, timedelta
from decimal import Decimal

import pytest

from medicine_corner.core.errors import NotFound, ValidationError
from medicine_corner.db.session import unit_of_work
from medicine_corner.models.medicine_stock import StockTransaction
from medicine_corner.models.vendor import MedicineVendorPayment, MedicineVendorTransaction
from medicine_corner.schemas.medicine_stock import PurchaseCreate, PurchaseUpdate
from medicine_corner.services.purchase_reconciler import (
    check_edit_quantity,
    create_purchase,
    default_expiry,
    derive_purchase_amounts,
    update_purchase,
)
from medicine_corner.utils.timezone import today_local


def test_derive_amounts():
    a = derive_purchase_amounts(50, "600", "200")
    assert a.unit_price == Decimal("12")
    assert a.total_amount == Decimal("600.00")
    assert a.due_amount == Decimal("400.00")
    assert a.payment_status == "partial"
    assert a.due_amount + a.paid_amount == a.total_amount

    assert derive_purchase_amounts(10, "100").payment_status == "pending"
    assert derive_purchase_amounts(10, "100", "100").payment_status == "paid"


def test_paid_more_than_total_is_rejected():
    with pytest.raises(ValidationError) as ei:
        derive_purchase_amounts(10, "100", "100.01")
    assert ei.value.code == "paid_exceeds_total"
    assert ei.value.limit == "100.00"


def test_check_edit_quantity():
    assert check_edit_quantity(100, 70, 30) == 30
    with pytest.raises(ValidationError) as ei:
        check_edit_quantity(100, 70, 25)
    assert ei.value.code == "insufficient_available_quantity"
    assert ei.value.value == 5
    assert ei.value.limit == 30


def test_default_expiry_handles_leap_day():
    assert default_expiry(date(2024, 2, 29)) == date(2026, 2, 28)
    assert default_expiry(date(2024, 5, 10)) == date(2026, 5, 10)


def test_create_purchase_writes_everything(db, make_medicine, make_vendor, buy):
    m = make_medicine()
    v = make_vendor(terms=15)

    stock = buy(m, v, 50, "600", paid="200", sale_price="15")

    db.refresh(m)
    db.refresh(v)
    today = today_local()

    assert stock.buy_price == Decimal("12.000000")
    assert stock.available_quantity == 50
    assert stock.due_amount == Decimal("400.00")
    assert stock.payment_status == "partial"
    assert stock.batch_number.startswith("AUTO-" + today.strftime("%Y%m%d"))
    assert stock.expiry_date == default_expiry(today)

    assert m.total_stock == 50
    assert m.average_buy_price == Decimal("12.000000")
    assert v.current_balance == Decimal("400.00")

    vtx = db.query(MedicineVendorTransaction).filter_by(stock_id=stock.id).one()
    assert vtx.transaction_no == f"VT-{today.strftime('%y%m%d')}-0001"
    assert vtx.type == "purchase"
    assert vtx.due_date == today + timedelta(days=15)
    assert (vtx.amount, vtx.paid_amount, vtx.due_amount) == (
        Decimal("600.00"), Decimal("200.00"), Decimal("400.00"),
    )

    txn = db.query(StockTransaction).filter_by(stock_id=stock.id).one()
    assert txn.type == "purchase"
    assert txn.quantity_change == 50
    assert txn.vendor_transaction_id == vtx.id

    payment = db.query(MedicineVendorPayment).one()
    assert payment.amount == Decimal("200.00")
    assert [(a.transaction_id, a.amount) for a in payment.allocations] == [(vtx.id, Decimal("200.00"))]


def test_unpaid_purchase_has_no_payment(db, make_medicine, make_vendor, buy):
    buy(make_medicine(), make_vendor(), 10, "100")
    assert db.query(MedicineVendorPayment).count() == 0


def test_document_numbers_increase(db, make_medicine, make_vendor, buy):
    m, v = make_medicine(), make_vendor()
    buy(m, v, 1, "10")
    buy(m, v, 1, "10")
    nos = [t.transaction_no for t in db.query(MedicineVendorTransaction).order_by(MedicineVendorTransaction.id)]
    assert [n[-4:] for n in nos] == ["0001", "0002"]


def test_credit_limit_blocks_purchase(db, make_medicine, make_vendor, buy):
    m = make_medicine()
    v = make_vendor(balance="900", credit_limit="1000")

    with pytest.raises(ValidationError) as ei:
        buy(m, v, 10, "200")
    assert ei.value.code == "credit_limit_exceeded"

    db.refresh(m)
    db.refresh(v)
    assert m.total_stock == 0
    assert v.current_balance == Decimal("900.00")

    # paying up front keeps the new due inside the limit
    buy(m, v, 10, "200", paid="150")
    db.refresh(v)
    assert v.current_balance == Decimal("950.00")


def test_past_expiry_is_rejected(db, make_medicine, make_vendor, buy):
    with pytest.raises(ValidationError) as ei:
        buy(make_medicine(), make_vendor(), 10, "100",
            expiry_date=today_local() - timedelta(days=1), batch_number="B-1")
    assert ei.value.code == "expiry_in_past"


def test_unknown_vendor(db, make_medicine):
    m = make_medicine()
    data = PurchaseCreate(vendor_id=404, medicine_id=m.id, quantity=1,
                          total_price=Decimal("1"), sale_price=Decimal("1"))
    with pytest.raises(NotFound):
        with unit_of_work(db):
            create_purchase(db, data)


def _edit(db, stock, **kw):
    base = dict(
        vendor_id=stock.vendor_id,
        medicine_id=stock.medicine_id,
        batch_number=stock.batch_number,
        expiry_date=stock.expiry_date,
        quantity=stock.quantity,
        total_price=stock.total_amount,
        sale_price=stock.sale_price,
        paid_amount=stock.paid_amount,
    )
    base.update(kw)
    with unit_of_work(db):
        return update_purchase(db, stock.id, PurchaseUpdate(**base), user_id=1)


def test_edit_keeps_sold_units(db, make_medicine, make_vendor, buy):
    m, v = make_medicine(), make_vendor()
    stock = buy(m, v, 100, "1000")
    stock.available_quantity = 70   # 30 sold
    m.total_stock = 70
    db.commit()

    with pytest.raises(ValidationError) as ei:
        _edit(db, stock, quantity=25, total_price=Decimal("250"))
    assert ei.value.code == "insufficient_available_quantity"

    _edit(db, stock, quantity=120, total_price=Decimal("1440"))
    db.refresh(stock)
    db.refresh(m)
    db.refresh(v)
    assert stock.quantity == 120
    assert stock.available_quantity == 90
    assert stock.buy_price == Decimal("12.000000")
    assert m.total_stock == 90
    assert m.average_buy_price == Decimal("12.000000")
    assert v.current_balance == Decimal("1440.00")

    adj = db.query(StockTransaction).filter_by(stock_id=stock.id, type="adjustment").one()
    assert adj.quantity_change == 20


def test_edit_moves_due_between_vendors(db, make_medicine, make_vendor, buy):
    m = make_medicine()
    a = make_vendor(name="A")
    b = make_vendor(name="B", balance="100")
    stock = buy(m, a, 10, "500")

    _edit(db, stock, vendor_id=b.id, total_price=Decimal("400"))
    db.refresh(a)
    db.refresh(b)
    assert a.current_balance == Decimal("0.00")
    assert b.current_balance == Decimal("500.00")

    vtx = db.query(MedicineVendorTransaction).filter_by(stock_id=stock.id).one()
    assert vtx.vendor_id == b.id
    assert vtx.due_amount == Decimal("400.00")


def test_edit_extra_payment_is_recorded(db, make_medicine, make_vendor, buy):
    m, v = make_medicine(), make_vendor()
    stock = buy(m, v, 10, "500", paid="100")

    _edit(db, stock, paid_amount=Decimal("300"))
    db.refresh(v)
    assert v.current_balance == Decimal("200.00")
    assert sorted(p.amount for p in db.query(MedicineVendorPayment)) == [Decimal("100.00"), Decimal("200.00")]

    with pytest.raises(ValidationError) as ei:
        _edit(db, stock, paid_amount=Decimal("50"))
    assert ei.value.code == "paid_below_recorded_payments"

    other = make_vendor(name="Other")
    with pytest.raises(ValidationError) as ei:
        _edit(db, stock, vendor_id=other.id)
    assert ei.value.code == "vendor_change_after_payment"

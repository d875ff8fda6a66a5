from datetime import date, timedelta
from decimal import Decimal

import pytest

from medicine_corner.core.config import settings
from medicine_corner.core.errors import NotFound, ValidationError
from medicine_corner.db.session import unit_of_work
from medicine_corner.models.vendor import MedicineVendor, MedicineVendorPayment, MedicineVendorTransaction
from medicine_corner.services.vendor_ledger import (
    Allocation,
    adjust_balance,
    allocate_payment,
    apply_payment,
    check_credit_limit,
    credit_utilization,
    pending_transactions,
    vendor_due_summary,
)
from medicine_corner.utils.timezone import today_local


# ---------- pure allocation ----------

def test_allocation_fills_dues_in_turn():
    out = allocate_payment(
        "2000",
        [(1, "1200", date(2024, 1, 1)), (2, "1500", date(2024, 2, 1))],
        "oldest_due_first",
    )
    assert out == [Allocation(1, Decimal("1200.00")), Allocation(2, Decimal("800.00"))]


def test_oldest_due_first_reorders_and_puts_undated_last():
    out = allocate_payment(
        "500",
        [(1, "300", None), (2, "300", date(2024, 3, 1)), (3, "300", date(2024, 1, 1))],
        "oldest_due_first",
    )
    assert [a.transaction_id for a in out] == [3, 2]
    assert [a.amount for a in out] == [Decimal("300.00"), Decimal("200.00")]


def test_selected_order_is_kept():
    out = allocate_payment(
        "500",
        [(2, "300", date(2024, 3, 1)), (3, "300", date(2024, 1, 1))],
        "selected_order",
    )
    assert [a.transaction_id for a in out] == [2, 3]


def test_remainder_after_all_dues_is_rejected():
    with pytest.raises(ValidationError) as ei:
        allocate_payment("1000", [(1, "300", None), (2, "200", None)], "selected_order")
    assert ei.value.code == "exceeds_selected_dues"
    assert ei.value.limit == "500.00"


def test_allocation_rejects_bad_input():
    with pytest.raises(ValidationError):
        allocate_payment("0", [(1, "10", None)])
    with pytest.raises(ValidationError):
        allocate_payment("10", [(1, "10", None)], "newest_first")


def test_credit_utilization():
    assert credit_utilization("2500", "10000") == Decimal("25.00")
    assert credit_utilization("2500", "0") == Decimal("0")


def test_credit_limit_check():
    v = MedicineVendor(name="V", current_balance=Decimal("900"), credit_limit=Decimal("1000"))
    check_credit_limit(v, "100")
    with pytest.raises(ValidationError) as ei:
        check_credit_limit(v, "100.01")
    assert ei.value.code == "credit_limit_exceeded"
    # editing an existing purchase releases its old due first
    check_credit_limit(v, "300", released_due="200")


def test_credit_limit_can_be_switched_off(monkeypatch):
    monkeypatch.setattr(settings, "ENFORCE_CREDIT_LIMIT", False)
    v = MedicineVendor(name="V", current_balance=Decimal("900"), credit_limit=Decimal("1000"))
    check_credit_limit(v, "5000")


def test_no_limit_means_unlimited():
    v = MedicineVendor(name="V", current_balance=Decimal("900"), credit_limit=Decimal("0"))
    check_credit_limit(v, "1000000")


# ---------- ledger against the database ----------

@pytest.fixture()
def vendor_with_dues(db, make_medicine, make_vendor, buy):
    """Balance 5000: 2300 opening + purchases due 1200 and 1500."""
    m = make_medicine()
    v = make_vendor(balance="2300")
    s1 = buy(m, v, 12, "1200")
    s2 = buy(m, v, 15, "1500")
    db.refresh(v)
    assert v.current_balance == Decimal("5000.00")
    t1 = db.query(MedicineVendorTransaction).filter_by(stock_id=s1.id).one()
    t2 = db.query(MedicineVendorTransaction).filter_by(stock_id=s2.id).one()
    return v, t1, t2, s1, s2


def test_payment_across_two_purchases(db, vendor_with_dues):
    v, t1, t2, s1, s2 = vendor_with_dues

    with unit_of_work(db):
        payment = apply_payment(db, v.id, "2000", [t1.id, t2.id], user_id=1)

    db.refresh(v)
    db.refresh(t1)
    db.refresh(t2)
    assert t1.due_amount == Decimal("0.00")
    assert t1.payment_status == "paid"
    assert t2.due_amount == Decimal("700.00")
    assert t2.paid_amount == Decimal("800.00")
    assert t2.payment_status == "partial"
    assert v.current_balance == Decimal("3000.00")

    # the batches follow their transactions
    db.refresh(s1)
    db.refresh(s2)
    assert (s1.due_amount, s1.payment_status) == (Decimal("0.00"), "paid")
    assert (s2.due_amount, s2.payment_status) == (Decimal("700.00"), "partial")

    assert payment.payment_no.startswith("VP-")
    assert sorted((a.transaction_id, a.amount) for a in payment.allocations) == [
        (t1.id, Decimal("1200.00")),
        (t2.id, Decimal("800.00")),
    ]


def test_empty_selection_pays_oldest_first(db, vendor_with_dues):
    v, t1, t2, _, _ = vendor_with_dues
    t2.due_date = t1.due_date - timedelta(days=1)
    db.commit()

    opening = _opening(db, v)

    # the opening balance is due from day one
    with unit_of_work(db):
        apply_payment(db, v.id, "3800")

    db.refresh(opening)
    db.refresh(t1)
    db.refresh(t2)
    assert opening.due_amount == Decimal("0.00")
    assert t2.due_amount == Decimal("0.00")
    assert t1.due_amount == Decimal("1200.00")


def test_payment_above_balance_is_rejected(db, vendor_with_dues):
    v, t1, t2, _, _ = vendor_with_dues
    with pytest.raises(ValidationError) as ei:
        with unit_of_work(db):
            apply_payment(db, v.id, "5000.01", [t1.id, t2.id])
    assert ei.value.code == "exceeds_balance"

    db.refresh(v)
    assert v.current_balance == Decimal("5000.00")


def test_payment_above_selected_dues_changes_nothing(db, vendor_with_dues):
    v, t1, _, _, _ = vendor_with_dues
    with pytest.raises(ValidationError) as ei:
        with unit_of_work(db):
            apply_payment(db, v.id, "1500", [t1.id])
    assert ei.value.code == "exceeds_selected_dues"

    db.refresh(t1)
    db.refresh(v)
    assert t1.due_amount == Decimal("1200.00")
    assert v.current_balance == Decimal("5000.00")


def test_foreign_or_settled_transactions_are_rejected(db, vendor_with_dues, make_vendor, make_medicine, buy):
    v, t1, _, _, _ = vendor_with_dues
    other = make_vendor(name="Other")
    s = buy(make_medicine(name="Other med"), other, 1, "50")
    foreign = db.query(MedicineVendorTransaction).filter_by(stock_id=s.id).one()

    with pytest.raises(ValidationError) as ei:
        with unit_of_work(db):
            apply_payment(db, v.id, "10", [foreign.id])
    assert ei.value.code == "transaction_vendor_mismatch"

    with unit_of_work(db):
        apply_payment(db, v.id, "1200", [t1.id])
    with pytest.raises(ValidationError) as ei:
        with unit_of_work(db):
            apply_payment(db, v.id, "10", [t1.id])
    assert ei.value.code == "transaction_already_paid"

    with pytest.raises(NotFound):
        with unit_of_work(db):
            apply_payment(db, v.id, "10", [999999])


def test_pending_transactions_order(db, vendor_with_dues):
    v, t1, t2, _, _ = vendor_with_dues
    rows = pending_transactions(db, v.id)
    assert [t.id for t in rows] == [_opening(db, v).id, t1.id, t2.id]


def _opening(db, vendor):
    return db.query(MedicineVendorTransaction).filter_by(vendor_id=vendor.id, type="opening").one()


def _assert_balance_matches_dues(db, vendor):
    db.refresh(vendor)
    dues = sum(
        (t.due_amount for t in db.query(MedicineVendorTransaction).filter_by(vendor_id=vendor.id)),
        Decimal("0"),
    )
    assert vendor.current_balance == dues


def test_opening_balance_is_payable(db, make_vendor):
    v = make_vendor(balance="5000")
    opening = _opening(db, v)
    assert (opening.due_amount, opening.payment_status) == (Decimal("5000.00"), "pending")

    with unit_of_work(db):
        apply_payment(db, v.id, "2000")

    db.refresh(opening)
    assert opening.due_amount == Decimal("3000.00")
    assert opening.payment_status == "partial"
    _assert_balance_matches_dues(db, v)
    assert v.current_balance == Decimal("3000.00")


def test_no_opening_transaction_without_opening_balance(db, make_vendor):
    v = make_vendor()
    assert db.query(MedicineVendorTransaction).filter_by(vendor_id=v.id).count() == 0


def test_balance_increase_is_payable(db, make_vendor):
    v = make_vendor(balance="300")

    with unit_of_work(db):
        txn = adjust_balance(db, v.id, "increase", "1000", "missed invoice", user_id=1)
    assert txn.type == "adjustment"
    assert txn.transaction_no.startswith("VT-")
    assert txn.due_amount == Decimal("1000.00")
    assert txn.id in [t.id for t in pending_transactions(db, v.id)]

    with unit_of_work(db):
        apply_payment(db, v.id, "1300")

    db.refresh(txn)
    assert txn.payment_status == "paid"
    _assert_balance_matches_dues(db, v)
    assert v.current_balance == Decimal("0.00")


def test_balance_decrease_writes_off_oldest_dues(db, vendor_with_dues):
    v, t1, t2, s1, _ = vendor_with_dues

    with unit_of_work(db):
        adjust_balance(db, v.id, "decrease", "2500", "discount agreed", user_id=1)

    opening = _opening(db, v)
    db.refresh(t1)
    db.refresh(t2)
    db.refresh(s1)
    assert opening.due_amount == Decimal("0.00")
    assert t1.due_amount == Decimal("1000.00")
    assert t2.due_amount == Decimal("1500.00")
    # the batch follows its transaction
    assert (s1.paid_amount, s1.due_amount) == (Decimal("200.00"), Decimal("1000.00"))
    _assert_balance_matches_dues(db, v)
    assert v.current_balance == Decimal("2500.00")

    write_off = db.query(MedicineVendorPayment).filter_by(payment_method="adjustment").one()
    assert write_off.amount == Decimal("2500.00")

    # whatever is left can still be paid in full
    with unit_of_work(db):
        apply_payment(db, v.id, "2500")
    _assert_balance_matches_dues(db, v)
    assert v.current_balance == Decimal("0.00")


def test_balance_decrease_above_balance_is_rejected(db, make_vendor):
    v = make_vendor(balance="300")
    with pytest.raises(ValidationError) as ei:
        with unit_of_work(db):
            adjust_balance(db, v.id, "decrease", "800", "settled in cash")
    assert ei.value.code == "exceeds_balance"

    db.refresh(v)
    assert v.current_balance == Decimal("300.00")
    assert _opening(db, v).due_amount == Decimal("300.00")

    with pytest.raises(ValidationError):
        adjust_balance(db, v.id, "double", "1", "x")


def test_due_summary(db, vendor_with_dues):
    v, t1, t2, _, _ = vendor_with_dues
    today = today_local()
    t1.due_date = today - timedelta(days=3)
    t2.due_date = today + timedelta(days=2)
    db.commit()

    summary = vendor_due_summary(db, today)
    assert summary["total_dues"] == Decimal("5000.00")
    assert summary["overdue_amount"] == Decimal("1200.00")
    # opening balance (due today) + t2
    assert summary["near_due_amount"] == Decimal("3800.00")
    assert summary["vendor_count"] == 1
    assert summary["vendors"][0]["pending_transactions"] == 3

from datetime import timedelta
from decimal import Decimal

import pytest

from medicine_corner.core.errors import ValidationError
from medicine_corner.db.session import unit_of_work
from medicine_corner.models.account import MedicineAccountTxn
from medicine_corner.schemas.sale import SaleCreate, SaleUpdate
from medicine_corner.services.medicine_account import (
    add_expense,
    balance_sheet,
    fund_in,
    fund_out,
    get_balance,
    monthly_report,
)
from medicine_corner.services.sale_reconciler import create_sale, delete_sale, update_sale
from medicine_corner.utils.timezone import today_local


@pytest.fixture()
def batch(db, make_medicine, make_vendor, buy):
    return buy(make_medicine(), make_vendor(), 20, "200", sale_price="15")


def _sale(stock, qty, price="15", **kw):
    return SaleCreate(items=[{"stock_id": stock.id, "quantity": qty, "unit_price": Decimal(price)}], **kw)


def _ledger(db):
    return [
        (t.type, t.category, t.amount)
        for t in db.query(MedicineAccountTxn).order_by(MedicineAccountTxn.id)
    ]


def test_empty_account(db):
    assert get_balance(db) == Decimal("0.00")
    report = monthly_report(db, 2024, 2)
    assert (report["income"], report["expense"], report["profit"]) == (
        Decimal("0.00"), Decimal("0.00"), Decimal("0.00"),
    )


def test_sale_posts_income(db, batch):
    with unit_of_work(db):
        sale = create_sale(db, _sale(batch, 4))

    assert get_balance(db) == Decimal("60.00")
    [txn] = db.query(MedicineAccountTxn).all()
    assert txn.transaction_no.startswith("MI-")
    assert (txn.reference_type, txn.reference_id) == ("medicine_sale", sale.id)


def test_sale_edit_reverses_then_reposts(db, batch):
    with unit_of_work(db):
        sale = create_sale(db, _sale(batch, 4))
    with unit_of_work(db):
        update_sale(db, sale.id, SaleUpdate(**_sale(batch, 2).model_dump()))

    assert _ledger(db) == [
        ("income", "medicine_sale", Decimal("60.00")),
        ("expense", "sale_reversal", Decimal("60.00")),
        ("income", "medicine_sale", Decimal("30.00")),
    ]
    assert get_balance(db) == Decimal("30.00")


def test_sale_delete_reverses_income(db, batch):
    with unit_of_work(db):
        sale = create_sale(db, _sale(batch, 4))
    with unit_of_work(db):
        delete_sale(db, sale.id)

    assert _ledger(db)[-1] == ("expense", "sale_cancellation", Decimal("60.00"))
    assert get_balance(db) == Decimal("0.00")


def test_free_sale_posts_nothing(db, batch):
    with unit_of_work(db):
        create_sale(db, _sale(batch, 1, price="0"))
    assert db.query(MedicineAccountTxn).count() == 0


def test_failed_sale_leaves_account_alone(db, batch):
    with pytest.raises(ValidationError):
        with unit_of_work(db):
            create_sale(db, _sale(batch, 21))
    assert get_balance(db) == Decimal("0.00")
    assert db.query(MedicineAccountTxn).count() == 0


def test_funds_and_expenses(db):
    with unit_of_work(db):
        fund_in(db, "1000", "opening cash", user_id=1)
    with unit_of_work(db):
        add_expense(db, "250", "utilities", "electricity bill")
    with unit_of_work(db):
        fund_out(db, "100", "owner withdrawal")
    assert get_balance(db) == Decimal("650.00")

    prefixes = [t.transaction_no.split("-")[0] for t in db.query(MedicineAccountTxn).order_by(MedicineAccountTxn.id)]
    assert prefixes == ["MFI", "ME", "MFO"]


@pytest.mark.parametrize("spend", [add_expense, fund_out])
def test_spending_beyond_balance_is_rejected(db, spend):
    with unit_of_work(db):
        fund_in(db, "100", "float")

    with pytest.raises(ValidationError) as ei:
        with unit_of_work(db):
            spend(db, "100.01", "too much")
    assert ei.value.code == "insufficient_balance"
    assert get_balance(db) == Decimal("100.00")


def test_amount_must_be_positive(db):
    with pytest.raises(ValidationError) as ei:
        fund_in(db, "0", "nothing")
    assert ei.value.code == "invalid_amount"


def test_monthly_report_and_balance_sheet(db, batch):
    today = today_local()
    last_month = today.replace(day=1) - timedelta(days=1)

    with unit_of_work(db):
        fund_in(db, "500", "float", txn_date=last_month)
    with unit_of_work(db):
        add_expense(db, "100", "rent", txn_date=last_month)
    with unit_of_work(db):
        create_sale(db, _sale(batch, 10))          # 150 income this month
    with unit_of_work(db):
        add_expense(db, "40", "cleaning")

    month = monthly_report(db, today.year, today.month)
    assert (month["income"], month["expense"], month["profit"]) == (
        Decimal("150.00"), Decimal("40.00"), Decimal("110.00"),
    )
    assert month["balance"] == Decimal("510.00")

    prev = monthly_report(db, last_month.year, last_month.month)
    assert (prev["income"], prev["expense"]) == (Decimal("0.00"), Decimal("100.00"))

    sheet = balance_sheet(db)
    assert sheet["balance"] == Decimal("510.00")
    assert sheet["total_fund_in"] == Decimal("500.00")
    assert sheet["total_expense"] == Decimal("140.00")
    assert sheet["total_medicine_sales"] == Decimal("150.00")
    assert sheet["month_profit"] == Decimal("110.00")


def test_month_must_be_valid(db):
    with pytest.raises(ValidationError):
        monthly_report(db, 2024, 13)
    assert monthly_report(db, 2024, 12)["month"] == 12

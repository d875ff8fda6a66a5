# FILE: medicine_corner/services/medicine_account.py
"""
Medicine corner cash account.

Every sale posts its total as income; editing a sale reverses the old total
and posts the new one, deleting it reverses the total. Expenses and fund
movements are entered by hand.

    balance = income + fund_in - expense - fund_out
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from medicine_corner.core.errors import ConcurrencyConflict, ValidationError
from medicine_corner.models.account import AccountTxnType, MedicineAccount, MedicineAccountTxn
from medicine_corner.models.sale import MedicineSale
from medicine_corner.services.money import D, ZERO, money2, require_non_negative
from medicine_corner.services.number_series import next_document_number
from medicine_corner.utils.timezone import today_local

logger = logging.getLogger(__name__)

ACCOUNT_ID = 1

SALE_INCOME = "medicine_sale"
SALE_REVERSAL = "sale_reversal"
SALE_CANCELLATION = "sale_cancellation"

_PREFIX = {
    AccountTxnType.INCOME: "MI",
    AccountTxnType.EXPENSE: "ME",
    AccountTxnType.FUND_IN: "MFI",
    AccountTxnType.FUND_OUT: "MFO",
}
_SIGN = {
    AccountTxnType.INCOME: 1,
    AccountTxnType.FUND_IN: 1,
    AccountTxnType.EXPENSE: -1,
    AccountTxnType.FUND_OUT: -1,
}


def lock_account(db: Session) -> MedicineAccount:
    acc = (
        db.query(MedicineAccount)
        .filter(MedicineAccount.id == ACCOUNT_ID)
        .with_for_update()
        .first()
    )
    if acc:
        return acc

    acc = MedicineAccount(id=ACCOUNT_ID, balance=ZERO)
    db.add(acc)
    try:
        db.flush()
    except IntegrityError as e:
        raise ConcurrencyConflict(
            "account_conflict",
            "Medicine account was opened by another user. Try again.",
        ) from e
    return acc


def get_balance(db: Session) -> Decimal:
    acc = db.get(MedicineAccount, ACCOUNT_ID)
    return money2(acc.balance) if acc else money2(ZERO)


def post(
    db: Session,
    txn_type: AccountTxnType,
    amount: Any,
    category: str,
    description: str = "",
    *,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    txn_date: Optional[date] = None,
    user_id: Optional[int] = None,
    check_balance: bool = False,
) -> MedicineAccountTxn:
    amt = money2(require_non_negative(amount, "amount"))
    if amt <= ZERO:
        raise ValidationError("invalid_amount", "Amount must be greater than 0",
                              field="amount", value=str(amt), limit="0.01")

    acc = lock_account(db)
    balance = money2(acc.balance)
    if check_balance and _SIGN[txn_type] < 0 and amt > balance:
        raise ValidationError("insufficient_balance",
                              f"Medicine account has only {balance}",
                              field="amount", value=str(amt), limit=str(balance))

    txn_date = txn_date or today_local()
    txn = MedicineAccountTxn(
        transaction_no=next_document_number(db, _PREFIX[txn_type], txn_date),
        type=txn_type.value,
        amount=amt,
        category=category,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description or "",
        transaction_date=txn_date,
        created_by=user_id,
    )
    db.add(txn)
    acc.balance = money2(balance + _SIGN[txn_type] * amt)
    db.flush()

    logger.info("account %s %s %s (%s) balance=%s",
                txn.transaction_no, txn_type.value, amt, category, acc.balance)
    return txn


def add_expense(db: Session, amount: Any, category: str, description: str = "",
                txn_date: Optional[date] = None, user_id: Optional[int] = None) -> MedicineAccountTxn:
    return post(db, AccountTxnType.EXPENSE, amount, category, description,
                txn_date=txn_date, user_id=user_id, check_balance=True)


def fund_in(db: Session, amount: Any, purpose: str, description: str = "",
            txn_date: Optional[date] = None, user_id: Optional[int] = None) -> MedicineAccountTxn:
    return post(db, AccountTxnType.FUND_IN, amount, purpose, description,
                txn_date=txn_date, user_id=user_id)


def fund_out(db: Session, amount: Any, purpose: str, description: str = "",
             txn_date: Optional[date] = None, user_id: Optional[int] = None) -> MedicineAccountTxn:
    return post(db, AccountTxnType.FUND_OUT, amount, purpose, description,
                txn_date=txn_date, user_id=user_id, check_balance=True)


def post_sale_income(db: Session, sale: MedicineSale, user_id: Optional[int] = None) -> Optional[MedicineAccountTxn]:
    total = money2(sale.total_amount)
    if total <= ZERO:
        return None
    return post(
        db, AccountTxnType.INCOME, total, SALE_INCOME,
        f"Medicine sale {sale.invoice_number}",
        reference_type="medicine_sale", reference_id=sale.id,
        txn_date=sale.sale_date, user_id=user_id,
    )


def reverse_sale_income(
    db: Session,
    sale: MedicineSale,
    amount: Any,
    category: str,
    user_id: Optional[int] = None,
) -> Optional[MedicineAccountTxn]:
    """Take back income posted for a sale. May leave the balance negative."""
    amt = money2(amount)
    if amt <= ZERO:
        return None
    label = "deleted" if category == SALE_CANCELLATION else "updated"
    return post(
        db, AccountTxnType.EXPENSE, amt, category,
        f"Sale {sale.invoice_number} {label}, {amt} reversed",
        reference_type="medicine_sale", reference_id=sale.id,
        user_id=user_id,
    )


def _sum(db: Session, *filters: Any) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(MedicineAccountTxn.amount), 0))
        .filter(*filters)
        .scalar()
    )
    return money2(D(total))


def _month_range(year: int, month: int) -> tuple:
    if not 1 <= int(month) <= 12:
        raise ValidationError("invalid_month", "Month must be between 1 and 12",
                              field="month", value=month)
    start = date(int(year), int(month), 1)
    end = date(start.year + 1, 1, 1) if start.month == 12 else date(start.year, start.month + 1, 1)
    return start, end


def monthly_report(db: Session, year: int, month: int) -> Dict[str, Any]:
    start, end = _month_range(year, month)
    in_month = (
        MedicineAccountTxn.transaction_date >= start,
        MedicineAccountTxn.transaction_date < end,
    )
    income = _sum(db, MedicineAccountTxn.type == AccountTxnType.INCOME.value, *in_month)
    expense = _sum(db, MedicineAccountTxn.type == AccountTxnType.EXPENSE.value, *in_month)
    return {
        "year": start.year,
        "month": start.month,
        "income": income,
        "expense": expense,
        "profit": money2(income - expense),
        "balance": get_balance(db),
    }


def balance_sheet(db: Session) -> Dict[str, Any]:
    by_type = {
        t: _sum(db, MedicineAccountTxn.type == t.value)
        for t in AccountTxnType
    }
    sales = _sum(db, MedicineAccountTxn.category == SALE_INCOME)
    reversed_sales = _sum(db, MedicineAccountTxn.category.in_([SALE_REVERSAL, SALE_CANCELLATION]))

    today = today_local()
    month = monthly_report(db, today.year, today.month)

    return {
        "balance": get_balance(db),
        "total_income": by_type[AccountTxnType.INCOME],
        "total_expense": by_type[AccountTxnType.EXPENSE],
        "total_fund_in": by_type[AccountTxnType.FUND_IN],
        "total_fund_out": by_type[AccountTxnType.FUND_OUT],
        "total_medicine_sales": money2(sales - reversed_sales),
        "month_income": month["income"],
        "month_expense": month["expense"],
        "month_profit": month["profit"],
    }

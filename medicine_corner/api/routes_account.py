# FILE: medicine_corner/api/routes_account.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from medicine_corner.api.deps import ActingUser, current_user, get_db
from medicine_corner.api.response import ok, ok_rows
from medicine_corner.core.rbac import P_ACCOUNT_MANAGE, P_ACCOUNT_VIEW, require_any
from medicine_corner.db.session import unit_of_work
from medicine_corner.models.account import AccountTxnType, MedicineAccountTxn
from medicine_corner.schemas.account import (
    AccountTxnOut,
    BalanceSheetOut,
    ExpenseIn,
    FundIn,
    MonthlyReportOut,
)
from medicine_corner.services.medicine_account import (
    add_expense,
    balance_sheet,
    fund_in,
    fund_out,
    monthly_report,
)
from medicine_corner.utils.timezone import today_local

router = APIRouter(prefix="/medicine-account", tags=["Medicine Account"])


@router.get("")
def account_overview(
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_ACCOUNT_VIEW)
    today = today_local()
    return ok(MonthlyReportOut(**monthly_report(db, today.year, today.month)).model_dump())


@router.post("/fund-in")
def fund_in_api(
    payload: FundIn,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_ACCOUNT_MANAGE)
    with unit_of_work(db):
        txn = fund_in(db, payload.amount, payload.purpose, payload.description or "",
                      payload.entry_date, user_id=user.id)
    return ok(AccountTxnOut.model_validate(txn).model_dump(), status_code=201)


@router.post("/fund-out")
def fund_out_api(
    payload: FundIn,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_ACCOUNT_MANAGE)
    with unit_of_work(db):
        txn = fund_out(db, payload.amount, payload.purpose, payload.description or "",
                       payload.entry_date, user_id=user.id)
    return ok(AccountTxnOut.model_validate(txn).model_dump(), status_code=201)


@router.post("/expenses")
def add_expense_api(
    payload: ExpenseIn,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_ACCOUNT_MANAGE)
    with unit_of_work(db):
        txn = add_expense(db, payload.amount, payload.category, payload.description or "",
                          payload.entry_date, user_id=user.id)
    return ok(AccountTxnOut.model_validate(txn).model_dump(), status_code=201)


@router.get("/transactions")
def list_transactions(
    type: Optional[AccountTxnType] = Query(None),
    category: Optional[str] = Query(None, max_length=100),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_ACCOUNT_VIEW)

    q = db.query(MedicineAccountTxn)
    if type:
        q = q.filter(MedicineAccountTxn.type == type.value)
    if category:
        q = q.filter(MedicineAccountTxn.category == category)
    if from_date:
        q = q.filter(MedicineAccountTxn.transaction_date >= from_date)
    if to_date:
        q = q.filter(MedicineAccountTxn.transaction_date <= to_date)

    total = q.with_entities(func.count(MedicineAccountTxn.id)).scalar() or 0
    rows = q.order_by(MedicineAccountTxn.id.desc()).offset(offset).limit(limit).all()
    return ok_rows(rows, AccountTxnOut, total=int(total), limit=limit, offset=offset)


@router.get("/monthly-report")
def monthly_report_api(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_ACCOUNT_VIEW)
    today = today_local()
    report = monthly_report(db, year or today.year, month or today.month)
    return ok(MonthlyReportOut(**report).model_dump())


@router.get("/balance-sheet")
def balance_sheet_api(
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_ACCOUNT_VIEW)
    return ok(BalanceSheetOut(**balance_sheet(db)).model_dump())

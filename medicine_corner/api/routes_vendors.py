# FILE: medicine_corner/api/routes_vendors.py
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from medicine_corner.api.deps import ActingUser, current_user, get_db
from medicine_corner.api.response import ok
from medicine_corner.core.errors import NotFound
from medicine_corner.core.rbac import (
    P_VENDOR_MANAGE,
    P_VENDOR_PAY,
    P_VENDOR_VIEW,
    require_any,
)
from medicine_corner.db.session import unit_of_work
from medicine_corner.models.vendor import (
    MedicineVendor,
    MedicineVendorPayment,
    MedicineVendorTransaction,
)
from medicine_corner.schemas.vendor import (
    BalanceAdjustIn,
    VendorCreate,
    VendorDueSummaryOut,
    VendorOut,
    VendorPaymentCreate,
    VendorPaymentOut,
    VendorTransactionOut,
    VendorUpdate,
)
from medicine_corner.services.locking import lock_one
from medicine_corner.services.money import money2
from medicine_corner.services.vendor_ledger import (
    adjust_balance,
    apply_payment,
    create_vendor as svc_create_vendor,
    credit_utilization,
    is_overdue,
    pending_transactions,
    vendor_due_summary,
)
from medicine_corner.utils.timezone import today_local

router = APIRouter(prefix="/medicine-vendors", tags=["Medicine Vendors"])


def _vendor_out(v: MedicineVendor) -> Dict[str, Any]:
    data = VendorOut.model_validate(v).model_dump()
    data["credit_utilization"] = credit_utilization(v.current_balance, v.credit_limit)
    return data


def _txn_out(t: MedicineVendorTransaction, today: date) -> Dict[str, Any]:
    data = VendorTransactionOut.model_validate(t).model_dump()
    data["is_overdue"] = is_overdue(t, today)
    return data


def _get_vendor(db: Session, vendor_id: int) -> MedicineVendor:
    v = db.get(MedicineVendor, vendor_id)
    if not v:
        raise NotFound("vendor_not_found", "Vendor not found", field="vendor_id", value=vendor_id)
    return v


@router.get("")
def list_vendors(
    q: str = Query("", max_length=100),
    active_only: bool = Query(True),
    with_due: bool = Query(False),
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_VENDOR_VIEW)

    query = db.query(MedicineVendor)
    if active_only:
        query = query.filter(MedicineVendor.is_active.is_(True))
    if q.strip():
        like = f"%{q.strip()}%"
        query = query.filter(or_(
            MedicineVendor.name.ilike(like),
            MedicineVendor.company_name.ilike(like),
            MedicineVendor.phone.ilike(like),
        ))
    if with_due:
        query = query.filter(MedicineVendor.current_balance > 0)

    rows = query.order_by(MedicineVendor.name.asc()).all()
    return ok([_vendor_out(v) for v in rows], meta={"count": len(rows)})


@router.post("")
def create_vendor(
    payload: VendorCreate,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_VENDOR_MANAGE)

    with unit_of_work(db):
        v = svc_create_vendor(db, payload.model_dump(), user_id=user.id)

    return ok(_vendor_out(v), status_code=201)


@router.get("/dues/summary")
def dues_summary(
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_VENDOR_VIEW)
    summary = vendor_due_summary(db, today_local())
    return ok(VendorDueSummaryOut(**summary).model_dump())


@router.post("/payments")
def create_vendor_payment(
    payload: VendorPaymentCreate,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_VENDOR_PAY)

    with unit_of_work(db):
        payment = apply_payment(
            db,
            payload.vendor_id,
            payload.amount,
            payload.transaction_ids,
            payment_method=payload.payment_method,
            reference_no=payload.reference_no,
            payment_date=payload.payment_date,
            description=payload.description,
            user_id=user.id,
        )

    vendor = payment.vendor
    data = VendorPaymentOut.model_validate(payment).model_dump()
    data["vendor_balance"] = money2(vendor.current_balance)
    data["credit_utilization"] = credit_utilization(vendor.current_balance, vendor.credit_limit)
    return ok(data, status_code=201)


@router.get("/{vendor_id}")
def get_vendor(
    vendor_id: int,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_VENDOR_VIEW)
    return ok(_vendor_out(_get_vendor(db, vendor_id)))


@router.put("/{vendor_id}")
def update_vendor(
    vendor_id: int,
    payload: VendorUpdate,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_VENDOR_MANAGE)

    with unit_of_work(db):
        v = lock_one(db, MedicineVendor, vendor_id, "Vendor")
        for k, val in payload.model_dump(exclude_unset=True).items():
            setattr(v, k, val)
        db.flush()

    return ok(_vendor_out(v))


@router.get("/{vendor_id}/pending-transactions")
def list_pending_transactions(
    vendor_id: int,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_VENDOR_VIEW)

    _get_vendor(db, vendor_id)
    today = today_local()
    rows = pending_transactions(db, vendor_id)
    return ok([_txn_out(t, today) for t in rows], meta={"count": len(rows)})


@router.get("/{vendor_id}/transactions")
def list_vendor_transactions(
    vendor_id: int,
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_VENDOR_VIEW)

    _get_vendor(db, vendor_id)
    q = db.query(MedicineVendorTransaction).filter(MedicineVendorTransaction.vendor_id == vendor_id)
    if from_date:
        q = q.filter(MedicineVendorTransaction.transaction_date >= from_date)
    if to_date:
        q = q.filter(MedicineVendorTransaction.transaction_date <= to_date)

    today = today_local()
    rows = q.order_by(MedicineVendorTransaction.id.desc()).all()
    return ok([_txn_out(t, today) for t in rows], meta={"count": len(rows)})


@router.get("/{vendor_id}/payments")
def list_vendor_payments(
    vendor_id: int,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_VENDOR_VIEW)

    _get_vendor(db, vendor_id)
    rows = (
        db.query(MedicineVendorPayment)
        .filter(MedicineVendorPayment.vendor_id == vendor_id)
        .order_by(MedicineVendorPayment.id.desc())
        .all()
    )
    return ok([VendorPaymentOut.model_validate(p).model_dump() for p in rows], meta={"count": len(rows)})


@router.post("/{vendor_id}/adjust-balance")
def adjust_vendor_balance(
    vendor_id: int,
    payload: BalanceAdjustIn,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_VENDOR_MANAGE)

    with unit_of_work(db):
        txn = adjust_balance(
            db,
            vendor_id,
            payload.adjustment_type,
            payload.amount,
            payload.reason,
            user_id=user.id,
        )

    return ok({
        "transaction": _txn_out(txn, today_local()),
        "vendor": _vendor_out(txn.vendor),
    })

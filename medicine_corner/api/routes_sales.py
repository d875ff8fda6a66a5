# FILE: medicine_corner/api/routes_sales.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from medicine_corner.api.deps import ActingUser, current_user, get_db
from medicine_corner.api.response import ok, ok_rows
from medicine_corner.core.rbac import P_SALE_MANAGE, P_SALE_VIEW, require_any
from medicine_corner.db.session import unit_of_work
from medicine_corner.models.sale import MedicineSale
from medicine_corner.schemas.sale import SaleCreate, SaleOut, SalePaymentIn, SaleUpdate
from medicine_corner.services.sale_reconciler import (
    create_sale,
    delete_sale,
    get_sale,
    update_sale,
    update_sale_payment,
)

router = APIRouter(prefix="/medicine-corner/sales", tags=["Medicine Corner Sales"])


@router.get("")
def list_sales(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    payment_status: Optional[str] = Query(None),
    patient_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_SALE_VIEW)

    q = db.query(MedicineSale)
    if from_date:
        q = q.filter(MedicineSale.sale_date >= from_date)
    if to_date:
        q = q.filter(MedicineSale.sale_date <= to_date)
    if payment_status:
        q = q.filter(MedicineSale.payment_status == payment_status)
    if patient_id:
        q = q.filter(MedicineSale.patient_id == patient_id)

    total = q.with_entities(func.count(MedicineSale.id)).scalar() or 0
    rows = q.order_by(MedicineSale.id.desc()).offset(offset).limit(limit).all()
    return ok_rows(rows, SaleOut, total=int(total), limit=limit, offset=offset)


@router.post("")
def create_sale_api(
    payload: SaleCreate,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_SALE_MANAGE)

    with unit_of_work(db):
        sale = create_sale(db, payload, user_id=user.id)

    return ok(SaleOut.model_validate(sale).model_dump(), status_code=201)


@router.get("/{sale_id}")
def get_sale_api(
    sale_id: int,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_SALE_VIEW)
    return ok(SaleOut.model_validate(get_sale(db, sale_id)).model_dump())


@router.put("/{sale_id}")
def update_sale_api(
    sale_id: int,
    payload: SaleUpdate,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_SALE_MANAGE)

    with unit_of_work(db):
        sale = update_sale(db, sale_id, payload, user_id=user.id)

    return ok(SaleOut.model_validate(sale).model_dump())


@router.post("/{sale_id}/payment")
def collect_sale_payment(
    sale_id: int,
    payload: SalePaymentIn,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_SALE_MANAGE)

    with unit_of_work(db):
        sale = update_sale_payment(
            db, sale_id, payload.paid_amount, payload.payment_method, user_id=user.id
        )

    return ok(SaleOut.model_validate(sale).model_dump())


@router.delete("/{sale_id}")
def delete_sale_api(
    sale_id: int,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_SALE_MANAGE)

    with unit_of_work(db):
        delete_sale(db, sale_id, user_id=user.id)

    return ok({"id": sale_id, "deleted": True})

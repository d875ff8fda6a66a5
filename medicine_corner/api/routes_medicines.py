# FILE: medicine_corner/api/routes_medicines.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, func
from sqlalchemy.orm import Session

from medicine_corner.api.deps import ActingUser, current_user, get_db
from medicine_corner.api.response import ok, ok_rows
from medicine_corner.core.errors import NotFound
from medicine_corner.core.rbac import P_MEDICINE_MANAGE, P_MEDICINE_VIEW, require_any
from medicine_corner.db.session import unit_of_work
from medicine_corner.models.medicine import Medicine
from medicine_corner.schemas.medicine import (
    MedicineCreate,
    MedicineOut,
    MedicineUpdate,
    StockAlertIn,
    StockAlertOut,
)
from medicine_corner.services.locking import lock_one
from medicine_corner.services.money import money2
from medicine_corner.services.stock_alerts import upsert_stock_alert
from medicine_corner.services.stock_valuation import medicine_stock_value

router = APIRouter(prefix="/medicine-corner/medicines", tags=["Medicine Corner"])


def _get_medicine(db: Session, medicine_id: int) -> Medicine:
    m = db.get(Medicine, medicine_id)
    if not m:
        raise NotFound("medicine_not_found", "Medicine not found", field="medicine_id", value=medicine_id)
    return m


@router.get("")
def list_medicines(
    q: str = Query("", max_length=100),
    active_only: bool = Query(True),
    in_stock: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_MEDICINE_VIEW)

    query = db.query(Medicine)
    if active_only:
        query = query.filter(Medicine.is_active.is_(True))
    if q.strip():
        like = f"%{q.strip()}%"
        query = query.filter(or_(
            Medicine.name.ilike(like),
            Medicine.generic_name.ilike(like),
            Medicine.manufacturer.ilike(like),
        ))
    if in_stock is True:
        query = query.filter(Medicine.total_stock > 0)
    elif in_stock is False:
        query = query.filter(Medicine.total_stock <= 0)

    total = query.with_entities(func.count(Medicine.id)).scalar() or 0
    rows = query.order_by(Medicine.name.asc()).offset(offset).limit(limit).all()
    return ok_rows(rows, MedicineOut, total=int(total), limit=limit, offset=offset)


@router.post("")
def create_medicine(
    payload: MedicineCreate,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_MEDICINE_MANAGE)

    with unit_of_work(db):
        m = Medicine(**payload.model_dump())
        db.add(m)
        db.flush()

    return ok(MedicineOut.model_validate(m).model_dump(), status_code=201)


@router.get("/{medicine_id}")
def get_medicine(
    medicine_id: int,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_MEDICINE_VIEW)

    m = _get_medicine(db, medicine_id)
    data = MedicineOut.model_validate(m).model_dump()
    data["stock_value"] = money2(medicine_stock_value(m.stocks))
    data["stock_alert"] = StockAlertOut.model_validate(m.stock_alert).model_dump() if m.stock_alert else None
    return ok(data)


@router.put("/{medicine_id}")
def update_medicine(
    medicine_id: int,
    payload: MedicineUpdate,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_MEDICINE_MANAGE)

    with unit_of_work(db):
        m = lock_one(db, Medicine, medicine_id, "Medicine")
        for k, v in payload.model_dump(exclude_unset=True).items():
            setattr(m, k, v)
        db.flush()

    return ok(MedicineOut.model_validate(m).model_dump())


@router.put("/{medicine_id}/stock-alert")
def set_stock_alert(
    medicine_id: int,
    payload: StockAlertIn,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_MEDICINE_MANAGE)

    with unit_of_work(db):
        alert = upsert_stock_alert(db, medicine_id, payload)

    return ok(StockAlertOut.model_validate(alert).model_dump())

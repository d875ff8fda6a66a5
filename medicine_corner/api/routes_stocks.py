# FILE: medicine_corner/api/routes_stocks.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from medicine_corner.api.deps import ActingUser, current_user, get_db
from medicine_corner.api.response import ok, ok_rows
from medicine_corner.core.errors import NotFound
from medicine_corner.core.rbac import P_STOCK_MANAGE, P_STOCK_VIEW, require_any
from medicine_corner.db.session import unit_of_work
from medicine_corner.models.medicine_stock import MedicineStock, StockTransaction
from medicine_corner.schemas.medicine_stock import (
    PurchaseCreate,
    PurchaseResultOut,
    PurchaseUpdate,
    StockAdjustIn,
    StockDetailOut,
    StockOut,
    StockTransactionOut,
)
from medicine_corner.services.purchase_reconciler import create_purchase, update_purchase
from medicine_corner.services.stock_adjustments import adjust_stock

router = APIRouter(prefix="/medicine-corner/stocks", tags=["Medicine Corner Stock"])


def _purchase_result(stock: MedicineStock, message: str) -> dict:
    return PurchaseResultOut(
        stock=StockOut.model_validate(stock),
        average_buy_price=stock.medicine.average_buy_price,
        total_stock=stock.medicine.total_stock,
        vendor_balance=stock.vendor.current_balance,
        message=message,
    ).model_dump()


@router.get("")
def list_stocks(
    medicine_id: Optional[int] = Query(None),
    vendor_id: Optional[int] = Query(None),
    payment_status: Optional[str] = Query(None),   # pending / partial / paid
    in_stock: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_STOCK_VIEW)

    q = db.query(MedicineStock).filter(MedicineStock.is_active.is_(True))
    if medicine_id:
        q = q.filter(MedicineStock.medicine_id == medicine_id)
    if vendor_id:
        q = q.filter(MedicineStock.vendor_id == vendor_id)
    if payment_status:
        q = q.filter(MedicineStock.payment_status == payment_status)
    if in_stock:
        q = q.filter(MedicineStock.available_quantity > 0)

    total = q.with_entities(func.count(MedicineStock.id)).scalar() or 0
    rows = q.order_by(MedicineStock.id.desc()).offset(offset).limit(limit).all()
    return ok_rows(rows, StockOut, total=int(total), limit=limit, offset=offset)


@router.post("")
def create_stock(
    payload: PurchaseCreate,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_STOCK_MANAGE)

    with unit_of_work(db):
        stock = create_purchase(db, payload, user_id=user.id)

    return ok(_purchase_result(stock, "Stock added"), status_code=201)


@router.get("/{stock_id}")
def get_stock(
    stock_id: int,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_STOCK_VIEW)

    stock = db.get(MedicineStock, stock_id)
    if not stock:
        raise NotFound("stock_not_found", "Stock not found", field="stock_id", value=stock_id)

    txns = (
        db.query(StockTransaction)
        .filter(StockTransaction.stock_id == stock.id)
        .order_by(StockTransaction.id.asc())
        .all()
    )
    data = StockDetailOut.model_validate(stock).model_dump(exclude={"transactions"})
    data["transactions"] = [StockTransactionOut.model_validate(t).model_dump() for t in txns]
    return ok(data)


@router.put("/{stock_id}")
def edit_stock(
    stock_id: int,
    payload: PurchaseUpdate,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_STOCK_MANAGE)

    with unit_of_work(db):
        stock = update_purchase(db, stock_id, payload, user_id=user.id)

    return ok(_purchase_result(stock, "Stock updated"))


@router.post("/{stock_id}/adjust")
def adjust_stock_api(
    stock_id: int,
    payload: StockAdjustIn,
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_STOCK_MANAGE)

    with unit_of_work(db):
        stock = adjust_stock(
            db,
            stock_id,
            payload.adjustment_type,
            payload.quantity,
            payload.reason,
            user_id=user.id,
        )

    return ok(StockOut.model_validate(stock).model_dump())

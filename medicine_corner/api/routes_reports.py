# FILE: medicine_corner/api/routes_reports.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from medicine_corner.api.deps import ActingUser, current_user, get_db
from medicine_corner.api.response import ok
from medicine_corner.core.errors import ValidationError
from medicine_corner.core.rbac import P_REPORT_VIEW, P_STOCK_VIEW, require_any
from medicine_corner.schemas.reports import AlertsOut, BuySaleStockReportOut, DashboardOut
from medicine_corner.services.reports import buy_sale_stock_report, dashboard
from medicine_corner.services.stock_alerts import (
    expired_batches,
    expiring_batches,
    low_stock_medicines,
)
from medicine_corner.utils.timezone import today_local

router = APIRouter(prefix="/medicine-corner", tags=["Medicine Corner Reports"])


@router.get("/alerts")
def stock_alerts(
    days: Optional[int] = Query(None, ge=1, le=3650),
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_STOCK_VIEW)

    today = today_local()
    out = AlertsOut(
        low_stock=low_stock_medicines(db),
        expiring=expiring_batches(db, days=days, today=today),
        expired=expired_batches(db, today=today),
    )
    return ok(out.model_dump(), meta={
        "low_stock": len(out.low_stock),
        "expiring": len(out.expiring),
        "expired": len(out.expired),
    })


@router.get("/dashboard")
def dashboard_stats(
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_REPORT_VIEW)
    return ok(DashboardOut(**dashboard(db, today_local())).model_dump())


@router.get("/reports/buy-sale-stock")
def buy_sale_stock(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    user: ActingUser = Depends(current_user),
):
    require_any(user, P_REPORT_VIEW)

    today = today_local()
    from_date = from_date or today.replace(day=1)
    to_date = to_date or today
    if from_date > to_date:
        raise ValidationError("invalid_date_range", "from_date must be on or before to_date",
                              field="from_date", value=from_date.isoformat(), limit=to_date.isoformat())

    rows = buy_sale_stock_report(db, from_date, to_date)
    return ok(BuySaleStockReportOut(from_date=from_date, to_date=to_date, rows=rows).model_dump())

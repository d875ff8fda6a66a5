# FILE: medicine_corner/services/stock_alerts.py
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from medicine_corner.core.config import settings
from medicine_corner.models.medicine import Medicine, StockAlert
from medicine_corner.models.medicine_stock import MedicineStock
from medicine_corner.schemas.medicine import StockAlertIn
from medicine_corner.services.locking import lock_one
from medicine_corner.services.money import money2
from medicine_corner.services.stock_valuation import batch_value
from medicine_corner.utils.timezone import today_local

# thresholds used when a medicine has no alert row yet
DEFAULT_MINIMUM_STOCK = 10
DEFAULT_REORDER_LEVEL = 20


def _thresholds(m: Medicine) -> Dict[str, Any]:
    a = m.stock_alert
    if a is None:
        return {
            "minimum_stock": DEFAULT_MINIMUM_STOCK,
            "reorder_level": DEFAULT_REORDER_LEVEL,
            "low_stock_alert": True,
            "expiry_alert": True,
        }
    return {
        "minimum_stock": int(a.minimum_stock or 0),
        "reorder_level": int(a.reorder_level or 0),
        "low_stock_alert": bool(a.low_stock_alert),
        "expiry_alert": bool(a.expiry_alert),
    }


def low_stock_medicines(db: Session) -> List[Dict[str, Any]]:
    meds = (
        db.query(Medicine)
        .options(joinedload(Medicine.stock_alert))
        .filter(Medicine.is_active.is_(True), Medicine.track_stock.is_(True))
        .order_by(Medicine.total_stock.asc(), Medicine.name.asc())
        .all()
    )

    out: List[Dict[str, Any]] = []
    for m in meds:
        t = _thresholds(m)
        if not t["low_stock_alert"]:
            continue
        if int(m.total_stock or 0) <= t["minimum_stock"]:
            out.append({
                "medicine_id": m.id,
                "name": m.name,
                "total_stock": int(m.total_stock or 0),
                "minimum_stock": t["minimum_stock"],
                "reorder_level": t["reorder_level"],
            })
    return out


def _batch_row(s: MedicineStock, today: date) -> Dict[str, Any]:
    return {
        "stock_id": s.id,
        "medicine_id": s.medicine_id,
        "medicine_name": s.medicine.name if s.medicine else "",
        "batch_number": s.batch_number,
        "expiry_date": s.expiry_date,
        "available_quantity": int(s.available_quantity or 0),
        "days_to_expiry": (s.expiry_date - today).days if s.expiry_date else None,
        "value": money2(batch_value(s)),
    }


def _batches_with_stock(db: Session):
    return (
        db.query(MedicineStock)
        .options(joinedload(MedicineStock.medicine).joinedload(Medicine.stock_alert))
        .filter(
            MedicineStock.is_active.is_(True),
            MedicineStock.available_quantity > 0,
            MedicineStock.expiry_date.isnot(None),
        )
    )


def expiring_batches(db: Session, days: Optional[int] = None, today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Batches with stock that expire within `days` (today included)."""
    today = today or today_local()
    days = settings.EXPIRY_ALERT_DAYS if days is None else int(days)
    until = today + timedelta(days=days)

    rows = (
        _batches_with_stock(db)
        .filter(MedicineStock.expiry_date >= today, MedicineStock.expiry_date <= until)
        .order_by(MedicineStock.expiry_date.asc(), MedicineStock.id.asc())
        .all()
    )
    return [
        _batch_row(s, today) for s in rows
        if s.medicine is None or _thresholds(s.medicine)["expiry_alert"]
    ]


def expired_batches(db: Session, today: Optional[date] = None) -> List[Dict[str, Any]]:
    today = today or today_local()
    rows = (
        _batches_with_stock(db)
        .filter(MedicineStock.expiry_date < today)
        .order_by(MedicineStock.expiry_date.asc(), MedicineStock.id.asc())
        .all()
    )
    return [_batch_row(s, today) for s in rows]


def upsert_stock_alert(db: Session, medicine_id: int, data: StockAlertIn) -> StockAlert:
    medicine = lock_one(db, Medicine, medicine_id, "Medicine")
    alert = medicine.stock_alert
    if alert is None:
        alert = StockAlert(medicine_id=medicine.id)
        db.add(alert)

    for k, v in data.model_dump().items():
        setattr(alert, k, v)

    db.flush()
    return alert

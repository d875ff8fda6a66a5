# FILE: medicine_corner/services/reports.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from medicine_corner.models.medicine import Medicine
from medicine_corner.models.medicine_stock import MedicineStock
from medicine_corner.models.sale import MedicineSale, MedicineSaleItem
from medicine_corner.models.vendor import MedicineVendor
from medicine_corner.services.medicine_account import get_balance, monthly_report
from medicine_corner.services.money import D, ZERO, money2
from medicine_corner.services.stock_alerts import low_stock_medicines
from medicine_corner.services.stock_valuation import inventory_value
from medicine_corner.services.vendor_ledger import total_vendor_due
from medicine_corner.utils.timezone import today_local


def _count(q) -> int:
    return int(q.scalar() or 0)


def dashboard(db: Session, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or today_local()

    total_medicines = _count(
        db.query(func.count(Medicine.id)).filter(Medicine.is_active.is_(True))
    )
    in_stock = _count(
        db.query(func.count(Medicine.id)).filter(
            Medicine.is_active.is_(True), Medicine.total_stock > 0
        )
    )

    sales = db.query(MedicineSale).filter(MedicineSale.sale_date == today).all()
    vendors = db.query(MedicineVendor).filter(MedicineVendor.is_active.is_(True)).all()

    pending_purchases = _count(
        db.query(func.count(MedicineStock.id)).filter(
            MedicineStock.is_active.is_(True), MedicineStock.due_amount > 0
        )
    )

    return {
        "total_medicines": total_medicines,
        "medicines_in_stock": in_stock,
        "low_stock_medicines": len(low_stock_medicines(db)),
        "total_stock_value": money2(inventory_value(db)),
        "today_sales": money2(sum((D(s.total_amount) for s in sales), ZERO)),
        "today_profit": money2(sum((D(s.total_profit) for s in sales), ZERO)),
        "today_due": money2(sum((D(s.due_amount) for s in sales), ZERO)),
        "total_vendors": len(vendors),
        "total_vendor_due": total_vendor_due(vendors),
        "pending_purchases": pending_purchases,
        "account_balance": get_balance(db),
        "month_profit": monthly_report(db, today.year, today.month)["profit"],
    }


def buy_sale_stock_report(db: Session, from_date: date, to_date: date) -> List[Dict[str, Any]]:
    """
    Per tracked medicine:
      bought in range, sold in range (value, cost, profit), on hand now.
    """
    meds = (
        db.query(Medicine)
        .filter(Medicine.is_active.is_(True), Medicine.track_stock.is_(True))
        .order_by(Medicine.name.asc())
        .all()
    )

    buys = {
        mid: (int(q or 0), D(t))
        for mid, q, t in (
            db.query(
                MedicineStock.medicine_id,
                func.sum(MedicineStock.quantity),
                func.sum(MedicineStock.total_amount),
            )
            .filter(
                MedicineStock.purchase_date >= from_date,
                MedicineStock.purchase_date <= to_date,
            )
            .group_by(MedicineStock.medicine_id)
            .all()
        )
    }

    sold: Dict[int, Dict[str, Any]] = {}
    sale_rows = (
        db.query(MedicineSaleItem, MedicineStock.medicine_id)
        .join(MedicineSale, MedicineSale.id == MedicineSaleItem.sale_id)
        .join(MedicineStock, MedicineStock.id == MedicineSaleItem.stock_id)
        .filter(MedicineSale.sale_date >= from_date, MedicineSale.sale_date <= to_date)
        .all()
    )
    for item, mid in sale_rows:
        agg = sold.setdefault(mid, {"qty": 0, "total": ZERO, "cost": ZERO})
        qty = int(item.quantity or 0)
        agg["qty"] += qty
        agg["total"] += item.total_price
        agg["cost"] += D(item.buy_price) * qty

    on_hand: Dict[int, Dict[str, Any]] = {}
    for s in (
        db.query(MedicineStock)
        .filter(MedicineStock.is_active.is_(True), MedicineStock.available_quantity > 0)
        .all()
    ):
        agg = on_hand.setdefault(s.medicine_id, {"qty": 0, "value": ZERO})
        agg["qty"] += int(s.available_quantity or 0)
        agg["value"] += Decimal(int(s.available_quantity or 0)) * D(s.buy_price)

    rows: List[Dict[str, Any]] = []
    for m in meds:
        b_qty, b_total = buys.get(m.id, (0, ZERO))
        s = sold.get(m.id, {"qty": 0, "total": ZERO, "cost": ZERO})
        h = on_hand.get(m.id, {"qty": 0, "value": ZERO})
        rows.append({
            "medicine_id": m.id,
            "name": m.name,
            "unit": m.unit,
            "buy_qty": b_qty,
            "buy_total": money2(b_total),
            "buy_price": D(m.average_buy_price),
            "sale_qty": s["qty"],
            "sale_total": money2(s["total"]),
            "sale_cost": money2(s["cost"]),
            "profit": money2(s["total"] - s["cost"]),
            "available_qty": h["qty"],
            "available_value": money2(h["value"]),
        })
    return rows

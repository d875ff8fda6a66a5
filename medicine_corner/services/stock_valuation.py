# FILE: medicine_corner/services/stock_valuation.py
"""
Stock valuation (weighted average cost).

    new_avg = (old_stock * old_avg + in_qty * in_unit_price) / (old_stock + in_qty)

Example:
    old: 100 units @ 10.00, purchase: 50 units for 600.00 (12.00/unit)
    new_avg = (1000 + 600) / 150 = 10.666667

Calculations keep full Decimal precision; columns store 6 dp.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from medicine_corner.core.errors import DivisionByZero, ValidationError
from medicine_corner.models.medicine import Medicine
from medicine_corner.models.medicine_stock import MedicineStock
from medicine_corner.services.money import (
    D,
    ZERO,
    cost6,
    require_non_negative,
    require_positive_quantity,
)


def unit_price(total_price: Any, quantity: Any) -> Decimal:
    """Purchases are entered as a total for a quantity -> per-unit cost."""
    q = D(quantity, "quantity")
    if q == ZERO:
        raise DivisionByZero("division_by_zero", "quantity must be greater than 0 to derive unit price",
                             field="quantity", value="0", limit=1)
    if q < ZERO:
        raise ValidationError("invalid_quantity", "quantity must be greater than 0",
                              field="quantity", value=str(q), limit=1)
    total = require_non_negative(total_price, "total_price")
    return total / q


def weighted_average_cost(
    old_stock: Any,
    old_avg: Any,
    incoming_quantity: Any,
    incoming_unit_price: Any,
) -> Decimal:
    old_q = D(old_stock)
    in_q = D(incoming_quantity)
    in_p = D(incoming_unit_price)

    if old_q <= ZERO:
        return in_p

    return ((old_q * D(old_avg)) + (in_q * in_p)) / (old_q + in_q)


def record_purchase(medicine: Medicine, incoming_quantity: Any, incoming_unit_price: Any) -> Decimal:
    """
    Fold a purchase into the medicine's running average and cached stock.
    Caller must hold the medicine row lock and run inside the same
    transaction that creates the batch.
    """
    qty = require_positive_quantity(incoming_quantity)
    price = require_non_negative(incoming_unit_price, "unit_price")

    new_avg = weighted_average_cost(
        medicine.total_stock or 0,
        medicine.average_buy_price or 0,
        qty,
        price,
    )

    medicine.average_buy_price = cost6(new_avg)
    medicine.total_stock = int(medicine.total_stock or 0) + qty
    return new_avg


def batch_value(stock: MedicineStock) -> Decimal:
    return Decimal(int(stock.available_quantity or 0)) * D(stock.buy_price)


def medicine_stock_value(stocks: Iterable[MedicineStock]) -> Decimal:
    total = ZERO
    for s in stocks:
        if s.is_active is False:
            continue
        total += batch_value(s)
    return total


def recompute_average_from_batches(medicine: Medicine, stocks: Iterable[MedicineStock]) -> Decimal:
    """
    Value-weighted average of batches still holding stock.
    Used after edits/adjustments where the purchase history itself changed.
    Keeps the previous average when nothing is left on hand.
    """
    qty = 0
    value = ZERO
    for s in stocks:
        avail = int(s.available_quantity or 0)
        if s.is_active is False or avail <= 0:
            continue
        qty += avail
        value += Decimal(avail) * D(s.buy_price)

    if qty > 0:
        medicine.average_buy_price = cost6(value / Decimal(qty))
    return D(medicine.average_buy_price)


def _active_batches(db: Session, medicine_id: int):
    return (
        db.query(MedicineStock)
        .filter(
            MedicineStock.medicine_id == medicine_id,
            MedicineStock.is_active.is_(True),
        )
        .order_by(MedicineStock.id.asc())
        .all()
    )


def refresh_total_stock(db: Session, medicine: Medicine) -> int:
    db.flush()
    total = (
        db.query(func.coalesce(func.sum(MedicineStock.available_quantity), 0))
        .filter(
            MedicineStock.medicine_id == medicine.id,
            MedicineStock.is_active.is_(True),
        )
        .scalar()
    )
    medicine.total_stock = int(total or 0)
    return medicine.total_stock


def refresh_medicine_totals(db: Session, medicine: Medicine, *, recompute_average: bool = False) -> None:
    refresh_total_stock(db, medicine)
    if recompute_average:
        recompute_average_from_batches(medicine, _active_batches(db, medicine.id))


def inventory_value(db: Session) -> Decimal:
    """Current on-hand value: sum(available_quantity * buy_price) over active batches."""
    db.flush()
    value = (
        db.query(
            func.coalesce(
                func.sum(MedicineStock.available_quantity * MedicineStock.buy_price), 0
            )
        )
        .filter(
            MedicineStock.is_active.is_(True),
            MedicineStock.available_quantity > 0,
        )
        .scalar()
    )
    return D(value)

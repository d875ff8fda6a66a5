# FILE: medicine_corner/services/sale_reconciler.py
"""
Medicine sales.

    subtotal = sum(qty * unit_price)
    discount = subtotal * pct / 100 (percentage) or the amount, within [0, subtotal]
    total    = max(0, subtotal - discount + tax)
    paid     = clamp(paid_input, 0, total)
    due      = total - paid
    profit   = sum((unit_price - buy_price) * qty)

Every change to a sale moves batch stock (and the cached medicine totals)
together with the medicine account income, inside the caller's transaction.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from medicine_corner.core.errors import NotFound, ValidationError
from medicine_corner.models.medicine import Medicine
from medicine_corner.models.medicine_stock import MedicineStock, StockTransaction, StockTxnType
from medicine_corner.models.sale import MedicineSale, MedicineSaleItem
from medicine_corner.schemas.sale import SaleCreate, SaleUpdate
from medicine_corner.services.locking import lock_one
from medicine_corner.services.medicine_account import (
    SALE_CANCELLATION,
    SALE_REVERSAL,
    post_sale_income,
    reverse_sale_income,
)
from medicine_corner.services.money import (
    D,
    ZERO,
    clamp,
    cost6,
    money2,
    non_negative,
    payment_status,
    require_non_negative,
    require_positive_quantity,
)
from medicine_corner.services.number_series import next_document_number
from medicine_corner.services.stock_valuation import refresh_total_stock
from medicine_corner.utils.timezone import today_local

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class SaleLine:
    stock_id: int
    quantity: int
    unit_price: Decimal
    buy_price: Decimal = ZERO
    available_quantity: Optional[int] = None  # None -> not checked


@dataclass(frozen=True)
class SaleSummary:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    total_profit: Decimal
    payment_status: str


def _check_availability(lines: Sequence[SaleLine]) -> None:
    asked: Dict[int, int] = OrderedDict()
    available: Dict[int, Optional[int]] = {}
    for ln in lines:
        asked[ln.stock_id] = asked.get(ln.stock_id, 0) + int(ln.quantity)
        available[ln.stock_id] = ln.available_quantity

    for stock_id, qty in asked.items():
        avail = available[stock_id]
        if avail is not None and qty > int(avail):
            raise ValidationError(
                "insufficient_stock",
                f"Only {avail} units available in batch #{stock_id}, {qty} requested",
                field="quantity",
                value=qty,
                limit=int(avail),
            )


def finalize_sale(
    items: Sequence[SaleLine],
    discount_input: Any = 0,
    discount_type: str = "amount",
    tax: Any = 0,
    paid_amount_input: Any = 0,
) -> SaleSummary:
    if not items:
        raise ValidationError("empty_sale", "Add at least one item to the sale", field="items")

    subtotal = ZERO
    profit = ZERO
    for ln in items:
        qty = require_positive_quantity(ln.quantity)
        price = require_non_negative(ln.unit_price, "unit_price")
        subtotal += price * qty
        profit += (price - D(ln.buy_price)) * qty

    _check_availability(items)

    disc_in = require_non_negative(discount_input, "discount")
    if discount_type == "percentage":
        discount = subtotal * disc_in / HUNDRED
    elif discount_type in ("amount", "", None):
        discount = disc_in
    else:
        raise ValidationError("invalid_discount_type", "Discount type must be 'amount' or 'percentage'",
                              field="discount_type", value=discount_type)
    discount = money2(clamp(discount, ZERO, subtotal))

    tax_amt = money2(require_non_negative(tax, "tax"))
    subtotal = money2(subtotal)
    total = money2(non_negative(subtotal - discount + tax_amt))

    paid = money2(clamp(D(paid_amount_input, "paid_amount"), ZERO, total))
    due = money2(non_negative(total - paid))

    return SaleSummary(
        subtotal=subtotal,
        discount=discount,
        tax=tax_amt,
        total_amount=total,
        paid_amount=paid,
        due_amount=due,
        total_profit=money2(profit),
        payment_status=payment_status(due, paid),
    )


def _lock_batches(db: Session, stock_ids: Iterable[int]) -> Dict[int, MedicineStock]:
    ids = sorted({int(i) for i in stock_ids})
    rows = (
        db.query(MedicineStock)
        .filter(MedicineStock.id.in_(ids))
        .order_by(MedicineStock.id.asc())
        .with_for_update()
        .all()
    )
    by_id = {s.id: s for s in rows}
    missing = [i for i in ids if i not in by_id]
    if missing:
        raise NotFound("stock_not_found", f"Stock batch not found: {missing}",
                       field="stock_id", value=missing)
    return by_id


def _lines_for(items: Sequence[Any], stocks: Dict[int, MedicineStock]) -> List[SaleLine]:
    lines: List[SaleLine] = []
    for it in items:
        stock = stocks[int(it.stock_id)]
        if stock.is_active is False:
            raise ValidationError("stock_inactive", f"Batch {stock.batch_number} is inactive",
                                  field="stock_id", value=stock.id)
        lines.append(SaleLine(
            stock_id=stock.id,
            quantity=it.quantity,
            unit_price=money2(it.unit_price),
            buy_price=D(stock.buy_price),
            available_quantity=int(stock.available_quantity or 0),
        ))
    return lines


def _apply_summary(sale: MedicineSale, summary: SaleSummary, data: Any) -> None:
    sale.subtotal = summary.subtotal
    sale.discount = summary.discount
    sale.discount_type = data.discount_type or "amount"
    sale.discount_input = money2(data.discount)
    sale.tax = summary.tax
    sale.total_amount = summary.total_amount
    sale.paid_amount = summary.paid_amount
    sale.due_amount = summary.due_amount
    sale.total_profit = summary.total_profit
    sale.payment_status = summary.payment_status
    sale.payment_method = data.payment_method
    sale.patient_id = data.patient_id
    sale.customer_name = data.customer_name or ""
    sale.customer_phone = data.customer_phone or ""
    sale.notes = data.notes or ""


def _take_stock(
    db: Session,
    sale: MedicineSale,
    lines: Sequence[SaleLine],
    stocks: Dict[int, MedicineStock],
    user_id: Optional[int],
) -> None:
    for ln in lines:
        stock = stocks[ln.stock_id]
        qty = int(ln.quantity)

        sale.items.append(MedicineSaleItem(
            stock_id=stock.id,
            quantity=qty,
            unit_price=money2(ln.unit_price),
            buy_price=cost6(ln.buy_price),
        ))
        stock.available_quantity = int(stock.available_quantity or 0) - qty

        db.add(StockTransaction(
            stock_id=stock.id,
            type=StockTxnType.SALE.value,
            quantity_change=-qty,
            unit_price=money2(ln.unit_price),
            total_amount=money2(D(ln.unit_price) * qty),
            reference_type="sale",
            reference_id=sale.id,
            reason=f"Sale {sale.invoice_number}",
            created_by=user_id,
        ))


def _refresh_medicines(db: Session, stocks: Iterable[MedicineStock]) -> None:
    for mid in sorted({int(s.medicine_id) for s in stocks}):
        refresh_total_stock(db, lock_one(db, Medicine, mid, "Medicine"))


def create_sale(db: Session, data: SaleCreate, user_id: Optional[int] = None) -> MedicineSale:
    stocks = _lock_batches(db, [it.stock_id for it in data.items])
    lines = _lines_for(data.items, stocks)
    summary = finalize_sale(lines, data.discount, data.discount_type, data.tax, data.paid_amount)

    sale_date = data.sale_date or today_local()
    sale = MedicineSale(
        invoice_number=next_document_number(db, "MS", sale_date),
        sale_date=sale_date,
        sold_by=user_id,
    )
    _apply_summary(sale, summary, data)
    db.add(sale)
    db.flush()

    _take_stock(db, sale, lines, stocks, user_id)
    _refresh_medicines(db, stocks.values())
    post_sale_income(db, sale, user_id)
    db.flush()

    logger.info("sale %s total=%s paid=%s due=%s profit=%s items=%s",
                sale.invoice_number, sale.total_amount, sale.paid_amount,
                sale.due_amount, sale.total_profit, len(lines))
    return sale


def get_sale(db: Session, sale_id: int) -> MedicineSale:
    sale = db.get(MedicineSale, sale_id)
    if not sale:
        raise NotFound("sale_not_found", "Sale not found", field="sale_id", value=sale_id)
    return sale


def update_sale(db: Session, sale_id: int, data: SaleUpdate, user_id: Optional[int] = None) -> MedicineSale:
    """
    Put back everything the sale took, then sell the new items.
    Ends in the same state as deleting and re-creating the sale.
    """
    sale = lock_one(db, MedicineSale, sale_id, "Sale")
    old_total = money2(sale.total_amount)
    old_ids = {int(it.stock_id) for it in sale.items}
    stocks = _lock_batches(db, old_ids | {int(it.stock_id) for it in data.items})

    for it in sale.items:
        stock = stocks[int(it.stock_id)]
        stock.available_quantity = int(stock.available_quantity or 0) + int(it.quantity)

    (
        db.query(StockTransaction)
        .filter(
            StockTransaction.reference_type == "sale",
            StockTransaction.reference_id == sale.id,
        )
        .delete(synchronize_session=False)
    )
    sale.items.clear()
    db.flush()

    lines = _lines_for(data.items, stocks)
    summary = finalize_sale(lines, data.discount, data.discount_type, data.tax, data.paid_amount)

    _apply_summary(sale, summary, data)
    if data.sale_date:
        sale.sale_date = data.sale_date
    sale.updated_by = user_id

    _take_stock(db, sale, lines, stocks, user_id)
    _refresh_medicines(db, stocks.values())
    reverse_sale_income(db, sale, old_total, SALE_REVERSAL, user_id)
    post_sale_income(db, sale, user_id)
    db.flush()

    logger.info("sale %s updated total=%s due=%s", sale.invoice_number, sale.total_amount, sale.due_amount)
    return sale


def update_sale_payment(
    db: Session,
    sale_id: int,
    paid_amount: Any,
    payment_method: Optional[str] = None,
    user_id: Optional[int] = None,
) -> MedicineSale:
    sale = lock_one(db, MedicineSale, sale_id, "Sale")

    total = money2(sale.total_amount)
    paid = money2(clamp(require_non_negative(paid_amount, "paid_amount"), ZERO, total))
    sale.paid_amount = paid
    sale.due_amount = money2(non_negative(total - paid))
    sale.payment_status = payment_status(sale.due_amount, paid)
    if payment_method:
        sale.payment_method = payment_method
    sale.updated_by = user_id
    db.flush()

    logger.info("sale %s payment paid=%s due=%s", sale.invoice_number, sale.paid_amount, sale.due_amount)
    return sale


def delete_sale(db: Session, sale_id: int, user_id: Optional[int] = None) -> None:
    sale = lock_one(db, MedicineSale, sale_id, "Sale")
    stocks = _lock_batches(db, [it.stock_id for it in sale.items]) if sale.items else {}

    for it in sale.items:
        stock = stocks[int(it.stock_id)]
        qty = int(it.quantity)
        stock.available_quantity = int(stock.available_quantity or 0) + qty
        db.add(StockTransaction(
            stock_id=stock.id,
            type=StockTxnType.RETURN.value,
            quantity_change=qty,
            unit_price=money2(it.unit_price),
            total_amount=money2(it.total_price),
            reference_type="sale_delete",
            reference_id=sale.id,
            reason=f"Sale {sale.invoice_number} deleted",
            created_by=user_id,
        ))

    reverse_sale_income(db, sale, sale.total_amount, SALE_CANCELLATION, user_id)
    invoice = sale.invoice_number
    db.delete(sale)
    _refresh_medicines(db, stocks.values())
    db.flush()

    logger.info("sale %s deleted, %s batches restored", invoice, len(stocks))

# FILE: medicine_corner/services/purchase_reconciler.py
"""
Purchases (stock batches) and their payable side.

A purchase is entered as a total price for a quantity:
    unit_price = total_price / quantity
    due_amount = total_price - paid_amount

One purchase writes, in a single transaction:
    - the batch (medicine_stocks)
    - a 'purchase' vendor transaction (VT-yymmdd-NNNN), due after the
      vendor's payment terms
    - a 'purchase' stock transaction
    - a vendor payment (VP-yymmdd-NNNN) when something was paid up front
    - vendor.current_balance += due
    - medicine average buy price / total stock
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from medicine_corner.core.config import settings
from medicine_corner.core.errors import ConcurrencyConflict, ValidationError
from medicine_corner.models.medicine import Medicine
from medicine_corner.models.medicine_stock import MedicineStock, StockTransaction, StockTxnType
from medicine_corner.models.vendor import (
    MedicineVendor,
    MedicineVendorTransaction,
    VendorPaymentAllocation,
    VendorTxnType,
)
from medicine_corner.schemas.medicine_stock import PurchaseCreate, PurchaseUpdate
from medicine_corner.services.locking import lock_one, peek_column
from medicine_corner.services.money import (
    D,
    ZERO,
    cost6,
    money2,
    non_negative,
    payment_status,
    require_non_negative,
    require_positive_quantity,
)
from medicine_corner.services.number_series import auto_batch_number, next_document_number
from medicine_corner.services.stock_valuation import (
    record_purchase,
    refresh_medicine_totals,
    unit_price,
)
from medicine_corner.services.vendor_ledger import check_credit_limit, record_upfront_payment
from medicine_corner.utils.timezone import today_local

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PurchaseAmounts:
    unit_price: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    payment_status: str


def derive_purchase_amounts(quantity: Any, total_price: Any, paid_amount: Any = 0) -> PurchaseAmounts:
    qty = require_positive_quantity(quantity)
    total = money2(require_non_negative(total_price, "total_price"))
    paid = money2(require_non_negative(paid_amount, "paid_amount"))

    if paid > total:
        raise ValidationError(
            "paid_exceeds_total",
            f"Paid amount {paid} is more than the purchase total {total}",
            field="paid_amount",
            value=str(paid),
            limit=str(total),
        )

    due = money2(non_negative(total - paid))
    return PurchaseAmounts(
        unit_price=unit_price(total, qty),
        total_amount=total,
        paid_amount=paid,
        due_amount=due,
        payment_status=payment_status(due, paid),
    )


def check_edit_quantity(original_quantity: Any, available_quantity: Any, new_quantity: Any) -> int:
    """Quantity of an edited batch can't drop below what was already sold. Returns sold qty."""
    new_q = require_positive_quantity(new_quantity)
    sold = int(original_quantity or 0) - int(available_quantity or 0)
    if new_q < sold:
        raise ValidationError(
            "insufficient_available_quantity",
            f"{sold} units of this batch are already sold; quantity can't be less than {sold} "
            f"(short by {sold - new_q})",
            field="quantity",
            value=sold - new_q,
            limit=sold,
        )
    return sold


def default_expiry(today: date) -> date:
    years = settings.DEFAULT_EXPIRY_YEARS
    try:
        return today.replace(year=today.year + years)
    except ValueError:
        # 29 Feb
        return today.replace(year=today.year + years, day=28)


def _check_expiry(expiry: date, today: date) -> None:
    if expiry < today:
        raise ValidationError("expiry_in_past", "Expiry date can't be in the past",
                              field="expiry_date", value=expiry.isoformat(), limit=today.isoformat())


def _require_active(row: Any, label: str) -> None:
    if row.is_active is False:
        raise ValidationError(f"{label.lower()}_inactive", f"{label} is inactive",
                              field=f"{label.lower()}_id", value=row.id)


def purchase_transaction_for(db: Session, stock_id: int) -> Optional[MedicineVendorTransaction]:
    return (
        db.query(MedicineVendorTransaction)
        .filter(
            MedicineVendorTransaction.stock_id == stock_id,
            MedicineVendorTransaction.type == VendorTxnType.PURCHASE.value,
        )
        .with_for_update()
        .first()
    )


def create_purchase(db: Session, data: PurchaseCreate, user_id: Optional[int] = None) -> MedicineStock:
    amounts = derive_purchase_amounts(data.quantity, data.total_price, data.paid_amount)
    qty = int(data.quantity)
    sale_price = money2(require_non_negative(data.sale_price, "sale_price"))

    vendor = lock_one(db, MedicineVendor, data.vendor_id, "Vendor")
    _require_active(vendor, "Vendor")
    medicine = lock_one(db, Medicine, data.medicine_id, "Medicine")
    _require_active(medicine, "Medicine")

    today = today_local()
    expiry = data.expiry_date or default_expiry(today)
    _check_expiry(expiry, today)

    check_credit_limit(vendor, amounts.due_amount)

    batch_no = (data.batch_number or "").strip() or auto_batch_number(today)

    record_purchase(medicine, qty, amounts.unit_price)

    stock = MedicineStock(
        medicine_id=medicine.id,
        vendor_id=vendor.id,
        batch_number=batch_no,
        expiry_date=expiry,
        purchase_date=today,
        quantity=qty,
        available_quantity=qty,
        buy_price=cost6(amounts.unit_price),
        total_amount=amounts.total_amount,
        sale_price=sale_price,
        paid_amount=amounts.paid_amount,
        due_amount=amounts.due_amount,
        payment_status=amounts.payment_status,
        payment_method=data.payment_method,
        notes=data.notes or "",
        is_active=True,
        added_by=user_id,
    )
    db.add(stock)
    db.flush()

    vtx = MedicineVendorTransaction(
        transaction_no=next_document_number(db, "VT", today),
        vendor_id=vendor.id,
        type=VendorTxnType.PURCHASE.value,
        amount=amounts.total_amount,
        paid_amount=amounts.paid_amount,
        due_amount=amounts.due_amount,
        payment_status=amounts.payment_status,
        stock_id=stock.id,
        payment_method=data.payment_method,
        description=f"Purchase of {medicine.name} - Batch {batch_no}",
        transaction_date=today,
        due_date=today + timedelta(days=int(vendor.payment_terms_days or 0)),
        created_by=user_id,
    )
    db.add(vtx)
    db.flush()

    db.add(StockTransaction(
        stock_id=stock.id,
        type=StockTxnType.PURCHASE.value,
        quantity_change=qty,
        unit_price=cost6(amounts.unit_price),
        total_amount=amounts.total_amount,
        reference_type="vendor_transaction",
        reference_id=vtx.id,
        vendor_transaction_id=vtx.id,
        reason="Stock purchase",
        created_by=user_id,
    ))

    if amounts.paid_amount > ZERO:
        record_upfront_payment(
            db, vendor, vtx, amounts.paid_amount,
            payment_method=data.payment_method,
            pay_date=today,
            user_id=user_id,
        )

    vendor.current_balance = money2(D(vendor.current_balance) + amounts.due_amount)
    db.flush()

    logger.info(
        "purchase stock=%s medicine=%s vendor=%s qty=%s total=%s paid=%s due=%s avg=%s txn=%s",
        stock.id, medicine.id, vendor.id, qty, amounts.total_amount, amounts.paid_amount,
        amounts.due_amount, medicine.average_buy_price, vtx.transaction_no,
    )
    return stock


def _allocated_total(db: Session, txn_id: int) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(VendorPaymentAllocation.amount), 0))
        .filter(VendorPaymentAllocation.transaction_id == txn_id)
        .scalar()
    )
    return money2(total)


def update_purchase(
    db: Session,
    stock_id: int,
    data: PurchaseUpdate,
    user_id: Optional[int] = None,
) -> MedicineStock:
    """
    Edit a batch. Sold units stay sold:
        available_quantity += new_quantity - old_quantity
    Vendor balance moves by the due delta (split across vendors if the
    vendor changes). Averages of the affected medicines are recomputed
    from the batches on hand.
    """
    # vendors are locked before the batch, same as payments do
    old_vendor_id = int(peek_column(db, MedicineStock.vendor_id, stock_id, "Stock"))
    vendors: Dict[int, MedicineVendor] = {
        vid: lock_one(db, MedicineVendor, vid, "Vendor")
        for vid in sorted({old_vendor_id, int(data.vendor_id)})
    }
    vtx = purchase_transaction_for(db, stock_id)
    stock = lock_one(db, MedicineStock, stock_id, "Stock")
    if int(stock.vendor_id) != old_vendor_id:
        raise ConcurrencyConflict(
            "concurrent_update",
            "Stock batch was moved to another vendor meanwhile. Reload and try again.",
            field="stock_id",
            value=stock_id,
        )
    if stock.is_active is False:
        raise ValidationError("stock_inactive", "Stock batch is inactive", field="stock_id", value=stock_id)

    old_qty = int(stock.quantity or 0)
    old_due = money2(stock.due_amount)
    old_medicine_id = int(stock.medicine_id)

    check_edit_quantity(old_qty, stock.available_quantity, data.quantity)
    amounts = derive_purchase_amounts(data.quantity, data.total_price, data.paid_amount)
    new_qty = int(data.quantity)
    sale_price = money2(require_non_negative(data.sale_price, "sale_price"))

    medicines: Dict[int, Medicine] = {
        mid: lock_one(db, Medicine, mid, "Medicine")
        for mid in sorted({old_medicine_id, int(data.medicine_id)})
    }
    new_vendor = vendors[int(data.vendor_id)]
    _require_active(medicines[int(data.medicine_id)], "Medicine")

    allocated = _allocated_total(db, vtx.id) if vtx else ZERO

    if new_vendor.id != old_vendor_id:
        _require_active(new_vendor, "Vendor")
        if allocated > ZERO:
            raise ValidationError(
                "vendor_change_after_payment",
                "Vendor can't be changed once payments are recorded against this purchase",
                field="vendor_id",
                value=data.vendor_id,
            )
        check_credit_limit(new_vendor, amounts.due_amount)
    else:
        check_credit_limit(new_vendor, amounts.due_amount, released_due=old_due)

    if amounts.paid_amount < allocated:
        raise ValidationError(
            "paid_below_recorded_payments",
            f"{allocated} is already paid through vendor payments",
            field="paid_amount",
            value=str(amounts.paid_amount),
            limit=str(allocated),
        )

    today = today_local()
    expiry = data.expiry_date or stock.expiry_date or default_expiry(today)
    if expiry != stock.expiry_date:
        _check_expiry(expiry, today)

    stock.vendor_id = new_vendor.id
    stock.medicine_id = int(data.medicine_id)
    stock.batch_number = (data.batch_number or "").strip() or stock.batch_number
    stock.expiry_date = expiry
    stock.quantity = new_qty
    stock.available_quantity = int(stock.available_quantity or 0) + (new_qty - old_qty)
    stock.buy_price = cost6(amounts.unit_price)
    stock.total_amount = amounts.total_amount
    stock.sale_price = sale_price
    stock.paid_amount = amounts.paid_amount
    stock.due_amount = amounts.due_amount
    stock.payment_status = amounts.payment_status
    stock.payment_method = data.payment_method
    stock.notes = data.notes or ""

    if vtx is not None:
        vtx.vendor_id = new_vendor.id
        vtx.amount = amounts.total_amount
        vtx.paid_amount = amounts.paid_amount
        vtx.due_amount = amounts.due_amount
        vtx.payment_status = amounts.payment_status
        vtx.payment_method = data.payment_method
        vtx.description = f"Purchase of {medicines[int(data.medicine_id)].name} - Batch {stock.batch_number}"

        extra_paid = money2(amounts.paid_amount - allocated)
        if extra_paid > ZERO:
            record_upfront_payment(
                db, new_vendor, vtx, extra_paid,
                payment_method=data.payment_method,
                pay_date=today,
                user_id=user_id,
            )

    old_vendor = vendors[old_vendor_id]
    old_vendor.current_balance = money2(non_negative(D(old_vendor.current_balance) - old_due))
    new_vendor.current_balance = money2(D(new_vendor.current_balance) + amounts.due_amount)

    delta = new_qty - old_qty
    db.add(StockTransaction(
        stock_id=stock.id,
        type=StockTxnType.ADJUSTMENT.value,
        quantity_change=delta,
        unit_price=stock.buy_price,
        total_amount=money2(abs(delta) * D(stock.buy_price)),
        reference_type="stock_edit",
        reference_id=stock.id,
        vendor_transaction_id=vtx.id if vtx else None,
        reason="Stock details updated",
        created_by=user_id,
    ))

    for med in medicines.values():
        refresh_medicine_totals(db, med, recompute_average=True)
    db.flush()

    logger.info(
        "purchase edit stock=%s qty %s->%s due %s->%s vendor %s->%s",
        stock.id, old_qty, new_qty, old_due, amounts.due_amount, old_vendor_id, new_vendor.id,
    )
    return stock

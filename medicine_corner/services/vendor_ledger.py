# FILE: medicine_corner/services/vendor_ledger.py
"""
Vendor balance ledger.

vendor.current_balance is the running amount owed to the vendor:
  + opening balance
  + due of every purchase
  + manual increases
  - every payment
  - manual decreases

Every amount that raises the balance is a vendor transaction with a due,
so current_balance == sum(due_amount) over the vendor's transactions.
Payments (and decreases) are spread over those outstanding transactions;
each transaction takes min(remaining, due). The batch linked to a purchase
mirrors its transaction's paid/due/status.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import case
from sqlalchemy.orm import Session

from medicine_corner.core.config import settings
from medicine_corner.core.errors import NotFound, ValidationError
from medicine_corner.models.medicine_stock import MedicineStock
from medicine_corner.models.vendor import (
    MedicineVendor,
    MedicineVendorPayment,
    MedicineVendorTransaction,
    VendorPaymentAllocation,
    VendorTxnType,
)
from medicine_corner.services.locking import lock_one
from medicine_corner.services.money import (
    D,
    ZERO,
    PAID,
    money2,
    non_negative,
    payment_status,
    require_non_negative,
)
from medicine_corner.services.number_series import next_document_number
from medicine_corner.utils.timezone import today_local

logger = logging.getLogger(__name__)

OLDEST_DUE_FIRST = "oldest_due_first"
SELECTED_ORDER = "selected_order"

# (transaction_id, due_amount, due_date)
Outstanding = Tuple[int, Any, Optional[date]]


@dataclass(frozen=True)
class Allocation:
    transaction_id: int
    amount: Decimal


def allocate_payment(
    amount: Any,
    outstanding: Sequence[Outstanding],
    order: Optional[str] = None,
) -> List[Allocation]:
    remaining = money2(require_non_negative(amount, "amount"))
    if remaining <= ZERO:
        raise ValidationError("invalid_amount", "Payment amount must be greater than 0",
                              field="amount", value=str(remaining), limit="0.01")

    order = order or settings.PAYMENT_ALLOCATION_ORDER
    rows = list(outstanding)
    if order == OLDEST_DUE_FIRST:
        # undated dues go last, ties by id
        rows.sort(key=lambda r: (r[2] is None, r[2] or date.max, r[0]))
    elif order != SELECTED_ORDER:
        raise ValidationError("invalid_allocation_order", f"Unknown allocation order '{order}'",
                              field="order", value=order)

    total_due = ZERO
    out: List[Allocation] = []
    for txn_id, due, _ in rows:
        due = money2(non_negative(due))
        total_due += due
        if remaining <= ZERO or due <= ZERO:
            continue
        take = min(remaining, due)
        out.append(Allocation(transaction_id=int(txn_id), amount=take))
        remaining = money2(remaining - take)

    if remaining > ZERO:
        raise ValidationError(
            "exceeds_selected_dues",
            f"Payment exceeds the selected dues by {remaining}",
            field="amount",
            value=str(money2(amount)),
            limit=str(money2(total_due)),
        )
    return out


def credit_utilization(current_balance: Any, credit_limit: Any) -> Decimal:
    limit = D(credit_limit)
    if limit <= ZERO:
        return ZERO
    return money2(D(current_balance) / limit * Decimal("100"))


def check_credit_limit(vendor: MedicineVendor, new_due: Any, released_due: Any = 0) -> None:
    if not settings.ENFORCE_CREDIT_LIMIT:
        return
    limit = D(vendor.credit_limit)
    if limit <= ZERO:
        return

    projected = D(vendor.current_balance) - D(released_due) + D(new_due)
    if projected > limit:
        raise ValidationError(
            "credit_limit_exceeded",
            f"Credit limit exceeded for {vendor.name}: "
            f"balance would be {money2(projected)}, limit is {money2(limit)}",
            field="vendor_id",
            value=str(money2(projected)),
            limit=str(money2(limit)),
        )


def is_overdue(txn: MedicineVendorTransaction, today: Optional[date] = None) -> bool:
    today = today or today_local()
    return bool(txn.due_date and D(txn.due_amount) > ZERO and txn.due_date < today)


def pending_transactions(db: Session, vendor_id: int, *, lock: bool = False) -> List[MedicineVendorTransaction]:
    q = (
        db.query(MedicineVendorTransaction)
        .filter(
            MedicineVendorTransaction.vendor_id == vendor_id,
            MedicineVendorTransaction.due_amount > 0,
        )
        .order_by(
            case((MedicineVendorTransaction.due_date.is_(None), 1), else_=0),
            MedicineVendorTransaction.due_date.asc(),
            MedicineVendorTransaction.id.asc(),
        )
    )
    if lock:
        q = q.with_for_update()
    return q.all()


def _selected_transactions(
    db: Session,
    vendor: MedicineVendor,
    transaction_ids: Sequence[int],
) -> List[MedicineVendorTransaction]:
    ids = [int(i) for i in transaction_ids]
    if len(set(ids)) != len(ids):
        raise ValidationError("duplicate_transaction", "A transaction was selected more than once",
                              field="transaction_ids", value=ids)

    rows = (
        db.query(MedicineVendorTransaction)
        .filter(MedicineVendorTransaction.id.in_(ids))
        .with_for_update()
        .all()
    )
    by_id = {t.id: t for t in rows}

    missing = [i for i in ids if i not in by_id]
    if missing:
        raise NotFound("transaction_not_found", f"Vendor transaction not found: {missing}",
                       field="transaction_ids", value=missing)

    out: List[MedicineVendorTransaction] = []
    for i in ids:
        t = by_id[i]
        if int(t.vendor_id) != int(vendor.id):
            raise ValidationError("transaction_vendor_mismatch",
                                  f"Transaction {t.transaction_no} does not belong to {vendor.name}",
                                  field="transaction_ids", value=i)
        if D(t.due_amount) <= ZERO:
            raise ValidationError("transaction_already_paid",
                                  f"Transaction {t.transaction_no} has nothing due",
                                  field="transaction_ids", value=i)
        out.append(t)
    return out


def sync_stock_payment(db: Session, txn: MedicineVendorTransaction) -> None:
    """Batch payment fields follow its purchase transaction."""
    if not txn.stock_id:
        return
    stock = db.get(MedicineStock, txn.stock_id)
    if stock is None:
        return
    stock.paid_amount = money2(txn.paid_amount)
    stock.due_amount = money2(txn.due_amount)
    stock.payment_status = txn.payment_status


def apply_allocation(txn: MedicineVendorTransaction, amount: Any) -> None:
    amt = money2(amount)
    due = money2(txn.due_amount)
    if amt > due:
        raise ValidationError("overpayment", f"Transaction {txn.transaction_no} has only {due} due",
                              field="amount", value=str(amt), limit=str(due))
    txn.paid_amount = money2(D(txn.paid_amount) + amt)
    txn.due_amount = money2(due - amt)
    txn.payment_status = payment_status(txn.due_amount, txn.paid_amount)


def _check_within_balance(vendor: MedicineVendor, amt: Decimal, what: str) -> Decimal:
    balance = money2(vendor.current_balance)
    if amt > balance:
        raise ValidationError("exceeds_balance",
                              f"{what} {amt} exceeds the balance due to {vendor.name} ({balance})",
                              field="amount", value=str(amt), limit=str(balance))
    return balance


def _settle(
    db: Session,
    vendor: MedicineVendor,
    amt: Decimal,
    txns: Sequence[MedicineVendorTransaction],
    order: Optional[str],
    *,
    payment_method: str,
    reference_no: Optional[str],
    pay_date: date,
    description: str,
    user_id: Optional[int],
) -> Tuple[MedicineVendorPayment, List[Allocation]]:
    """
    Spread amt over txns and record it as one payment with its allocations.
    Vendor and transactions must already be locked.
    """
    allocations = allocate_payment(
        amt,
        [(t.id, t.due_amount, t.due_date) for t in txns],
        order,
    )

    payment = MedicineVendorPayment(
        payment_no=next_document_number(db, "VP", pay_date),
        vendor_id=vendor.id,
        amount=amt,
        payment_method=payment_method,
        reference_no=reference_no,
        payment_date=pay_date,
        description=description,
        created_by=user_id,
    )

    by_id = {t.id: t for t in txns}
    for a in allocations:
        txn = by_id[a.transaction_id]
        apply_allocation(txn, a.amount)
        sync_stock_payment(db, txn)
        payment.allocations.append(
            VendorPaymentAllocation(transaction_id=txn.id, amount=a.amount)
        )

    vendor.current_balance = money2(D(vendor.current_balance) - amt)
    db.add(payment)
    return payment, allocations


def apply_payment(
    db: Session,
    vendor_id: int,
    amount: Any,
    transaction_ids: Optional[Sequence[int]] = None,
    *,
    payment_method: str = "cash",
    reference_no: Optional[str] = None,
    payment_date: Optional[date] = None,
    description: Optional[str] = "",
    user_id: Optional[int] = None,
    order: Optional[str] = None,
) -> MedicineVendorPayment:
    amt = money2(require_non_negative(amount, "amount"))
    if amt <= ZERO:
        raise ValidationError("invalid_amount", "Payment amount must be greater than 0",
                              field="amount", value=str(amt), limit="0.01")

    vendor = lock_one(db, MedicineVendor, vendor_id, "Vendor")
    _check_within_balance(vendor, amt, "Payment")

    if transaction_ids:
        txns = _selected_transactions(db, vendor, transaction_ids)
    else:
        txns = pending_transactions(db, vendor.id, lock=True)

    payment, allocations = _settle(
        db, vendor, amt, txns, order,
        payment_method=payment_method or "cash",
        reference_no=reference_no,
        pay_date=payment_date or today_local(),
        description=description or "",
        user_id=user_id,
    )
    db.flush()

    logger.info(
        "vendor payment %s vendor=%s amount=%s allocations=%s balance=%s",
        payment.payment_no, vendor.id, amt,
        [(a.transaction_id, str(a.amount)) for a in allocations],
        vendor.current_balance,
    )
    return payment


def record_upfront_payment(
    db: Session,
    vendor: MedicineVendor,
    txn: MedicineVendorTransaction,
    amount: Any,
    *,
    payment_method: Optional[str],
    pay_date: date,
    user_id: Optional[int],
) -> MedicineVendorPayment:
    """
    Payment handed over at purchase time. The transaction already carries the
    paid amount, so only the payment and its allocation are written.
    """
    amt = money2(amount)
    payment = MedicineVendorPayment(
        payment_no=next_document_number(db, "VP", pay_date),
        vendor_id=vendor.id,
        amount=amt,
        payment_method=payment_method or "cash",
        payment_date=pay_date,
        description=f"Payment for {txn.transaction_no}",
        created_by=user_id,
    )
    payment.allocations.append(VendorPaymentAllocation(transaction_id=txn.id, amount=amt))
    db.add(payment)
    return payment


def _due_transaction(
    db: Session,
    vendor: MedicineVendor,
    txn_type: VendorTxnType,
    amount: Decimal,
    description: str,
    txn_date: date,
    user_id: Optional[int],
) -> MedicineVendorTransaction:
    """An amount owed that did not come from a purchase; due at once."""
    txn = MedicineVendorTransaction(
        transaction_no=next_document_number(db, "VT", txn_date),
        vendor_id=vendor.id,
        type=txn_type.value,
        amount=amount,
        paid_amount=ZERO,
        due_amount=amount,
        payment_status=payment_status(amount, ZERO),
        description=description,
        transaction_date=txn_date,
        due_date=txn_date,
        created_by=user_id,
    )
    db.add(txn)
    return txn


def create_vendor(db: Session, data: Dict[str, Any], user_id: Optional[int] = None) -> MedicineVendor:
    """New vendor; a positive opening balance becomes an 'opening' transaction payments can settle."""
    opening = money2(require_non_negative(data.get("opening_balance"), "opening_balance"))
    vendor = MedicineVendor(**{**data, "opening_balance": opening}, current_balance=opening)
    db.add(vendor)
    db.flush()

    if opening > ZERO:
        _due_transaction(
            db, vendor, VendorTxnType.OPENING, opening,
            "Opening balance", today_local(), user_id,
        )
        db.flush()

    logger.info("vendor %s created, opening balance %s", vendor.id, opening)
    return vendor


def adjust_balance(
    db: Session,
    vendor_id: int,
    adjustment_type: str,
    amount: Any,
    reason: str,
    user_id: Optional[int] = None,
) -> MedicineVendorTransaction:
    """
    increase -> a new 'adjustment' transaction with the whole amount due
    decrease -> written off the outstanding dues oldest first, recorded as a
                payment with method 'adjustment'; can't exceed the balance
    """
    amt = money2(require_non_negative(amount, "amount"))
    if amt <= ZERO:
        raise ValidationError("invalid_amount", "Adjustment amount must be greater than 0",
                              field="amount", value=str(amt), limit="0.01")
    if adjustment_type not in ("increase", "decrease"):
        raise ValidationError("invalid_adjustment_type", "Adjustment must be 'increase' or 'decrease'",
                              field="adjustment_type", value=adjustment_type)

    vendor = lock_one(db, MedicineVendor, vendor_id, "Vendor")
    old_balance = money2(vendor.current_balance)
    today = today_local()
    description = f"Balance {adjustment_type}: {reason}"

    if adjustment_type == "increase":
        txn = _due_transaction(db, vendor, VendorTxnType.ADJUSTMENT, amt, description, today, user_id)
        vendor.current_balance = money2(old_balance + amt)
    else:
        _check_within_balance(vendor, amt, "Decrease")
        _settle(
            db, vendor, amt, pending_transactions(db, vendor.id, lock=True), OLDEST_DUE_FIRST,
            payment_method="adjustment",
            reference_no=None,
            pay_date=today,
            description=description,
            user_id=user_id,
        )
        txn = MedicineVendorTransaction(
            transaction_no=next_document_number(db, "VT", today),
            vendor_id=vendor.id,
            type=VendorTxnType.ADJUSTMENT.value,
            amount=amt,
            paid_amount=ZERO,
            due_amount=ZERO,
            payment_status=PAID,
            description=description,
            transaction_date=today,
            created_by=user_id,
        )
        db.add(txn)
    db.flush()

    logger.info("vendor %s balance %s by %s: %s -> %s (%s)",
                vendor.id, adjustment_type, amt, old_balance, vendor.current_balance, reason)
    return txn


def vendor_due_summary(db: Session, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or today_local()
    near_limit = today + timedelta(days=settings.NEAR_DUE_DAYS)

    vendors = (
        db.query(MedicineVendor)
        .filter(MedicineVendor.is_active.is_(True))
        .order_by(MedicineVendor.name.asc())
        .all()
    )
    open_txns = (
        db.query(MedicineVendorTransaction)
        .filter(MedicineVendorTransaction.due_amount > 0)
        .all()
    )

    per_vendor: Dict[int, Dict[str, Any]] = {}
    for t in open_txns:
        row = per_vendor.setdefault(t.vendor_id, {"overdue": ZERO, "near": ZERO, "count": 0})
        due = D(t.due_amount)
        row["count"] += 1
        if t.due_date and t.due_date < today:
            row["overdue"] += due
        elif t.due_date and t.due_date <= near_limit:
            row["near"] += due

    rows: List[Dict[str, Any]] = []
    total = overdue = near = ZERO
    for v in vendors:
        bal = money2(v.current_balance)
        agg = per_vendor.get(v.id, {"overdue": ZERO, "near": ZERO, "count": 0})
        if bal <= ZERO and agg["count"] == 0:
            continue
        total += bal
        overdue += agg["overdue"]
        near += agg["near"]
        rows.append({
            "vendor_id": v.id,
            "name": v.name,
            "current_balance": bal,
            "credit_limit": money2(v.credit_limit),
            "credit_utilization": credit_utilization(bal, v.credit_limit),
            "overdue_amount": money2(agg["overdue"]),
            "near_due_amount": money2(agg["near"]),
            "pending_transactions": agg["count"],
        })

    return {
        "total_dues": money2(total),
        "overdue_amount": money2(overdue),
        "near_due_amount": money2(near),
        "vendor_count": sum(1 for r in rows if r["current_balance"] > ZERO),
        "vendors": rows,
    }


def total_vendor_due(vendors: Iterable[MedicineVendor]) -> Decimal:
    return money2(sum((D(v.current_balance) for v in vendors), ZERO))

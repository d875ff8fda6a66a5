# medicine_corner/services/money.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from medicine_corner.core.errors import ValidationError

ZERO = Decimal("0")
Q2 = Decimal("0.01")
Q6 = Decimal("0.000001")

PAID = "paid"
PARTIAL = "partial"
PENDING = "pending"


def D(x: Any, field: Optional[str] = None) -> Decimal:
    """
    Parse user/db input into Decimal.
    None / "" -> 0. Garbage -> ValidationError (never silently 0).
    """
    if x is None or x == "":
        return ZERO
    if isinstance(x, Decimal):
        return x
    try:
        v = Decimal(str(x).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("invalid_number", f"{field or 'value'} is not a number",
                              field=field, value=str(x))
    if not v.is_finite():
        raise ValidationError("invalid_number", f"{field or 'value'} is not a number",
                              field=field, value=str(x))
    return v


def money2(x: Any) -> Decimal:
    return D(x).quantize(Q2, rounding=ROUND_HALF_UP)


def cost6(x: Any) -> Decimal:
    return D(x).quantize(Q6, rounding=ROUND_HALF_UP)


def non_negative(x: Any) -> Decimal:
    v = D(x)
    return v if v > ZERO else ZERO


def clamp(x: Any, low: Any, high: Any) -> Decimal:
    v, lo, hi = D(x), D(low), D(high)
    if v < lo:
        return lo
    if v > hi:
        return hi
    return v


def payment_status(due_amount: Any, paid_amount: Any) -> str:
    """paid iff nothing due; pending iff nothing paid; else partial."""
    if D(due_amount) <= ZERO:
        return PAID
    if D(paid_amount) <= ZERO:
        return PENDING
    return PARTIAL


def require_positive_quantity(q: Any, field: str = "quantity") -> int:
    dq = D(q, field)
    if dq != dq.to_integral_value():
        raise ValidationError("invalid_quantity", f"{field} must be a whole number",
                              field=field, value=str(q))
    if dq <= ZERO:
        raise ValidationError("invalid_quantity", f"{field} must be greater than 0",
                              field=field, value=str(q), limit=1)
    return int(dq)


def require_non_negative(x: Any, field: str) -> Decimal:
    v = D(x, field)
    if v < ZERO:
        raise ValidationError("negative_amount", f"{field} cannot be negative",
                              field=field, value=str(v), limit="0")
    return v

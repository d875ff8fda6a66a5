from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Optional, Set

from fastapi import HTTPException, status


def _code(x: Any) -> str:
    """
    Normalize permission code safely.
    Supports:
      - Enum -> enum.value
      - str  -> str
      - object with .code -> str
      - dict {"code": ...}
    """
    if x is None:
        return ""

    if isinstance(x, Enum):
        return str(x.value)

    if isinstance(x, str):
        return x

    if isinstance(x, dict) and "code" in x:
        return _code(x["code"])

    if hasattr(x, "code"):
        return _code(getattr(x, "code"))

    return str(x)


def is_admin_user(user: Any) -> bool:
    if not user:
        return False
    if bool(getattr(user, "is_admin", False)):
        return True

    role = getattr(user, "role", None)
    if isinstance(role, str) and role.upper() in {"ADMIN", "SUPER_ADMIN"}:
        return True

    return False


def iter_user_perm_codes(user: Any) -> Set[str]:
    out: Set[str] = set()
    if not user:
        return out

    for p in getattr(user, "permissions", None) or []:
        c = _code(p).strip()
        if c:
            out.add(c)

    return out


def has_perm(user: Any, code: str) -> bool:
    if is_admin_user(user):
        return True

    want = _code(code).strip()
    if not want:
        return False

    return want in iter_user_perm_codes(user)


def require_any(user: Any, required: Iterable[Any], *, message: Optional[str] = None) -> None:
    """
    Raise 403 if user doesn't have at least one permission from 'required'.
    """
    if is_admin_user(user):
        return

    required_set = {_code(x).strip() for x in required if _code(x).strip()}
    if not required_set:
        return

    if iter_user_perm_codes(user).intersection(required_set):
        return

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=message or "You do not have permission to perform this action.",
    )


# Permission groups used by the routers
P_MEDICINE_VIEW = ["medicine_corner.medicines.view", "medicine_corner.view"]
P_MEDICINE_MANAGE = ["medicine_corner.medicines.manage", "medicine_corner.manage"]
P_STOCK_VIEW = ["medicine_corner.stock.view", "medicine_corner.view"]
P_STOCK_MANAGE = ["medicine_corner.stock.manage", "medicine_corner.manage"]
P_SALE_VIEW = ["medicine_corner.sales.view", "medicine_corner.view"]
P_SALE_MANAGE = ["medicine_corner.sales.manage", "medicine_corner.sales.create", "medicine_corner.manage"]
P_VENDOR_VIEW = ["medicine_vendors.view", "medicine_corner.view"]
P_VENDOR_MANAGE = ["medicine_vendors.manage", "medicine_corner.manage"]
P_VENDOR_PAY = ["medicine_vendors.payments.create", "medicine_vendors.manage"]
P_REPORT_VIEW = ["medicine_corner.reports.view", "medicine_corner.view"]
P_ACCOUNT_VIEW = ["medicine_account.view", "medicine_corner.reports.view"]
P_ACCOUNT_MANAGE = ["medicine_account.manage", "medicine_corner.manage"]

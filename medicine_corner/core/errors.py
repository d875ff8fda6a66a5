# medicine_corner/core/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional


class MedicineCornerError(RuntimeError):
    """
    Base for business-rule failures raised by the services.

    Carries enough context for the caller to build a user-facing message:
      code  -> stable machine code, e.g. "exceeds_balance"
      field -> offending input field
      value -> offending value
      limit -> the bound that was violated (if any)
    """
    status_code = 400

    def __init__(
        self,
        code: str,
        message: Optional[str] = None,
        *,
        field: Optional[str] = None,
        value: Any = None,
        limit: Any = None,
    ) -> None:
        self.code = code
        self.field = field
        self.value = value
        self.limit = limit
        super().__init__(message or code)

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else self.code

    def details(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.field is not None:
            out["field"] = self.field
        if self.value is not None:
            out["value"] = self.value
        if self.limit is not None:
            out["limit"] = self.limit
        return out


class ValidationError(MedicineCornerError):
    pass


class DivisionByZero(ValidationError):
    pass


class NotFound(MedicineCornerError):
    status_code = 404


class ConcurrencyConflict(MedicineCornerError):
    status_code = 409

# FILE: medicine_corner/api/response.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from medicine_corner.core.errors import MedicineCornerError


def ok(
    data: Any = None,
    *,
    meta: Optional[Dict[str, Any]] = None,
    status_code: int = 200,
) -> JSONResponse:
    """
    {"ok": true, "data": ..., "meta": {...}}
    Decimals and dates go through jsonable_encoder (Decimal -> number).
    """
    payload: Dict[str, Any] = {"ok": True, "data": data}
    if meta is not None:
        payload["meta"] = meta
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def ok_rows(
    rows: Sequence[Any],
    schema: type[BaseModel],
    *,
    total: Optional[int] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> JSONResponse:
    data: List[Dict[str, Any]] = [schema.model_validate(r).model_dump() for r in rows]
    meta: Dict[str, Any] = {"count": len(data)}
    if total is not None:
        meta.update({"total": total, "limit": limit, "offset": offset})
    return ok(data, meta=meta)


def err(
    msg: str = "Something went wrong",
    *,
    status_code: int = 400,
    code: Optional[str] = None,
    details: Any = None,
) -> JSONResponse:
    """
    {"ok": false, "error": {"msg": "...", "code": "...", "details": ...}}
    """
    payload: Dict[str, Any] = {
        "ok": False,
        "error": {
            "msg": msg,
            "code": code,
            "details": details,
        },
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def err_from(exc: MedicineCornerError) -> JSONResponse:
    return err(
        msg=exc.message,
        status_code=exc.status_code,
        code=exc.code,
        details=exc.details() or None,
    )

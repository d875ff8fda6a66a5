# FILE: medicine_corner/api/exception_handlers.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from medicine_corner.api.response import err, err_from
from medicine_corner.core.errors import MedicineCornerError
from medicine_corner.db.session import SessionLocal
from medicine_corner.services.error_logger import format_exception, log_error

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MedicineCornerError)
    async def business_error_handler(request: Request, exc: MedicineCornerError) -> JSONResponse:
        return err_from(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # exc.detail can be str/dict/list
        msg = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return err(msg=msg, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return err(
            msg="Validation error",
            status_code=422,
            code="request_validation",
            details=[
                {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
                for e in exc.errors()
            ],
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)

        tb = exc.__traceback__
        while tb is not None and tb.tb_next is not None:
            tb = tb.tb_next
        frame = tb.tb_frame if tb is not None else None

        db = SessionLocal()
        try:
            log_error(
                db,
                description=str(exc),
                endpoint=f"{request.method} {request.url.path}",
                module=frame.f_globals.get("__name__") if frame else None,
                function=frame.f_code.co_name if frame else None,
                http_status=500,
                request_payload=dict(request.query_params) or None,
                stack_trace=format_exception(exc),
            )
        finally:
            db.close()

        return err(msg="Internal server error", status_code=500, code="internal_error")

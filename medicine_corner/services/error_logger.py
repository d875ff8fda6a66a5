# medicine_corner/services/error_logger.py
import logging
import traceback
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medicine_corner.models.error_log import ErrorLog

logger = logging.getLogger(__name__)


def log_error(
    db: Session,
    *,
    description: Optional[str] = None,
    endpoint: Optional[str] = None,
    module: Optional[str] = None,
    function: Optional[str] = None,
    http_status: Optional[int] = None,
    user_id: Optional[int] = None,
    request_payload: Optional[Dict[str, Any]] = None,
    stack_trace: Optional[str] = None,
) -> None:
    """
    Persist an unhandled error into medicine_error_logs.
    Uses its own session; a failing insert is logged, never raised.
    """
    try:
        db.add(ErrorLog(
            description=(description or "")[:1000],
            endpoint=endpoint,
            module=module,
            function=function,
            http_status=http_status,
            user_id=user_id,
            request_payload=request_payload,
            stack_trace=stack_trace,
        ))
        db.commit()
    except SQLAlchemyError:
        # last resort: never raise from the error logger
        db.rollback()
        logger.exception("Failed to persist error log")


def format_exception(exc: BaseException) -> str:
    return "".join(
        traceback.format_exception(type(exc), exc, exc.__traceback__))

from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    JSON,
)

from medicine_corner.db.base import Base


class ErrorLog(Base):
    """
    Persisted record of unhandled backend exceptions.
    """
    __tablename__ = "medicine_error_logs"

    id = Column(Integer, primary_key=True, index=True)

    description = Column(String(1000), nullable=True)

    # where it happened
    endpoint = Column(String(255), nullable=True)  # e.g. "POST /api/medicine-corner/sales"
    module = Column(String(255), nullable=True)
    function = Column(String(255), nullable=True)

    http_status = Column(Integer, nullable=True)
    user_id = Column(Integer, nullable=True)

    request_payload = Column(JSON, nullable=True)

    stack_trace = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

# medicine_corner/models/number_series.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint

from medicine_corner.db.base import Base


class DocumentNumberSeries(Base):
    __tablename__ = "medicine_number_series"
    __table_args__ = (
        UniqueConstraint("key", "date_key", name="uq_medicine_number_series_key_date"),
    )

    id = Column(Integer, primary_key=True)
    key = Column(String(30), nullable=False)         # VT / VP / MS / AUTO
    date_key = Column(Integer, nullable=False)      # YYYYMMDD
    next_seq = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

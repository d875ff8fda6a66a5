# FILE: medicine_corner/services/number_series.py
from __future__ import annotations

import secrets
from datetime import date

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from medicine_corner.core.errors import ConcurrencyConflict
from medicine_corner.models.number_series import DocumentNumberSeries


def _date_key(d: date) -> int:
    return int(d.strftime("%Y%m%d"))


def next_document_number(
    db: Session,
    prefix: str,       # "VT", "VP", "MS"
    doc_date: date,
    pad: int = 4,      # 0001, 0002...
) -> str:
    """
    Concurrency-safe per-day counter (UNIQUE(key, date_key), row locked FOR UPDATE).

    Example: VT-251018-0001
    """
    dk = _date_key(doc_date)

    row = (
        db.query(DocumentNumberSeries)
        .filter(DocumentNumberSeries.key == prefix, DocumentNumberSeries.date_key == dk)
        .with_for_update()
        .first()
    )

    if not row:
        # Two writers may race on the first number of the day; the loser retries.
        row = DocumentNumberSeries(key=prefix, date_key=dk, next_seq=1)
        db.add(row)
        try:
            db.flush()
        except IntegrityError as e:
            raise ConcurrencyConflict(
                "number_series_conflict",
                f"{prefix} number series was taken by another user. Try again.",
            ) from e

    seq = int(row.next_seq or 1)
    row.next_seq = seq + 1
    db.flush()

    return f"{prefix}-{doc_date.strftime('%y%m%d')}-{seq:0{pad}d}"


def auto_batch_number(doc_date: date) -> str:
    return f"AUTO-{doc_date.strftime('%Y%m%d')}-{secrets.token_hex(3).upper()}"

# FILE: medicine_corner/services/locking.py
"""
Row locks for the write paths.

Lock order, shared by every operation that takes more than one:
    vendor(s) -> vendor transactions -> stock batches -> medicine(s)
    -> medicine account
each group in ascending id.
"""
from __future__ import annotations

from typing import Type, TypeVar

from sqlalchemy.orm import Session

from medicine_corner.core.errors import NotFound

T = TypeVar("T")


def lock_one(db: Session, model: Type[T], pk: int, label: str) -> T:
    """SELECT ... FOR UPDATE by primary key, NotFound when missing."""
    row = (
        db.query(model)
        .filter(model.id == pk)
        .with_for_update()
        .first()
    )
    if not row:
        raise NotFound(f"{label.lower()}_not_found", f"{label} not found",
                       field=f"{label.lower()}_id", value=pk)
    return row


def peek_column(db: Session, column, pk: int, label: str):
    """
    Plain read of one column by primary key, without loading the row into
    the session. Used to find out which parent rows to lock first.
    """
    model = column.class_
    value = db.query(column).filter(model.id == pk).scalar()
    if value is None:
        raise NotFound(f"{label.lower()}_not_found", f"{label} not found",
                       field=f"{label.lower()}_id", value=pk)
    return value

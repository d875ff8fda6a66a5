# medicine_corner/db/session.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from medicine_corner.core.config import settings
from medicine_corner.core.errors import ConcurrencyConflict

# MySQL: lock wait timeout, deadlock
LOCK_CONFLICT_ERRNOS = (1205, 1213)


def _engine_kwargs(db_uri: str) -> Dict[str, Any]:
    if db_uri.startswith("sqlite"):
        kw: Dict[str, Any] = {
            "connect_args": {"check_same_thread": False},
            "future": True,
        }
        # in-memory db must be shared by every session
        if db_uri in ("sqlite://", "sqlite:///:memory:"):
            kw["poolclass"] = StaticPool
        return kw

    return {
        "pool_pre_ping": True,
        "pool_recycle": 280,
        "pool_size": 10,
        "max_overflow": 20,
        "future": True,
    }


def make_engine(db_uri: str) -> Engine:
    return create_engine(db_uri, **_engine_kwargs(db_uri))


engine: Engine = make_engine(settings.SQLALCHEMY_DATABASE_URI)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)


def is_lock_conflict(exc: OperationalError) -> bool:
    args = getattr(exc.orig, "args", None) or ()
    return bool(args) and args[0] in LOCK_CONFLICT_ERRNOS


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    One business operation == one transaction.
    Commits on success, rolls back on any error.
    A stale version counter (lost update), a deadlock or a lock wait
    timeout surfaces as ConcurrencyConflict.
    """
    try:
        yield db
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise ConcurrencyConflict(
            "concurrent_update",
            "Record was modified by another user. Reload and try again.",
        ) from e
    except OperationalError as e:
        db.rollback()
        if is_lock_conflict(e):
            raise ConcurrencyConflict(
                "lock_conflict",
                "Record is being changed by another user. Try again.",
            ) from e
        raise
    except Exception:
        db.rollback()
        raise

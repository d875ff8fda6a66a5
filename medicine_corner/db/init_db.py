# medicine_corner/db/init_db.py
from __future__ import annotations

import argparse
import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from medicine_corner.db.base import Base
from medicine_corner.db.session import engine as default_engine

logger = logging.getLogger(__name__)


def init_db(engine: Engine = default_engine) -> None:
    """Create missing tables; safe to run multiple times."""
    Base.metadata.create_all(bind=engine)


def drop_db(engine: Engine = default_engine) -> None:
    Base.metadata.drop_all(bind=engine)


def main() -> None:
    parser = argparse.ArgumentParser(description="Medicine corner schema bootstrap")
    parser.add_argument("--drop", action="store_true", help="drop all tables first")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    if args.drop:
        drop_db()
        logger.info("Dropped medicine corner tables")

    init_db()
    names = sorted(inspect(default_engine).get_table_names())
    logger.info("Tables: %s", ", ".join(names))


if __name__ == "__main__":
    main()

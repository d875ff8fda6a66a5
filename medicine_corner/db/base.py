# medicine_corner/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All medicine corner tables inherit from this."""
    pass


# Import all models so metadata is complete for create_all()
from medicine_corner.models import (  # noqa: F401,E402
    medicine,
    medicine_stock,
    vendor,
    sale,
    number_series,
    error_log,
    account,
)

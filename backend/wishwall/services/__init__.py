"""Domain services: wish catalog, claim record engine, progress projection, batch import."""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from ..errors import StoreError
from ..extensions import db


def commit() -> None:
    """Commit the current unit of work, rolling back and raising StoreError on failure."""
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Database error, please retry") from exc

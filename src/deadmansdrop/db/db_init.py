"""Database initialization helpers."""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.engine import Engine

from .db_models import Base


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:  # pragma: no cover - driver hook
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite enforces ON DELETE CASCADE only with the pragma set per connection."""
    if engine.dialect.name == "sqlite" and not event.contains(
        engine, "connect", _enable_sqlite_foreign_keys
    ):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)


def init_db(engine: Engine) -> None:
    """Create tables on top of :func:`enable_sqlite_foreign_keys`."""
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)

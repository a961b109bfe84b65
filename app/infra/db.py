from __future__ import annotations

import logging
import os

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import create_engine

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "postgresql+psycopg://assets:assets@db:5432/asset_lifecycle",
)
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"


def _enable_sqlite_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
    cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str = DATABASE_URL) -> Engine:
    """Create the engine for ``database_url``.

    SQLite is accepted for local runs; foreign keys are switched on per
    connection since SQLite leaves them off by default.
    """
    if database_url.startswith("sqlite"):
        sqlite_engine = create_engine(
            database_url,
            echo=DB_ECHO,
            connect_args={"check_same_thread": False},
        )
        event.listen(sqlite_engine, "connect", _enable_sqlite_foreign_keys)
        return sqlite_engine
    return create_engine(database_url, echo=DB_ECHO, pool_pre_ping=True)


engine = build_engine()


def get_engine() -> Engine:
    return engine


def check_db_ready() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("database readiness check failed", exc_info=True)
        return False
    return True

"""Engine construction and schema initialization for the staging and durable stores."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from emlvault.utils.error_handling import StoreInitError, format_database_error

from .models import Base

STAGING_URL = "sqlite://"

SHARED_PRAGMAS = (
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
    "PRAGMA cache_size = 5000",
)


def _install_pragmas(engine: Engine, *, durable: bool) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        try:
            if durable:
                cursor.execute("PRAGMA journal_mode = WAL")
            for pragma in SHARED_PRAGMAS:
                cursor.execute(pragma)
        finally:
            cursor.close()


def _validate_database_path(db_path: Path) -> tuple[bool, Optional[str]]:
    """Validate that the durable database file can be created and written.

    Returns:
        Tuple of (is_accessible, error_message)
    """
    db_dir = db_path.parent
    if db_path.exists() and db_path.is_dir():
        return False, f"Database path is a directory: {db_path}"

    if db_dir.exists():
        if not os.access(db_dir, os.W_OK):
            return False, f"Database directory is not writable: {db_dir}"
    else:
        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return False, f"Cannot create database directory: {exc}"

    if db_path.exists() and not os.access(db_path, os.R_OK | os.W_OK):
        return False, f"Database file is not readable and writable: {db_path}"

    return True, None


def create_staging_engine() -> Engine:
    """In-memory SQLite engine pinned to one connection shared across threads."""
    engine = create_engine(
        STAGING_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    _install_pragmas(engine, durable=False)
    return engine


def create_durable_engine(db_path: Path) -> Engine:
    """On-disk SQLite engine for the final copy-out.

    Raises:
        StoreInitError: If the database file cannot be created or opened
    """
    db_path = Path(db_path).resolve()
    is_accessible, error_msg = _validate_database_path(db_path)
    if not is_accessible:
        raise StoreInitError(error_msg or f"Database is not accessible: {db_path}")

    engine = create_engine(f"sqlite:///{db_path.as_posix()}", echo=False, future=True)
    _install_pragmas(engine, durable=True)
    return engine


def init_schema(engine: Engine) -> None:
    """Create the ``emails`` table if it does not exist yet.

    Raises:
        StoreInitError: If the schema cannot be created
    """
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as exc:
        raise StoreInitError(format_database_error(exc, "schema initialization")) from exc

"""Staging (in-memory) and durable (on-disk) stores for indexed messages."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import func, insert, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from emlvault.parsers.models import EmailRecord
from emlvault.utils.error_handling import StoreInitError, StoreWriteError, format_database_error
from emlvault.utils.log_service import LogService

from .init_db import create_durable_engine, create_staging_engine, init_schema
from .models import COPY_COLUMNS, EmailRow


def record_params(record: EmailRecord) -> Dict[str, Any]:
    """Bind one record by column name; empty attachment lists become NULL."""
    return {
        "file_name": record.file_name,
        "file_size": record.file_size,
        "file_hash": record.file_hash,
        "has_attachments": 1 if record.has_attachments else 0,
        "sender": record.sender,
        "recipients": record.recipients,
        "subject": record.subject,
        "creation_time": record.creation_time_text,
        "attachment_names": record.attachment_names or None,
        "attachment_sizes": record.attachment_sizes or None,
    }


def _count_rows(connection: Connection) -> int:
    return connection.execute(select(func.count()).select_from(EmailRow)).scalar_one()


class StagingStore:
    """Resident store shared by every worker.

    All access goes through one connection guarded by a lock, so at most one
    transaction is ever open against it.
    """

    def __init__(self, log: LogService, engine: Optional[Engine] = None) -> None:
        self._log = log
        self._engine = engine or create_staging_engine()
        init_schema(self._engine)
        try:
            self._connection = self._engine.connect()
        except SQLAlchemyError as exc:
            raise StoreInitError(format_database_error(exc, "open staging store")) from exc
        self._lock = threading.Lock()
        self._commit_count = 0

    @property
    def commit_count(self) -> int:
        """Number of batches committed so far."""
        with self._lock:
            return self._commit_count

    def bulk_insert(self, records: Sequence[EmailRecord]) -> int:
        """Insert ``records`` in a single transaction.

        Raises:
            StoreWriteError: If any row fails; nothing from the batch is kept
        """
        if not records:
            return 0
        params = [record_params(record) for record in records]
        with self._lock:
            try:
                with self._connection.begin():
                    self._connection.execute(insert(EmailRow), params)
            except Exception as exc:
                message = format_database_error(exc, "bulk insert")
                raise StoreWriteError(f"Bulk insert failed: {message}") from exc
            self._commit_count += 1
        return len(params)

    def count(self) -> int:
        with self._lock:
            with self._connection.begin():
                return _count_rows(self._connection)

    def iter_chunks(self, chunk_size: int) -> Iterator[List[Dict[str, Any]]]:
        """Stream every staged row, ``chunk_size`` rows at a time."""
        with self._lock:
            with self._connection.begin():
                result = self._connection.execute(select(*COPY_COLUMNS).order_by(EmailRow.id))
                for partition in result.mappings().partitions(chunk_size):
                    yield [dict(row) for row in partition]

    def close(self) -> None:
        self._connection.close()
        self._engine.dispose()

    def __enter__(self) -> "StagingStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class DurableStore:
    """On-disk store written exactly once, by the coordinator, at end of run."""

    def __init__(self, db_path: Path, log: LogService) -> None:
        self.db_path = Path(db_path).resolve()
        self._log = log
        self._engine = create_durable_engine(self.db_path)
        init_schema(self._engine)
        self._written = False

    def copy_from(self, staging: StagingStore, chunk_size: int = 1000) -> int:
        """Copy every staged row in one transaction and return the row count.

        Raises:
            StoreWriteError: If the copy fails; the durable store is left untouched
        """
        if self._written:
            raise StoreWriteError(f"Durable store {self.db_path} has already been written for this run")
        self._written = True

        copied = 0
        try:
            with self._engine.begin() as connection:
                for chunk in staging.iter_chunks(chunk_size):
                    connection.execute(insert(EmailRow), chunk)
                    copied += len(chunk)
        except Exception as exc:
            message = format_database_error(exc, "copy to durable store")
            raise StoreWriteError(f"Saving to {self.db_path.name} failed: {message}") from exc

        self._log.debug("Copied {} row(s) into {}", copied, self.db_path)
        return copied

    def count(self) -> int:
        with self._engine.connect() as connection:
            return _count_rows(connection)

    def close(self) -> None:
        self._engine.dispose()

    def __enter__(self) -> "DurableStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

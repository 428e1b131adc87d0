from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Iterator, List

import pytest
from loguru import logger

from emlvault.config import IngestConfig
from emlvault.db.stores import DurableStore, StagingStore
from emlvault.utils.log_service import LogService, register_levels
from scripts import create_dataset


@pytest.fixture()
def temp_config() -> IngestConfig:
    return IngestConfig(
        batch_size=50,
        queue_capacity=16,
        worker_count=2,
        file_extension=".eml",
        log_level="DEBUG",
        copy_chunk_size=25,
    )


@pytest.fixture()
def log_records() -> Iterator[List[Dict]]:
    """Capture every loguru record emitted while the test runs."""
    register_levels()
    records: List[Dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG", format="{message}")
    try:
        yield records
    finally:
        logger.remove(handler_id)


@pytest.fixture()
def log_service(log_records) -> LogService:
    return LogService("test")


@pytest.fixture()
def staging_store(log_service: LogService) -> Iterator[StagingStore]:
    store = StagingStore(log_service.child("staging"))
    try:
        yield store
    finally:
        store.close()


@pytest.fixture()
def durable_store(tmp_path: Path, log_service: LogService) -> Iterator[DurableStore]:
    store = DurableStore(tmp_path / "out" / "emails.db", log_service.child("durable"))
    try:
        yield store
    finally:
        store.close()


@pytest.fixture()
def source_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "archive"
    directory.mkdir()
    return directory


@pytest.fixture()
def write_message(source_dir: Path) -> Callable[..., Path]:
    """Write raw header lines (plus an optional body) as a message file."""

    def _write(name: str, *headers: str, body: str = "Body text.\n") -> Path:
        path = source_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        raw = "".join(f"{header}\r\n" for header in headers) + "\r\n" + body
        path.write_bytes(raw.encode("utf-8"))
        return path

    return _write


@pytest.fixture(scope="session")
def generated_dataset(tmp_path_factory) -> Path:
    root = tmp_path_factory.mktemp("dataset")
    create_dataset(root, email_count=80, seed=314152, corrupt_count=3)
    return root


def messages_at(records: List[Dict], level: str) -> List[str]:
    return [record["message"] for record in records if record["level"].name == level]

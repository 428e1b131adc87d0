"""Configuration utilities for the emlvault ingestion tool."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from loguru import logger

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_BATCH_SIZE = 500
DEFAULT_QUEUE_CAPACITY = 1000
DEFAULT_COPY_CHUNK_SIZE = 1000
DEFAULT_FILE_EXTENSION = ".eml"


def _default_worker_count() -> int:
    return os.cpu_count() or 1


@dataclass(slots=True)
class IngestConfig:
    batch_size: int = DEFAULT_BATCH_SIZE
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY
    worker_count: int = field(default_factory=_default_worker_count)
    file_extension: str = DEFAULT_FILE_EXTENSION
    log_level: str = "INFO"
    copy_chunk_size: int = DEFAULT_COPY_CHUNK_SIZE


def _positive_int_from_env(name: str, default: int) -> int:
    """Read a positive integer from the environment, falling back to ``default``."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring {}={!r}: not an integer, using {}", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring {}={}: must be positive, using {}", name, value, default)
        return default
    return value


def _normalize_extension(value: str) -> str:
    value = value.strip().lower()
    if not value:
        return DEFAULT_FILE_EXTENSION
    return value if value.startswith(".") else f".{value}"


def load_config(env_file: Optional[Path] = None) -> IngestConfig:
    if env_file is None:
        env_file = PROJECT_ROOT / ".env"

    load_dotenv(dotenv_path=env_file, override=False)

    return IngestConfig(
        batch_size=_positive_int_from_env("EMLVAULT_BATCH_SIZE", DEFAULT_BATCH_SIZE),
        queue_capacity=_positive_int_from_env("EMLVAULT_QUEUE_CAPACITY", DEFAULT_QUEUE_CAPACITY),
        worker_count=_positive_int_from_env("EMLVAULT_WORKERS", _default_worker_count()),
        file_extension=_normalize_extension(os.getenv("EMLVAULT_FILE_EXTENSION", DEFAULT_FILE_EXTENSION)),
        log_level=os.getenv("EMLVAULT_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        copy_chunk_size=_positive_int_from_env("EMLVAULT_COPY_CHUNK_SIZE", DEFAULT_COPY_CHUNK_SIZE),
    )

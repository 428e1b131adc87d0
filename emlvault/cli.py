"""Command line entry point: ``emlvault <source_directory> <database_path>``."""

from __future__ import annotations

import argparse
import sys
import time
from datetime import timedelta
from pathlib import Path
from typing import Optional, Sequence

from emlvault.config import IngestConfig, load_config
from emlvault.services.ingestion import IngestionResult, ingest_directory
from emlvault.utils.error_handling import (
    EXIT_ABORTED,
    EXIT_FAILURE,
    EXIT_OK,
    EXIT_USAGE,
    ArgumentError,
    IngestionAborted,
    describe_failure,
    install_exception_hook,
)
from emlvault.utils.log_service import LogService, configure_logging, shutdown_logging

USAGE = "Usage: emlvault <source_directory> <database_path>"
EXAMPLE = "Example: emlvault ./archive/emails ./data/emails.db"


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise ArgumentError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="emlvault",
        description="Index a directory tree of .eml files into a SQLite database.",
    )
    parser.add_argument("source_directory", type=Path, help="Directory scanned recursively for message files.")
    parser.add_argument("database_path", type=Path, help="SQLite database file to create or append to.")
    return parser


def validate_arguments(source_dir: Path, db_path: Path) -> tuple[bool, Optional[str]]:
    """Validate the resolved command line paths.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not source_dir.is_dir():
        return False, f"Source directory not found: {source_dir}"
    if db_path.is_dir():
        return False, f"Database path is a directory: {db_path}"
    return True, None


def _format_duration(seconds: float) -> str:
    return str(timedelta(seconds=int(seconds)))


def log_summary(result: IngestionResult, elapsed_seconds: float, log: LogService) -> None:
    megabytes = result.bytes_processed / 1024 / 1024
    hours = elapsed_seconds / 3600
    average = megabytes / hours if hours > 0 else 0.0

    log.info("Processing Summary".ljust(40, "-"))
    log.info("{:<20} {}", "Total Duration:", _format_duration(elapsed_seconds))
    log.info("{:<20} {:,}", "Files Processed:", result.files_processed)
    log.info("{:<20} {:,}", "Files Skipped:", result.files_failed)
    log.info("{:<20} {:,.2f} MB", "Data Throughput:", megabytes)
    log.info("{:<20} {:,.1f} MB/hour", "Average Speed:", average)
    log.info("-" * 40)


def run(argv: Optional[Sequence[str]], log: LogService, config: Optional[IngestConfig] = None) -> int:
    """Run one ingestion and map its outcome to a process exit code."""
    started = time.perf_counter()
    try:
        args = build_parser().parse_args(argv)
    except ArgumentError as exc:
        log.error("Invalid arguments: {}", exc)
        log.error(USAGE)
        log.error(EXAMPLE)
        return EXIT_USAGE

    source_dir = args.source_directory.resolve()
    db_path = args.database_path.resolve()
    is_valid, error_msg = validate_arguments(source_dir, db_path)
    if not is_valid:
        log.error(error_msg)
        return EXIT_USAGE

    try:
        result = ingest_directory(source_dir, db_path, log, config=config or load_config())
    except IngestionAborted as exc:
        describe_failure(exc, log)
        return EXIT_ABORTED
    except Exception as exc:  # noqa: BLE001
        describe_failure(exc, log)
        return EXIT_FAILURE

    log_summary(result, time.perf_counter() - started, log)
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    config = load_config()
    log = configure_logging(config.log_level)
    install_exception_hook(log)
    log.debug("Logger initialized in {} mode", "Interactive" if sys.stdin and sys.stdin.isatty() else "Service")
    try:
        return run(argv, log, config)
    finally:
        shutdown_logging()


if __name__ == "__main__":
    sys.exit(main())

"""Error types and user-facing error formatting for emlvault."""

from __future__ import annotations

import os
import sys
import threading
import traceback
from typing import Callable, Optional, Sequence

from sqlalchemy.exc import DatabaseError, IntegrityError, OperationalError, SQLAlchemyError

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_ABORTED = 3
EXIT_FAILURE = 4
EXIT_UNHANDLED = 5


class EmlVaultError(Exception):
    """Base exception for emlvault errors."""
    pass


class ArgumentError(EmlVaultError):
    """Raised when command line arguments are missing or invalid."""
    pass


class StoreInitError(EmlVaultError):
    """Raised when a store cannot be opened or its schema created."""
    pass


class StoreWriteError(EmlVaultError):
    """Raised when a store transaction fails and is rolled back."""
    pass


class MessageParseError(EmlVaultError):
    """Raised when a message file cannot be parsed at all."""
    pass


class IngestionAborted(EmlVaultError):
    """Wraps every failure that escaped a pipeline worker."""

    def __init__(self, message: str, errors: Sequence[BaseException]) -> None:
        super().__init__(message)
        self.errors = list(errors)

    def __str__(self) -> str:
        base = super().__str__()
        if not self.errors:
            return base
        return f"{base} ({len(self.errors)} error(s))"


def format_database_error(exc: Exception, operation: str = "database operation") -> str:
    """Convert database exceptions to user-friendly error messages.

    Args:
        exc: The exception that occurred
        operation: Description of the operation that failed

    Returns:
        User-friendly error message
    """
    exc_str = str(exc)
    lowered = exc_str.lower()

    if isinstance(exc, IntegrityError):
        if "not null constraint" in lowered:
            return f"Required field is missing during {operation}."
        return f"Data integrity error during {operation}. The operation could not be completed due to data constraints."

    if isinstance(exc, OperationalError):
        if "database is locked" in lowered:
            return "Database is currently locked. Another process may be using it."
        if "no such table" in lowered:
            return "Database table not found. The database schema may need to be initialized."
        if "unable to open database" in lowered:
            return "Cannot access database file. Check file permissions and that the directory exists."
        if "disk i/o error" in lowered or "database or disk is full" in lowered:
            return "Database file access error. Check disk space and file permissions."
        return f"Database operation failed during {operation}: {exc_str[:200]}"

    if isinstance(exc, (DatabaseError, SQLAlchemyError)):
        return f"Database error during {operation}: {exc_str[:200]}"

    if isinstance(exc, PermissionError):
        return f"Permission denied during {operation}. Check file permissions."
    if isinstance(exc, OSError):
        if "no space left" in lowered:
            return "Disk is full. Free up space and try again."
        return f"System error during {operation}: {exc_str[:200]}"

    return f"An error occurred during {operation}: {exc_str[:200]}"


def describe_failure(exc: BaseException, log) -> None:
    """Log a fatal run failure, including every inner error of an aborted run."""
    log.error("Fatal Error".ljust(40, "-"))
    log.error("Message: {}", exc)
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    log.debug("Type: {}\nStackTrace:\n{}", type(exc).__name__, stack)

    if isinstance(exc, IngestionAborted):
        for inner in exc.errors:
            log.error("Inner Exception: {}", inner)


def install_exception_hook(log, exit_func: Optional[Callable[[int], None]] = None) -> None:
    """Log anything escaping the main thread and terminate with exit code 5.

    Exceptions escaping a bare thread are logged but do not terminate the
    process; pipeline threads report their failures through futures instead.
    """
    terminate = exit_func or os._exit

    def _handle(exc_type, exc_value, exc_tb) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        log.opt(exception=(exc_type, exc_value, exc_tb)).critical("CRITICAL ERROR: {}", exc_value)
        log.complete()
        terminate(EXIT_UNHANDLED)

    def _thread_handle(args: threading.ExceptHookArgs) -> None:
        if args.exc_type is SystemExit:
            return
        log.opt(exception=(args.exc_type, args.exc_value, args.exc_traceback)).critical(
            "CRITICAL ERROR in thread {}: {}", getattr(args.thread, "name", "?"), args.exc_value
        )

    sys.excepthook = _handle
    threading.excepthook = _thread_handle

"""Loguru configuration and the typed log handle shared by pipeline components."""

from __future__ import annotations

import sys
from typing import Any, Optional, TextIO

from loguru import logger

CONSOLE_FORMAT = "<level>{time:HH:mm:ss} [{level: <8}] {message}</level>"

# name -> (severity, color); DEBUG/INFO/WARNING/ERROR are loguru built-ins.
CUSTOM_LEVELS = {
    "PROGRESS": (22, "<cyan>"),
    "STEP": (23, "<green>"),
    "FATAL": (50, "<red><bold>"),
}

LEVEL_COLORS = {
    "DEBUG": "<dim>",
    "INFO": "<white>",
    "WARNING": "<yellow>",
    "ERROR": "<red>",
}


def _ensure_level(name: str, no: int, color: str) -> None:
    try:
        logger.level(name)
    except ValueError:
        logger.level(name, no=no, color=color)


def register_levels() -> None:
    """Register the PROGRESS/STEP/FATAL levels and apply console colors."""
    for name, (no, color) in CUSTOM_LEVELS.items():
        _ensure_level(name, no, color)
    for name, color in LEVEL_COLORS.items():
        logger.level(name, color=color)


class LogService:
    """Typed log lines bound to one component name.

    A single instance is built at startup and handed to every component that
    logs; ``child`` derives a handle for a sub-component without touching the
    sink configuration.
    """

    def __init__(self, component: str = "emlvault", bound: Optional[Any] = None) -> None:
        register_levels()
        self.component = component
        self.logger = bound if bound is not None else logger.bind(component=component)

    def child(self, component: str) -> "LogService":
        return LogService(component, self.logger.bind(component=component))

    def debug(self, message: str, *args: Any) -> None:
        self.logger.debug(message, *args)

    def info(self, message: str, *args: Any) -> None:
        self.logger.info(message, *args)

    def warning(self, message: str, *args: Any) -> None:
        self.logger.warning(message, *args)

    def error(self, message: str, *args: Any) -> None:
        self.logger.error(message, *args)

    def exception(self, message: str, *args: Any) -> None:
        self.logger.opt(exception=True).error(message, *args)

    def critical(self, message: str, *args: Any) -> None:
        self.logger.critical(message, *args)

    def fatal(self, message: str, *args: Any) -> None:
        self.logger.log("FATAL", message, *args)

    def progress(self, message: str, *args: Any) -> None:
        self.logger.log("PROGRESS", message, *args)

    def process_start(self, message: str) -> None:
        self.logger.info("Process Start: {}", message)

    def step(self, step: str, duration_ms: float) -> None:
        self.logger.log("STEP", "{} completed in {:.1f}ms", step, duration_ms)

    def batch(self, action: str, duration_ms: float, records: int) -> None:
        self.logger.log("STEP", "{}: {} record(s) processed in {:.1f}ms", action, records, duration_ms)

    def opt(self, **kwargs: Any):
        return self.logger.opt(**kwargs)

    def complete(self) -> None:
        self.logger.complete()


def configure_logging(level: str = "INFO", sink: TextIO | None = None, colorize: Optional[bool] = None) -> LogService:
    """Replace the default loguru sink with the colorized console sink.

    Returns the root ``LogService`` handle for the run.
    """
    register_levels()
    logger.remove()
    try:
        logger.level(level)
    except ValueError:
        level = "INFO"
    logger.add(
        sink or sys.stderr,
        level=level,
        format=CONSOLE_FORMAT,
        colorize=colorize,
        enqueue=False,
        backtrace=False,
        diagnose=False,
    )
    return LogService()


def shutdown_logging() -> None:
    """Flush pending messages and detach every sink."""
    logger.complete()
    logger.remove()

"""Shared utility functions for emlvault."""

from .hash import fingerprint_file, xxh64_digest
from .log_service import LogService, configure_logging, shutdown_logging

__all__ = ["fingerprint_file", "xxh64_digest", "LogService", "configure_logging", "shutdown_logging"]

"""Ingestion services: discovery, the worker pool and its coordinator."""

from .discovery import WorkQueue, discover_files, iter_message_files
from .ingestion import IngestionPipeline, IngestionResult, RunStatistics, ingest_directory

__all__ = [
    "WorkQueue",
    "discover_files",
    "iter_message_files",
    "IngestionPipeline",
    "IngestionResult",
    "RunStatistics",
    "ingest_directory",
]

"""Database package exposing the staging and durable stores."""

from .init_db import create_durable_engine, create_staging_engine, init_schema
from .stores import DurableStore, StagingStore, record_params

__all__ = [
    "create_durable_engine",
    "create_staging_engine",
    "init_schema",
    "DurableStore",
    "StagingStore",
    "record_params",
]

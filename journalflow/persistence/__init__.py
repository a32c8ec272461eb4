"""Checkpoint persistence for journalflow workflows."""

from __future__ import annotations

import os
from typing import Optional

from ..config import JournalflowConfig, load_config
from .inmemory import InMemoryCheckpointStore
from .models import Checkpoint
from .repository import CheckpointStore
from .sqlite import SQLiteCheckpointStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresCheckpointStore
except ImportError:  # pragma: no cover - optional dependency
    PostgresCheckpointStore = None  # type: ignore


def get_checkpoint_store(
    database_url: Optional[str] = None, config: Optional[JournalflowConfig] = None
) -> CheckpointStore:
    """Factory function to build a checkpoint store.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``JOURNALFLOW_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory store is returned. Each call builds a new store;
    callers pass it to the engine explicitly.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("JOURNALFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url:
        return InMemoryCheckpointStore()

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteCheckpointStore(path)
    if database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        if PostgresCheckpointStore is None:
            raise RuntimeError("Postgres support not available")
        return PostgresCheckpointStore(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "Checkpoint",
    "CheckpointStore",
    "InMemoryCheckpointStore",
    "SQLiteCheckpointStore",
    "PostgresCheckpointStore",
    "get_checkpoint_store",
]

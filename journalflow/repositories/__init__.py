"""Data repositories consumed by workflow steps."""

from __future__ import annotations

from typing import Optional

from ..config import JournalflowConfig, load_config
from .base import (
    DailySummaryRepository,
    NoteRepository,
    Repositories,
    RoutineRepository,
)
from .inmemory import (
    InMemoryDailySummaryRepository,
    InMemoryNoteRepository,
    InMemoryRoutineRepository,
)
from .sqlite import (
    SQLiteDailySummaryRepository,
    SQLiteDatabase,
    SQLiteNoteRepository,
    SQLiteRoutineRepository,
)


def in_memory_repositories() -> Repositories:
    return Repositories(
        notes=InMemoryNoteRepository(),
        summaries=InMemoryDailySummaryRepository(),
        routines=InMemoryRoutineRepository(),
    )


def get_repositories(
    data_url: Optional[str] = None, config: Optional[JournalflowConfig] = None
) -> Repositories:
    """Build the repository bundle for ``data_url`` (``sqlite://`` or none)."""

    config = config or load_config()
    data_url = data_url or config.data_url
    if not data_url:
        return in_memory_repositories()
    if data_url.startswith("sqlite://"):
        db = SQLiteDatabase(data_url.replace("sqlite://", "", 1))
        return Repositories(
            notes=SQLiteNoteRepository(db),
            summaries=SQLiteDailySummaryRepository(db),
            routines=SQLiteRoutineRepository(db),
        )
    raise ValueError(f"Unsupported data backend: {data_url}")


__all__ = [
    "DailySummaryRepository",
    "NoteRepository",
    "Repositories",
    "RoutineRepository",
    "InMemoryDailySummaryRepository",
    "InMemoryNoteRepository",
    "InMemoryRoutineRepository",
    "SQLiteDatabase",
    "SQLiteDailySummaryRepository",
    "SQLiteNoteRepository",
    "SQLiteRoutineRepository",
    "get_repositories",
    "in_memory_repositories",
]

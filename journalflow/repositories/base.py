"""Narrow repository interfaces used by workflow steps."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Protocol, Sequence

from ..contracts import DailySummary, Note, Routine, RoutineActivity


class NoteRepository(Protocol):
    async def add_note(self, note: Note) -> None:
        """Store a note."""

    async def find_notes_for_date(self, day: date) -> list[Note]:
        """Return notes created on ``day`` (UTC), oldest first."""


class DailySummaryRepository(Protocol):
    async def save_daily_summary(
        self, day: date, summary: str, risk_level: int, key_insights: Sequence[str]
    ) -> None:
        """Store the audit summary for ``day``."""

    async def find_summary(self, day: date) -> DailySummary | None:
        """Return the most recent summary saved for ``day``."""

    async def find_previous_summary(self, day: date) -> DailySummary | None:
        """Return the summary of the day before ``day``."""


class RoutineRepository(Protocol):
    async def save_routine(
        self, day: date, activities: Sequence[RoutineActivity]
    ) -> None:
        """Store the routine generated for ``day``."""

    async def find_routine(self, day: date) -> Routine | None:
        """Return the most recent routine saved for ``day``."""


@dataclass
class Repositories:
    """Bundle of repositories handed to workflow definitions."""

    notes: NoteRepository
    summaries: DailySummaryRepository
    routines: RoutineRepository


def previous_day(day: date) -> date:
    return day - timedelta(days=1)

"""In-memory repositories for tests and local runs."""

from __future__ import annotations

from datetime import date, timezone
from typing import List, Sequence

from ..contracts import DailySummary, Note, Routine, RoutineActivity
from .base import (
    DailySummaryRepository,
    NoteRepository,
    RoutineRepository,
    previous_day,
)


class InMemoryNoteRepository(NoteRepository):
    def __init__(self) -> None:
        self._notes: List[Note] = []

    async def add_note(self, note: Note) -> None:
        self._notes.append(note)

    async def find_notes_for_date(self, day: date) -> list[Note]:
        notes = [
            note
            for note in self._notes
            if note.created_at.astimezone(timezone.utc).date() == day
        ]
        return sorted(notes, key=lambda note: note.created_at)


class InMemoryDailySummaryRepository(DailySummaryRepository):
    def __init__(self) -> None:
        self.saved: List[DailySummary] = []

    async def save_daily_summary(
        self, day: date, summary: str, risk_level: int, key_insights: Sequence[str]
    ) -> None:
        self.saved.append(
            DailySummary(
                date=day,
                summary=summary,
                risk_level=risk_level,
                key_insights=list(key_insights),
            )
        )

    async def find_summary(self, day: date) -> DailySummary | None:
        matches = [summary for summary in self.saved if summary.date == day]
        return matches[-1] if matches else None

    async def find_previous_summary(self, day: date) -> DailySummary | None:
        return await self.find_summary(previous_day(day))


class InMemoryRoutineRepository(RoutineRepository):
    def __init__(self) -> None:
        self.saved: List[Routine] = []

    async def save_routine(
        self, day: date, activities: Sequence[RoutineActivity]
    ) -> None:
        self.saved.append(Routine(target_date=day, activities=list(activities)))

    async def find_routine(self, day: date) -> Routine | None:
        matches = [routine for routine in self.saved if routine.target_date == day]
        return matches[-1] if matches else None

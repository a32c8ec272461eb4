"""SQLite-backed repositories for notes, summaries and routines."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from ..contracts import DailySummary, Note, Routine, RoutineActivity
from .base import (
    DailySummaryRepository,
    NoteRepository,
    RoutineRepository,
    previous_day,
)


class SQLiteDatabase:
    """Shared connection and schema for the SQLite repositories."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS notes (
                id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS daily_summaries (
                id TEXT PRIMARY KEY,
                date TEXT NOT NULL,
                summary TEXT NOT NULL,
                risk_level INTEGER NOT NULL,
                key_insights TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS routines (
                id TEXT PRIMARY KEY,
                target_date TEXT NOT NULL,
                activities TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    def _execute_sync(self, query: str, params: tuple) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()

    def _fetchall_sync(self, query: str, params: tuple) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    async def execute(self, query: str, *params: Any) -> None:
        await asyncio.to_thread(self._execute_sync, query, params)

    async def fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        return await asyncio.to_thread(self._fetchall_sync, query, params)

    def close(self) -> None:
        self._conn.close()


def _utc_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class SQLiteNoteRepository(NoteRepository):
    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    async def add_note(self, note: Note) -> None:
        await self._db.execute(
            "INSERT INTO notes (id, content, created_at) VALUES (?, ?, ?)",
            note.id,
            note.content,
            _utc_iso(note.created_at),
        )

    async def find_notes_for_date(self, day: date) -> list[Note]:
        rows = await self._db.fetchall(
            "SELECT id, content, created_at FROM notes "
            "WHERE substr(created_at, 1, 10) = ? ORDER BY created_at",
            day.isoformat(),
        )
        return [
            Note(
                id=row["id"],
                content=row["content"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]


class SQLiteDailySummaryRepository(DailySummaryRepository):
    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    async def save_daily_summary(
        self, day: date, summary: str, risk_level: int, key_insights: Sequence[str]
    ) -> None:
        record = DailySummary(
            date=day,
            summary=summary,
            risk_level=risk_level,
            key_insights=list(key_insights),
        )
        await self._db.execute(
            "INSERT INTO daily_summaries (id, date, summary, risk_level, key_insights, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            record.id,
            record.date.isoformat(),
            record.summary,
            record.risk_level,
            json.dumps(record.key_insights),
            _utc_iso(record.created_at),
        )

    async def find_summary(self, day: date) -> DailySummary | None:
        rows = await self._db.fetchall(
            "SELECT id, date, summary, risk_level, key_insights, created_at "
            "FROM daily_summaries WHERE date = ? ORDER BY created_at DESC LIMIT 1",
            day.isoformat(),
        )
        if not rows:
            return None
        row = rows[0]
        return DailySummary(
            id=row["id"],
            date=date.fromisoformat(row["date"]),
            summary=row["summary"],
            risk_level=row["risk_level"],
            key_insights=json.loads(row["key_insights"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    async def find_previous_summary(self, day: date) -> DailySummary | None:
        return await self.find_summary(previous_day(day))


class SQLiteRoutineRepository(RoutineRepository):
    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    async def save_routine(
        self, day: date, activities: Sequence[RoutineActivity]
    ) -> None:
        record = Routine(target_date=day, activities=list(activities))
        await self._db.execute(
            "INSERT INTO routines (id, target_date, activities, created_at) VALUES (?, ?, ?, ?)",
            record.id,
            record.target_date.isoformat(),
            json.dumps([activity.model_dump() for activity in record.activities]),
            _utc_iso(record.created_at),
        )

    async def find_routine(self, day: date) -> Routine | None:
        rows = await self._db.fetchall(
            "SELECT id, target_date, activities, created_at FROM routines "
            "WHERE target_date = ? ORDER BY created_at DESC LIMIT 1",
            day.isoformat(),
        )
        if not rows:
            return None
        row = rows[0]
        return Routine(
            id=row["id"],
            target_date=date.fromisoformat(row["target_date"]),
            activities=[
                RoutineActivity.model_validate(item)
                for item in json.loads(row["activities"])
            ],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

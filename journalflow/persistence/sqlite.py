"""SQLite implementation of the checkpoint store."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from ..contracts import WorkflowState
from ..errors import StorageUnavailable
from .models import Checkpoint
from .repository import CheckpointStore, next_timestamp

logger = logging.getLogger(__name__)

T = TypeVar("T")

_COLUMNS = "id, thread_id, state, node_id, workflow_type, created_at"


class SQLiteCheckpointStore(CheckpointStore):
    """Persist checkpoints using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._ensure_schema()
        except sqlite3.Error as exc:
            logger.error(f"Failed to open checkpoint database {self.db_path}: {exc}")
            raise StorageUnavailable() from exc

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS agent_checkpoints (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                thread_id TEXT NOT NULL,
                state TEXT NOT NULL,
                node_id TEXT NOT NULL,
                workflow_type TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_agent_checkpoints_thread_created
            ON agent_checkpoints (thread_id, created_at)
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _insert(
        self, thread_id: str, state: str, node_id: str, workflow_type: str
    ) -> str:
        checkpoint_id = str(uuid.uuid4())
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                "SELECT MAX(created_at) AS last FROM agent_checkpoints WHERE thread_id = ?",
                (thread_id,),
            )
            row = cur.fetchone()
            last = datetime.fromisoformat(row["last"]) if row and row["last"] else None
            created_at = next_timestamp(datetime.now(timezone.utc), last)
            cur.execute(
                f"INSERT INTO agent_checkpoints ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    checkpoint_id,
                    thread_id,
                    state,
                    node_id,
                    workflow_type,
                    created_at.isoformat(timespec="microseconds"),
                ),
            )
            self._conn.commit()
        return checkpoint_id

    def _execute(self, query: str, *params: Any) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    async def _run(self, action: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as exc:
            logger.error(f"Database error while {action}: {exc}")
            raise StorageUnavailable(
                f"Storage temporarily unavailable - failed {action}"
            ) from exc

    @staticmethod
    def _to_checkpoint(row: sqlite3.Row) -> Checkpoint:
        return Checkpoint(
            id=row["id"],
            thread_id=row["thread_id"],
            state=json.loads(row["state"]),
            node_id=row["node_id"],
            workflow_type=row["workflow_type"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ------------------------------------------------------------------
    # Store API
    async def save(
        self, thread_id: str, state: WorkflowState, node_id: str, workflow_type: str
    ) -> str:
        return await self._run(
            "saving checkpoint",
            self._insert,
            thread_id,
            state.model_dump_json(),
            node_id,
            workflow_type,
        )

    async def load(
        self, thread_id: str, checkpoint_id: Optional[str] = None
    ) -> Checkpoint | None:
        if checkpoint_id is not None:
            rows = await self._run(
                "loading checkpoint",
                self._fetchall,
                f"SELECT {_COLUMNS} FROM agent_checkpoints WHERE thread_id = ? AND id = ?",
                thread_id,
                checkpoint_id,
            )
        else:
            rows = await self._run(
                "loading checkpoint",
                self._fetchall,
                f"SELECT {_COLUMNS} FROM agent_checkpoints WHERE thread_id = ? "
                "ORDER BY created_at DESC, seq DESC LIMIT 1",
                thread_id,
            )
        if not rows:
            return None
        return self._to_checkpoint(rows[0])

    async def list(self, thread_id: str) -> list[Checkpoint]:
        rows = await self._run(
            "listing checkpoints",
            self._fetchall,
            f"SELECT {_COLUMNS} FROM agent_checkpoints WHERE thread_id = ? "
            "ORDER BY created_at ASC, seq ASC",
            thread_id,
        )
        return [self._to_checkpoint(row) for row in rows]

    async def delete(self, thread_id: str) -> None:
        await self._run(
            "deleting checkpoints",
            self._execute,
            "DELETE FROM agent_checkpoints WHERE thread_id = ?",
            thread_id,
        )

    def close(self) -> None:
        self._conn.close()

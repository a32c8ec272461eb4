"""PostgreSQL implementation of the checkpoint store."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Optional

import asyncpg

from ..contracts import WorkflowState
from ..errors import StorageUnavailable
from .models import Checkpoint
from .repository import CheckpointStore

logger = logging.getLogger(__name__)

_COLUMNS = "id, thread_id, state, node_id, workflow_type, created_at"

# Connection loss shows up as any of these depending on where it happens.
_STORAGE_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    ConnectionError,
)


class PostgresCheckpointStore(CheckpointStore):
    """Persist checkpoints using PostgreSQL.

    A connection pool is created on first use and shared by every thread
    running through the engine.
    """

    def __init__(self, dsn: str, min_size: int = 1, max_size: int = 10):
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._pool: asyncpg.Pool | None = None

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            pool = await asyncpg.create_pool(
                self._dsn, min_size=self._min_size, max_size=self._max_size
            )
            async with pool.acquire() as conn:
                await self._ensure_schema(conn)
            self._pool = pool
        return self._pool

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS agent_checkpoints (
                seq BIGSERIAL PRIMARY KEY,
                id UUID NOT NULL UNIQUE,
                thread_id TEXT NOT NULL,
                state JSONB NOT NULL,
                node_id TEXT NOT NULL,
                workflow_type TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
            )
            """
        )
        await conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_agent_checkpoints_thread_created
            ON agent_checkpoints (thread_id, created_at)
            """
        )

    @staticmethod
    def _to_checkpoint(row: asyncpg.Record) -> Checkpoint:
        state = row["state"]
        return Checkpoint(
            id=str(row["id"]),
            thread_id=row["thread_id"],
            state=json.loads(state) if isinstance(state, str) else state,
            node_id=row["node_id"],
            workflow_type=row["workflow_type"],
            created_at=row["created_at"],
        )

    # ------------------------------------------------------------------
    async def save(
        self, thread_id: str, state: WorkflowState, node_id: str, workflow_type: str
    ) -> str:
        checkpoint_id = str(uuid.uuid4())
        try:
            pool = await self._get_pool()
            # created_at is bumped past the thread's latest row so readers can
            # rely on strictly increasing timestamps.
            await pool.execute(
                f"""
                INSERT INTO agent_checkpoints ({_COLUMNS})
                SELECT $1::uuid, $2, $3::jsonb, $4, $5,
                       GREATEST(
                           clock_timestamp(),
                           COALESCE(MAX(created_at), '-infinity'::timestamptz)
                               + interval '1 microsecond'
                       )
                FROM agent_checkpoints WHERE thread_id = $2
                """,
                checkpoint_id,
                thread_id,
                state.model_dump_json(),
                node_id,
                workflow_type,
            )
        except _STORAGE_ERRORS as exc:
            logger.error(
                f"Database error while saving checkpoint for thread={thread_id} "
                f"node={node_id} type={workflow_type}: {exc}"
            )
            raise StorageUnavailable(
                "Storage temporarily unavailable - failed to save checkpoint"
            ) from exc
        return checkpoint_id

    async def load(
        self, thread_id: str, checkpoint_id: Optional[str] = None
    ) -> Checkpoint | None:
        try:
            pool = await self._get_pool()
            if checkpoint_id is not None:
                row = await pool.fetchrow(
                    f"SELECT {_COLUMNS} FROM agent_checkpoints "
                    "WHERE thread_id = $1 AND id = $2::uuid",
                    thread_id,
                    checkpoint_id,
                )
            else:
                row = await pool.fetchrow(
                    f"SELECT {_COLUMNS} FROM agent_checkpoints WHERE thread_id = $1 "
                    "ORDER BY created_at DESC, seq DESC LIMIT 1",
                    thread_id,
                )
        except _STORAGE_ERRORS as exc:
            logger.error(
                f"Database error while loading checkpoint for thread={thread_id} "
                f"checkpoint={checkpoint_id}: {exc}"
            )
            raise StorageUnavailable(
                "Storage temporarily unavailable - failed to load checkpoint"
            ) from exc
        if row is None:
            return None
        return self._to_checkpoint(row)

    async def list(self, thread_id: str) -> list[Checkpoint]:
        try:
            pool = await self._get_pool()
            rows = await pool.fetch(
                f"SELECT {_COLUMNS} FROM agent_checkpoints WHERE thread_id = $1 "
                "ORDER BY created_at ASC, seq ASC",
                thread_id,
            )
        except _STORAGE_ERRORS as exc:
            logger.error(
                f"Database error while listing checkpoints for thread={thread_id}: {exc}"
            )
            raise StorageUnavailable(
                "Storage temporarily unavailable - failed to list checkpoints"
            ) from exc
        return [self._to_checkpoint(row) for row in rows]

    async def delete(self, thread_id: str) -> None:
        try:
            pool = await self._get_pool()
            await pool.execute(
                "DELETE FROM agent_checkpoints WHERE thread_id = $1", thread_id
            )
        except _STORAGE_ERRORS as exc:
            logger.error(
                f"Database error while deleting checkpoints for thread={thread_id}: {exc}"
            )
            raise StorageUnavailable(
                "Storage temporarily unavailable - failed to delete checkpoints"
            ) from exc

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

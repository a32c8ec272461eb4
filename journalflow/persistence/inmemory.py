"""In-memory implementation of the checkpoint store."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..contracts import WorkflowState
from .models import Checkpoint
from .repository import CheckpointStore, next_timestamp


class InMemoryCheckpointStore(CheckpointStore):
    """Store checkpoints in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._checkpoints: Dict[str, List[Checkpoint]] = {}

    # ------------------------------------------------------------------
    async def save(
        self, thread_id: str, state: WorkflowState, node_id: str, workflow_type: str
    ) -> str:
        rows = self._checkpoints.setdefault(thread_id, [])
        last = rows[-1].created_at if rows else None
        checkpoint = Checkpoint(
            id=str(uuid.uuid4()),
            thread_id=thread_id,
            state=state.model_dump(mode="json"),
            node_id=node_id,
            workflow_type=workflow_type,
            created_at=next_timestamp(datetime.now(timezone.utc), last),
        )
        rows.append(checkpoint)
        return checkpoint.id

    async def load(
        self, thread_id: str, checkpoint_id: Optional[str] = None
    ) -> Checkpoint | None:
        rows = self._checkpoints.get(thread_id)
        if not rows:
            return None
        if checkpoint_id is not None:
            for row in rows:
                if row.id == checkpoint_id:
                    return row.model_copy(deep=True)
            return None
        return max(rows, key=lambda row: row.created_at).model_copy(deep=True)

    async def list(self, thread_id: str) -> list[Checkpoint]:
        rows = self._checkpoints.get(thread_id, [])
        return [
            row.model_copy(deep=True)
            for row in sorted(rows, key=lambda row: row.created_at)
        ]

    async def delete(self, thread_id: str) -> None:
        self._checkpoints.pop(thread_id, None)

    def thread_ids(self) -> list[str]:
        return list(self._checkpoints)

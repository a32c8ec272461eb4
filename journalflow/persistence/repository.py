"""Checkpoint store abstraction for workflow state persistence."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Protocol

from ..contracts import WorkflowState
from .models import Checkpoint


class CheckpointStore(Protocol):
    """Protocol for checkpoint persistence backends.

    Checkpoints are append-only: ``save`` always inserts a new row and never
    touches existing ones. Backend failures surface as
    :class:`~journalflow.errors.StorageUnavailable`.
    """

    async def save(
        self, thread_id: str, state: WorkflowState, node_id: str, workflow_type: str
    ) -> str:
        """Insert a new checkpoint and return its identifier."""

    async def load(
        self, thread_id: str, checkpoint_id: Optional[str] = None
    ) -> Checkpoint | None:
        """Return the latest checkpoint, or the one named by ``checkpoint_id``."""

    async def list(self, thread_id: str) -> list[Checkpoint]:
        """Return all checkpoints for a thread, oldest first."""

    async def delete(self, thread_id: str) -> None:
        """Remove every checkpoint of a thread."""


def next_timestamp(now: datetime, last: Optional[datetime]) -> datetime:
    """Keep checkpoint timestamps strictly increasing within a thread."""
    if last is not None and now <= last:
        return last + timedelta(microseconds=1)
    return now

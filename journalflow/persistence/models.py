"""Data models for persisted checkpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class Checkpoint(BaseModel):
    """Immutable snapshot of a thread's state after a node transition."""

    model_config = ConfigDict(frozen=True)

    id: str
    thread_id: str
    state: dict[str, Any]
    node_id: str
    workflow_type: str
    created_at: datetime

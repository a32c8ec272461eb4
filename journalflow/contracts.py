"""Core state and message contracts for journalflow workflows."""

from __future__ import annotations

import datetime as dt
import uuid
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializeAsAny,
    field_validator,
    model_validator,
)

from .constants import (
    DEFAULT_TIMEOUT_SECONDS,
    END_NODE,
    START_NODE,
)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class WorkflowStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({WorkflowStatus.COMPLETED, WorkflowStatus.FAILED})


class ChatMessage(BaseModel):
    """Role-tagged message sent to the LLM service."""

    role: Literal["system", "user", "assistant"]
    content: str


# ----------------------------------------------------------------------
# Domain records


class Note(BaseModel):
    """A journal note as seen by the workflows."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str
    created_at: dt.datetime = Field(default_factory=utcnow)


class AuditAnalysis(BaseModel):
    """Structured result of the daily audit analysis.

    Accepts the camelCase keys the model is prompted to produce.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    summary: str = "Summary not available"
    risk_level: int = Field(default=1, alias="riskLevel")
    key_insights: List[str] = Field(default_factory=list, alias="keyInsights")

    @field_validator("summary", mode="before")
    @classmethod
    def _default_summary(cls, value: Any) -> Any:
        return value or "Summary not available"

    @field_validator("risk_level", mode="before")
    @classmethod
    def _clamp_risk(cls, value: Any) -> Any:
        if value is None or value == "":
            return 1
        return min(10, max(1, int(float(value))))

    @field_validator("key_insights", mode="before")
    @classmethod
    def _coerce_insights(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value]


class RoutineAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    risk_level: int
    recommendations: List[str] = Field(default_factory=list)


class RoutineActivity(BaseModel):
    """One scheduled activity of a generated routine."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    time: str
    activity: str
    expected_benefit: str = Field(alias="expectedBenefit")


class FormattedRoutine(BaseModel):
    model_config = ConfigDict(frozen=True)

    activities: List[RoutineActivity] = Field(default_factory=list)


class DailySummary(BaseModel):
    """Persisted result of a daily audit."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    date: dt.date
    summary: str
    risk_level: int
    key_insights: List[str] = Field(default_factory=list)
    created_at: dt.datetime = Field(default_factory=utcnow)


class Routine(BaseModel):
    """Persisted routine for a target date."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    target_date: dt.date
    activities: List[RoutineActivity] = Field(default_factory=list)
    created_at: dt.datetime = Field(default_factory=utcnow)


# ----------------------------------------------------------------------
# Workflow state


class WorkflowState(BaseModel):
    """Immutable snapshot of one workflow thread.

    Steps never mutate a state in place. They return a replacement built
    with :meth:`advance`, :meth:`fail` or ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    thread_id: str
    status: WorkflowStatus = WorkflowStatus.RUNNING
    current_node: str = START_NODE
    retry_count: int = Field(default=0, ge=0)
    error: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _failed_requires_error(self) -> "WorkflowState":
        if self.status == WorkflowStatus.FAILED and not self.error:
            raise ValueError("a failed workflow state must carry an error message")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def advance(self, node: str, **changes: Any) -> "WorkflowState":
        """Return a copy positioned at ``node`` with ``changes`` applied."""
        update = {"current_node": node, "updated_at": utcnow()}
        update.update(changes)
        return self.model_copy(update=update)

    def complete(self, **changes: Any) -> "WorkflowState":
        return self.advance(END_NODE, status=WorkflowStatus.COMPLETED, **changes)

    def fail(self, message: str, **changes: Any) -> "WorkflowState":
        update = {
            "status": WorkflowStatus.FAILED,
            "error": message or "Unknown error",
            "updated_at": utcnow(),
        }
        update.update(changes)
        return self.model_copy(update=update)


class DailyAuditState(WorkflowState):
    date: dt.date
    notes: List[Note] = Field(default_factory=list)
    analysis: Optional[AuditAnalysis] = None
    requires_approval: bool = False
    approved: bool = False


class RoutineState(WorkflowState):
    date: dt.date
    yesterday_context: str = ""
    analysis_result: Optional[RoutineAnalysis] = None
    raw_schedule: Optional[dict[str, Any]] = None
    validated_schedule: Optional[dict[str, Any]] = None
    formatted_routine: Optional[FormattedRoutine] = None
    validation_attempts: int = Field(default=0, ge=0)
    requires_approval: bool = False
    approved: bool = False


# ----------------------------------------------------------------------
# Engine inputs and outputs


class WorkflowInput(BaseModel):
    """Input accepted by both shipped workflows."""

    date: dt.date


class ApprovalInput(BaseModel):
    approved: bool = False


class EngineConfig(BaseModel):
    """Per-call execution options."""

    thread_id: Optional[str] = None
    checkpoint_id: Optional[str] = None
    # Overrides the engine's retry policy when set.
    max_retries: Optional[int] = Field(default=None, ge=1)
    requires_human_approval: bool = False
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)


class ExecutionResult(BaseModel):
    success: bool
    state: SerializeAsAny[WorkflowState]
    thread_id: str
    status: WorkflowStatus
    error: Optional[str] = None

    @classmethod
    def from_state(cls, state: WorkflowState) -> "ExecutionResult":
        return cls(
            success=state.status != WorkflowStatus.FAILED,
            state=state,
            thread_id=state.thread_id,
            status=state.status,
            error=state.error,
        )


class StatusReport(BaseModel):
    status: WorkflowStatus
    state: SerializeAsAny[WorkflowState]

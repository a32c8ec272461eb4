"""journalflow: checkpointed, resumable LLM workflows over journal notes."""

from .contracts import (
    ApprovalInput,
    EngineConfig,
    ExecutionResult,
    WorkflowInput,
    WorkflowState,
    WorkflowStatus,
)
from .engine import WorkflowEngine
from .persistence import get_checkpoint_store
from .repositories import get_repositories
from .service import WorkflowService
from .workflows import DailyAuditWorkflow, RoutineWorkflow

__version__ = "0.1.0"
__all__ = [
    "ApprovalInput",
    "DailyAuditWorkflow",
    "EngineConfig",
    "ExecutionResult",
    "RoutineWorkflow",
    "WorkflowEngine",
    "WorkflowInput",
    "WorkflowService",
    "WorkflowState",
    "WorkflowStatus",
    "get_checkpoint_store",
    "get_repositories",
]

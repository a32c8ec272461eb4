"""Workflow definitions driven by :class:`journalflow.engine.WorkflowEngine`."""

from .base import Step, WorkflowDefinition
from .daily_audit import DailyAuditWorkflow
from .routine import RoutineWorkflow
from .validation import normalize_schedule, validate_schedule

__all__ = [
    "DailyAuditWorkflow",
    "RoutineWorkflow",
    "Step",
    "WorkflowDefinition",
    "normalize_schedule",
    "validate_schedule",
]

"""Human-in-the-loop pause and resume helpers.

A workflow pauses by moving to :data:`AWAITING_APPROVAL_NODE` with status
``paused``. Only :meth:`WorkflowEngine.resume` moves it on from there:
approval continues at the workflow's commit step, rejection completes the
thread without committing anything.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from ..constants import AWAITING_APPROVAL_NODE
from ..contracts import ApprovalInput, WorkflowState, WorkflowStatus

logger = logging.getLogger(__name__)

StateT = TypeVar("StateT", bound=WorkflowState)


def request_approval(state: StateT) -> StateT:
    logger.info(f"Approval required for thread={state.thread_id}")
    return state.advance(
        AWAITING_APPROVAL_NODE,
        status=WorkflowStatus.PAUSED,
        requires_approval=True,
    )


def check_approval(
    state: StateT,
    requires_human_approval: bool,
    predicate: Callable[[StateT], bool],
    next_node: str,
) -> StateT:
    """Pause when the caller asked for approval and ``predicate`` holds."""
    if requires_human_approval and predicate(state):
        return request_approval(state)
    return state.advance(next_node)


def apply_approval(
    state: StateT, approval: ApprovalInput, commit_node: str
) -> StateT:
    """Record the decision and pick the node to continue from."""
    if approval.approved:
        logger.info(f"Thread {state.thread_id} approved, continuing at {commit_node}")
        return state.advance(
            commit_node, status=WorkflowStatus.RUNNING, approved=True
        )
    logger.info(f"Thread {state.thread_id} rejected, completing without commit")
    return state.complete(approved=False)


def commit_allowed(state: WorkflowState) -> bool:
    return not (
        getattr(state, "requires_approval", False)
        and not getattr(state, "approved", False)
    )

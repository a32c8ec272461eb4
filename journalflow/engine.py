"""Checkpointed execution engine for journalflow workflows."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Dict, Optional

from .constants import CANCELLED_MESSAGE, END_NODE, START_NODE, TIMEOUT_MESSAGE
from .contracts import (
    ApprovalInput,
    EngineConfig,
    ExecutionResult,
    StatusReport,
    WorkflowInput,
    WorkflowState,
    WorkflowStatus,
    utcnow,
)
from .errors import (
    InvalidState,
    JournalflowError,
    StorageUnavailable,
    ThreadNotFound,
    TransientStepFailure,
)
from .persistence import Checkpoint, CheckpointStore
from .utils import retry
from .workflows.approval import apply_approval
from .workflows.base import Step, WorkflowDefinition

logger = logging.getLogger(__name__)


class WorkflowEngine:
    """Drive a :class:`WorkflowDefinition` forward one step at a time.

    A checkpoint is written whenever a step produces an observable transition
    (node, status or retry count changed) and always after the in-memory step
    has fully succeeded. The loop stops at a pause point or a terminal status.
    """

    def __init__(
        self,
        definition: WorkflowDefinition,
        checkpoints: CheckpointStore,
        retry_policy: Optional[retry.RetryPolicy] = None,
    ) -> None:
        self._definition = definition
        self._checkpoints = checkpoints
        self._retry_policy = retry_policy or retry.RetryPolicy()
        self._steps = dict(definition.steps())
        # Last complete state of each thread whose loop is running.
        self._latest: Dict[str, WorkflowState] = {}

    @property
    def workflow_type(self) -> str:
        return self._definition.workflow_type

    # ------------------------------------------------------------------
    # Public API
    async def execute(
        self,
        data: Optional[WorkflowInput] = None,
        config: Optional[EngineConfig] = None,
    ) -> ExecutionResult:
        """Start a new thread, or continue ``config.thread_id`` from its checkpoint."""
        config = config or EngineConfig()
        if config.thread_id:
            state = await self._load_state(config.thread_id, config.checkpoint_id)
            logger.info(
                f"Restored thread={state.thread_id} at node={state.current_node} "
                f"status={state.status.value}"
            )
        else:
            if data is None:
                raise ValueError("input is required to start a new workflow thread")
            state = self._definition.initial_state(data, str(uuid.uuid4()))
            await self._persist(state)
            logger.info(
                f"Created {self.workflow_type} thread={state.thread_id} for {data.date}"
            )
        return await self._run(state, config)

    async def resume(
        self,
        thread_id: str,
        approval: ApprovalInput | bool,
        config: Optional[EngineConfig] = None,
    ) -> ExecutionResult:
        """Apply a human decision to a paused thread and continue it."""
        if isinstance(approval, bool):
            approval = ApprovalInput(approved=approval)
        config = config or EngineConfig()

        state = await self._load_state(thread_id)
        if state.status != WorkflowStatus.PAUSED:
            raise InvalidState(
                f"Cannot resume execution that is not paused. "
                f"Current status: {state.status.value}"
            )
        if state.current_node not in self._definition.pause_nodes:
            raise InvalidState(f"Cannot resume from node: {state.current_node}")

        state = apply_approval(state, approval, self._definition.commit_node)
        # The decision must be durable before the loop runs; the loop works
        # from this in-memory state and never reloads it.
        await self._persist(state)
        logger.info(f"Resuming thread={thread_id} approved={approval.approved}")
        return await self._run(state, config)

    async def get_status(self, thread_id: str) -> StatusReport:
        state = await self._load_state(thread_id)
        return StatusReport(status=state.status, state=state)

    async def cancel(self, thread_id: str) -> None:
        """Fail a thread on behalf of the user. Terminal threads are left alone."""
        state = await self._load_state(thread_id)
        if state.is_terminal:
            logger.info(
                f"Cancel ignored for thread={thread_id}: already {state.status.value}"
            )
            return
        await self._persist(state.fail(CANCELLED_MESSAGE))
        logger.info(f"Execution cancelled for thread={thread_id}")

    async def history(self, thread_id: str) -> list[Checkpoint]:
        checkpoints = await self._checkpoints.list(thread_id)
        if not checkpoints:
            raise ThreadNotFound(thread_id)
        return checkpoints

    # ------------------------------------------------------------------
    # Execution loop
    async def _run(self, state: WorkflowState, config: EngineConfig) -> ExecutionResult:
        thread_id = state.thread_id
        started = time.monotonic()
        logger.info(
            f"Execution started for {self.workflow_type} thread={thread_id} "
            f"at node={state.current_node}"
        )
        self._latest[thread_id] = state
        try:
            state = await asyncio.wait_for(
                self._drive(state, config), timeout=config.timeout
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Execution timeout exceeded for thread={thread_id} "
                f"after {config.timeout}s"
            )
            state = self._latest[thread_id].fail(TIMEOUT_MESSAGE)
            await self._persist(state)
        finally:
            self._latest.pop(thread_id, None)

        logger.info(
            f"Execution finished for thread={thread_id} "
            f"status={state.status.value} "
            f"duration_ms={int((time.monotonic() - started) * 1000)}"
        )
        return ExecutionResult.from_state(state)

    async def _drive(self, state: WorkflowState, config: EngineConfig) -> WorkflowState:
        try:
            while state.status == WorkflowStatus.RUNNING:
                node = state.current_node

                if node == END_NODE:
                    state = state.model_copy(
                        update={"status": WorkflowStatus.COMPLETED, "updated_at": utcnow()}
                    )
                    self._latest[state.thread_id] = state
                    await self._persist(state)
                    break

                if node in self._definition.pause_nodes:
                    state = state.model_copy(
                        update={"status": WorkflowStatus.PAUSED, "updated_at": utcnow()}
                    )
                    self._latest[state.thread_id] = state
                    await self._persist(state)
                    break

                step = self._resolve(node)
                logger.info(f"Node {node} started for thread={state.thread_id}")
                node_started = time.monotonic()
                try:
                    new_state = await step(state, config)
                except TransientStepFailure as exc:
                    if node not in self._definition.retryable_nodes:
                        raise
                    decision = self._retry_policy.on_failure(
                        state, node, exc, max_retries=config.max_retries
                    )
                    state = decision.state.model_copy(update={"updated_at": utcnow()})
                    self._latest[state.thread_id] = state
                    await self._persist(state)
                    if decision.exhausted:
                        break
                    await retry.schedule_retry(decision.delay)
                    continue

                new_state = self._settle(state, new_state)
                logger.info(
                    f"Node {node} completed for thread={state.thread_id} "
                    f"next={new_state.current_node} "
                    f"duration_ms={int((time.monotonic() - node_started) * 1000)}"
                )
                transitioned = self._is_transition(state, new_state)
                state = new_state
                self._latest[state.thread_id] = state
                if transitioned:
                    await self._persist(state)
        except StorageUnavailable:
            raise
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.exception(f"Execution failed for thread={state.thread_id}: {message}")
            state = state.fail(message)
            await self._persist(state)
        return state

    # ------------------------------------------------------------------
    # Helpers
    def _resolve(self, node: str) -> Step:
        if node == START_NODE:
            node = self._definition.entry_node
        step = self._steps.get(node)
        if step is None:
            raise JournalflowError(f"Unknown node: {node}")
        return step

    @staticmethod
    def _settle(previous: WorkflowState, state: WorkflowState) -> WorkflowState:
        update: dict = {"updated_at": utcnow()}
        if state.current_node != previous.current_node:
            update["retry_count"] = 0
        if state.current_node == END_NODE and state.status == WorkflowStatus.RUNNING:
            update["status"] = WorkflowStatus.COMPLETED
        return state.model_copy(update=update)

    @staticmethod
    def _is_transition(previous: WorkflowState, state: WorkflowState) -> bool:
        return (
            state.current_node != previous.current_node
            or state.status != previous.status
            or state.retry_count != previous.retry_count
        )

    async def _persist(self, state: WorkflowState) -> str:
        checkpoint_id = await self._checkpoints.save(
            state.thread_id, state, state.current_node, self.workflow_type
        )
        logger.debug(
            f"Checkpoint {checkpoint_id} saved for thread={state.thread_id} "
            f"node={state.current_node}"
        )
        return checkpoint_id

    async def _load_state(
        self, thread_id: str, checkpoint_id: Optional[str] = None
    ) -> WorkflowState:
        checkpoint = await self._checkpoints.load(thread_id, checkpoint_id)
        if checkpoint is None:
            raise ThreadNotFound(thread_id)
        if checkpoint.workflow_type != self.workflow_type:
            raise InvalidState(
                f"Thread {thread_id} belongs to workflow {checkpoint.workflow_type}, "
                f"not {self.workflow_type}"
            )
        return self._definition.restore(checkpoint.state)

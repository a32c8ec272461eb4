"""Facade used by the CLI (and any HTTP layer) to run journalflow workflows."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Dict, Optional

from .config import EngineSettings, JournalflowConfig, load_config
from .contracts import EngineConfig, ExecutionResult, StatusReport, WorkflowInput
from .engine import WorkflowEngine
from .errors import InvalidState, ThreadNotFound
from .llm import LLMService, PydanticAIService
from .persistence import Checkpoint, CheckpointStore, get_checkpoint_store
from .repositories import Repositories, get_repositories
from .utils import RetryPolicy
from .workflows import DailyAuditWorkflow, RoutineWorkflow

logger = logging.getLogger(__name__)


class WorkflowService:
    """Owns one engine per workflow type over a shared checkpoint store.

    Thread operations look up the thread's latest checkpoint first and hand
    the call to the engine of the workflow that created it.
    """

    def __init__(
        self,
        llm: LLMService,
        repositories: Repositories,
        checkpoints: CheckpointStore,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self._settings = settings or EngineSettings()
        self._checkpoints = checkpoints
        self._repositories = repositories
        policy = RetryPolicy(
            max_retries=self._settings.max_retries,
            base_ms=self._settings.backoff_base_ms,
            max_backoff_seconds=self._settings.max_backoff_seconds,
            jitter_seconds=self._settings.jitter_seconds,
        )
        definitions = [
            DailyAuditWorkflow(
                llm,
                repositories,
                approval_risk_threshold=self._settings.approval_risk_threshold,
            ),
            RoutineWorkflow(llm, repositories),
        ]
        self._engines: Dict[str, WorkflowEngine] = {
            definition.workflow_type: WorkflowEngine(definition, checkpoints, policy)
            for definition in definitions
        }

    @classmethod
    def from_config(cls, config: Optional[JournalflowConfig] = None) -> "WorkflowService":
        config = config or load_config()
        return cls(
            llm=PydanticAIService(config.llm.model),
            repositories=get_repositories(config=config),
            checkpoints=get_checkpoint_store(config=config),
            settings=config.engine,
        )

    @property
    def checkpoints(self) -> CheckpointStore:
        return self._checkpoints

    @property
    def repositories(self) -> Repositories:
        return self._repositories

    def engine(self, workflow_type: str) -> WorkflowEngine:
        try:
            return self._engines[workflow_type]
        except KeyError:
            raise InvalidState(f"Unknown workflow type: {workflow_type}") from None

    def engine_config(self, requires_human_approval: Optional[bool] = None) -> EngineConfig:
        return EngineConfig(
            max_retries=self._settings.max_retries,
            timeout=self._settings.timeout_seconds,
            requires_human_approval=(
                self._settings.requires_human_approval
                if requires_human_approval is None
                else requires_human_approval
            ),
        )

    # ------------------------------------------------------------------
    async def start_daily_audit(
        self, day: dt.date, requires_human_approval: Optional[bool] = None
    ) -> ExecutionResult:
        logger.info(f"Starting daily audit for {day}")
        return await self.engine(DailyAuditWorkflow.workflow_type).execute(
            WorkflowInput(date=day), self.engine_config(requires_human_approval)
        )

    async def start_routine(
        self, day: dt.date, requires_human_approval: Optional[bool] = None
    ) -> ExecutionResult:
        logger.info(f"Starting routine generation for {day}")
        return await self.engine(RoutineWorkflow.workflow_type).execute(
            WorkflowInput(date=day), self.engine_config(requires_human_approval)
        )

    async def approve(self, thread_id: str, approved: bool) -> ExecutionResult:
        engine = await self._engine_for(thread_id)
        return await engine.resume(thread_id, approved, self.engine_config())

    async def status(self, thread_id: str) -> StatusReport:
        engine = await self._engine_for(thread_id)
        return await engine.get_status(thread_id)

    async def cancel(self, thread_id: str) -> None:
        engine = await self._engine_for(thread_id)
        await engine.cancel(thread_id)

    async def history(self, thread_id: str) -> list[Checkpoint]:
        engine = await self._engine_for(thread_id)
        return await engine.history(thread_id)

    async def _engine_for(self, thread_id: str) -> WorkflowEngine:
        checkpoint = await self._checkpoints.load(thread_id)
        if checkpoint is None:
            raise ThreadNotFound(thread_id)
        return self.engine(checkpoint.workflow_type)

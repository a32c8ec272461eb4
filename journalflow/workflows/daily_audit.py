"""Daily audit workflow: analyze a day's notes and store a risk summary."""

from __future__ import annotations

import logging
from typing import Mapping

from pydantic import ValidationError

from ..constants import DEFAULT_APPROVAL_RISK_THRESHOLD
from ..contracts import (
    AuditAnalysis,
    ChatMessage,
    DailyAuditState,
    EngineConfig,
    WorkflowInput,
)
from ..errors import RepositoryError, TransientStepFailure
from ..llm import LLMService
from ..repositories import Repositories
from ..utils import parse_safe, sanitize_input
from .approval import check_approval, commit_allowed
from .base import Step, WorkflowDefinition

logger = logging.getLogger(__name__)

FETCH_NOTES = "fetch_notes"
ANALYZE_NOTES = "analyze_notes"
CHECK_APPROVAL = "check_approval"
SAVE_SUMMARY = "save_summary"

SYSTEM_PROMPT = "You are a mental health auditor. Respond with JSON only."

ANALYSIS_PROMPT = """\
Act as a "Daily Auditor" for emotional recovery and wellbeing.
Analyze the notes written today:
{context}

Return ONLY a valid JSON object with exactly this structure:
{{
  "summary": "Narrative summary of the day in one or two sentences",
  "riskLevel": 5,
  "keyInsights": [
    "First key observation",
    "Second key observation",
    "Third key observation"
  ]
}}

IMPORTANT:
- Do NOT add any text outside the JSON
- Do NOT add comments inside the JSON
- riskLevel must be a number between 1 and 10
- keyInsights must be an array of strings
"""


class DailyAuditWorkflow(WorkflowDefinition):
    """fetch_notes -> analyze_notes -> check_approval -> save_summary."""

    workflow_type = "daily_audit"
    state_model = DailyAuditState
    entry_node = FETCH_NOTES
    commit_node = SAVE_SUMMARY
    retryable_nodes = frozenset({ANALYZE_NOTES})

    def __init__(
        self,
        llm: LLMService,
        repositories: Repositories,
        approval_risk_threshold: int = DEFAULT_APPROVAL_RISK_THRESHOLD,
    ) -> None:
        self._llm = llm
        self._repositories = repositories
        self._approval_risk_threshold = approval_risk_threshold

    def steps(self) -> Mapping[str, Step]:
        return {
            FETCH_NOTES: self.fetch_notes,
            ANALYZE_NOTES: self.analyze_notes,
            CHECK_APPROVAL: self.check_approval,
            SAVE_SUMMARY: self.save_summary,
        }

    def initial_state(self, data: WorkflowInput, thread_id: str) -> DailyAuditState:
        return DailyAuditState(thread_id=thread_id, date=data.date)

    # ------------------------------------------------------------------
    # Steps
    async def fetch_notes(
        self, state: DailyAuditState, config: EngineConfig
    ) -> DailyAuditState:
        try:
            notes = await self._repositories.notes.find_notes_for_date(state.date)
        except Exception as exc:
            logger.error(
                f"Database error while fetching notes for thread={state.thread_id} "
                f"date={state.date}: {exc}"
            )
            raise RepositoryError(
                "Database temporarily unavailable - failed to fetch notes"
            ) from exc

        logger.info(f"Fetched {len(notes)} notes for thread={state.thread_id}")
        if not notes:
            return state.complete(notes=[])
        return state.advance(ANALYZE_NOTES, notes=list(notes))

    async def analyze_notes(
        self, state: DailyAuditState, config: EngineConfig
    ) -> DailyAuditState:
        context = "\n\n".join(sanitize_input(note.content) for note in state.notes)
        messages = [
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(role="user", content=ANALYSIS_PROMPT.format(context=context)),
        ]
        try:
            response = await self._llm.generate_response(messages)
        except Exception as exc:
            raise TransientStepFailure(f"LLM request failed: {exc}") from exc

        parsed = parse_safe(response, None)
        if not isinstance(parsed, dict):
            logger.warning(
                f"JSON parsing failed for thread={state.thread_id} "
                f"retry_count={state.retry_count}"
            )
            raise TransientStepFailure("Failed to parse LLM response as JSON")
        try:
            analysis = AuditAnalysis.model_validate(parsed)
        except (ValidationError, TypeError, ValueError) as exc:
            raise TransientStepFailure(f"LLM response has an invalid shape: {exc}") from exc

        logger.info(
            f"Analysis completed for thread={state.thread_id} "
            f"risk_level={analysis.risk_level}"
        )
        return state.advance(CHECK_APPROVAL, analysis=analysis)

    async def check_approval(
        self, state: DailyAuditState, config: EngineConfig
    ) -> DailyAuditState:
        return check_approval(
            state,
            config.requires_human_approval,
            self.needs_approval,
            SAVE_SUMMARY,
        )

    async def save_summary(
        self, state: DailyAuditState, config: EngineConfig
    ) -> DailyAuditState:
        if not commit_allowed(state):
            logger.info(f"Summary not saved for thread={state.thread_id}: not approved")
            return state.complete()
        if state.analysis is None:
            raise ValueError("Cannot save summary without analysis")

        try:
            await self._repositories.summaries.save_daily_summary(
                state.date,
                state.analysis.summary,
                state.analysis.risk_level,
                state.analysis.key_insights,
            )
        except Exception as exc:
            logger.error(
                f"Database error while saving summary for thread={state.thread_id}: {exc}"
            )
            raise RepositoryError(
                "Database temporarily unavailable - failed to save summary"
            ) from exc

        logger.info(f"Summary saved for thread={state.thread_id}")
        return state.complete()

    # ------------------------------------------------------------------
    def needs_approval(self, state: DailyAuditState) -> bool:
        return (
            state.analysis is not None
            and state.analysis.risk_level >= self._approval_risk_threshold
        )

"""Routine generation workflow with a validation feedback loop."""

from __future__ import annotations

import logging
from typing import Mapping

from ..constants import MAX_VALIDATION_ATTEMPTS
from ..contracts import (
    ChatMessage,
    EngineConfig,
    FormattedRoutine,
    RoutineActivity,
    RoutineAnalysis,
    RoutineState,
    WorkflowInput,
)
from ..errors import RepositoryError, ScheduleValidationFailure, TransientStepFailure
from ..llm import LLMService
from ..repositories import Repositories
from ..repositories.base import previous_day
from ..utils import parse_safe, sanitize_input
from .approval import check_approval, commit_allowed
from .base import Step, WorkflowDefinition
from .validation import normalize_schedule, validate_schedule

logger = logging.getLogger(__name__)

ANALYZER = "analyzer"
SCHEDULER = "scheduler"
VALIDATOR = "validator"
FORMATTER = "formatter"
CHECK_APPROVAL = "check_approval"
SAVE_ROUTINE = "save_routine"

NO_PREVIOUS_CONTEXT = "No previous data."
DEFAULT_RECOMMENDATION = "Establish a basic wellbeing routine"
DEFAULT_RISK_LEVEL = 5

SYSTEM_PROMPT = (
    "You are a mental health routine generator. Respond with valid JSON only."
)

SCHEDULE_PROMPT = """\
Act as a "Routine Generator" for emotional recovery and wellbeing.

Target date: {date}
Context from the previous day:
{context}

Risk level: {risk_level}/10
Recommendations:
{recommendations}

Generate a daily routine in JSON with these properties:
1. It must include activities that promote wellbeing and recovery
2. Activities must be in chronological order
3. Every activity has: time (HH:MM format), activity (description), expectedBenefit
4. Include at least 3 activities spread across the day

Strict JSON format:
{{
  "activities": [
    {{
      "time": "08:00",
      "activity": "Morning meditation",
      "expectedBenefit": "Reduce anxiety and start the day calmly"
    }}
  ]
}}

Return ONLY the JSON, with no additional text.
"""


class RoutineWorkflow(WorkflowDefinition):
    """analyzer -> scheduler <-> validator -> formatter -> check_approval -> save_routine."""

    workflow_type = "routine"
    state_model = RoutineState
    entry_node = ANALYZER
    commit_node = SAVE_ROUTINE
    retryable_nodes = frozenset({SCHEDULER})

    def __init__(self, llm: LLMService, repositories: Repositories) -> None:
        self._llm = llm
        self._repositories = repositories

    def steps(self) -> Mapping[str, Step]:
        return {
            ANALYZER: self.analyzer,
            SCHEDULER: self.scheduler,
            VALIDATOR: self.validator,
            FORMATTER: self.formatter,
            CHECK_APPROVAL: self.check_approval,
            SAVE_ROUTINE: self.save_routine,
        }

    def initial_state(self, data: WorkflowInput, thread_id: str) -> RoutineState:
        return RoutineState(thread_id=thread_id, date=data.date)

    # ------------------------------------------------------------------
    # Steps
    async def analyzer(self, state: RoutineState, config: EngineConfig) -> RoutineState:
        yesterday = previous_day(state.date)
        try:
            summary = await self._repositories.summaries.find_previous_summary(
                state.date
            )
        except Exception as exc:
            logger.error(
                f"Database error while loading summary for thread={state.thread_id}: {exc}"
            )
            raise RepositoryError(
                "Database temporarily unavailable - failed to load previous summary"
            ) from exc

        if summary is None:
            logger.info(f"No previous summary for thread={state.thread_id}, using defaults")
            return state.advance(
                SCHEDULER,
                yesterday_context=NO_PREVIOUS_CONTEXT,
                analysis_result=RoutineAnalysis(
                    risk_level=DEFAULT_RISK_LEVEL,
                    recommendations=[DEFAULT_RECOMMENDATION],
                ),
            )

        context = (
            f"Summary of the previous day ({yesterday.isoformat()}):\n"
            f"{summary.summary}\n\n"
            f"Risk level: {summary.risk_level}/10\n"
            f"Key points: {', '.join(summary.key_insights)}"
        )
        analysis = RoutineAnalysis(
            risk_level=summary.risk_level,
            recommendations=[f"Consider: {insight}" for insight in summary.key_insights],
        )
        logger.info(
            f"Using summary of {yesterday} for thread={state.thread_id} "
            f"risk_level={analysis.risk_level}"
        )
        return state.advance(
            SCHEDULER, yesterday_context=context, analysis_result=analysis
        )

    async def scheduler(self, state: RoutineState, config: EngineConfig) -> RoutineState:
        if state.analysis_result is None:
            raise ValueError("Cannot schedule without analysis result")

        recommendations = "\n".join(
            f"{position}. {sanitize_input(item)}"
            for position, item in enumerate(state.analysis_result.recommendations, 1)
        )
        prompt = SCHEDULE_PROMPT.format(
            date=state.date.isoformat(),
            context=sanitize_input(state.yesterday_context),
            risk_level=state.analysis_result.risk_level,
            recommendations=recommendations,
        )
        messages = [
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(role="user", content=prompt),
        ]
        try:
            response = await self._llm.generate_response(messages)
        except Exception as exc:
            raise TransientStepFailure(f"LLM request failed: {exc}") from exc

        parsed = parse_safe(response, None)
        if not isinstance(parsed, dict):
            raise TransientStepFailure("Failed to parse LLM response as JSON")

        schedule = normalize_schedule(parsed)
        logger.info(
            f"Schedule generated for thread={state.thread_id} "
            f"activities={len(schedule.get('activities') or [])}"
        )
        return state.advance(VALIDATOR, raw_schedule=schedule)

    async def validator(self, state: RoutineState, config: EngineConfig) -> RoutineState:
        if state.raw_schedule is None:
            raise ValueError("Cannot validate without raw schedule")

        attempts = state.validation_attempts + 1
        try:
            validate_schedule(state.raw_schedule)
        except ScheduleValidationFailure as exc:
            logger.warning(
                f"Schedule validation failed for thread={state.thread_id} "
                f"attempt={attempts}: {exc.feedback}"
            )
            if attempts >= MAX_VALIDATION_ATTEMPTS:
                return state.fail(
                    f"Schedule validation failed after {attempts} attempts. "
                    f"Last error: {exc.feedback}",
                    validation_attempts=attempts,
                )
            if state.analysis_result is None:
                raise ValueError("Analysis result is missing")
            analysis = state.analysis_result.model_copy(
                update={
                    "recommendations": [
                        *state.analysis_result.recommendations,
                        f"CORRECTION NEEDED: {exc.feedback}",
                    ]
                }
            )
            return state.advance(
                SCHEDULER, analysis_result=analysis, validation_attempts=attempts
            )

        logger.info(
            f"Schedule validation passed for thread={state.thread_id} attempt={attempts}"
        )
        return state.advance(
            FORMATTER,
            validated_schedule=state.raw_schedule,
            validation_attempts=attempts,
        )

    async def formatter(self, state: RoutineState, config: EngineConfig) -> RoutineState:
        if state.validated_schedule is None:
            raise ValueError("Cannot format without validated schedule")

        activities = [
            RoutineActivity(
                time=item["time"],
                activity=item["activity"],
                expected_benefit=str(item["expectedBenefit"]),
            )
            for item in state.validated_schedule["activities"]
        ]
        logger.info(
            f"Routine formatted for thread={state.thread_id} activities={len(activities)}"
        )
        return state.advance(
            CHECK_APPROVAL, formatted_routine=FormattedRoutine(activities=activities)
        )

    async def check_approval(
        self, state: RoutineState, config: EngineConfig
    ) -> RoutineState:
        return check_approval(
            state, config.requires_human_approval, self.needs_approval, SAVE_ROUTINE
        )

    async def save_routine(
        self, state: RoutineState, config: EngineConfig
    ) -> RoutineState:
        if not commit_allowed(state):
            logger.info(f"Routine not saved for thread={state.thread_id}: not approved")
            return state.complete()
        if state.formatted_routine is None:
            raise ValueError("Cannot save routine without formatted routine")

        try:
            await self._repositories.routines.save_routine(
                state.date, state.formatted_routine.activities
            )
        except Exception as exc:
            logger.error(f"Failed to save routine for thread={state.thread_id}: {exc}")
            raise RepositoryError(f"Failed to save routine: {exc}") from exc

        logger.info(f"Routine saved for thread={state.thread_id}")
        return state.complete()

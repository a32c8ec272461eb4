from __future__ import annotations

import asyncio
import logging
import random
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

from ..constants import (
    DEFAULT_BACKOFF_BASE_MS,
    DEFAULT_MAX_BACKOFF_SECONDS,
    DEFAULT_MAX_RETRIES,
)
from ..contracts import WorkflowState

logger = logging.getLogger(__name__)


def compute_backoff(
    attempt: int,
    base_ms: int = DEFAULT_BACKOFF_BASE_MS,
    cap: Optional[float] = DEFAULT_MAX_BACKOFF_SECONDS,
    jitter: float = 0.0,
) -> float:
    """Compute exponential backoff in seconds: ``2**attempt * base_ms``."""
    delay = (2**attempt) * base_ms / 1000
    if jitter:
        delay += random.uniform(0, jitter)
    if cap is not None:
        delay = min(delay, cap)
    return delay


async def schedule_retry(delay: float) -> None:
    """Sleep for computed backoff delay before retrying."""
    await asyncio.sleep(delay)


class RetryDecision(BaseModel):
    """Outcome of a failed step: retry after ``delay`` or give up."""

    model_config = ConfigDict(frozen=True)

    state: SerializeAsAny[WorkflowState]
    delay: Optional[float] = None

    @property
    def exhausted(self) -> bool:
        return self.delay is None


class RetryPolicy(BaseModel):
    """Per-step retry bound and backoff schedule.

    ``retry_count`` lives on the state so a reloaded thread keeps counting
    from where it stopped. The engine resets it once a step advances.
    """

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=1)
    base_ms: int = Field(default=DEFAULT_BACKOFF_BASE_MS, ge=0)
    max_backoff_seconds: Optional[float] = Field(
        default=DEFAULT_MAX_BACKOFF_SECONDS, ge=0
    )
    jitter_seconds: float = Field(default=0.0, ge=0)

    def on_failure(
        self,
        state: WorkflowState,
        node: str,
        error: BaseException,
        max_retries: Optional[int] = None,
    ) -> RetryDecision:
        limit = max_retries or self.max_retries
        retry_count = state.retry_count + 1
        message = str(error) or type(error).__name__
        if retry_count >= limit:
            logger.error(
                f"Step {node} exhausted retries for thread={state.thread_id} "
                f"after {retry_count} attempts: {message}"
            )
            return RetryDecision(
                state=state.fail(
                    f"{node} failed after {retry_count} retries: {message}",
                    retry_count=retry_count,
                )
            )

        delay = compute_backoff(
            retry_count,
            base_ms=self.base_ms,
            cap=self.max_backoff_seconds,
            jitter=self.jitter_seconds,
        )
        logger.warning(
            f"Step {node} failed for thread={state.thread_id}, retry {retry_count}"
            f"/{limit} in {delay:.2f}s: {message}"
        )
        return RetryDecision(
            state=state.model_copy(update={"retry_count": retry_count}),
            delay=delay,
        )

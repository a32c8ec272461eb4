"""Exception hierarchy for journalflow workflows."""

from __future__ import annotations


class JournalflowError(Exception):
    """Base class for all journalflow errors."""


class StorageUnavailable(JournalflowError):
    """Checkpoint storage could not be reached.

    The engine never retries these; they surface to the caller unchanged.
    """

    def __init__(self, message: str = "Storage temporarily unavailable") -> None:
        super().__init__(message)


class ThreadNotFound(JournalflowError):
    """No checkpoint exists for the requested thread."""

    def __init__(self, thread_id: str) -> None:
        super().__init__(f"Execution thread not found: {thread_id}")
        self.thread_id = thread_id


class InvalidState(JournalflowError):
    """The thread is not in a state that allows the requested operation."""


class TransientStepFailure(JournalflowError):
    """A retryable step failed (LLM call raised or its output was unusable)."""


class ScheduleValidationFailure(JournalflowError):
    """A generated schedule violated a structural rule."""

    def __init__(self, feedback: str) -> None:
        super().__init__(feedback)
        self.feedback = feedback


class RepositoryError(JournalflowError):
    """A data repository call failed inside a step."""

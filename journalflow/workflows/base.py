"""Workflow definition contract shared by all workflows."""

from __future__ import annotations

import abc
from typing import Any, Awaitable, Callable, ClassVar, FrozenSet, Mapping

from ..constants import AWAITING_APPROVAL_NODE
from ..contracts import EngineConfig, WorkflowInput, WorkflowState

Step = Callable[[Any, EngineConfig], Awaitable[WorkflowState]]


class WorkflowDefinition(abc.ABC):
    """A named graph of steps operating over one state model.

    Subclasses register their steps in :meth:`steps`; the engine looks the
    current node up in that mapping instead of branching on node names.
    """

    workflow_type: ClassVar[str]
    state_model: ClassVar[type[WorkflowState]]
    entry_node: ClassVar[str]
    commit_node: ClassVar[str]
    pause_nodes: ClassVar[FrozenSet[str]] = frozenset({AWAITING_APPROVAL_NODE})
    retryable_nodes: ClassVar[FrozenSet[str]] = frozenset()

    @abc.abstractmethod
    def steps(self) -> Mapping[str, Step]:
        """Return the node name to step coroutine mapping."""
        raise NotImplementedError

    @abc.abstractmethod
    def initial_state(self, data: WorkflowInput, thread_id: str) -> WorkflowState:
        """Build the state of a brand new thread."""
        raise NotImplementedError

    def restore(self, payload: dict[str, Any]) -> WorkflowState:
        """Rebuild a state from its checkpointed JSON form."""
        return self.state_model.model_validate(payload)

    def needs_approval(self, state: Any) -> bool:
        """Whether a human must sign off when the caller asked for approval."""
        return True

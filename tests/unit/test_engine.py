"""Engine behaviour exercised through a small synthetic workflow."""

import asyncio
import datetime as dt
from typing import List

import pytest

from journalflow.constants import CANCELLED_MESSAGE, END_NODE, TIMEOUT_MESSAGE
from journalflow.contracts import (
    ApprovalInput,
    EngineConfig,
    WorkflowInput,
    WorkflowState,
    WorkflowStatus,
)
from journalflow.engine import WorkflowEngine
from journalflow.errors import (
    InvalidState,
    StorageUnavailable,
    ThreadNotFound,
    TransientStepFailure,
)
from journalflow.persistence import InMemoryCheckpointStore
from journalflow.utils import RetryPolicy
from journalflow.workflows.approval import check_approval
from journalflow.workflows.base import WorkflowDefinition


class CounterState(WorkflowState):
    date: dt.date
    visits: List[str] = []
    requires_approval: bool = False
    approved: bool = False


class CounterWorkflow(WorkflowDefinition):
    workflow_type = "counter"
    state_model = CounterState
    entry_node = "first"
    commit_node = "commit"
    retryable_nodes = frozenset({"flaky"})

    def __init__(self, flaky_failures=0, hang=False, broken_commit=False, detour=False):
        self.flaky_failures = flaky_failures
        self.hang = hang
        self.broken_commit = broken_commit
        self.detour = detour
        self.calls = {"first": 0, "flaky": 0, "commit": 0}

    def steps(self):
        return {
            "first": self.first,
            "flaky": self.flaky,
            "gate": self.gate,
            "commit": self.commit,
        }

    def initial_state(self, data, thread_id):
        return CounterState(thread_id=thread_id, date=data.date)

    async def first(self, state, config):
        self.calls["first"] += 1
        if self.hang:
            await asyncio.sleep(5)
        if self.detour:
            return state.advance("nowhere")
        return state.advance("flaky", visits=[*state.visits, "first"])

    async def flaky(self, state, config):
        self.calls["flaky"] += 1
        if self.flaky_failures:
            self.flaky_failures -= 1
            raise TransientStepFailure("flaky")
        return state.advance("gate", visits=[*state.visits, "flaky"])

    async def gate(self, state, config):
        return check_approval(state, config.requires_human_approval, self.needs_approval, "commit")

    async def commit(self, state, config):
        self.calls["commit"] += 1
        if self.broken_commit:
            raise ValueError("commit exploded")
        return state.advance(END_NODE, visits=[*state.visits, "commit"])


class OtherWorkflow(CounterWorkflow):
    workflow_type = "other"


class FlakyStore(InMemoryCheckpointStore):
    """Fails every save after the first ``healthy_saves``."""

    def __init__(self, healthy_saves):
        super().__init__()
        self.healthy_saves = healthy_saves

    async def save(self, thread_id, state, node_id, workflow_type):
        if self.healthy_saves <= 0:
            raise StorageUnavailable()
        self.healthy_saves -= 1
        return await super().save(thread_id, state, node_id, workflow_type)


DAY = WorkflowInput(date=dt.date(2024, 1, 15))


def _engine(definition=None, store=None):
    return WorkflowEngine(definition or CounterWorkflow(), store or InMemoryCheckpointStore())


async def _nodes(engine, thread_id):
    return [c.node_id for c in await engine.history(thread_id)]


@pytest.mark.asyncio
async def test_runs_to_completion_with_checkpoint_per_transition():
    engine = _engine()
    result = await engine.execute(DAY)

    assert result.success
    assert result.status == WorkflowStatus.COMPLETED
    assert result.state.current_node == END_NODE
    assert result.state.visits == ["first", "flaky", "commit"]
    assert await _nodes(engine, result.thread_id) == ["start", "flaky", "gate", "commit", "end"]

    history = await engine.history(result.thread_id)
    assert history[-1].state["status"] == "completed"


@pytest.mark.asyncio
async def test_retries_persist_count_and_reset_on_success(retry_delays):
    engine = _engine(CounterWorkflow(flaky_failures=2))
    result = await engine.execute(DAY)

    assert result.status == WorkflowStatus.COMPLETED
    assert result.state.retry_count == 0
    assert retry_delays == [2.0, 4.0]

    history = await engine.history(result.thread_id)
    assert [c.node_id for c in history] == [
        "start", "flaky", "flaky", "flaky", "gate", "commit", "end"
    ]
    assert [c.state["retry_count"] for c in history] == [0, 0, 1, 2, 0, 0, 0]


@pytest.mark.asyncio
async def test_retry_bound_fails_workflow(retry_delays):
    definition = CounterWorkflow(flaky_failures=10)
    engine = _engine(definition)
    result = await engine.execute(DAY, EngineConfig(max_retries=2))

    assert not result.success
    assert result.status == WorkflowStatus.FAILED
    assert result.error == "flaky failed after 2 retries: flaky"
    assert definition.calls["flaky"] == 2
    assert retry_delays == [2.0]

    latest = (await engine.history(result.thread_id))[-1]
    assert latest.state["status"] == "failed"
    assert latest.state["retry_count"] == 2


@pytest.mark.asyncio
async def test_retry_backoff_cap_can_be_disabled(retry_delays):
    engine = WorkflowEngine(
        CounterWorkflow(flaky_failures=4),
        InMemoryCheckpointStore(),
        RetryPolicy(max_retries=5, max_backoff_seconds=None),
    )
    result = await engine.execute(DAY)
    assert result.status == WorkflowStatus.COMPLETED
    assert retry_delays == [2.0, 4.0, 8.0, 16.0]


@pytest.mark.asyncio
async def test_retry_policy_limit_applies_without_config_override(retry_delays):
    definition = CounterWorkflow(flaky_failures=10)
    engine = WorkflowEngine(
        definition, InMemoryCheckpointStore(), RetryPolicy(max_retries=5)
    )
    result = await engine.execute(DAY)

    assert result.status == WorkflowStatus.FAILED
    assert result.error == "flaky failed after 5 retries: flaky"
    assert definition.calls["flaky"] == 5
    assert len(retry_delays) == 4


@pytest.mark.asyncio
async def test_config_max_retries_overrides_policy(retry_delays):
    definition = CounterWorkflow(flaky_failures=10)
    engine = WorkflowEngine(
        definition, InMemoryCheckpointStore(), RetryPolicy(max_retries=5)
    )
    result = await engine.execute(DAY, EngineConfig(max_retries=1))

    assert result.error == "flaky failed after 1 retries: flaky"
    assert definition.calls["flaky"] == 1
    assert retry_delays == []


@pytest.mark.asyncio
async def test_restart_during_backoff_keeps_retry_count(retry_delays):
    store = InMemoryCheckpointStore()
    first_run = await _engine(CounterWorkflow(flaky_failures=1), store).execute(DAY)
    waiting = next(
        c
        for c in await store.list(first_run.thread_id)
        if c.node_id == "flaky" and c.state["retry_count"] == 1
    )

    # The process died while sleeping before the second attempt.
    retry_delays.clear()
    restarted = CounterWorkflow(flaky_failures=10)
    engine = _engine(restarted, store)
    result = await engine.execute(
        config=EngineConfig(thread_id=first_run.thread_id, checkpoint_id=waiting.id)
    )

    assert result.status == WorkflowStatus.FAILED
    assert result.error == "flaky failed after 3 retries: flaky"
    assert result.state.retry_count == 3
    # One attempt before the restart and two after it stay within max_retries=3.
    assert restarted.calls["flaky"] == 2
    assert retry_delays == [4.0]


@pytest.mark.asyncio
async def test_pause_and_approve_commits_once():
    definition = CounterWorkflow()
    engine = _engine(definition)
    paused = await engine.execute(DAY, EngineConfig(requires_human_approval=True))

    assert paused.success
    assert paused.status == WorkflowStatus.PAUSED
    assert paused.state.current_node == "awaiting_approval"
    assert paused.state.requires_approval
    assert definition.calls["commit"] == 0

    resumed = await engine.resume(paused.thread_id, ApprovalInput(approved=True))
    assert resumed.status == WorkflowStatus.COMPLETED
    assert resumed.state.approved
    assert definition.calls["commit"] == 1

    with pytest.raises(InvalidState):
        await engine.resume(paused.thread_id, True)
    assert definition.calls["commit"] == 1


@pytest.mark.asyncio
async def test_rejection_completes_without_commit():
    definition = CounterWorkflow()
    engine = _engine(definition)
    paused = await engine.execute(DAY, EngineConfig(requires_human_approval=True))

    result = await engine.resume(paused.thread_id, False)
    assert result.status == WorkflowStatus.COMPLETED
    assert result.state.approved is False
    assert result.state.current_node == END_NODE
    assert definition.calls["commit"] == 0


@pytest.mark.asyncio
async def test_resume_persists_decision_before_running():
    engine = _engine(CounterWorkflow(broken_commit=True))
    paused = await engine.execute(DAY, EngineConfig(requires_human_approval=True))

    result = await engine.resume(paused.thread_id, True)
    assert result.status == WorkflowStatus.FAILED
    assert result.error == "commit exploded"

    history = await engine.history(paused.thread_id)
    approved = history[-2]
    assert approved.node_id == "commit"
    assert approved.state["approved"] is True
    assert approved.state["status"] == "running"


@pytest.mark.asyncio
async def test_resume_rejects_running_and_unknown_threads():
    engine = _engine()
    done = await engine.execute(DAY)
    with pytest.raises(InvalidState):
        await engine.resume(done.thread_id, True)
    with pytest.raises(ThreadNotFound):
        await engine.resume("missing", True)


@pytest.mark.asyncio
async def test_step_exception_becomes_failed_state():
    engine = _engine(CounterWorkflow(broken_commit=True))
    result = await engine.execute(DAY)

    assert not result.success
    assert result.error == "commit exploded"
    assert result.state.current_node == "commit"
    status = await engine.get_status(result.thread_id)
    assert status.status == WorkflowStatus.FAILED


@pytest.mark.asyncio
async def test_unknown_node_fails_workflow():
    engine = _engine(CounterWorkflow(detour=True))
    result = await engine.execute(DAY)
    assert result.status == WorkflowStatus.FAILED
    assert result.error == "Unknown node: nowhere"


@pytest.mark.asyncio
async def test_storage_failure_propagates():
    engine = _engine(store=FlakyStore(healthy_saves=1))
    with pytest.raises(StorageUnavailable):
        await engine.execute(DAY)


@pytest.mark.asyncio
async def test_timeout_fails_with_last_complete_state():
    engine = _engine(CounterWorkflow(hang=True))
    result = await engine.execute(DAY, EngineConfig(timeout=0.05))

    assert result.status == WorkflowStatus.FAILED
    assert result.error == TIMEOUT_MESSAGE
    assert result.state.current_node == "start"
    latest = (await engine.history(result.thread_id))[-1]
    assert latest.state["error"] == TIMEOUT_MESSAGE


@pytest.mark.asyncio
async def test_cancel_is_idempotent():
    engine = _engine()
    paused = await engine.execute(DAY, EngineConfig(requires_human_approval=True))

    await engine.cancel(paused.thread_id)
    status = await engine.get_status(paused.thread_id)
    assert status.status == WorkflowStatus.FAILED
    assert status.state.error == CANCELLED_MESSAGE

    count = len(await engine.history(paused.thread_id))
    await engine.cancel(paused.thread_id)
    assert len(await engine.history(paused.thread_id)) == count

    with pytest.raises(ThreadNotFound):
        await engine.cancel("missing")


@pytest.mark.asyncio
async def test_continue_from_specific_checkpoint():
    definition = CounterWorkflow()
    engine = _engine(definition)
    done = await engine.execute(DAY)
    gate = next(c for c in await engine.history(done.thread_id) if c.node_id == "gate")

    replay = await engine.execute(
        config=EngineConfig(thread_id=done.thread_id, checkpoint_id=gate.id)
    )
    assert replay.status == WorkflowStatus.COMPLETED
    assert replay.state.visits == ["first", "flaky", "commit"]
    assert definition.calls["first"] == 1
    assert definition.calls["commit"] == 2


@pytest.mark.asyncio
async def test_thread_of_another_workflow_is_rejected():
    store = InMemoryCheckpointStore()
    done = await _engine(store=store).execute(DAY)
    other = WorkflowEngine(OtherWorkflow(), store)
    with pytest.raises(InvalidState):
        await other.execute(config=EngineConfig(thread_id=done.thread_id))


@pytest.mark.asyncio
async def test_missing_input_and_history():
    engine = _engine()
    with pytest.raises(ValueError):
        await engine.execute()
    with pytest.raises(ThreadNotFound):
        await engine.history("missing")
    with pytest.raises(ThreadNotFound):
        await engine.get_status("missing")

"""Example showing a daily audit that pauses for approval and resumes.

Checkpoints go to a local SQLite file, so the approval can also be given
later from the CLI:

    journalflow workflow approve <thread_id>
"""

import asyncio
import datetime as dt
import sys

from journalflow import EngineConfig, WorkflowEngine, WorkflowInput, WorkflowStatus
from journalflow.contracts import Note
from journalflow.llm import PydanticAIService
from journalflow.persistence import SQLiteCheckpointStore
from journalflow.repositories import in_memory_repositories
from journalflow.workflows import DailyAuditWorkflow


async def main():
    model = sys.argv[1] if len(sys.argv) > 1 else "ollama:llama3.1"
    today = dt.date.today()

    repositories = in_memory_repositories()
    await repositories.notes.add_note(Note(content="Slept badly and skipped lunch."))
    await repositories.notes.add_note(Note(content="Felt better after a walk."))

    engine = WorkflowEngine(
        DailyAuditWorkflow(PydanticAIService(model), repositories),
        SQLiteCheckpointStore("checkpoints.db"),
    )
    result = await engine.execute(
        WorkflowInput(date=today), EngineConfig(requires_human_approval=True)
    )
    print(f"Thread {result.thread_id}: {result.status.value}")

    if result.status == WorkflowStatus.PAUSED:
        answer = input(f"Risk level {result.state.analysis.risk_level}/10. Save? [y/N] ")
        result = await engine.resume(result.thread_id, answer.lower() == "y")
        print(f"Thread {result.thread_id}: {result.status.value}")

    for checkpoint in await engine.history(result.thread_id):
        print(f"  {checkpoint.created_at:%H:%M:%S.%f} {checkpoint.node_id}")


if __name__ == "__main__":
    asyncio.run(main())

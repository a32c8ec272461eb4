"""Command line interface for running journalflow workflows."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from pathlib import Path
from typing import Optional

import typer

from .config import load_config
from .contracts import ExecutionResult, Note, WorkflowStatus
from .errors import JournalflowError
from .service import WorkflowService

app = typer.Typer(help="CLI for journalflow workflows")

# Command groups
audit_app = typer.Typer(help="Daily audit of journal notes")
routine_app = typer.Typer(help="Wellbeing routine generation")
workflow_app = typer.Typer(help="Inspect and control workflow threads")
notes_app = typer.Typer(help="Manage journal notes")

app.add_typer(audit_app, name="audit")
app.add_typer(routine_app, name="routine")
app.add_typer(workflow_app, name="workflow")
app.add_typer(notes_app, name="notes")

DATE_FORMATS = ["%Y-%m-%d"]


def build_service(config_path: Optional[str] = None) -> WorkflowService:
    return WorkflowService.from_config(load_config(config_path))


def _service(ctx: typer.Context) -> WorkflowService:
    obj = ctx.obj or {}
    return build_service(obj.get("config_path"))


def _day(value: Optional[dt.datetime]) -> dt.date:
    return value.date() if value else dt.date.today()


def _run(coro):
    try:
        return asyncio.run(coro)
    except JournalflowError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _echo_result(result: ExecutionResult) -> None:
    typer.echo(f"Thread: {result.thread_id}")
    typer.echo(f"Status: {result.status.value}")
    if result.error:
        typer.secho(f"Error: {result.error}", fg=typer.colors.RED)
    if result.status == WorkflowStatus.PAUSED:
        typer.echo(
            f"Awaiting approval: journalflow workflow approve {result.thread_id}"
        )
    if not result.success:
        raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, help="Path to a YAML config file"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
) -> None:
    """journalflow CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config_path": str(config) if config else None}


@audit_app.command("run")
def audit_run(
    ctx: typer.Context,
    date: Optional[dt.datetime] = typer.Option(
        None, formats=DATE_FORMATS, help="Day to audit (default: today)"
    ),
    approval: Optional[bool] = typer.Option(
        None, "--approval/--no-approval", help="Pause high-risk summaries for review"
    ),
) -> None:
    """
    Analyze the notes of a day and store a risk summary.

    Example:
        journalflow audit run --date 2024-01-15 --approval
    """
    service = _service(ctx)
    result = _run(service.start_daily_audit(_day(date), approval))
    _echo_result(result)
    analysis = getattr(result.state, "analysis", None)
    if analysis is not None:
        typer.echo(f"Risk level: {analysis.risk_level}/10")
        typer.echo(f"Summary: {analysis.summary}")


@routine_app.command("run")
def routine_run(
    ctx: typer.Context,
    date: Optional[dt.datetime] = typer.Option(
        None, formats=DATE_FORMATS, help="Day to plan (default: today)"
    ),
    approval: Optional[bool] = typer.Option(
        None, "--approval/--no-approval", help="Pause the routine for review"
    ),
) -> None:
    """
    Generate a routine for a day from the previous day's summary.

    Example:
        journalflow routine run --date 2024-01-16
    """
    service = _service(ctx)
    result = _run(service.start_routine(_day(date), approval))
    _echo_result(result)
    routine = getattr(result.state, "formatted_routine", None)
    if routine is not None:
        for activity in routine.activities:
            typer.echo(f"{activity.time}  {activity.activity}")


@workflow_app.command("approve")
def workflow_approve(ctx: typer.Context, thread_id: str) -> None:
    """Approve a paused thread and let it commit its result."""
    result = _run(_service(ctx).approve(thread_id, True))
    _echo_result(result)


@workflow_app.command("reject")
def workflow_reject(ctx: typer.Context, thread_id: str) -> None:
    """Reject a paused thread; it completes without committing anything."""
    result = _run(_service(ctx).approve(thread_id, False))
    _echo_result(result)


@workflow_app.command("status")
def workflow_status(ctx: typer.Context, thread_id: str) -> None:
    """Show the latest state of a thread."""
    report = _run(_service(ctx).status(thread_id))
    state = report.state
    typer.echo(f"Thread {state.thread_id}: {report.status.value}")
    typer.echo(f"Node: {state.current_node}")
    typer.echo(f"Retries: {state.retry_count}")
    if state.error:
        typer.echo(f"Error: {state.error}")


@workflow_app.command("cancel")
def workflow_cancel(ctx: typer.Context, thread_id: str) -> None:
    """Cancel a running or paused thread."""
    _run(_service(ctx).cancel(thread_id))
    typer.echo(f"Cancelled {thread_id}")


@workflow_app.command("history")
def workflow_history(ctx: typer.Context, thread_id: str) -> None:
    """
    List every checkpoint of a thread, oldest first.

    Example:
        journalflow workflow history 6f1c...
        # Output: 2024-01-15T10:00:00+00:00  start              running
        #         2024-01-15T10:00:01+00:00  analyze_notes      running
    """
    checkpoints = _run(_service(ctx).history(thread_id))
    for checkpoint in checkpoints:
        status = checkpoint.state.get("status", "")
        typer.echo(
            f"{checkpoint.created_at.isoformat()}\t{checkpoint.node_id}\t{status}"
        )


@notes_app.command("add")
def notes_add(
    ctx: typer.Context,
    content: str,
    date: Optional[dt.datetime] = typer.Option(
        None, formats=DATE_FORMATS, help="Day the note belongs to (default: now)"
    ),
) -> None:
    """Store a journal note."""
    created_at = (
        dt.datetime.combine(date.date(), dt.time(12), tzinfo=dt.timezone.utc)
        if date
        else dt.datetime.now(dt.timezone.utc)
    )
    note = Note(content=content, created_at=created_at)
    _run(_service(ctx).repositories.notes.add_note(note))
    typer.echo(f"Note {note.id} saved for {created_at.date()}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()

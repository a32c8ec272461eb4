"""Shared fixtures: scripted LLM, in-memory stores and instant retries."""

import datetime as dt
import json

import pytest

from journalflow.contracts import Note
from journalflow.persistence import InMemoryCheckpointStore
from journalflow.repositories import in_memory_repositories
from journalflow.utils import retry


class ScriptedLLM:
    """LLM stand-in that replays canned responses in order.

    An exception instance in the script is raised instead of returned.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def generate_response(self, messages):
        self.calls.append(list(messages))
        if not self.responses:
            raise RuntimeError("no scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def prompt(self, call: int = -1) -> str:
        return "\n".join(m.content for m in self.calls[call] if m.role == "user")


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


@pytest.fixture(autouse=True)
def retry_delays(monkeypatch):
    """Record backoff delays instead of sleeping."""
    delays = []

    async def _no_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(retry, "schedule_retry", _no_sleep)
    return delays


@pytest.fixture
def repositories():
    return in_memory_repositories()


@pytest.fixture
def checkpoints():
    return InMemoryCheckpointStore()


@pytest.fixture
def audit_day():
    return dt.date(2024, 1, 15)


@pytest.fixture
def add_notes(repositories):
    async def _add(day, *contents):
        for hour, content in enumerate(contents, start=8):
            await repositories.notes.add_note(
                Note(
                    content=content,
                    created_at=dt.datetime.combine(
                        day, dt.time(hour), tzinfo=dt.timezone.utc
                    ),
                )
            )

    return _add


def analysis_json(risk_level=3, summary="Calm day overall", insights=None):
    return json.dumps(
        {
            "summary": summary,
            "riskLevel": risk_level,
            "keyInsights": insights or ["Slept well", "Walked outside"],
        }
    )


def schedule_json(activities=None):
    return json.dumps(
        {
            "activities": activities
            or [
                {
                    "time": "08:00",
                    "activity": "Morning meditation",
                    "expectedBenefit": "Start the day calmly",
                },
                {
                    "time": "13:00",
                    "activity": "Walk after lunch",
                    "expectedBenefit": "Release tension",
                },
                {
                    "time": "21:30",
                    "activity": "Evening journaling",
                    "expectedBenefit": "Process the day",
                },
            ]
        }
    )


@pytest.fixture
def make_analysis():
    return analysis_json


@pytest.fixture
def make_schedule():
    return schedule_json

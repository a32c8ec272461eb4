"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from journalflow.config import load_config
from journalflow.repositories import InMemoryNoteRepository, get_repositories

ENV_VARS = [
    "JOURNALFLOW_CONFIG",
    "JOURNALFLOW_DATABASE_URL",
    "DATABASE_URL",
    "JOURNALFLOW_DATA_URL",
    "AGENT_MAX_RETRIES",
    "AGENT_TIMEOUT_MS",
    "AGENT_REQUIRE_APPROVAL",
    "JOURNALFLOW_LLM_MODEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_file(tmp_path):
    config = load_config(str(tmp_path / "absent.yaml"))
    assert config.engine.max_retries == 3
    assert config.engine.timeout_seconds == 300
    assert config.engine.requires_human_approval is False
    assert config.engine.max_backoff_seconds == 10
    assert config.engine.approval_risk_threshold == 7
    assert config.database_url is None


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
engine:
  max_retries: 5
  requires_human_approval: true
  max_backoff_seconds: null
llm:
  model: "test"
database_url: "sqlite:///tmp/checkpoints.db"
"""
    )
    monkeypatch.setenv("JOURNALFLOW_CONFIG", str(config_path))

    config = load_config()
    assert config.engine.max_retries == 5
    assert config.engine.requires_human_approval is True
    assert config.engine.max_backoff_seconds is None
    assert config.llm.model == "test"
    assert config.database_url == "sqlite:///tmp/checkpoints.db"


def test_agent_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("AGENT_MAX_RETRIES", "4")
    monkeypatch.setenv("AGENT_TIMEOUT_MS", "60000")
    monkeypatch.setenv("AGENT_REQUIRE_APPROVAL", "true")
    monkeypatch.setenv("JOURNALFLOW_LLM_MODEL", "openai:gpt-4o-mini")
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/journal")

    config = load_config(str(tmp_path / "absent.yaml"))
    assert config.engine.max_retries == 4
    assert config.engine.timeout_seconds == 60
    assert config.engine.requires_human_approval is True
    assert config.llm.model == "openai:gpt-4o-mini"
    assert config.database_url == "postgresql://localhost/journal"


@pytest.mark.parametrize(
    "name,value",
    [("AGENT_MAX_RETRIES", "0"), ("AGENT_MAX_RETRIES", "11"), ("AGENT_TIMEOUT_MS", "700000")],
)
def test_out_of_range_values_are_rejected(tmp_path, monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        load_config(str(tmp_path / "absent.yaml"))


def test_get_repositories_uses_config(tmp_path, monkeypatch):
    monkeypatch.setenv("JOURNALFLOW_CONFIG", str(tmp_path / "absent.yaml"))
    repositories = get_repositories()
    assert isinstance(repositories.notes, InMemoryNoteRepository)

    with pytest.raises(ValueError):
        get_repositories("redis://localhost")

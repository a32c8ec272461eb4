from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_APPROVAL_RISK_THRESHOLD,
    DEFAULT_BACKOFF_BASE_MS,
    DEFAULT_MAX_BACKOFF_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT_SECONDS,
)


class EngineSettings(BaseModel):
    """Defaults applied to every workflow execution."""

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=1, le=10)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, ge=1, le=600)
    requires_human_approval: bool = False
    backoff_base_ms: int = Field(default=DEFAULT_BACKOFF_BASE_MS, ge=0)
    # None disables the cap and restores plain 2**n second backoff.
    max_backoff_seconds: Optional[float] = Field(
        default=DEFAULT_MAX_BACKOFF_SECONDS, ge=0
    )
    jitter_seconds: float = Field(default=0.0, ge=0)
    approval_risk_threshold: int = Field(
        default=DEFAULT_APPROVAL_RISK_THRESHOLD, ge=1, le=10
    )


class LLMSettings(BaseModel):
    """Configuration for the LLM service."""

    model: str = "ollama:llama3.1"


class JournalflowConfig(BaseModel):
    """Top-level configuration model."""

    engine: EngineSettings = EngineSettings()
    llm: LLMSettings = LLMSettings()
    database_url: Optional[str] = None
    data_url: Optional[str] = None


def load_config(path: Optional[str] = None) -> JournalflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to JOURNALFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("JOURNALFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    engine = dict(data.get("engine") or {})
    if os.getenv("AGENT_MAX_RETRIES"):
        engine["max_retries"] = int(os.environ["AGENT_MAX_RETRIES"])
    if os.getenv("AGENT_TIMEOUT_MS"):
        engine["timeout_seconds"] = int(os.environ["AGENT_TIMEOUT_MS"]) / 1000
    if os.getenv("AGENT_REQUIRE_APPROVAL"):
        engine["requires_human_approval"] = (
            os.environ["AGENT_REQUIRE_APPROVAL"].lower() == "true"
        )
    data["engine"] = engine

    if os.getenv("JOURNALFLOW_LLM_MODEL"):
        data["llm"] = {**(data.get("llm") or {}), "model": os.environ["JOURNALFLOW_LLM_MODEL"]}

    # Ranges are validated here; out-of-range env values raise ValidationError.
    config = JournalflowConfig(**data)

    env_db_url = os.getenv("JOURNALFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_data_url = os.getenv("JOURNALFLOW_DATA_URL")
    if env_data_url:
        config.data_url = env_data_url
    return config

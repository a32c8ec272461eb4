"""LLM service backed by a pydantic-ai agent."""

from __future__ import annotations

import logging
from typing import Sequence

from pydantic_ai import Agent
from pydantic_ai.models import Model

from ..contracts import ChatMessage
from .base import LLMService

logger = logging.getLogger(__name__)


class PydanticAIService(LLMService):
    """Run each request through a fresh :class:`pydantic_ai.Agent`.

    System messages become the agent's system prompt; the remaining messages
    are joined, in order, into the user prompt.
    """

    def __init__(self, model: str | Model) -> None:
        self._model = model

    def _build_agent(self, system_prompts: Sequence[str]) -> Agent:
        return Agent(self._model, system_prompt=tuple(system_prompts))

    async def generate_response(self, messages: Sequence[ChatMessage]) -> str:
        system_prompts = [m.content for m in messages if m.role == "system"]
        prompt = "\n\n".join(m.content for m in messages if m.role != "system")
        agent = self._build_agent(system_prompts)
        result = await agent.run(prompt)
        output = result.output
        logger.debug(f"LLM returned {len(str(output))} characters")
        return output if isinstance(output, str) else str(output)

"""LLM service interface consumed by workflow steps."""

from __future__ import annotations

from typing import Protocol, Sequence

from ..contracts import ChatMessage


class LLMService(Protocol):
    """Produce a raw text completion for role-tagged messages."""

    async def generate_response(self, messages: Sequence[ChatMessage]) -> str:
        """Return the model's text response; may raise on transport errors."""

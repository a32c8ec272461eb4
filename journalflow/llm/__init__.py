"""LLM service adapters."""

from .base import LLMService
from .pydantic_ai_service import PydanticAIService

__all__ = ["LLMService", "PydanticAIService"]

"""Completion services."""

from waffle_intel.infrastructure.llm.base import (
    LLMResponse,
    LLMServiceBase,
    LLMUsage,
    Message,
    MessageRole,
)
from waffle_intel.infrastructure.llm.openai_llm import OpenAILLMService

__all__ = [
    "LLMResponse",
    "LLMServiceBase",
    "LLMUsage",
    "Message",
    "MessageRole",
    "OpenAILLMService",
]

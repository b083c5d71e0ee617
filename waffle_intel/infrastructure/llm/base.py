"""Abstract base class for chat-completion services."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum


class MessageRole(str, Enum):
    """Role of a message in the conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """A message in the conversation."""

    role: MessageRole
    content: str

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)


@dataclass
class LLMUsage:
    """Token usage statistics."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class LLMResponse:
    """Buffered completion result."""

    content: str
    finish_reason: str
    usage: LLMUsage
    model: str


class LLMServiceBase(ABC):
    """Abstract base class for completion services.

    Implementations should handle:
    - OpenAI chat completions
    - OpenAI-compatible endpoints
    """

    @abstractmethod
    async def generate(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int = 1024,
        json_mode: bool = False,
        model: str | None = None,
    ) -> LLMResponse:
        """Generate a complete response.

        Args:
            messages: Conversation messages.
            temperature: Sampling temperature (0.0-2.0).
            max_tokens: Maximum tokens to generate.
            json_mode: Force a single JSON object as output.
            model: Optional model override.

        Returns:
            The full response with usage.
        """

    @abstractmethod
    def generate_stream(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int = 1024,
        model: str | None = None,
    ) -> AsyncIterator[str]:
        """Generate a response as a stream of text increments.

        Yields:
            Text fragments in generation order.
        """

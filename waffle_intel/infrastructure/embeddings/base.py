"""Abstract base class for text embedding services."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class EmbeddingResult:
    """One embedding vector and how it was produced."""

    vector: list[float]
    dimensions: int
    model: str
    tokens_used: int | None = None


class EmbeddingServiceBase(ABC):
    """Abstract base class for text embedding generation.

    Implementations should handle:
    - OpenAI text-embedding-3 models
    - OpenAI-compatible endpoints serving the same dimensions
    """

    @abstractmethod
    async def embed_text(self, text: str) -> EmbeddingResult:
        """Embed a single text.

        Args:
            text: Text to embed. Empty input is embedded as a single space.

        Returns:
            Embedding result with a vector of ``dimensions`` floats.
        """

    @abstractmethod
    async def embed_texts(self, texts: list[str]) -> list[EmbeddingResult]:
        """Embed several texts in as few requests as possible.

        Returns:
            Results in the same order as ``texts``.
        """

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Length of every vector this service returns."""

"""Text embedding services."""

from waffle_intel.infrastructure.embeddings.base import (
    EmbeddingResult,
    EmbeddingServiceBase,
)
from waffle_intel.infrastructure.embeddings.openai_embeddings import (
    OpenAIEmbeddingService,
)

__all__ = ["EmbeddingResult", "EmbeddingServiceBase", "OpenAIEmbeddingService"]

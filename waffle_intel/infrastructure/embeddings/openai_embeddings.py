"""OpenAI implementation of the text embedding service."""

from typing import ClassVar

from openai import AsyncOpenAI
from openai.types import CreateEmbeddingResponse

from waffle_intel.commons.telemetry import timed
from waffle_intel.infrastructure.embeddings.base import (
    EmbeddingResult,
    EmbeddingServiceBase,
)
from waffle_intel.infrastructure.resilience import RetryPolicy, call_with_retry


def _sanitize(text: str) -> str:
    # The API rejects empty strings.
    return text if text.strip() else " "


class OpenAIEmbeddingService(EmbeddingServiceBase):
    """Embeds text with OpenAI's text-embedding models."""

    _MODEL_DIMENSIONS: ClassVar[dict[str, int]] = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }
    _MAX_BATCH: ClassVar[int] = 2048

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str | None = None,
        dimensions: int | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the embedding client.

        Args:
            api_key: OpenAI API key.
            model: Embedding model.
            base_url: Optional OpenAI-compatible endpoint.
            dimensions: Vector length. Defaults to the model's native size.
            retry_policy: Timeout and retry bounds per request.
        """
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        self._model = model
        self._dimensions = dimensions or self._MODEL_DIMENSIONS.get(model, 1536)
        self._policy = retry_policy or RetryPolicy(timeout_seconds=30.0)

    @timed(operation="embedding")
    async def embed_text(self, text: str) -> EmbeddingResult:
        results = await self._embed_batch([_sanitize(text)])
        return results[0]

    async def embed_texts(self, texts: list[str]) -> list[EmbeddingResult]:
        sanitized = [_sanitize(t) for t in texts]
        results: list[EmbeddingResult] = []
        for i in range(0, len(sanitized), self._MAX_BATCH):
            results.extend(await self._embed_batch(sanitized[i : i + self._MAX_BATCH]))
        return results

    async def _embed_batch(self, batch: list[str]) -> list[EmbeddingResult]:
        async def _request() -> CreateEmbeddingResponse:
            # Only the text-embedding-3 family accepts a dimensions override.
            if self._model.startswith("text-embedding-3"):
                return await self._client.embeddings.create(
                    model=self._model,
                    input=batch,
                    dimensions=self._dimensions,
                )
            return await self._client.embeddings.create(model=self._model, input=batch)

        response = await call_with_retry(_request, self._policy, "embedding")
        tokens_per_item = (
            response.usage.total_tokens // len(batch) if response.usage else None
        )
        ordered = sorted(response.data, key=lambda d: d.index)
        return [
            EmbeddingResult(
                vector=list(item.embedding),
                dimensions=len(item.embedding),
                model=self._model,
                tokens_used=tokens_per_item,
            )
            for item in ordered
        ]

    @property
    def dimensions(self) -> int:
        return self._dimensions

"""OpenAI implementation of the completion service."""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion, ChatCompletionMessageParam

from waffle_intel.commons.telemetry import get_logger, timed
from waffle_intel.infrastructure.llm.base import (
    LLMResponse,
    LLMServiceBase,
    LLMUsage,
    Message,
)
from waffle_intel.infrastructure.resilience import RetryPolicy, call_with_retry

logger = get_logger(__name__)


class OpenAILLMService(LLMServiceBase):
    """Chat completions through the OpenAI API, buffered or streamed."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        stream_model: str | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the OpenAI client.

        Args:
            api_key: OpenAI API key.
            model: Default model for buffered completions.
            base_url: Optional OpenAI-compatible endpoint.
            stream_model: Default model for streamed completions.
            retry_policy: Timeout and retry bounds per request.
        """
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        self._model = model
        self._stream_model = stream_model or model
        self._policy = retry_policy or RetryPolicy()

    @timed(operation="completion")
    async def generate(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int = 1024,
        json_mode: bool = False,
        model: str | None = None,
    ) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": model or self._model,
            "messages": self._convert_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        async def _request() -> ChatCompletion:
            return await self._client.chat.completions.create(**kwargs)

        response = await call_with_retry(_request, self._policy, "completion")
        choice = response.choices[0]
        usage = response.usage
        return LLMResponse(
            content=choice.message.content or "",
            finish_reason=choice.finish_reason or "stop",
            usage=LLMUsage(
                prompt_tokens=usage.prompt_tokens if usage else 0,
                completion_tokens=usage.completion_tokens if usage else 0,
                total_tokens=usage.total_tokens if usage else 0,
            ),
            model=response.model,
        )

    async def generate_stream(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int = 1024,
        model: str | None = None,
    ) -> AsyncIterator[str]:
        openai_messages = self._convert_messages(messages)
        use_model = model or self._stream_model

        async def _open() -> Any:
            return await self._client.chat.completions.create(
                model=use_model,
                messages=openai_messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )

        # Only opening the stream is retried; a stream that fails midway
        # has already delivered tokens to subscribers.
        stream = await call_with_retry(_open, self._policy, "completion_stream")
        async with asyncio.timeout(self._policy.timeout_seconds):
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content

    @staticmethod
    def _convert_messages(messages: list[Message]) -> list[ChatCompletionMessageParam]:
        return [
            {"role": msg.role.value, "content": msg.content}  # type: ignore[misc]
            for msg in messages
        ]

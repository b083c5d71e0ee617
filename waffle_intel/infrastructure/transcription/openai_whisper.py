"""OpenAI Whisper implementation of the transcription service."""

from pathlib import Path
from typing import Any, cast

from openai import AsyncOpenAI

from waffle_intel.commons.telemetry import get_logger, timed
from waffle_intel.infrastructure.resilience import RetryPolicy, call_with_retry
from waffle_intel.infrastructure.transcription.base import (
    TranscriptionResult,
    TranscriptionServiceBase,
)

logger = get_logger(__name__)


class OpenAIWhisperTranscription(TranscriptionServiceBase):
    """Transcribes audio with the OpenAI audio transcription endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "whisper-1",
        base_url: str | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the Whisper client.

        Args:
            api_key: OpenAI API key.
            model: Transcription model.
            base_url: Optional OpenAI-compatible endpoint.
            retry_policy: Timeout and retry bounds per request.
        """
        # Retries are owned by call_with_retry, not the SDK.
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        self._model = model
        self._policy = retry_policy or RetryPolicy(timeout_seconds=120.0)

    @timed(operation="transcription")
    async def transcribe(
        self,
        audio_path: Path,
        language_hint: str | None = None,
    ) -> TranscriptionResult:
        async def _request() -> Any:
            with audio_path.open("rb") as audio_file:
                # The SDK's overloads don't accept a variable response_format.
                create_fn = cast("Any", self._client.audio.transcriptions.create)
                kwargs: dict[str, Any] = {
                    "model": self._model,
                    "file": audio_file,
                    "response_format": "verbose_json",
                }
                if language_hint:
                    kwargs["language"] = language_hint
                return await create_fn(**kwargs)

        response = await call_with_retry(_request, self._policy, "transcription")

        duration = getattr(response, "duration", None)
        result = TranscriptionResult(
            full_text=(getattr(response, "text", "") or "").strip(),
            language=getattr(response, "language", None) or language_hint,
            duration_seconds=float(duration) if duration is not None else None,
        )
        logger.debug(
            "Transcription returned",
            extra={
                "characters": len(result.full_text),
                "language": result.language,
            },
        )
        return result

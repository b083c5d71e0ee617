"""Speech-to-text services."""

from waffle_intel.infrastructure.transcription.base import (
    TranscriptionResult,
    TranscriptionServiceBase,
)
from waffle_intel.infrastructure.transcription.openai_whisper import (
    OpenAIWhisperTranscription,
)

__all__ = [
    "OpenAIWhisperTranscription",
    "TranscriptionResult",
    "TranscriptionServiceBase",
]

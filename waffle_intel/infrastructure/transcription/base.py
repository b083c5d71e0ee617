"""Abstract base class for speech-to-text services."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass
class TranscriptionResult:
    """Complete transcription of one audio file."""

    full_text: str
    language: str | None
    duration_seconds: float | None

    @property
    def is_empty(self) -> bool:
        return not self.full_text.strip()


class TranscriptionServiceBase(ABC):
    """Abstract base class for transcription services.

    Implementations should handle:
    - OpenAI Whisper API
    - Self-hosted Whisper behind an OpenAI-compatible endpoint
    """

    @abstractmethod
    async def transcribe(
        self,
        audio_path: Path,
        language_hint: str | None = None,
    ) -> TranscriptionResult:
        """Transcribe an audio file.

        Args:
            audio_path: Path to the audio file (mp3, m4a, wav).
            language_hint: Optional ISO 639-1 language code.

        Returns:
            Full transcript text with detected language and duration.
        """

"""Abstract base class for media transcoding."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


class TranscoderError(Exception):
    """Raised when an ffmpeg/ffprobe invocation fails or times out."""

    def __init__(self, operation: str, reason: str, stderr: str | None = None) -> None:
        self.operation = operation
        self.reason = reason
        self.stderr = stderr
        super().__init__(f"{operation} failed: {reason}")


@dataclass
class ExtractedFrame:
    """A still image taken from a video."""

    path: Path
    timestamp: float
    width: int
    height: int


class TranscoderBase(ABC):
    """Abstract base class for media probing and conversion.

    Implementations should handle:
    - FFmpeg/ffprobe subprocesses
    """

    @abstractmethod
    async def probe_duration(self, media_path: Path) -> float:
        """Return the container duration in seconds.

        Raises:
            TranscoderError: If the file cannot be probed.
        """

    @abstractmethod
    async def extract_thumbnail(
        self,
        video_path: Path,
        output_path: Path,
        offset_seconds: float = 1.0,
    ) -> ExtractedFrame:
        """Write one JPEG frame taken at ``offset_seconds``.

        Raises:
            TranscoderError: If no frame could be written.
        """

    @abstractmethod
    async def extract_audio(
        self,
        media_path: Path,
        output_path: Path,
        sample_rate: int = 16000,
        channels: int = 1,
    ) -> Path:
        """Convert the audio track to MP3.

        Returns:
            Path of the written audio file.

        Raises:
            TranscoderError: If conversion fails or the input has no audio.
        """

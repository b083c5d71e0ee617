"""FFmpeg implementation of media transcoding."""

import asyncio
import json
import subprocess
from pathlib import Path

from PIL import Image

from waffle_intel.commons.telemetry import get_logger, timed
from waffle_intel.infrastructure.media.base import (
    ExtractedFrame,
    TranscoderBase,
    TranscoderError,
)

logger = get_logger(__name__)

_STDERR_TAIL = 500


class FFmpegTranscoder(TranscoderBase):
    """Runs ffmpeg and ffprobe as subprocesses off the event loop.

    Requires both executables to be installed and reachable.
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        timeout_seconds: float = 180.0,
        thumbnail_max_width: int = 720,
        thumbnail_quality: int = 4,
        audio_bitrate: str = "64k",
    ) -> None:
        """Initialize the transcoder.

        Args:
            ffmpeg_path: Path to the ffmpeg executable.
            ffprobe_path: Path to the ffprobe executable.
            timeout_seconds: Upper bound on a single invocation.
            thumbnail_max_width: Thumbnails wider than this are scaled down.
            thumbnail_quality: JPEG ``-q:v`` value (2 best, 31 worst).
            audio_bitrate: MP3 bitrate for extracted audio.
        """
        self._ffmpeg = ffmpeg_path
        self._ffprobe = ffprobe_path
        self._timeout = timeout_seconds
        self._thumb_width = thumbnail_max_width
        self._thumb_quality = thumbnail_quality
        self._audio_bitrate = audio_bitrate

    async def _run(
        self,
        operation: str,
        cmd: list[str],
    ) -> subprocess.CompletedProcess[bytes]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None,
                lambda: subprocess.run(
                    cmd,
                    capture_output=True,
                    check=True,
                    timeout=self._timeout,
                ),
            )
        except subprocess.TimeoutExpired as e:
            raise TranscoderError(operation, f"timed out after {self._timeout}s") from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode(errors="replace")[-_STDERR_TAIL:]
            raise TranscoderError(
                operation, f"exit code {e.returncode}", stderr=stderr
            ) from e
        except FileNotFoundError as e:
            raise TranscoderError(operation, f"executable not found: {cmd[0]}") from e

    @timed(operation="probe_duration")
    async def probe_duration(self, media_path: Path) -> float:
        cmd = [
            self._ffprobe,
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_format",
            str(media_path),
        ]
        result = await self._run("probe_duration", cmd)
        try:
            data = json.loads(result.stdout)
            duration = float(data["format"]["duration"])
        except (ValueError, KeyError, TypeError) as e:
            raise TranscoderError(
                "probe_duration", "no duration in probe output"
            ) from e
        if duration <= 0:
            raise TranscoderError("probe_duration", f"invalid duration {duration}")
        return duration

    @timed(operation="extract_thumbnail")
    async def extract_thumbnail(
        self,
        video_path: Path,
        output_path: Path,
        offset_seconds: float = 1.0,
    ) -> ExtractedFrame:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = [
            self._ffmpeg,
            "-ss",
            str(offset_seconds),
            "-i",
            str(video_path),
            "-frames:v",
            "1",
            "-vf",
            f"scale='min({self._thumb_width},iw)':-2",
            "-q:v",
            str(self._thumb_quality),
            "-y",
            str(output_path),
        ]
        await self._run("extract_thumbnail", cmd)

        # ffmpeg exits 0 without writing a frame when the offset is past the end.
        if not output_path.exists() or output_path.stat().st_size == 0:
            raise TranscoderError(
                "extract_thumbnail", f"no frame at offset {offset_seconds}s"
            )

        with Image.open(output_path) as img:
            width, height = img.size

        return ExtractedFrame(
            path=output_path,
            timestamp=offset_seconds,
            width=width,
            height=height,
        )

    @timed(operation="extract_audio")
    async def extract_audio(
        self,
        media_path: Path,
        output_path: Path,
        sample_rate: int = 16000,
        channels: int = 1,
    ) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = [
            self._ffmpeg,
            "-i",
            str(media_path),
            "-vn",
            "-ac",
            str(channels),
            "-ar",
            str(sample_rate),
            "-c:a",
            "libmp3lame",
            "-b:a",
            self._audio_bitrate,
            "-y",
            str(output_path),
        ]
        await self._run("extract_audio", cmd)
        if not output_path.exists() or output_path.stat().st_size == 0:
            raise TranscoderError("extract_audio", "no audio stream in input")
        return output_path

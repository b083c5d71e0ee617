"""Media probing and transcoding."""

from waffle_intel.infrastructure.media.base import (
    ExtractedFrame,
    TranscoderBase,
    TranscoderError,
)
from waffle_intel.infrastructure.media.ffmpeg_transcoder import FFmpegTranscoder

__all__ = ["ExtractedFrame", "FFmpegTranscoder", "TranscoderBase", "TranscoderError"]

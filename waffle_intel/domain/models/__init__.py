"""Domain models."""

from waffle_intel.domain.models.search import SearchCriteria, SearchHit
from waffle_intel.domain.models.video_metadata import MetadataLink, VideoMetadata
from waffle_intel.domain.models.waffle import (
    CatchUpWaffle,
    ContentType,
    TranscriptSample,
    WafflePost,
)

__all__ = [
    "CatchUpWaffle",
    "ContentType",
    "MetadataLink",
    "SearchCriteria",
    "SearchHit",
    "TranscriptSample",
    "VideoMetadata",
    "WafflePost",
]

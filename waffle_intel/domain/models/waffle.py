"""Read models for collaborator-owned waffle data."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ContentType(str, Enum):
    """Kind of media a waffle post carries."""

    VIDEO = "video"
    PHOTO = "photo"
    TEXT = "text"


class WafflePost(BaseModel):
    """A post shared to a group. Owned by the app backend, read here."""

    id: str
    user_id: str
    group_id: str
    content_url: str | None = None
    content_type: ContentType = ContentType.VIDEO
    caption: str | None = None
    created_at: datetime
    thumbnail_url: str | None = None
    duration_seconds: int | None = None


class TranscriptSample(BaseModel):
    """A past waffle's text used as retrieval context for generation."""

    waffle_id: str
    user_id: str
    user_name: str | None = None
    caption: str | None = None
    transcript: str | None = None
    ai_recap: str | None = None
    created_at: datetime | None = None
    distance: float | None = Field(default=None, description="Cosine distance")

    def summary_text(self, limit: int) -> str:
        """Recap when present, otherwise a transcript excerpt."""
        text = self.ai_recap or self.transcript or self.caption or ""
        return text[:limit].strip()


class CatchUpWaffle(BaseModel):
    """A waffle in a group's catch-up window, with its author's name."""

    waffle_id: str
    author_name: str
    created_at: datetime
    caption: str | None = None
    ai_recap: str | None = None
    transcript: str | None = None

    def snippet(self, limit: int) -> str:
        """Shortest non-empty text among caption, recap and transcript."""
        candidates = [
            t.strip()
            for t in (self.caption, self.ai_recap, self.transcript)
            if t and t.strip()
        ]
        if not candidates:
            return ""
        return min(candidates, key=len)[:limit]

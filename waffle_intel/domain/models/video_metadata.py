"""Derived intelligence stored for an ingested video."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field


class VideoMetadata(BaseModel):
    """One row per source video, keyed by its canonical content key.

    Created and refreshed only by the ingestion pipeline. Re-ingesting the same
    content key overwrites transcript, embedding and recap.
    """

    content_key: str = Field(description="Canonical '<bucket>/<path>' locator")
    waffle_id: str | None = Field(
        default=None,
        description="Owning waffle post, when one could be resolved",
    )
    transcript: str = Field(description="Full speech-to-text output")
    embedding: list[float] = Field(description="Transcript embedding vector")
    ai_recap: str | None = Field(default=None, description="Short AI summary")
    thumbnail_locator: str | None = Field(
        default=None,
        description="Content key of the generated thumbnail",
    )
    duration_seconds: int | None = Field(default=None, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class MetadataLink(BaseModel):
    """A metadata row that was attached to its post after ingestion."""

    content_key: str
    waffle_id: str
    thumbnail_locator: str | None = None
    duration_seconds: int | None = None

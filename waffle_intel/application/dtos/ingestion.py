"""DTOs for storage-webhook ingestion."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class ProcessingStep(str, Enum):
    """Individual steps in the ingestion pipeline."""

    DOWNLOADING = "downloading"
    PROBING = "probing"
    EXTRACTING_THUMBNAIL = "extracting_thumbnail"
    UPLOADING_THUMBNAIL = "uploading_thumbnail"
    EXTRACTING_AUDIO = "extracting_audio"
    TRANSCRIBING = "transcribing"
    EMBEDDING = "embedding"
    GENERATING_RECAP = "generating_recap"
    STORING = "storing"


class StepSeverity(str, Enum):
    """Whether a step failure aborts the run."""

    CRITICAL = "critical"
    BEST_EFFORT = "best_effort"


class StepStatus(str, Enum):
    """Outcome of a single step."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepOutcome(BaseModel):
    """What happened when a step ran."""

    step: ProcessingStep
    severity: StepSeverity
    status: StepStatus
    duration_ms: float = Field(default=0.0, ge=0)
    error: str | None = Field(
        default=None,
        description="Failure reason, for best-effort steps that degraded",
    )


class StorageObjectEvent(BaseModel):
    """A newly created storage object, normalized from either webhook shape.

    Accepts the Supabase storage webhook body::

        {"type": "INSERT", "record": {"bucket_id": "...", "name": "...",
         "metadata": {"mimetype": "video/mp4"}}}

    and the plain form ``{"bucket": "...", "path": "...", "mime_type": "..."}``.
    """

    bucket: str = Field(min_length=1)
    path: str = Field(min_length=1)
    mime_type: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _unwrap_record(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "record" not in data:
            return data
        record = data.get("record") or {}
        if not isinstance(record, dict):
            return data
        metadata = record.get("metadata") or {}
        return {
            "bucket": record.get("bucket_id"),
            "path": record.get("name"),
            "mime_type": (
                metadata.get("mimetype") if isinstance(metadata, dict) else None
            ),
        }


class IngestionResponse(BaseModel):
    """Result of a webhook-triggered ingestion."""

    message: str
    content_key: str | None = None
    waffle_id: str | None = None
    steps: list[StepOutcome] = Field(default_factory=list)

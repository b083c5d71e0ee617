"""DTOs for semantic search and its streamed AI answer.

Field names are camelCase on the wire and snake_case in Python.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class MediaTypeFilter(str, Enum):
    """Media kinds a search can be narrowed to."""

    VIDEO = "video"
    PHOTO = "photo"
    TEXT = "text"
    ALL = "all"


class ProcessingStatus(str, Enum):
    """How a search finished.

    ``no_data`` means nothing searchable is visible under the filters at all;
    ``no_matches`` means data exists but nothing is close enough.
    """

    COMPLETE = "complete"
    PARTIAL = "partial"
    NO_DATA = "no_data"
    NO_MATCHES = "no_matches"


class AnswerStatus(str, Enum):
    """Lifecycle of a streamed AI answer."""

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (AnswerStatus.COMPLETE, AnswerStatus.ERROR)


class DateRangeFilter(_CamelModel):
    start: datetime | None = None
    end: datetime | None = None

    @model_validator(mode="after")
    def _ordered(self) -> "DateRangeFilter":
        if self.start and self.end and _utc(self.start) > _utc(self.end):
            raise ValueError("dateRange start must not be after end")
        return self


class SearchFilters(_CamelModel):
    """Optional narrowing applied on top of group visibility."""

    groups: list[UUID] = Field(default_factory=list)
    users: list[UUID] = Field(default_factory=list)
    date_range: DateRangeFilter | None = None
    media_type: MediaTypeFilter = MediaTypeFilter.VIDEO


class SearchRequest(_CamelModel):
    """Natural-language search over the caller's groups."""

    query: str = Field(max_length=500, description="Free-text query")
    filters: SearchFilters = Field(default_factory=SearchFilters)
    limit: int = Field(default=10, ge=1, le=50)
    offset: int = Field(default=0, ge=0)
    similarity_threshold: float | None = Field(
        default=None,
        description="Maximum cosine distance; clamped to the configured range",
    )


class SearchResultItem(_CamelModel):
    """One enriched search hit as shown to the client."""

    id: str
    user_id: str
    user_name: str
    user_avatar: str | None = None
    group_id: str
    group_name: str | None = None
    video_url: str | None = None
    thumbnail_url: str
    content_type: str
    caption: str | None = None
    transcript: str = Field(description="Transcript excerpt around the match")
    ai_recap: str | None = None
    match_start: int = -1
    match_end: int = -1
    match_positions: list[int] = Field(default_factory=list)
    timestamp: int = Field(description="Creation time in epoch milliseconds")
    video_duration: int
    created_at: datetime
    similarity: float


class AIAnswerState(_CamelModel):
    status: AnswerStatus = AnswerStatus.PENDING
    text: str | None = None


class SearchResponse(_CamelModel):
    results: list[SearchResultItem] = Field(default_factory=list)
    total_count: int = 0
    suggestions: list[str] = Field(default_factory=list)
    processing_status: ProcessingStatus
    search_id: str
    ai_answer: AIAnswerState = Field(default_factory=AIAnswerState)


class AnswerEvent(_CamelModel):
    """One server-sent event on the AI answer stream."""

    status: AnswerStatus
    text: str | None = None

    def to_sse(self) -> str:
        return f"data: {self.model_dump_json(by_alias=True)}\n\n"

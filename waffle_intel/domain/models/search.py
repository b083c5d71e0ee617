"""Search criteria and raw hits exchanged with the search repository."""

from datetime import datetime

from pydantic import BaseModel, Field

from waffle_intel.domain.models.waffle import ContentType
from waffle_intel.domain.value_objects.date_range import DateRange


class SearchCriteria(BaseModel):
    """Fully resolved similarity query for one caller."""

    user_id: str = Field(description="Caller; visibility is limited to their groups")
    embedding: list[float]
    distance_threshold: float = Field(gt=0, le=2)
    group_ids: list[str] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)
    date_range: DateRange | None = None
    content_type: ContentType | None = None
    limit: int = Field(default=10, ge=1)
    offset: int = Field(default=0, ge=0)


class SearchHit(BaseModel):
    """One matching waffle with its similarity distance, before enrichment."""

    waffle_id: str
    user_id: str
    group_id: str
    group_name: str | None = None
    user_name: str | None = None
    avatar_url: str | None = None
    content_url: str | None = None
    content_type: ContentType = ContentType.VIDEO
    caption: str | None = None
    created_at: datetime
    transcript: str | None = None
    ai_recap: str | None = None
    thumbnail_url: str | None = None
    thumbnail_locator: str | None = None
    duration_seconds: int | None = None
    distance: float = Field(description="Cosine distance, lower is closer")

    @property
    def similarity(self) -> float:
        return round(1.0 - self.distance, 4)

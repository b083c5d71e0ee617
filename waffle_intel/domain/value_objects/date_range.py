"""Half-open creation-time window used to filter waffles."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DateRange(BaseModel):
    """Inclusive-start, exclusive-end time window. Either bound may be open."""

    model_config = ConfigDict(frozen=True)

    start: datetime | None = Field(default=None, description="Earliest created_at")
    end: datetime | None = Field(default=None, description="Latest created_at")

    @model_validator(mode="after")
    def _ordered(self) -> DateRange:
        if self.start and self.end and self.start > self.end:
            raise ValueError("start must not be after end")
        return self

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None

    def intersect(self, other: DateRange | None) -> DateRange | None:
        """Return the overlap of two ranges, or None if they are disjoint."""
        if other is None:
            return self
        starts = [d for d in (self.start, other.start) if d is not None]
        ends = [d for d in (self.end, other.end) if d is not None]
        start = max(starts) if starts else None
        end = min(ends) if ends else None
        if start and end and start > end:
            return None
        return DateRange(start=start, end=end)

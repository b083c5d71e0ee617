"""DTOs for caption suggestions, conversation starters and group catch-up."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SuggestionsResponse(BaseModel):
    """Generated suggestions returned to the client."""

    suggestions: list[str] = Field(default_factory=list)


class ConversationStarterRequest(BaseModel):
    group_id: UUID
    user_uid: UUID = Field(description="Must match the authenticated user")
    limit_user: int | None = Field(default=None, ge=1, le=20)
    limit_group: int | None = Field(default=None, ge=1, le=50)


class CatchUpResponse(BaseModel):
    """Conversational summary of a group's recent waffles."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    summary: str
    cached: bool = False
    waffle_count: int = Field(ge=0)
    days: int

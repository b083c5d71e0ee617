"""Conversation-starter endpoint."""

from fastapi import APIRouter

from waffle_intel.api.dependencies import ConversationServiceDep, CurrentUserDep
from waffle_intel.application.dtos import (
    ConversationStarterRequest,
    SuggestionsResponse,
)

router = APIRouter()


@router.post(
    "/ai/convo-starter",
    response_model=SuggestionsResponse,
    summary="Suggest conversation starters",
    description=(
        "Suggest two prompts the caller could record next, based on what they "
        "and the rest of the group have recently talked about."
    ),
)
async def convo_starter(
    request: ConversationStarterRequest,
    user: CurrentUserDep,
    service: ConversationServiceDep,
) -> SuggestionsResponse:
    suggestions = await service.suggest(
        user,
        group_id=str(request.group_id),
        user_uid=str(request.user_uid),
        limit_user=request.limit_user,
        limit_group=request.limit_group,
    )
    return SuggestionsResponse(suggestions=suggestions)

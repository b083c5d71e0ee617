"""Group catch-up endpoint."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query

from waffle_intel.api.dependencies import CatchUpServiceDep, CurrentUserDep
from waffle_intel.application.dtos import CatchUpResponse

router = APIRouter(prefix="/api/catchup")


@router.get(
    "/{group_id}",
    response_model=CatchUpResponse,
    response_model_by_alias=True,
    summary="Catch up on a group",
    description="A short conversational summary of the group's recent waffles.",
)
async def catch_up(
    group_id: UUID,
    user: CurrentUserDep,
    service: CatchUpServiceDep,
    days: Annotated[int, Query(ge=1, le=30)] = 10,
) -> CatchUpResponse:
    return await service.catch_up(user.user_id, str(group_id), days)

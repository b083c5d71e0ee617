"""Semantic search and AI answer streaming endpoints."""

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from waffle_intel.api.dependencies import (
    AnswerBrokerDep,
    CurrentUserDep,
    SearchServiceDep,
)
from waffle_intel.application.dtos import SearchRequest, SearchResponse

router = APIRouter(prefix="/api/search")


@router.post(
    "/waffles",
    response_model=SearchResponse,
    response_model_by_alias=True,
    summary="Search waffles by meaning",
    description=(
        "Rank the caller's visible video waffles by similarity to a natural "
        "language query. Temporal phrases such as 'last week' become date "
        "filters. An AI answer is generated in the background and can be "
        "followed on the ai-stream endpoint using the returned searchId."
    ),
)
async def search_waffles(
    request: SearchRequest,
    user: CurrentUserDep,
    service: SearchServiceDep,
) -> SearchResponse:
    return await service.search(user.user_id, request)


@router.get(
    "/ai-stream/{search_id}",
    summary="Stream the AI answer for a search",
    description=(
        "Server-sent events carrying the cumulative answer text. The stream "
        "closes after a complete or error event."
    ),
    responses={
        200: {"content": {"text/event-stream": {}}},
        404: {"description": "Unknown or expired search"},
    },
)
async def stream_answer(
    search_id: str,
    user: CurrentUserDep,
    broker: AnswerBrokerDep,
) -> StreamingResponse:
    """Attach to a search's answer task.

    The task lookup happens before the response starts so that an unknown
    search is reported as a 404 rather than an empty stream.
    """
    events = await broker.open_stream(search_id, user.user_id)
    return StreamingResponse(
        (event.to_sse() async for event in events),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

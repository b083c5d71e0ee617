"""Caption suggestion endpoint."""

import json
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, Form, UploadFile

from waffle_intel.api.dependencies import CaptionServiceDep, CurrentUserDep
from waffle_intel.application.dtos import SuggestionsResponse
from waffle_intel.commons.telemetry import get_logger
from waffle_intel.domain.exceptions import InvalidRequestError

logger = get_logger(__name__)

router = APIRouter()


def _parse_style_captions(raw: str | None) -> list[str]:
    """Parse the ``styleCaptions`` form field, ignoring malformed input."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Ignoring malformed styleCaptions field")
        return []
    if not isinstance(data, list):
        return []
    return [item.strip() for item in data if isinstance(item, str) and item.strip()]


@router.post(
    "/generate-captions",
    response_model=SuggestionsResponse,
    summary="Suggest captions for a recording",
    description=(
        "Transcribe an uploaded video or audio chunk and suggest short captions "
        "in the caller's own style."
    ),
)
async def generate_captions(
    user: CurrentUserDep,
    service: CaptionServiceDep,
    video_chunk: Annotated[UploadFile | None, File(alias="videoChunk")] = None,
    audio_chunk: Annotated[UploadFile | None, File(alias="audioChunk")] = None,
    style_captions: Annotated[str | None, Form(alias="styleCaptions")] = None,
    group_id: Annotated[UUID | None, Form()] = None,
) -> SuggestionsResponse:
    upload = video_chunk or audio_chunk
    if upload is None:
        raise InvalidRequestError(
            "A videoChunk or audioChunk file is required", field="videoChunk"
        )

    suggestions = await service.suggest(
        user.user_id,
        upload.file,
        upload.filename or "upload.webm",
        style_captions=_parse_style_captions(style_captions),
        group_id=str(group_id) if group_id else None,
    )
    return SuggestionsResponse(suggestions=suggestions)

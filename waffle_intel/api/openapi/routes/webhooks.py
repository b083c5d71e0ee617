"""Storage webhook receiver."""

import hmac
from typing import Any

from fastapi import APIRouter, Body, Request
from pydantic import ValidationError

from waffle_intel.api.dependencies import IngestionServiceDep, SettingsDep
from waffle_intel.application.dtos import IngestionResponse, StorageObjectEvent
from waffle_intel.commons.settings.models import Settings
from waffle_intel.commons.telemetry import get_logger
from waffle_intel.domain.exceptions import ForbiddenError, InvalidRequestError

logger = get_logger(__name__)

router = APIRouter()


def _verify_secret(request: Request, settings: Settings) -> None:
    expected = settings.webhook.shared_secret
    if not expected:
        return
    provided = request.headers.get(settings.webhook.secret_header, "")
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        raise ForbiddenError("Webhook secret mismatch")


@router.post(
    "/process-full-video",
    response_model=IngestionResponse,
    summary="Process a newly uploaded video",
    description=(
        "Called by object storage when a file is created. Video files are "
        "transcribed, embedded and recapped; anything else is skipped."
    ),
)
async def process_full_video(
    request: Request,
    settings: SettingsDep,
    service: IngestionServiceDep,
    payload: dict[str, Any] = Body(...),  # noqa: B008
) -> IngestionResponse:
    """Run the ingestion pipeline for one storage object.

    Not user-authenticated. When a shared secret is configured the caller must
    present it in the configured header.
    """
    _verify_secret(request, settings)

    try:
        event = StorageObjectEvent.model_validate(payload)
    except ValidationError as e:
        logger.warning("Rejected webhook payload", extra={"error": str(e)})
        raise InvalidRequestError("Payload must name a storage bucket and path") from e

    return await service.ingest(event)

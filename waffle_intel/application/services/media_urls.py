"""Turns stored content keys into URLs a client can display."""

from waffle_intel.commons.infrastructure.blob import BlobStorageBase
from waffle_intel.commons.settings.models import Settings
from waffle_intel.commons.telemetry import get_logger
from waffle_intel.domain.value_objects import ContentKey

logger = get_logger(__name__)


class MediaUrlResolver:
    """Builds display URLs from ``<bucket>/<path>`` locators.

    With ``blob_storage.public_base_url`` configured the URL is composed
    directly; otherwise a presigned GET URL is requested from storage.
    """

    def __init__(self, blob_storage: BlobStorageBase, settings: Settings) -> None:
        self._blob = blob_storage
        self._public_base = (settings.blob_storage.public_base_url or "").rstrip("/")
        self._expiry = settings.blob_storage.presigned_url_expiry_seconds
        self._placeholder = settings.search.placeholder_thumbnail_url
        self._default_duration = settings.media.default_duration_seconds

    async def display_url(self, locator: str | None) -> str | None:
        """URL for a locator, or None if it cannot be resolved."""
        if not locator:
            return None
        if locator.startswith(("http://", "https://")):
            return locator
        try:
            key = ContentKey.parse(locator)
        except ValueError:
            logger.warning("Unparseable media locator", extra={"locator": locator})
            return None
        if self._public_base:
            return f"{self._public_base}/{key.bucket}/{key.path}"
        try:
            return await self._blob.generate_presigned_url(
                key.bucket, key.path, expiry_seconds=self._expiry
            )
        except Exception as e:
            logger.warning(
                "Could not presign media URL",
                extra={"locator": locator, "error": str(e)},
            )
            return None

    async def thumbnail_url(
        self,
        post_thumbnail: str | None,
        thumbnail_locator: str | None,
    ) -> str:
        """Post thumbnail, then the generated one, then the placeholder."""
        if post_thumbnail:
            return post_thumbnail
        return await self.display_url(thumbnail_locator) or self._placeholder

    def duration(self, duration_seconds: int | None) -> int:
        return duration_seconds if duration_seconds else self._default_duration

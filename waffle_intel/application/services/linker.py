"""Late linking of ingested videos whose post row appeared afterwards."""

import asyncio
import contextlib

from waffle_intel.application.services.media_urls import MediaUrlResolver
from waffle_intel.commons.telemetry import get_logger
from waffle_intel.domain.models import MetadataLink
from waffle_intel.infrastructure.store import VideoMetadataStore, WaffleStore

logger = get_logger(__name__)


class PendingLinkSweeper:
    """Periodically links unowned metadata rows to their waffle posts.

    An upload event can be processed before the client creates the post that
    references the object. Each pass sets ``waffle_id`` on recent rows that
    now have an owner and pushes the generated thumbnail and duration onto
    the post, as ingestion would have done.
    """

    def __init__(
        self,
        metadata_store: VideoMetadataStore,
        waffle_store: WaffleStore,
        media_urls: MediaUrlResolver,
        *,
        interval_seconds: float,
        batch_size: int,
        window_hours: int,
    ) -> None:
        self._metadata = metadata_store
        self._waffles = waffle_store
        self._media_urls = media_urls
        self._interval = interval_seconds
        self._batch_size = batch_size
        self._window_hours = window_hours
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="pending-link-sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def link_once(self) -> int:
        """Run one linking pass. Returns the number of rows linked."""
        try:
            links = await self._metadata.link_pending(
                limit=self._batch_size, window_hours=self._window_hours
            )
        except Exception:
            logger.exception("Pending metadata linking failed")
            return 0
        for link in links:
            await self._update_post(link)
        return len(links)

    async def _update_post(self, link: MetadataLink) -> None:
        if not link.thumbnail_locator:
            return
        url = await self._media_urls.display_url(link.thumbnail_locator)
        if url is None:
            logger.warning(
                "Thumbnail URL unavailable, waffle not updated",
                extra={"waffle_id": link.waffle_id},
            )
            return
        try:
            await self._waffles.update_post_media(
                link.waffle_id, url, self._media_urls.duration(link.duration_seconds)
            )
        except Exception:
            logger.exception(
                "Could not update linked waffle",
                extra={"waffle_id": link.waffle_id, "content_key": link.content_key},
            )

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.link_once()

"""Cached catch-up summaries of a group's recent waffles."""

from datetime import UTC, datetime, timedelta

from waffle_intel.application.dtos.generation import CatchUpResponse
from waffle_intel.application.services.prompts import (
    CATCHUP_PROMPT,
    CATCHUP_SYSTEM,
    NO_ACTIVITY_SUMMARY,
)
from waffle_intel.commons.cache import CacheBase
from waffle_intel.commons.settings.models import Settings
from waffle_intel.commons.telemetry import get_logger, log_exceptions
from waffle_intel.domain.exceptions import GenerationError, InvalidRequestError
from waffle_intel.domain.models import CatchUpWaffle
from waffle_intel.infrastructure.llm import LLMServiceBase, Message
from waffle_intel.infrastructure.store import WaffleStore

CatchUpKey = tuple[str, int]
CatchUpEntry = tuple[str, int]


class CatchUpService:
    """Summarizes what a group shared over the last N days.

    Summaries are cached per ``(group_id, days)`` so repeated opens of the
    same group within the TTL do not hit the completion model.
    """

    def __init__(
        self,
        waffle_store: WaffleStore,
        llm_service: LLMServiceBase,
        cache: CacheBase[CatchUpKey, CatchUpEntry],
        settings: Settings,
    ) -> None:
        """Initialize the service.

        Args:
            waffle_store: Source of group waffles and membership.
            llm_service: Completion service for the summary.
            cache: Summary cache keyed by ``(group_id, days)``.
            settings: Application settings.
        """
        self._waffles = waffle_store
        self._llm = llm_service
        self._cache = cache
        self._settings = settings.catchup
        self._logger = get_logger(__name__)

    def no_activity(self, days: int) -> str:
        return NO_ACTIVITY_SUMMARY.format(days=days)

    async def catch_up(
        self,
        user_id: str,
        group_id: str,
        days: int | None = None,
    ) -> CatchUpResponse:
        """Summarize a group's waffles in the window.

        Non-members get the "no activity" summary, uncached.

        Raises:
            InvalidRequestError: If ``days`` is outside the allowed range.
            GenerationError: If the summary could not be generated.
        """
        days = self._settings.default_days if days is None else days
        if not self._settings.min_days <= days <= self._settings.max_days:
            raise InvalidRequestError(
                f"days must be between {self._settings.min_days} "
                f"and {self._settings.max_days}",
                field="days",
            )

        if not await self._waffles.is_group_member(user_id, group_id):
            self._logger.info(
                "Catch-up requested by non-member",
                extra={"group_id": group_id},
            )
            return CatchUpResponse(
                summary=self.no_activity(days), cached=False, waffle_count=0, days=days
            )

        key = (group_id, days)
        cached = await self._cache.get(key)
        if cached is not None:
            summary, count = cached
            return CatchUpResponse(
                summary=summary, cached=True, waffle_count=count, days=days
            )

        since = datetime.now(UTC) - timedelta(days=days)
        waffles = await self._waffles.catch_up_waffles(
            group_id, since, self._settings.max_waffles
        )

        if not waffles:
            summary = self.no_activity(days)
        else:
            summary = await self._summarize(waffles, days)

        await self._cache.set(
            key, (summary, len(waffles)), ttl_seconds=self._settings.cache_ttl_seconds
        )
        self._logger.info(
            "Catch-up summary generated",
            extra={"group_id": group_id, "days": days, "waffle_count": len(waffles)},
        )
        return CatchUpResponse(
            summary=summary, cached=False, waffle_count=len(waffles), days=days
        )

    @log_exceptions(message="Catch-up summary failed")
    async def _summarize(self, waffles: list[CatchUpWaffle], days: int) -> str:
        limit = self._settings.snippet_length
        entries = "\n".join(
            f"- {w.author_name} ({w.created_at:%a %b %d}): "
            f"{w.snippet(limit) or '(no description)'}"
            for w in waffles
        )
        try:
            response = await self._llm.generate(
                messages=[
                    Message.system(CATCHUP_SYSTEM),
                    Message.user(CATCHUP_PROMPT.format(days=days, entries=entries)),
                ],
                temperature=self._settings.temperature,
                max_tokens=self._settings.max_tokens,
            )
        except Exception as e:
            raise GenerationError("catch_up_summary", str(e)) from e

        summary = response.content.strip()
        if not summary:
            raise GenerationError("catch_up_summary", "empty completion")
        return summary

"""Conversation-starter prompts grounded in a group's recent videos."""

from waffle_intel.application.services.prompts import (
    STARTER_PROMPT,
    STARTER_SYSTEM,
    bullet_list,
    parse_json_object,
    string_list,
)
from waffle_intel.commons.cache import RequestThrottle
from waffle_intel.commons.security import AuthenticatedUser
from waffle_intel.commons.settings.models import Settings
from waffle_intel.commons.telemetry import get_logger
from waffle_intel.domain.exceptions import (
    ForbiddenError,
    NotGroupMemberError,
    ThrottledError,
)
from waffle_intel.domain.models import TranscriptSample
from waffle_intel.infrastructure.llm import LLMServiceBase, Message
from waffle_intel.infrastructure.store import WaffleStore


class ConversationStarterService:
    """Suggests what a member could talk about in their next video."""

    def __init__(
        self,
        waffle_store: WaffleStore,
        llm_service: LLMServiceBase,
        throttle: RequestThrottle,
        settings: Settings,
    ) -> None:
        self._waffles = waffle_store
        self._llm = llm_service
        self._throttle = throttle
        self._settings = settings.conversation
        self._logger = get_logger(__name__)

    @property
    def fallback(self) -> list[str]:
        return list(self._settings.fallback_prompts[: self._settings.prompt_count])

    async def suggest(
        self,
        user: AuthenticatedUser,
        group_id: str,
        user_uid: str,
        limit_user: int | None = None,
        limit_group: int | None = None,
    ) -> list[str]:
        """Return exactly ``prompt_count`` prompts, or the fallback pair.

        Raises:
            ForbiddenError: If ``user_uid`` is not the authenticated user.
            NotGroupMemberError: If the caller is not in the group.
            ThrottledError: If throttling is enabled and the caller is too fast.
        """
        if user_uid != user.user_id:
            raise ForbiddenError("user_uid does not match the authenticated user")
        if not await self._waffles.is_group_member(user.user_id, group_id):
            raise NotGroupMemberError(user.user_id, group_id)
        if not await self._throttle.try_acquire(user.user_id, group_id):
            raise ThrottledError(self._throttle.interval_seconds)

        try:
            own = await self._waffles.recent_transcripts(
                group_id,
                user.user_id,
                limit=limit_user or self._settings.limit_user,
                own=True,
            )
            others = await self._waffles.recent_transcripts(
                group_id,
                user.user_id,
                limit=limit_group or self._settings.limit_group,
                own=False,
            )
        except Exception as e:
            self._logger.warning(
                "Transcript retrieval failed, using fallback prompts",
                extra={"group_id": group_id, "error": str(e)},
            )
            return self.fallback

        if not own and not others:
            self._logger.info(
                "No transcripts in group, using fallback prompts",
                extra={"group_id": group_id},
            )
            return self.fallback

        return await self._generate(own, others)

    async def _generate(
        self,
        own: list[TranscriptSample],
        others: list[TranscriptSample],
    ) -> list[str]:
        limit = self._settings.excerpt_length
        prompt = STARTER_PROMPT.format(
            own_updates=bullet_list([s.summary_text(limit) for s in own]),
            group_updates=bullet_list(
                [
                    f"{s.user_name or 'A friend'}: {s.summary_text(limit)}"
                    for s in others
                ]
            ),
            count=self._settings.prompt_count,
        )
        try:
            response = await self._llm.generate(
                messages=[Message.system(STARTER_SYSTEM), Message.user(prompt)],
                temperature=self._settings.temperature,
                max_tokens=self._settings.max_tokens,
                json_mode=True,
            )
            prompts = string_list(
                parse_json_object(response.content), "prompts", "suggestions"
            )
        except Exception as e:
            self._logger.warning(
                "Conversation starter generation failed, using fallback prompts",
                extra={"error": str(e)},
            )
            return self.fallback

        if len(prompts) < self._settings.prompt_count:
            self._logger.warning(
                "Too few conversation starters generated, using fallback prompts",
                extra={"generated": len(prompts)},
            )
            return self.fallback
        return prompts[: self._settings.prompt_count]

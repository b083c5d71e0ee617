"""Streams an AI answer for a search to any number of SSE subscribers."""

import asyncio
import time
from collections.abc import AsyncIterator, Coroutine
from dataclasses import dataclass, field
from typing import Any

from waffle_intel.application.dtos.search import AnswerEvent, AnswerStatus
from waffle_intel.application.services.prompts import (
    ANSWER_PROMPT,
    ANSWER_SYSTEM,
    NO_RESULTS_ANSWER,
)
from waffle_intel.commons.cache import CacheBase
from waffle_intel.commons.settings.models import Settings
from waffle_intel.commons.telemetry import get_logger
from waffle_intel.domain.exceptions import SearchTaskNotFoundError
from waffle_intel.domain.models import SearchHit
from waffle_intel.infrastructure.llm import LLMServiceBase, Message

TaskKey = tuple[str, str]


@dataclass
class SearchTask:
    """The answer being generated for one search.

    Each subscriber owns an unbounded queue; publishing never blocks the
    generator and a slow reader only delays itself.
    """

    search_id: str
    user_id: str
    query: str
    context: list[SearchHit]
    status: AnswerStatus = AnswerStatus.PENDING
    text: str = ""
    subscribers: list[asyncio.Queue[AnswerEvent]] = field(default_factory=list)
    created_at: float = field(default_factory=time.monotonic)

    @property
    def key(self) -> TaskKey:
        return (self.user_id, self.search_id)

    def snapshot(self) -> AnswerEvent:
        return AnswerEvent(status=self.status, text=self.text or None)

    def attach(self) -> asyncio.Queue[AnswerEvent]:
        queue: asyncio.Queue[AnswerEvent] = asyncio.Queue()
        queue.put_nowait(self.snapshot())
        self.subscribers.append(queue)
        return queue

    def detach(self, queue: asyncio.Queue[AnswerEvent]) -> None:
        if queue in self.subscribers:
            self.subscribers.remove(queue)

    def publish(self, event: AnswerEvent) -> None:
        for queue in list(self.subscribers):
            queue.put_nowait(event)


class AnswerBroker:
    """Runs one streamed completion per search and fans it out.

    Tasks live in a registry keyed by ``(user_id, search_id)``. A finished
    task is dropped after ``task_gc_delay_seconds``, right away when a late
    subscriber reads it, and right away on error. The registry's own TTL is
    the backstop for tasks nobody ever asks about.
    """

    def __init__(
        self,
        llm_service: LLMServiceBase,
        registry: CacheBase[TaskKey, SearchTask],
        settings: Settings,
    ) -> None:
        """Initialize the broker.

        Args:
            llm_service: Completion service used in streaming mode.
            registry: Process-local task registry.
            settings: Application settings.
        """
        self._llm = llm_service
        self._registry = registry
        self._settings = settings.search
        self._background: set[asyncio.Task[Any]] = set()
        self._logger = get_logger(__name__)

    async def start(
        self,
        search_id: str,
        user_id: str,
        query: str,
        hits: list[SearchHit],
    ) -> SearchTask:
        """Register a task and begin generating its answer in the background."""
        task = SearchTask(
            search_id=search_id,
            user_id=user_id,
            query=query,
            context=hits[: self._settings.answer_context_size],
        )
        await self._registry.set(
            task.key, task, ttl_seconds=self._settings.task_ttl_seconds
        )

        if not task.context:
            task.status = AnswerStatus.COMPLETE
            task.text = NO_RESULTS_ANSWER
            self._spawn(self._evict_later(task.key))
            return task

        self._spawn(self._generate(task))
        return task

    async def open_stream(
        self,
        search_id: str,
        user_id: str,
    ) -> AsyncIterator[AnswerEvent]:
        """Look up a task and return the events a new subscriber should see.

        Raises:
            SearchTaskNotFoundError: If the caller has no task with that id.
        """
        key = (user_id, search_id)
        task = await self._registry.get(key)
        if task is None:
            raise SearchTaskNotFoundError(search_id)

        if task.status.is_terminal:
            await self._registry.evict(key)
            return self._single(task.snapshot())

        return self._follow(task, task.attach())

    async def _single(self, event: AnswerEvent) -> AsyncIterator[AnswerEvent]:
        yield event

    async def _follow(
        self,
        task: SearchTask,
        queue: asyncio.Queue[AnswerEvent],
    ) -> AsyncIterator[AnswerEvent]:
        try:
            while True:
                event = await queue.get()
                yield event
                if event.status.is_terminal:
                    return
        finally:
            task.detach(queue)
            self._logger.debug(
                "Answer subscriber detached",
                extra={
                    "search_id": task.search_id,
                    "remaining_subscribers": len(task.subscribers),
                },
            )

    async def _generate(self, task: SearchTask) -> None:
        started = time.perf_counter()
        try:
            stream = self._llm.generate_stream(
                messages=self._build_messages(task),
                temperature=self._settings.answer_temperature,
                max_tokens=self._settings.answer_max_tokens,
            )
            async for delta in stream:
                if not delta:
                    continue
                task.text += delta
                task.status = AnswerStatus.STREAMING
                task.publish(AnswerEvent(status=AnswerStatus.STREAMING, text=task.text))
        except Exception as e:
            task.status = AnswerStatus.ERROR
            task.publish(
                AnswerEvent(
                    status=AnswerStatus.ERROR,
                    text="Sorry, the AI answer could not be generated.",
                )
            )
            await self._registry.evict(task.key)
            self._logger.error(
                "AI answer generation failed",
                extra={"search_id": task.search_id, "error": str(e)},
                exc_info=True,
            )
            return

        task.status = AnswerStatus.COMPLETE
        task.publish(AnswerEvent(status=AnswerStatus.COMPLETE, text=task.text))
        self._logger.info(
            "AI answer complete",
            extra={
                "search_id": task.search_id,
                "answer_length": len(task.text),
                "subscribers": len(task.subscribers),
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        await self._evict_later(task.key)

    def _build_messages(self, task: SearchTask) -> list[Message]:
        limit = self._settings.excerpt_length
        entries = []
        for i, hit in enumerate(task.context, start=1):
            excerpt = (hit.transcript or hit.ai_recap or hit.caption or "")[:limit]
            entries.append(
                f"{i}. {hit.user_name or 'Someone'} on "
                f"{hit.created_at:%Y-%m-%d}: \"{excerpt.strip()}\""
            )
        return [
            Message.system(ANSWER_SYSTEM),
            Message.user(
                ANSWER_PROMPT.format(query=task.query, context="\n".join(entries))
            ),
        ]

    async def _evict_later(self, key: TaskKey) -> None:
        await asyncio.sleep(self._settings.task_gc_delay_seconds)
        await self._registry.evict(key)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        background = asyncio.create_task(coro)
        self._background.add(background)
        background.add_done_callback(self._background.discard)

    @property
    def pending_tasks(self) -> int:
        return len(self._background)

    async def close(self) -> None:
        """Cancel generation and eviction tasks still running."""
        tasks = list(self._background)
        for background in tasks:
            background.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._background.clear()

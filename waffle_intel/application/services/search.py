"""Semantic search over transcripts of waffles in the caller's groups."""

import re
import uuid
from datetime import UTC, datetime

from waffle_intel.application.dtos.search import (
    AIAnswerState,
    DateRangeFilter,
    MediaTypeFilter,
    ProcessingStatus,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
)
from waffle_intel.application.services.answer_broker import AnswerBroker
from waffle_intel.application.services.media_urls import MediaUrlResolver
from waffle_intel.application.services.query_parser import (
    ParsedQuery,
    QueryParser,
    normalize_query,
)
from waffle_intel.commons.cache import CacheBase
from waffle_intel.commons.settings.models import Settings
from waffle_intel.commons.telemetry import LogContext, get_logger
from waffle_intel.domain.exceptions import (
    InvalidRequestError,
    InvalidSearchQueryError,
)
from waffle_intel.domain.models import ContentType, SearchCriteria, SearchHit
from waffle_intel.domain.value_objects import DateRange
from waffle_intel.infrastructure.embeddings import EmbeddingServiceBase
from waffle_intel.infrastructure.store import SearchRepository, WaffleStore

_TERM = re.compile(r"\w{3,}")


class SearchService:
    """Runs a search and hands its top hits to the answer broker.

    Pipeline:
    1. Validate the query and clamp the similarity threshold
    2. Extract a temporal phrase into a date range
    3. Embed the cleaned text, through the embedding cache
    4. Run the page and count queries
    5. Enrich hits with display URLs and excerpts
    6. Log the search to history (best effort)
    7. Start the streamed AI answer in the background
    """

    def __init__(
        self,
        embedding_service: EmbeddingServiceBase,
        search_repository: SearchRepository,
        waffle_store: WaffleStore,
        media_urls: MediaUrlResolver,
        answer_broker: AnswerBroker,
        embedding_cache: CacheBase[str, list[float]],
        settings: Settings,
        query_parser: QueryParser | None = None,
    ) -> None:
        """Initialize search service with dependencies.

        Args:
            embedding_service: Embeds query text.
            search_repository: Runs similarity queries.
            waffle_store: Writes search history.
            media_urls: Resolves display thumbnails.
            answer_broker: Generates the streamed AI answer.
            embedding_cache: Query-vector cache keyed by normalized text.
            settings: Application settings.
            query_parser: Temporal phrase extractor.
        """
        self._embedder = embedding_service
        self._repository = search_repository
        self._waffles = waffle_store
        self._media_urls = media_urls
        self._broker = answer_broker
        self._embedding_cache = embedding_cache
        self._settings = settings.search
        self._parser = query_parser or QueryParser()
        self._logger = get_logger(__name__)

    def effective_threshold(self, requested: float | None) -> float:
        """Clamp a requested distance threshold into the configured range."""
        s = self._settings
        if requested is None:
            return s.default_similarity_threshold
        clamped = max(requested, s.min_similarity_threshold)
        return min(clamped, s.max_similarity_threshold)

    async def search(self, user_id: str, request: SearchRequest) -> SearchResponse:
        """Search the caller's visible waffles.

        Raises:
            InvalidSearchQueryError: If the query is too short.
            InvalidRequestError: If the explicit date range is inverted.
        """
        query = request.query.strip()
        if len(query) < self._settings.min_query_length:
            raise InvalidSearchQueryError(
                request.query,
                f"must be at least {self._settings.min_query_length} characters",
            )

        search_id = str(uuid.uuid4())
        threshold = self.effective_threshold(request.similarity_threshold)
        parsed = self._parser.parse(query)

        async with LogContext(search_id=search_id):
            self._logger.info(
                "Starting search",
                extra={
                    "query_length": len(query),
                    "temporal_phrase": parsed.temporal_phrase,
                    "threshold": threshold,
                    "limit": request.limit,
                    "offset": request.offset,
                },
            )

            date_range, disjoint = self._resolve_date_range(
                parsed, request.filters.date_range
            )
            if disjoint:
                self._logger.info("Date filters do not overlap, nothing to search")
                await self._broker.start(search_id, user_id, query, [])
                return SearchResponse(
                    processing_status=ProcessingStatus.NO_DATA,
                    search_id=search_id,
                )

            criteria = SearchCriteria(
                user_id=user_id,
                embedding=await self._embed(parsed.text_for_embedding),
                distance_threshold=threshold,
                group_ids=[str(g) for g in request.filters.groups],
                user_ids=[str(u) for u in request.filters.users],
                date_range=date_range,
                content_type=self._content_type(request.filters.media_type),
                limit=request.limit,
                offset=request.offset,
            )

            hits = await self._repository.search(criteria)

            status = ProcessingStatus.COMPLETE
            try:
                total = await self._repository.count(criteria)
            except Exception as e:
                self._logger.warning(
                    "Count query failed, using page length",
                    extra={"error": str(e)},
                )
                total = len(hits)
                status = ProcessingStatus.PARTIAL

            if total == 0 and status is ProcessingStatus.COMPLETE:
                status = await self._empty_status(criteria)

            results = [await self._enrich(hit, parsed) for hit in hits]
            await self._record_history(user_id, query, total, request)
            await self._broker.start(search_id, user_id, query, hits)

            self._logger.info(
                "Search complete",
                extra={
                    "results": len(results),
                    "total_count": total,
                    "processing_status": status.value,
                },
            )

            return SearchResponse(
                results=results,
                total_count=total,
                suggestions=self._suggestions(parsed, hits),
                processing_status=status,
                search_id=search_id,
                ai_answer=AIAnswerState(),
            )

    async def _embed(self, text: str) -> list[float]:
        key = normalize_query(text)
        cached = await self._embedding_cache.get(key)
        if cached is not None:
            self._logger.debug("Query embedding cache hit")
            return cached
        result = await self._embedder.embed_text(text)
        await self._embedding_cache.set(
            key, result.vector, ttl_seconds=self._settings.embedding_cache_ttl_seconds
        )
        return result.vector

    @staticmethod
    def _resolve_date_range(
        parsed: ParsedQuery,
        explicit: DateRangeFilter | None,
    ) -> tuple[DateRange | None, bool]:
        """Intersect the explicit filter with the derived range.

        Returns:
            The range to apply and whether the two ranges are disjoint.
        """
        requested = None
        if explicit is not None and (explicit.start or explicit.end):
            try:
                requested = DateRange(
                    start=_aware(explicit.start),
                    end=_aware(explicit.end),
                )
            except ValueError as e:
                raise InvalidRequestError(
                    "dateRange start must not be after end",
                    field="filters.dateRange",
                ) from e
        if parsed.date_range is None:
            return requested, False
        if requested is None:
            return parsed.date_range, False
        merged = parsed.date_range.intersect(requested)
        return merged, merged is None

    @staticmethod
    def _content_type(media_type: MediaTypeFilter) -> ContentType | None:
        if media_type is MediaTypeFilter.ALL:
            return None
        return ContentType(media_type.value)

    async def _empty_status(self, criteria: SearchCriteria) -> ProcessingStatus:
        """Tell an empty corpus apart from a threshold nothing passes."""
        try:
            corpus = await self._repository.count_corpus(criteria)
        except Exception as e:
            self._logger.warning(
                "Corpus count failed",
                extra={"error": str(e)},
            )
            return ProcessingStatus.PARTIAL
        return ProcessingStatus.NO_MATCHES if corpus > 0 else ProcessingStatus.NO_DATA

    async def _enrich(self, hit: SearchHit, parsed: ParsedQuery) -> SearchResultItem:
        excerpt, positions = _excerpt(
            hit.transcript or "",
            _terms(parsed.text_for_embedding),
            self._settings.excerpt_length,
        )
        return SearchResultItem(
            id=hit.waffle_id,
            user_id=hit.user_id,
            user_name=hit.user_name or "Someone",
            user_avatar=hit.avatar_url,
            group_id=hit.group_id,
            group_name=hit.group_name,
            video_url=await self._media_urls.display_url(hit.content_url),
            thumbnail_url=await self._media_urls.thumbnail_url(
                hit.thumbnail_url, hit.thumbnail_locator
            ),
            content_type=hit.content_type.value,
            caption=hit.caption,
            transcript=excerpt,
            ai_recap=hit.ai_recap,
            match_start=positions[0] if positions else -1,
            match_end=positions[1] if positions else -1,
            match_positions=positions,
            timestamp=int(hit.created_at.timestamp() * 1000),
            video_duration=self._media_urls.duration(hit.duration_seconds),
            created_at=hit.created_at,
            similarity=hit.similarity,
        )

    async def _record_history(
        self,
        user_id: str,
        query: str,
        total: int,
        request: SearchRequest,
    ) -> None:
        try:
            await self._waffles.record_search(
                user_id,
                query,
                total,
                request.filters.model_dump(
                    mode="json", by_alias=True, exclude_none=True
                ),
            )
        except Exception as e:
            self._logger.warning(
                "Failed to record search history",
                extra={"error": str(e)},
            )

    def _suggestions(self, parsed: ParsedQuery, hits: list[SearchHit]) -> list[str]:
        base = parsed.text_for_embedding
        suggestions: list[str] = []
        for hit in hits:
            if hit.group_name:
                candidate = f"{base} in {hit.group_name}"
                if candidate not in suggestions:
                    suggestions.append(candidate)
        if parsed.date_range is None:
            suggestions.extend([f"{base} this week", f"{base} last month"])
        return suggestions[: self._settings.max_suggestions]


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _terms(text: str) -> list[str]:
    return [t.lower() for t in _TERM.findall(text)]


def _excerpt(transcript: str, terms: list[str], length: int) -> tuple[str, list[int]]:
    """Cut a window of ``length`` chars around the first matching term.

    Returns:
        The excerpt and flat ``[start, end, start, end, ...]`` offsets of every
        term occurrence inside it.
    """
    if not transcript:
        return "", []
    lowered = transcript.lower()
    first = min(
        (idx for idx in (lowered.find(t) for t in terms) if idx >= 0),
        default=0,
    )
    start = max(0, first - length // 4)
    window = transcript[start : start + length]
    window_lower = window.lower()

    spans: set[tuple[int, int]] = set()
    for term in terms:
        for match in re.finditer(re.escape(term), window_lower):
            spans.add((match.start(), match.end()))
    return window, [offset for span in sorted(spans) for offset in span]

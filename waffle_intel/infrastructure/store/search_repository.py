"""Parameterized pgvector similarity search over the caller's visible waffles."""

from typing import Any

from waffle_intel.commons.infrastructure.relationaldb import RelationalDBBase
from waffle_intel.commons.telemetry import get_logger, timed
from waffle_intel.domain.models import SearchCriteria, SearchHit

logger = get_logger(__name__)

_SELECT_HITS = """
SELECT w.id::text AS waffle_id, w.user_id::text AS user_id,
       w.group_id::text AS group_id, g.name AS group_name,
       p.name AS user_name, p.avatar_url,
       w.content_url, w.content_type, w.caption, w.created_at,
       vm.transcript, vm.ai_recap, w.thumbnail_url, vm.thumbnail_locator,
       COALESCE(w.duration_seconds, vm.duration_seconds) AS duration_seconds,
       (vm.embedding <=> {vector}) AS distance
"""

_FROM = """
FROM video_metadata vm
JOIN waffles w ON w.id = vm.waffle_id
JOIN group_members gm ON gm.group_id = w.group_id AND gm.user_id = {caller}::uuid
JOIN groups g ON g.id = w.group_id
LEFT JOIN profiles p ON p.id = w.user_id
"""


class _Params:
    """Collects positional arguments and hands out ``$n`` placeholders."""

    def __init__(self) -> None:
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


class SearchQueryBuilder:
    """Builds the page, count and corpus-count statements for one search.

    Membership is enforced by the join on ``group_members`` for the caller,
    so a hit is always in a group the caller belongs to.
    """

    def __init__(self, criteria: SearchCriteria) -> None:
        self._criteria = criteria

    def _where(self, params: _Params, vector: str | None) -> str:
        c = self._criteria
        clauses = ["vm.embedding IS NOT NULL"]
        if vector is not None:
            clauses.append(
                f"(vm.embedding <=> {vector}) < {params.add(c.distance_threshold)}"
            )
        if c.group_ids:
            clauses.append(f"w.group_id = ANY({params.add(c.group_ids)}::uuid[])")
        if c.user_ids:
            clauses.append(f"w.user_id = ANY({params.add(c.user_ids)}::uuid[])")
        if c.date_range is not None:
            if c.date_range.start is not None:
                clauses.append(f"w.created_at >= {params.add(c.date_range.start)}")
            if c.date_range.end is not None:
                clauses.append(f"w.created_at < {params.add(c.date_range.end)}")
        if c.content_type is not None:
            clauses.append(f"w.content_type = {params.add(c.content_type.value)}")
        return "WHERE " + "\n  AND ".join(clauses)

    def build_search(self) -> tuple[str, list[Any]]:
        params = _Params()
        vector = params.add(self._criteria.embedding)
        caller = params.add(self._criteria.user_id)
        where = self._where(params, vector)
        limit = params.add(self._criteria.limit)
        offset = params.add(self._criteria.offset)
        sql = (
            _SELECT_HITS.format(vector=vector)
            + _FROM.format(caller=caller)
            + where
            + "\nORDER BY distance ASC, w.created_at DESC"
            + f"\nLIMIT {limit} OFFSET {offset}"
        )
        return sql, params.values

    def build_count(self) -> tuple[str, list[Any]]:
        params = _Params()
        vector = params.add(self._criteria.embedding)
        caller = params.add(self._criteria.user_id)
        where = self._where(params, vector)
        sql = "SELECT COUNT(*)" + _FROM.format(caller=caller) + where
        return sql, params.values

    def build_corpus_count(self) -> tuple[str, list[Any]]:
        """Count visible indexed waffles under the filters, ignoring similarity."""
        params = _Params()
        caller = params.add(self._criteria.user_id)
        where = self._where(params, None)
        sql = "SELECT COUNT(*)" + _FROM.format(caller=caller) + where
        return sql, params.values


class SearchRepository:
    """Runs similarity searches built by SearchQueryBuilder."""

    def __init__(self, db: RelationalDBBase) -> None:
        self._db = db

    @timed(operation="vector_search")
    async def search(self, criteria: SearchCriteria) -> list[SearchHit]:
        sql, args = SearchQueryBuilder(criteria).build_search()
        rows = await self._db.fetch(sql, *args)
        return [SearchHit(**dict(row)) for row in rows]

    async def count(self, criteria: SearchCriteria) -> int:
        sql, args = SearchQueryBuilder(criteria).build_count()
        return int(await self._db.fetchval(sql, *args) or 0)

    async def count_corpus(self, criteria: SearchCriteria) -> int:
        sql, args = SearchQueryBuilder(criteria).build_corpus_count()
        return int(await self._db.fetchval(sql, *args) or 0)

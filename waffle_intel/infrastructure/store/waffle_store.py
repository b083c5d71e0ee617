"""Queries against collaborator-owned tables: waffles, groups, members, profiles."""

import json
import uuid
from datetime import datetime
from typing import Any

from waffle_intel.commons.infrastructure.relationaldb import RelationalDBBase
from waffle_intel.commons.telemetry import get_logger
from waffle_intel.domain.models import CatchUpWaffle, TranscriptSample, WafflePost
from waffle_intel.domain.value_objects import ContentKey

logger = get_logger(__name__)

_POST_COLUMNS = """
    id::text AS id, user_id::text AS user_id, group_id::text AS group_id,
    content_url, content_type, caption, created_at, thumbnail_url, duration_seconds
"""


def _as_uuid(value: str) -> str | None:
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


class WaffleStore:
    """Read-mostly access to posts, memberships and search history."""

    def __init__(self, db: RelationalDBBase) -> None:
        self._db = db

    async def get_post(self, waffle_id: str) -> WafflePost | None:
        row = await self._db.fetchrow(
            f"SELECT {_POST_COLUMNS} FROM waffles WHERE id = $1::uuid", waffle_id
        )
        return WafflePost(**dict(row)) if row else None

    async def find_post_by_locator(self, key: ContentKey) -> WafflePost | None:
        """Resolve the post that owns an uploaded object.

        Tries, in order: a video post whose ``content_url`` contains the
        object's ``bucket/path``, then a post whose id equals the file stem.
        """
        row = await self._db.fetchrow(
            f"""
            SELECT {_POST_COLUMNS} FROM waffles
            WHERE content_type = 'video' AND strpos(content_url, $1) > 0
            ORDER BY created_at DESC
            LIMIT 1
            """,
            str(key),
        )
        if row:
            return WafflePost(**dict(row))

        stem_id = _as_uuid(key.stem)
        if stem_id is None:
            return None
        return await self.get_post(stem_id)

    async def update_post_media(
        self,
        waffle_id: str,
        thumbnail_url: str,
        duration_seconds: int | None,
    ) -> bool:
        """Set a post's thumbnail and, when known, its duration."""
        status = await self._db.execute(
            """
            UPDATE waffles
            SET thumbnail_url = $2,
                duration_seconds = COALESCE($3, duration_seconds)
            WHERE id = $1::uuid
            """,
            waffle_id,
            thumbnail_url,
            duration_seconds,
        )
        return status.endswith(" 1")

    async def is_group_member(self, user_id: str, group_id: str) -> bool:
        return bool(
            await self._db.fetchval(
                """
                SELECT EXISTS(
                    SELECT 1 FROM group_members
                    WHERE group_id = $1::uuid AND user_id = $2::uuid
                )
                """,
                group_id,
                user_id,
            )
        )

    async def recent_captions(
        self,
        user_id: str,
        *,
        group_id: str | None,
        limit: int,
        exclude: str,
    ) -> list[str]:
        """The user's latest non-default captions, newest first."""
        args: list[Any] = [user_id, exclude, limit]
        group_filter = ""
        if group_id is not None:
            group_filter = "AND group_id = $4::uuid"
            args.append(group_id)
        rows = await self._db.fetch(
            f"""
            SELECT caption FROM waffles
            WHERE user_id = $1::uuid
              AND caption IS NOT NULL
              AND btrim(caption) <> ''
              AND caption <> $2
              {group_filter}
            ORDER BY created_at DESC
            LIMIT $3
            """,
            *args,
        )
        return [row["caption"] for row in rows]

    async def recent_transcripts(
        self,
        group_id: str,
        user_id: str,
        *,
        limit: int,
        own: bool,
    ) -> list[TranscriptSample]:
        """Latest transcribed waffles in a group by the user, or by everyone else."""
        author_filter = "w.user_id = $2::uuid" if own else "w.user_id <> $2::uuid"
        rows = await self._db.fetch(
            f"""
            SELECT w.id::text AS waffle_id, w.user_id::text AS user_id,
                   p.name AS user_name, w.caption, vm.transcript, vm.ai_recap,
                   w.created_at
            FROM waffles w
            JOIN video_metadata vm ON vm.waffle_id = w.id
            LEFT JOIN profiles p ON p.id = w.user_id
            WHERE w.group_id = $1::uuid AND {author_filter}
            ORDER BY w.created_at DESC
            LIMIT $3
            """,
            group_id,
            user_id,
            limit,
        )
        return [TranscriptSample(**dict(row)) for row in rows]

    async def catch_up_waffles(
        self,
        group_id: str,
        since: datetime,
        limit: int,
    ) -> list[CatchUpWaffle]:
        """Waffles posted to a group since ``since``, newest first."""
        rows = await self._db.fetch(
            """
            SELECT w.id::text AS waffle_id,
                   COALESCE(p.name, 'Someone') AS author_name,
                   w.created_at, w.caption, vm.ai_recap, vm.transcript
            FROM waffles w
            LEFT JOIN profiles p ON p.id = w.user_id
            LEFT JOIN LATERAL (
                SELECT ai_recap, transcript FROM video_metadata
                WHERE waffle_id = w.id
                ORDER BY updated_at DESC
                LIMIT 1
            ) vm ON TRUE
            WHERE w.group_id = $1::uuid AND w.created_at >= $2
            ORDER BY w.created_at DESC
            LIMIT $3
            """,
            group_id,
            since,
            limit,
        )
        return [CatchUpWaffle(**dict(row)) for row in rows]

    async def record_search(
        self,
        user_id: str,
        query: str,
        results_count: int,
        filters: dict[str, Any],
    ) -> None:
        await self._db.execute(
            """
            INSERT INTO search_history (user_id, query, results_count, filters)
            VALUES ($1::uuid, $2, $3, $4::jsonb)
            """,
            user_id,
            query,
            results_count,
            json.dumps(filters, default=str),
        )

"""PostgreSQL/pgvector store for per-video transcripts and embeddings."""

from collections.abc import Sequence
from typing import Any

from waffle_intel.commons.infrastructure.relationaldb import Record, RelationalDBBase
from waffle_intel.commons.telemetry import get_logger
from waffle_intel.domain.models import MetadataLink, TranscriptSample, VideoMetadata

logger = get_logger(__name__)

_UPSERT = """
INSERT INTO video_metadata (
    content_key, waffle_id, transcript, embedding, ai_recap,
    thumbnail_locator, duration_seconds, created_at, updated_at
)
VALUES ($1, $2::uuid, $3, $4, $5, $6, $7, NOW(), NOW())
ON CONFLICT (content_key) DO UPDATE SET
    waffle_id = COALESCE(EXCLUDED.waffle_id, video_metadata.waffle_id),
    transcript = EXCLUDED.transcript,
    embedding = EXCLUDED.embedding,
    ai_recap = EXCLUDED.ai_recap,
    thumbnail_locator = COALESCE(
        EXCLUDED.thumbnail_locator, video_metadata.thumbnail_locator
    ),
    duration_seconds = COALESCE(
        EXCLUDED.duration_seconds, video_metadata.duration_seconds
    ),
    updated_at = NOW()
RETURNING waffle_id::text AS waffle_id, created_at, updated_at
"""

_GET = """
SELECT content_key, waffle_id::text AS waffle_id, transcript, embedding, ai_recap,
       thumbnail_locator, duration_seconds, created_at, updated_at
FROM video_metadata
WHERE content_key = $1
"""

_NEAREST = """
SELECT w.id::text AS waffle_id, w.user_id::text AS user_id, w.caption,
       vm.transcript, vm.ai_recap, w.created_at,
       (vm.embedding <=> $1) AS distance
FROM video_metadata vm
JOIN waffles w ON w.id = vm.waffle_id
WHERE vm.embedding IS NOT NULL
  AND w.caption IS NOT NULL
  AND btrim(w.caption) <> ''
  AND w.caption <> $2
  AND {scope}
ORDER BY distance ASC
LIMIT $4
"""

# Rows stored before their post existed. A match is a video post whose
# content_url contains the content key, or a post whose id is the file stem.
_LINK_PENDING = """
WITH pending AS (
    SELECT vm.content_key, owner.id AS waffle_id
    FROM video_metadata vm
    CROSS JOIN LATERAL (
        SELECT w.id
        FROM waffles w
        WHERE (w.content_type = 'video' AND strpos(w.content_url, vm.content_key) > 0)
           OR w.id::text = split_part(
                  regexp_replace(vm.content_key, '^.*/', ''), '.', 1
              )
        ORDER BY w.created_at DESC
        LIMIT 1
    ) AS owner
    WHERE vm.waffle_id IS NULL
      AND vm.created_at > NOW() - make_interval(hours => $2)
    ORDER BY vm.created_at DESC
    LIMIT $1
)
UPDATE video_metadata vm
SET waffle_id = pending.waffle_id,
    updated_at = NOW()
FROM pending
WHERE vm.content_key = pending.content_key
  AND vm.waffle_id IS NULL
RETURNING vm.content_key, vm.waffle_id::text AS waffle_id,
          vm.thumbnail_locator, vm.duration_seconds
"""


def _to_float_list(value: Any) -> list[float]:
    # The pgvector codec returns a numpy array or a Vector depending on version.
    if hasattr(value, "tolist"):
        return [float(v) for v in value.tolist()]
    if hasattr(value, "to_list"):
        return [float(v) for v in value.to_list()]
    return [float(v) for v in value]


class VideoMetadataStore:
    """Reads and writes the ``video_metadata`` table."""

    def __init__(self, db: RelationalDBBase) -> None:
        self._db = db

    async def upsert(self, record: VideoMetadata) -> VideoMetadata:
        """Insert or refresh the row for ``record.content_key``.

        Transcript, embedding and recap are overwritten. Thumbnail, duration
        and waffle id keep their stored values when the new record has none.

        Returns:
            The record with database timestamps and resolved waffle id.
        """
        row = await self._db.fetchrow(
            _UPSERT,
            record.content_key,
            record.waffle_id,
            record.transcript,
            record.embedding,
            record.ai_recap,
            record.thumbnail_locator,
            record.duration_seconds,
        )
        if row is None:
            return record
        logger.info(
            "Video metadata upserted",
            extra={"content_key": record.content_key, "waffle_id": row["waffle_id"]},
        )
        return record.model_copy(
            update={
                "waffle_id": row["waffle_id"],
                "created_at": row["created_at"],
                "updated_at": row["updated_at"],
            }
        )

    async def get(self, content_key: str) -> VideoMetadata | None:
        row = await self._db.fetchrow(_GET, content_key)
        if row is None:
            return None
        data = dict(row)
        data["embedding"] = _to_float_list(data["embedding"])
        return VideoMetadata(**data)

    async def nearest_transcripts(
        self,
        embedding: list[float],
        *,
        user_id: str,
        group_id: str | None,
        limit: int,
        exclude_caption: str,
    ) -> list[TranscriptSample]:
        """Captioned waffles whose transcripts are closest to ``embedding``.

        Scope is the group when ``group_id`` is given, otherwise the caller's
        own waffles.
        """
        if group_id is not None:
            query = _NEAREST.format(scope="w.group_id = $3::uuid")
            scope_id = group_id
        else:
            query = _NEAREST.format(scope="w.user_id = $3::uuid")
            scope_id = user_id
        rows: Sequence[Record] = await self._db.fetch(
            query, embedding, exclude_caption, scope_id, limit
        )
        return [TranscriptSample(**dict(row)) for row in rows]

    async def link_pending(
        self, *, limit: int, window_hours: int
    ) -> list[MetadataLink]:
        """Attach unlinked rows from the last ``window_hours`` to their posts.

        Returns:
            The rows that were linked in this pass.
        """
        rows: Sequence[Record] = await self._db.fetch(
            _LINK_PENDING, limit, window_hours
        )
        links = [MetadataLink(**dict(row)) for row in rows]
        if links:
            logger.info("Linked pending video metadata", extra={"linked": len(links)})
        return links

"""Repositories over the PostgreSQL schema."""

from waffle_intel.infrastructure.store.metadata_store import VideoMetadataStore
from waffle_intel.infrastructure.store.search_repository import (
    SearchQueryBuilder,
    SearchRepository,
)
from waffle_intel.infrastructure.store.waffle_store import WaffleStore

__all__ = [
    "SearchQueryBuilder",
    "SearchRepository",
    "VideoMetadataStore",
    "WaffleStore",
]

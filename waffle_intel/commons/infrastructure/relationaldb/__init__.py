"""Relational database abstractions and implementations."""

from waffle_intel.commons.infrastructure.relationaldb.base import (
    Record,
    RelationalDBBase,
)
from waffle_intel.commons.infrastructure.relationaldb.postgres_provider import (
    PostgresDatabase,
)

__all__ = ["PostgresDatabase", "Record", "RelationalDBBase"]

"""Abstract base class for relational database access."""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from waffle_intel.commons.infrastructure.blob.base import HealthStatus

Record = Mapping[str, Any]


class RelationalDBBase(ABC):
    """Parameterized-query access to a SQL database.

    Each call acquires a pooled connection for the duration of one statement
    and releases it before returning. Callers never hold a connection across
    an external API call.

    Implementations should handle:
    - PostgreSQL with pgvector (asyncpg)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection pool."""

    @abstractmethod
    async def close(self) -> None:
        """Close the connection pool."""

    @abstractmethod
    async def fetch(self, query: str, *args: Any) -> Sequence[Record]:
        """Run a query and return every row."""

    @abstractmethod
    async def fetchrow(self, query: str, *args: Any) -> Record | None:
        """Run a query and return the first row, or None."""

    @abstractmethod
    async def fetchval(self, query: str, *args: Any) -> Any:
        """Run a query and return the first column of the first row."""

    @abstractmethod
    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement and return its status tag."""

    @abstractmethod
    async def health_check(self) -> HealthStatus:
        """Check database connectivity."""

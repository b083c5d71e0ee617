"""Abstract base class for object storage operations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import BinaryIO


@dataclass
class BlobMetadata:
    """Metadata for a stored object."""

    bucket: str
    path: str
    size_bytes: int
    content_type: str
    created_at: datetime
    etag: str


@dataclass
class HealthStatus:
    """Health check result."""

    healthy: bool
    latency_ms: float
    message: str | None = None
    details: dict[str, str] | None = None


class BlobNotFoundError(Exception):
    """Raised when an object does not exist."""

    def __init__(self, bucket: str, path: str) -> None:
        self.bucket = bucket
        self.path = path
        super().__init__(f"Blob not found: {bucket}/{path}")


class BlobStorageBase(ABC):
    """Abstract base class for object storage.

    Implementations should handle:
    - Supabase Storage through its S3-compatible endpoint
    - MinIO (local development)
    - AWS S3
    """

    @abstractmethod
    async def upload(
        self,
        bucket: str,
        path: str,
        data: BinaryIO | bytes,
        content_type: str = "application/octet-stream",
    ) -> BlobMetadata:
        """Upload an object, replacing any existing one at ``path``.

        Args:
            bucket: Target bucket name.
            path: Path within the bucket.
            data: File-like object or bytes to upload.
            content_type: MIME type of the content.

        Returns:
            Metadata of the uploaded object.
        """

    @abstractmethod
    async def upload_file(
        self,
        bucket: str,
        path: str,
        local_path: Path,
        content_type: str = "application/octet-stream",
    ) -> BlobMetadata:
        """Upload a local file without reading it fully into memory."""

    @abstractmethod
    async def download_to_file(self, bucket: str, path: str, local_path: Path) -> None:
        """Download an object to a local file.

        Raises:
            BlobNotFoundError: If the object doesn't exist.
        """

    @abstractmethod
    async def exists(self, bucket: str, path: str) -> bool:
        """Check if an object exists."""

    @abstractmethod
    async def generate_presigned_url(
        self,
        bucket: str,
        path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """Generate a time-limited GET URL for direct access."""

    @abstractmethod
    async def health_check(self) -> HealthStatus:
        """Check service health."""

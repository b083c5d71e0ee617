"""MinIO client implementation of object storage."""

import asyncio
import io
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import BinaryIO

from minio import Minio
from minio.error import S3Error

from waffle_intel.commons.infrastructure.blob.base import (
    BlobMetadata,
    BlobNotFoundError,
    BlobStorageBase,
    HealthStatus,
)

_MISSING_CODES = frozenset({"NoSuchKey", "NoSuchObject", "NoSuchBucket"})


class MinioBlobStorage(BlobStorageBase):
    """S3-compatible object storage backed by the ``minio`` client.

    The client is synchronous, so every call runs in the default executor.
    """

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        secure: bool = False,
        region: str | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            endpoint: Host and port of the S3 endpoint (e.g. "localhost:9000").
            access_key: Access key ID.
            secret_key: Secret access key.
            secure: Use HTTPS.
            region: Bucket region.
        """
        self._client = Minio(
            endpoint=endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
            region=region,
        )
        self._endpoint = endpoint

    async def upload(
        self,
        bucket: str,
        path: str,
        data: BinaryIO | bytes,
        content_type: str = "application/octet-stream",
    ) -> BlobMetadata:
        if isinstance(data, bytes):
            stream: BinaryIO = io.BytesIO(data)
            length = len(data)
        else:
            data.seek(0, io.SEEK_END)
            length = data.tell()
            data.seek(0)
            stream = data

        def _put() -> None:
            self._client.put_object(
                bucket_name=bucket,
                object_name=path,
                data=stream,
                length=length,
                content_type=content_type,
            )

        await asyncio.get_running_loop().run_in_executor(None, _put)
        return await self._stat(bucket, path)

    async def upload_file(
        self,
        bucket: str,
        path: str,
        local_path: Path,
        content_type: str = "application/octet-stream",
    ) -> BlobMetadata:
        def _fput() -> None:
            self._client.fput_object(
                bucket_name=bucket,
                object_name=path,
                file_path=str(local_path),
                content_type=content_type,
            )

        await asyncio.get_running_loop().run_in_executor(None, _fput)
        return await self._stat(bucket, path)

    async def download_to_file(self, bucket: str, path: str, local_path: Path) -> None:
        local_path.parent.mkdir(parents=True, exist_ok=True)

        def _fget() -> None:
            try:
                self._client.fget_object(bucket, path, str(local_path))
            except S3Error as e:
                if e.code in _MISSING_CODES:
                    raise BlobNotFoundError(bucket, path) from e
                raise

        await asyncio.get_running_loop().run_in_executor(None, _fget)

    async def exists(self, bucket: str, path: str) -> bool:
        try:
            await self._stat(bucket, path)
        except BlobNotFoundError:
            return False
        return True

    async def generate_presigned_url(
        self,
        bucket: str,
        path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        def _presign() -> str:
            return str(
                self._client.presigned_get_object(
                    bucket_name=bucket,
                    object_name=path,
                    expires=timedelta(seconds=expiry_seconds),
                )
            )

        return await asyncio.get_running_loop().run_in_executor(None, _presign)

    async def health_check(self) -> HealthStatus:
        start = time.perf_counter()
        try:
            await asyncio.get_running_loop().run_in_executor(
                None, self._client.list_buckets
            )
        except Exception as e:
            return HealthStatus(
                healthy=False,
                latency_ms=(time.perf_counter() - start) * 1000,
                message=f"Object storage health check failed: {e}",
                details={"endpoint": self._endpoint, "error": str(e)},
            )
        return HealthStatus(
            healthy=True,
            latency_ms=(time.perf_counter() - start) * 1000,
            message="Object storage is healthy",
            details={"endpoint": self._endpoint},
        )

    async def _stat(self, bucket: str, path: str) -> BlobMetadata:
        def _stat_object() -> BlobMetadata:
            try:
                stat = self._client.stat_object(bucket, path)
            except S3Error as e:
                if e.code in _MISSING_CODES:
                    raise BlobNotFoundError(bucket, path) from e
                raise
            return BlobMetadata(
                bucket=bucket,
                path=path,
                size_bytes=stat.size or 0,
                content_type=stat.content_type or "application/octet-stream",
                created_at=stat.last_modified or datetime.now(UTC),
                etag=stat.etag or "",
            )

        return await asyncio.get_running_loop().run_in_executor(None, _stat_object)

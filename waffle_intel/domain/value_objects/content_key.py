"""Canonical storage locator for an uploaded media object."""

from __future__ import annotations

from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentKey(BaseModel):
    """Value object naming an object as ``<bucket>/<path>``.

    This is the identity of a VideoMetadata row. It is never a signed or
    public URL, only the bucket-relative location.

    Examples:
        >>> key = ContentKey.parse("waffles/group-1/abc.mp4")
        >>> key.bucket, key.path, key.stem
        ('waffles', 'group-1/abc.mp4', 'abc')
    """

    model_config = ConfigDict(frozen=True)

    bucket: str = Field(min_length=1, description="Storage bucket name")
    path: str = Field(min_length=1, description="Object path within the bucket")

    @field_validator("bucket", "path")
    @classmethod
    def _strip_slashes(cls, v: str) -> str:
        stripped = v.strip().strip("/")
        if not stripped:
            raise ValueError("bucket and path must be non-empty")
        return stripped

    @classmethod
    def parse(cls, value: str) -> ContentKey:
        """Parse ``bucket/path`` into a ContentKey."""
        bucket, sep, path = value.strip().strip("/").partition("/")
        if not sep:
            raise ValueError(f"Content key must be '<bucket>/<path>': {value!r}")
        return cls(bucket=bucket, path=path)

    @property
    def filename(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lower()

    def is_thumbnail(self, suffix: str, prefix: str | None = None) -> bool:
        """Whether this object is a generated thumbnail, not a source video."""
        if self.path.lower().endswith(suffix.lower()):
            return True
        return bool(prefix) and self.path.startswith(prefix.strip("/") + "/")

    def thumbnail_path(self, suffix: str) -> str:
        """Object path for this video's thumbnail, next to the video."""
        parent = PurePosixPath(self.path).parent
        name = f"{self.stem}{suffix}"
        return name if str(parent) == "." else f"{parent}/{name}"

    def __str__(self) -> str:
        return f"{self.bucket}/{self.path}"

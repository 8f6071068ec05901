"""Abstract base class and types for object-storage providers."""

import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

import structlog

from camp_registry.providers.errors import ConfigurationError

logger = structlog.get_logger()

DEFAULT_PRESIGN_TTL_SECONDS = 300

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass
class StoredObject:
    """An object written to a bucket.

    Attributes:
        bucket: Bucket the object lives in.
        key: Object key.
        size: Content length in bytes.
        etag: Vendor entity tag, if returned.
        content_type: MIME type sent with the object.
        public_url: Browsable link, only for public buckets.
    """

    bucket: str
    key: str
    size: int
    etag: str | None = None
    content_type: str | None = None
    public_url: str | None = None


@dataclass
class PresignedUpload:
    """A signed URL the client can PUT content to directly.

    ``public_url`` is set only when the bucket is public.
    """

    url: str
    key: str
    ttl_seconds: int
    public_url: str | None = None


@dataclass
class PresignedDownload:
    """A signed URL granting temporary read access to one object."""

    url: str
    key: str
    ttl_seconds: int


def build_object_key(filename: str, now: datetime | None = None) -> str:
    """Build a collision-resistant object key from an uploaded file name.

    Args:
        filename: Client-supplied file name.
        now: Timestamp to use (defaults to the current time).

    Returns:
        ``"{epoch_ms}-{safe_name}"`` where characters outside
        ``[A-Za-z0-9._-]`` are replaced by ``_``.

    Example:
        >>> build_object_key("camp photo (1).png", datetime(2024, 1, 1, tzinfo=UTC))
        '1704067200000-camp_photo__1_.png'
    """
    epoch_ms = int(now.timestamp() * 1000) if now else int(time.time() * 1000)
    return f"{epoch_ms}-{_UNSAFE_KEY_CHARS.sub('_', filename)}"


class StorageProvider(ABC):
    """Abstract base class for S3-compatible object stores."""

    def __init__(self, provider_name: str) -> None:
        self._provider_name = provider_name
        self._initialized = False

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return self._provider_name

    @property
    def is_ready(self) -> bool:
        """Return True once ``initialize()`` succeeded."""
        return self._initialized

    def _require_ready(self) -> None:
        if not self._initialized:
            logger.error("provider_not_initialized", provider=self._provider_name)
            raise ConfigurationError(
                f"{self._provider_name} is not initialized",
                provider=self._provider_name,
            )

    @abstractmethod
    async def initialize(self) -> None:
        """Build the vendor client. Must leave ``is_ready`` True on success."""
        ...

    @abstractmethod
    async def put_object(
        self,
        bucket: str,
        key: str,
        content: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        """Write an object.

        Raises:
            ProviderError: On vendor failure after retries.
        """
        ...

    @abstractmethod
    async def delete_object(self, bucket: str, key: str) -> None:
        """Delete an object. Deleting a missing key is not an error."""
        ...

    @abstractmethod
    async def presigned_put_url(
        self,
        bucket: str,
        key: str,
        content_type: str,
        ttl_seconds: int = DEFAULT_PRESIGN_TTL_SECONDS,
    ) -> PresignedUpload:
        """Sign a direct-upload URL. Signing is local; no network call."""
        ...

    @abstractmethod
    async def presigned_get_url(
        self, bucket: str, key: str, ttl_seconds: int = DEFAULT_PRESIGN_TTL_SECONDS
    ) -> PresignedDownload:
        """Sign a temporary download URL."""
        ...

    def public_url(self, bucket: str, key: str) -> str | None:
        """Return a browsable link for ``key``, or None for private buckets."""
        return None

    def config_info(self) -> dict[str, object]:
        """Return a log-safe description of the provider."""
        return {"provider": self._provider_name, "is_ready": self.is_ready}

"""Mock storage provider for testing.

Objects live in a dict keyed by ``(bucket, key)``; presigned URLs are
deterministic fakes.
"""

from typing import Any

from camp_registry.providers.storage.base import (
    DEFAULT_PRESIGN_TTL_SECONDS,
    PresignedDownload,
    PresignedUpload,
    StorageProvider,
    StoredObject,
)


class MockStorageProvider(StorageProvider):
    """In-memory object store.

    Attributes:
        calls: Record of all method invocations for test assertions.
        objects: Stored content keyed by ``(bucket, key)``.
    """

    MOCK_BASE_URL = "https://storage.mock"

    def __init__(self, *, public: bool = False) -> None:
        """Initialize the mock provider. Ready without ``initialize()``.

        Args:
            public: Whether ``public_url`` returns links.
        """
        super().__init__("mock")
        self._initialized = True
        self._public = public
        self.calls: list[dict[str, Any]] = []
        self.objects: dict[tuple[str, str], bytes] = {}

    async def initialize(self) -> None:
        self.calls.append({"method": "initialize"})
        self._initialized = True

    async def put_object(
        self,
        bucket: str,
        key: str,
        content: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        self.calls.append(
            {
                "method": "put_object",
                "bucket": bucket,
                "key": key,
                "content_type": content_type,
                "metadata": metadata,
            }
        )
        self.objects[(bucket, key)] = content
        return StoredObject(
            bucket=bucket,
            key=key,
            size=len(content),
            etag=f'"mock-{len(content)}"',
            content_type=content_type,
            public_url=self.public_url(bucket, key),
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        self.calls.append({"method": "delete_object", "bucket": bucket, "key": key})
        self.objects.pop((bucket, key), None)

    async def presigned_put_url(
        self,
        bucket: str,
        key: str,
        content_type: str,
        ttl_seconds: int = DEFAULT_PRESIGN_TTL_SECONDS,
    ) -> PresignedUpload:
        self.calls.append(
            {"method": "presigned_put_url", "bucket": bucket, "key": key, "content_type": content_type}
        )
        return PresignedUpload(
            url=f"{self.MOCK_BASE_URL}/{bucket}/{key}?signature=put&expires={ttl_seconds}",
            key=key,
            ttl_seconds=ttl_seconds,
            public_url=self.public_url(bucket, key),
        )

    async def presigned_get_url(
        self, bucket: str, key: str, ttl_seconds: int = DEFAULT_PRESIGN_TTL_SECONDS
    ) -> PresignedDownload:
        self.calls.append({"method": "presigned_get_url", "bucket": bucket, "key": key})
        return PresignedDownload(
            url=f"{self.MOCK_BASE_URL}/{bucket}/{key}?signature=get&expires={ttl_seconds}",
            key=key,
            ttl_seconds=ttl_seconds,
        )

    def public_url(self, bucket: str, key: str) -> str | None:
        if not self._public:
            return None
        return f"{self.MOCK_BASE_URL}/{bucket}/{key}"

    def assert_stored(self, bucket: str, key: str) -> None:
        """Test helper to verify an object was written.

        Raises:
            AssertionError: If the object is not stored.
        """
        assert (bucket, key) in self.objects, (
            f"Expected '{bucket}/{key}' to be stored, got {sorted(self.objects)}"
        )

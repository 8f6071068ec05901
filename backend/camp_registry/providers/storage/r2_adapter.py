"""Cloudflare R2 storage adapter.

R2 speaks the S3 API, so the adapter drives a plain boto3 S3 client pointed
at the account endpoint with path-style addressing and SigV4. boto3 is
blocking; every network call runs in a worker thread.
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any, TypeVar

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    NoCredentialsError,
    ReadTimeoutError,
)

from camp_registry.providers.config import StorageConfig
from camp_registry.providers.errors import (
    AuthenticationError,
    ProviderError,
    ProviderTimeoutError,
    classify_error,
)
from camp_registry.providers.retry import with_retries
from camp_registry.providers.storage.base import (
    DEFAULT_PRESIGN_TTL_SECONDS,
    PresignedDownload,
    PresignedUpload,
    StorageProvider,
    StoredObject,
)

logger = structlog.get_logger()

PROVIDER_NAME = "r2"
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY_MS = 1000

T = TypeVar("T")


def _classify_storage_error(error: Exception) -> ProviderError:
    """Map botocore exceptions to the provider taxonomy.

    Returns a ProviderError subclass instance (does not raise).

    ``ClientError`` carries the S3 error code (``NoSuchKey``,
    ``SignatureDoesNotMatch``, ...) and the HTTP status in its response dict;
    both are handed to ``classify_error`` as tag and status.
    """
    if isinstance(error, ProviderError):
        return error

    if isinstance(error, ConnectTimeoutError | ReadTimeoutError):
        return ProviderTimeoutError(str(error), cause=error, provider=PROVIDER_NAME)

    if isinstance(error, NoCredentialsError):
        return AuthenticationError(str(error), cause=error, provider=PROVIDER_NAME)

    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return classify_error(
            {
                "message": details.get("Message") or str(error),
                "code": details.get("Code"),
                "status_code": status,
            },
            provider=PROVIDER_NAME,
            cause=error,
        )

    return classify_error(error, provider=PROVIDER_NAME)


class R2StorageAdapter(StorageProvider):
    """Object storage on Cloudflare R2 (S3-compatible)."""

    def __init__(
        self,
        config: StorageConfig,
        *,
        client: Any = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_base_delay_ms: int = DEFAULT_RETRY_BASE_DELAY_MS,
    ) -> None:
        """Initialize the adapter. Call ``initialize()`` before use.

        Args:
            config: Validated storage configuration.
            client: Pre-built boto3 S3 client (tests inject a mock here).
            max_attempts: Attempts for retried writes.
            retry_base_delay_ms: Linear backoff unit for retried writes.
        """
        super().__init__(PROVIDER_NAME)
        self.config = config
        self.client = client
        self._max_attempts = max_attempts
        self._retry_base_delay_ms = retry_base_delay_ms

    async def initialize(self) -> None:
        """Build the S3 client. No network call is made."""
        if self.client is None:
            self.client = boto3.client(
                "s3",
                endpoint_url=self.config.endpoint,
                region_name=self.config.region,
                aws_access_key_id=self.config.access_key_id,
                aws_secret_access_key=self.config.secret_access_key,
                config=Config(
                    signature_version="s3v4",
                    s3={"addressing_style": "path"},
                    retries={"max_attempts": 1, "mode": "standard"},
                ),
            )
        self._initialized = True
        logger.info(
            "provider_initialized",
            provider=PROVIDER_NAME,
            endpoint=self.config.endpoint,
            bucket=self.config.bucket,
            access_key_id=self.config.masked_access_key,
        )

    async def _call(
        self,
        operation: str,
        func: Callable[[], T],
        *,
        retry: bool = True,
        **log_context: Any,
    ) -> T:
        """Run one blocking S3 call in a thread, classify failures and log them."""
        self._require_ready()
        start_time = time.monotonic()

        async def attempt() -> T:
            return await asyncio.to_thread(func)

        try:
            if retry:
                return await with_retries(
                    attempt,
                    self._max_attempts,
                    self._retry_base_delay_ms,
                    classify=_classify_storage_error,
                    provider=PROVIDER_NAME,
                    operation=operation,
                )
            return await attempt()
        except Exception as e:
            error = _classify_storage_error(e)
            logger.error(
                "provider_request_failed",
                provider=PROVIDER_NAME,
                operation=operation,
                error_kind=error.kind.value,
                status_code=error.status_code,
                error=error.message,
                latency_ms=(time.monotonic() - start_time) * 1000,
                **log_context,
            )
            if error is e:
                raise
            raise error from e

    async def put_object(
        self,
        bucket: str,
        key: str,
        content: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        params: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": content}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata

        result = await self._call(
            "put_object",
            lambda: self.client.put_object(**params),
            bucket=bucket,
            key=key,
        )
        logger.info(
            "object_stored",
            provider=PROVIDER_NAME,
            bucket=bucket,
            key=key,
            size=len(content),
        )
        return StoredObject(
            bucket=bucket,
            key=key,
            size=len(content),
            etag=result.get("ETag"),
            content_type=content_type,
            public_url=self.public_url(bucket, key),
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        await self._call(
            "delete_object",
            lambda: self.client.delete_object(Bucket=bucket, Key=key),
            bucket=bucket,
            key=key,
        )
        logger.info("object_deleted", provider=PROVIDER_NAME, bucket=bucket, key=key)

    async def presigned_put_url(
        self,
        bucket: str,
        key: str,
        content_type: str,
        ttl_seconds: int = DEFAULT_PRESIGN_TTL_SECONDS,
    ) -> PresignedUpload:
        """Sign a direct-upload URL bound to ``content_type``.

        The uploader must send the same ``Content-Type`` header or R2 rejects
        the signature.
        """
        url = await self._call(
            "presigned_put_url",
            lambda: self.client.generate_presigned_url(
                "put_object",
                Params={"Bucket": bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=ttl_seconds,
            ),
            retry=False,
            bucket=bucket,
            key=key,
        )
        return PresignedUpload(
            url=url,
            key=key,
            ttl_seconds=ttl_seconds,
            public_url=self.public_url(bucket, key),
        )

    async def presigned_get_url(
        self, bucket: str, key: str, ttl_seconds: int = DEFAULT_PRESIGN_TTL_SECONDS
    ) -> PresignedDownload:
        url = await self._call(
            "presigned_get_url",
            lambda: self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            ),
            retry=False,
            bucket=bucket,
            key=key,
        )
        return PresignedDownload(url=url, key=key, ttl_seconds=ttl_seconds)

    def public_url(self, bucket: str, key: str) -> str | None:
        """Return ``{base}/{bucket}/{key}`` when the bucket is public.

        ``base`` is ``public_base_url`` if configured, else the S3 endpoint,
        without trailing slashes.
        """
        if not self.config.bucket_public:
            return None
        base = (self.config.public_base_url or self.config.endpoint or "").rstrip("/")
        if not base:
            return None
        return f"{base}/{bucket}/{key}"

    def config_info(self) -> dict[str, object]:
        """Return a log-safe description of the adapter (keys masked)."""
        return {
            **super().config_info(),
            "endpoint": self.config.endpoint,
            "bucket": self.config.bucket,
            "region": self.config.region,
            "bucket_public": self.config.bucket_public,
            "access_key_id": self.config.masked_access_key,
        }

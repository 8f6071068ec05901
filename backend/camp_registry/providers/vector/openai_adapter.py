"""OpenAI vector-store adapter.

Translates the vector-store capability onto the OpenAI ``vector_stores``,
``files`` and ``file_batches`` endpoints. The SDK's own retry loop is
disabled (``max_retries=0``); retries go through ``with_retries`` so that
classification and logging stay consistent across providers.
"""

import contextlib
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import openai
import structlog
from openai import AsyncOpenAI

from camp_registry.providers.config import ProviderConfig
from camp_registry.providers.errors import (
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    classify_error,
)
from camp_registry.providers.metadata import sanitize_metadata
from camp_registry.providers.retry import with_retries
from camp_registry.providers.vector.base import (
    AttachmentStatus,
    CreateVectorStoreParams,
    DeleteResult,
    ExpiryPolicy,
    FileBatchInfo,
    FileCounts,
    FileInfo,
    FileUpload,
    Page,
    UpdateVectorStoreParams,
    UploadedFile,
    VectorStoreInfo,
    VectorStoreProvider,
    VectorStoreStatus,
    timestamp_to_datetime,
)
from camp_registry.providers.vector.polling import (
    AttachmentPoller,
    PollPolicy,
    check_terminal,
)

logger = structlog.get_logger()

PROVIDER_NAME = "openai"
DEFAULT_RETRY_BASE_DELAY_MS = 1000

T = TypeVar("T")


def _classify_openai_error(
    error: Exception, *, provider: str = PROVIDER_NAME
) -> ProviderError:
    """Map OpenAI SDK exceptions to the provider taxonomy.

    Returns a ProviderError subclass instance (does not raise).
    The caller is responsible for raising via ``raise _classify_openai_error(e) from e``.

    SDK timeouts carry no status, so they are mapped explicitly. Rate limit
    errors keep the ``retry-after`` header as a hint.
    """
    if isinstance(error, ProviderError):
        return error

    if isinstance(error, openai.APITimeoutError):
        return ProviderTimeoutError(str(error), cause=error, provider=provider)

    classified = classify_error(error, provider=provider)

    if isinstance(classified, RateLimitError) and isinstance(
        error, openai.RateLimitError
    ):
        retry_header = None
        if getattr(error, "response", None) is not None:
            retry_header = error.response.headers.get("retry-after")
        if retry_header is not None:
            with contextlib.suppress(ValueError):
                return RateLimitError(
                    classified.message,
                    retry_after_seconds=float(retry_header),
                    cause=error,
                    provider=provider,
                )

    return classified


def _file_counts(counts: Any) -> FileCounts:
    if counts is None:
        return FileCounts()
    return FileCounts(
        in_progress=counts.in_progress,
        completed=counts.completed,
        failed=counts.failed,
        cancelled=counts.cancelled,
        total=counts.total,
    )


def _to_store_info(store: Any) -> VectorStoreInfo:
    expires_after = None
    if getattr(store, "expires_after", None) is not None:
        expires_after = ExpiryPolicy(
            days=store.expires_after.days, anchor=store.expires_after.anchor
        )
    return VectorStoreInfo(
        id=store.id,
        status=VectorStoreStatus.from_vendor(store.status),
        file_counts=_file_counts(store.file_counts),
        usage_bytes=store.usage_bytes or 0,
        metadata=dict(store.metadata or {}),
        created_at=timestamp_to_datetime(store.created_at),
        name=store.name,
        expires_after=expires_after,
        expires_at=timestamp_to_datetime(getattr(store, "expires_at", None)),
        last_active_at=timestamp_to_datetime(getattr(store, "last_active_at", None)),
    )


def _to_file_info(attached: Any) -> FileInfo:
    last_error = getattr(attached, "last_error", None)
    return FileInfo(
        id=attached.id,
        status=AttachmentStatus.from_vendor(attached.status),
        created_at=timestamp_to_datetime(attached.created_at),
        size=getattr(attached, "usage_bytes", None) or 0,
        last_error=last_error.message if last_error is not None else None,
    )


def _to_uploaded_file(file: Any) -> UploadedFile:
    return UploadedFile(
        id=file.id,
        filename=file.filename,
        bytes=file.bytes,
        purpose=file.purpose,
        created_at=timestamp_to_datetime(file.created_at),
    )


def _to_batch_info(batch: Any) -> FileBatchInfo:
    return FileBatchInfo(
        id=batch.id,
        vector_store_id=batch.vector_store_id,
        status=AttachmentStatus.from_vendor(batch.status),
        file_counts=_file_counts(batch.file_counts),
        created_at=timestamp_to_datetime(batch.created_at),
    )


def _to_page(page: Any, convert: Callable[[Any], T]) -> Page[T]:
    data = [convert(item) for item in page.data]
    return Page(
        data=data,
        has_more=bool(getattr(page, "has_more", False)),
        first_id=data[0].id if data else None,
        last_id=data[-1].id if data else None,
    )


class OpenAIVectorStoreAdapter(VectorStoreProvider):
    """OpenAI adapter for vector stores, attachments and raw files."""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        client: AsyncOpenAI | None = None,
        poll_policy: PollPolicy | None = None,
        retry_base_delay_ms: int = DEFAULT_RETRY_BASE_DELAY_MS,
    ) -> None:
        """Initialize the adapter. Call ``initialize()`` before use.

        Args:
            config: Validated provider configuration.
            client: Pre-built SDK client (tests inject a mock here).
            poll_policy: Attachment polling budget.
            retry_base_delay_ms: Linear backoff unit for retried calls.
        """
        super().__init__(PROVIDER_NAME)
        self.config = config
        self.client = client
        self.poll_policy = poll_policy or PollPolicy()
        self._retry_base_delay_ms = retry_base_delay_ms

    async def initialize(self) -> None:
        """Build the SDK client from the config."""
        if self.client is None:
            self.client = AsyncOpenAI(
                api_key=self.config.api_key,
                organization=self.config.organization,
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                max_retries=0,
                default_headers=dict(self.config.default_headers),
            )
        self._initialized = True
        logger.info(
            "provider_initialized",
            provider=PROVIDER_NAME,
            api_key=self.config.masked_api_key,
            base_url=self.config.base_url,
        )

    async def reconfigure(self, config: ProviderConfig) -> None:
        """Swap in a new validated config and rebuild the SDK client."""
        self.config = config
        self.client = None
        self._initialized = False
        await self.initialize()

    async def _call(
        self,
        operation: str,
        func: Callable[[], Awaitable[T]],
        *,
        retry: bool = True,
        **log_context: Any,
    ) -> T:
        """Run one SDK call, classify failures and log them.

        Args:
            operation: Name used in log entries.
            func: Zero-argument coroutine factory issuing the SDK call.
            retry: Whether to route the call through the retry executor.
            **log_context: Extra fields for the failure log entry.

        Raises:
            ProviderError: Classified failure. The SDK exception is chained.
        """
        self._require_ready()
        start_time = time.monotonic()
        try:
            if retry:
                return await with_retries(
                    func,
                    self.config.max_retries,
                    self._retry_base_delay_ms,
                    classify=_classify_openai_error,
                    provider=PROVIDER_NAME,
                    operation=operation,
                )
            return await func()
        except Exception as e:
            error = _classify_openai_error(e)
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

    # Vector stores

    async def create_store(self, params: CreateVectorStoreParams) -> VectorStoreInfo:
        """Create a vector store. Metadata is sanitized before sending."""
        body: dict[str, Any] = {}
        if params.name is not None:
            body["name"] = params.name
        if params.file_ids:
            body["file_ids"] = list(params.file_ids)
        metadata = sanitize_metadata(params.metadata)
        if metadata is not None:
            body["metadata"] = metadata
        if params.expires_after is not None:
            body["expires_after"] = params.expires_after.to_payload()
        if params.chunking_strategy is not None:
            body["chunking_strategy"] = params.chunking_strategy.to_payload()

        store = await self._call(
            "create_store",
            lambda: self.client.vector_stores.create(**body),
            name=params.name,
        )
        info = _to_store_info(store)
        logger.info(
            "vector_store_created",
            provider=PROVIDER_NAME,
            vector_store_id=info.id,
            status=info.status.value,
        )
        return info

    async def get_store(self, store_id: str) -> VectorStoreInfo:
        store = await self._call(
            "get_store",
            lambda: self.client.vector_stores.retrieve(store_id),
            vector_store_id=store_id,
        )
        return _to_store_info(store)

    async def update_store(
        self, store_id: str, params: UpdateVectorStoreParams
    ) -> VectorStoreInfo:
        body: dict[str, Any] = {}
        if params.name is not None:
            body["name"] = params.name
        if params.metadata is not None:
            body["metadata"] = sanitize_metadata(params.metadata) or {}
        if params.expires_after is not None:
            body["expires_after"] = params.expires_after.to_payload()

        store = await self._call(
            "update_store",
            lambda: self.client.vector_stores.update(store_id, **body),
            retry=False,
            vector_store_id=store_id,
        )
        logger.info(
            "vector_store_updated", provider=PROVIDER_NAME, vector_store_id=store_id
        )
        return _to_store_info(store)

    async def delete_store(self, store_id: str) -> DeleteResult:
        deleted = await self._call(
            "delete_store",
            lambda: self.client.vector_stores.delete(store_id),
            retry=False,
            vector_store_id=store_id,
        )
        logger.info(
            "vector_store_deleted",
            provider=PROVIDER_NAME,
            vector_store_id=store_id,
            deleted=deleted.deleted,
        )
        return DeleteResult(id=deleted.id, deleted=deleted.deleted)

    async def list_stores(
        self, limit: int = 20, after: str | None = None
    ) -> Page[VectorStoreInfo]:
        query: dict[str, Any] = {"limit": limit}
        if after is not None:
            query["after"] = after
        page = await self._call(
            "list_stores", lambda: self.client.vector_stores.list(**query)
        )
        return _to_page(page, _to_store_info)

    # Attachments

    async def list_files(self, store_id: str) -> Page[FileInfo]:
        page = await self._call(
            "list_files",
            lambda: self.client.vector_stores.files.list(store_id),
            vector_store_id=store_id,
        )
        return _to_page(page, _to_file_info)

    async def _retrieve_attachment(self, store_id: str, file_id: str) -> FileInfo:
        attached = await self.client.vector_stores.files.retrieve(
            file_id, vector_store_id=store_id
        )
        return _to_file_info(attached)

    async def attach_file(self, store_id: str, file_id: str) -> FileInfo:
        """Attach an uploaded file and wait until ingestion finishes.

        The first poll happens right after the attach call. A not-found while
        polling is treated as "not visible yet" until the budget runs out.

        Raises:
            AttachmentFailedError: Ingestion failed (reason from the vendor).
            AttachmentCancelledError: Ingestion was cancelled.
            ProviderTimeoutError: Still in progress after the polling budget.
        """
        attached = await self._call(
            "attach_file",
            lambda: self.client.vector_stores.files.create(
                store_id, file_id=file_id
            ),
            retry=False,
            vector_store_id=store_id,
            file_id=file_id,
        )
        info = _to_file_info(attached)
        logger.info(
            "vector_store_file_attached",
            provider=PROVIDER_NAME,
            vector_store_id=store_id,
            file_id=file_id,
            status=info.status.value,
        )

        if info.status.is_terminal:
            check_terminal(info, provider=PROVIDER_NAME)
            return info

        poller: AttachmentPoller[FileInfo] = AttachmentPoller(
            lambda: self._retrieve_attachment(store_id, file_id),
            self.poll_policy,
            provider=PROVIDER_NAME,
            store_id=store_id,
            file_id=file_id,
            classify=_classify_openai_error,
        )
        return await self._call(
            "poll_attachment",
            poller.run,
            retry=False,
            vector_store_id=store_id,
            file_id=file_id,
        )

    async def detach_file(self, store_id: str, file_id: str) -> DeleteResult:
        deleted = await self._call(
            "detach_file",
            lambda: self.client.vector_stores.files.delete(
                file_id, vector_store_id=store_id
            ),
            retry=False,
            vector_store_id=store_id,
            file_id=file_id,
        )
        logger.info(
            "vector_store_file_detached",
            provider=PROVIDER_NAME,
            vector_store_id=store_id,
            file_id=file_id,
        )
        return DeleteResult(id=deleted.id, deleted=deleted.deleted)

    async def upload_and_attach(
        self, store_id: str, content: bytes, filename: str, mime_type: str
    ) -> FileInfo:
        uploaded = await self.upload_file(content, filename, mime_type)
        info = await self.attach_file(store_id, uploaded.id)
        info.name = uploaded.filename
        info.size = uploaded.bytes
        return info

    async def update_file_attributes(
        self, store_id: str, file_id: str, attributes: dict[str, Any]
    ) -> FileInfo:
        """Replace the filterable attributes of an attached file."""
        updated = await self._call(
            "update_file_attributes",
            lambda: self.client.vector_stores.files.update(
                file_id,
                vector_store_id=store_id,
                attributes=sanitize_metadata(attributes) or {},
            ),
            retry=False,
            vector_store_id=store_id,
            file_id=file_id,
        )
        return _to_file_info(updated)

    # Raw files

    async def upload_file(
        self,
        content: bytes,
        filename: str,
        mime_type: str,
        purpose: str = "assistants",
    ) -> UploadedFile:
        uploaded = await self._call(
            "upload_file",
            lambda: self.client.files.create(
                file=(filename, content, mime_type), purpose=purpose
            ),
            retry=False,
            filename=filename,
        )
        logger.info(
            "file_uploaded",
            provider=PROVIDER_NAME,
            file_id=uploaded.id,
            filename=filename,
            size=len(content),
        )
        return _to_uploaded_file(uploaded)

    async def get_file(self, file_id: str) -> UploadedFile:
        file = await self._call(
            "get_file",
            lambda: self.client.files.retrieve(file_id),
            file_id=file_id,
        )
        return _to_uploaded_file(file)

    async def delete_file(self, file_id: str) -> DeleteResult:
        deleted = await self._call(
            "delete_file",
            lambda: self.client.files.delete(file_id),
            retry=False,
            file_id=file_id,
        )
        logger.info("file_deleted", provider=PROVIDER_NAME, file_id=file_id)
        return DeleteResult(id=deleted.id, deleted=deleted.deleted)

    # Batches

    async def create_file_batch(
        self, store_id: str, file_ids: list[str]
    ) -> FileBatchInfo:
        batch = await self._call(
            "create_file_batch",
            lambda: self.client.vector_stores.file_batches.create(
                store_id, file_ids=list(file_ids)
            ),
            retry=False,
            vector_store_id=store_id,
            file_count=len(file_ids),
        )
        logger.info(
            "file_batch_created",
            provider=PROVIDER_NAME,
            vector_store_id=store_id,
            batch_id=batch.id,
            file_count=len(file_ids),
        )
        return _to_batch_info(batch)

    async def get_file_batch(self, store_id: str, batch_id: str) -> FileBatchInfo:
        batch = await self._call(
            "get_file_batch",
            lambda: self.client.vector_stores.file_batches.retrieve(
                batch_id, vector_store_id=store_id
            ),
            vector_store_id=store_id,
            batch_id=batch_id,
        )
        return _to_batch_info(batch)

    async def cancel_file_batch(self, store_id: str, batch_id: str) -> FileBatchInfo:
        batch = await self._call(
            "cancel_file_batch",
            lambda: self.client.vector_stores.file_batches.cancel(
                batch_id, vector_store_id=store_id
            ),
            retry=False,
            vector_store_id=store_id,
            batch_id=batch_id,
        )
        logger.info(
            "file_batch_cancelled",
            provider=PROVIDER_NAME,
            vector_store_id=store_id,
            batch_id=batch_id,
        )
        return _to_batch_info(batch)

    async def _retrieve_batch(self, store_id: str, batch_id: str) -> FileBatchInfo:
        batch = await self.client.vector_stores.file_batches.retrieve(
            batch_id, vector_store_id=store_id
        )
        return _to_batch_info(batch)

    async def upload_and_attach_batch(
        self, store_id: str, files: list[FileUpload]
    ) -> FileBatchInfo:
        """Upload files one by one, attach them as a batch and wait for it.

        Uploads are sequential. A failed upload aborts before any batch is
        created; files already uploaded stay in the vendor file store.
        """
        file_ids = []
        for upload in files:
            uploaded = await self.upload_file(
                upload.content, upload.filename, upload.mime_type
            )
            file_ids.append(uploaded.id)

        batch = await self.create_file_batch(store_id, file_ids)
        if batch.status.is_terminal:
            check_terminal(batch, provider=PROVIDER_NAME)
            return batch

        poller: AttachmentPoller[FileBatchInfo] = AttachmentPoller(
            lambda: self._retrieve_batch(store_id, batch.id),
            self.poll_policy,
            provider=PROVIDER_NAME,
            store_id=store_id,
            file_id=batch.id,
            classify=_classify_openai_error,
        )
        return await self._call(
            "poll_file_batch",
            poller.run,
            retry=False,
            vector_store_id=store_id,
            batch_id=batch.id,
        )

    # Diagnostics

    async def health_check(self) -> bool:
        """Return True if the models endpoint answers with the configured key."""
        try:
            await self._call(
                "health_check", lambda: self.client.models.list(), retry=False
            )
        except ProviderError:
            return False
        return True

    def config_info(self) -> dict[str, Any]:
        """Return a log-safe description of the adapter (credential masked)."""
        return {
            **super().config_info(),
            **self.config.safe_dict(),
        }

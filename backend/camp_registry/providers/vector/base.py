"""Abstract base class and types for vector-store providers.

Every adapter translates vendor responses into the records below, so no
vendor SDK type ever reaches a caller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Generic, Literal, TypeVar

import structlog

from camp_registry.providers.errors import ConfigurationError

logger = structlog.get_logger()

T = TypeVar("T")


class VectorStoreStatus(Enum):
    """Lifecycle state of a vector store. Driven by the vendor, never computed locally."""

    CREATING = "creating"
    READY = "ready"
    FAILED = "failed"

    @classmethod
    def from_vendor(cls, status: str | None) -> "VectorStoreStatus":
        """Map a vendor status string onto the lifecycle enum.

        ``in_progress`` is still creating, ``completed`` is ready, anything
        else (``expired``, unknown values) is treated as failed.
        """
        if status == "in_progress":
            return cls.CREATING
        if status == "completed":
            return cls.READY
        return cls.FAILED


class AttachmentStatus(Enum):
    """Ingestion state of a file attached to a vector store."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Return True once no further transition is expected."""
        return self is not AttachmentStatus.IN_PROGRESS

    @classmethod
    def from_vendor(cls, status: str | None) -> "AttachmentStatus":
        """Map a vendor status string; unknown values count as still in progress."""
        try:
            return cls(status)
        except ValueError:
            return cls.IN_PROGRESS


@dataclass
class FileCounts:
    """Per-status file counts for a vector store."""

    in_progress: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    total: int = 0


@dataclass
class ExpiryPolicy:
    """Expiration policy: the store expires ``days`` after ``anchor``."""

    days: int
    anchor: Literal["last_active_at"] = "last_active_at"

    def to_payload(self) -> dict[str, Any]:
        """Return the wire representation."""
        return {"anchor": self.anchor, "days": self.days}


@dataclass
class ChunkingStrategy:
    """How the vendor splits ingested files.

    Attributes:
        type: ``auto`` (vendor default) or ``static``.
        max_chunk_size_tokens: Required for ``static``.
        chunk_overlap_tokens: Required for ``static``.
    """

    type: Literal["auto", "static"] = "auto"
    max_chunk_size_tokens: int | None = None
    chunk_overlap_tokens: int | None = None

    def to_payload(self) -> dict[str, Any]:
        """Return the wire representation."""
        if self.type == "auto":
            return {"type": "auto"}
        return {
            "type": "static",
            "static": {
                "max_chunk_size_tokens": self.max_chunk_size_tokens,
                "chunk_overlap_tokens": self.chunk_overlap_tokens,
            },
        }


@dataclass
class VectorStoreInfo:
    """Normalized vector store record.

    Attributes:
        id: Vendor identifier.
        status: Lifecycle state.
        file_counts: Files by ingestion status.
        usage_bytes: Storage used by the store.
        metadata: Flat scalar metadata as stored by the vendor.
        created_at: Creation time (UTC).
        name: Optional display name.
        expires_after: Optional expiry policy.
        expires_at: When the store will expire, if scheduled.
        last_active_at: Last activity time, if reported.
    """

    id: str
    status: VectorStoreStatus
    file_counts: FileCounts
    usage_bytes: int
    metadata: dict[str, Any]
    created_at: datetime
    name: str | None = None
    expires_after: ExpiryPolicy | None = None
    expires_at: datetime | None = None
    last_active_at: datetime | None = None

    @property
    def file_count(self) -> int:
        """Return the total number of files attached."""
        return self.file_counts.total


@dataclass
class FileInfo:
    """A file attached to a vector store."""

    id: str
    status: AttachmentStatus
    created_at: datetime
    name: str = ""
    size: int = 0
    last_error: str | None = None


@dataclass
class UploadedFile:
    """A raw file held by the vendor's file store (not yet attached)."""

    id: str
    filename: str
    bytes: int
    purpose: str
    created_at: datetime


@dataclass
class FileBatchInfo:
    """A batch attachment of several files to one vector store."""

    id: str
    vector_store_id: str
    status: AttachmentStatus
    file_counts: FileCounts
    created_at: datetime


@dataclass
class Page(Generic[T]):
    """One page of a cursor-paginated listing."""

    data: list[T]
    has_more: bool = False
    first_id: str | None = None
    last_id: str | None = None


@dataclass
class DeleteResult:
    """Outcome of a delete call."""

    id: str
    deleted: bool


@dataclass
class CreateVectorStoreParams:
    """Parameters for creating a vector store.

    Metadata is sanitized by the adapter before transmission.
    """

    name: str | None = None
    file_ids: list[str] = field(default_factory=list)
    metadata: dict[str, Any] | None = None
    expires_after: ExpiryPolicy | None = None
    chunking_strategy: ChunkingStrategy | None = None


@dataclass
class UpdateVectorStoreParams:
    """Parameters for updating a vector store. ``None`` fields are left unchanged."""

    name: str | None = None
    metadata: dict[str, Any] | None = None
    expires_after: ExpiryPolicy | None = None


@dataclass
class FileUpload:
    """In-memory file content destined for a vector store."""

    content: bytes
    filename: str
    mime_type: str


def timestamp_to_datetime(value: int | float | None) -> datetime | None:
    """Convert a vendor epoch-seconds timestamp to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=UTC)


class VectorStoreProvider(ABC):
    """Abstract base class for AI vector-store providers.

    Subclasses build their vendor client in ``initialize()`` and flip
    ``_initialized``; every capability method calls ``_require_ready()`` first.
    """

    def __init__(self, provider_name: str) -> None:
        """Initialize the provider shell.

        Args:
            provider_name: Name used in log entries and error messages.
        """
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

    # Vector stores

    @abstractmethod
    async def create_store(self, params: CreateVectorStoreParams) -> VectorStoreInfo:
        """Create a vector store.

        Raises:
            ProviderError: On vendor failure after retries.
        """
        ...

    @abstractmethod
    async def get_store(self, store_id: str) -> VectorStoreInfo:
        """Fetch a vector store by id."""
        ...

    @abstractmethod
    async def update_store(
        self, store_id: str, params: UpdateVectorStoreParams
    ) -> VectorStoreInfo:
        """Update name, metadata or expiry of a vector store."""
        ...

    @abstractmethod
    async def delete_store(self, store_id: str) -> DeleteResult:
        """Delete a vector store."""
        ...

    @abstractmethod
    async def list_stores(
        self, limit: int = 20, after: str | None = None
    ) -> Page[VectorStoreInfo]:
        """List vector stores, newest first."""
        ...

    # Attachments

    @abstractmethod
    async def list_files(self, store_id: str) -> Page[FileInfo]:
        """List files attached to a vector store."""
        ...

    @abstractmethod
    async def attach_file(self, store_id: str, file_id: str) -> FileInfo:
        """Attach an uploaded file and block until ingestion reaches a terminal state.

        Raises:
            AttachmentFailedError: Vendor reported ``failed``.
            AttachmentCancelledError: Vendor reported ``cancelled``.
            ProviderTimeoutError: Polling budget exhausted.
        """
        ...

    @abstractmethod
    async def detach_file(self, store_id: str, file_id: str) -> DeleteResult:
        """Remove a file from a vector store. The uploaded file itself survives."""
        ...

    @abstractmethod
    async def upload_and_attach(
        self, store_id: str, content: bytes, filename: str, mime_type: str
    ) -> FileInfo:
        """Upload raw content, then attach it and block until terminal."""
        ...

    @abstractmethod
    async def update_file_attributes(
        self, store_id: str, file_id: str, attributes: dict[str, Any]
    ) -> FileInfo:
        """Replace the filterable attributes of an attached file."""
        ...

    # Raw files

    @abstractmethod
    async def upload_file(
        self,
        content: bytes,
        filename: str,
        mime_type: str,
        purpose: str = "assistants",
    ) -> UploadedFile:
        """Upload raw content to the vendor file store without attaching it."""
        ...

    @abstractmethod
    async def get_file(self, file_id: str) -> UploadedFile:
        """Fetch an uploaded file's record."""
        ...

    @abstractmethod
    async def delete_file(self, file_id: str) -> DeleteResult:
        """Delete an uploaded file from the vendor file store."""
        ...

    # Batches

    @abstractmethod
    async def create_file_batch(
        self, store_id: str, file_ids: list[str]
    ) -> FileBatchInfo:
        """Attach several uploaded files at once without waiting."""
        ...

    @abstractmethod
    async def get_file_batch(self, store_id: str, batch_id: str) -> FileBatchInfo:
        """Fetch the state of a file batch."""
        ...

    @abstractmethod
    async def cancel_file_batch(self, store_id: str, batch_id: str) -> FileBatchInfo:
        """Cancel a running file batch."""
        ...

    @abstractmethod
    async def upload_and_attach_batch(
        self, store_id: str, files: list[FileUpload]
    ) -> FileBatchInfo:
        """Upload several files, attach them as one batch and wait for it to finish."""
        ...

    # Diagnostics

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True if the vendor API is reachable with the configured credentials."""
        ...

    def config_info(self) -> dict[str, Any]:
        """Return a log-safe description of the provider."""
        return {"provider": self._provider_name, "is_ready": self.is_ready}

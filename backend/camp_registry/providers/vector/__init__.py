"""Vector-store provider module.

Exports:
    VectorStoreProvider: Abstract base class for vector stores
    Normalized records (VectorStoreInfo, FileInfo, ...) and statuses
    AttachmentPoller: Polling state machine for attachments
    OpenAIVectorStoreAdapter: OpenAI implementation
"""

from camp_registry.providers.vector.base import (
    AttachmentStatus,
    ChunkingStrategy,
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
)
from camp_registry.providers.vector.mock_adapter import MockVectorStoreProvider
from camp_registry.providers.vector.openai_adapter import OpenAIVectorStoreAdapter
from camp_registry.providers.vector.polling import (
    AttachmentPoller,
    PollPolicy,
    PollState,
)

__all__ = [
    "AttachmentPoller",
    "AttachmentStatus",
    "ChunkingStrategy",
    "CreateVectorStoreParams",
    "DeleteResult",
    "ExpiryPolicy",
    "FileBatchInfo",
    "FileCounts",
    "FileInfo",
    "FileUpload",
    "MockVectorStoreProvider",
    "OpenAIVectorStoreAdapter",
    "Page",
    "PollPolicy",
    "PollState",
    "UpdateVectorStoreParams",
    "UploadedFile",
    "VectorStoreInfo",
    "VectorStoreProvider",
    "VectorStoreStatus",
]

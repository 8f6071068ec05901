"""Object-storage provider module.

Exports:
    StorageProvider: Abstract base class for object stores
    StoredObject, PresignedUpload, PresignedDownload: Result records
    build_object_key: Upload key builder
    R2StorageAdapter: Cloudflare R2 implementation
"""

from camp_registry.providers.storage.base import (
    DEFAULT_PRESIGN_TTL_SECONDS,
    PresignedDownload,
    PresignedUpload,
    StorageProvider,
    StoredObject,
    build_object_key,
)
from camp_registry.providers.storage.mock_adapter import MockStorageProvider
from camp_registry.providers.storage.r2_adapter import R2StorageAdapter

__all__ = [
    "DEFAULT_PRESIGN_TTL_SECONDS",
    "MockStorageProvider",
    "PresignedDownload",
    "PresignedUpload",
    "R2StorageAdapter",
    "StorageProvider",
    "StoredObject",
    "build_object_key",
]

"""Mock vector-store provider for testing.

Keeps stores, uploaded files and attachments in memory so services built on
the vector-store capability can be exercised without hitting the vendor.
"""

import itertools
from datetime import UTC, datetime
from typing import Any

from camp_registry.providers.errors import NotFoundError
from camp_registry.providers.metadata import sanitize_metadata
from camp_registry.providers.vector.base import (
    AttachmentStatus,
    CreateVectorStoreParams,
    DeleteResult,
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
from camp_registry.providers.vector.polling import check_terminal


class MockVectorStoreProvider(VectorStoreProvider):
    """In-memory vector-store provider.

    Attachments settle immediately with ``attachment_status`` (completed by
    default); set it to FAILED or CANCELLED to exercise error paths.

    Attributes:
        calls: Record of all method invocations for test assertions.
        healthy: Value returned by ``health_check``.
    """

    def __init__(self) -> None:
        """Initialize the mock provider. Ready without ``initialize()``."""
        super().__init__("mock")
        self._initialized = True
        self.calls: list[dict[str, Any]] = []
        self.healthy = True
        self.attachment_status = AttachmentStatus.COMPLETED
        self._ids = itertools.count(1)
        self._stores: dict[str, VectorStoreInfo] = {}
        self._files: dict[str, UploadedFile] = {}
        self._attachments: dict[str, dict[str, FileInfo]] = {}
        self._batches: dict[str, FileBatchInfo] = {}

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_mock_{next(self._ids)}"

    def _store(self, store_id: str) -> VectorStoreInfo:
        if store_id not in self._stores:
            raise NotFoundError(f"No vector store found with id '{store_id}'", provider="mock")
        return self._stores[store_id]

    def _refresh_counts(self, store_id: str) -> None:
        attached = self._attachments[store_id].values()
        counts = FileCounts(total=len(attached))
        for info in attached:
            current = getattr(counts, info.status.value)
            setattr(counts, info.status.value, current + 1)
        self._stores[store_id].file_counts = counts

    async def initialize(self) -> None:
        self.calls.append({"method": "initialize"})
        self._initialized = True

    async def create_store(self, params: CreateVectorStoreParams) -> VectorStoreInfo:
        self.calls.append({"method": "create_store", "params": params})
        store_id = self._next_id("vs")
        info = VectorStoreInfo(
            id=store_id,
            status=VectorStoreStatus.READY,
            file_counts=FileCounts(),
            usage_bytes=0,
            metadata=sanitize_metadata(params.metadata) or {},
            created_at=datetime.now(UTC),
            name=params.name,
            expires_after=params.expires_after,
        )
        self._stores[store_id] = info
        self._attachments[store_id] = {}
        for file_id in params.file_ids:
            await self.attach_file(store_id, file_id)
        return info

    async def get_store(self, store_id: str) -> VectorStoreInfo:
        self.calls.append({"method": "get_store", "store_id": store_id})
        return self._store(store_id)

    async def update_store(
        self, store_id: str, params: UpdateVectorStoreParams
    ) -> VectorStoreInfo:
        self.calls.append({"method": "update_store", "store_id": store_id, "params": params})
        info = self._store(store_id)
        if params.name is not None:
            info.name = params.name
        if params.metadata is not None:
            info.metadata = sanitize_metadata(params.metadata) or {}
        if params.expires_after is not None:
            info.expires_after = params.expires_after
        return info

    async def delete_store(self, store_id: str) -> DeleteResult:
        self.calls.append({"method": "delete_store", "store_id": store_id})
        self._store(store_id)
        del self._stores[store_id]
        del self._attachments[store_id]
        return DeleteResult(id=store_id, deleted=True)

    async def list_stores(
        self, limit: int = 20, after: str | None = None
    ) -> Page[VectorStoreInfo]:
        self.calls.append({"method": "list_stores", "limit": limit, "after": after})
        stores = list(reversed(self._stores.values()))
        if after is not None:
            ids = [store.id for store in stores]
            stores = stores[ids.index(after) + 1 :] if after in ids else []
        data = stores[:limit]
        return Page(
            data=data,
            has_more=len(stores) > limit,
            first_id=data[0].id if data else None,
            last_id=data[-1].id if data else None,
        )

    async def list_files(self, store_id: str) -> Page[FileInfo]:
        self.calls.append({"method": "list_files", "store_id": store_id})
        self._store(store_id)
        data = list(self._attachments[store_id].values())
        return Page(
            data=data,
            first_id=data[0].id if data else None,
            last_id=data[-1].id if data else None,
        )

    async def attach_file(self, store_id: str, file_id: str) -> FileInfo:
        self.calls.append({"method": "attach_file", "store_id": store_id, "file_id": file_id})
        self._store(store_id)
        uploaded = self._files.get(file_id)
        info = FileInfo(
            id=file_id,
            status=self.attachment_status,
            created_at=datetime.now(UTC),
            name=uploaded.filename if uploaded else "",
            size=uploaded.bytes if uploaded else 0,
            last_error="Mock ingestion failure"
            if self.attachment_status is AttachmentStatus.FAILED
            else None,
        )
        self._attachments[store_id][file_id] = info
        self._refresh_counts(store_id)
        check_terminal(info, provider="mock")
        return info

    async def detach_file(self, store_id: str, file_id: str) -> DeleteResult:
        self.calls.append({"method": "detach_file", "store_id": store_id, "file_id": file_id})
        self._store(store_id)
        if self._attachments[store_id].pop(file_id, None) is None:
            raise NotFoundError(f"No file found with id '{file_id}'", provider="mock")
        self._refresh_counts(store_id)
        return DeleteResult(id=file_id, deleted=True)

    async def upload_and_attach(
        self, store_id: str, content: bytes, filename: str, mime_type: str
    ) -> FileInfo:
        uploaded = await self.upload_file(content, filename, mime_type)
        return await self.attach_file(store_id, uploaded.id)

    async def update_file_attributes(
        self, store_id: str, file_id: str, attributes: dict[str, Any]
    ) -> FileInfo:
        self.calls.append(
            {
                "method": "update_file_attributes",
                "store_id": store_id,
                "file_id": file_id,
                "attributes": sanitize_metadata(attributes) or {},
            }
        )
        self._store(store_id)
        if file_id not in self._attachments[store_id]:
            raise NotFoundError(f"No file found with id '{file_id}'", provider="mock")
        return self._attachments[store_id][file_id]

    async def upload_file(
        self,
        content: bytes,
        filename: str,
        mime_type: str,
        purpose: str = "assistants",
    ) -> UploadedFile:
        self.calls.append(
            {"method": "upload_file", "filename": filename, "mime_type": mime_type}
        )
        uploaded = UploadedFile(
            id=self._next_id("file"),
            filename=filename,
            bytes=len(content),
            purpose=purpose,
            created_at=datetime.now(UTC),
        )
        self._files[uploaded.id] = uploaded
        return uploaded

    async def get_file(self, file_id: str) -> UploadedFile:
        self.calls.append({"method": "get_file", "file_id": file_id})
        if file_id not in self._files:
            raise NotFoundError(f"No such File object: {file_id}", provider="mock")
        return self._files[file_id]

    async def delete_file(self, file_id: str) -> DeleteResult:
        self.calls.append({"method": "delete_file", "file_id": file_id})
        if self._files.pop(file_id, None) is None:
            raise NotFoundError(f"No such File object: {file_id}", provider="mock")
        return DeleteResult(id=file_id, deleted=True)

    async def create_file_batch(
        self, store_id: str, file_ids: list[str]
    ) -> FileBatchInfo:
        self.calls.append(
            {"method": "create_file_batch", "store_id": store_id, "file_ids": file_ids}
        )
        self._store(store_id)
        for file_id in file_ids:
            self._attachments[store_id][file_id] = FileInfo(
                id=file_id, status=AttachmentStatus.COMPLETED, created_at=datetime.now(UTC)
            )
        self._refresh_counts(store_id)
        batch = FileBatchInfo(
            id=self._next_id("vsfb"),
            vector_store_id=store_id,
            status=AttachmentStatus.COMPLETED,
            file_counts=FileCounts(completed=len(file_ids), total=len(file_ids)),
            created_at=datetime.now(UTC),
        )
        self._batches[batch.id] = batch
        return batch

    def _batch(self, batch_id: str) -> FileBatchInfo:
        if batch_id not in self._batches:
            raise NotFoundError(f"No file batch found with id '{batch_id}'", provider="mock")
        return self._batches[batch_id]

    async def get_file_batch(self, store_id: str, batch_id: str) -> FileBatchInfo:
        self.calls.append({"method": "get_file_batch", "store_id": store_id, "batch_id": batch_id})
        return self._batch(batch_id)

    async def cancel_file_batch(self, store_id: str, batch_id: str) -> FileBatchInfo:
        self.calls.append({"method": "cancel_file_batch", "store_id": store_id, "batch_id": batch_id})
        batch = self._batch(batch_id)
        if not batch.status.is_terminal:
            batch.status = AttachmentStatus.CANCELLED
        return batch

    async def upload_and_attach_batch(
        self, store_id: str, files: list[FileUpload]
    ) -> FileBatchInfo:
        file_ids = []
        for upload in files:
            uploaded = await self.upload_file(upload.content, upload.filename, upload.mime_type)
            file_ids.append(uploaded.id)
        return await self.create_file_batch(store_id, file_ids)

    async def health_check(self) -> bool:
        self.calls.append({"method": "health_check"})
        return self.healthy

    def assert_attached(self, store_id: str, file_id: str) -> None:
        """Test helper to verify a file is attached to a store.

        Raises:
            AssertionError: If the file is not attached.
        """
        attached = list(self._attachments.get(store_id, {}))
        assert file_id in attached, (
            f"Expected '{file_id}' attached to '{store_id}', got {attached}"
        )

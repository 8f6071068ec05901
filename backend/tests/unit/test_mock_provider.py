"""Tests for the in-memory mock providers.

Services are tested against these mocks, so their behavior must follow
the same contract as the real adapters.
"""

import pytest

from camp_registry.providers.errors import AttachmentFailedError, NotFoundError
from camp_registry.providers.vector.base import (
    AttachmentStatus,
    CreateVectorStoreParams,
    FileUpload,
    UpdateVectorStoreParams,
)


class TestMockVectorStoreProvider:
    """Test MockVectorStoreProvider."""

    @pytest.mark.asyncio
    async def test_store_lifecycle(self, mock_vector_store):
        """Stores can be created, fetched, updated and deleted."""
        store = await mock_vector_store.create_store(
            CreateVectorStoreParams(name="docs", metadata={"camp": {"id": 1}})
        )
        assert store.metadata == {"camp": '{"id":1}'}

        updated = await mock_vector_store.update_store(
            store.id, UpdateVectorStoreParams(name="renamed")
        )
        assert updated.name == "renamed"

        result = await mock_vector_store.delete_store(store.id)
        assert result.deleted is True
        with pytest.raises(NotFoundError):
            await mock_vector_store.get_store(store.id)

    @pytest.mark.asyncio
    async def test_upload_and_attach_updates_counts(self, mock_vector_store):
        """Attached files should be counted on the store."""
        store = await mock_vector_store.create_store(CreateVectorStoreParams(name="docs"))

        info = await mock_vector_store.upload_and_attach(
            store.id, b"hello", "rules.txt", "text/plain"
        )

        assert info.status is AttachmentStatus.COMPLETED
        assert info.name == "rules.txt"
        mock_vector_store.assert_attached(store.id, info.id)
        assert (await mock_vector_store.get_store(store.id)).file_count == 1

    @pytest.mark.asyncio
    async def test_failed_attachment_raises(self, mock_vector_store):
        """attachment_status=FAILED should exercise the failure path."""
        store = await mock_vector_store.create_store(CreateVectorStoreParams())
        mock_vector_store.attachment_status = AttachmentStatus.FAILED

        with pytest.raises(AttachmentFailedError):
            await mock_vector_store.attach_file(store.id, "file-x")

    @pytest.mark.asyncio
    async def test_list_stores_pagination(self, mock_vector_store):
        """Listing is newest first and honours limit and after."""
        first = await mock_vector_store.create_store(CreateVectorStoreParams(name="a"))
        second = await mock_vector_store.create_store(CreateVectorStoreParams(name="b"))

        page = await mock_vector_store.list_stores(limit=1)
        assert [s.id for s in page.data] == [second.id]
        assert page.has_more is True

        page = await mock_vector_store.list_stores(limit=1, after=second.id)
        assert [s.id for s in page.data] == [first.id]
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_batch_upload(self, mock_vector_store):
        """Batch uploads attach every file."""
        store = await mock_vector_store.create_store(CreateVectorStoreParams())

        batch = await mock_vector_store.upload_and_attach_batch(
            store.id,
            [FileUpload(b"a", "a.txt", "text/plain"), FileUpload(b"b", "b.txt", "text/plain")],
        )

        assert batch.file_counts.completed == 2
        assert len((await mock_vector_store.list_files(store.id)).data) == 2

    @pytest.mark.asyncio
    async def test_records_calls(self, mock_vector_store):
        """Every call should be recorded for assertions."""
        await mock_vector_store.health_check()

        assert mock_vector_store.calls == [{"method": "health_check"}]


class TestMockStorageProvider:
    """Test MockStorageProvider."""

    @pytest.mark.asyncio
    async def test_put_and_delete(self, mock_storage):
        """Objects are stored and removed by bucket and key."""
        stored = await mock_storage.put_object("agentik", "k", b"abc", "text/plain")

        assert stored.size == 3
        mock_storage.assert_stored("agentik", "k")

        await mock_storage.delete_object("agentik", "k")
        assert ("agentik", "k") not in mock_storage.objects

    @pytest.mark.asyncio
    async def test_presigned_put_private(self, mock_storage):
        """Private buckets get no public URL."""
        upload = await mock_storage.presigned_put_url("agentik", "k", "image/png")

        assert upload.public_url is None
        assert upload.ttl_seconds == 300

"""Tests for the lazy, single-flight blob store connection."""

from __future__ import annotations

import asyncio

import pytest

from gridstore.storage.client import BlobStoreClient
from gridstore.storage.errors import ResourceLockedError, StorageIOError
from tests.fakes import FakeBlobStore, FakeNamespace, FakeSession


class TestEnsureConnection:
    """Tests for ensure_connection."""

    @pytest.mark.asyncio
    async def test_connects_on_first_call(self) -> None:
        store = FakeBlobStore()
        client = BlobStoreClient(store)

        assert not client.is_connected

        session = await client.ensure_connection()

        assert isinstance(session, FakeSession)
        assert client.is_connected
        assert client.session is session
        assert store.connect_calls == 1

    @pytest.mark.asyncio
    async def test_is_idempotent(self) -> None:
        store = FakeBlobStore()
        client = BlobStoreClient(store)

        first = await client.ensure_connection()
        second = await client.ensure_connection()

        assert first is second
        assert store.connect_calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_first_calls_share_one_connect(self) -> None:
        store = FakeBlobStore(connect_delay=0.01)
        client = BlobStoreClient(store)

        sessions = await asyncio.gather(*(client.ensure_connection() for _ in range(8)))

        assert store.connect_calls == 1
        assert all(session is sessions[0] for session in sessions)

    @pytest.mark.asyncio
    async def test_reconnects_when_store_drops_connection(self) -> None:
        store = FakeBlobStore()
        client = BlobStoreClient(store)

        await client.ensure_connection()
        store.connected = False
        await client.ensure_connection()

        assert store.connect_calls == 2

    @pytest.mark.asyncio
    async def test_os_error_becomes_storage_io_error(self) -> None:
        cause = ConnectionRefusedError("connection refused")
        store = FakeBlobStore(connect_error=cause)
        client = BlobStoreClient(store)

        with pytest.raises(StorageIOError) as exc_info:
            await client.ensure_connection()

        assert exc_info.value.cause is cause
        assert exc_info.value.__cause__ is cause
        assert not client.is_connected

    @pytest.mark.asyncio
    async def test_storage_errors_propagate_unchanged(self) -> None:
        store = FakeBlobStore(connect_error=ResourceLockedError("busy"))
        client = BlobStoreClient(store)

        with pytest.raises(ResourceLockedError):
            await client.ensure_connection()

    @pytest.mark.asyncio
    async def test_failed_connect_is_retried_on_next_call(self) -> None:
        store = FakeBlobStore(connect_error=TimeoutError("timed out"))
        client = BlobStoreClient(store)

        with pytest.raises(StorageIOError):
            await client.ensure_connection()

        store.connect_error = None
        await client.ensure_connection()

        assert store.connect_calls == 2
        assert client.is_connected


class TestSessionAndNamespace:
    """Tests for session and namespace accessors."""

    def test_session_before_connect_raises(self) -> None:
        client = BlobStoreClient(FakeBlobStore())

        with pytest.raises(StorageIOError, match="not connected"):
            _ = client.session

    def test_namespace_is_scoped_to_root(self) -> None:
        client = BlobStoreClient(FakeBlobStore())

        namespace = client.namespace("photos")

        assert isinstance(namespace, FakeNamespace)
        assert namespace.root == "photos"

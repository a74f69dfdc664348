"""In-memory blob store doubles for object service tests.

Behavior switches on ``FakeBlobStore`` drive the lock, gap and failure
branches that a real store only hits under contention.
"""

from __future__ import annotations

import asyncio
import hashlib
import io
from datetime import UTC, datetime
from typing import Any

from gridstore.storage.errors import ObjectNotFoundError
from gridstore.storage.models import ObjectDocument, ObjectKey
from gridstore.storage.store import (
    BlobStore,
    NamespaceHandle,
    NativeId,
    ReadStream,
    StoreSession,
    WriteStream,
)


class MemoryWriteStream(WriteStream):
    """Collects chunks; publishes into the fake store on close."""

    def __init__(
        self,
        store: FakeBlobStore,
        root: str,
        key: str,
        *,
        filename: str,
        metadata: dict[str, Any],
        content_type: str | None,
    ) -> None:
        self.store = store
        self.root = root
        self.key = key
        self.filename = filename
        self.metadata = metadata
        self.content_type = content_type
        self.chunks: list[bytes] = []
        self.closed = False
        self.aborted = 0

    async def write(self, chunk: bytes) -> None:
        if self.store.fail_writes:
            raise OSError("disk full")
        self.chunks.append(chunk)

    async def close(self) -> ObjectDocument:
        data = b"".join(self.chunks)
        document = ObjectDocument(
            id=self.key,
            filename=self.filename,
            root=self.root,
            content_type=self.content_type,
            length=len(data),
            chunk_size=1024,
            upload_date=datetime.now(UTC),
            sha256=hashlib.sha256(data).hexdigest(),
            metadata=dict(self.metadata),
        )
        self.store.objects[(self.root, self.key)] = (document, data)
        self.closed = True
        return document

    async def abort(self) -> None:
        self.aborted += 1


class MemoryReadStream(ReadStream):
    def __init__(self, data: bytes) -> None:
        self._buffer = io.BytesIO(data)
        self.closed = False

    async def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)

    async def close(self) -> None:
        self.closed = True


class FakeNamespace(NamespaceHandle):
    def __init__(self, store: FakeBlobStore, root: str) -> None:
        self._store = store
        self._root = root

    @property
    def root(self) -> str:
        return self._root

    async def open_write_stream(
        self,
        object_id: NativeId,
        *,
        filename: str,
        metadata: dict[str, Any],
        content_type: str | None = None,
    ) -> WriteStream | None:
        self._store.calls.append(("open_write_stream", self._root, str(object_id)))
        if self._store.write_locked:
            return None
        stream = MemoryWriteStream(
            self._store,
            self._root,
            str(object_id),
            filename=filename,
            metadata=metadata,
            content_type=content_type,
        )
        self._store.write_streams.append(stream)
        return stream

    async def open_read_stream(self, object_id: NativeId) -> ReadStream | None:
        self._store.calls.append(("open_read_stream", self._root, str(object_id)))
        if self._store.read_locked:
            return None
        entry = self._store.objects.get((self._root, str(object_id)))
        if entry is None or self._store.content_missing:
            raise ObjectNotFoundError(root=self._root, object_id=str(object_id))
        return MemoryReadStream(entry[1])

    async def remove(self, object_id: NativeId) -> bool:
        self._store.calls.append(("remove", self._root, str(object_id)))
        if self._store.remove_error is not None:
            raise self._store.remove_error
        if self._store.remove_result is not None:
            return self._store.remove_result
        return self._store.objects.pop((self._root, str(object_id)), None) is not None


class FakeSession(StoreSession):
    def __init__(self, store: FakeBlobStore) -> None:
        self._store = store

    async def find_metadata(self, root: str, object_id: NativeId) -> ObjectDocument | None:
        self._store.calls.append(("find_metadata", root, str(object_id)))
        if self._store.find_error is not None:
            raise self._store.find_error
        entry = self._store.objects.get((root, str(object_id)))
        return entry[0] if entry else None


class FakeBlobStore(BlobStore):
    """Configurable in-memory store."""

    def __init__(
        self,
        *,
        connect_delay: float = 0.0,
        connect_error: BaseException | None = None,
    ) -> None:
        self.connect_delay = connect_delay
        self.connect_error = connect_error
        self.connect_calls = 0
        self.connected = False

        self.objects: dict[tuple[str, str], tuple[ObjectDocument, bytes]] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.write_streams: list[MemoryWriteStream] = []

        self.write_locked = False
        self.read_locked = False
        self.content_missing = False
        self.fail_writes = False
        self.remove_result: bool | None = None
        self.remove_error: BaseException | None = None
        self.find_error: BaseException | None = None

    @property
    def backend_name(self) -> str:
        return "memory"

    async def connect(self) -> StoreSession:
        self.connect_calls += 1
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        return FakeSession(self)

    def is_connected(self) -> bool:
        return self.connected

    def namespace(self, root: str) -> NamespaceHandle:
        return FakeNamespace(self, root)

    def to_native_id(self, object_id: str) -> ObjectKey:
        return ObjectKey(object_id)


class TrackingSource:
    """Async iterable source that records whether it was consumed."""

    def __init__(self, chunks: list[bytes], *, fail_after: int | None = None) -> None:
        self._chunks = chunks
        self._fail_after = fail_after
        self.consumed = 0

    def __aiter__(self) -> TrackingSource:
        return self

    async def __anext__(self) -> bytes:
        if self._fail_after is not None and self.consumed >= self._fail_after:
            raise ConnectionResetError("client went away")
        if self.consumed >= len(self._chunks):
            raise StopAsyncIteration
        chunk = self._chunks[self.consumed]
        self.consumed += 1
        return chunk

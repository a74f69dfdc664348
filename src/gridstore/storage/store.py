"""gridstore blob store collaborator interface.

Defines the contract the object service requires from the underlying blob
store. The store owns durability, chunking and locking; the service only
opens streams, looks up metadata documents and requests removals.

A store grants at most one active writer per ``(root, object_id)`` and refuses
conflicting writers/readers instead of queuing them. Refusal is reported by
returning ``None`` from ``open_write_stream`` / ``open_read_stream`` and
``False`` from ``remove``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Hashable
from types import TracebackType
from typing import Any

from gridstore.storage.models import ObjectDocument

NativeId = Hashable


class WriteStream(ABC):
    """Store-granted channel for writing one object's content."""

    @abstractmethod
    async def write(self, chunk: bytes) -> None:
        """Append a chunk of content.

        Raises:
            StorageIOError: If the chunk cannot be written.
        """
        ...

    @abstractmethod
    async def close(self) -> ObjectDocument:
        """Publish the written content and release the write lock.

        Returns:
            Metadata document of the stored object.

        Raises:
            StorageIOError: If the content cannot be published.
        """
        ...

    @abstractmethod
    async def abort(self) -> None:
        """Discard written content and release the write lock.

        Must be safe to call after a failed write and more than once.
        """
        ...


class ReadStream(ABC):
    """Store-granted channel for reading one object's content.

    Iterating yields content chunks; the read lock is released when the
    stream is exhausted or closed.
    """

    @abstractmethod
    async def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or everything left when ``size < 0``.

        Returns ``b""`` at end of stream.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the stream and its read lock. Idempotent."""
        ...

    @property
    def chunk_size(self) -> int:
        """Preferred chunk size for iteration."""
        return 64 * 1024

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iter_chunks()

    async def _iter_chunks(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read(self.chunk_size)
            if not chunk:
                return
            yield chunk

    async def __aenter__(self) -> ReadStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


class NamespaceHandle(ABC):
    """Handle scoped to one namespace (bucket) of the store."""

    @property
    @abstractmethod
    def root(self) -> str:
        """Return the namespace name."""
        ...

    @abstractmethod
    async def open_write_stream(
        self,
        object_id: NativeId,
        *,
        filename: str,
        metadata: dict[str, Any],
        content_type: str | None = None,
    ) -> WriteStream | None:
        """Open a write stream that creates or replaces the object.

        Returns:
            A write stream, or None if the write lock is held elsewhere.
        """
        ...

    @abstractmethod
    async def open_read_stream(self, object_id: NativeId) -> ReadStream | None:
        """Open a read stream over the object's content.

        Returns:
            A read stream, or None if the read lock is unavailable.

        Raises:
            ObjectNotFoundError: If the object has no content.
        """
        ...

    @abstractmethod
    async def remove(self, object_id: NativeId) -> bool:
        """Remove the object's content and metadata.

        Returns:
            True if removed, False if the lock could not be acquired.

        Raises:
            ObjectNotFoundError: If the store can tell nothing exists.
            StorageIOError: If the removal fails.
        """
        ...


class StoreSession(ABC):
    """Live session with the store, used for metadata lookups."""

    @abstractmethod
    async def find_metadata(self, root: str, object_id: NativeId) -> ObjectDocument | None:
        """Look up exactly one metadata document by id.

        Returns:
            The document, or None if there is none.
        """
        ...


class BlobStore(ABC):
    """Abstract base class for blob store backends.

    Implementations:
    - FilesystemBlobStore: Local filesystem (dev/test)
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability."""
        ...

    @abstractmethod
    async def connect(self) -> StoreSession:
        """Open the store connection and return a session.

        Repeated calls must be tolerated.
        """
        ...

    @abstractmethod
    def is_connected(self) -> bool:
        """Return True if a live connection exists."""
        ...

    @abstractmethod
    def namespace(self, root: str) -> NamespaceHandle:
        """Return a handle scoped to ``root``."""
        ...

    @abstractmethod
    def to_native_id(self, object_id: str) -> NativeId:
        """Convert a textual id to the store's native id type.

        Raises:
            ValueError: If the text is not a valid id for this store.
        """
        ...

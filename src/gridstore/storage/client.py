"""Connection/session manager over a blob store.

Connects lazily on first use and reuses the session for the lifetime of the
client. Concurrent first-time callers share one connection attempt.
"""

from __future__ import annotations

import asyncio
import logging

from gridstore.storage.errors import ObjectStorageError, StorageIOError
from gridstore.storage.store import BlobStore, NamespaceHandle, StoreSession

logger = logging.getLogger(__name__)


class BlobStoreClient:
    """Owns the connection to one blob store."""

    def __init__(self, store: BlobStore) -> None:
        """Initialize the client.

        Args:
            store: Blob store backend to connect to.
        """
        self._store = store
        self._session: StoreSession | None = None
        self._connect_lock = asyncio.Lock()

    @property
    def store(self) -> BlobStore:
        """Return the underlying store."""
        return self._store

    @property
    def is_connected(self) -> bool:
        """Return True if a session is cached and the store reports a live connection."""
        return self._session is not None and self._store.is_connected()

    @property
    def session(self) -> StoreSession:
        """Return the cached session.

        Raises:
            StorageIOError: If ``ensure_connection`` has not succeeded yet.
        """
        if self._session is None:
            raise StorageIOError(message="Blob store session is not connected")
        return self._session

    async def ensure_connection(self) -> StoreSession:
        """Connect to the store if not connected yet. Idempotent.

        Returns:
            The live session.

        Raises:
            StorageIOError: If the connection cannot be established.
        """
        if self.is_connected:
            return self.session

        async with self._connect_lock:
            # Another caller may have connected while this one waited.
            if not self.is_connected:
                try:
                    self._session = await self._store.connect()
                except ObjectStorageError:
                    raise
                except OSError as e:
                    raise StorageIOError(
                        message=f"Failed to connect to blob store: {e}",
                        cause=e,
                    ) from e
                logger.info("Connected to blob store backend=%s", self._store.backend_name)

        return self.session

    def namespace(self, root: str) -> NamespaceHandle:
        """Return a handle scoped to ``root``."""
        return self._store.namespace(root)

"""gridstore object service.

Orchestrates option normalization and store calls for the object operations:
create (``post_object``), replace (``put_object``), read (``get_object``,
``get_object_content``, ``get_object_metadata``) and ``remove_object``.

The service holds no object state and no locks of its own; locking is
enforced by the store, which refuses conflicting access rather than queuing
it. Refusals surface as ``ResourceLockedError`` and are never retried here.
Metadata and content reads are independent round-trips with no transaction
between them, so callers must tolerate read skew under concurrent mutation.
"""

from __future__ import annotations

import logging
from typing import Any

from gridstore.storage.client import BlobStoreClient
from gridstore.storage.config import GridStoreSettings, load_settings
from gridstore.storage.errors import (
    ObjectNotFoundError,
    ObjectStorageError,
    ResourceLockedError,
    StorageIOError,
)
from gridstore.storage.models import ObjectDocument, StoredObject
from gridstore.storage.options import OptionsInput, RequestDescriptor, normalize_options
from gridstore.storage.store import BlobStore, ReadStream
from gridstore.storage.streams import check_source, pipe_to_stream
from gridstore.storage.tracing import annotate_request, traced_object_operation

logger = logging.getLogger(__name__)


class ObjectService:
    """Stream-oriented object storage façade over a lock-aware blob store.

    Objects are addressed by an identifier derived from their filename (or by
    an explicit id). ``post_object`` and ``put_object`` behave identically:
    both create or replace the object under that id.
    """

    def __init__(self, store: BlobStore, *, settings: GridStoreSettings | None = None) -> None:
        """Initialize the service.

        Args:
            store: Blob store backend.
            settings: Service settings. If None, loaded from the environment.
        """
        self._settings = settings if settings is not None else load_settings()
        self._client = BlobStoreClient(store)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier for observability."""
        return self._client.store.backend_name

    @property
    def client(self) -> BlobStoreClient:
        """Return the connection client."""
        return self._client

    @property
    def settings(self) -> GridStoreSettings:
        """Return the service settings."""
        return self._settings

    async def ensure_connection(self) -> None:
        """Connect to the store if not connected yet."""
        await self._client.ensure_connection()

    def _normalize(self, options: OptionsInput, action: str) -> RequestDescriptor:
        descriptor = normalize_options(
            options,
            to_native_id=self._client.store.to_native_id,
            default_root=self._settings.default_root,
            action=action,
        )
        annotate_request(descriptor)
        return descriptor

    @traced_object_operation("post_object")
    async def post_object(self, source: Any, options: OptionsInput) -> ObjectDocument:
        """Create an object from a byte stream.

        Args:
            source: Byte stream (bytes, binary reader, or (async) iterable of chunks).
            options: Request options with ``filename`` or ``id``.

        Returns:
            Metadata document of the stored object.

        Raises:
            InvalidRequestError: If no id can be established or ``source`` is not a stream.
            ResourceLockedError: If the write lock is held elsewhere.
            StorageIOError: If the transfer fails.
        """
        return await self._write_object(source, options, action="create object")

    @traced_object_operation("put_object")
    async def put_object(self, source: Any, options: OptionsInput) -> ObjectDocument:
        """Replace an object from a byte stream.

        Same behavior and failures as ``post_object``.
        """
        return await self._write_object(source, options, action="update object")

    async def _write_object(
        self, source: Any, options: OptionsInput, *, action: str
    ) -> ObjectDocument:
        await self._client.ensure_connection()

        descriptor = self._normalize(options, action)
        check_source(source)

        namespace = self._client.namespace(descriptor.root)
        stream = await namespace.open_write_stream(
            descriptor.id,
            filename=descriptor.filename,
            metadata=descriptor.metadata,
            content_type=descriptor.content_type,
        )
        if stream is None:
            raise ResourceLockedError(
                message="Locked: write stream unavailable",
                root=descriptor.root,
                object_id=descriptor.object_id,
            )

        document = await pipe_to_stream(
            source,
            stream,
            chunk_size=self._settings.chunk_size,
            root=descriptor.root,
            object_id=descriptor.object_id,
        )

        logger.debug(
            "Stored object: root=%s id=%s length=%s",
            descriptor.root,
            descriptor.object_id,
            document.length,
        )
        return document

    @traced_object_operation("get_object")
    async def get_object(self, options: OptionsInput) -> StoredObject:
        """Fetch an object's metadata document and content stream.

        The two are fetched with independent store calls; a concurrent removal
        in between yields ``ObjectNotFoundError``.

        Raises:
            InvalidRequestError: If no id can be established.
            ObjectNotFoundError: If metadata or content is missing.
            ResourceLockedError: If the read lock is unavailable.
        """
        descriptor = self._normalize(options, "get object")

        metadata = await self.get_object_metadata(options)
        if metadata is None:
            raise ObjectNotFoundError(
                message="Not found: no metadata",
                root=descriptor.root,
                object_id=descriptor.object_id,
            )

        try:
            content = await self.get_object_content(options)
        except ObjectNotFoundError as e:
            raise ObjectNotFoundError(
                message="Not found: no content",
                root=descriptor.root,
                object_id=descriptor.object_id,
            ) from e

        return StoredObject(metadata=metadata, content=content)

    @traced_object_operation("get_object_content")
    async def get_object_content(self, options: OptionsInput) -> ReadStream:
        """Open a read stream over an object's content.

        The stream is not drained here; the caller owns it and must close it.

        Raises:
            InvalidRequestError: If no id can be established.
            ResourceLockedError: If the read lock is unavailable.
            ObjectNotFoundError: If the store reports the object has no content.
        """
        await self._client.ensure_connection()

        descriptor = self._normalize(options, "get object")
        namespace = self._client.namespace(descriptor.root)

        stream = await namespace.open_read_stream(descriptor.id)
        if stream is None:
            raise ResourceLockedError(
                message="Locked: read stream unavailable",
                root=descriptor.root,
                object_id=descriptor.object_id,
            )
        return stream

    @traced_object_operation("get_object_metadata")
    async def get_object_metadata(self, options: OptionsInput) -> ObjectDocument | None:
        """Look up an object's metadata document.

        Returns:
            The document, or None if the object does not exist.

        Raises:
            InvalidRequestError: If no id can be established.
            StorageIOError: If the lookup fails.
        """
        await self._client.ensure_connection()

        descriptor = self._normalize(options, "get object metadata")
        session = self._client.session

        try:
            return await session.find_metadata(descriptor.root, descriptor.id)
        except ObjectStorageError:
            raise
        except Exception as e:
            raise StorageIOError(
                message=f"Metadata lookup failed: {e}",
                root=descriptor.root,
                object_id=descriptor.object_id,
                cause=e,
            ) from e

    @traced_object_operation("remove_object")
    async def remove_object(self, options: OptionsInput) -> bool:
        """Remove an object's content and metadata.

        Existence is not checked first. A store that cannot confirm the
        removal (falsy result) is treated as holding a lock; a store that can
        tell nothing exists raises ``ObjectNotFoundError``, which propagates.

        Returns:
            True once removed.

        Raises:
            InvalidRequestError: If no id can be established.
            ResourceLockedError: If the store could not confirm the removal.
            ObjectNotFoundError: If the store reports nothing to remove.
            StorageIOError: If the removal fails.
        """
        await self._client.ensure_connection()

        descriptor = self._normalize(options, "remove object")
        namespace = self._client.namespace(descriptor.root)

        try:
            removed = await namespace.remove(descriptor.id)
        except ObjectStorageError:
            raise
        except Exception as e:
            raise StorageIOError(
                message=f"Remove failed: {e}",
                root=descriptor.root,
                object_id=descriptor.object_id,
                cause=e,
            ) from e

        if not removed:
            raise ResourceLockedError(
                message="Failed to acquire lock",
                root=descriptor.root,
                object_id=descriptor.object_id,
            )

        logger.debug("Removed object: root=%s id=%s", descriptor.root, descriptor.object_id)
        return True


def build_object_service(
    *,
    settings: GridStoreSettings | None = None,
    store: BlobStore | None = None,
) -> ObjectService:
    """Build the default object service from settings.

    Args:
        settings: Service settings. If None, loaded from the environment.
        store: Blob store backend. If None, a filesystem store under
            ``settings.base_dir`` is used.

    Returns:
        Configured ObjectService (not yet connected).
    """
    from gridstore.storage.filesystem_store import FilesystemBlobStore

    settings = settings if settings is not None else load_settings()
    if store is None:
        store = FilesystemBlobStore(base_dir=settings.base_dir, chunk_size=settings.chunk_size)
    return ObjectService(store, settings=settings)


__all__ = ["ObjectService", "build_object_service"]

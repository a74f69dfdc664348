"""gridstore Filesystem blob store backend.

Provides local filesystem storage for development and testing with:
- Namespace (root) isolation via directory namespacing
- Path traversal protection on namespace names
- SHA256 content hashing
- Paired publication of content and metadata (temp files + replace)
- In-process single-writer / reader-exclusion locking per object

Objects are stored as:
    {base_dir}/{root}/{object_id}.data       # content
    {base_dir}/{root}/{object_id}.meta.json  # metadata document

Blocking file operations run in worker threads via ``asyncio.to_thread``.
Locks live in memory and are only shared by users of the same store
instance.

Environment Variables:
    GRIDSTORE_STORE_BASE_DIR: Base directory for storage
        (default: tempfile.gettempdir() / gridstore_objects)
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import threading
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, Any

from gridstore.storage.config import (
    DEFAULT_CHUNK_SIZE,
    ENV_STORE_BASE_DIR,
    default_base_dir,
    is_safe_root,
)
from gridstore.storage.errors import (
    InvalidRequestError,
    ObjectNotFoundError,
    PathTraversalError,
    StorageIOError,
)
from gridstore.storage.models import ObjectDocument, ObjectKey
from gridstore.storage.store import (
    BlobStore,
    NamespaceHandle,
    NativeId,
    ReadStream,
    StoreSession,
    WriteStream,
)

logger = logging.getLogger(__name__)

_METADATA_SUFFIX = ".meta.json"
_CONTENT_SUFFIX = ".data"


@dataclass
class _LockState:
    writer: bool = False
    readers: int = 0


class _LockTable:
    """Per-object lock bookkeeping. Refuses instead of waiting."""

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._states: dict[tuple[str, str], _LockState] = {}

    def try_acquire_write(self, key: tuple[str, str]) -> bool:
        with self._mutex:
            state = self._states.setdefault(key, _LockState())
            if state.writer or state.readers:
                return False
            state.writer = True
            return True

    def release_write(self, key: tuple[str, str]) -> None:
        with self._mutex:
            state = self._states.get(key)
            if state is None:
                return
            state.writer = False
            self._discard_if_idle(key, state)

    def try_acquire_read(self, key: tuple[str, str]) -> bool:
        with self._mutex:
            state = self._states.setdefault(key, _LockState())
            if state.writer:
                return False
            state.readers += 1
            return True

    def release_read(self, key: tuple[str, str]) -> None:
        with self._mutex:
            state = self._states.get(key)
            if state is None:
                return
            state.readers = max(0, state.readers - 1)
            self._discard_if_idle(key, state)

    def is_locked(self, key: tuple[str, str]) -> bool:
        with self._mutex:
            state = self._states.get(key)
            return state is not None and (state.writer or state.readers > 0)

    def _discard_if_idle(self, key: tuple[str, str], state: _LockState) -> None:
        if not state.writer and not state.readers:
            del self._states[key]


def _key_text(object_id: NativeId) -> str:
    """Return the canonical text of a native id."""
    if isinstance(object_id, ObjectKey):
        return object_id.hex
    if isinstance(object_id, str):
        try:
            return ObjectKey(object_id).hex
        except ValueError as e:
            raise InvalidRequestError(
                message="Invalid object id", object_id=object_id
            ) from e
    raise InvalidRequestError(message=f"Unsupported object id type: {type(object_id).__name__}")


def _replace_pair(
    content_tmp: Path, content_path: Path, meta_tmp: Path, meta_path: Path
) -> None:
    """Move staged content and metadata into place as a pair.

    The previous content is parked beside the target and restored if either
    replace fails, so readers never see new content with old metadata.
    """
    backup = content_path.with_name(f"{content_path.name}.{uuid.uuid4().hex}.bak")
    had_previous = content_path.exists()
    if had_previous:
        content_path.replace(backup)

    try:
        content_tmp.replace(content_path)
        meta_tmp.replace(meta_path)
    except OSError:
        if had_previous:
            backup.replace(content_path)
        else:
            content_path.unlink(missing_ok=True)
        raise

    if had_previous:
        backup.unlink(missing_ok=True)


def _delete_object_files(meta_file: Path, content_file: Path) -> bool:
    """Unlink metadata then content. Returns False if neither existed."""
    if not meta_file.exists() and not content_file.exists():
        return False
    meta_file.unlink(missing_ok=True)
    content_file.unlink(missing_ok=True)
    return True


def _read_metadata_file(meta_file: Path) -> dict[str, Any] | None:
    try:
        text = meta_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("metadata document is not an object")
    return data


class FilesystemWriteStream(WriteStream):
    """Write stream that spools into a temp file and publishes on close."""

    def __init__(
        self,
        store: FilesystemBlobStore,
        root: str,
        object_id: str,
        file: IO[bytes],
        tmp_path: Path,
        *,
        filename: str,
        metadata: dict[str, Any],
        content_type: str | None,
    ) -> None:
        self._store = store
        self._root = root
        self._object_id = object_id
        self._file = file
        self._tmp_path = tmp_path
        self._meta_tmp_path = tmp_path.with_suffix(".meta.tmp")
        self._filename = filename
        self._metadata = dict(metadata)
        self._content_type = content_type
        self._sha256 = hashlib.sha256()
        self._length = 0
        self._finished = False

    async def write(self, chunk: bytes) -> None:
        """Append a chunk to the spool file."""
        if self._finished:
            raise StorageIOError(
                message="Write stream is closed", root=self._root, object_id=self._object_id
            )
        try:
            await asyncio.to_thread(self._file.write, chunk)
        except OSError as e:
            raise StorageIOError(
                message=f"Failed to write content: {e}",
                root=self._root,
                object_id=self._object_id,
                cause=e,
            ) from e
        self._sha256.update(chunk)
        self._length += len(chunk)

    async def close(self) -> ObjectDocument:
        """Publish content and metadata together, then release the write lock.

        Raises:
            StorageIOError: If the metadata cannot be serialized or the files
                cannot be published. Nothing is published in that case.
        """
        if self._finished:
            raise StorageIOError(
                message="Write stream is closed", root=self._root, object_id=self._object_id
            )

        document = ObjectDocument(
            id=self._object_id,
            filename=self._filename,
            root=self._root,
            content_type=self._content_type,
            length=self._length,
            chunk_size=self._store.chunk_size,
            upload_date=datetime.now(UTC),
            sha256=self._sha256.hexdigest(),
            metadata=self._metadata,
        )

        try:
            metadata_bytes = json.dumps(document.to_dict(), indent=2).encode("utf-8")
        except (TypeError, ValueError) as e:
            await self.abort()
            raise StorageIOError(
                message=f"Metadata is not JSON-serializable: {e}",
                root=self._root,
                object_id=self._object_id,
                cause=e,
            ) from e

        try:
            await asyncio.to_thread(self._publish, metadata_bytes)
        except OSError as e:
            await self.abort()
            raise StorageIOError(
                message=f"Failed to publish object: {e}",
                root=self._root,
                object_id=self._object_id,
                cause=e,
            ) from e

        self._release()
        logger.debug(
            "Published object: root=%s id=%s sha256=%s",
            self._root,
            self._object_id,
            document.sha256,
        )
        return document

    async def abort(self) -> None:
        """Discard the staged files and release the write lock."""
        if self._finished:
            return
        try:
            await asyncio.to_thread(self._discard)
        finally:
            self._release()

    def _publish(self, metadata_bytes: bytes) -> None:
        self._file.close()
        self._meta_tmp_path.write_bytes(metadata_bytes)
        _replace_pair(
            self._tmp_path,
            self._store.content_path(self._root, self._object_id),
            self._meta_tmp_path,
            self._store.metadata_path(self._root, self._object_id),
        )

    def _discard(self) -> None:
        try:
            self._file.close()
        finally:
            self._tmp_path.unlink(missing_ok=True)
            self._meta_tmp_path.unlink(missing_ok=True)

    def _release(self) -> None:
        self._finished = True
        self._store.locks.release_write((self._root, self._object_id))


class FilesystemReadStream(ReadStream):
    """Read stream over a content file; holds the read lock until closed."""

    def __init__(
        self,
        store: FilesystemBlobStore,
        root: str,
        object_id: str,
        file: IO[bytes],
    ) -> None:
        self._store = store
        self._root = root
        self._object_id = object_id
        self._file = file
        self._closed = False

    @property
    def chunk_size(self) -> int:
        """Preferred chunk size for iteration."""
        return self._store.chunk_size

    @property
    def closed(self) -> bool:
        """Return True once the read lock has been released."""
        return self._closed

    async def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes; closes itself at end of stream."""
        if self._closed:
            return b""
        try:
            data = await asyncio.to_thread(self._file.read, size if size >= 0 else -1)
        except OSError as e:
            await self.close()
            raise StorageIOError(
                message=f"Failed to read content: {e}",
                root=self._root,
                object_id=self._object_id,
                cause=e,
            ) from e
        if size < 0 or not data:
            await self.close()
        return data

    async def close(self) -> None:
        """Close the content file and release the read lock."""
        if self._closed:
            return
        self._closed = True
        try:
            await asyncio.to_thread(self._file.close)
        finally:
            self._store.locks.release_read((self._root, self._object_id))


class FilesystemNamespace(NamespaceHandle):
    """Handle scoped to one namespace directory."""

    def __init__(self, store: FilesystemBlobStore, root: str) -> None:
        self._store = store
        self._root = root

    @property
    def root(self) -> str:
        """Return the namespace name."""
        return self._root

    async def open_write_stream(
        self,
        object_id: NativeId,
        *,
        filename: str,
        metadata: dict[str, Any],
        content_type: str | None = None,
    ) -> WriteStream | None:
        """Open a write stream, or return None if the object is locked."""
        key = _key_text(object_id)
        lock_key = (self._root, key)
        if not self._store.locks.try_acquire_write(lock_key):
            logger.debug("Write lock unavailable: root=%s id=%s", self._root, key)
            return None

        namespace_dir = self._store.namespace_dir(self._root)
        tmp_path = namespace_dir / f"{key}.{uuid.uuid4().hex}.tmp"
        try:
            await asyncio.to_thread(namespace_dir.mkdir, parents=True, exist_ok=True)
            file = await asyncio.to_thread(tmp_path.open, "wb")
        except OSError as e:
            self._store.locks.release_write(lock_key)
            raise StorageIOError(
                message=f"Failed to open write stream: {e}",
                root=self._root,
                object_id=key,
                cause=e,
            ) from e

        return FilesystemWriteStream(
            self._store,
            self._root,
            key,
            file,
            tmp_path,
            filename=filename,
            metadata=metadata,
            content_type=content_type,
        )

    async def open_read_stream(self, object_id: NativeId) -> ReadStream | None:
        """Open a read stream, or return None if a writer holds the object."""
        key = _key_text(object_id)
        if not self._store.locks.try_acquire_read((self._root, key)):
            logger.debug("Read lock unavailable: root=%s id=%s", self._root, key)
            return None

        content_file = self._store.content_path(self._root, key)
        try:
            file = await asyncio.to_thread(content_file.open, "rb")
        except FileNotFoundError as e:
            self._store.locks.release_read((self._root, key))
            raise ObjectNotFoundError(
                message="Object content not found", root=self._root, object_id=key
            ) from e
        except OSError as e:
            self._store.locks.release_read((self._root, key))
            raise StorageIOError(
                message=f"Failed to open content: {e}",
                root=self._root,
                object_id=key,
                cause=e,
            ) from e

        return FilesystemReadStream(self._store, self._root, key, file)

    async def remove(self, object_id: NativeId) -> bool:
        """Remove metadata then content; False if the object is locked."""
        key = _key_text(object_id)
        lock_key = (self._root, key)
        if not self._store.locks.try_acquire_write(lock_key):
            logger.debug("Remove lock unavailable: root=%s id=%s", self._root, key)
            return False

        try:
            existed = await asyncio.to_thread(
                _delete_object_files,
                self._store.metadata_path(self._root, key),
                self._store.content_path(self._root, key),
            )
        except OSError as e:
            raise StorageIOError(
                message=f"Failed to delete object files: {e}",
                root=self._root,
                object_id=key,
                cause=e,
            ) from e
        finally:
            self._store.locks.release_write(lock_key)

        if not existed:
            raise ObjectNotFoundError(message="Object not found", root=self._root, object_id=key)

        logger.debug("Deleted object: root=%s id=%s", self._root, key)
        return True


class FilesystemSession(StoreSession):
    """Session for metadata lookups against the filesystem store."""

    def __init__(self, store: FilesystemBlobStore) -> None:
        self._store = store

    async def find_metadata(self, root: str, object_id: NativeId) -> ObjectDocument | None:
        """Read the metadata document, or return None if there is none."""
        key = _key_text(object_id)
        meta_file = self._store.metadata_path(root, key)
        try:
            data = await asyncio.to_thread(_read_metadata_file, meta_file)
            return ObjectDocument.from_dict(data) if data is not None else None
        except (OSError, KeyError, ValueError) as e:
            logger.warning("Failed to read metadata root=%s id=%s: %s", root, key, e)
            raise StorageIOError(
                message=f"Failed to read metadata: {e}",
                root=root,
                object_id=key,
                cause=e,
            ) from e


class FilesystemBlobStore(BlobStore):
    """Filesystem-based blob store implementation."""

    def __init__(
        self,
        base_dir: str | Path | None = None,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize filesystem storage.

        Args:
            base_dir: Base directory for storage. If None, uses
                GRIDSTORE_STORE_BASE_DIR env var or OS temp directory.
            chunk_size: Chunk size recorded in documents and used for reads.
        """
        if base_dir is None:
            base_dir = os.environ.get(ENV_STORE_BASE_DIR) or default_base_dir()

        self._base_dir = Path(base_dir).resolve()
        self._chunk_size = chunk_size
        self._locks = _LockTable()
        self._connected = False
        logger.debug("FilesystemBlobStore initialized with base_dir=%s", self._base_dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def base_dir(self) -> Path:
        """Return the base directory path."""
        return self._base_dir

    @property
    def chunk_size(self) -> int:
        """Return the configured chunk size."""
        return self._chunk_size

    @property
    def locks(self) -> _LockTable:
        """Return the in-process lock table."""
        return self._locks

    async def connect(self) -> StoreSession:
        """Create the base directory and return a session."""
        try:
            await asyncio.to_thread(self._base_dir.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(
                message=f"Failed to create storage base directory: {e}", cause=e
            ) from e
        self._connected = True
        return FilesystemSession(self)

    def is_connected(self) -> bool:
        """Return True once ``connect`` has succeeded."""
        return self._connected

    def namespace(self, root: str) -> NamespaceHandle:
        """Return a handle for ``root``."""
        self.namespace_dir(root)
        return FilesystemNamespace(self, root)

    def to_native_id(self, object_id: str) -> ObjectKey:
        """Convert a 24-hex id string to an ``ObjectKey``."""
        return ObjectKey(object_id)

    def namespace_dir(self, root: str) -> Path:
        """Return the directory of ``root``, validating the name."""
        if not is_safe_root(root):
            raise PathTraversalError(
                message="Invalid root: path traversal or unsafe characters detected",
                root=root,
            )
        path = (self._base_dir / root).resolve()
        try:
            path.relative_to(self._base_dir)
        except ValueError as e:
            raise PathTraversalError(
                message="Root resolves outside storage base directory", root=root
            ) from e
        return path

    def content_path(self, root: str, object_id: str) -> Path:
        """Return the content file path of an object."""
        return self.namespace_dir(root) / f"{object_id}{_CONTENT_SUFFIX}"

    def metadata_path(self, root: str, object_id: str) -> Path:
        """Return the metadata file path of an object."""
        return self.namespace_dir(root) / f"{object_id}{_METADATA_SUFFIX}"

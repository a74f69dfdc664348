"""gridstore Object Storage.

Stream-oriented object storage façade: derives deterministic 24-character
identifiers from object names, normalizes request options, and streams
object content and metadata through a lock-aware blob store.

Backends:
- FilesystemBlobStore: Local filesystem (dev/test)

Environment Variables:
    GRIDSTORE_STORE_BASE_DIR: Base directory for the filesystem backend
        (default: OS temp dir / gridstore_objects)
    GRIDSTORE_DEFAULT_ROOT: Default namespace (default: "fs")
    GRIDSTORE_CHUNK_SIZE: Source read chunk size in bytes (default: 261120)
"""

from gridstore.storage.client import BlobStoreClient
from gridstore.storage.config import GridStoreSettings, load_settings
from gridstore.storage.errors import (
    InvalidRequestError,
    ObjectNotFoundError,
    ObjectStorageError,
    PathTraversalError,
    ResourceLockedError,
    StorageConfigError,
    StorageIOError,
)
from gridstore.storage.filesystem_store import FilesystemBlobStore
from gridstore.storage.identifiers import OBJECT_ID_LENGTH, derive_object_id
from gridstore.storage.models import ObjectDocument, ObjectKey, StoredObject
from gridstore.storage.options import RequestDescriptor, RequestOptions, normalize_options
from gridstore.storage.service import ObjectService, build_object_service
from gridstore.storage.store import (
    BlobStore,
    NamespaceHandle,
    ReadStream,
    StoreSession,
    WriteStream,
)

__all__ = [
    "OBJECT_ID_LENGTH",
    "BlobStore",
    "BlobStoreClient",
    "FilesystemBlobStore",
    "GridStoreSettings",
    "InvalidRequestError",
    "NamespaceHandle",
    "ObjectDocument",
    "ObjectKey",
    "ObjectNotFoundError",
    "ObjectService",
    "ObjectStorageError",
    "PathTraversalError",
    "ReadStream",
    "RequestDescriptor",
    "RequestOptions",
    "ResourceLockedError",
    "StorageConfigError",
    "StorageIOError",
    "StoreSession",
    "StoredObject",
    "WriteStream",
    "build_object_service",
    "derive_object_id",
    "load_settings",
    "normalize_options",
]

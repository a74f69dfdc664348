"""gridstore Object Storage error types.

Provides typed exceptions for object service operations. Every failure is
surfaced to the caller as one of these; the service never retries.
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for object storage operations.

    Attributes:
        message: Human-readable error message.
        root: Namespace associated with the operation (if applicable).
        object_id: Object identifier associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        root: str | None = None,
        object_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.root = root
        self.object_id = object_id

    def __str__(self) -> str:
        parts = [self.message]
        if self.root:
            parts.append(f"root={self.root}")
        if self.object_id:
            parts.append(f"object_id={self.object_id}")
        return " ".join(parts)


class InvalidRequestError(ObjectStorageError):
    """Raised when request options cannot produce a usable descriptor.

    Typically no identifier could be derived (neither filename nor id was
    supplied), or a supplied value has the wrong shape. This is a caller bug
    and is never retried.
    """

    def __init__(
        self,
        message: str = "Invalid request",
        *,
        root: str | None = None,
        object_id: str | None = None,
    ) -> None:
        super().__init__(message, root=root, object_id=object_id)


class PathTraversalError(InvalidRequestError):
    """Raised when a namespace name would escape the storage sandbox."""

    def __init__(
        self,
        message: str = "Invalid root: path traversal detected",
        *,
        root: str | None = None,
        object_id: str | None = None,
    ) -> None:
        super().__init__(message, root=root, object_id=object_id)


class ResourceLockedError(ObjectStorageError):
    """Raised when the store refuses a read/write stream or a removal.

    The lock is held elsewhere. Callers may retry; the service does not.
    """

    def __init__(
        self,
        message: str = "Locked",
        *,
        root: str | None = None,
        object_id: str | None = None,
    ) -> None:
        super().__init__(message, root=root, object_id=object_id)


class ObjectNotFoundError(ObjectStorageError):
    """Raised when no metadata or no content exists for a resolvable id."""

    def __init__(
        self,
        message: str = "Not found",
        *,
        root: str | None = None,
        object_id: str | None = None,
    ) -> None:
        super().__init__(message, root=root, object_id=object_id)


class StorageIOError(ObjectStorageError):
    """Raised when a transfer, lookup, removal or connection fails in the store.

    Attributes:
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str = "Storage I/O error",
        *,
        root: str | None = None,
        object_id: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, root=root, object_id=object_id)
        self.cause = cause


class StorageConfigError(ObjectStorageError):
    """Raised when gridstore configuration is missing or invalid."""

    def __init__(self, message: str = "Invalid storage configuration") -> None:
        super().__init__(message)

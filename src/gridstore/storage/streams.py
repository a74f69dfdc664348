"""Byte-stream plumbing between caller sources and store write streams."""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Mapping
from typing import Any

from gridstore.storage.errors import InvalidRequestError, StorageIOError
from gridstore.storage.models import ObjectDocument
from gridstore.storage.store import WriteStream

logger = logging.getLogger(__name__)

_BYTES_TYPES = (bytes, bytearray, memoryview)


def check_source(source: Any) -> None:
    """Reject values that cannot be read as a byte stream.

    Accepted: bytes-like objects, objects with a (sync or async) ``read``
    method, async iterables and iterables of bytes chunks.

    Raises:
        InvalidRequestError: If ``source`` is not a byte stream.
    """
    if isinstance(source, _BYTES_TYPES):
        return
    if callable(getattr(source, "read", None)):
        return
    if isinstance(source, AsyncIterable):
        return
    if isinstance(source, Iterable) and not isinstance(source, (str, Mapping)):
        return
    raise InvalidRequestError(f"Source must be a byte stream, got {type(source).__name__}")


async def iter_source_chunks(source: Any, chunk_size: int) -> AsyncIterator[bytes]:
    """Yield the content of ``source`` as bytes chunks."""
    if isinstance(source, _BYTES_TYPES):
        view = memoryview(source).cast("B")
        for offset in range(0, len(view), chunk_size):
            yield bytes(view[offset : offset + chunk_size])
        return

    read = getattr(source, "read", None)
    if callable(read):
        while True:
            chunk = read(chunk_size)
            if inspect.isawaitable(chunk):
                chunk = await chunk
            if not chunk:
                return
            yield _as_bytes(chunk)

    elif isinstance(source, AsyncIterable):
        async for chunk in source:
            if chunk:
                yield _as_bytes(chunk)

    else:
        for chunk in source:
            if chunk:
                yield _as_bytes(chunk)


def _as_bytes(chunk: Any) -> bytes:
    if isinstance(chunk, bytes):
        return chunk
    if isinstance(chunk, (bytearray, memoryview)):
        return bytes(chunk)
    raise TypeError(f"Source yielded {type(chunk).__name__}, expected bytes")


async def pipe_to_stream(
    source: Any,
    stream: WriteStream,
    *,
    chunk_size: int,
    root: str | None = None,
    object_id: str | None = None,
) -> ObjectDocument:
    """Copy ``source`` into ``stream`` and publish it.

    Completion and failure are the two terminal states of one call: the
    stream is either closed (returning its document) or aborted (raising),
    never both.

    Raises:
        StorageIOError: If reading the source, writing or publishing fails.
    """
    transferred = 0
    try:
        async for chunk in iter_source_chunks(source, chunk_size):
            await stream.write(chunk)
            transferred += len(chunk)
        document = await stream.close()
    except StorageIOError:
        await stream.abort()
        raise
    except Exception as e:
        logger.warning(
            "Aborting write: root=%s id=%s after %s bytes: %s",
            root,
            object_id,
            transferred,
            e,
        )
        await stream.abort()
        raise StorageIOError(
            message=f"Stream transfer failed: {e}",
            root=root,
            object_id=object_id,
            cause=e,
        ) from e
    except BaseException:
        await stream.abort()
        raise

    logger.debug("Transferred %s bytes: root=%s id=%s", transferred, root, object_id)
    return document

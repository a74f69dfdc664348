"""gridstore object service OpenTelemetry tracing integration.

Provides the tracing decorator for object service operations.

Security:
    - Never export raw filenames in span attributes (hash them)
    - Never export absolute filesystem paths
"""

from __future__ import annotations

import functools
import hashlib
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar, cast

from gridstore.observability.tracing import get_tracer, is_tracing_enabled, set_span_attributes
from gridstore.storage.models import ObjectDocument, StoredObject

if TYPE_CHECKING:
    from gridstore.storage.options import RequestDescriptor


F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def traced_object_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace object service coroutines with OpenTelemetry.

    Args:
        operation: Operation name (e.g., "post_object", "get_object").

    Returns:
        Decorated coroutine function that emits spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return await func(self, *args, **kwargs)

            tracer = get_tracer("gridstore.object_service")
            span_name = f"gridstore.object_service.{operation}"

            with tracer.start_as_current_span(span_name) as span:
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))
                try:
                    result = await func(self, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                if result is not None:
                    _add_result_attributes(span, result)
                return result

        return cast(F, wrapper)

    return decorator


def annotate_request(descriptor: RequestDescriptor) -> None:
    """Attach the normalized request to the current span, if any."""
    filename_sha256 = None
    if descriptor.original_filename is not None:
        filename_sha256 = hashlib.sha256(
            descriptor.original_filename.encode("utf-8")
        ).hexdigest()

    set_span_attributes(
        {
            "gridstore.root": descriptor.root,
            "gridstore.object_id": descriptor.object_id,
            "gridstore.filename_sha256": filename_sha256,
        }
    )


def _add_result_attributes(span: Any, result: Any) -> None:
    """Add result-based attributes to span (length, content type)."""
    document: ObjectDocument | None = None

    if isinstance(result, ObjectDocument):
        document = result
    elif isinstance(result, StoredObject):
        document = result.metadata

    if document is not None:
        span.set_attribute("gridstore.object_length", document.length)
        if document.content_type:
            span.set_attribute("gridstore.object_content_type", document.content_type)
    elif isinstance(result, bool):
        span.set_attribute("gridstore.removed", result)

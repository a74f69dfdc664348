"""OpenTelemetry tracing setup for gridstore.

Tracing is off unless enabled through the environment. When on, spans go to
the console, nowhere, or (in tests) an in-memory exporter.

Environment Variables:
    GRIDSTORE_OTEL_ENABLED: "1" turns tracing on (default: off)
    GRIDSTORE_REQUIRE_OTEL: "1" makes a failed setup raise instead of log
    GRIDSTORE_OTEL_SERVICE_NAME: service.name resource attribute (default: "gridstore")
    GRIDSTORE_OTEL_EXPORTER: "console" or "none" (default: "console")
    GRIDSTORE_OTEL_RESOURCE_ATTRS: Extra resource attributes as "k=v,k2=v2"
    GRIDSTORE_OTEL_TEST_CAPTURE: "1" routes spans to an in-memory exporter

Span attributes hold namespace names, object ids and hashes only. Raw
filenames and filesystem paths are never exported.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

from opentelemetry import trace

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

logger = logging.getLogger(__name__)

ENV_OTEL_ENABLED: Final[str] = "GRIDSTORE_OTEL_ENABLED"
ENV_REQUIRE_OTEL: Final[str] = "GRIDSTORE_REQUIRE_OTEL"
ENV_SERVICE_NAME: Final[str] = "GRIDSTORE_OTEL_SERVICE_NAME"
ENV_EXPORTER: Final[str] = "GRIDSTORE_OTEL_EXPORTER"
ENV_RESOURCE_ATTRS: Final[str] = "GRIDSTORE_OTEL_RESOURCE_ATTRS"
ENV_TEST_CAPTURE: Final[str] = "GRIDSTORE_OTEL_TEST_CAPTURE"

_EXPORTERS: Final[frozenset[str]] = frozenset({"console", "none"})

_tracer_provider: TracerProvider | None = None
_is_configured: bool = False
_test_exporter: InMemorySpanExporter | None = None


class TracingConfigError(Exception):
    """Raised when tracing setup fails and GRIDSTORE_REQUIRE_OTEL=1."""


@dataclass(frozen=True)
class TracingSettings:
    """Tracing configuration read from the environment.

    Attributes:
        enabled: Whether spans are recorded at all.
        required: Whether a failed setup is fatal.
        service_name: Value of the ``service.name`` resource attribute.
        exporter: Span exporter name, ``console`` or ``none``.
        resource_attributes: Extra resource attributes.
        test_capture: Whether spans go to the in-memory test exporter.
    """

    enabled: bool = False
    required: bool = False
    service_name: str = "gridstore"
    exporter: str = "console"
    resource_attributes: dict[str, str] = field(default_factory=dict)
    test_capture: bool = False


def _env_flag(key: str) -> bool:
    return os.environ.get(key, "").strip().lower() in ("1", "true", "yes")


def _parse_resource_attrs(attrs_str: str) -> dict[str, str]:
    """Parse "k=v,k2=v2" into a dict, skipping entries without '='."""
    pairs = (item.strip() for item in attrs_str.split(","))
    return {
        key.strip(): value.strip()
        for key, _, value in (item.partition("=") for item in pairs if "=" in item)
    }


def load_tracing_settings() -> TracingSettings:
    """Read tracing settings from GRIDSTORE_OTEL_* environment variables."""
    return TracingSettings(
        enabled=_env_flag(ENV_OTEL_ENABLED),
        required=_env_flag(ENV_REQUIRE_OTEL),
        service_name=os.environ.get(ENV_SERVICE_NAME, "").strip() or "gridstore",
        exporter=os.environ.get(ENV_EXPORTER, "").strip().lower() or "console",
        resource_attributes=_parse_resource_attrs(os.environ.get(ENV_RESOURCE_ATTRS, "")),
        test_capture=_env_flag(ENV_TEST_CAPTURE),
    )


def is_tracing_enabled() -> bool:
    """Return True if GRIDSTORE_OTEL_ENABLED is set."""
    return _env_flag(ENV_OTEL_ENABLED)


def _build_provider(settings: TracingSettings) -> TracerProvider:
    global _test_exporter

    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

    if settings.exporter not in _EXPORTERS:
        raise TracingConfigError(f"Unsupported exporter: {settings.exporter}")

    resource = Resource.create(
        {"service.name": settings.service_name, **settings.resource_attributes}
    )
    provider = TracerProvider(resource=resource)

    if settings.test_capture:
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
            InMemorySpanExporter,
        )

        _test_exporter = InMemorySpanExporter()
        provider.add_span_processor(SimpleSpanProcessor(_test_exporter))
    elif settings.exporter == "console":
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    return provider


def configure_tracing(settings: TracingSettings | None = None) -> bool:
    """Set up the tracer provider. Safe to call repeatedly.

    Args:
        settings: Tracing settings. If None, read from the environment.

    Returns:
        True if tracing is on and a provider is installed.

    Raises:
        TracingConfigError: If setup fails and ``settings.required`` is set.
    """
    global _tracer_provider, _is_configured

    settings = settings if settings is not None else load_tracing_settings()

    if not settings.enabled:
        _is_configured = True
        logger.debug("OpenTelemetry tracing disabled (%s not set)", ENV_OTEL_ENABLED)
        return False

    # The global provider can only be installed once per process.
    if settings.test_capture and _test_exporter is not None:
        return True
    if _is_configured and _tracer_provider is not None:
        return True

    _is_configured = True

    try:
        provider = _build_provider(settings)
    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        if settings.required:
            raise TracingConfigError(
                f"OpenTelemetry tracing required but configuration failed: {e}"
            ) from e
        return False

    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    logger.info(
        "OpenTelemetry tracing configured: service=%s, exporter=%s",
        settings.service_name,
        "in-memory" if settings.test_capture else settings.exporter,
    )
    return True


def get_tracer(name: str) -> trace.Tracer:
    """Return a tracer from the gridstore provider, else the global one."""
    provider = _tracer_provider if _tracer_provider is not None else trace.get_tracer_provider()
    return provider.get_tracer(name)


def set_span_attributes(attributes: dict[str, Any]) -> None:
    """Set attributes on the current span, if it is recording.

    None values are skipped; values that are not OpenTelemetry primitives
    are stringified.
    """
    span = trace.get_current_span()
    if not span.is_recording():
        return
    for key, value in attributes.items():
        if value is None:
            continue
        if not isinstance(value, bool | int | float | str):
            value = str(value)
        span.set_attribute(key, value)


def get_current_trace_id() -> str | None:
    """Return the active trace id as 32 hex digits, or None outside a span."""
    ctx = trace.get_current_span().get_span_context()
    return format(ctx.trace_id, "032x") if ctx.is_valid else None


def get_test_spans() -> list[ReadableSpan]:
    """Return spans captured by the in-memory exporter (empty if none)."""
    if _test_exporter is None:
        return []
    return list(_test_exporter.get_finished_spans())


def clear_test_spans() -> None:
    """Drop spans captured by the in-memory exporter."""
    if _test_exporter is not None:
        _test_exporter.clear()


def reset_tracing() -> None:
    """Forget configuration state so the next call reconfigures (tests only).

    The installed provider stays in place since OpenTelemetry does not allow
    replacing it; captured spans are cleared.
    """
    global _is_configured

    clear_test_spans()
    _is_configured = False

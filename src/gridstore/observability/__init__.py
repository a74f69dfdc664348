"""gridstore Observability module.

Provides OpenTelemetry tracing setup for the object service.
"""

from gridstore.observability.tracing import (
    TracingSettings,
    configure_tracing,
    get_current_trace_id,
    load_tracing_settings,
)

__all__ = [
    "TracingSettings",
    "configure_tracing",
    "get_current_trace_id",
    "load_tracing_settings",
]

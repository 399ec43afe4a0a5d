"""Public observability primitives: structlog-based structured logging."""

from financex_state.observability.logging import (
    LogFormat,
    LoggingConfig,
    StructuredLoggingHandle,
    get_active_logging_handle,
    redact_event_fields,
    setup_logging,
    setup_logging_from_config,
    shutdown_logging,
)

__all__ = [
    "LogFormat",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "get_active_logging_handle",
    "redact_event_fields",
    "setup_logging",
    "setup_logging_from_config",
    "shutdown_logging",
]

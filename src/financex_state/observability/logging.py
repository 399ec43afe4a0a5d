"""Structured logging setup on structlog with JSON-lines output and redaction."""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal, TextIO

import structlog

LogFormat = Literal["json", "text"]

_REDACTED_VALUE: Final[str] = "***REDACTED***"

# Fields that may carry the serialized application state.
_PAYLOAD_KEYS: Final[frozenset[str]] = frozenset({"value", "state", "payload", "snapshot"})

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "passphrase",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "cookie",
    "private_key",
)

_ACTIVE_LOCK = threading.Lock()
_ACTIVE_HANDLE: StructuredLoggingHandle | None = None


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Configuration for process-wide structured logging."""

    level: int | str = "INFO"
    log_format: LogFormat = "json"
    log_file: Path | str | None = None


class StructuredLoggingHandle:
    """Runtime handle for an active logging setup; owns the file sink if any."""

    def __init__(
        self,
        *,
        level: int,
        log_format: LogFormat,
        stream: TextIO,
        owns_stream: bool,
    ) -> None:
        self.level = level
        self.log_format = log_format
        self.stream = stream
        self._owns_stream = owns_stream
        self._is_shutdown = False

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def flush(self) -> None:
        if not self._is_shutdown:
            self.stream.flush()

    def shutdown(self) -> None:
        if self._is_shutdown:
            return
        self.stream.flush()
        if self._owns_stream:
            self.stream.close()
        self._is_shutdown = True


def setup_logging(config: LoggingConfig | None = None) -> StructuredLoggingHandle:
    """Configure structlog for the process and return the active handle."""

    cfg = config or LoggingConfig()
    level = _parse_log_level(cfg.level)
    if cfg.log_format not in ("json", "text"):
        raise ValueError(f"log_format must be 'json' or 'text'; got {cfg.log_format!r}")

    _shutdown_active_handle()

    stream: TextIO
    owns_stream = False
    if cfg.log_file is not None and str(cfg.log_file).strip():
        log_path = Path(cfg.log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        stream = log_path.open("a", encoding="utf-8")
        owns_stream = True
    else:
        stream = sys.stderr

    renderer: Any
    if cfg.log_format == "json":
        renderer = structlog.processors.JSONRenderer(sort_keys=True, ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_event_fields,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )

    handle = StructuredLoggingHandle(
        level=level,
        log_format=cfg.log_format,
        stream=stream,
        owns_stream=owns_stream,
    )
    global _ACTIVE_HANDLE
    with _ACTIVE_LOCK:
        _ACTIVE_HANDLE = handle
    return handle


def setup_logging_from_config(
    observability_config: Mapping[str, object] | None = None,
) -> StructuredLoggingHandle:
    """Configure logging from an ``[observability]`` config section."""

    cfg = dict(observability_config or {})
    raw_level = cfg.get("log_level", "INFO")
    raw_format = cfg.get("log_format", "json")
    raw_file = cfg.get("log_file")
    log_file = raw_file if isinstance(raw_file, (str, Path)) and str(raw_file).strip() else None
    return setup_logging(
        LoggingConfig(
            level=raw_level if isinstance(raw_level, (int, str)) else "INFO",
            log_format="text" if raw_format == "text" else "json",
            log_file=log_file,
        )
    )


def shutdown_logging() -> None:
    """Close any owned sink and restore structlog defaults."""

    _shutdown_active_handle()
    structlog.reset_defaults()


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    with _ACTIVE_LOCK:
        return _ACTIVE_HANDLE


def redact_event_fields(
    logger: object, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor: mask state payloads and secret-looking fields."""

    del logger, method_name
    for key in list(event_dict):
        if key == "event":
            continue
        if _requires_redaction_for_key(key):
            event_dict[key] = _REDACTED_VALUE
    return event_dict


def _requires_redaction_for_key(key: str) -> bool:
    lowered = key.strip().lower()
    if lowered in _PAYLOAD_KEYS:
        return True
    return any(term in lowered for term in _SENSITIVE_KEY_TERMS)


def _shutdown_active_handle() -> None:
    global _ACTIVE_HANDLE
    with _ACTIVE_LOCK:
        handle = _ACTIVE_HANDLE
        _ACTIVE_HANDLE = None
    if handle is not None:
        handle.shutdown()


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, bool):
        raise ValueError("log level must be an int or level name")
    if isinstance(value, int):
        return value
    name = value.strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"unknown log level: {value!r}")
    return level


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

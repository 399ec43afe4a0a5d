"""
financex-state: persistence error taxonomy.

Startup errors (directory, storage I/O, schema) abort application launch.
Per-call errors (lock, query, write) are reported to the specific caller.
Errors stay structured inside the core; ``message(locale)`` renders the
human-readable string only at the invocation boundary.
"""

from __future__ import annotations

import sqlite3
from enum import StrEnum
from pathlib import Path
from typing import ClassVar, Final

from financex_state.constants import DEFAULT_LOCALE


class ErrorKind(StrEnum):
    """Stable error-kind identifiers for the persistence layer."""

    DIRECTORY_UNAVAILABLE = "directory_unavailable"
    STORAGE_IO = "storage_io"
    SCHEMA = "schema"
    LOCK_UNAVAILABLE = "lock_unavailable"
    QUERY = "query"
    WRITE = "write"


_MESSAGES: Final[dict[str, dict[ErrorKind, str]]] = {
    "en": {
        ErrorKind.DIRECTORY_UNAVAILABLE: "Application data directory could not be resolved",
        ErrorKind.STORAGE_IO: "Application data storage could not be opened",
        ErrorKind.SCHEMA: "Database schema could not be prepared",
        ErrorKind.LOCK_UNAVAILABLE: "Database lock could not be acquired",
        ErrorKind.QUERY: "Saved state could not be read",
        ErrorKind.WRITE: "State could not be saved",
    },
    "tr": {
        ErrorKind.DIRECTORY_UNAVAILABLE: "Uygulama veri dizini oluşturulamadı",
        ErrorKind.STORAGE_IO: "Uygulama veri deposu açılamadı",
        ErrorKind.SCHEMA: "Veritabanı şeması hazırlanamadı",
        ErrorKind.LOCK_UNAVAILABLE: "Veritabanı kilidi alınamadı",
        ErrorKind.QUERY: "Kaydedilmiş durum okunamadı",
        ErrorKind.WRITE: "Durum kaydedilirken hata oluştu",
    },
}


class StateStoreError(RuntimeError):
    """Base class for persistence errors."""

    kind: ClassVar[ErrorKind]
    fatal_at_startup: ClassVar[bool] = False

    def __init__(self, detail: str = "", *, path: Path | None = None) -> None:
        self.detail = detail.strip()
        self.path = path
        super().__init__(self.message(DEFAULT_LOCALE))

    @property
    def sqlite_errorname(self) -> str | None:
        cause = self.__cause__
        if isinstance(cause, sqlite3.Error):
            name = getattr(cause, "sqlite_errorname", None)
            return name if isinstance(name, str) else None
        return None

    def message(self, locale: str = DEFAULT_LOCALE) -> str:
        """Render the localized boundary message, keeping the engine detail verbatim."""

        summary = localized_summary(self.kind, locale)
        if not self.detail:
            return summary
        return f"{summary}: {self.detail}"


class DirectoryUnavailableError(StateStoreError):
    """Raised when no writable per-application data directory can be resolved."""

    kind = ErrorKind.DIRECTORY_UNAVAILABLE
    fatal_at_startup = True


class StorageIOError(StateStoreError):
    """Raised when the data directory or database file cannot be created or opened."""

    kind = ErrorKind.STORAGE_IO
    fatal_at_startup = True


class SchemaError(StateStoreError):
    """Raised when the key-value table bootstrap statement fails."""

    kind = ErrorKind.SCHEMA
    fatal_at_startup = True


class LockUnavailableError(StateStoreError):
    """Raised when the connection guard cannot be acquired (poisoned register)."""

    kind = ErrorKind.LOCK_UNAVAILABLE


class QueryError(StateStoreError):
    """Raised when the engine fails during ``load``."""

    kind = ErrorKind.QUERY


class WriteError(StateStoreError):
    """Raised when the engine fails during ``save``."""

    kind = ErrorKind.WRITE


STARTUP_ERRORS: Final[tuple[type[StateStoreError], ...]] = (
    DirectoryUnavailableError,
    StorageIOError,
    SchemaError,
)


def localized_summary(kind: ErrorKind, locale: str = DEFAULT_LOCALE) -> str:
    catalog = _MESSAGES.get(locale.strip().lower(), _MESSAGES[DEFAULT_LOCALE])
    return catalog[kind]


__all__ = [
    "STARTUP_ERRORS",
    "DirectoryUnavailableError",
    "ErrorKind",
    "LockUnavailableError",
    "QueryError",
    "SchemaError",
    "StateStoreError",
    "StorageIOError",
    "WriteError",
    "localized_summary",
]

"""
financex-state: store initializer.

Purpose
- Resolve the per-application data directory, open (or create) the SQLite file
  inside it, and bootstrap the key-value table.

Functional requirements
- Runs once, synchronously, before the state register is reachable.
- Schema bootstrap is idempotent: safe on every startup, never destroys rows.
- A failed directory resolution creates nothing on disk.

Non-functional requirements
- Autocommit connection: every statement is its own transaction and durable on return.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Literal

import structlog

from financex_state.constants import DB_FILE_NAME, TABLE_KV
from financex_state.persistence.errors import (
    DirectoryUnavailableError,
    SchemaError,
    StorageIOError,
)
from financex_state.persistence.paths import DirectoryProvider

JournalMode = Literal["wal", "delete"]
SynchronousMode = Literal["full", "normal"]

DEFAULT_BUSY_TIMEOUT_MS: Final[int] = 5_000
DEFAULT_JOURNAL_MODE: Final[JournalMode] = "wal"
DEFAULT_SYNCHRONOUS: Final[SynchronousMode] = "full"
JOURNAL_MODES: Final[tuple[JournalMode, ...]] = ("wal", "delete")
SYNCHRONOUS_MODES: Final[tuple[SynchronousMode, ...]] = ("full", "normal")

_BOOTSTRAP_SQL: Final[str] = f"""
CREATE TABLE IF NOT EXISTS {TABLE_KV} (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class StoreOptions:
    """Connection settings for the state database."""

    db_file_name: str = DB_FILE_NAME
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS
    journal_mode: JournalMode = DEFAULT_JOURNAL_MODE
    synchronous: SynchronousMode = DEFAULT_SYNCHRONOUS

    def __post_init__(self) -> None:
        name = self.db_file_name.strip()
        if not name or name in {".", ".."} or "/" in name or "\\" in name:
            raise ValueError(f"db_file_name must be a plain file name; got {self.db_file_name!r}")
        if self.busy_timeout_ms < 0:
            raise ValueError("busy_timeout_ms must be >= 0")
        if self.journal_mode not in JOURNAL_MODES:
            allowed = ", ".join(JOURNAL_MODES)
            raise ValueError(f"journal_mode must be one of: {allowed}; got {self.journal_mode!r}")
        if self.synchronous not in SYNCHRONOUS_MODES:
            allowed = ", ".join(SYNCHRONOUS_MODES)
            raise ValueError(f"synchronous must be one of: {allowed}; got {self.synchronous!r}")

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> StoreOptions:
        """Build options from the ``[storage]`` section of a validated config."""

        storage = config.get("storage")
        if not isinstance(storage, Mapping):
            return cls()
        defaults = cls()
        db_file_name = storage.get("db_file_name")
        busy_timeout_ms = storage.get("busy_timeout_ms")
        journal_mode = storage.get("journal_mode")
        synchronous = storage.get("synchronous")
        return cls(
            db_file_name=db_file_name if isinstance(db_file_name, str) else defaults.db_file_name,
            busy_timeout_ms=(
                busy_timeout_ms
                if isinstance(busy_timeout_ms, int) and not isinstance(busy_timeout_ms, bool)
                else defaults.busy_timeout_ms
            ),
            journal_mode=(
                journal_mode  # type: ignore[arg-type]
                if journal_mode in JOURNAL_MODES
                else defaults.journal_mode
            ),
            synchronous=(
                synchronous  # type: ignore[arg-type]
                if synchronous in SYNCHRONOUS_MODES
                else defaults.synchronous
            ),
        )


def resolve_db_path(
    directory_provider: DirectoryProvider,
    options: StoreOptions | None = None,
) -> Path:
    """Return the database file path without touching the filesystem."""

    opts = options or StoreOptions()
    return _resolve_directory(directory_provider) / opts.db_file_name


def initialize(
    directory_provider: DirectoryProvider,
    options: StoreOptions | None = None,
) -> sqlite3.Connection:
    """Open the state database and ensure the key-value table exists."""

    opts = options or StoreOptions()
    directory = _resolve_directory(directory_provider)

    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageIOError(
            f"cannot create data directory {directory}: {exc}", path=directory
        ) from exc

    db_path = directory / opts.db_file_name
    created = not db_path.exists()

    try:
        conn = sqlite3.connect(
            db_path,
            timeout=opts.busy_timeout_ms / 1000.0,
            isolation_level=None,
            check_same_thread=False,
        )
    except sqlite3.Error as exc:
        raise StorageIOError(f"cannot open {db_path}: {exc}", path=db_path) from exc

    try:
        journal_mode = _configure_connection(conn, opts, db_path)
        try:
            conn.execute(_BOOTSTRAP_SQL)
        except sqlite3.Error as exc:
            raise SchemaError(
                f"cannot create table {TABLE_KV} in {db_path}: {exc}", path=db_path
            ) from exc
    except BaseException:
        conn.close()
        raise

    logger.info(
        "state_store_initialized",
        path=str(db_path),
        created=created,
        journal_mode=journal_mode,
        busy_timeout_ms=opts.busy_timeout_ms,
    )
    return conn


def _resolve_directory(directory_provider: DirectoryProvider) -> Path:
    try:
        raw = directory_provider()
    except DirectoryUnavailableError:
        raise
    except OSError as exc:
        raise DirectoryUnavailableError(str(exc)) from exc
    if raw is None:
        raise DirectoryUnavailableError()
    text = str(raw).strip()
    if not text:
        raise DirectoryUnavailableError()
    return Path(text).expanduser()


def _configure_connection(conn: sqlite3.Connection, opts: StoreOptions, db_path: Path) -> str:
    try:
        conn.execute(f"PRAGMA busy_timeout={opts.busy_timeout_ms}")
        journal_row = conn.execute(f"PRAGMA journal_mode={opts.journal_mode.upper()}").fetchone()
        conn.execute(f"PRAGMA synchronous={opts.synchronous.upper()}")
    except sqlite3.Error as exc:
        raise StorageIOError(f"cannot open {db_path}: {exc}", path=db_path) from exc

    if journal_row is None:
        raise StorageIOError(f"failed to configure journal_mode for {db_path}", path=db_path)
    journal_mode = str(journal_row[0]).lower()
    if journal_mode != opts.journal_mode:
        raise StorageIOError(
            f"journal_mode must be {opts.journal_mode}, got {journal_mode!r} for {db_path}",
            path=db_path,
        )
    return journal_mode


__all__ = [
    "DEFAULT_BUSY_TIMEOUT_MS",
    "DEFAULT_JOURNAL_MODE",
    "DEFAULT_SYNCHRONOUS",
    "JOURNAL_MODES",
    "SYNCHRONOUS_MODES",
    "JournalMode",
    "StoreOptions",
    "SynchronousMode",
    "initialize",
    "resolve_db_path",
]

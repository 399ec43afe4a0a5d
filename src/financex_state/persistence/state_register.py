"""
financex-state: single-slot state register.

Purpose
- Expose ``load()`` / ``save(value)`` for the one application-state record.

Functional requirements
- ``load`` is a parameterized point lookup; absence is ``None``, not an error.
- ``save`` is one atomic upsert statement, never check-then-write.
- One statement per guard hold; the guard is released on every exit path.

Non-functional requirements
- No retries, no caching, no write batching: every call round-trips to the file.
- Logged fields carry the value length only, never the value itself.
"""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Final

import structlog

from financex_state.constants import APP_STATE_KEY, TABLE_KV
from financex_state.persistence.errors import LockUnavailableError, QueryError, WriteError
from financex_state.persistence.initializer import StoreOptions, initialize

if TYPE_CHECKING:
    from financex_state.persistence.paths import DirectoryProvider

_SELECT_SQL: Final[str] = f"SELECT value FROM {TABLE_KV} WHERE key = ?"
_UPSERT_SQL: Final[str] = f"""
INSERT INTO {TABLE_KV} (key, value) VALUES (?, ?)
ON CONFLICT(key) DO UPDATE SET value=excluded.value
"""

logger = structlog.get_logger(__name__)


class StateRegister:
    """Durable get/set register for one fixed key, guarded by a mutex."""

    def __init__(self, connection: sqlite3.Connection, *, key: str = APP_STATE_KEY) -> None:
        if not key:
            raise ValueError("key must not be empty")
        self._conn = connection
        self._key = key
        self._guard = threading.Lock()
        self._poisoned = False

    @classmethod
    def open(
        cls,
        directory_provider: DirectoryProvider,
        options: StoreOptions | None = None,
        *,
        key: str = APP_STATE_KEY,
    ) -> StateRegister:
        """Initialize the store and wrap the resulting connection."""

        return cls(initialize(directory_provider, options), key=key)

    @property
    def key(self) -> str:
        return self._key

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    def load(self) -> str | None:
        """Return the stored value, or ``None`` when nothing was saved yet."""

        with self._exclusive("load") as conn:
            try:
                row = conn.execute(_SELECT_SQL, (self._key,)).fetchone()
            except sqlite3.Error as exc:
                logger.warning("state_load_failed", key=self._key, error=str(exc))
                raise QueryError(str(exc)) from exc

        if row is None:
            logger.debug("state_load_empty", key=self._key)
            return None
        value = row[0]
        if not isinstance(value, str):
            raise QueryError(f"stored value for {self._key!r} is {type(value).__name__}, not text")
        logger.debug("state_loaded", key=self._key, length=len(value))
        return value

    def save(self, value: str) -> None:
        """Insert or overwrite the stored value in one atomic statement."""

        if not isinstance(value, str):
            raise TypeError(f"value must be str, got {type(value).__name__}")

        with self._exclusive("save") as conn:
            try:
                conn.execute(_UPSERT_SQL, (self._key, value))
            except sqlite3.Error as exc:
                logger.warning("state_save_failed", key=self._key, error=str(exc))
                raise WriteError(str(exc)) from exc
            except UnicodeEncodeError as exc:
                # Lone surrogates have no UTF-8 form and never reach the engine.
                logger.warning("state_save_failed", key=self._key, error=exc.reason)
                raise WriteError(f"value is not valid UTF-8 text: {exc.reason}") from exc

        logger.debug("state_saved", key=self._key, length=len(value))

    def integrity_check(self, *, max_errors: int = 100) -> tuple[str, ...]:
        """Return integrity-check errors; empty tuple means OK."""

        if max_errors <= 0:
            raise ValueError("max_errors must be > 0")
        with self._exclusive("integrity_check") as conn:
            try:
                rows = conn.execute(f"PRAGMA integrity_check({max_errors})").fetchall()
            except sqlite3.Error as exc:
                raise QueryError(str(exc)) from exc
        messages = tuple(str(row[0]) for row in rows)
        if messages == ("ok",):
            return ()
        return messages

    async def load_async(self) -> str | None:
        return await asyncio.to_thread(self.load)

    async def save_async(self, value: str) -> None:
        await asyncio.to_thread(self.save, value)

    def close(self) -> None:
        """Close the underlying connection; later calls fail with engine errors."""

        with self._guard:
            self._conn.close()

    def __enter__(self) -> StateRegister:
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        del exc_type, exc, tb
        self.close()

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[sqlite3.Connection]:
        with self._guard:
            if self._poisoned:
                raise LockUnavailableError(
                    f"{operation}: guard poisoned by an interrupted operation"
                )
            try:
                yield self._conn
            except Exception:
                raise
            except BaseException:
                # Interrupted mid-statement; the connection state is no longer trusted.
                self._poisoned = True
                logger.error("state_guard_poisoned", key=self._key, operation=operation)
                raise


__all__ = ["StateRegister"]

"""Store initializer: directory handling, pragmas, and schema bootstrap."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

import pytest
from structlog.testing import capture_logs

from financex_state.constants import DB_FILE_NAME, TABLE_KV
from financex_state.persistence.errors import (
    DirectoryUnavailableError,
    ErrorKind,
    SchemaError,
    StorageIOError,
)
from financex_state.persistence.initializer import (
    StoreOptions,
    initialize,
    resolve_db_path,
)
from financex_state.persistence.paths import fixed_directory
from financex_state.persistence.state_register import StateRegister

from . import BALANCE_100, data_dir, db_file

if TYPE_CHECKING:
    from pathlib import Path


def _table_columns(conn: sqlite3.Connection) -> list[tuple[str, str, int, int]]:
    rows = conn.execute(f"PRAGMA table_info({TABLE_KV})").fetchall()
    # (name, type, notnull, pk)
    return [(str(row[1]), str(row[2]), int(row[3]), int(row[5])) for row in rows]


def test_initialize_creates_directory_file_and_table(tmp_path: Path) -> None:
    target = data_dir(tmp_path)
    assert not target.exists()

    conn = initialize(fixed_directory(target))
    try:
        assert (target / DB_FILE_NAME).is_file()
        assert _table_columns(conn) == [
            ("key", "TEXT", 0, 1),
            ("value", "TEXT", 1, 0),
        ]
        assert conn.isolation_level is None
        assert str(conn.execute("PRAGMA journal_mode").fetchone()[0]).lower() == "wal"
        assert int(conn.execute("PRAGMA busy_timeout").fetchone()[0]) == 5_000
        # synchronous=FULL is 2
        assert int(conn.execute("PRAGMA synchronous").fetchone()[0]) == 2
    finally:
        conn.close()


def test_initialize_applies_store_options(tmp_path: Path) -> None:
    options = StoreOptions(
        db_file_name="other.db",
        busy_timeout_ms=1_234,
        journal_mode="delete",
        synchronous="normal",
    )
    conn = initialize(fixed_directory(tmp_path), options)
    try:
        assert (tmp_path / "other.db").is_file()
        assert str(conn.execute("PRAGMA journal_mode").fetchone()[0]).lower() == "delete"
        assert int(conn.execute("PRAGMA busy_timeout").fetchone()[0]) == 1_234
        assert int(conn.execute("PRAGMA synchronous").fetchone()[0]) == 1
    finally:
        conn.close()


def test_bootstrap_is_idempotent_and_keeps_rows(tmp_path: Path) -> None:
    provider = fixed_directory(data_dir(tmp_path))

    with StateRegister(initialize(provider)) as register:
        register.save(BALANCE_100)

    for _ in range(3):
        with StateRegister(initialize(provider)) as register:
            assert register.load() == BALANCE_100


def test_initialize_accepts_string_provider_result(tmp_path: Path) -> None:
    target = data_dir(tmp_path)
    conn = initialize(lambda: str(target))
    conn.close()
    assert (target / DB_FILE_NAME).is_file()


@pytest.mark.parametrize("resolved", [None, "", "   "])
def test_unresolvable_directory_creates_nothing(tmp_path: Path, resolved: str | None) -> None:
    before = sorted(tmp_path.rglob("*"))

    with pytest.raises(DirectoryUnavailableError) as excinfo:
        initialize(lambda: resolved)

    assert excinfo.value.kind is ErrorKind.DIRECTORY_UNAVAILABLE
    assert excinfo.value.fatal_at_startup
    assert sorted(tmp_path.rglob("*")) == before


def test_provider_os_error_maps_to_directory_unavailable() -> None:
    def _provider() -> None:
        raise PermissionError("no home directory")

    with pytest.raises(DirectoryUnavailableError) as excinfo:
        initialize(_provider)

    assert "no home directory" in excinfo.value.detail
    assert isinstance(excinfo.value.__cause__, PermissionError)


def test_directory_under_regular_file_is_storage_io_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(StorageIOError) as excinfo:
        initialize(fixed_directory(blocker / "nested"))

    assert excinfo.value.path == blocker / "nested"
    assert excinfo.value.fatal_at_startup


def test_database_path_that_is_a_directory_is_storage_io_error(tmp_path: Path) -> None:
    (tmp_path / DB_FILE_NAME).mkdir()

    with pytest.raises(StorageIOError):
        initialize(fixed_directory(tmp_path))


def test_garbage_database_file_is_storage_io_error(tmp_path: Path) -> None:
    (tmp_path / DB_FILE_NAME).write_bytes(b"\x07not-a-sqlite-file" * 256)

    with pytest.raises(StorageIOError) as excinfo:
        initialize(fixed_directory(tmp_path))

    assert excinfo.value.path == tmp_path / DB_FILE_NAME
    assert isinstance(excinfo.value.__cause__, sqlite3.DatabaseError)


def test_bootstrap_failure_is_schema_error(tmp_path: Path) -> None:
    conn = sqlite3.connect(tmp_path / DB_FILE_NAME)
    conn.executescript(f"CREATE TABLE other (x TEXT); CREATE INDEX {TABLE_KV} ON other (x);")
    conn.close()

    with pytest.raises(SchemaError) as excinfo:
        initialize(fixed_directory(tmp_path))

    assert excinfo.value.kind is ErrorKind.SCHEMA
    assert TABLE_KV in excinfo.value.detail
    assert isinstance(excinfo.value.__cause__, sqlite3.Error)


def test_resolve_db_path_does_not_touch_filesystem(tmp_path: Path) -> None:
    target = data_dir(tmp_path)

    assert resolve_db_path(fixed_directory(target)) == db_file(tmp_path)
    assert not target.exists()


def test_initialize_logs_path_without_state(tmp_path: Path) -> None:
    with capture_logs() as logs:
        conn = initialize(fixed_directory(tmp_path))
    conn.close()

    events = [entry for entry in logs if entry["event"] == "state_store_initialized"]
    assert len(events) == 1
    assert events[0]["path"] == str(tmp_path / DB_FILE_NAME)
    assert events[0]["created"] is True
    assert events[0]["journal_mode"] == "wal"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"db_file_name": ""},
        {"db_file_name": "../escape.db"},
        {"busy_timeout_ms": -1},
        {"journal_mode": "memory"},
        {"synchronous": "off"},
    ],
)
def test_store_options_reject_invalid_values(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        StoreOptions(**kwargs)  # type: ignore[arg-type]


def test_store_options_from_config_falls_back_to_defaults() -> None:
    options = StoreOptions.from_config(
        {
            "storage": {
                "db_file_name": "custom.db",
                "busy_timeout_ms": True,
                "journal_mode": "delete",
                "synchronous": 7,
            }
        }
    )

    assert options == StoreOptions(db_file_name="custom.db", journal_mode="delete")
    assert StoreOptions.from_config({}) == StoreOptions()

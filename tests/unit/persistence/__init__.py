"""Shared helpers for persistence tests."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Final

from financex_state.constants import APP_STATE_KEY, DB_FILE_NAME, TABLE_KV

BALANCE_100: Final[str] = '{"balance":100}'
BALANCE_250: Final[str] = '{"balance":250}'


def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data" / "com.financex.app"


def db_file(tmp_path: Path) -> Path:
    return data_dir(tmp_path) / DB_FILE_NAME


def row_count(path: Path, key: str = APP_STATE_KEY) -> int:
    """Count rows for ``key`` through an independent connection."""

    conn = sqlite3.connect(path)
    try:
        row = conn.execute(f"SELECT COUNT(*) FROM {TABLE_KV} WHERE key = ?", (key,)).fetchone()
    finally:
        conn.close()
    return int(row[0])


class InterruptingConnection:
    """Connection stand-in whose statements are interrupted mid-flight."""

    def __init__(self) -> None:
        self.closed = False
        self.calls = 0

    def execute(self, sql: str, params: object = ()) -> object:
        del sql, params
        self.calls += 1
        raise KeyboardInterrupt

    def close(self) -> None:
        self.closed = True

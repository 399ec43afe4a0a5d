"""Stable constants shared by the store, the host wiring, and the CLI."""

from __future__ import annotations

from typing import Final

# Persisted layout.
DB_FILE_NAME: Final[str] = "financex.db"
TABLE_KV: Final[str] = "kv_store"
APP_STATE_KEY: Final[str] = "app_state"

# Per-application data directory name under the platform data root.
APP_IDENTIFIER: Final[str] = "com.financex.app"

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Boundary error messages.
DEFAULT_LOCALE: Final[str] = "en"
SUPPORTED_LOCALES: Final[tuple[str, ...]] = ("en", "tr")

__all__ = [
    "APP_IDENTIFIER",
    "APP_STATE_KEY",
    "CONFIG_SCHEMA_VERSION",
    "DB_FILE_NAME",
    "DEFAULT_LOCALE",
    "SUPPORTED_LOCALES",
    "TABLE_KV",
]

"""
financex-state: persistence layer.

Purpose
- Store initializer (directory resolution, file open, schema bootstrap) and the
  guarded single-slot state register built on its connection.

Non-functional requirements
- SQLite only; no other database dependency.
"""

from financex_state.persistence.errors import (
    STARTUP_ERRORS,
    DirectoryUnavailableError,
    ErrorKind,
    LockUnavailableError,
    QueryError,
    SchemaError,
    StateStoreError,
    StorageIOError,
    WriteError,
    localized_summary,
)
from financex_state.persistence.initializer import StoreOptions, initialize, resolve_db_path
from financex_state.persistence.paths import (
    DirectoryProvider,
    directory_provider_from_config,
    fixed_directory,
    platform_data_dir,
    platform_directory,
)
from financex_state.persistence.state_register import StateRegister

__all__ = [
    "STARTUP_ERRORS",
    "DirectoryProvider",
    "DirectoryUnavailableError",
    "ErrorKind",
    "LockUnavailableError",
    "QueryError",
    "SchemaError",
    "StateRegister",
    "StateStoreError",
    "StorageIOError",
    "StoreOptions",
    "WriteError",
    "directory_provider_from_config",
    "fixed_directory",
    "initialize",
    "localized_summary",
    "platform_data_dir",
    "platform_directory",
    "resolve_db_path",
]

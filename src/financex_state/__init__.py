"""
financex-state: durable application-state register for the FinanceX desktop shell.

Purpose
- Persist one opaque serialized application-state blob across restarts using an
  embedded SQLite database as a single-slot key-value store.

Import boundary rules
- No side effects at import time (no config loading, no logging init, no DB open).
- Heavy submodules (CLI, host wiring) are imported lazily by their entrypoints.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]

"""Module entrypoint for ``python -m financex_state``."""

from __future__ import annotations

from financex_state.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())

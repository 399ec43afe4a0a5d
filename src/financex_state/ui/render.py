"""Output rendering for the financex-state CLI.

Plain-text, deterministic output on stdout. Respects ``NO_COLOR`` and
``--no-color``; color is only used for the OK/FAIL diagnostic markers.
"""

from __future__ import annotations

import os
import sys
from typing import IO


def _color_allowed(no_color_flag: bool, stream: IO[str]) -> bool:
    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


class CLIRenderer:
    """Thin CLI output renderer."""

    def __init__(
        self,
        *,
        no_color: bool = False,
        stream: IO[str] | None = None,
    ) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._color = _color_allowed(no_color, self._stream)

    def heading(self, text: str) -> None:
        self._write(text)

    def kv(self, key: str, value: object) -> None:
        """Print a key: value pair."""

        self._write(f"{key}: {value}")

    def warning(self, text: str) -> None:
        self._write(f"  Warning: {text}")

    def ok(self, label: str) -> None:
        """Print a passing diagnostic check."""

        marker = "\033[32mOK\033[0m" if self._color else "OK"
        self._write(f"  {marker}  {label}")

    def fail(self, label: str) -> None:
        """Print a failing diagnostic check."""

        marker = "\033[31mFAIL\033[0m" if self._color else "FAIL"
        self._write(f"  {marker}  {label}")

    def _write(self, line: str) -> None:
        print(line, file=self._stream)


def create_renderer(*, no_color: bool = False) -> CLIRenderer:
    return CLIRenderer(no_color=no_color)


__all__ = ["CLIRenderer", "create_renderer"]

"""Per-application data directory resolution.

The host shell owns directory resolution; this module provides the providers
the shell and the CLI hand to :func:`financex_state.persistence.initializer.initialize`.
A provider returns ``None`` (or raises ``OSError``) when no directory is available.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Mapping
from pathlib import Path

from financex_state.constants import APP_IDENTIFIER

DirectoryProvider = Callable[[], Path | str | None]


def platform_data_dir(
    identifier: str = APP_IDENTIFIER,
    *,
    environ: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> Path | None:
    """Return the platform's per-application data directory, or ``None``."""

    env = os.environ if environ is None else environ
    name = identifier.strip()
    if not name:
        return None
    base = _platform_data_root(env, sys.platform if platform is None else platform)
    if base is None:
        return None
    return base / name


def fixed_directory(path: str | Path) -> DirectoryProvider:
    """Provider that always resolves to ``path``."""

    resolved = Path(path).expanduser()

    def _provide() -> Path:
        return resolved

    return _provide


def platform_directory(
    identifier: str = APP_IDENTIFIER,
    *,
    environ: Mapping[str, str] | None = None,
) -> DirectoryProvider:
    """Provider that resolves the platform data directory at call time."""

    def _provide() -> Path | None:
        return platform_data_dir(identifier, environ=environ)

    return _provide


def directory_provider_from_config(
    config: Mapping[str, object],
    *,
    environ: Mapping[str, str] | None = None,
) -> DirectoryProvider:
    """Pick the explicit ``storage.data_dir`` override or the platform default."""

    storage = config.get("storage")
    data_dir = storage.get("data_dir") if isinstance(storage, Mapping) else None
    if isinstance(data_dir, str) and data_dir.strip():
        return fixed_directory(data_dir)

    app = config.get("app")
    identifier = app.get("identifier") if isinstance(app, Mapping) else None
    if not isinstance(identifier, str):
        identifier = APP_IDENTIFIER
    return platform_directory(identifier, environ=environ)


def _platform_data_root(environ: Mapping[str, str], platform: str) -> Path | None:
    if platform.startswith("win"):
        appdata = environ.get("APPDATA", "").strip()
        if appdata:
            return Path(appdata)
        home = _home(environ)
        return None if home is None else home / "AppData" / "Roaming"

    home = _home(environ)
    if platform == "darwin":
        return None if home is None else home / "Library" / "Application Support"

    xdg = environ.get("XDG_DATA_HOME", "").strip()
    if xdg and Path(xdg).is_absolute():
        return Path(xdg)
    return None if home is None else home / ".local" / "share"


def _home(environ: Mapping[str, str]) -> Path | None:
    for name in ("HOME", "USERPROFILE"):
        value = environ.get(name, "").strip()
        if value:
            return Path(value)
    return None


__all__ = [
    "DirectoryProvider",
    "directory_provider_from_config",
    "fixed_directory",
    "platform_data_dir",
    "platform_directory",
]

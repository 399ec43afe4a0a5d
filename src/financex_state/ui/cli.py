"""Command-line interface router for financex-state."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from financex_state.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
)
from financex_state.constants import DEFAULT_LOCALE, SUPPORTED_LOCALES
from financex_state.host import StateApp, serve_json_lines
from financex_state.main import ExitCode
from financex_state.observability import setup_logging_from_config, shutdown_logging
from financex_state.persistence import STARTUP_ERRORS, StateStoreError
from financex_state.ui.render import CLIRenderer, create_renderer

_USAGE_EXIT = int(ExitCode.CONFIG_ERROR)


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = int(ExitCode.COMMAND_FAILED)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router."""

    parser = argparse.ArgumentParser(
        prog="financex-state",
        description=(
            "financex-state: durable application-state register for FinanceX.\n\n"
            "Common workflows:\n"
            "  financex-state load            Print the saved application state\n"
            "  financex-state save -          Save application state read from stdin\n"
            "  financex-state serve           Answer JSON-lines commands on stdin/stdout\n"
            "  financex-state info            Show database location and health\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to financex TOML config (default: ./financex.toml if present).",
    )
    common.add_argument(
        "--data-dir",
        default=None,
        help="Override the application data directory.",
    )
    common.add_argument(
        "--locale",
        choices=SUPPORTED_LOCALES,
        default=None,
        help="Language for error messages.",
    )
    common.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default=None,
        help="Log level for structured logs on stderr.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    load_parser = subparsers.add_parser(
        "load",
        parents=[common],
        help="Print the saved application state.",
        description="Print the saved application state; prints nothing if none was saved.",
    )
    load_parser.add_argument("--json", action="store_true", help="Emit a JSON result object")
    load_parser.set_defaults(handler=_cmd_load)

    save_parser = subparsers.add_parser(
        "save",
        parents=[common],
        help="Save application state.",
        description="Replace the saved application state with STATE ('-' reads stdin).",
    )
    save_parser.add_argument(
        "state", nargs="?", default=None, help="State string, or '-' for stdin"
    )
    save_parser.add_argument("--file", default=None, help="Read the state from a file")
    save_parser.add_argument("--json", action="store_true", help="Emit a JSON result object")
    save_parser.set_defaults(handler=_cmd_save)

    serve_parser = subparsers.add_parser(
        "serve",
        parents=[common],
        help="Serve load_state/save_state over JSON lines.",
        description=(
            "Read one JSON request per line from stdin "
            '({"id": 1, "cmd": "save_state", "args": {"state": "..."}}) '
            "and write one JSON response per line to stdout."
        ),
    )
    serve_parser.set_defaults(handler=_cmd_serve)

    info_parser = subparsers.add_parser(
        "info",
        parents=[common],
        help="Show database location and health.",
    )
    info_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    info_parser.set_defaults(handler=_cmd_info)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Print the effective configuration as JSON.",
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_load(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    with _open_app(config) as app:
        result = app.commands.load_state()

    if _flag(args, "json"):
        _emit_json(result.to_dict())
        return int(ExitCode.SUCCESS if result.ok else ExitCode.COMMAND_FAILED)
    if not result.ok:
        raise CLIError(str(result.error))
    if result.value is None:
        if _flag(args, "verbose"):
            print("no saved state", file=sys.stderr)
        return int(ExitCode.SUCCESS)
    print(result.value)
    return int(ExitCode.SUCCESS)


def _cmd_save(args: argparse.Namespace) -> int:
    state = _read_state_argument(args)
    config = _load_effective_config(args)
    with _open_app(config) as app:
        result = app.commands.save_state(state)

    if _flag(args, "json"):
        _emit_json(result.to_dict())
        return int(ExitCode.SUCCESS if result.ok else ExitCode.COMMAND_FAILED)
    if not result.ok:
        raise CLIError(str(result.error))
    if _flag(args, "verbose"):
        _get_renderer(args).kv("saved", f"{len(state)} characters")
    return int(ExitCode.SUCCESS)


def _cmd_serve(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    with _open_app(config) as app:
        serve_json_lines(app.router, sys.stdin, sys.stdout)
    return int(ExitCode.SUCCESS)


def _cmd_info(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    storage = config["storage"]
    with _open_app(config) as app:
        try:
            value = app.register.load()
            integrity = app.register.integrity_check()
        except StateStoreError as exc:
            raise CLIError(exc.message(_locale(config))) from exc
        db_path = app.db_path

    payload: dict[str, Any] = {
        "db_path": db_path.as_posix(),
        "db_size_bytes": db_path.stat().st_size if db_path.exists() else 0,
        "journal_mode": storage["journal_mode"],
        "has_state": value is not None,
        "state_length": 0 if value is None else len(value),
        "integrity_errors": list(integrity),
    }
    if _flag(args, "json"):
        _emit_json(payload)
        return int(ExitCode.SUCCESS)

    renderer = _get_renderer(args)
    renderer.heading("financex-state")
    renderer.kv("Database", payload["db_path"])
    renderer.kv("Size", f"{payload['db_size_bytes']} bytes")
    renderer.kv("Journal mode", payload["journal_mode"])
    if value is None:
        renderer.kv("Saved state", "none")
    else:
        renderer.kv("Saved state", f"{payload['state_length']} characters")
    if integrity:
        renderer.fail("integrity check")
        for message in integrity:
            renderer.warning(message)
        return int(ExitCode.COMMAND_FAILED)
    renderer.ok("integrity check")
    return int(ExitCode.SUCCESS)


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    print(dump_effective_config(config))
    return int(ExitCode.SUCCESS)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, object] = {
        "storage.data_dir": getattr(args, "data_dir", None),
        "app.locale": getattr(args, "locale", None),
        "observability.log_level": getattr(args, "log_level", None),
    }
    try:
        config = load_config(getattr(args, "config_path", None), cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.CONFIG_ERROR)) from exc
    setup_logging_from_config(config["observability"])
    return config


def _open_app(config: Mapping[str, Any]) -> StateApp:
    try:
        return StateApp.bootstrap(config)
    except STARTUP_ERRORS as exc:
        raise CLIError(exc.message(_locale(config)), exit_code=int(ExitCode.STARTUP_ERROR)) from exc


def _read_state_argument(args: argparse.Namespace) -> str:
    state = getattr(args, "state", None)
    file_path = getattr(args, "file", None)
    if state is not None and file_path is not None:
        raise CLIError("pass either STATE or --file, not both", exit_code=_USAGE_EXIT)
    if file_path is not None:
        try:
            return Path(file_path).read_text(encoding="utf-8")
        except OSError as exc:
            raise CLIError(f"cannot read {file_path}: {exc}", exit_code=_USAGE_EXIT) from exc
    if state == "-":
        return sys.stdin.read()
    if state is None:
        raise CLIError("missing STATE ('-' reads stdin) or --file", exit_code=_USAGE_EXIT)
    return str(state)


def _locale(config: Mapping[str, Any]) -> str:
    app = config.get("app")
    if isinstance(app, Mapping) and isinstance(app.get("locale"), str):
        return str(app["locale"])
    return DEFAULT_LOCALE


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"))


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "main", "run_cli"]

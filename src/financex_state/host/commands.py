"""
financex-state: invocation boundary consumed by the host shell.

Purpose
- Expose ``load_state`` / ``save_state`` as remotely-callable commands.
- Convert structured persistence errors to localized strings here and only here.

Functional requirements
- Per-call failures are returned to the caller, never raised, swallowed, or retried.
- The JSON-lines transport answers every request line, malformed ones included.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import IO, Any, Final, Generic, TypeVar

import structlog

from financex_state.constants import DEFAULT_LOCALE
from financex_state.persistence.errors import StateStoreError
from financex_state.persistence.state_register import StateRegister

T = TypeVar("T")

LOAD_STATE: Final[str] = "load_state"
SAVE_STATE: Final[str] = "save_state"

_INVALID_ARGUMENT_MESSAGES: Final[dict[str, str]] = {
    "en": "Invalid command argument",
    "tr": "Geçersiz komut argümanı",
}

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CommandResult(Generic[T]):
    """Result of one boundary call: a value on success, a message on failure."""

    ok: bool
    value: T | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: T | None = None) -> CommandResult[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, message: str) -> CommandResult[T]:
        return cls(ok=False, error=message)

    def to_dict(self) -> dict[str, object]:
        if self.ok:
            return {"ok": True, "value": self.value}
        return {"ok": False, "error": self.error}


class StateCommands:
    """The two state commands, bound to one register and one message locale."""

    def __init__(self, register: StateRegister, *, locale: str = DEFAULT_LOCALE) -> None:
        self._register = register
        self._locale = locale

    @property
    def locale(self) -> str:
        return self._locale

    def load_state(self) -> CommandResult[str | None]:
        try:
            value = self._register.load()
        except StateStoreError as exc:
            logger.warning("command_failed", command=LOAD_STATE, kind=exc.kind.value)
            return CommandResult.failure(exc.message(self._locale))
        return CommandResult.success(value)

    def save_state(self, state: str) -> CommandResult[None]:
        if not isinstance(state, str):
            detail = f"state must be a string, got {type(state).__name__}"
            return CommandResult.failure(self.invalid_argument_message(detail))
        try:
            self._register.save(state)
        except StateStoreError as exc:
            logger.warning("command_failed", command=SAVE_STATE, kind=exc.kind.value)
            return CommandResult.failure(exc.message(self._locale))
        return CommandResult.success(None)

    def invalid_argument_message(self, detail: str) -> str:
        summary = _INVALID_ARGUMENT_MESSAGES.get(
            self._locale, _INVALID_ARGUMENT_MESSAGES[DEFAULT_LOCALE]
        )
        return f"{summary}: {detail}"


class CommandRouter:
    """Name-based dispatch over the registered state commands."""

    def __init__(self, commands: StateCommands) -> None:
        self._commands = commands
        self._handlers: dict[str, Callable[[Mapping[str, Any]], CommandResult[Any]]] = {
            LOAD_STATE: self._load_state,
            SAVE_STATE: self._save_state,
        }

    @property
    def command_names(self) -> tuple[str, ...]:
        return tuple(sorted(self._handlers))

    def invoke(self, name: str, args: Mapping[str, Any] | None = None) -> CommandResult[Any]:
        handler = self._handlers.get(name)
        if handler is None:
            return CommandResult.failure(f"unknown command: {name!r}")
        return handler(args or {})

    def _load_state(self, args: Mapping[str, Any]) -> CommandResult[Any]:
        del args
        return self._commands.load_state()

    def _save_state(self, args: Mapping[str, Any]) -> CommandResult[Any]:
        if "state" not in args:
            return CommandResult.failure(self._commands.invalid_argument_message("missing 'state'"))
        return self._commands.save_state(args["state"])


def handle_request_line(router: CommandRouter, line: str) -> dict[str, object]:
    """Decode one JSON request and return the JSON-ready response object."""

    try:
        request = json.loads(line)
    except json.JSONDecodeError as exc:
        return {"id": None, "ok": False, "error": f"malformed request: {exc.msg}"}
    if not isinstance(request, dict):
        return {"id": None, "ok": False, "error": "malformed request: expected a JSON object"}

    request_id = request.get("id")
    name = request.get("cmd")
    args = request.get("args", {})
    if not isinstance(name, str):
        return {"id": request_id, "ok": False, "error": "malformed request: 'cmd' must be a string"}
    if not isinstance(args, dict):
        message = "malformed request: 'args' must be an object"
        return {"id": request_id, "ok": False, "error": message}

    result = router.invoke(name, args)
    return {"id": request_id, **result.to_dict()}


def serve_json_lines(router: CommandRouter, input_stream: IO[str], output_stream: IO[str]) -> int:
    """Answer newline-delimited JSON requests until EOF; return the request count."""

    handled = 0
    logger.info("command_server_started", commands=list(router.command_names))
    for raw_line in input_stream:
        line = raw_line.strip()
        if not line:
            continue
        response = handle_request_line(router, line)
        output_stream.write(json.dumps(response, separators=(",", ":")) + "\n")
        output_stream.flush()
        handled += 1
    logger.info("command_server_stopped", handled=handled)
    return handled


__all__ = [
    "LOAD_STATE",
    "SAVE_STATE",
    "CommandResult",
    "CommandRouter",
    "StateCommands",
    "handle_request_line",
    "serve_json_lines",
]

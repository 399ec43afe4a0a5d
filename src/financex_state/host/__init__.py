"""Host-shell integration: command boundary, startup wiring, and the persistence bridge."""

from financex_state.host.app import StateApp
from financex_state.host.bridge import PersistenceBridge, StateSource
from financex_state.host.commands import (
    LOAD_STATE,
    SAVE_STATE,
    CommandResult,
    CommandRouter,
    StateCommands,
    handle_request_line,
    serve_json_lines,
)

__all__ = [
    "LOAD_STATE",
    "SAVE_STATE",
    "CommandResult",
    "CommandRouter",
    "PersistenceBridge",
    "StateApp",
    "StateCommands",
    "StateSource",
    "handle_request_line",
    "serve_json_lines",
]

"""Invocation boundary: command results, routing, and the JSON-lines transport."""

from __future__ import annotations

import io
import json
from typing import TYPE_CHECKING

import pytest

from financex_state.constants import TABLE_KV
from financex_state.host.commands import (
    LOAD_STATE,
    SAVE_STATE,
    CommandResult,
    CommandRouter,
    StateCommands,
    handle_request_line,
    serve_json_lines,
)
from financex_state.persistence import StateRegister, fixed_directory, initialize

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture
def register(tmp_path: Path) -> Iterator[StateRegister]:
    reg = StateRegister(initialize(fixed_directory(tmp_path)))
    yield reg
    reg.close()


@pytest.fixture
def router(register: StateRegister) -> CommandRouter:
    return CommandRouter(StateCommands(register))


def test_load_state_before_any_save_is_empty_success(register: StateRegister) -> None:
    result = StateCommands(register).load_state()

    assert result == CommandResult(ok=True, value=None, error=None)
    assert result.to_dict() == {"ok": True, "value": None}


def test_save_then_load_through_commands(register: StateRegister) -> None:
    commands = StateCommands(register)

    assert commands.save_state('{"balance":100}').ok
    assert commands.load_state().value == '{"balance":100}'


def test_engine_failure_becomes_localized_message(tmp_path: Path) -> None:
    conn = initialize(fixed_directory(tmp_path))
    conn.execute(f"DROP TABLE {TABLE_KV}")
    register = StateRegister(conn)

    english = StateCommands(register, locale="en").save_state("x")
    turkish = StateCommands(register, locale="tr").save_state("x")
    loaded = StateCommands(register, locale="tr").load_state()

    assert not english.ok
    assert english.error is not None
    assert english.error.startswith("State could not be saved: ")
    assert "no such table" in english.error
    assert turkish.error is not None
    assert turkish.error.startswith("Durum kaydedilirken hata oluştu: ")
    assert loaded.error is not None
    assert loaded.error.startswith("Kaydedilmiş durum okunamadı: ")
    assert english.to_dict() == {"ok": False, "error": english.error}
    conn.close()


def test_non_string_state_is_rejected_without_touching_storage(register: StateRegister) -> None:
    result = StateCommands(register, locale="tr").save_state(42)  # type: ignore[arg-type]

    assert not result.ok
    assert result.error == "Geçersiz komut argümanı: state must be a string, got int"
    assert register.load() is None


def test_router_dispatches_registered_commands(router: CommandRouter) -> None:
    assert router.command_names == (LOAD_STATE, SAVE_STATE)
    assert router.invoke(SAVE_STATE, {"state": "abc"}).ok
    assert router.invoke(LOAD_STATE).value == "abc"


def test_router_reports_unknown_command_and_missing_argument(router: CommandRouter) -> None:
    unknown = router.invoke("delete_state")
    missing = router.invoke(SAVE_STATE, {})

    assert unknown.error == "unknown command: 'delete_state'"
    assert missing.error == "Invalid command argument: missing 'state'"


@pytest.mark.parametrize(
    ("line", "expected_error"),
    [
        ("{not json", "malformed request: "),
        ("[1, 2]", "malformed request: expected a JSON object"),
        ('{"id": 3, "cmd": 7}', "malformed request: 'cmd' must be a string"),
        ('{"id": 4, "cmd": "save_state", "args": []}', "malformed request: 'args' must be"),
    ],
)
def test_malformed_requests_get_error_responses(
    router: CommandRouter, line: str, expected_error: str
) -> None:
    response = handle_request_line(router, line)

    assert response["ok"] is False
    assert str(response["error"]).startswith(expected_error)


def test_serve_json_lines_answers_every_request_in_order(router: CommandRouter) -> None:
    requests = [
        {"id": 1, "cmd": "load_state"},
        {"id": 2, "cmd": "save_state", "args": {"state": '{"balance":100}'}},
        {"id": 3, "cmd": "load_state", "args": {}},
        {"id": "x", "cmd": "nope"},
    ]
    input_stream = io.StringIO(
        "\n".join(json.dumps(item) for item in requests[:2]) + "\n\n   \n{broken\n"
        + "\n".join(json.dumps(item) for item in requests[2:]) + "\n"
    )
    output_stream = io.StringIO()

    handled = serve_json_lines(router, input_stream, output_stream)

    responses = [json.loads(line) for line in output_stream.getvalue().splitlines()]
    assert handled == 5
    assert responses[0] == {"id": 1, "ok": True, "value": None}
    assert responses[1] == {"id": 2, "ok": True, "value": None}
    assert responses[2]["id"] is None and responses[2]["ok"] is False
    assert responses[3] == {"id": 3, "ok": True, "value": '{"balance":100}'}
    assert responses[4] == {"id": "x", "ok": False, "error": "unknown command: 'nope'"}


def test_surrogate_state_is_a_failure_response_and_serving_continues(
    router: CommandRouter,
) -> None:
    # JSON escapes decode to lone surrogates that have no UTF-8 form.
    input_stream = io.StringIO(
        '{"id": "\\ud800", "cmd": "save_state", "args": {"state": "\\udfff"}}\n'
        '{"id": 2, "cmd": "load_state"}\n'
    )
    output_stream = io.StringIO()

    handled = serve_json_lines(router, input_stream, output_stream)

    lines = output_stream.getvalue().splitlines()
    assert handled == 2
    assert all(line.isascii() for line in lines)
    responses = [json.loads(line) for line in lines]
    assert responses[0]["id"] == "\ud800"
    assert responses[0]["ok"] is False
    assert str(responses[0]["error"]).startswith("State could not be saved: ")
    assert responses[1] == {"id": 2, "ok": True, "value": None}

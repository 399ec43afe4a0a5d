"""
financex-state: unit tests for config schema validation.

Purpose
- Validate defaults, strict unknown-key rejection, and structured issue paths.
"""

from __future__ import annotations

import pytest

from financex_state.config.schema import (
    ConfigValidationError,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)


def _issue_paths(config: object) -> set[str]:
    return {issue.path for issue in validate_config(config).issues}


def test_defaults_are_valid_and_copied() -> None:
    first = default_config()
    first["storage"]["busy_timeout_ms"] = 1

    result = validate_config(default_config())

    assert result.is_valid
    assert result.config is not None
    assert result.config["storage"]["busy_timeout_ms"] == 5_000
    assert result.config["storage"]["journal_mode"] == "wal"
    assert result.config["app"]["locale"] == "en"


def test_unknown_keys_are_rejected_with_paths() -> None:
    config = merge_config(default_config(), {"storage": {"cache": True}, "extra": {}})

    assert _issue_paths(config) == {"storage.cache", "extra"}


def test_missing_section_and_key_are_reported() -> None:
    config = default_config()
    del config["observability"]  # type: ignore[misc]
    del config["storage"]["journal_mode"]  # type: ignore[misc]

    paths = _issue_paths(config)

    assert "observability" in paths
    assert "storage.journal_mode" in paths


@pytest.mark.parametrize(
    ("overlay", "path"),
    [
        ({"storage": {"busy_timeout_ms": -5}}, "storage.busy_timeout_ms"),
        ({"storage": {"busy_timeout_ms": True}}, "storage.busy_timeout_ms"),
        ({"storage": {"journal_mode": "memory"}}, "storage.journal_mode"),
        ({"storage": {"synchronous": "off"}}, "storage.synchronous"),
        ({"storage": {"db_file_name": "nested/financex.db"}}, "storage.db_file_name"),
        ({"storage": {"db_file_name": ""}}, "storage.db_file_name"),
        ({"app": {"locale": "de"}}, "app.locale"),
        ({"app": {"identifier": "../escape"}}, "app.identifier"),
        ({"observability": {"log_level": "TRACE"}}, "observability.log_level"),
        ({"observability": {"log_format": "xml"}}, "observability.log_format"),
        ({"observability": {"log_file": 3}}, "observability.log_file"),
    ],
)
def test_invalid_values_report_their_path(overlay: dict[str, object], path: str) -> None:
    config = merge_config(default_config(), overlay)

    with pytest.raises(ConfigValidationError) as excinfo:
        assert_valid_config(config)

    assert [issue.path for issue in excinfo.value.issues] == [path]
    assert path in str(excinfo.value)


def test_empty_data_dir_and_log_file_select_defaults() -> None:
    config = assert_valid_config(
        merge_config(
            default_config(),
            {"storage": {"data_dir": "  "}, "observability": {"log_file": ""}},
        )
    )

    assert config["storage"]["data_dir"] == ""
    assert config["observability"]["log_file"] == ""


def test_log_level_is_case_insensitive() -> None:
    config = assert_valid_config(
        merge_config(default_config(), {"observability": {"log_level": "debug"}})
    )
    assert config["observability"]["log_level"] == "DEBUG"


def test_schema_version_mismatch_includes_migration_guidance() -> None:
    config = merge_config(default_config(), {"meta": {"schema_version": 2}})

    result = validate_config(config)

    assert not result.is_valid
    assert result.issues[0].path == "meta.schema_version"
    assert "newer than supported" in result.issues[0].message
    assert "older than supported" in migration_guidance(0)
    assert migration_guidance(1) == "schema version is current"


def test_root_must_be_an_object() -> None:
    result = validate_config(["not", "a", "mapping"])

    assert result.config is None
    assert result.issues[0].path == "<root>"


def test_merge_config_does_not_mutate_inputs() -> None:
    base = default_config()
    overlay = {"storage": {"busy_timeout_ms": 10}}

    merged = merge_config(base, overlay)
    merged["storage"]["journal_mode"] = "delete"

    assert base["storage"]["busy_timeout_ms"] == 5_000
    assert base["storage"]["journal_mode"] == "wal"
    assert overlay == {"storage": {"busy_timeout_ms": 10}}

"""
financex-state: configuration schema and validation.

Purpose
- Define authoritative configuration defaults and strict validation rules.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Reject unknown fields so typos never silently fall back to defaults.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypedDict

from financex_state.constants import (
    APP_IDENTIFIER,
    CONFIG_SCHEMA_VERSION,
    DB_FILE_NAME,
    DEFAULT_LOCALE,
    SUPPORTED_LOCALES,
)
from financex_state.persistence.initializer import (
    DEFAULT_BUSY_TIMEOUT_MS,
    DEFAULT_JOURNAL_MODE,
    DEFAULT_SYNCHRONOUS,
    JOURNAL_MODES,
    SYNCHRONOUS_MODES,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS: Final[tuple[str, ...]] = ("json", "text")

PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("storage", "data_dir"),
    ("observability", "log_file"),
)


class MetaConfig(TypedDict):
    schema_version: int


class AppConfig(TypedDict):
    identifier: str
    locale: str


class StorageConfig(TypedDict):
    data_dir: str
    db_file_name: str
    busy_timeout_ms: int
    journal_mode: str
    synchronous: str


class ObservabilityConfig(TypedDict):
    log_level: str
    log_format: str
    log_file: str


class StateConfig(TypedDict):
    meta: MetaConfig
    app: AppConfig
    storage: StorageConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[StateConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "app": {
        "identifier": APP_IDENTIFIER,
        "locale": DEFAULT_LOCALE,
    },
    "storage": {
        "data_dir": "",
        "db_file_name": DB_FILE_NAME,
        "busy_timeout_ms": DEFAULT_BUSY_TIMEOUT_MS,
        "journal_mode": DEFAULT_JOURNAL_MODE,
        "synchronous": DEFAULT_SYNCHRONOUS,
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "json",
        "log_file": "",
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> StateConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return migration guidance for a schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade financex.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the financex-state runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto ``base`` without mutating either."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with dotted paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    _reject_unknown_keys(root, {"meta", "app", "storage", "observability"}, "", issues)
    normalized: dict[str, Any] = {}
    for name, validator in (
        ("meta", _validate_meta),
        ("app", _validate_app),
        ("storage", _validate_storage),
        ("observability", _validate_observability),
    ):
        if name not in root:
            issues.add(name, "missing required section")
            continue
        section = _as_object(root[name], name, issues)
        if section is not None:
            normalized[name] = validator(section, name, issues)

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"schema_version"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        version = _as_int(
            payload["schema_version"], _join(path, "schema_version"), issues, minimum=1
        )
        if version is not None:
            if version != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(version))
            else:
                out["schema_version"] = version
    return out


def _validate_app(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"identifier", "locale"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "identifier" in payload:
        identifier = _as_path_text(payload["identifier"], _join(path, "identifier"), issues)
        if identifier is not None:
            if "/" in identifier or "\\" in identifier or identifier in {".", ".."}:
                issues.add(_join(path, "identifier"), "must be a single directory name")
            else:
                out["identifier"] = identifier
    if "locale" in payload:
        locale = _as_enum(
            payload["locale"],
            _join(path, "locale"),
            issues,
            allowed_values=SUPPORTED_LOCALES,
        )
        if locale is not None:
            out["locale"] = locale
    return out


def _validate_storage(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"data_dir", "db_file_name", "busy_timeout_ms", "journal_mode", "synchronous"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "data_dir" in payload:
        data_dir = _as_optional_path_text(payload["data_dir"], _join(path, "data_dir"), issues)
        if data_dir is not None:
            out["data_dir"] = data_dir
    if "db_file_name" in payload:
        name = _as_path_text(payload["db_file_name"], _join(path, "db_file_name"), issues)
        if name is not None:
            if "/" in name or "\\" in name or name in {".", ".."}:
                issues.add(_join(path, "db_file_name"), "must be a plain file name")
            else:
                out["db_file_name"] = name
    if "busy_timeout_ms" in payload:
        timeout = _as_int(
            payload["busy_timeout_ms"], _join(path, "busy_timeout_ms"), issues, minimum=0
        )
        if timeout is not None:
            out["busy_timeout_ms"] = timeout
    if "journal_mode" in payload:
        journal_mode = _as_enum(
            payload["journal_mode"],
            _join(path, "journal_mode"),
            issues,
            allowed_values=JOURNAL_MODES,
        )
        if journal_mode is not None:
            out["journal_mode"] = journal_mode
    if "synchronous" in payload:
        synchronous = _as_enum(
            payload["synchronous"],
            _join(path, "synchronous"),
            issues,
            allowed_values=SYNCHRONOUS_MODES,
        )
        if synchronous is not None:
            out["synchronous"] = synchronous
    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_format", "log_file"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        raw_level = payload["log_level"]
        level = _as_enum(
            raw_level.upper() if isinstance(raw_level, str) else raw_level,
            _join(path, "log_level"),
            issues,
            allowed_values=LOG_LEVELS,
        )
        if level is not None:
            out["log_level"] = level
    if "log_format" in payload:
        log_format = _as_enum(
            payload["log_format"],
            _join(path, "log_format"),
            issues,
            allowed_values=LOG_FORMATS,
        )
        if log_format is not None:
            out["log_format"] = log_format
    if "log_file" in payload:
        log_file = _as_optional_path_text(payload["log_file"], _join(path, "log_file"), issues)
        if log_file is not None:
            out["log_file"] = log_file
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_optional_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    # Empty string selects the built-in default.
    if isinstance(value, str) and not value.strip():
        return ""
    return _as_path_text(value, path, issues)


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _deep_copy_mapping(payload: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(payload):
        value = payload[key]
        if isinstance(value, Mapping):
            out[key] = _deep_copy_mapping(value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        existing = target.get(key)
        if isinstance(value, Mapping) and isinstance(existing, dict):
            _merge_into(existing, value)
        elif isinstance(value, Mapping):
            target[key] = _deep_copy_mapping(value)
        else:
            target[key] = copy.deepcopy(value)


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


__all__ = [
    "DEFAULT_CONFIG",
    "LOG_FORMATS",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "StateConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]

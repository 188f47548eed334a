"""
cli-sandbox runtime config loader.

File: src/cli_sandbox/config/loader.py

Purpose
- Load the effective harness config from defaults, a TOML file, env vars and
  explicit overrides.

What should be included in this file
- Precedence logic: overrides > env (CLI_SANDBOX_) > file > defaults.
- TOML loading via ``tomllib`` from ``cli-sandbox.toml`` or ``[tool.cli-sandbox]``.
- Deterministic environment variable mapping and coercion.
- Path normalization relative to the config file location.

Functional requirements
- Reject invalid config via schema validation.
- Locate the enclosing project (manifest directory) by walking up from a start path.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal

from cli_sandbox.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    SandboxConfig,
    assert_valid_config,
    default_config,
    merge_config,
)
from cli_sandbox.constants import (
    CARGO_MANIFEST_NAME,
    CONFIG_FILE_NAME,
    ENV_PREFIX,
    PYPROJECT_FILE_NAME,
    PYPROJECT_TOOL_TABLE,
)

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

ValueType = Literal["str", "int", "float", "bool", "list"]


@dataclass(frozen=True, slots=True)
class _Binding:
    path: tuple[str, ...]
    value_type: ValueType


_OPTIONAL_BINDINGS: Final[tuple[_Binding, ...]] = (
    _Binding(("features",), "list"),
    _Binding(("temp_root",), "str"),
    _Binding(("target_dir",), "str"),
    _Binding(("binary",), "str"),
    _Binding(("binary_path",), "str"),
    _Binding(("timeout_seconds",), "float"),
    _Binding(("fuzz", "seed"), "int"),
)


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def find_manifest_dir(start: str | Path | None = None) -> Path:
    """Return the nearest directory at or above ``start`` holding a project manifest.

    Falls back to the resolved ``start`` when no ``Cargo.toml`` or ``pyproject.toml``
    exists on the way up.
    """

    origin = Path.cwd() if start is None else Path(start)
    origin = origin.expanduser().resolve()
    for candidate in (origin, *origin.parents):
        if (candidate / CARGO_MANIFEST_NAME).is_file():
            return candidate
        if (candidate / PYPROJECT_FILE_NAME).is_file():
            return candidate
    return origin


def load_config(
    manifest_dir: str | Path | None = None,
    *,
    config_path: str | Path | None = None,
    overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> SandboxConfig:
    """Load effective config with deterministic precedence: overrides > env > file > defaults."""

    resolved_manifest = find_manifest_dir(manifest_dir)
    env_map = dict(os.environ if environ is None else environ)

    if config_path is not None:
        source_path = Path(config_path).expanduser().resolve()
        file_payload = _load_config_source(source_path, required=True)
    else:
        source_path = _discover_config_source(resolved_manifest)
        file_payload = (
            {} if source_path is None else _load_config_source(source_path, required=False)
        )

    merged = merge_config(default_config(), file_payload)
    merged = merge_config(merged, _collect_env_overrides(env_map))
    merged = merge_config(merged, _materialize_overrides(overrides or {}))

    base_dir = resolved_manifest if source_path is None else source_path.parent
    normalized = normalize_paths(merged, base_dir=base_dir)
    return assert_valid_config(normalized, manifest_dir=resolved_manifest)


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Normalize configured path fields relative to ``base_dir``."""

    materialized = merge_config({}, config)
    for field_name in PATH_FIELDS:
        value = materialized.get(field_name)
        if isinstance(value, str) and value.strip():
            materialized[field_name] = _normalize_one_path(value, base_dir)
    return materialized


def dump_effective_config(config: SandboxConfig) -> str:
    """Return deterministic JSON dump of the effective config."""

    return json.dumps(config.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _discover_config_source(manifest_dir: Path) -> Path | None:
    dedicated = manifest_dir / CONFIG_FILE_NAME
    if dedicated.is_file():
        return dedicated
    pyproject = manifest_dir / PYPROJECT_FILE_NAME
    if pyproject.is_file():
        return pyproject
    return None


def _load_config_source(path: Path, *, required: bool) -> dict[str, Any]:
    parsed = _load_toml_file(path, required=required)
    if path.name == PYPROJECT_FILE_NAME:
        tool = parsed.get("tool", {})
        table = tool.get(PYPROJECT_TOOL_TABLE, {}) if isinstance(tool, Mapping) else {}
        if not isinstance(table, Mapping):
            raise ConfigLoadError(f"[tool.{PYPROJECT_TOOL_TABLE}] must be a table in {path}")
        parsed = dict(table)
    return _normalize_keys(parsed)


def _load_toml_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}

    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc

    return parsed


def _normalize_keys(payload: Mapping[str, object]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in payload.items():
        name = str(key).replace("-", "_")
        if isinstance(value, Mapping):
            normalized[name] = _normalize_keys(value)
        else:
            normalized[name] = value
    return normalized


def _collect_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    bindings = _build_bindings()
    overrides: dict[str, Any] = {}
    for env_name in sorted(bindings):
        raw = environ.get(env_name)
        if raw is None:
            continue
        binding = bindings[env_name]
        value = _coerce_env(raw, binding.value_type, env_name, binding.path)
        _set_nested(overrides, binding.path, value)
    return overrides


def _build_bindings() -> dict[str, _Binding]:
    bindings: dict[str, _Binding] = {}

    for path, value in _iter_scalar_paths(DEFAULT_CONFIG):
        kind = _kind_for_value(value)
        if kind is None:
            continue
        bindings[_env_name_for_path(path)] = _Binding(path=path, value_type=kind)

    for binding in _OPTIONAL_BINDINGS:
        bindings.setdefault(_env_name_for_path(binding.path), binding)

    return bindings


def _iter_scalar_paths(
    payload: Mapping[str, object],
    prefix: tuple[str, ...] = (),
) -> list[tuple[tuple[str, ...], object]]:
    pairs: list[tuple[tuple[str, ...], object]] = []
    for key in sorted(payload):
        value = payload[key]
        path = (*prefix, key)
        if isinstance(value, Mapping):
            pairs.extend(_iter_scalar_paths(value, path))
        else:
            pairs.append((path, value))
    return pairs


def _kind_for_value(value: object) -> ValueType | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    return None


def _coerce_env(
    raw: str,
    value_type: ValueType,
    env_name: str,
    path: tuple[str, ...],
) -> object:
    value = raw.strip()
    if value_type == "str":
        return value
    if value_type == "list":
        return [part.strip() for part in value.split(",") if part.strip()]
    if value_type == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {'.'.join(path)} must be an integer") from exc
    if value_type == "float":
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {'.'.join(path)} must be a number") from exc

    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ConfigLoadError(
        f"{env_name} -> {'.'.join(path)} must be a boolean (true/false/1/0/yes/no/on/off)"
    )


def _materialize_overrides(overrides: Mapping[str, object]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key in sorted(overrides):
        value = overrides[key]
        path = tuple(part.replace("-", "_") for part in key.split(".") if part)
        if not path:
            raise ConfigLoadError(f"invalid override key {key!r}")
        if isinstance(value, (set, frozenset)):
            value = sorted(value)
        elif isinstance(value, Path):
            value = str(value)
        _set_nested(payload, path, value)
    return payload


def _set_nested(target: dict[str, Any], path: tuple[str, ...], value: object) -> None:
    cursor = target
    for part in path[:-1]:
        next_node = cursor.get(part)
        if not isinstance(next_node, dict):
            next_node = {}
            cursor[part] = next_node
        cursor = next_node
    cursor[path[-1]] = value


def _normalize_one_path(raw: str, base_dir: Path) -> str:
    expanded = os.path.expandvars(raw)
    candidate = Path(expanded).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    normalized = Path(os.path.normpath(str(candidate)))
    return normalized.as_posix()


def _env_name_for_path(path: tuple[str, ...]) -> str:
    return ENV_PREFIX + "_".join(part.upper() for part in path)


__all__ = [
    "ConfigLoadError",
    "dump_effective_config",
    "find_manifest_dir",
    "load_config",
    "normalize_paths",
]

"""
cli-sandbox config schema

File: src/cli_sandbox/config/schema.py

Purpose
- Define the built-in defaults, deep-merge rules and strict validation that turn
  a raw mapping (TOML + env + overrides) into a frozen :class:`SandboxConfig`.

Functional requirements
- Exactly one of the ``dev``/``release`` capability flags is active.
- Unknown keys and unknown feature names are rejected with structured issues.
- ``fuzz_seed`` requires ``fuzz.seed``.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

from cli_sandbox.constants import (
    DEFAULT_FEATURES,
    DEFAULT_SANDBOX_PREFIX,
    FEATURE_DEV,
    FEATURE_FUZZ,
    FEATURE_FUZZ_SEED,
    FEATURE_RELEASE,
    KNOWN_FEATURES,
    PROFILE_DEV,
    PROFILE_RELEASE,
)

METADATA_SOURCES: Final[tuple[str, ...]] = ("auto", "cargo", "pyproject")
PATH_FIELDS: Final[tuple[str, ...]] = ("temp_root", "target_dir", "binary_path")

DEFAULT_CONFIG: Final[dict[str, Any]] = {
    "default_features": True,
    "features": [],
    "keep": False,
    "keep_on_failure": False,
    "temp_root": None,
    "prefix": DEFAULT_SANDBOX_PREFIX,
    "target_dir": None,
    "binary": None,
    "binary_path": None,
    "metadata": "auto",
    "timeout_seconds": None,
    "log_level": "WARNING",
    "fuzz": {"seed": None},
}

_OPTIONAL_STR_FIELDS: Final[tuple[str, ...]] = ("temp_root", "target_dir", "binary", "binary_path")
_BOOL_FIELDS: Final[tuple[str, ...]] = ("default_features", "keep", "keep_on_failure")
_LOG_LEVELS: Final[frozenset[str]] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True, slots=True)
class SandboxConfig:
    """Validated, immutable harness configuration."""

    features: frozenset[str] = frozenset(DEFAULT_FEATURES)
    keep: bool = False
    keep_on_failure: bool = False
    temp_root: Path | None = None
    prefix: str = DEFAULT_SANDBOX_PREFIX
    target_dir: Path | None = None
    binary: str | None = None
    binary_path: Path | None = None
    metadata: str = "auto"
    timeout_seconds: float | None = None
    log_level: str = "WARNING"
    fuzz_seed: int | None = None
    manifest_dir: Path | None = field(default=None, compare=False)

    @property
    def profile(self) -> str:
        return PROFILE_RELEASE if FEATURE_RELEASE in self.features else PROFILE_DEV

    def has_feature(self, name: str) -> bool:
        return name in self.features

    def to_dict(self) -> dict[str, Any]:
        return {
            "features": sorted(self.features),
            "profile": self.profile,
            "keep": self.keep,
            "keep_on_failure": self.keep_on_failure,
            "temp_root": _path_or_none(self.temp_root),
            "prefix": self.prefix,
            "target_dir": _path_or_none(self.target_dir),
            "binary": self.binary,
            "binary_path": _path_or_none(self.binary_path),
            "metadata": self.metadata,
            "timeout_seconds": self.timeout_seconds,
            "log_level": self.log_level,
            "fuzz_seed": self.fuzz_seed,
            "manifest_dir": _path_or_none(self.manifest_dir),
        }


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with the typed config when no issues were found."""

    config: SandboxConfig | None
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
        super().__init__(f"invalid cli-sandbox config:\n{rendered}")


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


def default_config() -> dict[str, Any]:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = copy.deepcopy(dict(base))
    _merge_into(merged, overlay)
    return merged


def resolve_features(default_features: bool, features: Sequence[str]) -> frozenset[str]:
    """Combine the default capability set with explicitly requested features."""

    selected = set(DEFAULT_FEATURES) if default_features else set()
    selected.update(item.strip() for item in features if item.strip())
    return frozenset(selected)


def validate_config(
    config: Mapping[str, object] | object,
    *,
    manifest_dir: Path | None = None,
) -> ConfigValidationResult:
    """Validate a raw mapping and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    if not isinstance(config, Mapping):
        issues.add("<root>", "config must be a table")
        return ConfigValidationResult(config=None, issues=issues.items())

    for key in sorted(str(item) for item in config):
        if key not in DEFAULT_CONFIG:
            issues.add(key, "unknown key")

    for key in _BOOL_FIELDS:
        if not isinstance(config.get(key, DEFAULT_CONFIG[key]), bool):
            issues.add(key, "must be a boolean")

    for key in _OPTIONAL_STR_FIELDS:
        value = config.get(key)
        if value is not None and (not isinstance(value, str) or not value.strip()):
            issues.add(key, "must be a non-empty string")

    prefix = config.get("prefix", DEFAULT_SANDBOX_PREFIX)
    if not isinstance(prefix, str) or "/" in prefix or "\\" in prefix:
        issues.add("prefix", "must be a string without path separators")

    metadata = config.get("metadata", "auto")
    if metadata not in METADATA_SOURCES:
        issues.add("metadata", f"must be one of: {', '.join(METADATA_SOURCES)}")

    timeout = config.get("timeout_seconds")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            issues.add("timeout_seconds", "must be a number")
        elif timeout <= 0:
            issues.add("timeout_seconds", "must be > 0")

    log_level = config.get("log_level", "WARNING")
    if not isinstance(log_level, str) or log_level.strip().upper() not in _LOG_LEVELS:
        issues.add("log_level", f"must be one of: {', '.join(sorted(_LOG_LEVELS))}")

    raw_features = config.get("features", [])
    if isinstance(raw_features, str):
        raw_features = raw_features.split(",")
    if not isinstance(raw_features, (list, tuple)) or not all(
        isinstance(item, str) for item in raw_features
    ):
        issues.add("features", "must be a list of strings")
        raw_features = []

    default_features = config.get("default_features", True)
    features = resolve_features(default_features is not False, raw_features)
    for name in sorted(features - KNOWN_FEATURES):
        issues.add("features", f"unknown feature {name!r}")

    if FEATURE_DEV in features and FEATURE_RELEASE in features:
        issues.add(
            "features",
            "'dev' and 'release' cannot be enabled at the same time; "
            "set default_features = false when selecting 'release'",
        )
    elif FEATURE_DEV not in features and FEATURE_RELEASE not in features:
        issues.add("features", "one of 'dev' or 'release' must be enabled ('dev' is recommended)")

    fuzz_table = config.get("fuzz", {})
    seed: object = None
    if not isinstance(fuzz_table, Mapping):
        issues.add("fuzz", "must be a table")
    else:
        for key in sorted(str(item) for item in fuzz_table):
            if key != "seed":
                issues.add(f"fuzz.{key}", "unknown key")
        seed = fuzz_table.get("seed")
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            issues.add("fuzz.seed", "must be an integer")
            seed = None

    if FEATURE_FUZZ_SEED in features:
        if seed is None:
            issues.add("fuzz.seed", "required when the 'fuzz_seed' feature is enabled")
        features = features | {FEATURE_FUZZ}

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())

    typed = SandboxConfig(
        features=features,
        keep=bool(config.get("keep", False)),
        keep_on_failure=bool(config.get("keep_on_failure", False)),
        temp_root=_optional_path(config.get("temp_root")),
        prefix=str(prefix),
        target_dir=_optional_path(config.get("target_dir")),
        binary=_optional_str(config.get("binary")),
        binary_path=_optional_path(config.get("binary_path")),
        metadata=str(metadata),
        timeout_seconds=None if timeout is None else float(timeout),  # type: ignore[arg-type]
        log_level=str(log_level).strip().upper(),
        fuzz_seed=seed if isinstance(seed, int) else None,
        manifest_dir=manifest_dir,
    )
    return ConfigValidationResult(config=typed, issues=())


def assert_valid_config(
    config: Mapping[str, object] | object,
    *,
    manifest_dir: Path | None = None,
) -> SandboxConfig:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config, manifest_dir=manifest_dir)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay, key=str):
        value = overlay[key]
        current = target.get(key)
        if isinstance(value, Mapping) and isinstance(current, dict):
            _merge_into(current, value)
        elif isinstance(value, Mapping):
            target[key] = copy.deepcopy(dict(value))
        else:
            target[key] = copy.deepcopy(value)


def _optional_path(value: object) -> Path | None:
    if isinstance(value, str) and value.strip():
        return Path(value)
    return None


def _optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _path_or_none(value: Path | None) -> str | None:
    return None if value is None else value.as_posix()


__all__ = [
    "DEFAULT_CONFIG",
    "METADATA_SOURCES",
    "PATH_FIELDS",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "SandboxConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "resolve_features",
    "validate_config",
]

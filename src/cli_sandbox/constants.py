"""Stable constants shared across the sandbox, locator and assertion layers."""

from __future__ import annotations

from typing import Final

# Capability flags.
FEATURE_DEV: Final[str] = "dev"
FEATURE_RELEASE: Final[str] = "release"
FEATURE_REGEX: Final[str] = "regex"
FEATURE_PRETTY: Final[str] = "pretty"
FEATURE_FUZZ: Final[str] = "fuzz"
FEATURE_FUZZ_SEED: Final[str] = "fuzz_seed"

KNOWN_FEATURES: Final[frozenset[str]] = frozenset(
    {
        FEATURE_DEV,
        FEATURE_RELEASE,
        FEATURE_REGEX,
        FEATURE_PRETTY,
        FEATURE_FUZZ,
        FEATURE_FUZZ_SEED,
    }
)
DEFAULT_FEATURES: Final[tuple[str, ...]] = (
    FEATURE_DEV,
    FEATURE_REGEX,
    FEATURE_FUZZ,
    FEATURE_PRETTY,
)

# Build profiles and their artifact directories (Cargo target layout).
PROFILE_DEV: Final[str] = FEATURE_DEV
PROFILE_RELEASE: Final[str] = FEATURE_RELEASE
PROFILE_DIRS: Final[dict[str, str]] = {
    PROFILE_DEV: "debug",
    PROFILE_RELEASE: "release",
}

# Configuration sources.
CONFIG_FILE_NAME: Final[str] = "cli-sandbox.toml"
PYPROJECT_FILE_NAME: Final[str] = "pyproject.toml"
CARGO_MANIFEST_NAME: Final[str] = "Cargo.toml"
PYPROJECT_TOOL_TABLE: Final[str] = "cli-sandbox"
ENV_PREFIX: Final[str] = "CLI_SANDBOX_"
CARGO_TARGET_DIR_ENV: Final[str] = "CARGO_TARGET_DIR"

# Sandbox directories.
DEFAULT_SANDBOX_PREFIX: Final[str] = "cli-sandbox-"
DEFAULT_TARGET_DIR: Final[str] = "target"

__all__ = [
    "CARGO_MANIFEST_NAME",
    "CARGO_TARGET_DIR_ENV",
    "CONFIG_FILE_NAME",
    "DEFAULT_FEATURES",
    "DEFAULT_SANDBOX_PREFIX",
    "DEFAULT_TARGET_DIR",
    "ENV_PREFIX",
    "FEATURE_DEV",
    "FEATURE_FUZZ",
    "FEATURE_FUZZ_SEED",
    "FEATURE_PRETTY",
    "FEATURE_REGEX",
    "FEATURE_RELEASE",
    "KNOWN_FEATURES",
    "PROFILE_DEV",
    "PROFILE_DIRS",
    "PROFILE_RELEASE",
    "PYPROJECT_FILE_NAME",
    "PYPROJECT_TOOL_TABLE",
]

"""Resolve the subject binary once per test run and share it read-only."""

from __future__ import annotations

import os
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from cli_sandbox.config.loader import find_manifest_dir, load_config
from cli_sandbox.config.schema import SandboxConfig
from cli_sandbox.constants import CARGO_TARGET_DIR_ENV, PROFILE_DIRS
from cli_sandbox.errors import BinaryNotFoundError
from cli_sandbox.observability.logging import get_logger
from cli_sandbox.subject.metadata import BuildMetadata, MetadataSource, metadata_source_for

_LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class BinaryReference:
    path: Path
    profile: str
    package_name: str


class BinaryLocator:
    """Compute-once lookup of the subject artifact.

    Build metadata is read at most once per locator, even when many test
    threads resolve concurrently. Successful resolutions are cached per
    profile; a missing artifact is reported every time and never cached.
    """

    def __init__(
        self,
        metadata_source: MetadataSource | None = None,
        *,
        config: SandboxConfig | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config or SandboxConfig()
        self._source = metadata_source or metadata_source_for(self._config.metadata)
        self._environ = dict(os.environ if environ is None else environ)
        self._lock = threading.Lock()
        self._metadata: BuildMetadata | None = None
        self._resolved: dict[str, BinaryReference] = {}

    @property
    def config(self) -> SandboxConfig:
        return self._config

    def metadata(self) -> BuildMetadata:
        cached = self._metadata
        if cached is not None:
            return cached
        with self._lock:
            if self._metadata is None:
                manifest_dir = self._config.manifest_dir or find_manifest_dir()
                self._metadata = self._source.load(manifest_dir)
                _LOGGER.debug(
                    "subject_metadata_loaded",
                    package_name=self._metadata.package_name,
                    target_directory=str(self._metadata.target_directory),
                )
            return self._metadata

    def expected_path(self, profile: str | None = None) -> Path:
        """Where the artifact for ``profile`` should be, without checking it exists."""

        selected = self._select_profile(profile)
        if self._config.binary_path is not None:
            return self._config.binary_path

        metadata = self.metadata()
        binary_name = self._config.binary or metadata.binary
        if os.name == "nt" and not Path(binary_name).suffix:
            binary_name = f"{binary_name}.exe"
        return self._target_directory(metadata) / PROFILE_DIRS[selected] / binary_name

    def resolve(self, profile: str | None = None) -> BinaryReference:
        selected = self._select_profile(profile)
        cached = self._resolved.get(selected)
        if cached is not None:
            return cached

        path = self.expected_path(selected)
        if not path.is_file():
            raise BinaryNotFoundError(path, selected)

        if self._config.binary_path is not None:
            package_name = self._config.binary or path.stem
        else:
            package_name = self.metadata().package_name
        reference = BinaryReference(path=path, profile=selected, package_name=package_name)
        with self._lock:
            reference = self._resolved.setdefault(selected, reference)
        _LOGGER.debug("subject_binary_resolved", path=str(reference.path), profile=selected)
        return reference

    def _select_profile(self, profile: str | None) -> str:
        selected = self._config.profile if profile is None else profile
        if selected not in PROFILE_DIRS:
            allowed = ", ".join(sorted(PROFILE_DIRS))
            raise ValueError(f"unsupported profile {selected!r}; expected one of: {allowed}")
        return selected

    def _target_directory(self, metadata: BuildMetadata) -> Path:
        if self._config.target_dir is not None:
            return self._config.target_dir
        from_env = self._environ.get(CARGO_TARGET_DIR_ENV, "").strip()
        if from_env:
            return Path(from_env)
        return metadata.target_directory


_DEFAULT_LOCATOR_LOCK = threading.Lock()
_DEFAULT_LOCATOR: BinaryLocator | None = None
_LOCATORS_BY_CONFIG: dict[tuple[SandboxConfig, Path | None], BinaryLocator] = {}


def default_locator() -> BinaryLocator:
    """Return the process-wide locator, built from the discovered config on first use."""

    global _DEFAULT_LOCATOR
    locator = _DEFAULT_LOCATOR
    if locator is not None:
        return locator
    with _DEFAULT_LOCATOR_LOCK:
        if _DEFAULT_LOCATOR is None:
            _DEFAULT_LOCATOR = BinaryLocator(config=load_config())
        return _DEFAULT_LOCATOR


def locator_for(config: SandboxConfig) -> BinaryLocator:
    """Return the process-wide locator for ``config``, creating it on first use.

    Projects built from equal configurations share one locator, so build
    metadata is read once per configuration rather than once per project.
    """

    # manifest_dir is excluded from config equality but decides which metadata is read.
    key = (config, config.manifest_dir)
    locator = _LOCATORS_BY_CONFIG.get(key)
    if locator is not None:
        return locator
    with _DEFAULT_LOCATOR_LOCK:
        locator = _LOCATORS_BY_CONFIG.get(key)
        if locator is None:
            locator = BinaryLocator(config=config)
            _LOCATORS_BY_CONFIG[key] = locator
        return locator


def reset_default_locator() -> None:
    """Forget every process-wide locator, including those built by :func:`locator_for`."""

    global _DEFAULT_LOCATOR
    with _DEFAULT_LOCATOR_LOCK:
        _DEFAULT_LOCATOR = None
        _LOCATORS_BY_CONFIG.clear()


__all__ = [
    "BinaryLocator",
    "BinaryReference",
    "default_locator",
    "locator_for",
    "reset_default_locator",
]

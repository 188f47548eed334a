"""
cli-sandbox build metadata sources

File: src/cli_sandbox/subject/metadata.py

Purpose
- Read the enclosing package's build metadata (package name, target directory,
  binary name) so the locator can compute where the subject artifact lives.

Functional requirements
- ``cargo metadata`` output is the source of truth for Cargo projects.
- ``pyproject.toml`` (``[project].name``) is used for Python projects.
- Failures surface as :class:`~cli_sandbox.errors.MetadataError`; no retries.
"""

from __future__ import annotations

import json
import subprocess
import tomllib
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from cli_sandbox.constants import (
    CARGO_MANIFEST_NAME,
    DEFAULT_TARGET_DIR,
    PYPROJECT_FILE_NAME,
    PYPROJECT_TOOL_TABLE,
)
from cli_sandbox.errors import MetadataError

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


@dataclass(frozen=True, slots=True)
class BuildMetadata:
    """What the locator needs to know about the package under test."""

    package_name: str
    target_directory: Path
    manifest_dir: Path
    binary_name: str | None = None

    @property
    def binary(self) -> str:
        return self.binary_name or self.package_name


class MetadataSource(Protocol):
    def load(self, manifest_dir: Path) -> BuildMetadata: ...


class StaticMetadataSource:
    """Return fixed metadata regardless of the manifest directory."""

    def __init__(self, metadata: BuildMetadata) -> None:
        self._metadata = metadata

    def load(self, manifest_dir: Path) -> BuildMetadata:
        return self._metadata


class CargoMetadataSource:
    """Query ``cargo metadata`` for the package rooted at the manifest directory."""

    def __init__(self, *, cargo: str = "cargo", runner: Runner | None = None) -> None:
        self._cargo = cargo
        self._runner: Runner = runner or subprocess.run

    def load(self, manifest_dir: Path) -> BuildMetadata:
        command = [self._cargo, "metadata", "--format-version", "1", "--no-deps"]
        try:
            completed = self._runner(
                command,
                cwd=manifest_dir,
                check=False,
                capture_output=True,
                text=True,
            )
        except OSError as exc:
            raise MetadataError(f"unable to run {' '.join(command)!r}: {exc}") from exc

        if completed.returncode != 0:
            detail = (completed.stderr or "").strip() or f"exit code {completed.returncode}"
            raise MetadataError(f"cargo metadata failed in {manifest_dir}: {detail}")

        try:
            payload = json.loads(completed.stdout)
        except json.JSONDecodeError as exc:
            raise MetadataError(f"cargo metadata returned invalid JSON: {exc}") from exc

        return parse_cargo_metadata(payload, manifest_dir)


class PyprojectMetadataSource:
    """Read ``[project].name`` and ``[tool.cli-sandbox]`` from ``pyproject.toml``."""

    def load(self, manifest_dir: Path) -> BuildMetadata:
        path = manifest_dir / PYPROJECT_FILE_NAME
        try:
            with path.open("rb") as handle:
                parsed = tomllib.load(handle)
        except FileNotFoundError as exc:
            raise MetadataError(f"no {PYPROJECT_FILE_NAME} in {manifest_dir}") from exc
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise MetadataError(f"unable to read {path}: {exc}") from exc

        project = parsed.get("project")
        name = project.get("name") if isinstance(project, Mapping) else None
        if not isinstance(name, str) or not name.strip():
            raise MetadataError(f"{path} has no [project].name")

        tool = parsed.get("tool")
        table = tool.get(PYPROJECT_TOOL_TABLE) if isinstance(tool, Mapping) else None
        if not isinstance(table, Mapping):
            table = {}
        binary = table.get("binary")
        target_dir = table.get("target-dir", table.get("target_dir"))
        target_directory = (
            manifest_dir / target_dir
            if isinstance(target_dir, str) and target_dir.strip()
            else manifest_dir / DEFAULT_TARGET_DIR
        )

        return BuildMetadata(
            package_name=name.strip(),
            target_directory=target_directory,
            manifest_dir=manifest_dir,
            binary_name=binary if isinstance(binary, str) and binary.strip() else None,
        )


class AutoMetadataSource:
    """Pick Cargo when a ``Cargo.toml`` is present, otherwise ``pyproject.toml``."""

    def __init__(
        self,
        *,
        cargo: CargoMetadataSource | None = None,
        pyproject: PyprojectMetadataSource | None = None,
    ) -> None:
        self._cargo = cargo or CargoMetadataSource()
        self._pyproject = pyproject or PyprojectMetadataSource()

    def load(self, manifest_dir: Path) -> BuildMetadata:
        if (manifest_dir / CARGO_MANIFEST_NAME).is_file():
            return self._cargo.load(manifest_dir)
        if (manifest_dir / PYPROJECT_FILE_NAME).is_file():
            return self._pyproject.load(manifest_dir)
        raise MetadataError(
            f"no {CARGO_MANIFEST_NAME} or {PYPROJECT_FILE_NAME} found in {manifest_dir}"
        )


def metadata_source_for(name: str) -> MetadataSource:
    if name == "cargo":
        return CargoMetadataSource()
    if name == "pyproject":
        return PyprojectMetadataSource()
    if name == "auto":
        return AutoMetadataSource()
    raise ValueError(f"unsupported metadata source {name!r}")


def parse_cargo_metadata(payload: Mapping[str, Any], manifest_dir: Path) -> BuildMetadata:
    """Extract :class:`BuildMetadata` from ``cargo metadata --format-version 1`` output."""

    target_directory = payload.get("target_directory")
    if not isinstance(target_directory, str) or not target_directory:
        raise MetadataError("cargo metadata has no target_directory")

    packages = payload.get("packages")
    if not isinstance(packages, Sequence) or not packages:
        raise MetadataError("cargo metadata lists no packages")

    package = _select_package(packages, manifest_dir)
    name = package.get("name")
    if not isinstance(name, str) or not name:
        raise MetadataError("cargo metadata package has no name")

    return BuildMetadata(
        package_name=name,
        target_directory=Path(target_directory),
        manifest_dir=manifest_dir,
        binary_name=_select_binary(package, name),
    )


def _select_package(packages: Sequence[Any], manifest_dir: Path) -> Mapping[str, Any]:
    candidates = [item for item in packages if isinstance(item, Mapping)]
    expected_manifest = (manifest_dir / CARGO_MANIFEST_NAME).resolve()
    for package in candidates:
        manifest_path = package.get("manifest_path")
        if isinstance(manifest_path, str) and Path(manifest_path).resolve() == expected_manifest:
            return package
    if len(candidates) == 1:
        return candidates[0]
    raise MetadataError(f"no cargo package is rooted at {manifest_dir}")


def _select_binary(package: Mapping[str, Any], package_name: str) -> str | None:
    targets = package.get("targets")
    if not isinstance(targets, Sequence):
        return None
    binaries = [
        target.get("name")
        for target in targets
        if isinstance(target, Mapping) and "bin" in (target.get("kind") or ())
    ]
    names = [item for item in binaries if isinstance(item, str) and item]
    if package_name in names:
        return package_name
    return names[0] if names else None


__all__ = [
    "AutoMetadataSource",
    "BuildMetadata",
    "CargoMetadataSource",
    "MetadataSource",
    "PyprojectMetadataSource",
    "StaticMetadataSource",
    "metadata_source_for",
    "parse_cargo_metadata",
]

"""
cli-sandbox — shared test fixtures

File: tests/conftest.py

Purpose
- Isolate tests from ``CLI_SANDBOX_*`` / ``CARGO_TARGET_DIR`` in the developer's environment.
- Provide a fake compiled subject (a small transpiler written as a Python script)
  installed at the Cargo-style ``target/debug/<name>`` location.
"""

from __future__ import annotations

import os
import stat
import sys
from typing import TYPE_CHECKING

import pytest

from cli_sandbox.config.loader import load_config
from cli_sandbox.subject.locator import reset_default_locator

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from cli_sandbox.config.schema import SandboxConfig

pytest_plugins = ["pytester"]

SUBJECT_NAME = "pytocli"

SUBJECT_SOURCE = '''\
import os
import pathlib
import sys
import time

args = sys.argv[1:]
command = args[0] if args else ""

if command == "build":
    for source in sorted(pathlib.Path.cwd().glob("*.py")):
        body = source.read_text(encoding="utf-8").strip()
        value = body[len("print("):-1]
        source.with_suffix(".rs").write_text(
            'fn main(){println!("' + value + '");}', encoding="utf-8"
        )
    print("File transpiled correctly!")
elif command == "echo":
    print(" ".join(args[1:]))
elif command == "env":
    print(os.environ.get(args[1], "<unset>"))
elif command == "pwd":
    print(os.getcwd())
elif command == "cat":
    sys.stdout.write(sys.stdin.read())
elif command == "warn":
    print("warning: unused variable `x`", file=sys.stderr)
elif command == "crlf":
    sys.stdout.buffer.write(b"one\\r\\ntwo\\r\\n")
elif command == "sleep":
    time.sleep(float(args[1]))
else:
    print("unknown command", file=sys.stderr)
    sys.exit(2)
'''


def install_subject(
    target_dir: Path,
    *,
    profile_dir: str = "debug",
    name: str = SUBJECT_NAME,
) -> Path:
    """Write the fake subject as an executable script under ``target_dir/profile_dir``."""

    binary = target_dir / profile_dir / name
    binary.parent.mkdir(parents=True, exist_ok=True)
    binary.write_text(f"#!{sys.executable}\n{SUBJECT_SOURCE}", encoding="utf-8")
    binary.chmod(binary.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return binary


def write_manifest(manifest_dir: Path, *, name: str = SUBJECT_NAME, tool_table: str = "") -> Path:
    manifest_dir.mkdir(parents=True, exist_ok=True)
    text = f'[project]\nname = "{name}"\nversion = "0.1.0"\n'
    if tool_table:
        text += f"\n[tool.cli-sandbox]\n{tool_table}\n"
    path = manifest_dir / "pyproject.toml"
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _isolate_sandbox_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in list(os.environ):
        if key.startswith("CLI_SANDBOX_") or key == "CARGO_TARGET_DIR":
            monkeypatch.delenv(key, raising=False)
    reset_default_locator()
    yield
    reset_default_locator()


@pytest.fixture
def subject_manifest(tmp_path: Path) -> Path:
    manifest_dir = tmp_path / "subject"
    write_manifest(manifest_dir)
    return manifest_dir


@pytest.fixture
def subject_binary(subject_manifest: Path) -> Path:
    return install_subject(subject_manifest / "target")


@pytest.fixture
def subject_config(subject_manifest: Path, subject_binary: Path, tmp_path: Path) -> SandboxConfig:
    return load_config(
        subject_manifest,
        environ={},
        overrides={"temp_root": tmp_path / "sandboxes"},
    )


@pytest.fixture
def subject_installer() -> Callable[..., Path]:
    return install_subject


@pytest.fixture
def manifest_writer() -> Callable[..., Path]:
    return write_manifest

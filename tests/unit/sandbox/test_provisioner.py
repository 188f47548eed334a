"""
cli-sandbox — unit tests for temporary directory provisioning

File: tests/unit/sandbox/test_provisioner.py

Purpose
- Validate unique allocation, idempotent destruction, keep semantics, garbage
  collection finalizers and retained-sandbox collection.
"""

from __future__ import annotations

import gc
import os
import time
from pathlib import Path

import pytest

from cli_sandbox.errors import SandboxIOError
from cli_sandbox.sandbox.provisioner import TempDirectory, create, gc_retained


@pytest.mark.unit
def test_create_allocates_unique_directories_under_root(tmp_path: Path) -> None:
    first = create(prefix="unit-", root=tmp_path)
    second = create(prefix="unit-", root=tmp_path)

    assert first.path != second.path
    assert first.path.is_dir() and second.path.is_dir()
    assert first.path.parent == tmp_path.resolve()
    assert first.path.name.startswith("unit-")
    assert first.path.is_absolute()

    first.destroy()
    second.destroy()


@pytest.mark.unit
def test_create_makes_missing_root(tmp_path: Path) -> None:
    root = tmp_path / "deep" / "root"

    handle = create(root=root)

    assert handle.path.parent == root.resolve()
    handle.destroy()


@pytest.mark.unit
def test_create_wraps_filesystem_refusal(tmp_path: Path) -> None:
    blocker = tmp_path / "file-not-dir"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(SandboxIOError) as excinfo:
        create(root=blocker)

    assert isinstance(excinfo.value.cause, OSError)


@pytest.mark.unit
def test_destroy_is_recursive_and_idempotent(tmp_path: Path) -> None:
    handle = create(root=tmp_path)
    (handle.path / "nested" / "dir").mkdir(parents=True)
    (handle.path / "nested" / "dir" / "file.txt").write_text("x", encoding="utf-8")

    handle.destroy()
    handle.destroy()

    assert not handle.path.exists()
    assert not handle.exists


@pytest.mark.unit
def test_destroy_after_external_removal_is_not_an_error(tmp_path: Path) -> None:
    handle = create(root=tmp_path)
    handle.path.rmdir()

    handle.destroy()

    assert not handle.exists


@pytest.mark.unit
def test_keep_disarms_deletion(tmp_path: Path) -> None:
    handle = create(root=tmp_path)

    kept_path = handle.keep()
    handle.destroy()

    assert handle.kept
    assert kept_path.is_dir()


@pytest.mark.unit
def test_context_manager_removes_directory_on_exit(tmp_path: Path) -> None:
    with create(root=tmp_path) as handle:
        path = handle.path
        assert path.is_dir()

    assert not path.exists()


@pytest.mark.unit
def test_context_manager_removes_directory_when_body_raises(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError, match="boom"), create(root=tmp_path) as handle:
        path = handle.path
        raise RuntimeError("boom")

    assert not path.exists()


@pytest.mark.unit
def test_garbage_collection_removes_unkept_directory(tmp_path: Path) -> None:
    handle: TempDirectory | None = create(root=tmp_path)
    assert handle is not None
    path = handle.path

    handle = None
    gc.collect()

    assert not path.exists()


def _age(path: Path, hours: float) -> None:
    stamp = time.time() - hours * 3600.0
    for entry in (*path.rglob("*"), path):
        os.utime(entry, (stamp, stamp))


@pytest.mark.unit
def test_gc_retained_removes_only_old_prefixed_directories(tmp_path: Path) -> None:
    old_sandbox = tmp_path / "cli-sandbox-old"
    fresh_sandbox = tmp_path / "cli-sandbox-fresh"
    unrelated = tmp_path / "other-old"
    for path in (old_sandbox, fresh_sandbox, unrelated):
        path.mkdir()
    (old_sandbox / "generated.rs").write_text("fn main(){}", encoding="utf-8")
    _age(old_sandbox, 48)
    _age(unrelated, 48)

    preview = gc_retained(tmp_path, max_age_hours=24, dry_run=True)
    assert preview == [old_sandbox]
    assert old_sandbox.exists()

    removed = gc_retained(tmp_path, max_age_hours=24)
    assert removed == [old_sandbox]
    assert not old_sandbox.exists()
    assert fresh_sandbox.exists()
    assert unrelated.exists()


@pytest.mark.unit
def test_gc_retained_keeps_directories_with_recent_contents(tmp_path: Path) -> None:
    sandbox = tmp_path / "cli-sandbox-busy"
    (sandbox / "src").mkdir(parents=True)
    (sandbox / "src" / "a.py").write_text("print(1)", encoding="utf-8")
    _age(sandbox, 48)
    (sandbox / "src" / "a.rs").write_text('fn main(){println!("1");}', encoding="utf-8")
    stamp = time.time() - 48 * 3600.0
    os.utime(sandbox, (stamp, stamp))
    os.utime(sandbox / "src", (stamp, stamp))

    assert sandbox.stat().st_mtime <= time.time() - 24 * 3600.0
    assert gc_retained(tmp_path, max_age_hours=24) == []
    assert sandbox.exists()


@pytest.mark.unit
def test_gc_retained_handles_missing_root_and_rejects_bad_arguments(tmp_path: Path) -> None:
    assert gc_retained(tmp_path / "missing") == []

    with pytest.raises(ValueError):
        gc_retained(tmp_path, max_age_hours=-1)
    with pytest.raises(ValueError):
        gc_retained(tmp_path, prefix="")

"""
cli-sandbox — retained sandbox garbage collection.

Purpose
- Remove sandbox directories that were kept (``keep`` / ``keep_on_failure``) and
  have outlived a configurable age.
- Only direct children of the sandbox root that carry the sandbox prefix are
  ever considered.
"""

from __future__ import annotations

import argparse
import json
import sys
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"


def _ensure_src_path() -> None:
    if str(SRC_PATH) not in sys.path:
        sys.path.insert(0, str(SRC_PATH))


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Garbage-collect retained sandbox directories older than a threshold.",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Sandbox root (default: configured temp_root, else the system temp directory).",
    )
    parser.add_argument(
        "--prefix",
        default=None,
        help="Directory name prefix of sandbox directories (default: configured prefix).",
    )
    parser.add_argument(
        "--max-age-hours",
        type=float,
        default=24.0,
        help="Delete sandboxes older than this many hours.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report stale sandboxes without deleting them.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit machine-readable JSON output.",
    )
    return parser.parse_args(argv)


def _emit_json(payload: Mapping[str, object]) -> None:
    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _emit_text(payload: Mapping[str, object]) -> None:
    print(f"root: {payload['root']}")
    print(f"prefix: {payload['prefix']}")
    print(f"max_age_hours: {payload['max_age_hours']}")
    print(f"dry_run: {payload['dry_run']}")
    print(f"removed_count: {payload['removed_count']}")

    removed_paths_obj = payload.get("removed_paths")
    removed_paths = removed_paths_obj if isinstance(removed_paths_obj, list) else []
    if removed_paths:
        print("removed_paths:")
        for item in removed_paths:
            print(f"  - {item}")


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    _ensure_src_path()
    from cli_sandbox.config.loader import load_config
    from cli_sandbox.errors import SandboxError
    from cli_sandbox.sandbox.provisioner import gc_retained

    root = args.root
    prefix = args.prefix
    try:
        if root is None or prefix is None:
            config = load_config()
            root = root if root is not None else config.temp_root
            prefix = prefix if prefix is not None else config.prefix
        resolved_root = (root or Path(tempfile.gettempdir())).expanduser().resolve()

        removed = gc_retained(
            resolved_root,
            prefix=prefix,
            max_age_hours=args.max_age_hours,
            dry_run=args.dry_run,
        )
    except (SandboxError, ValueError) as exc:
        error_payload = {
            "root": None if root is None else Path(root).as_posix(),
            "dry_run": bool(args.dry_run),
            "error": str(exc),
        }
        if args.json:
            _emit_json(error_payload)
        else:
            print(f"error: {exc}", file=sys.stderr)
        return 1

    payload: dict[str, object] = {
        "root": resolved_root.as_posix(),
        "prefix": prefix,
        "max_age_hours": float(args.max_age_hours),
        "dry_run": bool(args.dry_run),
        "removed_count": len(removed),
        "removed_paths": [path.as_posix() for path in removed],
    }
    if args.json:
        _emit_json(payload)
    else:
        _emit_text(payload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

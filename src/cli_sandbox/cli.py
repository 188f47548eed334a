"""Argument parsing and command handlers for ``python -m cli_sandbox``."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console

from cli_sandbox.config.loader import dump_effective_config, load_config
from cli_sandbox.constants import PROFILE_DIRS
from cli_sandbox.observability.logging import LoggingConfig, setup_logging, shutdown_logging
from cli_sandbox.subject.locator import locator_for

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cli_sandbox.config.schema import SandboxConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cli-sandbox",
        description="Inspect the cli-sandbox configuration and the subject binary it resolves.",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--manifest-dir",
        type=Path,
        default=None,
        help="Project directory (default: nearest Cargo.toml/pyproject.toml above cwd).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Explicit cli-sandbox TOML config file.",
    )
    common.add_argument(
        "--features",
        default=None,
        help="Comma-separated capability flags, e.g. 'release,regex'.",
    )
    common.add_argument(
        "--no-default-features",
        action="store_true",
        default=False,
        help="Do not enable the default capability set.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Log debug events to stderr (default: the configured log_level).",
    )
    common.add_argument("--json", action="store_true", help="Emit JSON output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show the effective configuration",
        description=(
            "Display the configuration after merging defaults, file, environment and flags.\n\n"
            "Examples:\n"
            "  cli-sandbox config\n"
            "  cli-sandbox config --features release --no-default-features --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.set_defaults(handler=_cmd_config)

    locate_parser = subparsers.add_parser(
        "locate",
        parents=[common],
        help="Resolve the subject binary",
        description="Print the path of the built subject binary, or fail if it is missing.",
    )
    locate_parser.add_argument(
        "--profile",
        choices=sorted(PROFILE_DIRS),
        default=None,
        help="Build profile (default: from the active capability flags).",
    )
    locate_parser.set_defaults(handler=_cmd_locate)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return the exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    config = _load_effective_config(namespace)
    level = "DEBUG" if namespace.verbose else config.log_level
    handle = setup_logging(LoggingConfig(level=level, log_to_stderr=True))
    try:
        return int(handler(namespace, config))
    finally:
        shutdown_logging(handle)


def _cmd_config(args: argparse.Namespace, config: SandboxConfig) -> int:
    rendered = dump_effective_config(config)
    if args.json:
        print(json.dumps(json.loads(rendered), sort_keys=True, separators=(",", ":")))
        return 0
    Console(soft_wrap=True).print_json(rendered)
    return 0


def _cmd_locate(args: argparse.Namespace, config: SandboxConfig) -> int:
    reference = locator_for(config).resolve(args.profile)
    if args.json:
        payload = {
            "package_name": reference.package_name,
            "path": reference.path.as_posix(),
            "profile": reference.profile,
        }
        print(json.dumps(payload, sort_keys=True, separators=(",", ":")))
        return 0
    print(reference.path)
    return 0


def _load_effective_config(args: argparse.Namespace) -> SandboxConfig:
    overrides: dict[str, object] = {}
    if args.features is not None:
        overrides["features"] = [item.strip() for item in args.features.split(",") if item.strip()]
    if args.no_default_features:
        overrides["default_features"] = False
    return load_config(args.manifest_dir, config_path=args.config_path, overrides=overrides)


__all__ = ["build_parser", "run_cli"]

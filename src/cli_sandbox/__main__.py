"""Module entrypoint for ``python -m cli_sandbox``."""

from __future__ import annotations

from cli_sandbox.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())

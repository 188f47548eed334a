"""Mismatch renderers for assertion failures.

Both renderers lead with the exact expected/actual values, then a unified diff.
``RichDiffRenderer`` (the ``pretty`` capability) colours the diff with rich.
"""

from __future__ import annotations

import difflib
import io
from typing import Final, Protocol

from rich.console import Console
from rich.text import Text

_MAX_REPR_CHARS: Final[int] = 2000


class DiffRenderer(Protocol):
    def render(self, label: str, expected: str, actual: str) -> str: ...


class PlainDiffRenderer:
    """Render mismatches as plain text."""

    def render(self, label: str, expected: str, actual: str) -> str:
        lines = [
            f"expected {label}: {_clip(repr(expected))}",
            f"  actual {label}: {_clip(repr(actual))}",
        ]
        lines.extend(unified_diff_lines(label, expected, actual))
        return "\n".join(lines)


class RichDiffRenderer:
    """Render mismatches with coloured diff lines."""

    def __init__(self, *, width: int = 120, no_color: bool = False) -> None:
        self._width = width
        self._no_color = no_color

    def render(self, label: str, expected: str, actual: str) -> str:
        text = Text()
        text.append(f"expected {label}: ", style="bold")
        text.append(_clip(repr(expected)), style=self._style("green"))
        text.append("\n")
        text.append(f"  actual {label}: ", style="bold")
        text.append(_clip(repr(actual)), style=self._style("red"))
        for line in unified_diff_lines(label, expected, actual):
            text.append("\n")
            text.append(line, style=self._style(_line_style(line)))

        buffer = io.StringIO()
        console = Console(
            file=buffer,
            width=self._width,
            force_terminal=not self._no_color,
            no_color=self._no_color,
            color_system=None if self._no_color else "standard",
            highlight=False,
            soft_wrap=True,
        )
        console.print(text)
        return buffer.getvalue().rstrip("\n")

    def _style(self, style: str) -> str:
        return "" if self._no_color else style


def unified_diff_lines(label: str, expected: str, actual: str) -> list[str]:
    """Return unified diff lines from expected to actual (empty when identical)."""

    return list(
        difflib.unified_diff(
            expected.splitlines(keepends=False),
            actual.splitlines(keepends=False),
            fromfile=f"expected/{label}",
            tofile=f"actual/{label}",
            lineterm="",
        )
    )


def _line_style(line: str) -> str:
    if line.startswith(("+++", "---")):
        return "bold"
    if line.startswith("@@"):
        return "cyan"
    if line.startswith("+"):
        return "red"
    if line.startswith("-"):
        return "green"
    return ""


def _clip(value: str) -> str:
    if len(value) <= _MAX_REPR_CHARS:
        return value
    return value[:_MAX_REPR_CHARS] + f"... ({len(value) - _MAX_REPR_CHARS} more chars)"


__all__ = ["DiffRenderer", "PlainDiffRenderer", "RichDiffRenderer", "unified_diff_lines"]

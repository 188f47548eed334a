"""Command results, output matchers and mismatch renderers."""

from cli_sandbox.assertions.diff import (
    DiffRenderer,
    PlainDiffRenderer,
    RichDiffRenderer,
    unified_diff_lines,
)
from cli_sandbox.assertions.matchers import Matcher, RegexMatcher, SubstringMatcher
from cli_sandbox.assertions.result import CommandResult, normalize_newlines

__all__ = [
    "CommandResult",
    "DiffRenderer",
    "Matcher",
    "PlainDiffRenderer",
    "RegexMatcher",
    "RichDiffRenderer",
    "SubstringMatcher",
    "normalize_newlines",
    "unified_diff_lines",
]

"""Pattern matchers used by output assertions.

``RegexMatcher`` backs the ``regex`` capability; without it the harness falls
back to plain substring search.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Protocol

from cli_sandbox.errors import InvalidPatternError


class Matcher(Protocol):
    name: str

    def search(self, pattern: str, text: str) -> bool: ...


class RegexMatcher:
    """Match when ``pattern`` (a regular expression) is found anywhere in the text."""

    name = "regex"

    def search(self, pattern: str, text: str) -> bool:
        return _compile(pattern).search(text) is not None


class SubstringMatcher:
    """Match when ``pattern`` occurs literally in the text."""

    name = "substring"

    def search(self, pattern: str, text: str) -> bool:
        return pattern in text


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern, re.MULTILINE)
    except re.error as exc:
        raise InvalidPatternError(f"pattern {pattern!r} isn't valid: {exc}") from exc


__all__ = ["Matcher", "RegexMatcher", "SubstringMatcher"]

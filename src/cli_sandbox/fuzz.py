"""Pseudo-random input generation for fuzz-style tests.

Available only when the ``fuzz`` capability is enabled. With ``fuzz_seed`` the
configured ``fuzz.seed`` fixes the sequence so failures can be replayed.
"""

from __future__ import annotations

import random
import string
from collections.abc import Sequence
from typing import Final, TypeVar

from cli_sandbox.config.schema import SandboxConfig
from cli_sandbox.constants import FEATURE_FUZZ, FEATURE_FUZZ_SEED
from cli_sandbox.errors import CapabilityDisabledError
from cli_sandbox.observability.logging import get_logger

_LOGGER = get_logger(__name__)

DEFAULT_ALPHABET: Final[str] = string.ascii_letters + string.digits + string.punctuation + " "
_WORD_ALPHABET: Final[str] = string.ascii_lowercase

T = TypeVar("T")


class FuzzSource:
    """Seeded generator of text, bytes and numbers.

    When no seed is given one is drawn from the system RNG and exposed via
    :attr:`seed`, so a failing run can still be reproduced.
    """

    def __init__(self, seed: int | None = None) -> None:
        self._seed = seed if seed is not None else random.SystemRandom().randrange(2**32)
        self._random = random.Random(self._seed)

    @property
    def seed(self) -> int:
        return self._seed

    def text(self, length: int, alphabet: str = DEFAULT_ALPHABET) -> str:
        if length < 0:
            raise ValueError("length must be >= 0")
        if not alphabet:
            raise ValueError("alphabet must not be empty")
        return "".join(self._random.choice(alphabet) for _ in range(length))

    def bytes(self, length: int) -> bytes:
        if length < 0:
            raise ValueError("length must be >= 0")
        return self._random.randbytes(length)

    def integer(self, low: int, high: int) -> int:
        """Uniform integer in ``[low, high]``."""

        if low > high:
            raise ValueError("low must be <= high")
        return self._random.randint(low, high)

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("cannot choose from an empty sequence")
        return self._random.choice(items)

    def words(self, count: int, *, min_length: int = 1, max_length: int = 8) -> list[str]:
        if count < 0:
            raise ValueError("count must be >= 0")
        if min_length < 1 or min_length > max_length:
            raise ValueError("word lengths must satisfy 1 <= min_length <= max_length")
        return [
            self.text(self._random.randint(min_length, max_length), _WORD_ALPHABET)
            for _ in range(count)
        ]

    def __repr__(self) -> str:
        return f"FuzzSource(seed={self._seed})"


def fuzz_source(config: SandboxConfig | None = None) -> FuzzSource:
    resolved = config or SandboxConfig()
    if not resolved.has_feature(FEATURE_FUZZ):
        raise CapabilityDisabledError(FEATURE_FUZZ)
    seed = resolved.fuzz_seed if resolved.has_feature(FEATURE_FUZZ_SEED) else None
    source = FuzzSource(seed)
    _LOGGER.debug("fuzz_source_created", seed=source.seed, fixed=seed is not None)
    return source


__all__ = ["DEFAULT_ALPHABET", "FuzzSource", "fuzz_source"]

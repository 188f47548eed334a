"""
cli-sandbox — unit tests for fuzz input generation

File: tests/unit/test_fuzz.py

Purpose
- Validate that ``FuzzSource`` is reproducible from its seed, that generated
  values respect their bounds, and that ``fuzz_source`` honours the ``fuzz`` and
  ``fuzz_seed`` capability flags.

What this test file should cover
- Same seed, same sequence, for every generator method.
- Unseeded sources expose the drawn seed so a run can be replayed.
- ``ValueError`` on invalid lengths, alphabets, ranges and empty choices.
- ``CapabilityDisabledError`` when ``fuzz`` is off.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from pathlib import Path

import pytest

from cli_sandbox.config.loader import load_config
from cli_sandbox.config.schema import SandboxConfig
from cli_sandbox.errors import CapabilityDisabledError
from cli_sandbox.fuzz import DEFAULT_ALPHABET, FuzzSource, fuzz_source

try:
    from hypothesis import given, settings
    from hypothesis import strategies as st
except ModuleNotFoundError:
    _HYPOTHESIS_AVAILABLE = False
else:
    _HYPOTHESIS_AVAILABLE = True

_SUBCOMMANDS = ("build", "check", "run", "fmt")


def _draw_all(source: FuzzSource) -> tuple[object, ...]:
    return (
        source.text(16),
        source.bytes(12),
        source.integer(-1000, 1000),
        source.choice(_SUBCOMMANDS),
        source.words(4),
    )


@pytest.mark.unit
def test_same_seed_replays_the_same_sequence() -> None:
    first = FuzzSource(1234)
    second = FuzzSource(1234)

    assert _draw_all(first) == _draw_all(second)
    assert first.seed == second.seed == 1234
    assert repr(first) == "FuzzSource(seed=1234)"


@pytest.mark.unit
def test_different_seeds_diverge() -> None:
    assert FuzzSource(1).bytes(32) != FuzzSource(2).bytes(32)


@pytest.mark.unit
def test_unseeded_source_exposes_drawn_seed() -> None:
    source = FuzzSource()
    drawn = _draw_all(source)

    assert 0 <= source.seed < 2**32
    assert _draw_all(FuzzSource(source.seed)) == drawn


@pytest.mark.unit
def test_generated_values_respect_bounds() -> None:
    source = FuzzSource(7)

    text = source.text(64)
    assert len(text) == 64
    assert set(text) <= set(DEFAULT_ALPHABET)
    assert set(source.text(32, "ab")) <= {"a", "b"}
    assert source.text(0) == ""
    assert len(source.bytes(5)) == 5
    assert source.bytes(0) == b""
    assert all(-3 <= source.integer(-3, 3) <= 3 for _ in range(50))
    assert source.integer(9, 9) == 9
    assert source.choice(_SUBCOMMANDS) in _SUBCOMMANDS
    assert source.choice(["only"]) == "only"

    words = source.words(10, min_length=2, max_length=4)
    assert len(words) == 10
    assert all(2 <= len(word) <= 4 and word.isalpha() and word.islower() for word in words)
    assert source.words(0) == []


@pytest.mark.unit
@pytest.mark.parametrize(
    ("call", "message"),
    [
        (lambda source: source.text(-1), "length"),
        (lambda source: source.text(3, ""), "alphabet"),
        (lambda source: source.bytes(-1), "length"),
        (lambda source: source.integer(5, 1), "low must be <= high"),
        (lambda source: source.choice([]), "empty sequence"),
        (lambda source: source.words(-1), "count"),
        (lambda source: source.words(2, min_length=0), "min_length"),
        (lambda source: source.words(2, min_length=5, max_length=3), "min_length"),
    ],
)
def test_invalid_arguments_raise_value_error(
    call: Callable[[FuzzSource], object], message: str
) -> None:
    with pytest.raises(ValueError, match=message):
        call(FuzzSource(0))


@pytest.mark.unit
def test_fuzz_source_requires_fuzz_capability() -> None:
    config = SandboxConfig(features=frozenset({"dev", "regex"}))

    with pytest.raises(CapabilityDisabledError) as excinfo:
        fuzz_source(config)

    assert excinfo.value.feature == "fuzz"
    assert "'fuzz'" in str(excinfo.value)


@pytest.mark.unit
def test_fuzz_source_uses_configured_seed_only_with_fuzz_seed(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    seeded = SandboxConfig(features=frozenset({"dev", "fuzz", "fuzz_seed"}), fuzz_seed=99)
    unseeded = SandboxConfig(features=frozenset({"dev", "fuzz"}), fuzz_seed=99)

    first = fuzz_source(seeded)
    second = fuzz_source(seeded)

    assert first.seed == second.seed == 99
    assert _draw_all(first) == _draw_all(second) == _draw_all(FuzzSource(99))

    monkeypatch.setattr(random.SystemRandom, "randrange", lambda self, stop: 5)
    assert fuzz_source(unseeded).seed == 5


@pytest.mark.unit
def test_fuzz_source_follows_seed_from_loaded_config(tmp_path: Path) -> None:
    config = load_config(
        tmp_path,
        environ={"CLI_SANDBOX_FUZZ_SEED": "2024"},
        overrides={"features": ["fuzz_seed"]},
    )

    source = fuzz_source(config)

    assert source.seed == 2024
    assert source.bytes(8) == FuzzSource(2024).bytes(8)


@pytest.mark.unit
def test_fuzz_source_defaults_to_default_config() -> None:
    source = fuzz_source()

    assert isinstance(source, FuzzSource)
    assert isinstance(source.integer(0, 10), int)


if _HYPOTHESIS_AVAILABLE:

    @pytest.mark.unit
    @settings(max_examples=60, deadline=None)
    @given(
        seed=st.integers(min_value=0, max_value=2**32 - 1),
        low=st.integers(min_value=-10_000, max_value=10_000),
        span=st.integers(min_value=0, max_value=10_000),
    )
    def test_property_seeded_integers_stay_in_range(seed: int, low: int, span: int) -> None:
        value = FuzzSource(seed).integer(low, low + span)

        assert low <= value <= low + span
        assert FuzzSource(seed).integer(low, low + span) == value

else:

    def test_property_seeded_integers_stay_in_range() -> None:
        pytest.skip("hypothesis is not installed")

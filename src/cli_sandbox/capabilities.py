"""Capability flags resolved into pluggable matcher and diff strategies."""

from __future__ import annotations

from dataclasses import dataclass, field

from cli_sandbox.assertions.diff import DiffRenderer, PlainDiffRenderer, RichDiffRenderer
from cli_sandbox.assertions.matchers import Matcher, RegexMatcher, SubstringMatcher
from cli_sandbox.config.schema import SandboxConfig
from cli_sandbox.constants import FEATURE_FUZZ, FEATURE_PRETTY, FEATURE_REGEX


@dataclass(frozen=True, slots=True)
class Capabilities:
    features: frozenset[str]
    matcher: Matcher = field(default_factory=SubstringMatcher)
    diff_renderer: DiffRenderer = field(default_factory=PlainDiffRenderer)

    @property
    def regex(self) -> bool:
        return FEATURE_REGEX in self.features

    @property
    def pretty(self) -> bool:
        return FEATURE_PRETTY in self.features

    @property
    def fuzz(self) -> bool:
        return FEATURE_FUZZ in self.features


def capabilities_from_config(config: SandboxConfig) -> Capabilities:
    matcher: Matcher = RegexMatcher() if config.has_feature(FEATURE_REGEX) else SubstringMatcher()
    renderer: DiffRenderer = (
        RichDiffRenderer() if config.has_feature(FEATURE_PRETTY) else PlainDiffRenderer()
    )
    return Capabilities(features=config.features, matcher=matcher, diff_renderer=renderer)


def default_capabilities() -> Capabilities:
    return capabilities_from_config(SandboxConfig())


__all__ = ["Capabilities", "capabilities_from_config", "default_capabilities"]

"""
cli-sandbox pytest plugin

File: src/cli_sandbox/pytest_plugin.py

Purpose
- Provide a ``sandbox`` fixture that hands each test a fresh :class:`Project`.
- Retain the project directory when the test fails and ``keep_on_failure`` is set,
  so the generated files can be inspected afterwards.
- Set the ``cli_sandbox`` loggers to the configured ``log_level``; records
  propagate, so pytest's log capture shows them with the test report.

Registered through the ``pytest11`` entry point; no conftest wiring is needed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cli_sandbox.config.loader import load_config
from cli_sandbox.fuzz import FuzzSource, fuzz_source
from cli_sandbox.observability.logging import log_level_scope
from cli_sandbox.sandbox.project import Project
from cli_sandbox.subject.locator import BinaryLocator, locator_for

if TYPE_CHECKING:
    from collections.abc import Iterator

    from cli_sandbox.config.schema import SandboxConfig

_REPORTS_KEY = pytest.StashKey[dict[str, pytest.TestReport]]()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("cli-sandbox")
    group.addoption(
        "--sandbox-keep",
        action="store_true",
        default=False,
        help="Keep every sandbox project directory after its test.",
    )
    group.addoption(
        "--sandbox-keep-on-failure",
        action="store_true",
        default=False,
        help="Keep sandbox project directories of failing tests.",
    )


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo[None]) -> Iterator[None]:
    outcome = yield
    report: pytest.TestReport = outcome.get_result()
    item.stash.setdefault(_REPORTS_KEY, {})[report.when] = report


@pytest.fixture(scope="session")
def sandbox_config(pytestconfig: pytest.Config) -> SandboxConfig:
    """Effective configuration for the test session; override to customize."""

    overrides: dict[str, object] = {}
    if pytestconfig.getoption("sandbox_keep"):
        overrides["keep"] = True
    if pytestconfig.getoption("sandbox_keep_on_failure"):
        overrides["keep_on_failure"] = True
    return load_config(pytestconfig.rootpath, overrides=overrides)


@pytest.fixture(scope="session")
def sandbox_locator(sandbox_config: SandboxConfig) -> BinaryLocator:
    return locator_for(sandbox_config)


@pytest.fixture(scope="session")
def sandbox_logging(sandbox_config: SandboxConfig) -> Iterator[None]:
    with log_level_scope(sandbox_config.log_level):
        yield


@pytest.fixture
def sandbox(
    request: pytest.FixtureRequest,
    sandbox_config: SandboxConfig,
    sandbox_locator: BinaryLocator,
    sandbox_logging: None,
) -> Iterator[Project]:
    project = Project(sandbox_config, locator=sandbox_locator)
    try:
        yield project
    finally:
        reports = request.node.stash.get(_REPORTS_KEY, {})
        failed = any(report.failed for report in reports.values())
        project.close(failed=failed)


@pytest.fixture
def sandbox_fuzz(sandbox_config: SandboxConfig) -> FuzzSource:
    return fuzz_source(sandbox_config)


__all__ = [
    "pytest_addoption",
    "pytest_runtest_makereport",
    "sandbox",
    "sandbox_config",
    "sandbox_fuzz",
    "sandbox_locator",
    "sandbox_logging",
]

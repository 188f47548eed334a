"""
cli-sandbox: sandboxed projects for testing command-line programs.

Each test gets a fresh temporary :class:`Project`, stages input files into it,
runs the compiled subject binary from inside it and asserts on the captured
:class:`CommandResult` and on the files the program produced.
"""

from cli_sandbox.assertions import CommandResult
from cli_sandbox.capabilities import Capabilities, capabilities_from_config
from cli_sandbox.config import SandboxConfig, load_config
from cli_sandbox.errors import (
    AssertionMismatch,
    BinaryNotFoundError,
    CapabilityDisabledError,
    InvalidPatternError,
    MetadataError,
    PathEscapeError,
    SandboxError,
    SandboxIOError,
    SandboxNotFoundError,
    SpawnError,
)
from cli_sandbox.fuzz import FuzzSource, fuzz_source
from cli_sandbox.sandbox import Command, Project, project, run_command
from cli_sandbox.subject import BinaryLocator, BinaryReference, default_locator

__version__ = "0.10.0"

__all__ = [
    "AssertionMismatch",
    "BinaryLocator",
    "BinaryNotFoundError",
    "BinaryReference",
    "Capabilities",
    "CapabilityDisabledError",
    "Command",
    "CommandResult",
    "FuzzSource",
    "InvalidPatternError",
    "MetadataError",
    "PathEscapeError",
    "Project",
    "SandboxConfig",
    "SandboxError",
    "SandboxIOError",
    "SandboxNotFoundError",
    "SpawnError",
    "__version__",
    "capabilities_from_config",
    "default_locator",
    "fuzz_source",
    "load_config",
    "project",
    "run_command",
]

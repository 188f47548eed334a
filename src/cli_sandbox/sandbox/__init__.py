"""Sandbox directories, projects and subject invocation."""

from cli_sandbox.sandbox.invoker import Command, build_environment, normalize_args, run_command
from cli_sandbox.sandbox.project import Project, project
from cli_sandbox.sandbox.provisioner import TempDirectory, create, gc_retained

__all__ = [
    "Command",
    "Project",
    "TempDirectory",
    "build_environment",
    "create",
    "gc_retained",
    "normalize_args",
    "project",
    "run_command",
]

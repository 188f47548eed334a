"""Locating the command-line program under test."""

from cli_sandbox.subject.locator import (
    BinaryLocator,
    BinaryReference,
    default_locator,
    locator_for,
    reset_default_locator,
)
from cli_sandbox.subject.metadata import (
    AutoMetadataSource,
    BuildMetadata,
    CargoMetadataSource,
    MetadataSource,
    PyprojectMetadataSource,
    StaticMetadataSource,
    metadata_source_for,
    parse_cargo_metadata,
)

__all__ = [
    "AutoMetadataSource",
    "BinaryLocator",
    "BinaryReference",
    "BuildMetadata",
    "CargoMetadataSource",
    "MetadataSource",
    "PyprojectMetadataSource",
    "StaticMetadataSource",
    "default_locator",
    "locator_for",
    "metadata_source_for",
    "parse_cargo_metadata",
    "reset_default_locator",
]

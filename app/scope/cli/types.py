"""Shared types and utilities for CLI commands.

This module provides common enums and helper functions used across
multiple CLI command modules to avoid code duplication.
"""

from enum import Enum

import typer

from scope.core.config import ConfigError, ScopeConfig, load_config
from scope.core.query import KindFilter, SortKey
from scope.models.package import PackageSource
from scope.utils.formatting import print_error


class SourceChoice(str, Enum):
    """Available package sources for CLI commands."""

    APT = "apt"
    SNAP = "snap"
    FLATPAK = "flatpak"
    APPIMAGE = "appimage"
    ALL = "all"


class KindChoice(str, Enum):
    """Application kind filter for CLI commands."""

    ALL = "all"
    GUI = "gui"
    CLI = "cli"


class SortChoice(str, Enum):
    """Sort key for CLI commands."""

    SIZE = "size"
    NAME = "name"
    SOURCE = "source"


class OutputFormat(str, Enum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


def get_sources(
    source: SourceChoice, enabled: list[PackageSource] | None = None
) -> list[PackageSource]:
    """Resolve a source choice to package sources.

    Args:
        source: The source choice (apt, snap, flatpak, appimage, or all).
        enabled: Sources enabled in the configuration. ALL expands to these;
            defaults to every source.

    Returns:
        List of package sources, in source order.
    """
    if source == SourceChoice.ALL:
        return list(enabled) if enabled is not None else list(PackageSource)
    return [PackageSource(source.value)]


def to_kind_filter(kind: KindChoice) -> KindFilter:
    return KindFilter(kind.value)


def to_sort_key(sort: SortChoice) -> SortKey:
    return SortKey(sort.value)


def load_config_or_exit() -> ScopeConfig:
    """Load the configuration, exiting with status 1 if it is invalid."""
    try:
        return load_config()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

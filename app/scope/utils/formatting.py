"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from scope.core.theme import get_theme
from scope.models.package import AppKind, UpdateStatus

if TYPE_CHECKING:
    from scope.models.package import Package, PackageSource


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def create_package_table(title: str = "Installed Packages", *, numbered: bool = False) -> Table:
    """Create a pre-configured table for displaying packages.

    Args:
        title: Table title.
        numbered: Add a leading row-number column (interactive mode).

    Returns:
        Rich Table configured for package display.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],  # Zebra striping for readability
    )
    if numbered:
        table.add_column("#", style="muted", justify="right")
    # State column: icon only, no header text
    table.add_column("", width=2, justify="center")
    table.add_column("Package", no_wrap=True)
    table.add_column("Source", no_wrap=True)
    table.add_column("Type", justify="center")
    table.add_column("Version", style="muted", overflow="ellipsis", max_width=24)
    table.add_column("Size", style="package.size", justify="right")
    table.add_column("Update", overflow="ellipsis", max_width=20)
    return table


def format_source(source: PackageSource) -> str:
    """Format a package source label with its color."""
    return f"[source.{source.value}]{source.label}[/]"


def format_kind(kind: AppKind) -> str:
    if kind == AppKind.GUI:
        return "[kind.gui]GUI[/]"
    if kind == AppKind.CLI:
        return "[kind.cli]CLI[/]"
    return "[kind.unknown]-[/]"


def format_update_state(pkg: Package) -> str:
    """Format the update state of a package with color markup."""
    state = pkg.update_state
    if state.status == UpdateStatus.UPDATE_AVAILABLE:
        return f"[update.available]↑ {escape(state.version or '')}[/]"
    if state.status == UpdateStatus.UP_TO_DATE:
        return "[success]up to date[/]"
    if state.status == UpdateStatus.CHECKING:
        return "[action.pending]checking…[/]"
    return "[muted]-[/]"


def format_package_row(pkg: Package) -> tuple[str, str, str, str, str, str, str]:
    """Format a package as a table row with proper styling.

    The leading icon shows the action state: a hollow circle while a
    mutation is pending, a cross after a failed one, a dot otherwise.

    Args:
        pkg: The package to format.

    Returns:
        Tuple of (icon, name, source, kind, version, size, update) with Rich markup.
    """
    if pkg.action_state.is_pending:
        icon = "[action.pending]○[/]"  # Empty circle
    elif pkg.action_state.is_failed:
        icon = "[action.failed]✗[/]"  # Cross
    else:
        icon = f"[source.{pkg.source.value}]●[/]"  # Filled circle

    name = f"[package.name]{escape(pkg.name)}[/]"
    version = f"[package.version]{escape(pkg.version or '-')}[/]"
    size = f"[package.size]{pkg.size_human}[/]"

    return (
        icon,
        name,
        format_source(pkg.source),
        format_kind(pkg.kind),
        version,
        size,
        format_update_state(pkg),
    )


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")

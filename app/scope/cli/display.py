"""Shared Rich display functions for inventory views and action results.

Provides reusable table builders and summary printers used by the
one-shot commands (scan, check-updates) and the interactive mode.
"""

from rich.markup import escape
from rich.table import Table

from scope.core.app import ViewSnapshot
from scope.core.coordinator import ScanStatus
from scope.models.outcome import Outcome
from scope.models.package import Package, format_bytes
from scope.utils.formatting import (
    console,
    create_package_table,
    format_package_row,
    format_source,
    print_warning,
)


def print_scan_warnings(status: ScanStatus) -> None:
    """Warn about sources that could not be scanned or had bad records."""
    for source in sorted(status.unavailable, key=lambda s: s.rank):
        print_warning(f"{source.label} package manager is not available.")

    for source, error in sorted(status.errors.items(), key=lambda item: item[0].rank):
        print_warning(f"{source.label} scan failed: {error}")

    if status.diagnostics:
        print_warning(f"Skipped {len(status.diagnostics)} unreadable record(s).")


def create_view_table(
    snapshot: ViewSnapshot,
    *,
    title: str = "Installed Packages",
    start: int = 0,
    limit: int | None = None,
    numbered: bool = False,
    highlight_selection: bool = False,
) -> Table:
    """Build a table of visible rows.

    Args:
        snapshot: View to display.
        title: Table title.
        start: Index of the first row to show.
        limit: Maximum number of rows to show.
        numbered: Show the row number in a leading column.
        highlight_selection: Mark the selected row.

    Returns:
        Rich Table with one row per displayed package.
    """
    table = create_package_table(title, numbered=numbered)
    end = len(snapshot.rows) if limit is None else min(len(snapshot.rows), start + limit)

    for index in range(start, end):
        cells: tuple[str, ...] = format_package_row(snapshot.rows[index])
        if numbered:
            cells = (str(index + 1), *cells)
        style = "selected" if highlight_selection and index == snapshot.selected else None
        table.add_row(*cells, style=style)

    return table


def print_view_summary(snapshot: ViewSnapshot, displayed: int | None = None) -> None:
    """Print row counts, total size and per-source totals below a table."""
    shown = len(snapshot.rows) if displayed is None else displayed
    stored = sum(snapshot.totals.values())

    parts = [f"Showing {shown} of {stored} packages"]
    if shown < len(snapshot.rows):
        parts.append(f"({len(snapshot.rows)} match)")
    parts.append(f"({format_bytes(snapshot.total_size)} total)")

    source_parts = [
        f"{source.label}: {count}" for source, count in snapshot.totals.items() if count
    ]
    if source_parts:
        parts.append(f"[{', '.join(source_parts)}]")

    console.print(f"\n[dim]{escape(' '.join(parts))}[/]")


def create_outcomes_table(results: list[tuple[Package, Outcome]], title: str = "Results") -> Table:
    """Create a Rich table displaying action outcomes.

    Args:
        results: Package and outcome pairs.
        title: Table title.

    Returns:
        Rich Table configured for results display.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Status", width=6, justify="center")
    table.add_column("Source")
    table.add_column("Package", no_wrap=True)
    table.add_column("Message")

    for pkg, outcome in results:
        status = "[success]OK[/]" if outcome.success else "[error]FAIL[/]"
        table.add_row(
            status,
            format_source(pkg.source),
            escape(pkg.name),
            f"[muted]{escape(outcome.reason)}[/]",
        )

    return table


def print_package_details(pkg: Package) -> None:
    """Print every attribute of one package."""
    console.print(f"\n[bold_header]{escape(pkg.name)}[/]")
    rows = [
        ("ID", escape(str(pkg.identity))),
        ("Source", format_source(pkg.source)),
        ("Version", escape(pkg.version or "-")),
        ("Size", pkg.size_human),
        ("Type", pkg.kind.value.upper()),
        ("Update", pkg.update_state.status.value.replace("_", " ")),
    ]
    if pkg.update_state.version:
        rows.append(("Available", escape(pkg.update_state.version)))
    if pkg.install_path:
        rows.append(("Location", escape(pkg.install_path)))
    if pkg.description:
        rows.append(("About", escape(pkg.description)))
    if pkg.action_state.failure is not None:
        reason = escape(pkg.action_state.failure.reason)
        rows.append(("Last error", f"[action.failed]{reason}[/]"))

    for label, value in rows:
        console.print(f"  [muted]{label:<10}[/] {value}")

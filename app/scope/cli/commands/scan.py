"""Scan command implementation.

Lists installed packages from every package manager as one inventory.
"""

import json
from pathlib import Path
from typing import Annotated

import typer

from scope.cli.display import create_view_table, print_scan_warnings, print_view_summary
from scope.cli.session import collect_inventory
from scope.cli.types import (
    KindChoice,
    OutputFormat,
    SortChoice,
    SourceChoice,
    get_sources,
    load_config_or_exit,
    to_kind_filter,
    to_sort_key,
)
from scope.core.app import ViewSnapshot
from scope.core.executor import get_backends
from scope.core.query import KindFilter, SortDirection, ViewConfig
from scope.models.scan_result import ScanResult
from scope.utils.formatting import console, print_error, print_info

app = typer.Typer(
    help="Scan system for installed packages.",
    invoke_without_command=True,
)


def _get_source_title(source: SourceChoice, kind: KindChoice) -> str:
    """Generate table title based on source and kind filter.

    Args:
        source: The source choice.
        kind: The kind filter.

    Returns:
        Title string for the table.
    """
    prefix = "Installed Packages"
    if kind != KindChoice.ALL:
        prefix = f"Installed {kind.value.upper()} Packages"

    if source == SourceChoice.ALL:
        return prefix
    return f"{prefix} ({source.value.upper()})"


def _scan_result(snapshot: ViewSnapshot, limit: int | None = None) -> ScanResult:
    rows = list(snapshot.rows)
    scan = snapshot.scan
    return ScanResult.create(
        packages=rows[:limit] if limit else rows,
        generation=scan.generation,
        sources=[s for s in scan.sources if s not in scan.unavailable],
        unavailable=sorted(scan.unavailable, key=lambda s: s.rank),
    )


def _export(snapshot: ViewSnapshot, export_path: Path) -> None:
    # Validate export path
    export_path = export_path.resolve()
    if export_path.is_dir():
        print_error(f"Export path is a directory: {export_path}")
        raise typer.Exit(code=1)

    try:
        export_path.parent.mkdir(parents=True, exist_ok=True)
        export_path.write_text(json.dumps(_scan_result(snapshot).to_dict(), indent=2))
        print_info(f"Scan results exported to {export_path}")
    except OSError as e:
        print_error(f"Failed to export: {e}")
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def scan_packages(
    ctx: typer.Context,
    source: Annotated[
        SourceChoice,
        typer.Option(
            "--source",
            "-s",
            help="Package source to scan: apt, snap, flatpak, appimage, or all.",
            case_sensitive=False,
        ),
    ] = SourceChoice.ALL,
    kind: Annotated[
        KindChoice,
        typer.Option(
            "--kind",
            "-k",
            help="Only show GUI applications or CLI tools.",
            case_sensitive=False,
        ),
    ] = KindChoice.ALL,
    search: Annotated[
        str,
        typer.Option(
            "--search",
            "-S",
            help="Fuzzy search on package names.",
        ),
    ] = "",
    sort: Annotated[
        SortChoice,
        typer.Option(
            "--sort",
            help="Sort by size, name, or source.",
            case_sensitive=False,
        ),
    ] = SortChoice.SIZE,
    ascending: Annotated[
        bool,
        typer.Option(
            "--asc",
            help="Sort ascending instead of descending.",
        ),
    ] = False,
    check_updates: Annotated[
        bool,
        typer.Option(
            "--check-updates",
            "-u",
            help="Also check every package for available updates.",
        ),
    ] = False,
    count_only: Annotated[
        bool,
        typer.Option(
            "--count",
            "-c",
            help="Only show package counts.",
        ),
    ] = False,
    limit: Annotated[
        int | None,
        typer.Option(
            "--limit",
            "-n",
            help="Limit number of packages to display.",
        ),
    ] = None,
    export_path: Annotated[
        Path | None,
        typer.Option(
            "--export",
            "-e",
            help="Export scan results to JSON file.",
        ),
    ] = None,
    output_format: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Output format: table or json.",
            case_sensitive=False,
        ),
    ] = OutputFormat.TABLE,
) -> None:
    """Scan and display installed packages.

    By default, scans all package sources and lists the largest packages first.

    Examples:
        scope scan                          # Scan all sources, show table
        scope scan --source snap            # Scan Snap only
        scope scan --kind gui --limit 20    # 20 largest GUI applications
        scope scan --search chr             # Fuzzy search by name
        scope scan --sort name --asc        # Alphabetical order
        scope scan --format json            # Output as JSON
        scope scan --export scan.json       # Export to JSON file
    """
    # Skip if a subcommand is being invoked
    if ctx.invoked_subcommand is not None:
        return

    config = load_config_or_exit()
    sources = [s for s in get_sources(source, config.sources) if s in config.sources]
    backends = get_backends(config, sources)
    if not backends:
        print_error(f"Source {source.value} is disabled in the configuration.")
        raise typer.Exit(code=1)

    view = ViewConfig(
        kind_filter=to_kind_filter(kind),
        search_text=search,
        sort_key=to_sort_key(sort),
        sort_direction=SortDirection.ASC if ascending else SortDirection.DESC,
    )
    snapshot, errors = collect_inventory(config, backends, view, check_updates=check_updates)

    print_scan_warnings(snapshot.scan)
    for error in errors:
        print_error(error.message)

    if snapshot.scan.unavailable == set(backends):
        print_error("No package managers are available on this system.")
        raise typer.Exit(code=1)

    # Handle export (always JSON regardless of format option)
    if export_path is not None:
        _export(snapshot, export_path)

    # Show counts only if requested
    if count_only:
        print_info(f"Total packages: {sum(snapshot.totals.values())}")
        for pkg_source, count in snapshot.totals.items():
            if pkg_source in backends:
                console.print(f"  [source.{pkg_source.value}]{pkg_source.label}:[/] {count}")
        if view.search_text or view.kind_filter != KindFilter.ALL:
            console.print(f"\n[dim]{len(snapshot.rows)} match the current filter[/]")
        return

    # JSON output format
    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps(_scan_result(snapshot, limit).to_dict()))
        return

    # Table output format (default)
    table = create_view_table(snapshot, title=_get_source_title(source, kind), limit=limit)
    console.print(table)

    displayed = len(snapshot.rows) if limit is None else min(limit, len(snapshot.rows))
    print_view_summary(snapshot, displayed)

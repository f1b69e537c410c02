"""Check-updates command implementation.

Lists installed packages that have a newer version available, and
optionally updates them.
"""

import json
from typing import Annotated

import typer
from rich.markup import escape

from scope.cli.display import create_outcomes_table, create_view_table, print_scan_warnings
from scope.cli.session import collect_inventory, update_available
from scope.cli.types import OutputFormat, SourceChoice, get_sources, load_config_or_exit
from scope.core.app import ViewSnapshot
from scope.core.executor import get_backends
from scope.core.query import SortKey, ViewConfig
from scope.models.package import Package
from scope.models.scan_result import package_to_dict
from scope.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Check installed packages for available updates.",
    invoke_without_command=True,
)


def _outdated(snapshot: ViewSnapshot) -> list[Package]:
    return [pkg for pkg in snapshot.rows if pkg.update_state.has_update]


def _confirm_updates(packages: list[Package]) -> bool:
    console.print(f"\n[bold]{len(packages)} package(s) will be updated:[/]")
    for pkg in packages:
        console.print(
            f"  {escape(pkg.name)} [muted]{escape(pkg.version or '-')}[/] → "
            f"[update.available]{escape(pkg.update_state.version or '?')}[/]"
        )
    return typer.confirm("\nProceed?", default=False)


@app.callback(invoke_without_command=True)
def check_updates(
    ctx: typer.Context,
    source: Annotated[
        SourceChoice,
        typer.Option(
            "--source",
            "-s",
            help="Package source to check: apt, snap, flatpak, appimage, or all.",
            case_sensitive=False,
        ),
    ] = SourceChoice.ALL,
    install: Annotated[
        bool,
        typer.Option(
            "--install",
            "-i",
            help="Update every outdated package after listing it.",
        ),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip the confirmation prompt when installing updates.",
        ),
    ] = False,
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
    """List packages with pending updates.

    Examples:
        scope check-updates                 # Check every source
        scope check-updates --source snap   # Check Snap only
        scope check-updates --install       # Update everything outdated
        scope check-updates --format json   # Output as JSON
    """
    if ctx.invoked_subcommand is not None:
        return

    config = load_config_or_exit()
    sources = [s for s in get_sources(source, config.sources) if s in config.sources]
    backends = get_backends(config, sources)
    if not backends:
        print_error(f"Source {source.value} is disabled in the configuration.")
        raise typer.Exit(code=1)

    if install:
        confirm = (lambda _packages: True) if yes else _confirm_updates
        snapshot, errors, results = update_available(config, backends, confirm)
    else:
        snapshot, errors = collect_inventory(
            config, backends, ViewConfig(sort_key=SortKey.NAME), check_updates=True
        )
        results = []

    print_scan_warnings(snapshot.scan)
    for error in errors:
        print_error(error.message)

    if snapshot.scan.unavailable == set(backends):
        print_error("No package managers are available on this system.")
        raise typer.Exit(code=1)

    if results:
        console.print(create_outcomes_table(results, title="Update Results"))
        failed = sum(1 for _, outcome in results if outcome.failed)
        if failed:
            print_error(f"{failed} of {len(results)} update(s) failed.")
            raise typer.Exit(code=1)
        print_success(f"Updated {len(results)} package(s).")
        return

    outdated = _outdated(snapshot)

    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps([package_to_dict(pkg) for pkg in outdated]))
        return

    if not outdated:
        print_success("All packages are up to date.")
        return

    filtered = ViewSnapshot(
        rows=tuple(outdated),
        selected=0,
        config=snapshot.config,
        scan=snapshot.scan,
        totals=snapshot.totals,
    )
    console.print(create_view_table(filtered, title="Available Updates"))
    print_info(f"{len(outdated)} update(s) available.")
    if not install:
        console.print("[dim]Run [info]scope check-updates --install[/] to apply them.[/]")

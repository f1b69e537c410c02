"""Main CLI application entry point.

Defines the Typer application and global options. Running ``scope``
without a command starts interactive mode.
"""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from scope import __version__
from scope.cli import interactive
from scope.cli.commands import config, scan, updates
from scope.cli.types import load_config_or_exit
from scope.core.config import ScopeConfig
from scope.core.updater import UpdateCheckError, check_latest_version, perform_update
from scope.utils.formatting import console, err_console, print_error, print_info, print_success

# Create main Typer app
app = typer.Typer(
    name="scope",
    help="Browse, search and clean up APT, Snap, Flatpak and AppImage packages.",
    no_args_is_help=False,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"scope version {__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool) -> None:
    """Send log records to stderr through Rich.

    Warnings and errors are always shown; ``--verbose`` adds debug output.
    """
    root = logging.getLogger("scope")
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(
            RichHandler(
                console=err_console,
                show_path=verbose,
                rich_tracebacks=True,
                markup=False,
            )
        )


def _self_update(config: ScopeConfig, install: bool) -> None:
    """Check for a newer scope release and optionally install it."""
    print_info(f"Current version: {__version__}")
    try:
        release = check_latest_version(timeout=config.update_check_timeout)
    except UpdateCheckError as e:
        print_error(f"Update check failed: {e}")
        raise typer.Exit(code=1) from e

    if not release.update_available:
        print_success(f"You are running the latest version ({release.current}).")
        return

    console.print(f"New version available: {release.current} → [success]{release.latest}[/]")
    console.print(f"[muted]{release.url}[/]")
    if not install:
        console.print("Run [info]scope --update[/] to install it.")
        return

    try:
        perform_update(release)
    except UpdateCheckError as e:
        print_error(f"Update failed: {e}")
        raise typer.Exit(code=1) from e
    print_success(f"Updated to {release.latest}. Restart scope to use the new version.")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    check_update: Annotated[
        bool,
        typer.Option(
            "--check-update",
            help="Check whether a newer scope release exists and exit.",
        ),
    ] = False,
    update: Annotated[
        bool,
        typer.Option(
            "--update",
            help="Update scope to the latest release and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
) -> None:
    """scope - one inventory for APT, Snap, Flatpak and AppImage.

    Run without a command to browse installed packages interactively.
    """
    setup_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    if check_update or update:
        _self_update(load_config_or_exit(), install=update)
        raise typer.Exit()

    if ctx.invoked_subcommand is not None:
        return

    interactive.run(load_config_or_exit())


# Register commands
app.add_typer(scan.app, name="scan")
app.add_typer(updates.app, name="check-updates")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()

"""Config command implementation.

Shows the effective configuration and writes a default config file.
"""

from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from scope.cli.types import load_config_or_exit
from scope.core.config import ConfigError, ScopeConfig, config_to_dict, save_config
from scope.core.paths import get_config_path
from scope.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Show or initialize the scope configuration.",
    invoke_without_command=True,
)


def _create_config_table(config: ScopeConfig) -> Table:
    table = Table(
        title="Configuration",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Setting", style="info", no_wrap=True)
    table.add_column("Value")

    for key, value in config_to_dict(config).items():
        shown = ", ".join(str(v) for v in value) if isinstance(value, list) else str(value)
        table.add_row(key, escape(shown or "-"))
    return table


@app.callback(invoke_without_command=True)
def show_config(
    ctx: typer.Context,
    init: Annotated[
        bool,
        typer.Option(
            "--init",
            help="Write a config file with the default settings.",
        ),
    ] = False,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite an existing config file with --init.",
        ),
    ] = False,
) -> None:
    """Show the effective configuration.

    Examples:
        scope config                        # Show effective settings
        scope config --init                 # Write ~/.config/scope/config.toml
    """
    if ctx.invoked_subcommand is not None:
        return

    config_path = get_config_path()

    if init:
        if config_path.exists() and not force:
            print_error(f"Config file already exists: {config_path}")
            print_info("Use --force to overwrite it.")
            raise typer.Exit(code=1)
        try:
            saved = save_config(ScopeConfig(), config_path)
        except ConfigError as e:
            print_error(str(e))
            raise typer.Exit(code=1) from e
        print_success(f"Config written to {saved}")
        return

    config = load_config_or_exit()
    console.print(_create_config_table(config))
    if config_path.exists():
        console.print(f"\n[dim]Loaded from {escape(str(config_path))}[/]")
    else:
        console.print(f"\n[dim]No config file at {escape(str(config_path))}; using defaults.[/]")

"""CLI package for scope.

This package contains the Typer application, its subcommands and the
interactive mode.
"""

from scope.cli.main import app

__all__ = ["app"]

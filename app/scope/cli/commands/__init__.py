"""CLI commands for scope.

This package contains all subcommand implementations.
"""

from scope.cli.commands import config, scan, updates

__all__ = ["config", "scan", "updates"]

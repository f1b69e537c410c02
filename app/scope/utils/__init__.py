"""Utility modules for scope.

This module exports commonly used utility functions.
"""

from scope.utils.formatting import (
    console,
    create_package_table,
    err_console,
    format_package_row,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from scope.utils.shell import CommandResult, command_exists, run_command, run_interactive

__all__ = [
    "CommandResult",
    "command_exists",
    "console",
    "create_package_table",
    "err_console",
    "format_package_row",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
    "run_command",
    "run_interactive",
]

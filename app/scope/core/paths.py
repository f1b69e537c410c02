"""XDG-compliant path management for scope.

This module provides standardized paths following the XDG Base Directory
Specification for configuration storage.

XDG defaults:
- Config: ~/.config/scope/
- Desktop entries: ~/.local/share/applications/
"""

import os
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "scope"


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/scope/ (or XDG_CONFIG_HOME/scope/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_config_path() -> Path:
    """Get the main configuration file path.

    Returns:
        Path to ~/.config/scope/config.toml.
    """
    return get_config_dir() / "config.toml"


def get_theme_path() -> Path:
    """Get the user theme configuration path.

    Returns:
        Path to ~/.config/scope/theme.toml.
    """
    return get_config_dir() / "theme.toml"


def get_desktop_entries_dir() -> Path:
    """Get the directory holding per-user desktop entries.

    AppImage integration tools drop launchers here; they are removed
    together with the AppImage they reference.

    Returns:
        Path to ~/.local/share/applications (or XDG_DATA_HOME/applications).
    """
    base = os.environ.get("XDG_DATA_HOME")
    if base:
        return Path(base) / "applications"
    return Path.home() / ".local" / "share" / "applications"


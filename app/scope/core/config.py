"""Application configuration.

This module provides the configuration model and I/O functions for
scope. Configuration is stored in ~/.config/scope/config.toml and every
field is optional; a missing file means defaults.
"""

import logging
import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from scope.core.paths import get_config_path
from scope.models.package import PackageSource

logger = logging.getLogger(__name__)


class ScopeConfig(BaseModel):
    """Configuration for scanning and mutating packages.

    Attributes:
        privilege_command: Helper used to run APT and Snap mutations as root.
        list_timeout: Bound in seconds for listing and update-check commands.
        mutation_timeout: Bound in seconds for uninstall and update commands.
        update_check_timeout: Bound in seconds for the self-update check.
        appimage_dirs: Extra directories searched for AppImages.
        appimage_max_depth: Directory depth searched below each AppImage root.
        sources: Package sources that take part in scans.
    """

    model_config = ConfigDict(extra="forbid")

    privilege_command: Annotated[
        str,
        Field(min_length=1, description="Privilege helper (pkexec, sudo, ...)"),
    ] = "pkexec"
    list_timeout: Annotated[
        float,
        Field(gt=0, le=600, description="Timeout for listing commands (seconds)"),
    ] = 60.0
    mutation_timeout: Annotated[
        float,
        Field(gt=0, le=3600, description="Timeout for uninstall/update (seconds)"),
    ] = 300.0
    update_check_timeout: Annotated[
        float,
        Field(gt=0, le=120, description="Timeout for the self-update check (seconds)"),
    ] = 10.0
    appimage_dirs: Annotated[
        list[Path],
        Field(description="Extra AppImage search directories"),
    ] = []
    appimage_max_depth: Annotated[
        int,
        Field(ge=1, le=8, description="AppImage search depth"),
    ] = 3
    sources: Annotated[
        list[PackageSource],
        Field(min_length=1, description="Enabled package sources"),
    ] = list(PackageSource)


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigParseError(ConfigError):
    """Raised when the config file cannot be parsed."""


def load_config(path: Path | None = None) -> ScopeConfig:
    """Load configuration from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated ScopeConfig object. Defaults when the file does not exist.

    Raises:
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the file cannot be read or doesn't match the schema.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        logger.debug("No config file at %s, using defaults", config_path)
        return ScopeConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        return ScopeConfig.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise ConfigError(f"Invalid config content: {e}") from e


def save_config(config: ScopeConfig, path: Path | None = None) -> Path:
    """Save configuration to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        config: The ScopeConfig object to save.
        path: Path to save the config. If None, uses the default config path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()

    data = config_to_dict(config)

    tmp_path: Path | None = None
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        # os.replace() is atomic on POSIX
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path


def config_to_dict(config: ScopeConfig) -> dict[str, object]:
    """Convert ScopeConfig to a dictionary for TOML serialization.

    Args:
        config: The ScopeConfig to convert.

    Returns:
        Dictionary ready for TOML serialization.
    """
    return {
        "privilege_command": config.privilege_command,
        "list_timeout": config.list_timeout,
        "mutation_timeout": config.mutation_timeout,
        "update_check_timeout": config.update_check_timeout,
        "appimage_dirs": [str(p) for p in config.appimage_dirs],
        "appimage_max_depth": config.appimage_max_depth,
        "sources": [s.value for s in config.sources],
    }

"""Unit tests for configuration loading and saving."""

import tomllib
from pathlib import Path

import pytest
from pydantic import ValidationError
from scope.core.config import (
    ConfigError,
    ConfigParseError,
    ScopeConfig,
    config_to_dict,
    load_config,
    save_config,
)
from scope.models.package import PackageSource


class TestScopeConfig:
    """Tests for ScopeConfig model."""

    def test_defaults(self) -> None:
        config = ScopeConfig()

        assert config.privilege_command == "pkexec"
        assert config.list_timeout == 60.0
        assert config.mutation_timeout == 300.0
        assert config.update_check_timeout == 10.0
        assert config.appimage_dirs == []
        assert config.appimage_max_depth == 3
        assert config.sources == list(PackageSource)

    def test_sources_from_strings(self) -> None:
        config = ScopeConfig.model_validate({"sources": ["snap", "flatpak"]})

        assert config.sources == [PackageSource.SNAP, PackageSource.FLATPAK]

    @pytest.mark.parametrize(
        "data",
        [
            {"list_timeout": 0},
            {"mutation_timeout": -1},
            {"appimage_max_depth": 0},
            {"appimage_max_depth": 9},
            {"privilege_command": ""},
            {"sources": []},
            {"sources": ["brew"]},
            {"unknown": True},
        ],
    )
    def test_rejects_invalid_values(self, data: dict[str, object]) -> None:
        with pytest.raises(ValidationError):
            ScopeConfig.model_validate(data)


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_config(tmp_path / "config.toml") == ScopeConfig()

    def test_default_path_is_xdg(self, isolated_xdg: Path) -> None:
        config_dir = isolated_xdg / ".config" / "scope"
        config_dir.mkdir(parents=True)
        (config_dir / "config.toml").write_text('privilege_command = "sudo"\n')

        assert load_config().privilege_command == "sudo"

    def test_partial_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text(
            'sources = ["apt", "appimage"]\n'
            'appimage_dirs = ["/opt/apps"]\n'
            "list_timeout = 30\n"
        )

        config = load_config(path)

        assert config.sources == [PackageSource.APT, PackageSource.APPIMAGE]
        assert config.appimage_dirs == [Path("/opt/apps")]
        assert config.list_timeout == 30.0
        assert config.mutation_timeout == 300.0

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("sources = [")

        with pytest.raises(ConfigParseError, match="Invalid TOML syntax"):
            load_config(path)

    def test_invalid_content(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("appimage_max_depth = 100\n")

        with pytest.raises(ConfigError, match="Invalid config content"):
            load_config(path)

    def test_unreadable_path(self, tmp_path: Path) -> None:
        """A directory where the file should be is reported, not raised raw."""
        path = tmp_path / "config.toml"
        path.mkdir()

        with pytest.raises(ConfigError, match="Failed to read config"):
            load_config(path)


class TestSaveConfig:
    """Tests for save_config and config_to_dict."""

    def test_round_trip(self, tmp_path: Path) -> None:
        config = ScopeConfig(
            privilege_command="sudo",
            appimage_dirs=[tmp_path / "apps"],
            sources=[PackageSource.FLATPAK],
        )
        path = tmp_path / "nested" / "config.toml"

        saved = save_config(config, path)

        assert saved == path
        assert load_config(path) == config
        assert list(path.parent.glob("*.tmp")) == []

    def test_written_file_is_plain_toml(self, tmp_path: Path) -> None:
        path = save_config(ScopeConfig(), tmp_path / "config.toml")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        assert data["sources"] == ["apt", "snap", "flatpak", "appimage"]
        assert data["appimage_dirs"] == []

    def test_write_failure(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")

        with pytest.raises(ConfigError, match="Failed to write config"):
            save_config(ScopeConfig(), blocker / "config.toml")

    def test_config_to_dict(self) -> None:
        data = config_to_dict(ScopeConfig(appimage_dirs=[Path("/opt/apps")]))

        assert data["appimage_dirs"] == ["/opt/apps"]
        assert data["privilege_command"] == "pkexec"

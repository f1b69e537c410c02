"""Unit tests for SnapBackend.

Tests for the Snap package backend implementation.
"""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import make_package
from scope.backends.base import BackendError, ParseDiagnostic
from scope.backends.snap import SnapBackend
from scope.models.outcome import FailureKind
from scope.models.package import AppKind, PackageSource
from scope.utils.shell import CommandResult


def ok(stdout: str, stderr: str = "") -> CommandResult:
    return CommandResult(stdout=stdout, stderr=stderr, returncode=0)


class TestSnapBackend:
    """Tests for SnapBackend class."""

    @pytest.fixture
    def backend(self, tmp_path: Path) -> SnapBackend:
        """Create SnapBackend with an empty desktop entry directory."""
        backend = SnapBackend(privilege_command="sudo")
        backend._DESKTOP_DIR = tmp_path / "desktop"  # type: ignore[misc]
        return backend

    def test_source_is_snap(self, backend: SnapBackend) -> None:
        assert backend.source == PackageSource.SNAP

    def test_is_available(self, backend: SnapBackend) -> None:
        with patch("scope.backends.snap.command_exists", return_value=True):
            assert backend.is_available() is True
        with patch("scope.backends.snap.command_exists", return_value=False):
            assert backend.is_available() is False

    def test_enumerate_filters_runtime_snaps(
        self, backend: SnapBackend, mock_snap_output: str
    ) -> None:
        """Cores, bases, snapd and GNOME/GTK content snaps are not listed."""
        with (
            patch("scope.backends.base.run_command", return_value=ok(mock_snap_output)),
            patch("scope.backends.snap.run_command", return_value=ok("1048576\t/snap/x")),
        ):
            packages = list(backend.enumerate())

        assert [p.name for p in packages] == ["firefox", "vlc"]
        assert packages[0].version == "128.0-2"
        assert packages[0].size_bytes == 1048576

    def test_enumerate_size_unmeasurable_is_zero(
        self, backend: SnapBackend, mock_snap_output: str
    ) -> None:
        """A failing du leaves the size at 0."""
        failure = CommandResult(stdout="", stderr="du: cannot access", returncode=1)

        with (
            patch("scope.backends.base.run_command", return_value=ok(mock_snap_output)),
            patch("scope.backends.snap.run_command", return_value=failure),
        ):
            packages = list(backend.enumerate())

        assert all(p.size_bytes == 0 for p in packages)

    def test_enumerate_size_timeout_keeps_listing(
        self, backend: SnapBackend, mock_snap_output: str
    ) -> None:
        """A hung du costs only the size, every snap is still listed."""
        timeout = subprocess.TimeoutExpired(["du", "-sb", "/snap/firefox/current"], 1)

        with (
            patch("scope.backends.base.run_command", return_value=ok(mock_snap_output)),
            patch("scope.backends.snap.run_command", side_effect=timeout),
        ):
            packages = list(backend.enumerate())

        assert [p.name for p in packages] == ["firefox", "vlc"]
        assert all(p.size_bytes == 0 for p in packages)

    def test_enumerate_kind_from_desktop_entries(self, backend: SnapBackend) -> None:
        """Snaps with a desktop entry are GUI, unknown otherwise."""
        output = (
            "Name     Version  Rev  Tracking       Publisher  Notes\n"
            "obsidian 1.5.3    35   latest/stable  obsidian   classic\n"
            "yq       4.40.5   2438 latest/stable  mikefarah  -\n"
        )
        backend._DESKTOP_DIR.mkdir(parents=True)
        (backend._DESKTOP_DIR / "obsidian_obsidian.desktop").write_text("[Desktop Entry]\n")

        with (
            patch("scope.backends.base.run_command", return_value=ok(output)),
            patch("scope.backends.snap.run_command", return_value=ok("0")),
        ):
            packages = {p.name: p for p in backend.enumerate()}

        assert packages["obsidian"].kind == AppKind.GUI
        assert packages["yq"].kind == AppKind.UNKNOWN

    def test_enumerate_reports_short_lines(self, backend: SnapBackend) -> None:
        output = "Name Version Rev Tracking Publisher Notes\nbroken 1.0\n"
        diagnostics: list[ParseDiagnostic] = []

        with patch("scope.backends.base.run_command", return_value=ok(output)):
            packages = list(backend.enumerate(diagnostics.append))

        assert packages == []
        assert diagnostics[0].record == "broken 1.0"

    def test_enumerate_failure_raises(self, backend: SnapBackend) -> None:
        failure = CommandResult(stdout="", stderr="cannot communicate with server", returncode=1)

        with patch("scope.backends.base.run_command", return_value=failure):
            with pytest.raises(BackendError, match="cannot communicate"):
                list(backend.enumerate())


class TestSnapUpdates:
    """Tests for Snap update checks and mutations."""

    @pytest.fixture
    def backend(self) -> SnapBackend:
        return SnapBackend(privilege_command="sudo")

    def test_check_updates_parses_refresh_list(self, backend: SnapBackend) -> None:
        output = (
            "Name     Version  Rev   Size   Publisher  Notes\n"
            "firefox  129.0-1  4500  250MB  mozilla✓   -\n"
        )
        firefox = make_package("firefox", PackageSource.SNAP)
        vlc = make_package("vlc", PackageSource.SNAP)

        with patch("scope.backends.base.run_command", return_value=ok(output)):
            outcomes = backend.check_updates([firefox, vlc])

        assert outcomes[firefox.identity].version == "129.0-1"
        assert outcomes[vlc.identity].success
        assert outcomes[vlc.identity].version is None

    def test_check_updates_all_up_to_date(self, backend: SnapBackend) -> None:
        """snap reports "All snaps up to date." on stderr with no stdout."""
        vlc = make_package("vlc", PackageSource.SNAP)

        with patch(
            "scope.backends.base.run_command", return_value=ok("", "All snaps up to date.")
        ):
            outcome = backend.check_update(vlc)

        assert outcome.success
        assert outcome.version is None

    def test_check_updates_missing_snap_is_unavailable(self, backend: SnapBackend) -> None:
        vlc = make_package("vlc", PackageSource.SNAP)

        with patch("scope.backends.base.run_command", side_effect=FileNotFoundError()):
            outcome = backend.check_update(vlc)

        assert outcome.kind == FailureKind.ADAPTER_UNAVAILABLE

    def test_uninstall_uses_configured_helper(self, backend: SnapBackend) -> None:
        with patch("scope.backends.base.run_command", return_value=ok("")) as mock_run:
            outcome = backend.uninstall(make_package("vlc", PackageSource.SNAP))

        assert outcome.success
        assert mock_run.call_args.args[0] == ["sudo", "snap", "remove", "vlc"]

    def test_sudo_password_prompt_is_permission_denied(self, backend: SnapBackend) -> None:
        failure = CommandResult(stdout="", stderr="sudo: a password is required", returncode=1)

        with patch("scope.backends.base.run_command", return_value=failure):
            outcome = backend.update(make_package("vlc", PackageSource.SNAP))

        assert outcome.kind == FailureKind.PERMISSION_DENIED

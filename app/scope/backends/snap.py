"""Snap package backend implementation.

Lists installed snaps with the snap CLI, measures them on disk and
mutates them through the privilege helper.
"""

import logging
import re
import subprocess
from collections.abc import Iterable, Iterator
from pathlib import Path

from scope.backends.base import Backend, BackendError, DiagnosticSink
from scope.models.outcome import FailureKind, Outcome, failed, succeeded
from scope.models.package import AppKind, Package, PackageId, PackageSource
from scope.utils.shell import command_exists, run_command

logger = logging.getLogger(__name__)

# Notes values that indicate runtime/infrastructure snaps
_RUNTIME_NOTES: frozenset[str] = frozenset({"base", "snapd"})

# Exact snap names that are always runtime infrastructure
_RUNTIME_NAMES: frozenset[str] = frozenset({"snapd", "bare", "gtk-common-themes"})

# GNOME platform content snaps (gnome-42-2204, gnome-3-38-2004, ...)
_GNOME_PLATFORM = re.compile(r"^gnome-\d+(-\d+)*(-platform)?$")

# Snaps known to ship a graphical application
_GUI_SNAPS: tuple[str, ...] = (
    "firefox",
    "chromium",
    "vlc",
    "spotify",
    "slack",
    "discord",
    "code",
    "sublime-text",
    "gimp",
    "inkscape",
    "blender",
)


class SnapBackend(Backend):
    """Backend for Snap packages.

    Runtime and infrastructure snaps (cores, bases, snapd) are filtered
    out; every remaining snap is one inventory entry.
    """

    _SNAP_ROOT = Path("/snap")
    _DESKTOP_DIR = Path("/var/lib/snapd/desktop/applications")

    @property
    def source(self) -> PackageSource:
        """Return SNAP as the package source."""
        return PackageSource.SNAP

    def is_available(self) -> bool:
        """Check if snap CLI is available."""
        return command_exists("snap")

    def enumerate(self, on_diagnostic: DiagnosticSink | None = None) -> Iterator[Package]:
        """Yield user-facing snaps.

        Raises:
            BackendError: If snap list fails.
        """
        result = self._list(["snap", "list"])
        if not result.success:
            msg = f"snap list failed: {result.error_text}"
            raise BackendError(msg)

        lines = result.stdout.splitlines()

        # Skip header line ("Name  Version  Rev  Tracking  Publisher  Notes")
        for line in lines[1:]:
            if not line.strip():
                continue

            package = self._parse_snap_line(line, on_diagnostic)
            if package is not None:
                yield package

    def _parse_snap_line(self, line: str, on_diagnostic: DiagnosticSink | None) -> Package | None:
        """Parse a single line of snap list output.

        Returns:
            Package if the snap is a user-facing app, None if it is a
            runtime snap or the line is malformed.
        """
        parts = line.split()
        if len(parts) < 6:
            self._skip(line, f"expected 6 columns, got {len(parts)}", on_diagnostic)
            return None

        name = parts[0]
        version = parts[1]
        notes = parts[5]

        if self._is_runtime_snap(name, notes):
            return None

        return Package(
            source=PackageSource.SNAP,
            local_id=name,
            name=name,
            version=version,
            size_bytes=self._get_snap_size(name),
            kind=self._detect_kind(name),
        )

    @staticmethod
    def _is_runtime_snap(name: str, notes: str) -> bool:
        """Check whether a snap is a runtime/infrastructure snap.

        Runtime snaps include cores, bases, snapd itself, the bare snap,
        and GNOME and GTK content snaps.
        """
        if notes in _RUNTIME_NOTES:
            return True

        if name in _RUNTIME_NAMES:
            return True

        if name.startswith("core"):
            return True

        return _GNOME_PLATFORM.match(name) is not None

    def _get_snap_size(self, name: str) -> int:
        """Measure the current revision of a snap with ``du``.

        Returns:
            Size in bytes, 0 when it cannot be measured.
        """
        try:
            result = run_command(
                ["du", "-sb", str(self._SNAP_ROOT / name / "current")],
                timeout=self._list_timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("Cannot measure snap %s: %s", name, e)
            return 0

        fields = result.stdout.split()
        if result.success and fields and fields[0].isdigit():
            return int(fields[0])
        return 0

    def _detect_kind(self, name: str) -> AppKind:
        """Snaps with a desktop entry or a known GUI name are GUI apps."""
        if self._DESKTOP_DIR.is_dir() and any(self._DESKTOP_DIR.glob(f"{name}_*.desktop")):
            return AppKind.GUI

        if any(gui in name for gui in _GUI_SNAPS):
            return AppKind.GUI

        return AppKind.UNKNOWN

    def check_update(self, package: Package) -> Outcome:
        """Check one snap for a pending refresh."""
        return self.check_updates([package])[package.identity]

    def check_updates(self, packages: Iterable[Package]) -> dict[PackageId, Outcome]:
        """Check a batch of snaps with one ``snap refresh --list`` call.

        When nothing is pending, snap prints "All snaps up to date." on
        stderr and nothing on stdout.
        """
        batch = list(packages)
        if not batch:
            return {}

        result = self._query(["snap", "refresh", "--list"])
        if isinstance(result, Outcome):
            return {pkg.identity: result for pkg in batch}
        if not result.success:
            reason = result.error_text or "snap refresh failed"
            outcome = failed(FailureKind.PROCESS_FAILURE, reason)
            return {pkg.identity: outcome for pkg in batch}

        pending: dict[str, str] = {}
        for line in result.stdout.splitlines()[1:]:
            fields = line.split()
            if len(fields) >= 2:
                pending[fields[0]] = fields[1]

        return {pkg.identity: succeeded(version=pending.get(pkg.local_id)) for pkg in batch}

    def uninstall(self, package: Package) -> Outcome:
        """Remove a snap."""
        return self._mutate(["snap", "remove", package.local_id])

    def update(self, package: Package) -> Outcome:
        """Refresh a snap to the latest revision of its channel."""
        return self._mutate(["snap", "refresh", package.local_id])

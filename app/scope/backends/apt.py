"""APT package backend implementation.

Lists manually installed packages with dpkg-query and apt-mark, checks
for updates with apt, and mutates with apt-get through the privilege helper.
"""

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from scope.backends.base import Backend, BackendError, DiagnosticSink
from scope.models.outcome import FailureKind, Outcome, failed, succeeded
from scope.models.package import AppKind, Package, PackageId, PackageSource
from scope.utils.shell import CommandResult, command_exists

logger = logging.getLogger(__name__)

# Dependency fragments that identify graphical applications
_GUI_DEPENDS: tuple[str, ...] = ("libgtk", "libqt", "libx11", "wayland", "libgl")

# Name prefixes/suffixes of libraries and tooling packages
_CLI_AFFIXES: tuple[str, ...] = ("lib", "dev", "doc", "data", "common", "core", "base", "utils")


class AptBackend(Backend):
    """Backend for APT/dpkg packages.

    Only manually installed packages are listed; dependencies pulled in
    automatically are left to APT itself.
    """

    # dpkg-query format: status, package, version, size (KiB), summary, depends
    _DPKG_FORMAT = (
        "${db:Status-Abbrev}\\t${Package}\\t${Version}\\t${Installed-Size}"
        "\\t${binary:Summary}\\t${Depends}\\n"
    )

    # Directory holding system-wide desktop entries
    _DESKTOP_DIR = Path("/usr/share/applications")

    @property
    def source(self) -> PackageSource:
        """Return APT as the package source."""
        return PackageSource.APT

    def is_available(self) -> bool:
        """Check if dpkg-query and apt-get are available."""
        return command_exists("dpkg-query") and command_exists("apt-get")

    def enumerate(self, on_diagnostic: DiagnosticSink | None = None) -> Iterator[Package]:
        """Yield manually installed APT packages.

        Raises:
            BackendError: If dpkg-query fails.
        """
        auto_packages = self._get_auto_installed()

        result = self._list(["dpkg-query", "-W", "-f", self._DPKG_FORMAT])
        if not result.success:
            msg = f"dpkg-query failed: {result.error_text}"
            raise BackendError(msg)

        for line in result.stdout.splitlines():
            if not line.strip():
                continue

            package = self._parse_dpkg_line(line, auto_packages, on_diagnostic)
            if package is not None:
                yield package

    def _get_auto_installed(self) -> set[str]:
        """Get set of package names that were auto-installed.

        A failing apt-mark leaves the set empty, so every package is listed.
        """
        try:
            result = self._list(["apt-mark", "showauto"])
        except BackendError as e:
            logger.warning("apt-mark unavailable, listing all packages: %s", e)
            return set()

        if not result.success:
            logger.warning("apt-mark showauto failed: %s", result.error_text or "unknown error")
            return set()

        return {pkg.strip() for pkg in result.stdout.splitlines() if pkg.strip()}

    def _parse_dpkg_line(
        self,
        line: str,
        auto_packages: set[str],
        on_diagnostic: DiagnosticSink | None,
    ) -> Package | None:
        """Parse a single line of dpkg-query output.

        Returns:
            Package if the line describes an installed manual package,
            None if it is skipped.
        """
        parts = line.split("\t")
        if len(parts) < 3:
            self._skip(line, f"expected at least 3 fields, got {len(parts)}", on_diagnostic)
            return None

        status = parts[0]
        name = parts[1].strip()
        version = parts[2].strip()

        if not name or not version:
            self._skip(line, "empty name or version", on_diagnostic)
            return None

        # Second status letter is the current state; 'i' means installed.
        # Removed packages with leftover config files are not inventory.
        if len(status) < 2 or status[1] != "i":
            return None

        if name in auto_packages:
            return None

        size_bytes = 0
        if len(parts) >= 4:
            size_str = parts[3].strip()
            if size_str.isdigit():
                # dpkg-query reports size in KiB
                size_bytes = int(size_str) * 1024

        description = parts[4].strip() if len(parts) >= 5 else ""
        depends = parts[5] if len(parts) >= 6 else ""

        return Package(
            source=PackageSource.APT,
            local_id=name,
            name=name,
            version=version,
            size_bytes=size_bytes,
            kind=self._detect_kind(name, depends),
            description=description,
        )

    def _detect_kind(self, name: str, depends: str) -> AppKind:
        """Classify a package as GUI, CLI or unknown.

        A desktop entry or a dependency on a graphics toolkit means GUI;
        library and tooling naming conventions mean CLI.
        """
        for candidate in (name, name.lower()):
            if (self._DESKTOP_DIR / f"{candidate}.desktop").exists():
                return AppKind.GUI

        depends_lower = depends.lower()
        if any(marker in depends_lower for marker in _GUI_DEPENDS):
            return AppKind.GUI

        if any(name.startswith(a) or name.endswith(a) for a in _CLI_AFFIXES):
            return AppKind.CLI

        return AppKind.UNKNOWN

    def check_update(self, package: Package) -> Outcome:
        """Compare installed and candidate versions with apt-cache policy."""
        result = self._query(["apt-cache", "policy", package.local_id])
        if isinstance(result, Outcome):
            return result
        if not result.success:
            return failed(FailureKind.PROCESS_FAILURE, result.error_text or "apt-cache failed")

        installed: str | None = None
        candidate: str | None = None
        for line in result.stdout.splitlines():
            key, _, value = line.strip().partition(":")
            if key == "Installed":
                installed = value.strip()
            elif key == "Candidate":
                candidate = value.strip()

        if installed is None or candidate is None:
            return failed(FailureKind.PARSE_ERROR, f"No policy for {package.local_id}")

        if candidate in ("(none)", installed):
            return succeeded()
        return succeeded(version=candidate)

    def check_updates(self, packages: Iterable[Package]) -> dict[PackageId, Outcome]:
        """Check a batch of packages with one ``apt list --upgradable`` call."""
        batch = list(packages)
        if not batch:
            return {}

        result = self._query(["apt", "list", "--upgradable"])
        if isinstance(result, Outcome):
            return {pkg.identity: result for pkg in batch}
        if not result.success:
            outcome = failed(FailureKind.PROCESS_FAILURE, result.error_text or "apt list failed")
            return {pkg.identity: outcome for pkg in batch}

        upgradable = self._parse_upgradable(result)

        outcomes: dict[PackageId, Outcome] = {}
        for pkg in batch:
            version = upgradable.get(pkg.local_id)
            outcomes[pkg.identity] = succeeded(version=version)
        return outcomes

    @staticmethod
    def _parse_upgradable(result: CommandResult) -> dict[str, str]:
        """Parse ``apt list --upgradable`` output.

        Lines look like ``name/suite version arch [upgradable from: old]``;
        the ``Listing...`` header has no slash-separated name.
        """
        upgradable: dict[str, str] = {}
        for line in result.stdout.splitlines():
            if "/" not in line:
                continue
            name = line.split("/", 1)[0].strip()
            fields = line.split()
            if name and len(fields) >= 2:
                upgradable[name] = fields[1]
        return upgradable

    def uninstall(self, package: Package) -> Outcome:
        """Remove a package using apt-get remove."""
        return self._mutate(["apt-get", "remove", "-y", package.local_id])

    def update(self, package: Package) -> Outcome:
        """Upgrade a single package without installing new ones."""
        return self._mutate(["apt-get", "install", "-y", "--only-upgrade", package.local_id])

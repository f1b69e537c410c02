"""Flatpak package backend implementation.

Lists installed Flatpak applications using the flatpak CLI.
"""

import re
from collections.abc import Iterable, Iterator

from scope.backends.base import Backend, BackendError, DiagnosticSink
from scope.models.outcome import FailureKind, Outcome, failed, succeeded
from scope.models.package import AppKind, Package, PackageId, PackageSource
from scope.utils.shell import command_exists


class FlatpakBackend(Backend):
    """Backend for Flatpak applications.

    Uses `flatpak list` to enumerate installed applications. Runtimes are
    dependencies and are not listed. Flatpak raises its own polkit prompt
    for system installations, so mutations run without the privilege helper.
    """

    # Regex pattern for parsing size strings like "1.2 GB", "500 MB", "100 kB"
    _SIZE_PATTERN = re.compile(r"^\s*([\d.,]+)\s*(B|KB|MB|GB|TB)\s*$", re.IGNORECASE)

    # Size multipliers for converting to bytes
    _SIZE_MULTIPLIERS: dict[str, int] = {
        "B": 1,
        "KB": 1024,
        "MB": 1024 * 1024,
        "GB": 1024 * 1024 * 1024,
        "TB": 1024 * 1024 * 1024 * 1024,
    }

    @property
    def source(self) -> PackageSource:
        """Return FLATPAK as the package source."""
        return PackageSource.FLATPAK

    def is_available(self) -> bool:
        """Check if flatpak CLI is available."""
        return command_exists("flatpak")

    def enumerate(self, on_diagnostic: DiagnosticSink | None = None) -> Iterator[Package]:
        """Yield installed Flatpak applications.

        Raises:
            BackendError: If flatpak list fails.
        """
        # Format: name, application, version, size, description (tab-separated)
        result = self._list(
            [
                "flatpak",
                "list",
                "--app",
                "--columns=name,application,version,size,description",
            ],
        )

        if not result.success:
            msg = f"flatpak list failed: {result.error_text}"
            raise BackendError(msg)

        for line in result.stdout.splitlines():
            if not line.strip():
                continue

            package = self._parse_flatpak_line(line, on_diagnostic)
            if package is not None:
                yield package

    def _parse_flatpak_line(
        self, line: str, on_diagnostic: DiagnosticSink | None
    ) -> Package | None:
        """Parse a single line of flatpak list output.

        Returns:
            Package if parsing succeeds, None otherwise.
        """
        parts = line.split("\t")
        if len(parts) < 2:
            self._skip(line, f"expected at least 2 columns, got {len(parts)}", on_diagnostic)
            return None

        app_id = parts[1].strip()
        if not app_id:
            self._skip(line, "empty application id", on_diagnostic)
            return None

        # Some apps have no display name; fall back to the id
        name = parts[0].strip() or app_id
        version = parts[2].strip() if len(parts) >= 3 else ""
        size_bytes = self._parse_size(parts[3]) if len(parts) >= 4 else None
        description = parts[4].strip() if len(parts) >= 5 else ""

        return Package(
            source=PackageSource.FLATPAK,
            local_id=app_id,
            name=name,
            version=version,
            size_bytes=size_bytes or 0,
            # Flatpaks are desktop applications by construction
            kind=AppKind.GUI,
            description=description,
            install_path=app_id,
        )

    def _parse_size(self, size_str: str) -> int | None:
        """Parse a human-readable size string to bytes.

        Args:
            size_str: Size string like "1.2 GB", "500 MB", "100 kB".

        Returns:
            Size in bytes, or None if parsing fails.
        """
        if not size_str.strip():
            return None

        match = self._SIZE_PATTERN.match(size_str)
        if not match:
            return None

        try:
            value = float(match.group(1).replace(",", "."))
            unit = match.group(2).upper()
            multiplier = self._SIZE_MULTIPLIERS.get(unit, 1)
            return int(value * multiplier)
        except (ValueError, OverflowError):
            return None

    def check_update(self, package: Package) -> Outcome:
        """Check one application for a pending update."""
        return self.check_updates([package])[package.identity]

    def check_updates(self, packages: Iterable[Package]) -> dict[PackageId, Outcome]:
        """Check a batch of applications with one ``remote-ls --updates`` call."""
        batch = list(packages)
        if not batch:
            return {}

        result = self._query(
            ["flatpak", "remote-ls", "--updates", "--app", "--columns=application,version"]
        )
        if isinstance(result, Outcome):
            return {pkg.identity: result for pkg in batch}
        if not result.success:
            outcome = failed(FailureKind.PROCESS_FAILURE, result.error_text or "remote-ls failed")
            return {pkg.identity: outcome for pkg in batch}

        pending: dict[str, str] = {}
        for line in result.stdout.splitlines():
            parts = line.split("\t")
            if len(parts) >= 1 and parts[0].strip():
                version = parts[1].strip() if len(parts) >= 2 else ""
                # Updates without a version string still count
                pending[parts[0].strip()] = version or "newer"

        return {pkg.identity: succeeded(version=pending.get(pkg.local_id)) for pkg in batch}

    def uninstall(self, package: Package) -> Outcome:
        """Uninstall an application by its id."""
        return self._mutate(
            ["flatpak", "uninstall", "-y", "--noninteractive", package.local_id],
            privileged=False,
        )

    def update(self, package: Package) -> Outcome:
        """Update an application by its id."""
        return self._mutate(
            ["flatpak", "update", "-y", "--noninteractive", package.local_id],
            privileged=False,
        )

"""Scan result model for JSON export.

This module defines the data structure for exporting the unified
inventory to JSON with proper metadata.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from scope.models.package import Package, PackageSource


@dataclass(frozen=True, slots=True)
class ScanMetadata:
    """Metadata for a scan result.

    Attributes:
        timestamp: ISO format timestamp when the scan was performed.
        hostname: Name of the machine that was scanned.
        scope_version: Version of scope that performed the scan.
        generation: Scan generation the packages belong to.
        sources: Package sources that were scanned successfully.
        unavailable: Package sources whose manager is not installed.
    """

    timestamp: str
    hostname: str
    scope_version: str
    generation: int
    sources: tuple[str, ...]
    unavailable: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp,
            "hostname": self.hostname,
            "scope_version": self.scope_version,
            "generation": self.generation,
            "sources": list(self.sources),
            "unavailable": list(self.unavailable),
        }


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Complete scan result for export.

    Attributes:
        metadata: Scan metadata including timestamp and hostname.
        packages: Packages in display order.
        summary: Package counts and total size.
    """

    metadata: ScanMetadata
    packages: list[Package]
    summary: dict[str, int] = field(default_factory=lambda: {})

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "metadata": self.metadata.to_dict(),
            "packages": [package_to_dict(pkg) for pkg in self.packages],
            "summary": self.summary,
        }

    @classmethod
    def create(
        cls,
        packages: list[Package],
        *,
        generation: int,
        sources: Iterable[PackageSource],
        unavailable: Iterable[PackageSource] = (),
    ) -> ScanResult:
        """Create a ScanResult with auto-generated metadata.

        Args:
            packages: Packages to include, already filtered and sorted.
            generation: Scan generation that produced them.
            sources: Sources that were scanned.
            unavailable: Sources that could not be scanned.

        Returns:
            ScanResult with populated metadata and summary.
        """
        import socket

        from scope import __version__

        summary: dict[str, int] = {}
        for pkg in packages:
            summary[pkg.source.value] = summary.get(pkg.source.value, 0) + 1

        summary["total"] = len(packages)
        summary["size_bytes"] = sum(pkg.size_bytes for pkg in packages)
        summary["updates"] = sum(1 for pkg in packages if pkg.update_state.has_update)

        metadata = ScanMetadata(
            timestamp=datetime.now(UTC).isoformat(),
            hostname=socket.gethostname(),
            scope_version=__version__,
            generation=generation,
            sources=tuple(s.value for s in sources),
            unavailable=tuple(s.value for s in unavailable),
        )

        return cls(metadata=metadata, packages=packages, summary=summary)


def package_to_dict(pkg: Package) -> dict[str, Any]:
    """Convert a Package to a dictionary.

    Args:
        pkg: The package to convert.

    Returns:
        Dictionary representation of the package.
    """
    result: dict[str, Any] = {
        "id": str(pkg.identity),
        "name": pkg.name,
        "source": pkg.source.value,
        "version": pkg.version,
        "size_bytes": pkg.size_bytes,
        "kind": pkg.kind.value,
        "update": pkg.update_state.status.value,
    }
    if pkg.update_state.version is not None:
        result["update_version"] = pkg.update_state.version
    if pkg.description:
        result["description"] = pkg.description
    if pkg.install_path is not None:
        result["install_path"] = pkg.install_path
    return result

"""Package models for the unified inventory.

This module defines the canonical data structures that reconcile the
outputs of APT, Snap, Flatpak and AppImage into one schema.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from scope.models.outcome import Outcome


class PackageSource(Enum):
    """Enumeration of supported package sources.

    Declaration order is the order used when sorting by source.
    """

    APT = "apt"
    SNAP = "snap"
    FLATPAK = "flatpak"
    APPIMAGE = "appimage"

    @property
    def label(self) -> str:
        """Human-readable source name."""
        return _SOURCE_LABELS[self]

    @property
    def rank(self) -> int:
        """Position of this source in declaration order."""
        return list(PackageSource).index(self)


_SOURCE_LABELS: dict[PackageSource, str] = {
    PackageSource.APT: "APT",
    PackageSource.SNAP: "Snap",
    PackageSource.FLATPAK: "Flatpak",
    PackageSource.APPIMAGE: "AppImage",
}


class AppKind(Enum):
    """Whether a package provides a graphical or a command-line application."""

    GUI = "gui"
    CLI = "cli"
    UNKNOWN = "unknown"


class UpdateStatus(Enum):
    """Update check status of a package."""

    UNKNOWN = "unknown"
    CHECKING = "checking"
    UP_TO_DATE = "up_to_date"
    UPDATE_AVAILABLE = "update_available"


class ActionStatus(Enum):
    """Status of the last mutation requested for a package."""

    IDLE = "idle"
    PENDING = "pending"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class UpdateState:
    """Update state of a package.

    Attributes:
        status: Current update status.
        version: Available version, set only for UPDATE_AVAILABLE.
    """

    status: UpdateStatus = UpdateStatus.UNKNOWN
    version: str | None = None

    def __post_init__(self) -> None:
        """Validate that a version accompanies UPDATE_AVAILABLE only."""
        if (self.status == UpdateStatus.UPDATE_AVAILABLE) != (self.version is not None):
            msg = "An available update must carry a version, and only then"
            raise ValueError(msg)

    @classmethod
    def unknown(cls) -> UpdateState:
        return cls(UpdateStatus.UNKNOWN)

    @classmethod
    def checking(cls) -> UpdateState:
        return cls(UpdateStatus.CHECKING)

    @classmethod
    def up_to_date(cls) -> UpdateState:
        return cls(UpdateStatus.UP_TO_DATE)

    @classmethod
    def available(cls, version: str) -> UpdateState:
        return cls(UpdateStatus.UPDATE_AVAILABLE, version)

    @property
    def has_update(self) -> bool:
        """Check if an update is available."""
        return self.status == UpdateStatus.UPDATE_AVAILABLE


@dataclass(frozen=True, slots=True)
class ActionState:
    """Mutation state of a package.

    Attributes:
        status: Current action status.
        failure: Outcome of the failed action, set only for FAILED.
    """

    status: ActionStatus = ActionStatus.IDLE
    failure: Outcome | None = None

    @classmethod
    def idle(cls) -> ActionState:
        return cls(ActionStatus.IDLE)

    @classmethod
    def pending(cls) -> ActionState:
        return cls(ActionStatus.PENDING)

    @classmethod
    def failed(cls, outcome: Outcome) -> ActionState:
        return cls(ActionStatus.FAILED, outcome)

    @property
    def is_pending(self) -> bool:
        return self.status == ActionStatus.PENDING

    @property
    def is_failed(self) -> bool:
        return self.status == ActionStatus.FAILED


@dataclass(frozen=True, slots=True)
class PackageId:
    """Stable identity of a package: its manager plus the manager-local id.

    Attributes:
        source: Package manager owning the package.
        local_id: Identifier unique within that manager (package name,
            application id or file path).
    """

    source: PackageSource
    local_id: str

    def __post_init__(self) -> None:
        if not self.local_id:
            msg = "Package local id cannot be empty"
            raise ValueError(msg)

    @property
    def sort_key(self) -> tuple[int, str]:
        """Deterministic ordering key (source rank, local id)."""
        return (self.source.rank, self.local_id)

    def __str__(self) -> str:
        return f"{self.source.value}:{self.local_id}"

    @classmethod
    def parse(cls, text: str) -> PackageId:
        """Parse the ``source:local_id`` form produced by ``str()``.

        Raises:
            ValueError: If the text has no source prefix or the source is unknown.
        """
        source, sep, local_id = text.partition(":")
        if not sep:
            msg = f"Expected 'source:id', got {text!r}"
            raise ValueError(msg)
        return cls(PackageSource(source.lower()), local_id)


@dataclass(frozen=True, slots=True)
class Package:
    """Represents one installed package in the unified inventory.

    This is an immutable record; the store replaces it wholesale when
    any attribute changes.

    Attributes:
        source: Package manager that installed this package.
        local_id: Manager-local identifier.
        name: Display name.
        version: Installed version, in the manager's native format.
        size_bytes: Installed size in bytes (0 when unknown).
        kind: GUI, CLI or unknown.
        description: Human-readable summary (may be empty).
        install_path: Filesystem path or application id, where relevant.
        update_state: Result of the latest update check.
        action_state: State of the latest mutation.
        generation: Scan generation that produced this record.
    """

    source: PackageSource
    local_id: str
    name: str
    version: str
    size_bytes: int = 0
    kind: AppKind = AppKind.UNKNOWN
    description: str = ""
    install_path: str | None = None
    update_state: UpdateState = field(default_factory=UpdateState)
    action_state: ActionState = field(default_factory=ActionState)
    generation: int = 0

    def __post_init__(self) -> None:
        """Validate package data after initialization."""
        if not self.local_id:
            msg = "Package local id cannot be empty"
            raise ValueError(msg)
        if not self.name:
            msg = "Package name cannot be empty"
            raise ValueError(msg)
        if self.size_bytes < 0:
            msg = f"Package size cannot be negative, got {self.size_bytes}"
            raise ValueError(msg)

    @property
    def identity(self) -> PackageId:
        """Return the stable identity of this package."""
        return PackageId(self.source, self.local_id)

    @property
    def size_human(self) -> str:
        """Return human-readable size string using binary units."""
        return format_bytes(self.size_bytes)

    def with_generation(self, generation: int) -> Package:
        """Return a copy tagged with the given scan generation."""
        return replace(self, generation=generation)


def format_bytes(size_bytes: int) -> str:
    """Format a byte count with binary units ("-" when zero or unknown).

    Example:
        >>> format_bytes(744_488_960)
        '710.0 MiB'
    """
    if size_bytes <= 0:
        return "-"

    size = float(size_bytes)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TiB"

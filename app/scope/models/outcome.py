"""Outcome models for backend operations.

Every uninstall, update and update check returns an Outcome instead of
raising, so a failure stays local to the package it concerns.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureKind(Enum):
    """Typed reason for a failed backend operation.

    Attributes:
        ADAPTER_UNAVAILABLE: The package manager is not installed on this host.
        PARSE_ERROR: A record in the manager's output could not be parsed.
        PERMISSION_DENIED: The operation needs privileges that were refused.
        PROCESS_FAILURE: The external command exited with a non-zero status.
        TIMEOUT: The external command exceeded its time bound.
        UNSUPPORTED: The manager does not offer this operation.
        NOT_FOUND: No package with the requested identity is in the inventory.
        INVALID_STATE: The package is not in a state that allows the operation.
        IN_PROGRESS: Another action is already pending for the package.
    """

    ADAPTER_UNAVAILABLE = "adapter_unavailable"
    PARSE_ERROR = "parse_error"
    PERMISSION_DENIED = "permission_denied"
    PROCESS_FAILURE = "process_failure"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    IN_PROGRESS = "in_progress"

    @property
    def is_process_failure(self) -> bool:
        """Check if this kind counts as a process failure for state purposes."""
        return self in (FailureKind.PROCESS_FAILURE, FailureKind.TIMEOUT)


@dataclass(frozen=True, slots=True)
class Outcome:
    """Result of one backend operation on one package.

    Attributes:
        success: Whether the operation completed successfully.
        kind: Failure kind, None on success.
        message: Human-readable detail (error text on failure).
        version: Version reported by an update check, if any.
    """

    success: bool
    kind: FailureKind | None = None
    message: str | None = None
    version: str | None = None

    def __post_init__(self) -> None:
        """Validate that failures carry a kind and successes do not."""
        if self.success and self.kind is not None:
            msg = "A successful outcome cannot carry a failure kind"
            raise ValueError(msg)
        if not self.success and self.kind is None:
            msg = "A failed outcome must carry a failure kind"
            raise ValueError(msg)

    @property
    def failed(self) -> bool:
        """Check if the operation failed."""
        return not self.success

    @property
    def is_unsupported(self) -> bool:
        return self.kind == FailureKind.UNSUPPORTED

    @property
    def reason(self) -> str:
        """Short description suitable for display."""
        if self.success:
            return self.message or "ok"
        assert self.kind is not None
        label = self.kind.value.replace("_", " ")
        return f"{label}: {self.message}" if self.message else label


def succeeded(message: str | None = None, *, version: str | None = None) -> Outcome:
    """Create a successful outcome.

    Args:
        message: Optional success message.
        version: Version reported by an update check (None = up to date).

    Returns:
        Outcome with success=True.
    """
    return Outcome(success=True, message=message, version=version)


def failed(kind: FailureKind, message: str | None = None) -> Outcome:
    """Create a failed outcome of the given kind."""
    return Outcome(success=False, kind=kind, message=message)


def unsupported(message: str) -> Outcome:
    """Create an outcome reporting an operation the manager does not offer."""
    return Outcome(success=False, kind=FailureKind.UNSUPPORTED, message=message)

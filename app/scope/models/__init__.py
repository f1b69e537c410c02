"""Data models for scope.

This module exports the core data structures used throughout the application.
"""

from scope.models.outcome import FailureKind, Outcome, failed, succeeded, unsupported
from scope.models.package import (
    ActionState,
    ActionStatus,
    AppKind,
    Package,
    PackageId,
    PackageSource,
    UpdateState,
    UpdateStatus,
    format_bytes,
)
from scope.models.scan_result import ScanMetadata, ScanResult, package_to_dict

__all__ = [
    "ActionState",
    "ActionStatus",
    "AppKind",
    "FailureKind",
    "Outcome",
    "Package",
    "PackageId",
    "PackageSource",
    "ScanMetadata",
    "ScanResult",
    "UpdateState",
    "UpdateStatus",
    "failed",
    "format_bytes",
    "package_to_dict",
    "succeeded",
    "unsupported",
]

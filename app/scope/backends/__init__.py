"""Package backends for different package managers.

Each backend wraps one package manager behind the Backend interface:
enumerate installed packages, uninstall, check for updates and update.
"""

from scope.backends.appimage import AppImageBackend
from scope.backends.apt import AptBackend
from scope.backends.base import (
    Backend,
    BackendError,
    BackendUnavailableError,
    DiagnosticSink,
    ParseDiagnostic,
)
from scope.backends.flatpak import FlatpakBackend
from scope.backends.snap import SnapBackend

__all__ = [
    "AppImageBackend",
    "AptBackend",
    "Backend",
    "BackendError",
    "BackendUnavailableError",
    "DiagnosticSink",
    "FlatpakBackend",
    "ParseDiagnostic",
    "SnapBackend",
]

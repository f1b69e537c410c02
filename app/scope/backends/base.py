"""Abstract base class for package backends.

This module defines the Backend interface that every package manager
integration implements: enumerate installed packages, uninstall, check
for an update and update. It also hosts the shared process handling that
turns command results into typed outcomes.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

from scope.models.outcome import FailureKind, Outcome, failed, succeeded
from scope.models.package import Package, PackageId, PackageSource
from scope.utils.shell import CommandResult, run_command

logger = logging.getLogger(__name__)

# Exit codes pkexec uses when authentication is dismissed or refused
_PKEXEC_DENIED_CODES: frozenset[int] = frozenset({126, 127})

# Fragments of error output that indicate missing privileges
_PERMISSION_MARKERS: tuple[str, ...] = (
    "permission denied",
    "not authorized",
    "not authorised",
    "authentication",
    "are you root",
    "a password is required",
    "sudoers",
    "access denied",
    "operation not permitted",
)


class BackendError(Exception):
    """Raised when a backend cannot list its packages."""


class BackendUnavailableError(BackendError):
    """Raised when the package manager is not installed on this system."""


@dataclass(frozen=True, slots=True)
class ParseDiagnostic:
    """A record skipped during enumeration.

    Attributes:
        source: Backend that produced the record.
        record: The offending line or path (truncated).
        reason: Why the record was skipped.
    """

    source: PackageSource
    record: str
    reason: str


DiagnosticSink = Callable[[ParseDiagnostic], None]


class Backend(ABC):
    """Abstract base class for all package backends.

    Backends are stateless apart from their settings: every call starts
    the external commands it needs and returns when they have finished.

    Attributes:
        privilege_command: Helper prepended to privileged mutations.
        list_timeout: Timeout for listing and update-check commands.
        mutation_timeout: Timeout for uninstall and update commands.

    Example:
        >>> backend = AptBackend()
        >>> if backend.is_available():
        ...     for pkg in backend.enumerate():
        ...         print(f"{pkg.name}: {pkg.version}")
    """

    def __init__(
        self,
        *,
        privilege_command: str = "pkexec",
        list_timeout: float = 60.0,
        mutation_timeout: float = 300.0,
    ) -> None:
        self._privilege_command = privilege_command
        self._list_timeout = list_timeout
        self._mutation_timeout = mutation_timeout

    @property
    def privilege_command(self) -> str:
        return self._privilege_command

    @property
    @abstractmethod
    def source(self) -> PackageSource:
        """Return the package source this backend handles."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this package manager is available on the system.

        Returns:
            True if the package manager can be used, False otherwise.
        """

    @abstractmethod
    def enumerate(self, on_diagnostic: DiagnosticSink | None = None) -> Iterator[Package]:
        """Yield installed packages in the manager's native order.

        The sequence is lazy and finite; calling this again starts a
        fresh listing. Malformed records are skipped and reported to
        ``on_diagnostic``.

        Args:
            on_diagnostic: Optional callback receiving skipped records.

        Yields:
            Package for each installed package (generation 0).

        Raises:
            BackendUnavailableError: If the package manager is missing.
            BackendError: If the listing command fails as a whole.
        """

    @abstractmethod
    def uninstall(self, package: Package) -> Outcome:
        """Remove one package."""

    @abstractmethod
    def check_update(self, package: Package) -> Outcome:
        """Check whether a newer version of one package is available.

        Returns:
            Successful Outcome whose ``version`` is the available version,
            or None when the package is up to date; a failed Outcome otherwise.
        """

    @abstractmethod
    def update(self, package: Package) -> Outcome:
        """Update one package to the newest available version."""

    def check_updates(self, packages: Iterable[Package]) -> dict[PackageId, Outcome]:
        """Check a batch of packages for updates.

        Backends whose manager lists all pending updates in one call
        override this to avoid one process per package.

        Args:
            packages: Packages owned by this backend.

        Returns:
            Mapping of package identity to its check outcome.
        """
        return {pkg.identity: self.check_update(pkg) for pkg in packages}

    # ------------------------------------------------------------------
    # Shared process handling
    # ------------------------------------------------------------------

    def _list(self, args: list[str]) -> CommandResult:
        """Run a read-only listing command.

        Raises:
            BackendUnavailableError: If the executable is missing.
            BackendError: If the command times out.
        """
        try:
            return run_command(args, timeout=self._list_timeout)
        except FileNotFoundError as e:
            msg = f"{args[0]} is not installed"
            raise BackendUnavailableError(msg) from e
        except subprocess.TimeoutExpired as e:
            msg = f"{args[0]} timed out after {self._list_timeout:.0f}s"
            raise BackendError(msg) from e

    def _query(self, args: list[str]) -> CommandResult | Outcome:
        """Run a read-only query used by update checks.

        Returns:
            The CommandResult, or a failed Outcome if the command could
            not be run to completion.
        """
        try:
            return run_command(args, timeout=self._list_timeout)
        except FileNotFoundError:
            return failed(FailureKind.ADAPTER_UNAVAILABLE, f"{args[0]} is not installed")
        except subprocess.TimeoutExpired:
            return failed(
                FailureKind.TIMEOUT, f"{args[0]} timed out after {self._list_timeout:.0f}s"
            )

    def _mutate(self, args: list[str], *, privileged: bool = True) -> Outcome:
        """Run a mutating command and translate its result.

        Args:
            args: Command and arguments (without privilege helper).
            privileged: Prepend the configured privilege helper.

        Returns:
            Outcome describing success or the typed failure.
        """
        full_args = [self._privilege_command, *args] if privileged else list(args)

        logger.info("Running %s", " ".join(full_args))
        try:
            result = run_command(full_args, timeout=self._mutation_timeout)
        except FileNotFoundError:
            return failed(FailureKind.ADAPTER_UNAVAILABLE, f"{full_args[0]} is not installed")
        except subprocess.TimeoutExpired:
            logger.warning("%s timed out after %.0fs", full_args[0], self._mutation_timeout)
            return failed(
                FailureKind.TIMEOUT,
                f"{args[0]} timed out after {self._mutation_timeout:.0f}s",
            )

        if result.success:
            return succeeded("Operation completed")

        return failed(self._classify_failure(result, privileged), result.error_text or None)

    def _classify_failure(self, result: CommandResult, privileged: bool) -> FailureKind:
        """Tell permission problems apart from other non-zero exits."""
        if (
            privileged
            and self._privilege_command == "pkexec"
            and result.returncode in _PKEXEC_DENIED_CODES
        ):
            return FailureKind.PERMISSION_DENIED

        text = result.error_text.lower()
        if any(marker in text for marker in _PERMISSION_MARKERS):
            return FailureKind.PERMISSION_DENIED

        return FailureKind.PROCESS_FAILURE

    def _skip(self, record: str, reason: str, on_diagnostic: DiagnosticSink | None) -> None:
        """Record a skipped record."""
        logger.debug("Skipping %s record (%s): %r", self.source.value, reason, record[:100])
        if on_diagnostic is not None:
            on_diagnostic(ParseDiagnostic(self.source, record[:200], reason))

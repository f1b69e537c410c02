"""Application core: owns the inventory and exposes the action dispatcher.

The presentation layer (interactive prompt, one-shot CLI commands) talks
to ScopeApp only through ``dispatch()`` and ``snapshot()``. ScopeApp owns
the store, its writer, the scan coordinator, the action executor, the
view configuration and the selection.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from types import TracebackType

from scope.backends.base import Backend
from scope.core.config import ScopeConfig
from scope.core.coordinator import ScanCoordinator, ScanStatus
from scope.core.executor import ActionExecutor, get_backends
from scope.core.query import KindFilter, SortKey, ViewConfig, query
from scope.core.store import PackageStore, StoreWriter
from scope.models.outcome import FailureKind, Outcome
from scope.models.package import Package, PackageId, PackageSource

logger = logging.getLogger(__name__)


# =============================================================================
# Actions
# =============================================================================


@dataclass(frozen=True, slots=True)
class MoveSelection:
    """Move the selection by ``delta`` rows (clamped to the visible rows)."""

    delta: int


@dataclass(frozen=True, slots=True)
class SetSourceFilter:
    """Show only the given sources; None shows all."""

    sources: frozenset[PackageSource] | None


@dataclass(frozen=True, slots=True)
class SetKindFilter:
    kind: KindFilter


@dataclass(frozen=True, slots=True)
class SetSearchText:
    text: str


@dataclass(frozen=True, slots=True)
class SetSortKey:
    key: SortKey


@dataclass(frozen=True, slots=True)
class ToggleSortDirection:
    pass


@dataclass(frozen=True, slots=True)
class RequestRefresh:
    """Start a new scan; with ``wait`` the dispatch returns once it settled."""

    wait: bool = False


@dataclass(frozen=True, slots=True)
class RequestUninstall:
    identity: PackageId


@dataclass(frozen=True, slots=True)
class RequestCheckUpdates:
    """Check for updates; None checks the currently visible rows."""

    identities: tuple[PackageId, ...] | None = None


@dataclass(frozen=True, slots=True)
class RequestUpdate:
    identity: PackageId


@dataclass(frozen=True, slots=True)
class Quit:
    pass


Action = (
    MoveSelection
    | SetSourceFilter
    | SetKindFilter
    | SetSearchText
    | SetSortKey
    | ToggleSortDirection
    | RequestRefresh
    | RequestUninstall
    | RequestCheckUpdates
    | RequestUpdate
    | Quit
)


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True, slots=True)
class ViewSnapshot:
    """Everything the presentation layer needs to draw one frame.

    Attributes:
        rows: Visible packages in display order.
        selected: Index of the selected row (0 when there are no rows).
        config: View configuration that produced the rows.
        scan: Progress of the latest scan generation.
        totals: Number of stored packages per source (ignoring filters).
        message: Result of the last action, for the status line.
        quit: Whether the user asked to quit.
    """

    rows: tuple[Package, ...]
    selected: int
    config: ViewConfig
    scan: ScanStatus
    totals: dict[PackageSource, int]
    message: str | None = None
    quit: bool = False

    @property
    def selected_package(self) -> Package | None:
        if not self.rows:
            return None
        return self.rows[self.selected]

    @property
    def total_size(self) -> int:
        """Combined size of the visible rows in bytes."""
        return sum(pkg.size_bytes for pkg in self.rows)


@dataclass(frozen=True, slots=True)
class ActionError:
    """A reportable failure of a dispatched action.

    Attributes:
        kind: Typed failure reason.
        message: Human-readable detail.
        identity: Package the action was about, if any.
    """

    kind: FailureKind
    message: str
    identity: PackageId | None = None

    @classmethod
    def from_outcome(cls, outcome: Outcome, identity: PackageId | None = None) -> ActionError:
        assert outcome.kind is not None
        return cls(outcome.kind, outcome.reason, identity)


# =============================================================================
# Application core
# =============================================================================


class ScopeApp:
    """The unified package inventory and its single action entry point.

    Must be used inside a running event loop, preferably as an async
    context manager:

    Example:
        >>> async with ScopeApp(config) as app:
        ...     await app.dispatch(RequestRefresh(wait=True))
        ...     view = await app.dispatch(SetSearchText("chr"))

    Args:
        config: Effective configuration. Defaults to ScopeConfig().
        backends: Backend per source. Defaults to the configured backends.
    """

    def __init__(
        self,
        config: ScopeConfig | None = None,
        backends: Mapping[PackageSource, Backend] | None = None,
    ) -> None:
        self._config = config or ScopeConfig()
        if backends is None:
            backends = get_backends(self._config)

        self._store = PackageStore()
        self._writer = StoreWriter(self._store)
        self._coordinator = ScanCoordinator(self._writer, backends)
        self._executor = ActionExecutor(self._writer, backends)

        self._view = ViewConfig()
        self._selected_index = 0
        self._selected_id: PackageId | None = None
        self._message: str | None = None
        self._quit = False

    async def __aenter__(self) -> ScopeApp:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def config(self) -> ScopeConfig:
        return self._config

    @property
    def store(self) -> PackageStore:
        """Read-only access to the inventory."""
        return self._store

    @property
    def executor(self) -> ActionExecutor:
        """Direct access to mutations, for batch operations outside the action set."""
        return self._executor

    @property
    def view_config(self) -> ViewConfig:
        return self._view

    @property
    def scan_status(self) -> ScanStatus:
        return self._coordinator.status

    async def start(self) -> None:
        """Start the store writer."""
        self._writer.start()

    async def close(self) -> None:
        """Wait for running scans and pending store messages, then stop."""
        await self._coordinator.close()
        await self._writer.stop()

    async def wait_settled(self) -> ScanStatus:
        """Wait until the latest scan generation has settled."""
        return await self._coordinator.wait_settled()

    def snapshot(self) -> ViewSnapshot:
        """Derive the current view from the store and view configuration."""
        rows = tuple(query(self._store.snapshot(), self._view))
        selected = self._reconcile_selection(rows)
        return ViewSnapshot(
            rows=rows,
            selected=selected,
            config=self._view,
            scan=self._coordinator.status,
            totals=self._store.count_by_source(),
            message=self._message,
            quit=self._quit,
        )

    def _reconcile_selection(self, rows: tuple[Package, ...]) -> int:
        """Keep the selected package selected while rows move around."""
        if not rows:
            self._selected_index = 0
            self._selected_id = None
            return 0

        if self._selected_id is not None:
            for index, pkg in enumerate(rows):
                if pkg.identity == self._selected_id:
                    self._selected_index = index
                    return index

        # The selected package is gone: keep the position instead
        self._selected_index = min(max(self._selected_index, 0), len(rows) - 1)
        self._selected_id = rows[self._selected_index].identity
        return self._selected_index

    async def dispatch(self, action: Action) -> ViewSnapshot | ActionError:
        """Apply one user action.

        Returns:
            The updated view, or an ActionError describing why the action
            failed. Failures never raise.
        """
        self._message = None
        error: ActionError | None = None

        if isinstance(action, MoveSelection):
            rows = tuple(query(self._store.snapshot(), self._view))
            if rows:
                current = self._reconcile_selection(rows)
                self._selected_index = min(max(current + action.delta, 0), len(rows) - 1)
                self._selected_id = rows[self._selected_index].identity

        elif isinstance(action, SetSourceFilter):
            self._view = self._view.with_sources(action.sources)

        elif isinstance(action, SetKindFilter):
            self._view = replace(self._view, kind_filter=action.kind)

        elif isinstance(action, SetSearchText):
            self._view = replace(self._view, search_text=action.text)
            # A new search starts at the best match
            self._selected_index = 0
            self._selected_id = None

        elif isinstance(action, SetSortKey):
            self._view = replace(self._view, sort_key=action.key)

        elif isinstance(action, ToggleSortDirection):
            self._view = replace(
                self._view, sort_direction=self._view.sort_direction.toggled()
            )

        elif isinstance(action, RequestRefresh):
            status = await self._coordinator.refresh()
            if action.wait:
                status = await self._coordinator.wait_settled()
                self._message = f"Scan {status.generation} finished"
            else:
                self._message = f"Scan {status.generation} started"

        elif isinstance(action, RequestUninstall):
            outcome = await self._executor.uninstall(action.identity)
            if outcome.failed:
                error = ActionError.from_outcome(outcome, action.identity)
            else:
                self._message = f"Removed {action.identity.local_id}"

        elif isinstance(action, RequestCheckUpdates):
            error = await self._check_updates(action.identities)

        elif isinstance(action, RequestUpdate):
            outcome = await self._executor.update(action.identity)
            if outcome.failed:
                error = ActionError.from_outcome(outcome, action.identity)
            else:
                self._message = f"Updated {action.identity.local_id}"

        elif isinstance(action, Quit):
            self._quit = True

        else:
            msg = f"Unknown action: {action!r}"
            raise TypeError(msg)

        if error is not None:
            logger.debug("Action %s failed: %s", type(action).__name__, error.message)
            return error
        return self.snapshot()

    async def _check_updates(self, identities: tuple[PackageId, ...] | None) -> ActionError | None:
        if identities is None:
            identities = tuple(pkg.identity for pkg in query(self._store.snapshot(), self._view))

        outcomes = await self._executor.check_updates(identities)

        available = sum(1 for o in outcomes.values() if o.success and o.version)
        hard_failures = [
            (pid, o) for pid, o in outcomes.items() if o.failed and not o.is_unsupported
        ]
        self._message = f"{available} update(s) available"

        # A single explicitly requested package reports its own failure
        if len(outcomes) == 1 and hard_failures:
            pid, outcome = hard_failures[0]
            return ActionError.from_outcome(outcome, pid)
        if hard_failures:
            self._message += f", {len(hard_failures)} check(s) failed"
        return None

"""One-shot inventory sessions for non-interactive commands.

Runs a ScopeApp on a private event loop: scan every requested source,
optionally check for updates, and return the resulting view.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping

from scope.backends.base import Backend
from scope.core.app import (
    Action,
    ActionError,
    RequestCheckUpdates,
    RequestRefresh,
    ScopeApp,
    SetKindFilter,
    SetSearchText,
    SetSortKey,
    SetSourceFilter,
    ToggleSortDirection,
    ViewSnapshot,
)
from scope.core.config import ScopeConfig
from scope.core.query import ViewConfig
from scope.models.outcome import Outcome
from scope.models.package import Package, PackageSource

logger = logging.getLogger(__name__)

UpdateResults = list[tuple[Package, Outcome]]


async def _scan(app: ScopeApp, check_updates: bool) -> list[ActionError]:
    errors: list[ActionError] = []
    await app.dispatch(RequestRefresh(wait=True))

    if check_updates:
        identities = tuple(pkg.identity for pkg in app.store.snapshot())
        result = await app.dispatch(RequestCheckUpdates(identities))
        if isinstance(result, ActionError):
            errors.append(result)
    return errors


async def _collect(
    config: ScopeConfig,
    backends: Mapping[PackageSource, Backend],
    view: ViewConfig,
    check_updates: bool,
) -> tuple[ViewSnapshot, list[ActionError]]:
    async with ScopeApp(config, backends) as app:
        errors = await _scan(app, check_updates)

        for action in _view_actions(app.view_config, view):
            await app.dispatch(action)
        snapshot = app.snapshot()
        logger.debug(
            "Inventory holds %d package(s), %d visible", len(app.store), len(snapshot.rows)
        )
    return snapshot, errors


async def _update_available(
    config: ScopeConfig,
    backends: Mapping[PackageSource, Backend],
    confirm: Callable[[list[Package]], bool],
) -> tuple[ViewSnapshot, list[ActionError], UpdateResults]:
    async with ScopeApp(config, backends) as app:
        errors = await _scan(app, check_updates=True)
        snapshot = app.snapshot()

        candidates = [pkg for pkg in snapshot.rows if pkg.update_state.has_update]
        # The prompt blocks on stdin
        if not candidates or not await asyncio.to_thread(confirm, candidates):
            return snapshot, errors, []

        logger.info("Updating %d package(s)", len(candidates))
        outcomes = await app.executor.update_many(pkg.identity for pkg in candidates)
        results = [(pkg, outcomes[pkg.identity]) for pkg in candidates]
        snapshot = app.snapshot()
    return snapshot, errors, results


def _view_actions(current: ViewConfig, wanted: ViewConfig) -> list[Action]:
    """Actions that turn one view configuration into another."""
    actions: list[Action] = []
    if wanted.source_filter != current.source_filter:
        actions.append(SetSourceFilter(wanted.source_filter))
    if wanted.kind_filter != current.kind_filter:
        actions.append(SetKindFilter(wanted.kind_filter))
    if wanted.search_text != current.search_text:
        actions.append(SetSearchText(wanted.search_text))
    if wanted.sort_key != current.sort_key:
        actions.append(SetSortKey(wanted.sort_key))
    if wanted.sort_direction != current.sort_direction:
        actions.append(ToggleSortDirection())
    return actions


def collect_inventory(
    config: ScopeConfig,
    backends: Mapping[PackageSource, Backend],
    view: ViewConfig | None = None,
    *,
    check_updates: bool = False,
) -> tuple[ViewSnapshot, list[ActionError]]:
    """Scan the given backends once and return the resulting view.

    Args:
        config: Effective configuration.
        backends: Backends to scan.
        view: View configuration (filters, search, sort).
        check_updates: Also check every scanned package for updates.

    Returns:
        The view snapshot and any reportable errors.
    """
    return asyncio.run(_collect(config, backends, view or ViewConfig(), check_updates))


def update_available(
    config: ScopeConfig,
    backends: Mapping[PackageSource, Backend],
    confirm: Callable[[list[Package]], bool],
) -> tuple[ViewSnapshot, list[ActionError], UpdateResults]:
    """Scan, check for updates, and update every outdated package.

    Updates of packages from the same manager run one after another;
    different managers update concurrently.

    Args:
        config: Effective configuration.
        backends: Backends to scan and update.
        confirm: Called with the outdated packages; nothing is updated
            unless it returns True.

    Returns:
        The final view, reportable errors, and one outcome per attempted update.
    """
    return asyncio.run(_update_available(config, backends, confirm))

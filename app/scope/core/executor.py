"""Action execution against the owning package backend.

Provides the backend factory and the ActionExecutor, which routes
uninstall, update and update-check requests to the right backend, tracks
per-package action state and applies the resulting store mutations
through the store writer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING

from scope.backends.appimage import AppImageBackend, default_search_dirs
from scope.backends.apt import AptBackend
from scope.backends.base import Backend
from scope.backends.flatpak import FlatpakBackend
from scope.backends.snap import SnapBackend
from scope.core.store import PatchPackage, RemovePackage, StoreWriter
from scope.models.outcome import FailureKind, Outcome, failed
from scope.models.package import ActionState, Package, PackageId, PackageSource, UpdateState

if TYPE_CHECKING:
    from scope.core.config import ScopeConfig

logger = logging.getLogger(__name__)


def get_backends(
    config: ScopeConfig, sources: Iterable[PackageSource] | None = None
) -> dict[PackageSource, Backend]:
    """Get backend instances for the enabled sources.

    Args:
        config: Effective configuration (timeouts, privilege helper, ...).
        sources: Sources to include. Defaults to the configured sources.

    Returns:
        Mapping of package source to backend instance, in source order.
    """
    wanted = set(sources if sources is not None else config.sources)
    backends: dict[PackageSource, Backend] = {}

    if PackageSource.APT in wanted:
        backends[PackageSource.APT] = AptBackend(
            privilege_command=config.privilege_command,
            list_timeout=config.list_timeout,
            mutation_timeout=config.mutation_timeout,
        )

    if PackageSource.SNAP in wanted:
        backends[PackageSource.SNAP] = SnapBackend(
            privilege_command=config.privilege_command,
            list_timeout=config.list_timeout,
            mutation_timeout=config.mutation_timeout,
        )

    if PackageSource.FLATPAK in wanted:
        backends[PackageSource.FLATPAK] = FlatpakBackend(
            privilege_command=config.privilege_command,
            list_timeout=config.list_timeout,
            mutation_timeout=config.mutation_timeout,
        )

    if PackageSource.APPIMAGE in wanted:
        backends[PackageSource.APPIMAGE] = AppImageBackend(
            search_dirs=[*default_search_dirs(), *config.appimage_dirs],
            max_depth=config.appimage_max_depth,
            list_timeout=config.list_timeout,
            mutation_timeout=config.mutation_timeout,
        )

    return backends


class ActionExecutor:
    """Performs uninstall, update and update checks on stored packages.

    Mutations of one package manager share a lock, so an uninstall and an
    update on the same manager never run at the same time; different
    managers proceed concurrently. Every request resolves to an Outcome;
    nothing here raises for an expected failure.

    Args:
        writer: The store writer (read access to the store included).
        backends: Backend per package source.
    """

    def __init__(self, writer: StoreWriter, backends: Mapping[PackageSource, Backend]) -> None:
        self._writer = writer
        self._backends = dict(backends)
        self._locks: dict[PackageSource, asyncio.Lock] = {}
        self._in_flight: set[PackageId] = set()

    def _lock(self, source: PackageSource) -> asyncio.Lock:
        lock = self._locks.get(source)
        if lock is None:
            lock = self._locks[source] = asyncio.Lock()
        return lock

    def _resolve(self, identity: PackageId) -> tuple[Package, Backend] | Outcome:
        """Look up a package and its backend, or explain why not."""
        package = self._writer.store.get(identity)
        if package is None:
            return failed(FailureKind.NOT_FOUND, f"{identity} is not in the inventory")
        if identity in self._in_flight or package.action_state.is_pending:
            return failed(FailureKind.IN_PROGRESS, f"An action is already pending for {identity}")
        backend = self._backends.get(identity.source)
        if backend is None:
            return failed(
                FailureKind.ADAPTER_UNAVAILABLE, f"{identity.source.label} backend is disabled"
            )
        return package, backend

    async def uninstall(self, identity: PackageId) -> Outcome:
        """Uninstall a package.

        The package is marked Pending, removed from the store on success,
        and marked Failed (otherwise unchanged) on failure.
        """
        resolved = self._resolve(identity)
        if isinstance(resolved, Outcome):
            return resolved
        package, backend = resolved

        self._in_flight.add(identity)
        try:
            await self._writer.apply(PatchPackage(identity, action_state=ActionState.pending()))
            async with self._lock(identity.source):
                outcome = await self._call(backend.uninstall, package)

            if outcome.success:
                logger.info("Uninstalled %s", identity)
                await self._writer.apply(RemovePackage(identity))
            else:
                logger.warning("Uninstalling %s failed: %s", identity, outcome.reason)
                await self._writer.apply(
                    PatchPackage(identity, action_state=ActionState.failed(outcome))
                )
        finally:
            self._in_flight.discard(identity)
        return outcome

    async def update(self, identity: PackageId) -> Outcome:
        """Update a package that has an update available.

        On success the package becomes UpToDate and Idle and takes the
        updated version; on failure it is marked Failed and keeps its
        update state.
        """
        resolved = self._resolve(identity)
        if isinstance(resolved, Outcome):
            return resolved
        package, backend = resolved

        if not package.update_state.has_update:
            return failed(FailureKind.INVALID_STATE, f"No update is available for {identity}")
        new_version = package.update_state.version

        self._in_flight.add(identity)
        try:
            await self._writer.apply(PatchPackage(identity, action_state=ActionState.pending()))
            async with self._lock(identity.source):
                outcome = await self._call(backend.update, package)

            if outcome.success:
                logger.info("Updated %s to %s", identity, new_version)
                await self._writer.apply(
                    PatchPackage(
                        identity,
                        update_state=UpdateState.up_to_date(),
                        action_state=ActionState.idle(),
                        version=new_version,
                    )
                )
            else:
                logger.warning("Updating %s failed: %s", identity, outcome.reason)
                await self._writer.apply(
                    PatchPackage(identity, action_state=ActionState.failed(outcome))
                )
        finally:
            self._in_flight.discard(identity)
        return outcome

    async def update_many(self, identities: Iterable[PackageId]) -> dict[PackageId, Outcome]:
        """Update several packages.

        Updates of one manager run one after another in the given order;
        different managers run concurrently.
        """
        ordered = list(dict.fromkeys(identities))
        outcomes = await asyncio.gather(*(self.update(identity) for identity in ordered))
        return dict(zip(ordered, outcomes, strict=True))

    async def check_updates(self, identities: Iterable[PackageId]) -> dict[PackageId, Outcome]:
        """Check packages for available updates.

        Packages are marked Checking, then each manager is queried once for
        its batch, all managers concurrently. A failed or unsupported check
        resets that package to Unknown.

        Returns:
            Check outcome per requested identity.
        """
        outcomes: dict[PackageId, Outcome] = {}
        batches: dict[PackageSource, list[Package]] = {}

        for identity in dict.fromkeys(identities):
            package = self._writer.store.get(identity)
            if package is None:
                outcomes[identity] = failed(
                    FailureKind.NOT_FOUND, f"{identity} is not in the inventory"
                )
                continue
            if identity.source not in self._backends:
                outcomes[identity] = failed(
                    FailureKind.ADAPTER_UNAVAILABLE,
                    f"{identity.source.label} backend is disabled",
                )
                continue
            batches.setdefault(identity.source, []).append(package)

        for batch in batches.values():
            for package in batch:
                self._writer.submit(
                    PatchPackage(package.identity, update_state=UpdateState.checking())
                )

        results = await asyncio.gather(
            *(self._check_batch(source, batch) for source, batch in batches.items())
        )

        for batch_outcomes in results:
            for identity, outcome in batch_outcomes.items():
                if outcome.success and outcome.version:
                    state = UpdateState.available(outcome.version)
                elif outcome.success:
                    state = UpdateState.up_to_date()
                else:
                    state = UpdateState.unknown()
                self._writer.submit(PatchPackage(identity, update_state=state))
                outcomes[identity] = outcome

        await self._writer.drain()

        available = sum(1 for o in outcomes.values() if o.success and o.version)
        logger.debug("Checked %d package(s), %d update(s) available", len(outcomes), available)
        return outcomes

    async def _check_batch(
        self, source: PackageSource, batch: list[Package]
    ) -> dict[PackageId, Outcome]:
        backend = self._backends[source]
        try:
            results = await asyncio.to_thread(backend.check_updates, batch)
        except Exception as e:
            logger.exception("Update check for %s failed", source.label)
            outcome = failed(FailureKind.PROCESS_FAILURE, str(e) or type(e).__name__)
            return {pkg.identity: outcome for pkg in batch}

        missing = failed(FailureKind.PARSE_ERROR, "No result reported")
        return {pkg.identity: results.get(pkg.identity, missing) for pkg in batch}

    @staticmethod
    async def _call(operation: Callable[[Package], Outcome], package: Package) -> Outcome:
        """Run a blocking backend operation in a worker thread."""
        try:
            return await asyncio.to_thread(operation, package)
        except Exception as e:
            logger.exception("Backend operation on %s raised", package.identity)
            return failed(FailureKind.PROCESS_FAILURE, str(e) or type(e).__name__)

"""Package store and its single serialized writer.

The PackageStore is the authoritative inventory: a mapping keyed by
package identity. It is only ever mutated by the StoreWriter, which
applies messages submitted by scan workers and the action executor one
at a time, in submission order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace

from scope.models.package import ActionState, Package, PackageId, PackageSource, UpdateState

logger = logging.getLogger(__name__)


class PackageStore:
    """Authoritative inventory keyed by package identity.

    Records are accepted only from the active scan generation. Identities
    removed by an uninstall are remembered against the generation that was
    active at the time, so listings captured before the removal cannot
    bring them back.
    """

    def __init__(self) -> None:
        self._packages: dict[PackageId, Package] = {}
        self._active_generation = 0
        self._tombstones: dict[PackageId, int] = {}

    @property
    def active_generation(self) -> int:
        return self._active_generation

    def __len__(self) -> int:
        return len(self._packages)

    def __contains__(self, identity: object) -> bool:
        return identity in self._packages

    def __iter__(self) -> Iterator[Package]:
        return iter(self._packages.values())

    def get(self, identity: PackageId) -> Package | None:
        return self._packages.get(identity)

    def snapshot(self) -> tuple[Package, ...]:
        """Return an immutable view of all records."""
        return tuple(self._packages.values())

    def count_by_source(self) -> dict[PackageSource, int]:
        """Count records per package source (every source present, possibly 0)."""
        counts = dict.fromkeys(PackageSource, 0)
        for pkg in self._packages.values():
            counts[pkg.source] += 1
        return counts

    def begin_generation(self) -> int:
        """Start a new scan generation and return its number."""
        self._active_generation += 1
        logger.debug("Scan generation %d started", self._active_generation)
        return self._active_generation

    def merge(self, package: Package) -> bool:
        """Insert or replace a record produced by the active generation.

        The update and action state of an existing record survive the
        merge, since a rescan says nothing about them.

        Returns:
            True if the record was stored, False if it was discarded.
        """
        if package.generation != self._active_generation:
            return False

        identity = package.identity
        removed_in = self._tombstones.get(identity)
        if removed_in is not None:
            if package.generation <= removed_in:
                return False
            del self._tombstones[identity]

        existing = self._packages.get(identity)
        if existing is not None:
            package = replace(
                package,
                update_state=existing.update_state,
                action_state=existing.action_state,
            )
        self._packages[identity] = package
        return True

    def finalize_generation(
        self, generation: int, preserve: Iterable[PackageSource] = ()
    ) -> list[PackageId]:
        """Drop records that a settled generation did not re-confirm.

        Args:
            generation: The generation that has settled. Ignored if it is
                no longer the active one.
            preserve: Sources whose listing failed in this generation; their
                older records are kept rather than treated as uninstalled.

        Returns:
            Identities of the dropped records.
        """
        if generation != self._active_generation:
            return []

        keep = frozenset(preserve)
        stale = [
            pid
            for pid, pkg in self._packages.items()
            if pkg.generation < generation and pkg.source not in keep
        ]
        for pid in stale:
            del self._packages[pid]

        # Tombstones only matter while older listings may still arrive
        self._tombstones = {
            pid: gen for pid, gen in self._tombstones.items() if gen >= generation
        }
        return stale

    def remove(self, identity: PackageId) -> bool:
        """Delete a record after a confirmed uninstall.

        Returns:
            True if a record was deleted.
        """
        self._tombstones[identity] = self._active_generation
        return self._packages.pop(identity, None) is not None

    def patch(
        self,
        identity: PackageId,
        *,
        update_state: UpdateState | None = None,
        action_state: ActionState | None = None,
        version: str | None = None,
    ) -> Package | None:
        """Replace the mutable state of an existing record.

        Returns:
            The updated record, or None if the identity is not stored.
        """
        existing = self._packages.get(identity)
        if existing is None:
            return None

        changes: dict[str, object] = {}
        if update_state is not None:
            changes["update_state"] = update_state
        if action_state is not None:
            changes["action_state"] = action_state
        if version is not None:
            changes["version"] = version

        updated = replace(existing, **changes)  # type: ignore[arg-type]
        self._packages[identity] = updated
        return updated


# =============================================================================
# Store messages
# =============================================================================


@dataclass(frozen=True, slots=True)
class MergePackage:
    """Insert or replace a scanned package (generation is on the package)."""

    package: Package


@dataclass(frozen=True, slots=True)
class FinalizeGeneration:
    """Drop records not re-confirmed by a settled generation."""

    generation: int
    preserve: frozenset[PackageSource] = frozenset()


@dataclass(frozen=True, slots=True)
class RemovePackage:
    """Delete a package after a successful uninstall."""

    identity: PackageId


@dataclass(frozen=True, slots=True)
class PatchPackage:
    """Replace the update/action state (and optionally version) of a package."""

    identity: PackageId
    update_state: UpdateState | None = None
    action_state: ActionState | None = None
    version: str | None = None


StoreMessage = MergePackage | FinalizeGeneration | RemovePackage | PatchPackage


@dataclass(slots=True)
class _Envelope:
    message: StoreMessage
    done: asyncio.Future[bool] | None = field(default=None)


class StoreWriter:
    """The single writer of a PackageStore.

    Producers submit messages; one consumer task applies them serially.
    Worker threads must not call ``submit`` directly: they hand messages
    to the event loop with ``loop.call_soon_threadsafe(writer.submit, msg)``.

    Example:
        >>> writer = StoreWriter(PackageStore())
        >>> writer.start()
        >>> await writer.apply(MergePackage(pkg))
        True
    """

    def __init__(self, store: PackageStore) -> None:
        self._store = store
        self._queue: asyncio.Queue[_Envelope] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    @property
    def store(self) -> PackageStore:
        """Read access to the store. Never mutate it directly."""
        return self._store

    def start(self) -> None:
        """Start the consumer task on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._consume())

    async def stop(self) -> None:
        """Apply everything already submitted, then stop the consumer."""
        if self._task is None:
            return
        await self._queue.join()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def begin_generation(self) -> int:
        """Start a new scan generation.

        This takes effect immediately: messages still queued for older
        generations are discarded when they are applied.
        """
        return self._store.begin_generation()

    def submit(self, message: StoreMessage) -> None:
        """Queue a message without waiting for it to be applied."""
        self._queue.put_nowait(_Envelope(message))

    async def apply(self, message: StoreMessage) -> bool:
        """Queue a message and wait until it has been applied.

        Returns:
            Whether the message changed the store.
        """
        done: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(_Envelope(message, done))
        return await done

    async def drain(self) -> None:
        """Wait until every queued message has been applied."""
        await self._queue.join()

    async def _consume(self) -> None:
        while True:
            envelope = await self._queue.get()
            try:
                changed = self._dispatch(envelope.message)
            except Exception as e:
                logger.exception("Failed to apply %s", type(envelope.message).__name__)
                if envelope.done is not None and not envelope.done.done():
                    envelope.done.set_exception(e)
            else:
                if envelope.done is not None and not envelope.done.done():
                    envelope.done.set_result(changed)
            finally:
                self._queue.task_done()

    def _dispatch(self, message: StoreMessage) -> bool:
        if isinstance(message, MergePackage):
            return self._store.merge(message.package)
        if isinstance(message, FinalizeGeneration):
            dropped = self._store.finalize_generation(message.generation, message.preserve)
            if dropped:
                logger.debug(
                    "Generation %d dropped %d stale package(s)", message.generation, len(dropped)
                )
            return bool(dropped)
        if isinstance(message, RemovePackage):
            return self._store.remove(message.identity)
        if isinstance(message, PatchPackage):
            return (
                self._store.patch(
                    message.identity,
                    update_state=message.update_state,
                    action_state=message.action_state,
                    version=message.version,
                )
                is not None
            )
        msg = f"Unknown store message: {message!r}"
        raise TypeError(msg)

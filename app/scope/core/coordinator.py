"""Concurrent scanning of all package backends.

A refresh starts a new scan generation and runs every backend's
enumeration in a worker thread. Packages stream into the store writer
as they are parsed; results of superseded generations are discarded by
the store, so older scans never have to be killed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from scope.backends.base import Backend, BackendError, BackendUnavailableError, ParseDiagnostic
from scope.core.store import FinalizeGeneration, MergePackage, StoreWriter
from scope.models.package import PackageSource

logger = logging.getLogger(__name__)


class SourceScanState(Enum):
    """Progress of one backend within a scan generation."""

    SCANNING = "scanning"
    DONE = "done"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass
class ScanStatus:
    """Observable progress of one scan generation.

    Attributes:
        generation: Scan generation this status describes.
        sources: Progress per scanned source.
        counts: Packages emitted so far per source.
        errors: Error message per failed source.
        diagnostics: Records skipped during this generation.
    """

    generation: int
    sources: dict[PackageSource, SourceScanState] = field(default_factory=dict)
    counts: dict[PackageSource, int] = field(default_factory=dict)
    errors: dict[PackageSource, str] = field(default_factory=dict)
    diagnostics: list[ParseDiagnostic] = field(default_factory=list)
    _settled_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def pending(self) -> set[PackageSource]:
        """Sources that have not finished scanning."""
        return {s for s, state in self.sources.items() if state == SourceScanState.SCANNING}

    @property
    def unavailable(self) -> set[PackageSource]:
        return {s for s, state in self.sources.items() if state == SourceScanState.UNAVAILABLE}

    @property
    def failed(self) -> set[PackageSource]:
        return {s for s, state in self.sources.items() if state == SourceScanState.FAILED}

    @property
    def settled(self) -> bool:
        """Check if every source has finished and the store is finalized."""
        return self._settled_event.is_set()

    async def wait(self) -> None:
        """Wait until this generation has settled."""
        await self._settled_event.wait()

    def mark_settled(self) -> None:
        self._settled_event.set()


class ScanCoordinator:
    """Runs all backends concurrently and feeds the store writer.

    Args:
        writer: The store writer that receives scanned packages.
        backends: Backend per package source.

    Example:
        >>> coordinator = ScanCoordinator(writer, backends)
        >>> status = await coordinator.refresh()
        >>> await coordinator.wait_settled()
    """

    def __init__(self, writer: StoreWriter, backends: Mapping[PackageSource, Backend]) -> None:
        self._writer = writer
        self._backends = dict(backends)
        self._status = ScanStatus(generation=0)
        # Nothing to wait for before the first refresh
        self._status.mark_settled()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def status(self) -> ScanStatus:
        """Progress of the most recent scan generation."""
        return self._status

    async def refresh(self) -> ScanStatus:
        """Start a new scan generation and return its status immediately.

        Scans of earlier generations keep running to completion; whatever
        they still emit is discarded by the store.
        """
        generation = self._writer.begin_generation()
        status = ScanStatus(
            generation=generation,
            sources=dict.fromkeys(self._backends, SourceScanState.SCANNING),
            counts=dict.fromkeys(self._backends, 0),
        )
        self._status = status
        logger.debug("Refreshing %d source(s) in generation %d", len(self._backends), generation)

        task = asyncio.get_running_loop().create_task(self._run_generation(status))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return status

    async def wait_settled(self) -> ScanStatus:
        """Wait until the most recent generation has settled.

        If another refresh starts while waiting, waits for that one instead.
        """
        while True:
            status = self._status
            await status.wait()
            if status is self._status:
                return status

    async def close(self) -> None:
        """Wait for every running scan, superseded ones included."""
        if self._tasks:
            await asyncio.gather(*self._tasks)

    async def _run_generation(self, status: ScanStatus) -> None:
        await asyncio.gather(
            *(
                self._scan_source(status, source, backend)
                for source, backend in self._backends.items()
            )
        )

        # Merges posted by the worker threads are queued before this point
        await self._writer.apply(
            FinalizeGeneration(status.generation, preserve=frozenset(status.failed))
        )
        status.mark_settled()
        logger.debug(
            "Generation %d settled: %s",
            status.generation,
            ", ".join(f"{s.value}={n}" for s, n in status.counts.items()) or "no sources",
        )

    async def _scan_source(
        self, status: ScanStatus, source: PackageSource, backend: Backend
    ) -> None:
        loop = asyncio.get_running_loop()

        def on_diagnostic(diagnostic: ParseDiagnostic) -> None:
            loop.call_soon_threadsafe(status.diagnostics.append, diagnostic)

        def emit(count: int) -> None:
            status.counts[source] = count

        def scan() -> SourceScanState:
            # Runs in a worker thread: only hands messages to the event loop
            if not backend.is_available():
                return SourceScanState.UNAVAILABLE
            count = 0
            for package in backend.enumerate(on_diagnostic):
                loop.call_soon_threadsafe(
                    self._writer.submit, MergePackage(package.with_generation(status.generation))
                )
                count += 1
                loop.call_soon_threadsafe(emit, count)
            return SourceScanState.DONE

        try:
            state = await asyncio.to_thread(scan)
        except BackendUnavailableError as e:
            logger.debug("%s listing tool missing: %s", source.label, e)
            state = SourceScanState.UNAVAILABLE
        except BackendError as e:
            logger.warning("Scanning %s failed: %s", source.label, e)
            status.errors[source] = str(e)
            state = SourceScanState.FAILED
        except Exception as e:
            logger.exception("Unexpected error while scanning %s", source.label)
            status.errors[source] = str(e) or type(e).__name__
            state = SourceScanState.FAILED

        if state == SourceScanState.UNAVAILABLE:
            logger.info("Skipping %s: package manager not installed", source.label)
        status.sources[source] = state

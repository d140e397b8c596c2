"""Periodic age- and size-based eviction of cache entries."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence

from filru.store import EntryStore
from filru.types import EntryStat, EvictionPlan, SweepReport

__all__ = ["EvictionSweeper", "plan_evictions"]

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def plan_evictions(
    stats: Sequence[EntryStat],
    *,
    max_bytes: int,
    max_age_ms: int = 0,
    now_ms: int,
) -> EvictionPlan:
    """Decide which entries a sweep removes.

    ``stats`` is sorted newest first (stable, so equal times keep their input
    order). Entries older than ``now_ms - max_age_ms`` expire first when
    ``max_age_ms`` is positive. The survivors are walked newest first while
    accumulating size. The entry that pushes the running total over
    ``max_bytes`` is evicted, and so is every entry older than it, even one
    small enough to fit on its own.
    """
    ordered = sorted(stats, key=lambda entry: entry.modified_time_ms, reverse=True)

    expired: list[EntryStat] = []
    if max_age_ms > 0:
        cutoff = now_ms - max_age_ms
        survivors: list[EntryStat] = []
        for entry in ordered:
            if entry.modified_time_ms < cutoff:
                expired.append(entry)
            else:
                survivors.append(entry)
        ordered = survivors

    evicted: list[EntryStat] = []
    retained: list[EntryStat] = []
    size_up_to = 0
    for entry in ordered:
        size_up_to += entry.size_bytes
        if size_up_to > max_bytes:
            evicted.append(entry)
        else:
            retained.append(entry)

    return EvictionPlan(expired=expired, evicted=evicted, retained=retained)


class EvictionSweeper:
    """Run sweeps over an :class:`EntryStore` directory on a timer.

    Sweeps never raise: listing, stat and delete failures are logged and the
    next scheduled sweep acts as the retry. Only one sweep runs at a time.
    """

    def __init__(
        self,
        store: EntryStore,
        *,
        max_bytes: int,
        max_age_ms: int = 0,
        prune_interval_ms: int = 60 * 60 * 1000,
        delete_concurrency: int = 8,
        clock: Clock = time.time,
    ) -> None:
        self._store = store
        self._max_bytes = max_bytes
        self._max_age_ms = max_age_ms
        self._prune_interval_ms = prune_interval_ms
        self._delete_concurrency = max(1, delete_concurrency)
        self._clock = clock
        self._stopped = True
        self._timer: asyncio.TimerHandle | None = None
        self._current: asyncio.Task[SweepReport] | None = None

    @property
    def running(self) -> bool:
        """True between :meth:`start` and :meth:`stop`."""
        return not self._stopped

    @property
    def sweeping(self) -> bool:
        return self._current is not None and not self._current.done()

    def start(self) -> None:
        """Run a sweep now and keep rescheduling until stopped."""
        if not self._stopped:
            return
        self._stopped = False
        if self.sweeping:
            # The in-flight sweep reschedules itself when it finishes.
            return
        self._fire()

    def stop(self) -> None:
        """Cancel the pending sweep; an in-flight sweep is left to finish."""
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def wait_idle(self) -> None:
        """Wait for an in-flight scheduled sweep, if any."""
        current = self._current
        if current is not None and not current.done():
            await asyncio.wait({current})

    async def snapshot(self) -> list[EntryStat]:
        """List and stat every entry, newest first.

        Raises ``OSError`` when the directory cannot be listed.
        """
        return await asyncio.to_thread(self._snapshot_sync)

    async def sweep(self) -> SweepReport:
        """Run one sweep and report what it removed."""
        now_ms = int(self._clock() * 1000)
        report = SweepReport(started_at_ms=now_ms)
        try:
            stats = await self.snapshot()
        except OSError as exc:
            logger.warning("sweep could not list %s: %s", self._store.directory, exc)
            return report

        plan = plan_evictions(
            stats,
            max_bytes=self._max_bytes,
            max_age_ms=self._max_age_ms,
            now_ms=now_ms,
        )
        report.scanned = len(stats)
        report.expired = [entry.name for entry in plan.expired]
        report.evicted = [entry.name for entry in plan.evicted]
        report.retained_bytes = plan.retained_bytes
        for entry in plan.scheduled:
            logger.debug("scheduling removal of %s", entry)

        report.failed = await self._remove_all([entry.name for entry in plan.scheduled])
        report.stale_temp = await asyncio.to_thread(
            self._store.remove_stale_temp_files, now_ms - self._prune_interval_ms
        )
        if report.expired or report.evicted or report.stale_temp:
            logger.info(
                "sweep of %s: scanned=%d expired=%d evicted=%d failed=%d "
                "stale_temp=%d retained_bytes=%d",
                self._store.directory,
                report.scanned,
                len(report.expired),
                len(report.evicted),
                len(report.failed),
                len(report.stale_temp),
                report.retained_bytes,
            )
        return report

    def _snapshot_sync(self) -> list[EntryStat]:
        names = self._store.list_names()
        stats = [self._store.stat_name(name) for name in names]
        stats.sort(key=lambda entry: entry.modified_time_ms, reverse=True)
        logger.debug("snapshot: %d files sorted", len(stats))
        return stats

    async def _remove_all(self, names: Sequence[str]) -> list[str]:
        semaphore = asyncio.Semaphore(self._delete_concurrency)

        async def _remove(name: str) -> str | None:
            async with semaphore:
                try:
                    await asyncio.to_thread(self._store.remove_name, name)
                except OSError as exc:
                    logger.warning("sweep failed to remove %s: %s", name, exc)
                    return name
            return None

        outcomes = await asyncio.gather(*(_remove(name) for name in names))
        return [name for name in outcomes if name is not None]

    def _fire(self) -> None:
        self._timer = None
        if self._stopped or self.sweeping:
            return
        self._current = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> SweepReport:
        try:
            report = await self.sweep()
        except Exception:
            logger.exception("sweep of %s failed", self._store.directory)
            report = SweepReport(started_at_ms=int(self._clock() * 1000))
        if not self._stopped and self._timer is None:
            self._timer = asyncio.get_running_loop().call_later(
                self._prune_interval_ms / 1000, self._fire
            )
            logger.debug("next sweep in %d ms", self._prune_interval_ms)
        return report

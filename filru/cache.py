"""Disk-backed LRU cache facade."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

from filru.errors import CacheError, CacheIOError, NotFoundError
from filru.hashing import KeyHasher
from filru.loaders import LoaderLike, call_loader
from filru.settings import Settings
from filru.store import EntryStore
from filru.sweeper import Clock, EvictionSweeper
from filru.types import CacheStats, SweepReport

__all__ = ["Filru"]

logger = logging.getLogger(__name__)


class Filru:
    """Size- and age-bounded LRU cache storing one file per key.

    Reads refresh an entry's modification time; a background sweep keeps the
    newest entries within ``max_bytes`` and drops anything older than
    ``max_age_ms``. Misses fall through to ``loader`` when one is given.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        loader: LoaderLike | None = None,
        clock: Clock = time.time,
    ) -> None:
        self._settings = settings
        self._loader = loader
        self._store = EntryStore(
            settings.cache_dir,
            KeyHasher(settings.hash_seed, settings.hash_algorithm),
            atomic_writes=settings.atomic_writes,
        )
        self._sweeper = EvictionSweeper(
            self._store,
            max_bytes=settings.max_bytes,
            max_age_ms=settings.max_age_ms,
            prune_interval_ms=settings.prune_interval_ms,
            delete_concurrency=settings.delete_concurrency,
            clock=clock,
        )

    @classmethod
    def from_options(
        cls,
        cache_dir: Path | str,
        max_bytes: int,
        *,
        loader: LoaderLike | None = None,
        clock: Clock = time.time,
        **options: Any,
    ) -> Filru:
        """Build a cache from keyword options instead of a ``Settings``."""
        settings = Settings(cache_dir=Path(cache_dir), max_bytes=max_bytes, **options)
        return cls(settings, loader=loader, clock=clock)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def store(self) -> EntryStore:
        return self._store

    @property
    def sweeper(self) -> EvictionSweeper:
        return self._sweeper

    async def __aenter__(self) -> Filru:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.stop()
        await self._sweeper.wait_idle()

    async def start(self) -> None:
        """Create the cache directory and begin periodic sweeps."""
        await asyncio.to_thread(self._store.ensure_directory)
        self._sweeper.start()

    def stop(self) -> None:
        self._sweeper.stop()

    def hash(self, key: str) -> str:
        return self._store.name_for(key)

    async def get(self, key: str) -> bytes:
        """Return cached bytes, consulting the loader on a miss."""
        try:
            return await self._store.read(key)
        except NotFoundError:
            if self._loader is None:
                raise
        data = await call_loader(self._loader, key)
        if data is None:
            raise NotFoundError(key)
        if self._settings.store_loaded:
            try:
                await self._store.write(key, data)
            except CacheError as exc:
                logger.warning("could not store loaded entry for %r: %s", key, exc)
        return data

    async def set(self, key: str, data: bytes) -> bytes:
        return await self._store.write(key, data)

    async def delete(self, key: str) -> None:
        await self._store.delete(key)

    async def touch(self, key: str) -> None:
        await self._store.touch(key)

    async def exists(self, key: str) -> bool:
        return await self._store.exists(key)

    async def reset(self) -> int:
        """Delete every entry, returning the number of deletions attempted."""
        return await self._store.reset_all()

    async def sweep(self) -> SweepReport:
        """Run one eviction pass immediately."""
        return await self._sweeper.sweep()

    async def stats(self) -> CacheStats:
        """Count entries and bytes currently on disk."""
        try:
            entries = await self._sweeper.snapshot()
        except FileNotFoundError:
            return CacheStats(entries=0, total_bytes=0)
        except OSError as exc:
            raise CacheIOError(
                f"Failed to list cache directory {self._store.directory}: {exc}"
            ) from exc
        return CacheStats(
            entries=len(entries),
            total_bytes=sum(entry.size_bytes for entry in entries),
        )

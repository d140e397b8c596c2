"""Per-key file operations on the cache directory."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Final

from filru.errors import CacheIOError, NotFoundError
from filru.hashing import KeyHasher
from filru.types import EntryStat

__all__ = ["EntryStore", "TEMP_PREFIX"]

logger = logging.getLogger(__name__)

TEMP_PREFIX: Final[str] = ".filru-"
TEMP_SUFFIX: Final[str] = ".tmp"


def is_temp_name(name: str) -> bool:
    """Return True for files left by an in-flight atomic write."""
    return name.startswith(TEMP_PREFIX) and name.endswith(TEMP_SUFFIX)


class EntryStore:
    """Read, write, touch and delete single entries by key.

    Every key maps to ``directory / hasher.hash(key)``. Blocking filesystem
    calls run in worker threads so concurrent callers never wait on each
    other. Nothing about the directory contents is kept in memory.
    """

    def __init__(
        self,
        directory: Path | str,
        hasher: KeyHasher | None = None,
        *,
        atomic_writes: bool = True,
    ) -> None:
        self._directory = Path(directory)
        self._hasher = hasher or KeyHasher()
        self._atomic_writes = atomic_writes

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def hasher(self) -> KeyHasher:
        return self._hasher

    def name_for(self, key: str) -> str:
        return self._hasher.hash(key)

    def path_for(self, key: str) -> Path:
        return self._directory / self.name_for(key)

    def ensure_directory(self) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)

    async def read(self, key: str) -> bytes:
        """Return the entry payload and refresh its recency."""
        path = self.path_for(key)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            logger.debug("read miss for %r (%s)", key, path.name)
            raise NotFoundError(key) from exc
        except OSError as exc:
            raise CacheIOError(f"Failed to read entry for {key!r}: {exc}") from exc
        await self.touch(key)
        return data

    async def write(self, key: str, data: bytes) -> bytes:
        """Replace the entry payload, returning ``data``."""
        path = self.path_for(key)
        writer = self._write_atomic if self._atomic_writes else self._write_in_place
        try:
            await asyncio.to_thread(writer, path, bytes(data))
        except OSError as exc:
            raise CacheIOError(f"Failed to write entry for {key!r}: {exc}") from exc
        return data

    async def touch(self, key: str) -> None:
        """Set access and modification time to now; failures are only logged."""
        path = self.path_for(key)
        try:
            await asyncio.to_thread(os.utime, path, None)
        except OSError as exc:
            logger.debug("touch failed for %r (%s): %s", key, path.name, exc)

    async def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError as exc:
            raise NotFoundError(key) from exc
        except OSError as exc:
            raise CacheIOError(f"Failed to delete entry for {key!r}: {exc}") from exc

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self.path_for(key).is_file)

    async def reset_all(self) -> int:
        """Delete every file in the directory and return how many were attempted.

        Individual failures are skipped. An unreadable directory yields ``0``.
        """
        return await asyncio.to_thread(self._reset_all_sync)

    def list_names(self) -> list[str]:
        """List entry filenames, skipping subdirectories and in-flight temp files.

        Raises ``OSError`` when the directory itself cannot be listed.
        """
        names: list[str] = []
        with os.scandir(self._directory) as entries:
            for entry in entries:
                if is_temp_name(entry.name):
                    continue
                try:
                    if entry.is_dir(follow_symlinks=False):
                        continue
                except OSError:
                    pass
                names.append(entry.name)
        return names

    def stat_name(self, name: str) -> EntryStat:
        """Stat one entry; a vanished or unreadable file yields zeroed stats."""
        try:
            info = os.stat(self._directory / name)
        except OSError as exc:
            logger.debug("stat failed for %s, will remove soon: %s", name, exc)
            return EntryStat.missing(name)
        return EntryStat(
            name=name,
            modified_time_ms=info.st_mtime_ns // 1_000_000,
            size_bytes=info.st_size,
        )

    def remove_name(self, name: str) -> None:
        os.unlink(self._directory / name)

    def remove_stale_temp_files(self, cutoff_ms: int) -> list[str]:
        """Delete temp files abandoned by interrupted writes before ``cutoff_ms``.

        Returns the names removed. Listing and delete failures are logged.
        """
        removed: list[str] = []
        try:
            names = [name for name in os.listdir(self._directory) if is_temp_name(name)]
        except OSError as exc:
            logger.debug("temp cleanup could not list %s: %s", self._directory, exc)
            return removed
        for name in names:
            path = self._directory / name
            try:
                if path.stat().st_mtime_ns // 1_000_000 >= cutoff_ms:
                    continue
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("failed to remove stale temp file %s: %s", name, exc)
                continue
            removed.append(name)
        return removed

    def _reset_all_sync(self) -> int:
        try:
            names = os.listdir(self._directory)
        except OSError as exc:
            logger.warning("reset could not list %s: %s", self._directory, exc)
            return 0
        attempted = 0
        for name in names:
            path = self._directory / name
            if path.is_dir() and not path.is_symlink():
                continue
            attempted += 1
            try:
                path.unlink()
            except OSError as exc:
                logger.warning("reset failed to remove %s: %s", name, exc)
        logger.debug("reset attempted %d deletions in %s", attempted, self._directory)
        return attempted

    def _write_atomic(self, path: Path, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            tmp_path.replace(path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    @staticmethod
    def _write_in_place(path: Path, data: bytes) -> None:
        path.write_bytes(data)

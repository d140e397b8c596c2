"""Exception hierarchy raised by per-key cache operations."""

from __future__ import annotations


class CacheError(Exception):
    """Base class for all cache failures."""


class NotFoundError(CacheError):
    """The requested entry does not exist."""

    def __init__(self, key: str, message: str | None = None) -> None:
        super().__init__(message or f"No cache entry for key {key!r}")
        self.key = key


class CacheIOError(CacheError):
    """A filesystem or origin failure other than a missing entry."""


class ConfigError(CacheError, ValueError):
    """Invalid cache configuration."""

"""Package-wide type definitions."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class EntryStat:
    """Recency and size of one entry file, as seen by a sweep."""

    name: str
    modified_time_ms: int
    size_bytes: int

    @classmethod
    def missing(cls, name: str) -> EntryStat:
        """Stats for a file that vanished or could not be read."""
        return cls(name=name, modified_time_ms=0, size_bytes=0)


@dataclass(frozen=True, slots=True)
class EvictionPlan:
    """Outcome of applying age and size policy to a snapshot."""

    expired: list[EntryStat] = field(default_factory=list)
    evicted: list[EntryStat] = field(default_factory=list)
    retained: list[EntryStat] = field(default_factory=list)

    @property
    def scheduled(self) -> list[EntryStat]:
        """Every entry marked for deletion, age phase first."""
        return [*self.expired, *self.evicted]

    @property
    def retained_bytes(self) -> int:
        return sum(entry.size_bytes for entry in self.retained)


@dataclass(slots=True)
class SweepReport:
    """Summary of one sweep."""

    started_at_ms: int
    scanned: int = 0
    expired: list[str] = field(default_factory=list)
    evicted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    stale_temp: list[str] = field(default_factory=list)
    retained_bytes: int = 0

    @property
    def removed(self) -> int:
        """Return how many scheduled deletions succeeded."""
        return len(self.expired) + len(self.evicted) - len(self.failed)


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Directory totals computed from disk."""

    entries: int
    total_bytes: int

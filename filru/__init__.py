"""
filru: a disk-resident, size- and age-bounded LRU cache.

Entries live as individual files named by a seeded hash of their key, and a
periodic sweep evicts the oldest ones by modification time.
"""

from __future__ import annotations

from filru.cache import Filru
from filru.errors import CacheError, CacheIOError, ConfigError, NotFoundError
from filru.hashing import KeyHasher
from filru.loaders import HttpLoader, Loader
from filru.settings import Settings, get_settings
from filru.store import EntryStore
from filru.sweeper import EvictionSweeper, plan_evictions
from filru.types import CacheStats, EntryStat, EvictionPlan, SweepReport

__all__: tuple[str, ...] = (
    "CacheError",
    "CacheIOError",
    "CacheStats",
    "ConfigError",
    "EntryStat",
    "EntryStore",
    "EvictionPlan",
    "EvictionSweeper",
    "Filru",
    "HttpLoader",
    "KeyHasher",
    "Loader",
    "NotFoundError",
    "Settings",
    "SweepReport",
    "get_settings",
    "plan_evictions",
)

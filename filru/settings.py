"""Cache configuration loading."""

from __future__ import annotations

import os
from dataclasses import dataclass
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from dotenv import load_dotenv

from filru.errors import ConfigError
from filru.hashing import (
    DEFAULT_HASH_ALGORITHM,
    DEFAULT_HASH_SEED,
    HASH_ALGORITHMS,
    seed_to_bytes,
)

_DEFAULT_MAX_AGE_MS: Final[int] = 0
_DEFAULT_PRUNE_INTERVAL_MS: Final[int] = 60 * 60 * 1000
_DEFAULT_DELETE_CONCURRENCY: Final[int] = 8

_CACHED_SETTINGS: Settings | None = None


@dataclass(frozen=True)
class Settings:
    """Validated cache configuration."""

    cache_dir: Path
    max_bytes: int
    max_age_ms: int = _DEFAULT_MAX_AGE_MS
    hash_seed: int | str = DEFAULT_HASH_SEED
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
    prune_interval_ms: int = _DEFAULT_PRUNE_INTERVAL_MS
    atomic_writes: bool = True
    delete_concurrency: int = _DEFAULT_DELETE_CONCURRENCY
    store_loaded: bool = True

    def __post_init__(self) -> None:
        if self.cache_dir is None or not str(self.cache_dir).strip():
            raise ConfigError("cache_dir must be a non-empty path")
        object.__setattr__(self, "cache_dir", Path(self.cache_dir))
        _require_int("max_bytes", self.max_bytes, minimum=1)
        _require_int("max_age_ms", self.max_age_ms, minimum=0)
        _require_int("prune_interval_ms", self.prune_interval_ms, minimum=1)
        _require_int("delete_concurrency", self.delete_concurrency, minimum=1)
        if self.hash_algorithm not in HASH_ALGORITHMS:
            raise ConfigError(
                f"hash_algorithm must be one of {sorted(HASH_ALGORITHMS)}, "
                f"got {self.hash_algorithm!r}"
            )
        seed_to_bytes(self.hash_seed)


def _require_int(name: str, value: object, *, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")


_TRUE_VALUES: Final[set[str]] = {"1", "true", "yes", "on"}
_FALSE_VALUES: Final[set[str]] = {"0", "false", "no", "off"}


def _coerce_bool(name: str, value: str | None, *, default: bool) -> bool:
    """Convert common textual boolean representations to bool."""
    if value is None or not value.strip():
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _coerce_int(name: str, value: str | None, *, default: int | None = None) -> int:
    if value is None or not value.strip():
        if default is None:
            raise ConfigError(f"{name} must be set in the environment or .env file.")
        return default
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def parse_seed(value: str | None) -> int | str:
    """Interpret a textual seed: decimal or ``0x`` hex integers, else free text."""
    if value is None or not value.strip():
        return DEFAULT_HASH_SEED
    stripped = value.strip()
    try:
        return int(stripped, 0)
    except ValueError:
        return stripped


def get_settings(
    *,
    force_reload: bool = False,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load configuration, optionally reloading from the environment.

    ``overrides`` replace individual environment values before validation, so
    a required variable may come from either source. Overridden settings are
    built fresh and never memoized.
    """
    global _CACHED_SETTINGS  # noqa: PLW0603
    if not overrides and not force_reload and _CACHED_SETTINGS is not None:
        return _CACHED_SETTINGS

    dotenv_override = os.getenv("FILRU_DOTENV_PATH")
    if dotenv_override:
        load_dotenv(dotenv_override, override=True)
    else:
        dotenv_path = Path.cwd() / ".env"
        if dotenv_path.exists():
            load_dotenv(dotenv_path=dotenv_path)

    params: dict[str, Any] = {}
    cache_dir_raw = os.getenv("FILRU_DIR")
    if cache_dir_raw:
        params["cache_dir"] = Path(cache_dir_raw).expanduser()
    max_bytes_raw = os.getenv("FILRU_MAX_BYTES")
    if max_bytes_raw and max_bytes_raw.strip():
        params["max_bytes"] = _coerce_int("FILRU_MAX_BYTES", max_bytes_raw)
    params.update(
        max_age_ms=_coerce_int(
            "FILRU_MAX_AGE_MS",
            os.getenv("FILRU_MAX_AGE_MS"),
            default=_DEFAULT_MAX_AGE_MS,
        ),
        hash_seed=parse_seed(os.getenv("FILRU_HASH_SEED")),
        hash_algorithm=os.getenv("FILRU_HASH_ALGORITHM", DEFAULT_HASH_ALGORITHM),
        prune_interval_ms=_coerce_int(
            "FILRU_PRUNE_INTERVAL_MS",
            os.getenv("FILRU_PRUNE_INTERVAL_MS"),
            default=_DEFAULT_PRUNE_INTERVAL_MS,
        ),
        atomic_writes=_coerce_bool(
            "FILRU_ATOMIC_WRITES", os.getenv("FILRU_ATOMIC_WRITES"), default=True
        ),
        delete_concurrency=_coerce_int(
            "FILRU_DELETE_CONCURRENCY",
            os.getenv("FILRU_DELETE_CONCURRENCY"),
            default=_DEFAULT_DELETE_CONCURRENCY,
        ),
        store_loaded=_coerce_bool(
            "FILRU_STORE_LOADED", os.getenv("FILRU_STORE_LOADED"), default=True
        ),
    )
    params.update(overrides or {})

    if not params.get("cache_dir"):
        raise ConfigError("FILRU_DIR must be set in the environment or .env file.")
    if "max_bytes" not in params:
        raise ConfigError("FILRU_MAX_BYTES must be set in the environment or .env file.")

    settings = Settings(**params)
    if not overrides:
        _CACHED_SETTINGS = settings
    return settings

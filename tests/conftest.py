"""Shared pytest fixtures and configuration."""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from pathlib import Path

import pytest

pytest_plugins = ("pytest_asyncio",)

MakeEntry = Callable[..., Path]


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Return an existing, empty cache directory."""
    directory = tmp_path / "cache"
    directory.mkdir()
    return directory


@pytest.fixture
def make_entry(cache_dir: Path) -> MakeEntry:
    """Write a raw entry file with a given size and age in milliseconds."""

    def _make(name: str, size: int, *, age_ms: int = 0) -> Path:
        path = cache_dir / name
        path.write_bytes(b"x" * size)
        mtime = time.time() - age_ms / 1000
        os.utime(path, (mtime, mtime))
        return path

    return _make


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep FILRU_* variables and stray .env files out of every test."""
    for name in list(os.environ):
        if name.startswith("FILRU_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("filru.settings._CACHED_SETTINGS", None)
    monkeypatch.chdir(tmp_path)

from pathlib import Path

import pytest

from filru.cli.main import create_parser, main, resolve_settings
from filru.hashing import KeyHasher


def _run(cache_dir: Path, *args: str) -> int:
    return main(["--dir", str(cache_dir), "--max-bytes", "1000", *args])


def test_set_get_del_round_trip(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    cache_dir = tmp_path / "cache"
    source = tmp_path / "input.bin"
    source.write_bytes(b"\x01\x02payload")

    assert _run(cache_dir, "set", "my-key", str(source)) == 0
    assert KeyHasher().hash("my-key") in capsys.readouterr().out

    target = tmp_path / "output.bin"
    assert _run(cache_dir, "get", "my-key", "-o", str(target)) == 0
    assert target.read_bytes() == b"\x01\x02payload"

    assert _run(cache_dir, "del", "my-key") == 0
    assert _run(cache_dir, "get", "my-key") == 1
    assert "Not found" in capsys.readouterr().err
    assert _run(cache_dir, "del", "my-key") == 1


def test_hash_stats_and_reset(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    cache_dir = tmp_path / "cache"
    for key in ("a", "b"):
        source = tmp_path / f"{key}.bin"
        source.write_bytes(b"12345")
        assert _run(cache_dir, "-q", "set", key, str(source)) == 0
    capsys.readouterr()

    assert _run(cache_dir, "--hash-seed", "7", "hash", "a") == 0
    assert capsys.readouterr().out.strip() == KeyHasher(7).hash("a")

    assert _run(cache_dir, "stats") == 0
    assert capsys.readouterr().out.strip() == "entries=2 total_bytes=10"

    assert _run(cache_dir, "sweep") == 0
    assert "scanned=2" in capsys.readouterr().out

    assert _run(cache_dir, "reset") == 0
    assert "Removed 2" in capsys.readouterr().out
    assert list(cache_dir.iterdir()) == []


def test_settings_fall_back_to_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FILRU_DIR", str(tmp_path / "env-cache"))
    monkeypatch.setenv("FILRU_MAX_BYTES", "512")
    args = create_parser().parse_args(["--max-age-ms", "10", "stats"])
    settings = resolve_settings(args)
    assert settings.cache_dir == tmp_path / "env-cache"
    assert settings.max_bytes == 512
    assert settings.max_age_ms == 10


def test_configuration_errors_exit_nonzero(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    assert main(["--dir", str(tmp_path), "--max-bytes", "0", "stats"]) == 1
    assert "Configuration error" in capsys.readouterr().err
    assert main(["stats"]) == 1
    assert "FILRU_DIR" in capsys.readouterr().err


def test_dir_flag_combines_with_environment_budget(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
):
    monkeypatch.setenv("FILRU_MAX_BYTES", "512")
    monkeypatch.setenv("FILRU_MAX_AGE_MS", "250")
    args = create_parser().parse_args(["--dir", str(tmp_path / "flag-cache"), "stats"])
    settings = resolve_settings(args)
    assert settings.cache_dir == tmp_path / "flag-cache"
    assert settings.max_bytes == 512
    assert settings.max_age_ms == 250

    assert main(["--dir", str(tmp_path / "flag-cache"), "stats"]) == 0
    assert capsys.readouterr().out.strip() == "entries=0 total_bytes=0"


def test_max_bytes_flag_combines_with_environment_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setenv("FILRU_DIR", str(tmp_path / "env-cache"))
    monkeypatch.setenv("FILRU_MAX_BYTES", "512")
    args = create_parser().parse_args(["--max-bytes", "64", "stats"])
    settings = resolve_settings(args)
    assert settings.cache_dir == tmp_path / "env-cache"
    assert settings.max_bytes == 64

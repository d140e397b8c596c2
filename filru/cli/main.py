from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from filru.cache import Filru
from filru.errors import CacheError, ConfigError, NotFoundError
from filru.settings import Settings, get_settings, parse_seed


DESCRIPTION = """
Inspect and maintain a filru cache directory: read, write and delete
entries, run an eviction sweep, or reset the cache.
"""

EXAMPLES = """Examples:
  # Store a file under a key, then read it back
  filru --dir ./cache --max-bytes 1048576 set thumbnails/42 image.png
  filru --dir ./cache --max-bytes 1048576 get thumbnails/42 -o out.png

  # Settings may come from FILRU_* environment variables or .env
  FILRU_DIR=./cache FILRU_MAX_BYTES=1048576 filru sweep
"""


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="filru",
        description=DESCRIPTION,
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--dir", type=Path, help="Cache directory (FILRU_DIR)")
    parser.add_argument(
        "--max-bytes", type=int, help="Byte budget for the cache (FILRU_MAX_BYTES)"
    )
    parser.add_argument(
        "--max-age-ms",
        type=int,
        help="Evict entries older than this many milliseconds; 0 disables",
    )
    parser.add_argument(
        "--hash-seed", type=str, help="Seed for key hashing (integer or text)"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress summaries",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    get_cmd = commands.add_parser("get", help="Print the bytes stored for KEY")
    get_cmd.add_argument("key")
    get_cmd.add_argument(
        "--output", "-o", type=Path, help="Write to a file instead of stdout"
    )

    set_cmd = commands.add_parser("set", help="Store FILE (or stdin) under KEY")
    set_cmd.add_argument("key")
    set_cmd.add_argument("file", type=Path, nargs="?", help="Input file; stdin if omitted")

    del_cmd = commands.add_parser("del", help="Delete the entry for KEY")
    del_cmd.add_argument("key")

    hash_cmd = commands.add_parser("hash", help="Print the filename used for KEY")
    hash_cmd.add_argument("key")

    commands.add_parser("sweep", help="Run one eviction sweep")
    commands.add_parser("stats", help="Show entry count and total size")
    commands.add_parser("reset", help="Delete every entry")
    return parser


def resolve_settings(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if args.dir is not None:
        overrides["cache_dir"] = args.dir
    if args.max_bytes is not None:
        overrides["max_bytes"] = args.max_bytes
    if args.max_age_ms is not None:
        overrides["max_age_ms"] = args.max_age_ms
    if args.hash_seed is not None:
        overrides["hash_seed"] = parse_seed(args.hash_seed)

    return get_settings(overrides=overrides)


async def run_command(args: argparse.Namespace, cache: Filru) -> int:
    if args.command == "hash":
        print(cache.hash(args.key))
        return 0

    if args.command == "get":
        try:
            data = await cache.get(args.key)
        except NotFoundError:
            print(f"Not found: {args.key}", file=sys.stderr)
            return 1
        if args.output is not None:
            args.output.write_bytes(data)
        else:
            sys.stdout.buffer.write(data)
            sys.stdout.flush()
        return 0

    if args.command == "set":
        if args.file is not None:
            data = args.file.read_bytes()
        else:
            data = sys.stdin.buffer.read()
        await asyncio.to_thread(cache.store.ensure_directory)
        await cache.set(args.key, data)
        if not args.quiet:
            print(f"Stored {len(data)} bytes as {cache.hash(args.key)}")
        return 0

    if args.command == "del":
        try:
            await cache.delete(args.key)
        except NotFoundError:
            print(f"Not found: {args.key}", file=sys.stderr)
            return 1
        return 0

    if args.command == "sweep":
        report = await cache.sweep()
        if not args.quiet:
            print(
                f"Summary: scanned={report.scanned} expired={len(report.expired)} "
                f"evicted={len(report.evicted)} failed={len(report.failed)} "
                f"stale_temp={len(report.stale_temp)} "
                f"retained_bytes={report.retained_bytes}"
            )
        return 0

    if args.command == "stats":
        stats = await cache.stats()
        print(f"entries={stats.entries} total_bytes={stats.total_bytes}")
        return 0

    if args.command == "reset":
        count = await cache.reset()
        if not args.quiet:
            print(f"Removed {count} file(s)")
        return 0

    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 1


async def async_main(args: argparse.Namespace) -> int:
    try:
        settings = resolve_settings(args)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    cache = Filru(settings)
    try:
        return await run_command(args, cache)
    except (CacheError, OSError) as exc:
        print(f"Cache error: {exc}", file=sys.stderr)
        return 1


def main(argv: Sequence[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(async_main(args))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())

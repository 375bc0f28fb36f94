# src/main.py — v2
"""CLI entry point: fetch, list, resolve, preview, batch, verify, forget.

Usage:
    imgacquire fetch <query> --save-as <key> [--output <folder>] [--width W] [--height H] [--force]
    imgacquire list <folder>
    imgacquire resolve <folder> <name>
    imgacquire preview <query> [--profile P] [--limit N]
    imgacquire batch <plan.json> [--force]
    imgacquire verify
    imgacquire forget <key>

Failed acquisitions exit with a code per cause (see EXIT_CODES) so
scripts can tell rate limiting from network trouble from empty results.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from imgacquire.config.settings import ConfigurationError, Settings
from imgacquire.core.errors import FailureCause, ImageAcquisitionError
from imgacquire.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130

EXIT_CODES: dict[FailureCause, int] = {
    FailureCause.RATE_LIMITED: 3,
    FailureCause.NETWORK_ERROR: 4,
    FailureCause.NO_RESULTS: 5,
    FailureCause.CONFLICT: 6,
    FailureCause.CORRUPT_ENTRY: 7,
    FailureCause.DOWNLOAD_FAILED: 8,
    FailureCause.WRITE_FAILED: 9,
    FailureCause.INVALID_KEY: 10,
    FailureCause.TIMEOUT: 11,
    FailureCause.NOT_FOUND: 12,
}


def exit_code_for(cause: FailureCause | None) -> int:
    """Distinct nonzero exit code per failure cause."""
    if cause is None:
        return EXIT_FAILURE
    return EXIT_CODES.get(cause, EXIT_FAILURE)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_FAILURE

    try:
        settings = _load_settings(args)
    except (ConfigurationError, ValidationError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except ImageAcquisitionError as exc:
        logger.error("%s", exc.message)
        return exit_code_for(exc.cause)
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return EXIT_FAILURE


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="imgacquire",
        description=f"imgacquire v{__version__}: deterministic image acquisition and resolution",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--env-file", type=Path, default=None,
        help="Settings file (default: .env in the working directory)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- fetch ---
    p_fetch = subparsers.add_parser("fetch", help="Acquire one image for a key")
    p_fetch.add_argument("query", help="Free-text search query")
    p_fetch.add_argument(
        "--save-as", dest="key", required=True,
        help="Acquisition key (also the file name)",
    )
    p_fetch.add_argument(
        "-o", "--output", dest="folder", default=None,
        help="Asset folder (default: DEFAULT_FOLDER)",
    )
    p_fetch.add_argument("--width", type=int, default=None, help="Desired width")
    p_fetch.add_argument("--height", type=int, default=None, help="Desired height")
    p_fetch.add_argument(
        "--orientation", choices=["landscape", "portrait", "squarish"], default=None,
    )
    p_fetch.add_argument(
        "--profile", default=None,
        help="Target profile: dark-overlay, light-overlay, neutral, vivid",
    )
    p_fetch.add_argument(
        "--force", action="store_true",
        help="Re-fetch even if the key is already cached",
    )
    p_fetch.set_defaults(func=_cmd_fetch)

    # --- list ---
    p_list = subparsers.add_parser("list", help="List local assets of a folder")
    p_list.add_argument("folder", help="Asset folder")
    p_list.set_defaults(func=_cmd_list)

    # --- resolve ---
    p_resolve = subparsers.add_parser("resolve", help="Print the local file for a name")
    p_resolve.add_argument("folder", help="Asset folder")
    p_resolve.add_argument("name", help="Acquisition key or file stem")
    p_resolve.set_defaults(func=_cmd_resolve)

    # --- preview ---
    p_preview = subparsers.add_parser(
        "preview", help="Show ranked candidates without downloading",
    )
    p_preview.add_argument("query", help="Free-text search query")
    p_preview.add_argument("--profile", default=None)
    p_preview.add_argument("--limit", type=int, default=None)
    p_preview.add_argument(
        "--orientation", choices=["landscape", "portrait", "squarish"], default=None,
    )
    p_preview.set_defaults(func=_cmd_preview)

    # --- batch ---
    p_batch = subparsers.add_parser("batch", help="Acquire every key in a JSON plan")
    p_batch.add_argument("plan", type=Path, help="JSON plan file")
    p_batch.add_argument("--force", action="store_true")
    p_batch.add_argument(
        "--workers", type=int, default=None,
        help="Concurrent acquisitions (default: FETCH_WORKERS)",
    )
    p_batch.set_defaults(func=_cmd_batch)

    # --- verify ---
    p_verify = subparsers.add_parser("verify", help="Check manifest entries against disk")
    p_verify.set_defaults(func=_cmd_verify)

    # --- forget ---
    p_forget = subparsers.add_parser("forget", help="Remove a key from the manifest")
    p_forget.add_argument("key")
    p_forget.set_defaults(func=_cmd_forget)

    return parser


async def _cmd_fetch(args: argparse.Namespace, settings: Settings) -> int:
    """Acquire one image."""
    from imgacquire.api.facade import create_engine
    from imgacquire.core.models import AcquireOptions, SearchQuery
    from imgacquire.scoring.profiles import get_profile

    query = SearchQuery(
        text=args.query, width=args.width, height=args.height,
        orientation=args.orientation,
    )
    profile = get_profile(args.profile or settings.default_profile, settings)

    engine = create_engine(settings)
    try:
        result = await engine.fetcher.acquire(
            args.key, query, profile,
            folder=args.folder,
            options=AcquireOptions(force=args.force),
        )
    finally:
        await engine.close()

    if not result.ok:
        print(f"{result.key}: {result.report_status} ({result.message})")
        return exit_code_for(result.cause)

    entry = result.entry
    print(
        f"{result.key}: {result.report_status} -> {entry.local_path} "
        f"({entry.width}x{entry.height})"
    )
    return EXIT_OK


async def _cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    """List resolved local assets with their manifest metadata."""
    from imgacquire.api.facade import create_resolver

    resolver = create_resolver(settings)
    count = 0
    for handle in resolver.resolve_all(args.folder):
        count += 1
        size = f"{handle.width}x{handle.height}" if handle.width else "?x?"
        source = (
            f"{handle.provider}:{handle.remote_id}" if handle.remote_id else "unmanaged"
        )
        print(f"{handle.name:<24} {size:>11}  {handle.local_path}  [{source}]")

    if count == 0:
        print(f"No assets in folder {args.folder!r}")
    return EXIT_OK


async def _cmd_resolve(args: argparse.Namespace, settings: Settings) -> int:
    """Print the local path of one asset."""
    from imgacquire.api.facade import create_resolver

    handle = create_resolver(settings).resolve(args.folder, args.name)
    print(handle.local_path)
    return EXIT_OK


async def _cmd_preview(args: argparse.Namespace, settings: Settings) -> int:
    """Rank candidates for a query without persisting anything."""
    from imgacquire.api.facade import create_engine
    from imgacquire.core.models import SearchQuery
    from imgacquire.scoring.profiles import get_profile

    profile = get_profile(args.profile or settings.default_profile, settings)
    engine = create_engine(settings)
    try:
        previews = await engine.fetcher.search_previews(
            SearchQuery(text=args.query, orientation=args.orientation),
            profile,
            max_results=args.limit,
        )
    finally:
        await engine.close()

    for i, handle in enumerate(previews, start=1):
        author = handle.author_name or "unknown"
        print(
            f"{i:>2}. {handle.score:.3f}  {handle.provider}:{handle.remote_id}  "
            f"{handle.width}x{handle.height}  by {author}  {handle.url}"
        )
    return EXIT_OK


async def _cmd_batch(args: argparse.Namespace, settings: Settings) -> int:
    """Acquire every request of a plan and report per key."""
    from imgacquire.api.facade import create_engine
    from imgacquire.batch.runner import load_plan

    requests = load_plan(args.plan)
    engine = create_engine(settings)
    try:
        report = await engine.batch.run(requests, force=args.force, workers=args.workers)
    finally:
        await engine.close()

    for line in report.status_lines():
        print(line)
    print(
        f"\nBatch {report.batch_id}: {report.downloaded} downloaded, "
        f"{report.cached} cached, {report.failed} failed "
        f"in {report.duration_seconds:.1f}s"
    )
    return EXIT_OK if report.ok else EXIT_FAILURE


async def _cmd_verify(args: argparse.Namespace, settings: Settings) -> int:
    """Check each manifest entry's file and checksum."""
    from imgacquire.cache.base_cache_store import VERIFY_OK
    from imgacquire.cache.cache_factory import create_manifest_store

    store = create_manifest_store(settings)
    try:
        report = await store.verify()
    finally:
        store.close()
    for key, status in report.items():
        print(f"{key}: {status}")
    bad = [k for k, s in report.items() if s != VERIFY_OK]
    if bad:
        return exit_code_for(FailureCause.CORRUPT_ENTRY)
    return EXIT_OK


async def _cmd_forget(args: argparse.Namespace, settings: Settings) -> int:
    """Remove one key from the manifest, keeping its file."""
    from imgacquire.cache.cache_factory import create_manifest_store

    store = create_manifest_store(settings)
    try:
        removed = await store.delete(args.key)
    finally:
        store.close()
    if not removed:
        print(f"{args.key}: not in manifest")
        return exit_code_for(FailureCause.NOT_FOUND)
    print(f"{args.key}: removed")
    return EXIT_OK


def _load_settings(args: argparse.Namespace) -> Settings:
    if args.env_file is not None:
        return Settings(_env_file=args.env_file)  # type: ignore[call-arg]
    return Settings()


def _setup_logging(settings: Settings, verbose: bool) -> None:
    from imgacquire.logging.logger import configure_from_settings

    configure_from_settings(settings, verbose=verbose)


if __name__ == "__main__":
    sys.exit(main())

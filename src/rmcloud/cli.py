"""Command line entry point: ``rmcloud ls``, ``rmcloud sync``, ``rmcloud get``.

Every command first brings the local hierarchy up to date (a single root
pointer request when nothing changed), then works on that snapshot.

Listings and reports go to stdout; logs and errors go to stderr.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import discover_config_files, load_hierarchical_config
from .config_schema import LoggingConfig, build_config, yaml_fallbacks
from .core.async_utils import init_semaphore, run_sync
from .core.client import StorageClient
from .errors import NotFound, RmCloudError
from .export import (
    DocumentExporter,
    export_tree,
    format_export_report,
    format_listing,
    format_sync_summary,
    report_to_json,
)
from .file_handler import safe_filename
from .logger import setup_logging
from .sync import CacheStore, RootSynchronizer

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback."""
    print(msg, file=sys.stderr, flush=True)


# ------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------


def load_settings(
    config_overrides: dict[str, Any] | None = None,
) -> tuple[Config, LoggingConfig]:
    """Load configuration with unified precedence.

    CLI args > env vars (.env loaded first) > YAML config > defaults.

    Returns:
        The validated runtime config and the YAML ``logging`` section.

    Raises:
        ValueError: If configuration is missing or invalid.
    """
    # .env first, so ${VAR} interpolation in YAML can use its values
    load_dotenv()

    fallbacks: dict[str, Any] | None = None
    logging_section = LoggingConfig()
    config_files = discover_config_files()
    if config_files:
        unified = build_config(load_hierarchical_config())
        fallbacks = yaml_fallbacks(unified)
        logging_section = unified.logging
        logger.debug("Config files: %s", ", ".join(map(str, config_files)))

    overrides = config_overrides or {}
    config = load_config(
        url=overrides.get("url"),
        token=overrides.get("token"),
        cache_file=overrides.get("cache_file"),
        insecure=overrides.get("insecure", False),
        debug=overrides.get("debug", False),
        yaml_fallbacks=fallbacks,
    )
    return config, logging_section


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


async def _cmd_ls(synchronizer: RootSynchronizer, args: argparse.Namespace) -> int:
    hierarchy = await synchronizer.sync()
    try:
        entries = hierarchy.list_dir(args.path)
    except NotFound as e:
        _stderr_print(f"ERROR: {e}")
        return EXIT_FAILURE
    if entries:
        print(format_listing(entries))
    return EXIT_OK


async def _cmd_sync(
    synchronizer: RootSynchronizer, args: argparse.Namespace
) -> int:
    if args.rebuild:
        await run_sync(synchronizer.cache_store.clear)
    hierarchy = await synchronizer.sync()
    print(format_sync_summary(hierarchy, synchronizer.warnings))
    return EXIT_OK


async def _cmd_get(
    synchronizer: RootSynchronizer,
    client: StorageClient,
    args: argparse.Namespace,
) -> int:
    hierarchy = await synchronizer.sync()
    try:
        entry = hierarchy.resolve(args.path)
    except NotFound as e:
        _stderr_print(f"ERROR: {e}")
        return EXIT_FAILURE

    exporter = DocumentExporter(client, hierarchy)
    output_dir = Path(args.output)

    if args.recursive:
        report = await export_tree(exporter, entry, output_dir)
        if args.json:
            print(json.dumps(report_to_json(report), indent=2))
        else:
            print(format_export_report(report))
        return EXIT_OK if report.results else EXIT_FAILURE

    try:
        exported = await exporter.export(
            entry.id, output_dir / safe_filename(entry.name)
        )
    except RmCloudError as e:
        _stderr_print(f"ERROR: Failed to download {args.path}: {e}")
        return EXIT_FAILURE
    print(f"Downloaded {hierarchy.path_of(entry.id)} to {exported.path}")
    return EXIT_OK


async def main(args: argparse.Namespace, config: Config) -> int:
    """Run one command against the storage API and return the exit status."""
    init_semaphore(config.max_parallel_requests)

    client = StorageClient(config)
    synchronizer = RootSynchronizer(
        client=client, cache_store=CacheStore(config.cache_path)
    )

    try:
        if args.command == "ls":
            return await _cmd_ls(synchronizer, args)
        if args.command == "sync":
            return await _cmd_sync(synchronizer, args)
        return await _cmd_get(synchronizer, client, args)
    except RmCloudError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        _stderr_print(f"ERROR: {e}")
        return EXIT_FAILURE


# ------------------------------------------------------------------
# Argument parsing
# ------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    parser = argparse.ArgumentParser(
        prog="rmcloud",
        description="Mirror and export documents from the reMarkable cloud",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List the top-level folder
  rmcloud ls

  # Refresh the local tree cache and show what changed
  rmcloud sync

  # Throw the cache away and fetch everything again
  rmcloud sync --rebuild

  # Download one document into the current directory
  rmcloud get "/Notes/Meeting"

  # Download a whole folder into ./backup
  rmcloud get -r /Notes -o backup

  # Same, with a machine-readable report
  rmcloud get -r /Notes -o backup --json

Note: RMCLOUD_TOKEN must hold a user token (or pass --token).
        """,
    )

    parser.add_argument(
        "--url",
        help="Override storage API URL (takes precedence over RMCLOUD_URL env var and config files)",
    )
    parser.add_argument(
        "--token",
        help="Override user token (takes precedence over RMCLOUD_TOKEN env var and config files)"
        " (visible in process list -- prefer RMCLOUD_TOKEN env var for security)",
    )
    parser.add_argument(
        "--cache-file",
        help="Tree cache file (default: $XDG_CACHE_HOME/rmcloud/tree.cache)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Also append log records to this file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"rmcloud version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    ls_parser = sub.add_parser("ls", help="List a folder")
    ls_parser.add_argument("path", nargs="?", default="/", help="Folder path")

    sync_parser = sub.add_parser("sync", help="Refresh the local tree cache")
    sync_parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Discard the tree cache and fetch every entry again",
    )

    get_parser = sub.add_parser("get", help="Download a document or folder")
    get_parser.add_argument("path", help="Document or folder path")
    get_parser.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Download a folder and everything below it",
    )
    get_parser.add_argument(
        "-o",
        "--output",
        default=".",
        help="Destination directory (default: current directory)",
    )
    get_parser.add_argument(
        "--json",
        action="store_true",
        help="With -r, print the export report as JSON",
    )

    return parser


def run(argv: list[str] | None = None) -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "get" and args.json and not args.recursive:
        parser.error("--json requires -r")

    # Build config overrides dict from CLI args
    config_overrides: dict[str, Any] = {}
    if args.url:
        config_overrides["url"] = args.url
    if args.token:
        config_overrides["token"] = args.token
    if args.cache_file:
        config_overrides["cache_file"] = args.cache_file
    if args.insecure:
        config_overrides["insecure"] = True
    if args.debug:
        config_overrides["debug"] = True

    try:
        config, logging_section = load_settings(config_overrides)
    except ValueError as e:
        _stderr_print(f"ERROR: Configuration error: {e}")
        sys.exit(EXIT_FAILURE)

    setup_logging(
        debug=config.debug,
        log_file=args.log_file or logging_section.file,
        level=logging_section.level,
    )

    try:
        code = asyncio.run(main(args, config))
    except KeyboardInterrupt:
        _stderr_print("\nInterrupted.")
        code = EXIT_FAILURE
    sys.exit(code)


if __name__ == "__main__":
    run()

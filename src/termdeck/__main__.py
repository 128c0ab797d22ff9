"""Command-line entry point.

Usage:
    python -m termdeck ls /var/log
    python -m termdeck ls /root --api-base http://localhost:8080/api --session abc123
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

from termdeck import __version__
from termdeck.cache.resource_cache import ResourceCache
from termdeck.config import Config, load_config
from termdeck.errors import TermdeckError
from termdeck.files.http_provider import HttpFileProvider
from termdeck.files.local_provider import LocalFileProvider
from termdeck.files.types import ResourceDescriptor
from termdeck.logging import get_logger, setup_logging

log = get_logger()

LOCAL_SESSION = "local"


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="termdeck",
        description="Multi-session terminal client with a cached remote file view",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--verbose",
        type=int,
        choices=range(5),
        metavar="N",
        help="Log verbosity 0 (errors) to 4 (trace)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")

    ls_parser = subparsers.add_parser("ls", help="List a directory through the cache")
    ls_parser.add_argument("path", help="Directory to list")
    ls_parser.add_argument(
        "--api-base",
        help="File API base URL; lists the local filesystem when omitted",
    )
    ls_parser.add_argument(
        "--session",
        default=LOCAL_SESSION,
        help="Session id sent to the file API",
    )
    ls_parser.add_argument(
        "-a", "--all",
        action="store_true",
        help="Include hidden entries",
    )

    return parser


def format_entry(entry: ResourceDescriptor) -> str:
    kind = "d" if entry.is_dir else "-"
    modified = entry.mod_time.strftime("%Y-%m-%d %H:%M") if entry.mod_time else "-" * 16
    name = entry.name + ("/" if entry.is_dir else "")
    return f"{kind} {entry.size:>10} {modified} {name}"


async def _list(
    config: Config, path: str, api_base: str | None, session_id: str, show_hidden: bool
) -> int:
    api_base = api_base or config.provider.api_base

    if api_base:
        provider = HttpFileProvider(
            api_base,
            timeout=config.provider.timeout,
            not_ready_phrases=config.provider.not_ready_phrases,
        )
    else:
        provider = LocalFileProvider()
    log.debug("Listing %s via %s", path, type(provider).__name__)

    cache = ResourceCache.from_config(
        provider, config.cache, show_hidden=show_hidden or config.cache.show_hidden
    )
    # Preloaded listings would never be shown
    cache.preloader.enabled = False
    try:
        entries = await cache.get_or_load(session_id, path)
    except TermdeckError as e:
        print(f"termdeck: {e}", file=sys.stderr)
        return 1
    finally:
        cache.cancel_pending()
        if isinstance(provider, HttpFileProvider):
            await provider.aclose()

    for entry in entries:
        print(format_entry(entry))
    return 0


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    config = load_config()
    if parsed.verbose is not None:
        config.logging.verbose = parsed.verbose
    setup_logging(config.logging)

    if parsed.command is None:
        parser.print_help()
        return 1

    if parsed.command == "ls":
        return asyncio.run(
            _list(config, parsed.path, parsed.api_base, parsed.session, parsed.all)
        )

    parser.print_help()
    return 1


def main() -> None:
    sys.exit(run_cli(sys.argv[1:]))


if __name__ == "__main__":
    main()

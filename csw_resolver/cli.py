# csw_resolver/cli.py
# Defines the command-line interface using argparse.

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import IO, Any, Sequence

import httpx

from csw_resolver import __version__
from csw_resolver.api import get_resource, list_resources, resolve_record
from csw_resolver.config import load_config
from csw_resolver.errors import CswResolverError
from csw_resolver.prepare import prepare_catalog_url
from csw_resolver.ui import (
    render_error,
    render_record_page,
    render_resolution,
    render_resolve_header,
    render_resource,
)

log = logging.getLogger(__name__)

# Exit code when the record exists but no link could be resolved.
EXIT_NOT_RESOLVED = 100


def _configure_logging(verbose: bool) -> None:
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _json_default(o: Any) -> Any:
    # Minimal, safe encoder for dataclasses and datetimes.
    if isinstance(o, datetime):
        return o.isoformat()
    if is_dataclass(o):
        return asdict(o)  # type: ignore[arg-type]
    return str(o)


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add arguments shared by every catalog command."""
    parser.add_argument("catalog_url", help="The CSW endpoint of the catalog.")
    parser.add_argument(
        "--allow-private-network",
        action="store_true",
        help="Skip the check rejecting catalogs on loopback/private addresses.",
    )
    parser.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Print the result as JSON instead of text.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Resolve downloadable data links from ISO 19139 / CSW catalogs.",
        prog="csw_resolver",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging output to stderr.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- resolve ---
    resolve_parser = subparsers.add_parser(
        "resolve", help="Print the best download URL and format of a record."
    )
    _add_common_args(resolve_parser)
    resolve_parser.add_argument("record_id", help="The catalog record identifier.")

    # --- fetch ---
    fetch_parser = subparsers.add_parser(
        "fetch", help="Resolve a record and download its data file."
    )
    _add_common_args(fetch_parser)
    fetch_parser.add_argument("record_id", help="The catalog record identifier.")
    fetch_parser.add_argument(
        "--dest",
        metavar="DIR",
        default=".",
        help="Directory to write the downloaded file to.",
    )
    fetch_parser.add_argument("--username", default=None, help="Basic auth username.")
    fetch_parser.add_argument("--password", default=None, help="Basic auth password.")

    # --- list ---
    list_parser = subparsers.add_parser(
        "list", help="Search the catalog for records with downloadable data."
    )
    _add_common_args(list_parser)
    list_parser.add_argument("-q", "--query", default="", help="Full-text filter.")
    list_parser.add_argument("--page", type=int, default=1, help="Page number (1-based).")
    list_parser.add_argument("--size", type=int, default=None, help="Records per page.")

    return parser


def _print_json(obj: Any, stdout: IO[str]) -> None:
    print(json.dumps(obj, default=_json_default, indent=2), file=stdout)


async def async_main(
    argv: Sequence[str] | None = None, stdout: IO[str] | None = None
) -> int:
    """Async entry point for the command-line interface."""
    stdout = stdout or sys.stdout
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    config = load_config()
    try:
        catalog_url = await prepare_catalog_url(
            args.catalog_url,
            check_private_network=(
                config.get("check_private_network", True)
                and not args.allow_private_network
            ),
        )
    except CswResolverError as e:
        render_error(str(e), file=stdout)
        return 2

    try:
        if args.command == "resolve":
            if not args.json_output:
                render_resolve_header(catalog_url, args.record_id, file=stdout)
            result = await resolve_record(catalog_url, args.record_id, config=config)
            if args.json_output:
                _print_json(result, stdout)
            else:
                render_resolution(result, file=stdout)
            return 0 if result is not None else EXIT_NOT_RESOLVED

        if args.command == "fetch":
            resource = await get_resource(
                catalog_url,
                args.record_id,
                args.dest,
                config=config,
                username=args.username,
                password=args.password,
            )
            if args.json_output:
                _print_json(resource, stdout)
            else:
                render_resource(resource, file=stdout)
            return 0

        # args.command == "list"
        page = await list_resources(
            catalog_url,
            query=args.query,
            page=args.page,
            size=args.size,
            config=config,
        )
        if args.json_output:
            _print_json(page, stdout)
        else:
            render_record_page(page, args.page, file=stdout)
        return 0
    except (CswResolverError, httpx.HTTPError) as e:
        log.debug("Command %s failed", args.command, exc_info=True)
        render_error(str(e), file=stdout)
        return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Synchronous wrapper for the CLI entry point."""
    return asyncio.run(async_main(argv))


if __name__ == "__main__":
    sys.exit(main())

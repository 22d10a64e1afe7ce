from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from shopsync.app import (
    check_connection,
    force_release_lock,
    get_sync_status,
    request_abort,
    sync_catalog,
)
from shopsync.config import configure_logging
from shopsync.config.sync import MAX_PAGE_SIZE
from shopsync.domain.model import CatalogFilter, RunOutcome, SyncMode

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from shopsync.domain.model import RunSummary
    from shopsync.domain.sync import RunStatus

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_BUSY = 3


def _page_size(value: str) -> int:
    size = int(value)
    if not 1 <= size <= MAX_PAGE_SIZE:
        raise argparse.ArgumentTypeError(f"page size must be within 1..{MAX_PAGE_SIZE}")
    return size


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mirror the distributor catalog into the shop")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Run a catalog sync")
    sync.add_argument(
        "mode",
        choices=[mode.value for mode in SyncMode],
        help="'full' refreshes everything and creates new products, "
        "'partial' updates stock and prices only",
    )
    target = sync.add_mutually_exclusive_group()
    target.add_argument(
        "--sku",
        action="append",
        default=[],
        help="Restrict the run to this SKU (repeatable)",
    )
    target.add_argument(
        "--category",
        action="append",
        default=[],
        help="Restrict the run to this distributor category (repeatable)",
    )
    sync.add_argument(
        "--force",
        action="store_true",
        help="Take over the sync lock even if another run holds it",
    )
    sync.add_argument(
        "--page-size",
        type=_page_size,
        default=None,
        help="Items per page (defaults to config)",
    )
    sync.add_argument(
        "--no-images",
        action="store_true",
        help="Skip image downloads for new products",
    )

    subparsers.add_parser("status", help="Show the current and last sync runs")
    subparsers.add_parser("abort", help="Ask the running sync to stop after the current page")
    subparsers.add_parser("unlock", help="Force release a stuck sync lock")
    subparsers.add_parser("check", help="Test the distributor API connection")

    return parser.parse_args(list(argv))


def _build_filter(args: argparse.Namespace) -> CatalogFilter | None:
    if args.sku:
        return CatalogFilter.for_skus(args.sku)
    if args.category:
        return CatalogFilter.for_categories(args.category)
    return None


def _describe_summary(label: str, summary: RunSummary | None) -> None:
    if summary is None:
        log.info("%s: never", label)
        return
    log.info(
        "%s: %s at %s, processed=%d created=%d deleted=%d %s",
        label,
        summary.outcome,
        summary.finished_at.isoformat() if summary.finished_at else "?",
        summary.processed,
        summary.created,
        summary.deleted,
        summary.message,
    )


def _describe_status(status: RunStatus) -> None:
    if status.active:
        log.info(
            "Sync running: page %d/%d, %d/%d items, lock age %ds%s%s",
            status.current_page,
            status.total_pages,
            status.processed,
            status.expected,
            status.lock_age_seconds,
            " (stale)" if status.stale else "",
            ", abort requested" if status.abort_requested else "",
        )
    else:
        log.info("No sync running")
    _describe_summary("Last full sync", status.last_full_run)
    _describe_summary("Last partial sync", status.last_partial_run)


def _run_sync(args: argparse.Namespace) -> int:
    result = sync_catalog(
        SyncMode(args.mode),
        catalog_filter=_build_filter(args),
        force=args.force,
        page_size=args.page_size,
        download_images=not args.no_images,
    )
    log.info(
        "Sync %s: %s (processed=%d, created=%d, skipped=%d, deleted=%d)",
        result.outcome,
        result.message,
        result.processed,
        result.created,
        result.skipped,
        result.deleted,
    )
    if result.failed_skus:
        log.warning("Failed SKUs: %s", ", ".join(result.failed_skus))
    if result.outcome is RunOutcome.ALREADY_RUNNING:
        return EXIT_BUSY
    if result.outcome is RunOutcome.FAILED:
        return EXIT_FAILED
    return EXIT_OK


def _dispatch(args: argparse.Namespace) -> int:
    if args.command == "sync":
        return _run_sync(args)
    if args.command == "status":
        _describe_status(get_sync_status())
        return EXIT_OK
    if args.command == "abort":
        if request_abort():
            log.info("Abort requested; the run stops after the current page")
        else:
            log.info("No sync running; the next run clears the request")
        return EXIT_OK
    if args.command == "unlock":
        force_release_lock()
        log.info("Sync lock released")
        return EXIT_OK
    if args.command == "check":
        check = check_connection()
        log.info(check.message)
        return EXIT_OK if check.success else EXIT_FAILED
    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(EXIT_USAGE)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
    try:
        code = _dispatch(parsed_args)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(EXIT_FAILED)
    sys.exit(code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()

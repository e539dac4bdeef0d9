"""Command-line interface for linkdex."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from rich.console import Console
from rich.table import Table

from linkdex.catalog.models import CatalogEntry, RefreshResult
from linkdex.catalog.service import CatalogService, CatalogSettings
from linkdex.catalog.store import CatalogStore, entries_as_dicts
from linkdex.config import (
    DB_PATH,
    DISPLAY_TITLE_MAX_CHARS,
    DOCUMENT_URL,
    LOG_FILE,
    LOG_LEVEL,
    SAMPLE_SIZE,
    SEARCH_RESULT_LIMIT,
)
from linkdex.errors import EmptyResultError, LinkdexError, StorageError
from linkdex.logger import setup_logging
from linkdex.search.ranker import SearchHit

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="linkdex",
        description="Extract, cache and search a published link catalog.",
    )
    parser.add_argument(
        "--url",
        default=DOCUMENT_URL,
        help="Catalog document URL (defaults to the configured document_url).",
    )
    parser.add_argument(
        "--db",
        default=None,
        help=f"Catalog database path (default: {DB_PATH}).",
    )
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        help="Logging level for the log file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    refresh_parser = subparsers.add_parser("refresh", help="Refresh the cached catalog.")
    refresh_parser.add_argument(
        "-f", "--force", action="store_true", help="Fetch even if the cache is fresh."
    )

    search_parser = subparsers.add_parser("search", help="Search catalog titles.")
    search_parser.add_argument("query", nargs="+", help="Search text.")
    search_parser.add_argument(
        "-n", "--limit", type=int, default=SEARCH_RESULT_LIMIT, help="Maximum results."
    )
    search_parser.add_argument(
        "--refresh",
        action="store_true",
        help="Refresh the catalog (if stale) before searching.",
    )

    sample_parser = subparsers.add_parser("sample", help="Show random catalog entries.")
    sample_parser.add_argument(
        "-n", "--count", type=int, default=SAMPLE_SIZE, help="Number of entries."
    )

    subparsers.add_parser("stats", help="Show cache statistics.")
    subparsers.add_parser("invalidate", help="Clear the cached catalog.")
    subparsers.add_parser("export", help="Print the cached catalog as JSON.")

    return parser.parse_args(argv)


def truncate_title(title: str, max_chars: int = DISPLAY_TITLE_MAX_CHARS) -> str:
    """Shorten long titles for table display."""
    return f"{title[:max_chars]}..." if len(title) > max_chars else title


def format_timestamp(timestamp_ms: Optional[int]) -> str:
    if timestamp_ms is None:
        return "-"
    stamp = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return stamp.strftime("%Y-%m-%d %H:%M UTC")


def _entries_table(title: str, rows: Iterable[tuple[str, str]]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Title", style="white")
    table.add_column("Link", style="green", overflow="fold")
    for number, (entry_title, link) in enumerate(rows, 1):
        table.add_row(str(number), truncate_title(entry_title), link)
    return table


def print_refresh_result(console: Console, result: RefreshResult) -> None:
    if result.from_cache and result.stale:
        source = "[yellow]stale cache (refresh failed)[/yellow]"
    elif result.from_cache:
        source = "cache"
    elif result.unchanged:
        source = "document (unchanged)"
    else:
        source = "document"
    console.print(
        f"Catalog: [bold]{len(result.entries)}[/bold] entries from {source}, "
        f"updated {format_timestamp(result.timestamp)}"
    )


def print_search_results(console: Console, query: str, hits: Sequence[SearchHit]) -> None:
    if not hits:
        console.print(f"[yellow]No results for '{query}'.[/yellow]")
        return
    console.print(_entries_table(f"Results for '{query}'", ((hit.title, hit.link) for hit in hits)))


def print_sample(console: Console, entries: Sequence[CatalogEntry]) -> None:
    if not entries:
        console.print("[yellow]Catalog is empty. Run 'linkdex refresh' first.[/yellow]")
        return
    console.print(_entries_table("Random picks", ((e.title, e.link) for e in entries)))


def print_stats(console: Console, stats: dict) -> None:
    table = Table(title="Catalog Cache", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Database", stats["db_path"])
    table.add_row("Schema version", str(stats["schema_version"]))
    table.add_row("Entries", str(stats["total_entries"]))
    table.add_row("With external id", str(stats["entries_with_external_id"]))
    table.add_row("Catalog timestamp", format_timestamp(stats["timestamp"]))
    table.add_row("Last checked", format_timestamp(stats["checked_at"]))
    console.print(table)


def run(args: argparse.Namespace, console: Console) -> int:
    """Execute one parsed command; returns the process exit code."""
    store = CatalogStore(args.db) if args.db else CatalogStore()
    service = CatalogService(
        store=store, settings=CatalogSettings.from_config(document_url=args.url)
    )

    try:
        if args.command == "refresh":
            print_refresh_result(console, service.refresh(force=args.force))
        elif args.command == "search":
            if args.refresh:
                service.refresh()
            query = " ".join(args.query)
            print_search_results(console, query, service.search(query, args.limit))
        elif args.command == "sample":
            print_sample(console, service.sample(args.count))
        elif args.command == "stats":
            print_stats(console, store.stats())
        elif args.command == "invalidate":
            store.invalidate()
            console.print("Catalog cache cleared.")
        elif args.command == "export":
            snapshot = store.load()
            payload = {
                "schemaVersion": snapshot.schema_version,
                "entries": entries_as_dicts(snapshot.entries),
                "lastUpdate": (
                    {"timestamp": snapshot.meta.timestamp, "count": snapshot.meta.count}
                    if snapshot.meta
                    else None
                ),
            }
            console.print_json(json.dumps(payload))
    except EmptyResultError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        return 2
    except StorageError as exc:
        console.print(f"[red]Storage error:[/red] {exc}")
        if exc.entries:
            console.print(f"{len(exc.entries)} entries were extracted but not cached.")
        return 1
    except LinkdexError as exc:
        logger.exception("Command %s failed", args.command)
        console.print(f"[red]Error:[/red] {exc}")
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level, LOG_FILE)
    sys.exit(run(args, Console()))

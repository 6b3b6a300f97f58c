#!/usr/bin/env python3
"""
Dashboard Data Layer

Usage:
    python dashboard.py sync [--force]            # Synchronize all collections
    python dashboard.py status                    # Show cached collection status
    python dashboard.py check <collection> <title>  # Check a title for duplicates
    python dashboard.py help                      # Show this help

Reads config.yaml from the repository root and SUPABASE_URL /
SUPABASE_ANON_KEY from the environment (or .env).
"""

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from datastore.src.config import load_config
from datastore.src.context import DataContext
from datastore.src.exceptions import ConfigError, SyncError, UnknownCollectionError
from datastore.src.postgrest import PostgrestStore
from shared.logging import configure_logging, correlation_context

REPO_ROOT = Path(__file__).resolve().parent

load_dotenv(REPO_ROOT / ".env")

console = Console()


def _build_context() -> DataContext:
    config = load_config()
    log_file = Path(config.logging.file) if config.logging.file else None
    if log_file is not None and not log_file.is_absolute():
        log_file = REPO_ROOT / log_file
    configure_logging(config.logging.level, log_file)
    store = PostgrestStore.from_env(timeout_seconds=config.datastore.request_timeout_seconds)
    return DataContext(store, config)


def _format_age(age_seconds) -> str:
    if age_seconds is None:
        return "never"
    if age_seconds < 60:
        return f"{age_seconds:.0f}s"
    return f"{age_seconds / 60:.1f}m"


def _print_cache_table(data: DataContext) -> None:
    table = Table(title="Cached collections")
    table.add_column("Collection")
    table.add_column("Records", justify="right")
    table.add_column("Age", justify="right")
    table.add_column("Fresh")
    table.add_column("Syncs", justify="right")
    table.add_column("Last error")

    for info in data.cache_info():
        table.add_row(
            info.name,
            str(info.count),
            _format_age(info.age_seconds),
            "[green]yes[/green]" if info.fresh else "[yellow]no[/yellow]",
            str(info.sync_count),
            info.last_error or "",
        )
    console.print(table)


def cmd_sync():
    """Synchronize every collection and print the cache summary."""
    force = "--force" in sys.argv[2:]

    async def run():
        async with _build_context() as data:
            try:
                await data.refresh_all(force=force)
            except SyncError as e:
                console.print(f"[red]✗ {e}[/red]")
            _print_cache_table(data)

    console.print("\n[bold]Synchronizing collections...[/bold]\n")
    asyncio.run(run())


def cmd_status():
    """Show cached collection status after a (TTL-respecting) refresh."""

    async def run():
        async with _build_context() as data:
            for name in data.cache.collections:
                try:
                    await data.refresh(name)
                except SyncError as e:
                    console.print(f"[red]✗ {e}[/red]")
            _print_cache_table(data)

    asyncio.run(run())


def cmd_check():
    """Check a title for near-duplicates in a collection."""
    if len(sys.argv) < 4:
        console.print("[red]Usage: python dashboard.py check <collection> <title>[/red]")
        return

    collection = sys.argv[2]
    title = " ".join(sys.argv[3:])

    async def run():
        async with _build_context() as data:
            try:
                result = await data.check_duplicates(title, collection)
            except (UnknownCollectionError, ValueError) as e:
                console.print(f"[red]{e}[/red]")
                return

            if not result.checked:
                console.print(Panel(
                    f"Title too short to check (minimum "
                    f"{data.config.deduplication.min_title_length} characters)"
                ))
                return
            if not result.duplicates:
                console.print("[green]✓ No similar content found[/green]")
                return

            table = Table(title="Similar content found")
            table.add_column("Score", justify="right")
            table.add_column("Match")
            table.add_column("Title")
            for dup in result.duplicates:
                table.add_row(f"{dup.percent}%", dup.match_kind.value, dup.title)
            console.print(table)

    asyncio.run(run())


def cmd_help():
    """Show help."""
    console.print(__doc__)


COMMANDS = {
    "sync": cmd_sync,
    "status": cmd_status,
    "check": cmd_check,
    "help": cmd_help,
    "--help": cmd_help,
    "-h": cmd_help,
}


def main():
    if len(sys.argv) < 2:
        cmd_help()
        return

    cmd = sys.argv[1].lower()

    if cmd not in COMMANDS:
        console.print(f"[red]Unknown command: {cmd}[/red]")
        cmd_help()
        return

    try:
        with correlation_context():
            COMMANDS[cmd]()
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")


if __name__ == "__main__":
    main()

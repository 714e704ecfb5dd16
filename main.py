#!/usr/bin/env python3
"""
DailyFeed - Daily Feed Cache Builder
====================================

Command line entry point.

Usage:
    python main.py --help               # Show all commands
    python main.py check-config         # Validate configuration
    python main.py build                # Fetch sources and rebuild cache.json
    python main.py show                 # Summarize an existing cache.json
"""

import asyncio
import sys
import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from dailyfeed.cache.models import AggregateCache
from dailyfeed.cache.store import CacheLoader
from dailyfeed.config.settings import DailyFeedSettings, get_settings
from dailyfeed.processing.pipeline import CachePipeline
from dailyfeed.utils.exceptions import (
    CacheLoadError,
    ConfigurationError,
    DailyFeedError,
    PersistError,
    handle_exception,
)
from dailyfeed.utils.logging import configure_application_logging
from dailyfeed.utils.process_lock import CacheLock, LockUnavailableError

console = Console()
logger = logging.getLogger("dailyfeed.cli")


def _load_settings_or_exit() -> DailyFeedSettings:
    try:
        return get_settings()
    except ConfigurationError as e:
        console.print(f"[bold red]❌ {escape(e.user_message)}[/bold red]")
        sys.exit(1)


def _configure_logging(settings: DailyFeedSettings, debug: bool) -> None:
    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )


def _days_table(cache: AggregateCache, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Day", style="cyan")
    table.add_column("Channels", justify="right", style="green")
    table.add_column("Items", justify="right")
    table.add_column("Sources")

    for bucket in cache.days:
        items = sum(len(channel.items) for channel in bucket.channels)
        sources = ", ".join(channel.title or channel.link for channel in bucket.channels)
        table.add_row(
            bucket.date.isoformat(), str(len(bucket.channels)), str(items), escape(sources) or "-"
        )
    return table


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, debug):
    """DailyFeed - day-bucketed feed cache builder."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def check_config():
    """Validate configuration (environment, .env, Config.toml and Config.yaml)."""
    console.print("[bold blue]🔧 Checking DailyFeed Configuration[/bold blue]")

    settings = _load_settings_or_exit()

    table = Table(title="Configuration Status")
    table.add_column("Setting", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    all_passed = bool(settings.sources)
    table.add_row(
        "Sources",
        "✅ Valid" if settings.sources else "❌ Empty",
        f"{len(settings.sources)} feeds",
    )
    table.add_row("Retention", "✅ Valid", f"{settings.cache_max_days} days")
    table.add_row("Prior cache", "✅ Valid", settings.cache_url or "none (start empty)")
    table.add_row("Proxy", "✅ Valid", settings.proxy or "none")
    table.add_row("Artifact", "✅ Valid", str(settings.cache_path))
    table.add_row(
        "Fetching",
        "✅ Valid",
        f"{settings.fetch.parallel_feeds} parallel, {settings.fetch.request_timeout}s timeout",
    )
    console.print(table)

    if all_passed:
        console.print("[bold green]✅ All configuration checks passed![/bold green]")
    else:
        console.print("[bold red]❌ No feed sources configured[/bold red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def build(ctx):
    """Fetch all sources, reconcile with the prior cache and write cache.json."""
    settings = _load_settings_or_exit()
    _configure_logging(settings, ctx.obj.get('debug'))

    try:
        with CacheLock(settings.cache_path):
            result = asyncio.run(CachePipeline(settings=settings).run())
    except LockUnavailableError as e:
        console.print(f"[bold red]❌ {escape(e.user_message)}[/bold red]")
        sys.exit(1)
    except PersistError as e:
        handle_exception(e, logger, "build")
        console.print(f"[bold red]❌ Cache not saved: {escape(str(e))}[/bold red]")
        sys.exit(1)
    except DailyFeedError as e:
        handle_exception(e, logger, "build")
        console.print(f"[bold red]❌ {escape(e.user_message)}[/bold red]")
        sys.exit(1)

    console.print(_days_table(result.cache, f"{result.cache.site_title or 'DailyFeed'} cache"))
    console.print(
        f"[green]{result.sources_succeeded}/{result.sources_total} sources fetched, "
        f"{len(result.cache.days)} days kept in {result.processing_time_seconds:.2f}s[/green]"
    )
    for url in result.failed_sources:
        console.print(f"  [yellow]⚠ skipped {url}[/yellow]")
    console.print(f"{settings.cache_path} generated")


@cli.command()
@click.argument('path', required=False, type=click.Path(dir_okay=False))
def show(path: Optional[str]):
    """Summarize the day buckets of a cache artifact."""
    if path is None:
        path = str(_load_settings_or_exit().cache_path)

    try:
        cache = CacheLoader.decode(Path(path).read_bytes(), path)
    except OSError as e:
        console.print(f"[bold red]❌ Cannot read {escape(path)}: {escape(str(e))}[/bold red]")
        sys.exit(1)
    except CacheLoadError as e:
        console.print(f"[bold red]❌ {escape(e.user_message)}[/bold red]")
        sys.exit(1)

    built = cache.build_time.isoformat() if cache.build_time else "never"
    console.print(_days_table(cache, f"{cache.site_title or path} (built {built})"))


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 DailyFeed interrupted by user[/yellow]")
        sys.exit(130)

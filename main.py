#!/usr/bin/env python3
"""
FeedWarden - Feed Ingestion and Health Core
===========================================

Main application entry point with CLI interface for operators.

Usage:
    python main.py --help                    # Show all commands
    python main.py init-db                   # Initialize database
    python main.py add-feed URL              # Register a feed
    python main.py sweep                     # Sweep every active feed
    python main.py process-queue             # Extract and grade queued articles
    python main.py health                    # System health snapshot
    python main.py cleanup-orphans           # Delete articles of removed feeds
"""

import sys
import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from feedwarden.config.settings import get_settings
from feedwarden.database.schema import DatabaseSchema
from feedwarden.database.connection import get_db_manager
from feedwarden.services.admin_service import AdminService
from feedwarden.utils.logging import configure_application_logging
from feedwarden.utils.exceptions import FeedWardenError

console = Console()
logger = logging.getLogger(__name__)


def _bootstrap(ctx) -> AdminService:
    """Prepare schema, logging and the admin service for a command."""
    settings = get_settings()
    Path(settings.database.path).parent.mkdir(parents=True, exist_ok=True)
    DatabaseSchema(settings.database.path).create_tables()

    db_manager = get_db_manager(settings.database.path)
    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get('debug') else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        db_connection=db_manager if settings.logging.persist_to_database else None,
        persist_level=settings.logging.persist_level.value,
    )
    return AdminService(db_manager)


def _fail(action: str, error: Exception) -> None:
    message = error.user_message if isinstance(error, FeedWardenError) else str(error)
    console.print(f"[bold red]❌ {action} failed: {message}[/bold red]")
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """FeedWarden - feed ingestion and health core."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def init_db():
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing FeedWarden Database[/bold blue]")

    try:
        settings = get_settings()
        Path(settings.database.path).parent.mkdir(parents=True, exist_ok=True)

        schema = DatabaseSchema(settings.database.path)
        schema.create_tables()

        if not schema.verify_schema():
            console.print("[bold red]❌ Database schema verification failed[/bold red]")
            sys.exit(1)

        console.print("[bold green]✅ Database initialized successfully![/bold green]")

        info = get_db_manager(settings.database.path).get_database_info()
        info_table = Table(title="Database Information")
        info_table.add_column("Property", style="cyan")
        info_table.add_column("Value", style="green")
        info_table.add_row("Database Path", settings.database.path)
        info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
        for table_name, count in info.get('table_counts', {}).items():
            info_table.add_row(f"Rows in {table_name}", str(count))
        console.print(info_table)

    except Exception as e:
        _fail("Database initialization", e)


@cli.command()
@click.argument('url')
@click.option('--source-id', help='Source identifier (default: derived from hostname)')
@click.option('--type', 'feed_type', type=click.Choice(['rss', 'atom', 'sitemap']),
              help='Feed format (default: guessed from URL)')
@click.option('--interval', type=int, help='Sweep interval in minutes')
@click.option('--inactive', is_flag=True, help='Register without sweeping it')
@click.pass_context
def add_feed(ctx, url, source_id, feed_type, interval, inactive):
    """Register a feed."""
    try:
        service = _bootstrap(ctx)
        feed = service.register_feed(
            url,
            source_id=source_id,
            feed_type=feed_type,
            active=not inactive,
            fetch_interval_minutes=interval,
        )
        console.print(f"[bold green]✅ Registered {feed.source_id} ({feed.type.value}): {feed.id}[/bold green]")
    except Exception as e:
        _fail("Feed registration", e)


@cli.command()
@click.argument('feed_id')
@click.confirmation_option(prompt='Delete this feed? Its articles are removed by the next cleanup-orphans.')
@click.pass_context
def delete_feed(ctx, feed_id):
    """Remove a feed from the registry."""
    try:
        result = _bootstrap(ctx).delete_feed(feed_id)
        console.print(f"[bold green]✅ {result.message}[/bold green]")
    except Exception as e:
        _fail("Feed deletion", e)


@cli.command()
@click.pass_context
def list_feeds(ctx):
    """Show the feed registry with health."""
    try:
        service = _bootstrap(ctx)
        feeds = service.list_feeds()
    except Exception as e:
        _fail("Listing feeds", e)
        return

    if not feeds:
        console.print("[yellow]No feeds registered[/yellow]")
        return

    table = Table(title=f"Feeds ({len(feeds)})")
    table.add_column("ID", style="dim")
    table.add_column("Source", style="cyan")
    table.add_column("Active")
    table.add_column("Status")
    table.add_column("Reliability", justify="right")
    table.add_column("Failures", justify="right")
    table.add_column("Errors 24h", justify="right")
    table.add_column("URL")

    colors = {"healthy": "green", "degraded": "yellow", "error": "red", "disabled": "bold red"}
    for feed in feeds:
        status = feed.health.status.value
        table.add_row(
            feed.id[:8],
            feed.source_id,
            "✅" if feed.active else "⏸️",
            f"[{colors[status]}]{status}[/{colors[status]}]",
            f"{feed.health.reliability_score:.0f}",
            str(feed.health.consecutive_failures),
            str(feed.health.error_count_24h),
            feed.url,
        )
    console.print(table)


@cli.command()
@click.option('--feed-id', help='Sweep a single feed')
@click.option('--force', is_flag=True, help='Ignore intervals and unchanged content')
@click.pass_context
def sweep(ctx, feed_id, force):
    """Pull new items from feeds into the queue."""
    console.print("[bold blue]📡 Sweeping feeds[/bold blue]")

    try:
        service = _bootstrap(ctx)
        if feed_id:
            results = [asyncio.run(service.sweep_feed(feed_id, force=force))]
        else:
            results = asyncio.run(service.sweep_all(force=force))
    except Exception as e:
        _fail("Sweep", e)
        return

    table = Table(title="Sweep Results")
    table.add_column("Feed", style="dim")
    table.add_column("Result")
    table.add_column("New", justify="right")
    table.add_column("Items", justify="right")
    for result in results:
        if result.skipped:
            outcome = f"[yellow]skipped: {result.reason}[/yellow]"
        elif result.success:
            outcome = "[green]ok[/green]"
        else:
            outcome = f"[red]{result.error}[/red]"
        table.add_row(result.feed_id[:8], outcome, str(result.created), str(result.total))
    console.print(table)


@cli.command()
@click.argument('article_id')
@click.option('--force', is_flag=True, help='Re-extract even if content is present')
@click.pass_context
def extract(ctx, article_id, force):
    """Extract and grade one article."""
    try:
        service = _bootstrap(ctx)
        outcome = asyncio.run(service.extract_article(article_id, force=force))
    except Exception as e:
        _fail("Extraction", e)
        return

    if outcome.ok:
        console.print(
            f"[bold green]✅ {outcome.status}: lifecycle={outcome.lifecycle} "
            f"quality={outcome.quality_score}[/bold green]"
        )
        for reason in outcome.reasons:
            console.print(f"  • {reason}")
    else:
        console.print(f"[bold red]❌ {outcome.error}[/bold red]")
        sys.exit(1)


@cli.command()
@click.option('--limit', type=int, help='Maximum queued articles to process')
@click.pass_context
def process_queue(ctx, limit):
    """Extract and grade queued articles concurrently."""
    console.print("[bold blue]⚙️ Processing article queue[/bold blue]")

    try:
        service = _bootstrap(ctx)
        result = asyncio.run(service.process_queue(limit))
    except Exception as e:
        _fail("Queue processing", e)
        return

    table = Table(title=f"Queue Run ({result.requested} articles, {result.duration_seconds:.1f}s)")
    table.add_column("Outcome", style="cyan")
    table.add_column("Count", justify="right")
    for status in ("processed", "blocked", "updated", "skipped", "failed"):
        table.add_row(status, str(result.count(status)))
    console.print(table)

    for outcome in result.outcomes:
        if not outcome.ok:
            console.print(f"  [red]{outcome.article_id[:12]}: {outcome.error}[/red]")


@cli.command()
@click.pass_context
def backfill(ctx):
    """Publish processed articles that lack a publication date."""
    try:
        result = _bootstrap(ctx).backfill_published()
        console.print(f"[bold green]✅ {result.message}[/bold green]")
    except Exception as e:
        _fail("Backfill", e)


@cli.command()
@click.confirmation_option(prompt='Return every disabled/error feed to service?')
@click.pass_context
def reset_feeds(ctx):
    """Reset health of disabled and errored feeds."""
    try:
        result = _bootstrap(ctx).reset_feed_health()
        console.print(f"[bold green]✅ {result.message}[/bold green]")
    except Exception as e:
        _fail("Feed reset", e)


@cli.command()
@click.pass_context
def roll_error_window(ctx):
    """Start a new 24h error window for every feed."""
    try:
        result = _bootstrap(ctx).roll_error_window()
        console.print(f"[bold green]✅ {result.message}[/bold green]")
    except Exception as e:
        _fail("Error window roll", e)


@cli.command()
@click.option('--allow-empty', is_flag=True,
              help='Delete every sourced article when no feed is active')
@click.pass_context
def cleanup_orphans(ctx, allow_empty):
    """Delete articles whose source has no active feed."""
    console.print("[bold blue]🧹 Orphan cleanup[/bold blue]")
    try:
        result = _bootstrap(ctx).cleanup_orphans(allow_empty or None)
    except Exception as e:
        _fail("Orphan cleanup", e)
        return

    if result.ok:
        console.print(f"[bold green]✅ {result.message}[/bold green]")
    else:
        console.print(f"[bold yellow]⚠️ {result.message}[/bold yellow]")
        sys.exit(1)


@cli.command()
@click.pass_context
def health(ctx):
    """Compute a fresh system health snapshot.

    Routes are probed only when FEEDWARDEN_MONITORING__BASE_URL is set.
    """
    try:
        snapshot = asyncio.run(_bootstrap(ctx).health_snapshot())
    except Exception as e:
        _fail("Health check", e)
        return

    score = snapshot.health_score
    color = "green" if score >= 80 else "yellow" if score >= 50 else "red"
    console.print(f"[bold {color}]Health score: {score}/100[/bold {color}]")

    routes = Table(title="Routes")
    routes.add_column("Route", style="cyan")
    routes.add_column("Path")
    routes.add_column("Status", justify="right")
    routes.add_column("Latency", justify="right")
    for probe in snapshot.route_probe_results:
        status = f"[green]{probe.status}[/green]" if probe.ok else f"[red]{probe.status}[/red]"
        routes.add_row(probe.name, probe.path, status, f"{probe.latency_ms} ms")
    console.print(routes)

    stats = Table(title="System")
    stats.add_column("Metric", style="cyan")
    stats.add_column("Value", justify="right")
    for state, count in snapshot.queue_counts.items():
        stats.add_row(f"Articles {state}", str(count))
    stats.add_row("Feeds total", str(snapshot.feed_stats.total))
    stats.add_row("Feeds active", str(snapshot.feed_stats.active))
    stats.add_row("Feeds disabled", str(snapshot.feed_stats.disabled))
    stats.add_row("Mean reliability", f"{snapshot.feed_stats.mean_reliability:.1f}")
    stats.add_row("Errors last hour", str(snapshot.error_rate.errors_last_hour))
    stats.add_row("Logs last 5 min", str(snapshot.error_rate.logs_last_5_minutes))
    stats.add_row("Database size", f"{snapshot.db_size_bytes / (1024 * 1024):.2f} MB")
    stats.add_row("Computed in", f"{snapshot.duration_ms} ms")
    console.print(stats)


@cli.command()
@click.option('--recent', is_flag=True, help='Newest by ingestion time instead of publication')
@click.option('--limit', type=int, help='Maximum articles to show')
@click.option('--include-blocked', is_flag=True, help='Include blocked articles')
@click.pass_context
def articles(ctx, recent, limit, include_blocked):
    """List published or recently ingested articles."""
    try:
        service = _bootstrap(ctx)
        if recent:
            items = service.list_recent(limit)
        else:
            items = service.list_published(limit, include_blocked=include_blocked)
    except Exception as e:
        _fail("Listing articles", e)
        return

    table = Table(title=f"{'Recent' if recent else 'Published'} Articles ({len(items)})")
    table.add_column("Date", style="dim")
    table.add_column("Source", style="cyan")
    table.add_column("Lifecycle")
    table.add_column("Quality", justify="right")
    table.add_column("Title")
    for article in items:
        table.add_row(
            article.effective_date.strftime("%Y-%m-%d %H:%M"),
            article.source_id or "-",
            article.lifecycle.value,
            "-" if article.quality_score is None else str(article.quality_score),
            article.title[:80],
        )
    console.print(table)


@cli.command()
@click.argument('updates', nargs=-1)
@click.pass_context
def config(ctx, updates):
    """Show the system configuration, or set KEY=VALUE pairs."""
    try:
        service = _bootstrap(ctx)
        if updates:
            pairs = {}
            for item in updates:
                key, sep, value = item.partition('=')
                if not sep:
                    raise click.BadParameter(f"Expected KEY=VALUE, got {item!r}")
                pairs[key.strip()] = value.strip()
            current = service.set_config(**pairs)
        else:
            current = service.get_config()
    except click.BadParameter:
        raise
    except Exception as e:
        _fail("Configuration", e)
        return

    table = Table(title="System Configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for key, value in current.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)


@cli.command()
@click.option('--days', type=int, help='Keep this many days of logs')
@click.pass_context
def purge_logs(ctx, days):
    """Delete old rows from the logs table."""
    try:
        _bootstrap(ctx)
        settings = get_settings()
        deleted = get_db_manager(settings.database.path).purge_old_logs(
            days or settings.database.log_retention_days
        )
        console.print(f"[bold green]✅ Deleted {deleted} old log records[/bold green]")
    except Exception as e:
        _fail("Log purge", e)


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 FeedWarden interrupted by user[/yellow]")
        sys.exit(130)

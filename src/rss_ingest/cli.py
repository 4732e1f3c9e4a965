"""CLI interface for RSS Ingest using Typer."""

import asyncio
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

import typer
import yaml
from typing_extensions import Annotated

from . import __version__
from .config import create_example_config, load_config
from .core.fetcher import check_url
from .core.models import FeedDescriptor, identity
from .errors import SchemeRejected
from .main import IngestApp
from .utils.paths import slugify


app = typer.Typer(
    name="rss-ingest",
    help="Scheduled RSS/Atom ingestion with deduplication and durable caching",
    add_completion=False,
)
feeds_app = typer.Typer(help="Manage followed feeds")
app.add_typer(feeds_app, name="feeds")

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")]


def _load_app(config_file: Optional[Path]) -> IngestApp:
    try:
        return IngestApp(config_file)
    except Exception as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)


def _echo_events(events) -> None:
    for event in events:
        typer.echo(f"[{event.feed_id}] {len(event.entries)} new entries")
        for entry in event.entries:
            typer.echo(f"  • {entry.title}  {entry.url}")


@app.command()
def run(
    once: Annotated[bool, typer.Option("--once", help="Poll all feeds once and exit")] = False,
    config_file: ConfigOption = None,
) -> None:
    """Run the polling scheduler and print newly announced entries."""
    app_instance = _load_app(config_file)

    async def consume() -> None:
        channel = app_instance.create_channel()
        scheduler = app_instance.start_scheduler(channel)
        try:
            async for event in channel:
                _echo_events([event])
        finally:
            await scheduler.stop()

    try:
        if once:
            _echo_events(asyncio.run(app_instance.refresh()))
        else:
            asyncio.run(consume())
    except KeyboardInterrupt:
        typer.echo("Interrupted by user")
    except Exception as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        app_instance.close()


@app.command()
def poll(
    feed_id: Annotated[Optional[str], typer.Option("--feed", "-f", help="Only poll this feed")] = None,
    config_file: ConfigOption = None,
) -> None:
    """Poll feeds once (manual refresh)."""
    app_instance = _load_app(config_file)
    try:
        events = asyncio.run(app_instance.refresh(feed_id))
    except Exception as e:
        typer.echo(f"✗ Error polling feeds: {e}", err=True)
        raise typer.Exit(1)
    finally:
        app_instance.close()

    if not events:
        typer.echo("No new entries")
    _echo_events(events)


@feeds_app.command("add")
def feeds_add(
    url: Annotated[str, typer.Argument(help="Feed URL (https)")],
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Feed title")] = None,
    feed_id: Annotated[Optional[str], typer.Option("--id", help="Feed identifier")] = None,
    config_file: ConfigOption = None,
) -> None:
    """Follow a new feed."""
    app_instance = _load_app(config_file)
    try:
        check_url(url, app_instance.config.allow_loopback_http)
    except SchemeRejected as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(1)

    host = urlparse(url).hostname or url
    descriptor = FeedDescriptor(
        id=feed_id or slugify(title or host),
        title=title or host,
        url=url,
    )
    asyncio.run(app_instance.store.add_feed(descriptor))
    typer.echo(f"✓ Added feed {descriptor.id} ({descriptor.url})")


@feeds_app.command("remove")
def feeds_remove(
    feed_id: Annotated[str, typer.Argument(help="Feed identifier")],
    config_file: ConfigOption = None,
) -> None:
    """Stop following a feed and drop its cached articles."""
    app_instance = _load_app(config_file)
    if asyncio.run(app_instance.store.remove_feed(feed_id)):
        typer.echo(f"✓ Removed feed {feed_id}")
    else:
        typer.echo(f"✗ Feed not found: {feed_id}", err=True)
        raise typer.Exit(1)


@feeds_app.command("list")
def feeds_list(config_file: ConfigOption = None) -> None:
    """List followed feeds."""
    app_instance = _load_app(config_file)
    feeds = asyncio.run(app_instance.store.list_feeds())
    if not feeds:
        typer.echo("No feeds configured")
    for feed in feeds:
        typer.echo(f"{feed.id}\t{feed.title}\t{feed.url}")


@app.command()
def articles(
    feed_id: Annotated[Optional[str], typer.Option("--feed", "-f", help="Only this feed")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum entries to show")] = 20,
    config_file: ConfigOption = None,
) -> None:
    """Show cached articles, newest first."""
    app_instance = _load_app(config_file)
    store = app_instance.store

    async def collect() -> List[str]:
        entries = await (store.list_articles(feed_id) if feed_id else store.list_all_articles())
        lines = []
        for entry in entries[:limit]:
            key = identity(entry)
            marker = "*" if await store.is_starred(entry) else " "
            status = " " if await store.is_read(entry) else "N"
            published = entry.published_at.isoformat() if entry.published_at else "-"
            lines.append(f"{status}{marker} {published}  [{entry.feed_id}] {entry.title}\n     {key}")
        return lines

    for line in asyncio.run(collect()):
        typer.echo(line)


@app.command()
def read(
    feed_id: Annotated[str, typer.Argument(help="Feed identifier")],
    entry_identity: Annotated[str, typer.Argument(help="Entry identity (as shown by 'articles')")],
    unread: Annotated[bool, typer.Option("--unread", help="Mark as unread instead")] = False,
    config_file: ConfigOption = None,
) -> None:
    """Mark an entry as read (or unread)."""
    app_instance = _load_app(config_file)
    store = app_instance.store
    action = store.mark_unread if unread else store.mark_read
    asyncio.run(action(entry_identity, feed_id))
    typer.echo(f"✓ Marked {entry_identity} as {'unread' if unread else 'read'}")


@app.command()
def star(
    feed_id: Annotated[str, typer.Argument(help="Feed identifier")],
    entry_identity: Annotated[str, typer.Argument(help="Entry identity (as shown by 'articles')")],
    remove: Annotated[bool, typer.Option("--remove", help="Remove the star")] = False,
    config_file: ConfigOption = None,
) -> None:
    """Star (or unstar) an entry."""
    app_instance = _load_app(config_file)
    store = app_instance.store
    action = store.unmark_starred if remove else store.mark_starred
    asyncio.run(action(entry_identity, feed_id))
    typer.echo(f"✓ {'Unstarred' if remove else 'Starred'} {entry_identity}")


@app.command()
def config(
    show: Annotated[bool, typer.Option("--show", help="Show current config")] = False,
    example: Annotated[bool, typer.Option("--example", help="Generate example config")] = False,
    config_file: ConfigOption = None,
) -> None:
    """Show or generate configuration."""
    if example:
        typer.echo(create_example_config())
    elif show:
        try:
            config_obj = load_config(config_file)
            typer.echo(yaml.safe_dump(config_obj.model_dump(), default_flow_style=False, indent=2))
        except Exception as e:
            typer.echo(f"✗ Error loading config: {e}", err=True)
            raise typer.Exit(1)
    else:
        typer.echo("Use --show to view config or --example to generate example")


@app.command()
def info(config_file: ConfigOption = None) -> None:
    """Show version and data information."""
    typer.echo(f"RSS Ingest v{__version__}")
    app_instance = _load_app(config_file)
    info_data = asyncio.run(app_instance.get_info())
    typer.echo(f"  Data directory: {info_data['data_dir']}")
    typer.echo(f"  Log level: {info_data['log_level']}")
    typer.echo(f"  Feeds: {info_data['total_feeds']}")
    typer.echo(f"  Cached articles: {info_data['cached_articles']}")
    typer.echo(f"  Poll interval: {info_data['poll_interval']} seconds")


if __name__ == "__main__":
    app()

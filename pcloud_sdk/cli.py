"""
Command-line interface for the pCloud SDK.

This module provides the ``pcloud`` command for inspecting and following
the account's change feed from a terminal.
"""

import os
import sys
import json
import asyncio
import logging
from pathlib import Path
from typing import Optional, Dict, Any, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .client import PCloudClient
from .async_client import AsyncPCloudClient, DEFAULT_ENDPOINT
from .events import filter_stream, kinds_predicate
from .models import ChangeEvent, EventKind, StreamConfig
from .exceptions import PCloudError, ConfigurationError
from .utils import format_file_size


# Initialize Rich console
console = Console()

EVENT_STYLES = {
    "create": "green",
    "modify": "yellow",
    "delete": "red",
}


class CLIContext:
    """CLI context object to share state between commands."""

    def __init__(self):
        self.client: Optional[PCloudClient] = None
        self.config: Dict[str, Any] = {}
        self.config_file = Path.home() / ".pcloud" / "config.json"

    def load_config(self):
        """Load configuration from file."""
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    self.config = json.load(f)
            except (json.JSONDecodeError, IOError):
                self.config = {}

    def save_config(self):
        """Save configuration to file."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, 'w') as f:
            json.dump(self.config, f, indent=2)
        self.config_file.chmod(0o600)

    def client_options(self) -> Dict[str, Any]:
        """Connection settings from the config file, then the environment."""
        access_token = self.config.get('access_token') or os.getenv('PCLOUD_ACCESS_TOKEN')
        endpoint = self.config.get('endpoint') or os.getenv('PCLOUD_ENDPOINT') or DEFAULT_ENDPOINT

        if not access_token:
            raise ConfigurationError(
                "Access token not configured. Use 'pcloud config' or set PCLOUD_ACCESS_TOKEN environment variable.",
                config_key="access_token",
            )

        return {"access_token": access_token, "endpoint": endpoint}

    def get_client(self) -> PCloudClient:
        """Get authenticated client."""
        if self.client is None:
            self.client = PCloudClient(**self.client_options())
            self.client.resolve_api_server()

        return self.client


# Create CLI context
cli_context = CLIContext()


def setup_logging(debug: bool):
    """Route SDK log records to the console."""
    handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(name)s - %(message)s"))

    sdk_logger = logging.getLogger("pcloud_sdk")
    sdk_logger.handlers = [handler]
    sdk_logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def build_config(cursor, after, last, limit, block_timeout=None, blocking=False) -> StreamConfig:
    """Build a StreamConfig from command line options."""
    if after is not None and after.tzinfo is None:
        # click.DateTime yields naive local times
        after = after.astimezone()

    return StreamConfig(
        start_cursor=cursor,
        start_after=after,
        last_n=last,
        page_limit=limit,
        blocking=blocking,
        block_timeout=block_timeout,
    )


def describe_event(event: ChangeEvent) -> Tuple[str, str]:
    """Short name and detail text for an event."""
    name = event.name or ""
    detail = ""

    if event.subject is not None:
        if event.subject.is_folder:
            detail = f"folder {event.subject.folder_id}"
        elif event.subject.size is not None:
            detail = format_file_size(event.subject.size)
    elif event.share is not None:
        detail = f"share of folder {event.share.folder_id}"

    return name, detail


def event_style(event: ChangeEvent) -> str:
    for prefix, style in EVENT_STYLES.items():
        if event.kind.value.startswith(prefix):
            return style
    return "blue"


def print_event(event: ChangeEvent):
    """Print one event as a console line."""
    name, detail = describe_event(event)
    style = event_style(event)
    console.print(
        f"[cyan]{event.cursor}[/cyan] "
        f"[dim]{event.timestamp.strftime('%Y-%m-%d %H:%M:%S')}[/dim] "
        f"[{style}]{event.kind.value}[/{style}] {escape(name)} [dim]{detail}[/dim]"
    )


@click.group()
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """pCloud CLI - follow the change feed of a pCloud account."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    # Load configuration
    cli_context.load_config()
    setup_logging(debug)

    if debug:
        console.print("[dim]Debug mode enabled[/dim]")


@cli.command()
@click.option('--token', prompt=True, hide_input=True, help='OAuth access token')
@click.option('--endpoint', default=DEFAULT_ENDPOINT, help='pCloud API endpoint')
def config(token, endpoint):
    """Configure pCloud credentials and settings."""

    cli_context.config.update({
        'access_token': token,
        'endpoint': endpoint
    })
    cli_context.save_config()

    console.print("✅ Configuration saved successfully!")


@cli.command()
def status():
    """Check which API server is used."""
    try:
        client = cli_context.get_client()

        table = Table(title="pCloud Status")
        table.add_column("Property", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Endpoint", client.endpoint)
        table.add_row("API server", client.api_host)

        console.print(table)

    except PCloudError as e:
        console.print(f"❌ Status check failed: {e}")
        sys.exit(1)


@cli.group()
def events():
    """Inspect and follow account events."""


@events.command(name='list')
@click.option('--cursor', '-c', type=int, help='List events after this cursor')
@click.option('--after', type=click.DateTime(), help='List events after this time')
@click.option('--last', type=int, help='Only the given number of most recent events')
@click.option('--limit', '-l', type=int, help='Maximum number of events to return')
@click.option('--json', 'output_json', is_flag=True, help='Output as JSON')
def list_events(cursor, after, last, limit, output_json):
    """List one page of account events."""

    try:
        client = cli_context.get_client()
        batch = client.diff(build_config(cursor, after, last, limit))

        if output_json:
            data = {
                "diffid": batch.high_water_cursor,
                "entries": [event.to_dict() for event in batch.events],
            }
            click.echo(json.dumps(data, indent=2, default=str))
            return

        if not batch.events:
            console.print(f"No events. Next cursor: {batch.high_water_cursor}")
            return

        table = Table(title="Events")
        table.add_column("Cursor", style="cyan")
        table.add_column("Time", style="magenta")
        table.add_column("Event", style="green")
        table.add_column("Name", style="yellow")
        table.add_column("Detail", style="blue")

        for event in batch.events:
            name, detail = describe_event(event)
            table.add_row(
                str(event.cursor),
                event.timestamp.strftime('%Y-%m-%d %H:%M:%S'),
                event.kind.value,
                name,
                detail,
            )

        console.print(table)
        console.print(f"Next cursor: {batch.high_water_cursor}")

    except PCloudError as e:
        console.print(f"❌ Failed to list events: {e}")
        sys.exit(1)


async def follow_events(options: Dict[str, Any], config: StreamConfig, kinds, max_events: Optional[int]) -> int:
    """Print streamed events until interrupted, the limit is hit or the stream fails."""
    count = 0

    async with AsyncPCloudClient(**options) as client:
        await client.resolve_api_server()
        stream = client.stream_changes(config)
        source = filter_stream(stream, kinds_predicate(*kinds), stream.capacity) if kinds else stream

        try:
            async for event in source:
                print_event(event)
                count += 1
                if max_events and count >= max_events:
                    break
        finally:
            await source.aclose()
            if source is not stream:
                await stream.aclose()
            # The session must outlive an in-flight poll, at most block_timeout.
            await source.wait_closed()
            await stream.wait_closed()

        if stream.error is not None:
            raise stream.error

    return count


@events.command()
@click.option('--cursor', '-c', type=int, help='Resume after this cursor')
@click.option('--after', type=click.DateTime(), help='Start with events after this time')
@click.option('--limit', '-l', type=int, help='Page size per poll')
@click.option('--block-timeout', type=float, default=30.0, show_default=True,
              help='Seconds a single poll may wait for new events')
@click.option('--kind', 'kinds', multiple=True,
              type=click.Choice([kind.value for kind in EventKind]),
              help='Only show these event kinds (can be used multiple times)')
@click.option('--max-events', type=int, help='Stop after this many events')
def watch(cursor, after, limit, block_timeout, kinds, max_events):
    """Follow account events as they happen."""

    try:
        options = cli_context.client_options()
        config = build_config(cursor, after, None, limit, block_timeout=block_timeout, blocking=True)
        wanted = [EventKind(kind) for kind in kinds]

        count = asyncio.run(follow_events(options, config, wanted, max_events))
        console.print(f"✅ Received {count} events")

    except KeyboardInterrupt:
        console.print("Stopped.")
    except PCloudError as e:
        console.print(f"❌ Event stream failed: {e}")
        sys.exit(1)


if __name__ == '__main__':
    cli()

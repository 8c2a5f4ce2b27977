#!/usr/bin/env python3
"""
cloudjournal CLI - ship a local journal to CloudWatch Logs.

All configuration comes from the environment (see ShipperSettings); the
CLI only chooses what to do with it.
"""

import asyncio
import logging
import os
import sys

import click

from cloudjournal import Coordinator
from cloudjournal.core.cursor import CursorStore
from cloudjournal.core.settings import DEFAULT_CURSOR_FILE, ShipperSettings
from cloudjournal.messages import get_logger, set_level
from cloudjournal.utility.exceptions import ConfigError, ShipperError


def _load_settings() -> ShipperSettings:
    try:
        return ShipperSettings.load_from_env()
    except ConfigError as e:
        click.echo(f"Configuration error: {e}")
        sys.exit(1)


@click.group()
@click.version_option(package_name="cloudjournal")
def cloudjournal():
    """
    cloudjournal - ship a local journal to CloudWatch Logs

    Reads LOG_GROUP_NAME, LOG_STREAM_NAME, BATCH_SIZE, JOURNAL_CURSOR_FILE,
    JOURNAL_TYPE, JOURNAL_PATH, LOGS_ENDPOINT_URL and AWS_REGION from the
    environment.
    """
    pass


@cloudjournal.command()
@click.option(
    "--once",
    is_flag=True,
    help="Ship everything currently in the journal, then exit",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable verbose logging",
)
def ship(once: bool, verbose: bool):
    """Ship journal entries until stopped (SIGINT/SIGTERM stop gracefully)."""
    if verbose:
        set_level(logging.DEBUG)
    logger = get_logger("cloudjournal.cli.ship")

    settings = _load_settings()

    try:
        coordinator = Coordinator(settings)
        asyncio.run(coordinator.run(drain_only=once))
    except ConfigError as e:
        click.echo(f"Configuration error: {e}")
        sys.exit(1)
    except ShipperError as e:
        click.echo(f"Error: {e}")
        logger.error(f"Shipping stopped: {e}")
        sys.exit(1)


@cloudjournal.command()
def debug():
    """Validate configuration and show where shipping would resume."""
    settings = _load_settings()

    click.echo("Configuration is valid")
    click.echo(f"Destination: {settings.log_group_name}/{settings.log_stream_name}")
    click.echo(f"Region: {settings.region or '(boto3 default)'}")
    if settings.endpoint_url:
        click.echo(f"Endpoint: {settings.endpoint_url}")
    click.echo(f"Journal: {settings.journal_type} {settings.journal_path or ''}")
    click.echo(f"Batch size: {settings.batch_size}")
    click.echo(f"Cursor file: {settings.cursor_file}")

    try:
        persisted = CursorStore(settings.cursor_file).read()
    except ShipperError as e:
        click.echo(f"Cursor: unreadable ({e})")
        sys.exit(1)
    if persisted is None:
        persisted = "(none, start from head)"
    click.echo(f"Cursor: {persisted}")


@cloudjournal.group()
def cursor():
    """Inspect or reset the persisted journal cursor."""
    pass


@cursor.command("show")
@click.option(
    "--file", "cursor_file", help="Cursor file (default: JOURNAL_CURSOR_FILE)"
)
def cursor_show(cursor_file: str):
    """Print the persisted cursor."""
    store = CursorStore(cursor_file or _cursor_file_from_env())
    try:
        value = store.read()
    except ShipperError as e:
        click.echo(f"Error: {e}")
        sys.exit(1)
    if value is None:
        click.echo("No cursor persisted; shipping starts from the earliest record")
    else:
        click.echo(value)


@cursor.command("reset")
@click.option(
    "--file", "cursor_file", help="Cursor file (default: JOURNAL_CURSOR_FILE)"
)
@click.confirmation_option(
    prompt="The next start will re-ship the whole retained journal. Continue?"
)
def cursor_reset(cursor_file: str):
    """Remove the persisted cursor."""
    store = CursorStore(cursor_file or _cursor_file_from_env())
    try:
        store.clear()
    except ShipperError as e:
        click.echo(f"Error: {e}")
        sys.exit(1)
    click.echo(f"Removed {store.path}")


def _cursor_file_from_env() -> str:
    return os.environ.get("JOURNAL_CURSOR_FILE") or DEFAULT_CURSOR_FILE


if __name__ == "__main__":
    cloudjournal()

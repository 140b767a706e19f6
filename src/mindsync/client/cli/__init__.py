"""Command-line interface for mindsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- connect: Authorize access to Google Drive or Dropbox
- disconnect: Forget stored credentials
- whoami: Show the connected account
- sync: Synchronize tracking data with the cloud
- status: Show connection, sync and tracking state
- clear-cloud: Delete all app files from the cloud
- log: Record servings of a food
- target: Show or set weekly targets
- config: Show or change settings
"""

from __future__ import annotations

import logging

import click

from mindsync.client.cli.auth import connect, disconnect, whoami
from mindsync.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_settings,
    get_state_db_path,
    load_config,
    save_config,
)
from mindsync.client.cli.settings import config_cmd
from mindsync.client.cli.sync import clear_cloud, status, sync
from mindsync.client.cli.tracking import log, target


@click.group()
@click.version_option(package_name="mindsync")
@click.option("--verbose", "-v", count=True, help="Show sync progress (-vv for details).")
def cli(verbose: int) -> None:
    """mindsync - Sync MIND diet tracking data with your cloud storage."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


# Account commands
cli.add_command(connect)
cli.add_command(disconnect)
cli.add_command(whoami)

# Sync commands
cli.add_command(sync)
cli.add_command(status)
cli.add_command(clear_cloud)

# Tracking commands
cli.add_command(log)
cli.add_command(target)

# Settings
cli.add_command(config_cmd)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "get_settings",
    "get_state_db_path",
    "load_config",
    "save_config",
]

"""Settings command for the mindsync CLI.

Commands:
- config: Show or change settings
"""

from __future__ import annotations

import sys

import click

from mindsync.client.cli.config import get_config_file, load_config, parse_setting, save_config
from mindsync.core.config import SyncSettings


@click.command(name="config")
@click.argument("key", required=False)
@click.argument("value", required=False)
def config_cmd(key: str | None, value: str | None) -> None:
    """Show settings, show KEY, or set KEY to VALUE."""
    config = load_config()
    try:
        settings = SyncSettings.from_dict(config)
    except ValueError as e:
        click.echo(f"Error: Invalid config in {get_config_file()}: {e}", err=True)
        sys.exit(1)

    current = settings.to_dict()
    if key is None:
        for name, setting in current.items():
            click.echo(f"{name} = {setting}")
        return

    if key not in current:
        click.echo(f"Error: Unknown setting '{key}'", err=True)
        sys.exit(1)

    if value is None:
        click.echo(f"{key} = {current[key]}")
        return

    try:
        config[key] = parse_setting(key, value)
        SyncSettings.from_dict(config)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    save_config(config)
    click.echo(f"{key} = {config[key]}")

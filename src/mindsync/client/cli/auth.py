"""Account commands for the mindsync CLI.

Commands:
- connect: Authorize access to a cloud provider
- disconnect: Forget stored credentials
- whoami: Show the connected account
"""

from __future__ import annotations

import asyncio
import sys
import webbrowser

import click

from mindsync.client.cli.config import load_config, save_config
from mindsync.client.cli.services import open_services
from mindsync.client.keystore import CredentialStoreError
from mindsync.client.sync import SyncError
from mindsync.core.types import ProviderKind


async def _prompt_for_callback(url: str) -> str | None:
    """Open the authorization page and ask for the redirect URL."""
    click.echo("Opening the authorization page in your browser:")
    click.echo(f"  {url}")
    webbrowser.open(url)
    callback = click.prompt(
        "Paste the URL you were redirected to (or the code)",
        default="",
        show_default=False,
    )
    return callback.strip() or None


async def _connect(callback: str | None) -> None:
    async with open_services(authorization_handler=_prompt_for_callback) as services:
        provider = services.provider
        if callback:
            if not await provider.has_pending_authorization():
                click.echo("Error: No pending authorization. Run 'mindsync connect' first.", err=True)
                sys.exit(1)
            outcome = await services.coordinator.resume_pending_authorization(callback)
            click.echo(f"Connected and synced ({'ok' if outcome.success else 'with errors'}).")
            return

        if not await provider.authenticate():
            click.echo("Authorization cancelled. Resume with 'mindsync connect --resume URL'.")
            return
        info = await provider.get_user_info()
        who = (info.email or info.name) if info else "unknown account"
        click.echo(f"Connected to {provider.kind.value} as {who}")


@click.command()
@click.option(
    "--provider",
    type=click.Choice([k.value for k in ProviderKind]),
    help="Cloud provider to use (saved in the config).",
)
@click.option(
    "--resume",
    "callback",
    metavar="URL",
    help="Complete a pending authorization with the redirect URL or code.",
)
def connect(provider: str | None, callback: str | None) -> None:
    """Connect to a cloud storage provider.

    Opens the provider's authorization page. The redirect URL can be pasted
    at the prompt, or later with --resume.
    """
    if provider:
        config = load_config()
        config["provider"] = provider
        save_config(config)

    try:
        asyncio.run(_connect(callback))
    except (SyncError, CredentialStoreError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


async def _disconnect() -> None:
    async with open_services(initialize=False) as services:
        await services.coordinator.disconnect()
        click.echo(f"Disconnected from {services.provider.kind.value}")


@click.command()
def disconnect() -> None:
    """Forget the stored credentials of the configured provider."""
    asyncio.run(_disconnect())


async def _whoami() -> None:
    async with open_services() as services:
        provider = services.provider
        if not provider.is_authenticated:
            click.echo(f"Not connected to {provider.kind.value}")
            return
        info = await provider.get_user_info()
        if info is None:
            click.echo(f"Connected to {provider.kind.value} (account details unavailable)")
            return
        click.echo(f"Provider: {provider.kind.value}")
        click.echo(f"Email:    {info.email or '-'}")
        click.echo(f"Name:     {info.name or '-'}")
        click.echo(f"ID:       {info.id}")


@click.command()
def whoami() -> None:
    """Show the account of the connected provider."""
    try:
        asyncio.run(_whoami())
    except SyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

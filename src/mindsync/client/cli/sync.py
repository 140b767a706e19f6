"""Sync commands for the mindsync CLI.

Commands:
- sync: Synchronize tracking data with the cloud
- status: Show connection, sync and tracking state
- clear-cloud: Delete all app files from the cloud
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime

import click

from mindsync.client.cli.services import LAST_SYNC_PREFERENCE, Services, open_services
from mindsync.client.sync import (
    AuthenticationRequiredError,
    AutoSyncScheduler,
    NetworkConstraintError,
    SyncError,
    SyncOutcome,
    SyncRequestCoordinator,
    TriggerSource,
    UnitStatus,
)


def format_timestamp(timestamp_ms: int | None) -> str:
    """Format an epoch ms timestamp for display."""
    if not timestamp_ms:
        return "never"
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def print_outcome(outcome: SyncOutcome) -> None:
    """Print a one-line summary per unit."""
    if outcome.skipped:
        click.echo("Sync already in progress, skipped.")
        return
    if outcome.reset_performed:
        click.echo(f"Date rollover: {outcome.reset_performed.lower()}")
    for unit, result in outcome.units.items():
        actions = []
        if result.downloaded:
            actions.append("downloaded")
        if result.merged:
            actions.append("merged")
        if result.uploaded:
            actions.append("uploaded")
        if result.records_downloaded or result.records_uploaded:
            actions.append(
                f"{result.records_downloaded} week(s) in, {result.records_uploaded} week(s) out"
            )
        line = f"  {unit.value}: {result.status.name.lower()}"
        if actions:
            line += f" ({', '.join(actions)})"
        click.echo(line)
        if result.status is UnitStatus.FAILED:
            click.echo(f"    error: {result.error}", err=True)
            for anchor, message in sorted(result.record_errors.items()):
                click.echo(f"    week {anchor}: {message}", err=True)


async def _record_sync(services: Services, outcome: SyncOutcome | None) -> None:
    if outcome is not None and not outcome.skipped:
        await services.store.save_preference(LAST_SYNC_PREFERENCE, outcome.timestamp)


async def _sync_once(silent: bool) -> bool:
    async with open_services() as services:
        outcome = await services.coordinator.sync(silent=silent)
        await _record_sync(services, outcome)
        if not silent:
            print_outcome(outcome)
        return outcome.success


async def _watch() -> None:
    async with open_services() as services:
        requests = SyncRequestCoordinator(services.coordinator)
        scheduler = AutoSyncScheduler(requests, services.settings.auto_sync_interval_minutes)

        result = await requests.request(TriggerSource.STARTUP)
        if result.error is not None:
            raise result.error
        await _record_sync(services, result.outcome)
        if result.outcome is not None:
            print_outcome(result.outcome)

        scheduler.enable()
        click.echo(
            f"Watching: syncing every {scheduler.interval_minutes} minutes. Press Ctrl+C to stop."
        )
        try:
            while True:
                await asyncio.sleep(60)
                last = services.coordinator.last_sync_timestamp
                if last:
                    await services.store.save_preference(LAST_SYNC_PREFERENCE, last)
        finally:
            scheduler.stop()


@click.command()
@click.option("--watch", "-w", is_flag=True, help="Keep running and sync periodically.")
@click.option("--silent", "-s", is_flag=True, help="Only report errors.")
def sync(watch: bool, silent: bool) -> None:
    """Synchronize tracking data with the cloud.

    Merges the current week and the archived weeks with the cloud copy.
    Use --watch to keep syncing at the configured interval.
    """
    try:
        if watch:
            asyncio.run(_watch())
            return
        ok = asyncio.run(_sync_once(silent))
    except KeyboardInterrupt:
        click.echo("\nStopped.")
        return
    except AuthenticationRequiredError as e:
        click.echo(f"Error: {e}. Run 'mindsync connect' first.", err=True)
        sys.exit(1)
    except NetworkConstraintError as e:
        click.echo(f"Sync skipped: {e}", err=True)
        sys.exit(2)
    except SyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not ok:
        sys.exit(1)


async def _status() -> None:
    async with open_services(initialize=False) as services:
        provider = services.provider
        await provider.initialize()
        record = await services.store.load_current_record()
        archives = await services.store.get_all_archive_records()
        last_sync = await services.store.get_preference(LAST_SYNC_PREFERENCE)
        meta = record.metadata

        click.echo(f"Provider:      {provider.kind.value}")
        if provider.is_authenticated:
            connection = "connected"
        elif provider.needs_refresh:
            connection = "token expired (will refresh)"
        elif await provider.has_pending_authorization():
            connection = "authorization pending"
        else:
            connection = "not connected"
        click.echo(f"Connection:    {connection}")
        click.echo(f"Last sync:     {format_timestamp(last_sync)}")
        click.echo(f"Wi-Fi only:    {'yes' if services.settings.wifi_only else 'no'}")
        click.echo("")
        click.echo(f"Week of:       {record.anchor_date} (today {record.current_day_date})")
        click.echo(f"Pending:       {'yes' if meta.has_current_changes else 'no'}")
        click.echo(f"History:       {len(archives)} week(s), {'changed' if meta.history_dirty else 'clean'}")
        if meta.is_fresh_install:
            click.echo("               (never synced)")
        if record.period_totals:
            click.echo("")
            click.echo("This week:")
            for food_id, total in sorted(record.period_totals.items()):
                click.echo(f"  {food_id:<20} {total}")


@click.command()
def status() -> None:
    """Show connection, sync and tracking state."""
    asyncio.run(_status())


async def _clear_cloud() -> int:
    async with open_services() as services:
        return await services.coordinator.clear_cloud_data()


@click.command(name="clear-cloud")
@click.confirmation_option(prompt="Delete all mindsync files from the cloud?")
def clear_cloud() -> None:
    """Delete every mindsync file from the cloud.

    Local data is kept and is uploaded again on the next sync.
    """
    try:
        count = asyncio.run(_clear_cloud())
    except SyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Deleted {count} file(s) from the cloud.")

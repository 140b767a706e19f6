"""Tracking commands for the mindsync CLI.

Commands:
- log: Record servings of a food
- target: Show or set weekly targets
"""

from __future__ import annotations

import asyncio
import sys

import click

from mindsync.client.cli.services import open_services
from mindsync.client.sync.domain import record_serving
from mindsync.core.dates import now_ms, parse_date


async def _log(food: str, count: int, day: str | None) -> None:
    async with open_services(initialize=False) as services:
        # Roll the record to today first so that today's entries land in the right week
        await services.coordinator.check_date_and_reset()
        record = await services.store.load_current_record()
        day = day or record.current_day_date
        try:
            updated = record_serving(record, food, count, day, now_ms())
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        await services.store.save_current_record(updated)

        today_count = updated.day_counts.get(day, {}).get(food, 0)
        week_total = updated.period_totals.get(food, 0)
        click.echo(f"{food}: {today_count} on {day}, {week_total} this week")


@click.command()
@click.argument("food")
@click.option("--count", "-n", type=int, default=1, show_default=True,
              help="Servings to add (negative to remove).")
@click.option("--date", "day", metavar="YYYY-MM-DD", help="Day of the servings (default: today).")
def log(food: str, count: int, day: str | None) -> None:
    """Record servings of FOOD in the current week."""
    if day is not None:
        try:
            day = parse_date(day).isoformat()
        except ValueError:
            click.echo(f"Error: Invalid date {day!r}, expected YYYY-MM-DD", err=True)
            sys.exit(1)
    asyncio.run(_log(food, count, day))


async def _target(food: str | None, value: int | None) -> None:
    async with open_services(initialize=False) as services:
        targets = await services.store.get_targets()
        if value is not None:
            if value > 0:
                targets[food] = value
            else:
                targets.pop(food, None)
            await services.store.set_targets(targets)

        if not targets:
            click.echo("No targets set.")
            return
        if food is not None and food not in targets:
            click.echo(f"No target for {food}.")
            return
        for name, goal in sorted(targets.items()):
            if food is None or name == food:
                click.echo(f"{name:<20} {goal} per week")


@click.command()
@click.argument("food", required=False)
@click.argument("value", type=int, required=False)
def target(food: str | None, value: int | None) -> None:
    """Show weekly targets, or set FOOD's target to VALUE (0 removes it).

    Archived weeks keep the targets that were in effect when they ended.
    """
    asyncio.run(_target(food, value))

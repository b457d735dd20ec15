#!/usr/bin/env python3
"""
Bootstrap the default team and assign users to it.

Uses the team backend configured by SCALEDTEST_AUTH_PROVIDER. Both
commands are idempotent.

Usage:
    python -m backend.src.scripts.seed_default_team ensure-default
    python -m backend.src.scripts.seed_default_team assign-default USER_ID
"""

import asyncio
import sys

import click

from backend.src.config.settings import get_settings
from backend.src.services.exceptions import ServiceError
from backend.src.services.team_provider import create_team_provider
from backend.src.utils.logging_config import init_logging
from backend.src.utils.validation import is_valid_uuid


async def _ensure_default() -> None:
    provider = create_team_provider(get_settings())
    try:
        team = await provider.ensure_default_team_exists()
    finally:
        await provider.aclose()
    click.echo(f"Default team: {team.name}")
    click.echo(f"  id: {team.id}")


async def _assign_default(user_id: str) -> None:
    provider = create_team_provider(get_settings())
    try:
        await provider.assign_user_to_default_team(user_id)
    finally:
        await provider.aclose()


@click.group()
def cli() -> None:
    """
    ScaledTest team administration.

    Use 'COMMAND --help' for more information on a command.
    """
    init_logging()


@cli.command("ensure-default")
def ensure_default() -> None:
    """Create the default team if it does not exist yet."""
    try:
        asyncio.run(_ensure_default())
    except ServiceError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


@cli.command("assign-default")
@click.argument("user_id")
def assign_default(user_id: str) -> None:
    """Add USER_ID to the default team (as done at registration)."""
    if not is_valid_uuid(user_id):
        click.echo(click.style("Error: USER_ID must be a valid UUID", fg="red"), err=True)
        sys.exit(2)

    try:
        asyncio.run(_assign_default(user_id))
    except ServiceError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style(f"Assigned {user_id} to the default team", fg="green"))


if __name__ == "__main__":
    cli()

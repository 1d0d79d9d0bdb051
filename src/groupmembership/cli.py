"""Command-line interface for group membership lookups."""

from __future__ import annotations

import json
from pathlib import Path

import click
import structlog
from safir.asyncio import run_with_asyncio
from safir.click import display_help

from .config import Config
from .constants import CONFIG_PATH, LOGGER_NAME
from .exceptions import DirectoryError, NotConfiguredError
from .factory import Factory

__all__ = [
    "help",
    "main",
    "resolve",
]


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(message="%(version)s")
def main() -> None:
    """Command-line interface for groupmembership."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic)


@main.command()
@click.argument("username")
@click.option(
    "--config-path",
    envvar="GROUPMEMBERSHIP_CONFIG_PATH",
    type=click.Path(path_type=Path),
    default=CONFIG_PATH,
    help="Application configuration file.",
)
@run_with_asyncio
async def resolve(username: str, *, config_path: Path) -> None:
    """Print the groups of a user as a JSON list.

    The user's entry is retrieved from LDAP by username and then used to
    resolve the user's group membership.
    """
    config = Config.from_file(config_path)
    config.configure_logging()
    logger = structlog.get_logger(LOGGER_NAME)
    logger.debug("Resolving groups", user=username)
    async with Factory.standalone(config) as factory:
        ldap = factory.create_ldap_storage()
        resolver = factory.create_group_membership_resolver()
        try:
            entry = await ldap.get_user_entry(username)
            if entry is None:
                raise click.ClickException(f"User {username} not found")
            groups = await resolver.resolve(entry)
        except (DirectoryError, NotConfiguredError) as e:
            raise click.ClickException(str(e)) from e
    click.echo(json.dumps(groups))

"""
SkillDock CLI entry point.
"""

import click

from skilldock.config.app import DEFAULT_CONFIG_FILE, SettingsStore

from .marketplace import market
from .skills import create, delete, duplicate, export, import_path, list_skills, repo, search, show
from .utils import setup_logging


@click.group()
@click.option(
    "--config",
    type=click.Path(dir_okay=False),
    help="Path to custom configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """SkillDock - Manage a local library of agent skills."""
    settings = SettingsStore(config or DEFAULT_CONFIG_FILE)
    try:
        app_config = settings.get()
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    setup_logging(verbose, app_config.logging.level, app_config.logging.format)

    # Store settings in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# Register commands
cli.add_command(list_skills)
cli.add_command(show)
cli.add_command(search)
cli.add_command(create)
cli.add_command(delete)
cli.add_command(duplicate)
cli.add_command(import_path)
cli.add_command(export)
cli.add_command(repo)
cli.add_command(market)

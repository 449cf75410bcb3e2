"""Marketplace commands: manage sources, browse and install remote skills."""

import json
import logging

import click

from skilldock.skills.hubs.manager import MarketplaceService, has_update
from skilldock.skills.models import RemoteSkill

from .utils import confirm_decisions, get_library, get_settings, run_async

logger = logging.getLogger(__name__)


def get_marketplace(ctx: click.Context, assume_yes: bool = False) -> MarketplaceService:
    return MarketplaceService(
        get_library(ctx),
        get_settings(ctx),
        decisions=confirm_decisions(assume_yes),
    )


@click.group()
def market() -> None:
    """Browse and install skills from GitHub repositories."""


@market.command("sources")
@click.pass_context
def list_sources(ctx: click.Context) -> None:
    """List built-in and custom marketplace sources."""
    for source in get_marketplace(ctx).get_sources():
        kind = "built-in" if source.is_builtin else "custom"
        location = f"{source.owner}/{source.repo}@{source.branch}"
        if source.path:
            location += f":{source.path}"
        click.echo(f"{source.id} [{kind}] {location}")


@market.command("add")
@click.argument("url")
@click.pass_context
def add_source(ctx: click.Context, url: str) -> None:
    """Add a custom source (https://github.com/owner/repo[/tree/branch/path] or owner/repo)."""
    source = run_async(get_marketplace(ctx).add_custom_source(url))
    click.echo(f"Added source: {source.id}")


@market.command("remove")
@click.argument("source_id")
@click.pass_context
def remove_source(ctx: click.Context, source_id: str) -> None:
    """Remove a custom source by id."""
    removed = run_async(get_marketplace(ctx).remove_custom_source(source_id))
    if not removed:
        raise click.ClickException(f"No custom source with id {source_id}")
    click.echo(f"Removed source: {source_id}")


@market.command()
@click.option("--source", "source_id", help="Only this source id")
@click.option("--refresh", is_flag=True, help="Ignore cached results")
@click.option("--json", "json_format", is_flag=True, help="Output as JSON")
@click.pass_context
def browse(ctx: click.Context, source_id: str | None, refresh: bool, json_format: bool) -> None:
    """List skills available from marketplace sources."""
    marketplace = get_marketplace(ctx)

    async def _run() -> tuple[list[RemoteSkill], set[str], dict[str, str]]:
        try:
            if source_id:
                source = marketplace.get_source(source_id)
                if source is None:
                    raise click.ClickException(f"Unknown source: {source_id}")
                remote = await marketplace.fetch_source(source, force=refresh)
            else:
                remote = await marketplace.fetch_all(force=refresh)
            return remote, await marketplace.get_installed_ids(), await marketplace.get_installed_version_map()
        finally:
            await marketplace.close()

    remote_skills, installed_ids, installed_versions = run_async(_run())

    if json_format:
        click.echo(
            json.dumps(
                [
                    {
                        **r.to_dict(),
                        "installed": r.id in installed_ids,
                        "has_update": has_update(r, installed_ids, installed_versions),
                    }
                    for r in remote_skills
                ],
                indent=2,
            )
        )
        return

    if not remote_skills:
        click.echo("No skills found.")
        return

    for remote in remote_skills:
        status = ""
        if has_update(remote, installed_ids, installed_versions):
            status = " [update available]"
        elif remote.id in installed_ids:
            status = " [installed]"
        version = f" v{remote.metadata.version}" if remote.metadata.version else ""
        click.echo(f"{remote.id}{version} ({remote.source.id}){status}")
        if remote.metadata.description:
            click.echo(f"  {remote.metadata.description}")


def _find_remote(remote_skills: list[RemoteSkill], skill_id: str, source_id: str | None) -> RemoteSkill:
    for remote in remote_skills:
        if remote.id == skill_id and (source_id is None or remote.source.id == source_id):
            return remote
    raise click.ClickException(f"Skill not found in marketplace: {skill_id}")


@market.command()
@click.argument("skill_id")
@click.option("--source", "source_id", help="Source id when several sources publish the same skill")
@click.option("--yes", "-y", is_flag=True, help="Overwrite an existing library skill without asking")
@click.pass_context
def install(ctx: click.Context, skill_id: str, source_id: str | None, yes: bool) -> None:
    """Install a marketplace skill into the library."""
    marketplace = get_marketplace(ctx, assume_yes=yes)

    async def _run() -> bool:
        try:
            remote = _find_remote(await marketplace.fetch_all(), skill_id, source_id)
            return await marketplace.install_skill(remote)
        finally:
            await marketplace.close()

    if run_async(_run()):
        click.echo(f"Installed skill: {skill_id}")
    else:
        click.echo("Install cancelled")


@market.command()
@click.option("--apply", is_flag=True, help="Install all available updates")
@click.pass_context
def updates(ctx: click.Context, apply: bool) -> None:
    """Show (or install) updates for installed marketplace skills."""
    marketplace = get_marketplace(ctx)

    async def _run() -> list[RemoteSkill]:
        try:
            available = await marketplace.check_updates(force=True)
            if apply:
                for remote in available:
                    await marketplace.update_skill_silently(remote)
            return available
        finally:
            await marketplace.close()

    available = run_async(_run())
    if not available:
        click.echo("All installed skills are up to date.")
        return

    verb = "Updated" if apply else "Update available"
    for remote in available:
        click.echo(f"{verb}: {remote.id} -> {remote.metadata.version}")

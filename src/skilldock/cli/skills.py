"""Library commands: list, show, search, create, delete, duplicate, import and export."""

import json
import logging
from pathlib import Path

import click

from skilldock.skills.import_export import ImportExportService, ImportOutcome
from skilldock.skills.models import TARGET_FORMATS, InstallStats, Skill
from skilldock.skills.scaffold import default_skill_template

from .utils import format_timestamp, get_import_export, get_library, run_async

logger = logging.getLogger(__name__)

FORMAT_CHOICE = click.Choice(sorted(TARGET_FORMATS))


def _echo_skill_line(skill: Skill) -> None:
    installs = f" ({skill.install_count} installs)" if skill.install_count else ""
    click.echo(f"{skill.id}: {skill.metadata.name}{installs}")
    if skill.metadata.description:
        click.echo(f"  {skill.metadata.description}")


@click.command("list")
@click.option(
    "--sort",
    "sort_by",
    type=click.Choice(["name", "lastModified", "author"]),
    help="Sort order (defaults to the configured sort_by)",
)
@click.option("--json", "json_format", is_flag=True, help="Output as JSON")
@click.pass_context
def list_skills(ctx: click.Context, sort_by: str | None, json_format: bool) -> None:
    """List skills in the library."""
    skills = run_async(get_library(ctx).list_skills(sort_by))  # type: ignore[arg-type]

    if json_format:
        click.echo(json.dumps([s.to_dict() for s in skills], indent=2))
        return

    if not skills:
        click.echo("No skills found.")
        return

    for skill in skills:
        _echo_skill_line(skill)


@click.command()
@click.argument("skill_id")
@click.pass_context
def show(ctx: click.Context, skill_id: str) -> None:
    """Show details of a skill."""
    library = get_library(ctx)

    async def _run() -> tuple[Skill | None, InstallStats | None]:
        skill = await library.read_skill(skill_id)
        stats = await library.get_install_stats(skill_id) if skill else None
        return skill, stats

    skill, stats = run_async(_run())
    if skill is None:
        raise click.ClickException(f"Skill not found: {skill_id}")

    meta = skill.metadata
    click.echo(f"Name: {meta.name}")
    click.echo(f"ID: {skill.id}")
    click.echo(f"Description: {meta.description}")
    if meta.author:
        click.echo(f"Author: {meta.author}")
    if meta.version:
        click.echo(f"Version: {meta.version}")
    if meta.license:
        click.echo(f"License: {meta.license}")
    if meta.tags:
        click.echo(f"Tags: {', '.join(meta.tags)}")
    click.echo(f"Path: {skill.dir_path}")
    click.echo(f"Modified: {format_timestamp(skill.last_modified)}")
    if skill.additional_files:
        click.echo(f"Files: {', '.join(skill.additional_files)}")
    if stats is not None:
        click.echo(f"Installs: {stats.install_count}")
    click.echo("")
    click.echo(skill.body)


@click.command()
@click.argument("query")
@click.pass_context
def search(ctx: click.Context, query: str) -> None:
    """Search skills by name, description, tags and content."""
    skills = run_async(get_library(ctx).search_skills(query))
    if not skills:
        click.echo(f"No skills matching '{query}'.")
        return
    for skill in skills:
        _echo_skill_line(skill)


@click.command()
@click.argument("skill_id")
@click.option("--name", "-n", help="Display name (defaults to the id)")
@click.option("--description", "-d", default="", help="Skill description")
@click.option("--tag", "-t", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--author", help="Author")
@click.pass_context
def create(
    ctx: click.Context,
    skill_id: str,
    name: str | None,
    description: str,
    tags: tuple[str, ...],
    author: str | None,
) -> None:
    """Create a new skill from the default template."""
    metadata, body = default_skill_template(skill_id, description)
    if name:
        metadata.name = name
    metadata.tags = list(tags) or None
    metadata.author = author

    skill = run_async(get_library(ctx).create_skill(skill_id, metadata, body))
    click.echo(f"Created skill: {skill.id}")
    click.echo(f"  Path: {skill.file_path}")


@click.command()
@click.argument("skill_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx: click.Context, skill_id: str, yes: bool) -> None:
    """Delete a skill from the library."""
    if not yes:
        click.confirm(f"Delete skill '{skill_id}'?", abort=True)
    run_async(get_library(ctx).delete_skill(skill_id))
    click.echo(f"Deleted skill: {skill_id}")


@click.command()
@click.argument("source_id")
@click.argument("new_id")
@click.pass_context
def duplicate(ctx: click.Context, source_id: str, new_id: str) -> None:
    """Copy a skill under a new id."""
    skill = run_async(get_library(ctx).duplicate_skill(source_id, new_id))
    click.echo(f"Duplicated {source_id} as {skill.id}")


@click.command("import-path")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.pass_context
def import_path(ctx: click.Context, directory: Path) -> None:
    """Copy a skill directory into the library."""
    skill = run_async(get_library(ctx).import_from_path(directory))
    click.echo(f"Imported skill: {skill.id}")


@click.command()
@click.argument("skill_ids", nargs=-1, required=True)
@click.option("--format", "-f", "target_format", type=FORMAT_CHOICE, help="Target format (defaults to default_target)")
@click.option(
    "--workspace",
    "-w",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Project root",
)
@click.option("--yes", "-y", is_flag=True, help="Overwrite existing project skills without asking")
@click.pass_context
def export(
    ctx: click.Context,
    skill_ids: tuple[str, ...],
    target_format: str | None,
    workspace: Path,
    yes: bool,
) -> None:
    """Import library skills into a project directory."""
    service = get_import_export(ctx, workspace, assume_yes=yes)
    format_config = service.resolve_target_format(target_format)

    async def _run(service: ImportExportService) -> list[ImportOutcome]:
        skills = []
        for skill_id in skill_ids:
            skill = await service.library.read_skill(skill_id)
            if skill is None:
                click.echo(f"Skill not found: {skill_id}", err=True)
                continue
            skills.append(skill)
        result = await service.import_multiple_to_repo(skills, format_config.id)
        return result.outcomes

    for outcome in run_async(_run(service)):
        if outcome.success:
            click.echo(f"Imported {outcome.skill_id} -> {outcome.path}")
        elif outcome.cancelled:
            click.echo(f"Skipped {outcome.skill_id}")
        else:
            click.echo(f"Failed {outcome.skill_id}: {outcome.error}", err=True)


@click.command()
@click.option("--format", "-f", "target_format", type=FORMAT_CHOICE, help="Target format (defaults to default_target)")
@click.option(
    "--workspace",
    "-w",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Project root",
)
@click.option("--save", "save_id", help="Save this project skill into the library")
@click.pass_context
def repo(ctx: click.Context, target_format: str | None, workspace: Path, save_id: str | None) -> None:
    """List skills in a project directory, or save one to the library."""
    service = get_import_export(ctx, workspace)
    format_config = service.resolve_target_format(target_format)
    skills = run_async(service.list_repo_skills(format_config.id))

    if save_id is not None:
        match = next((s for s in skills if s.id == save_id), None)
        if match is None:
            raise click.ClickException(f"Skill not found in {format_config.skills_dir}: {save_id}")
        saved = run_async(service.export_to_library(match))
        click.echo(f"Saved {save_id} to library as {saved.id}")
        return

    if not skills:
        click.echo(f"No skills in {format_config.skills_dir}.")
        return
    for skill in skills:
        _echo_skill_line(skill)

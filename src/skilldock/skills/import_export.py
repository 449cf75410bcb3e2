"""Copy skills between the library and a project's target-format directories.

A project stores skills for each tool under its own directory
(``.claude/skills``, ``.cursor/skills``, ``.codex/skills``,
``.github/skills``); each skill is ``<skills_dir>/<skill-id>/``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import aiofiles.os

from skilldock.errors import (
    InvalidInputError,
    NoWorkspaceError,
    OperationCancelledError,
    SkillDockError,
)
from skilldock.skills.decisions import ConfirmationRequest, DecisionProvider, confirm_overwrite
from skilldock.skills.models import SKILL_FILENAME, TARGET_FORMATS, Skill, TargetFormatConfig
from skilldock.skills.parser import parse_frontmatter
from skilldock.utils.fs import copy_directory, ensure_directory, path_exists, read_text, remove_directory

if TYPE_CHECKING:
    from skilldock.config.app import SettingsStore
    from skilldock.storage.library import SkillLibrary

logger = logging.getLogger(__name__)


@dataclass
class ImportOutcome:
    """Result of importing one skill into a project."""

    skill_id: str
    path: Path | None = None
    error: SkillDockError | None = None

    @property
    def success(self) -> bool:
        return self.path is not None

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, OperationCancelledError)


@dataclass
class ImportBatchResult:
    """Per-skill outcomes of a multi-skill import, in input order."""

    outcomes: list[ImportOutcome] = field(default_factory=list)

    @property
    def imported(self) -> list[Path]:
        return [o.path for o in self.outcomes if o.path is not None]

    @property
    def failed(self) -> list[ImportOutcome]:
        return [o for o in self.outcomes if o.error is not None and not o.cancelled]


def get_target_format(format_id: str) -> TargetFormatConfig:
    """Look up a target format.

    Raises:
        InvalidInputError: If the format is unknown
    """
    try:
        return TARGET_FORMATS[format_id]
    except KeyError:
        known = ", ".join(TARGET_FORMATS)
        raise InvalidInputError(f"Unknown target format '{format_id}' (expected one of: {known})") from None


class ImportExportService:
    """Imports library skills into a project and exports project skills to the library."""

    def __init__(
        self,
        library: SkillLibrary,
        settings: SettingsStore,
        workspace_root: str | Path | None = None,
        decisions: DecisionProvider | None = None,
    ) -> None:
        """
        Args:
            library: The skill library
            settings: Settings store (for the default target format)
            workspace_root: Project root; None when no project is open
            decisions: Answers overwrite confirmations
        """
        self.library = library
        self.settings = settings
        self.workspace_root = Path(workspace_root) if workspace_root else None
        self.decisions = decisions

    def resolve_target_format(self, format_id: str | None = None) -> TargetFormatConfig:
        """Return the given format, or the configured default target."""
        return get_target_format(format_id or self.settings.get().default_target)

    def _require_workspace(self) -> Path:
        if self.workspace_root is None:
            raise NoWorkspaceError()
        return self.workspace_root

    async def import_to_repo(
        self,
        skill: Skill,
        target_format_id: str,
        decisions: DecisionProvider | None = None,
    ) -> Path:
        """Copy a skill directory into the project's target-format directory.

        Args:
            skill: Skill to import
            target_format_id: Target format id (claude, cursor, codex, github)
            decisions: Overrides the service's decision provider

        Returns:
            Path of the skill directory in the project

        Raises:
            InvalidInputError: If the format is unknown
            NoWorkspaceError: If there is no project root
            OperationCancelledError: If overwriting an existing skill was declined
        """
        target_format = get_target_format(target_format_id)
        workspace = self._require_workspace()
        target_dir = workspace / target_format.skills_dir / skill.id

        if Path(skill.dir_path).resolve() == target_dir.resolve():
            logger.debug(f"{skill.id} is already in {target_dir}, nothing to copy")
        else:
            if await path_exists(target_dir):
                request = ConfirmationRequest(
                    kind="overwrite_repo_skill",
                    skill_id=skill.id,
                    skill_name=skill.metadata.name,
                    location=target_format.skills_dir,
                )
                if not await confirm_overwrite(decisions or self.decisions, request):
                    raise OperationCancelledError("Import cancelled")
                await remove_directory(target_dir)

            await copy_directory(skill.dir_path, target_dir)

        for scaffold in target_format.scaffold_dirs:
            scaffold_path = target_dir / scaffold
            if not await path_exists(scaffold_path):
                await ensure_directory(scaffold_path)

        logger.info(f"Imported {skill.id} into {target_dir}")
        return target_dir

    async def import_multiple_to_repo(
        self,
        skills: list[Skill],
        target_format_id: str,
        decisions: DecisionProvider | None = None,
    ) -> ImportBatchResult:
        """Import several skills one after another.

        A failure or cancellation for one skill is recorded in its outcome
        and the remaining skills are still imported.

        Raises:
            InvalidInputError: If the format is unknown
            NoWorkspaceError: If there is no project root
        """
        get_target_format(target_format_id)
        self._require_workspace()

        result = ImportBatchResult()
        for skill in skills:
            try:
                path = await self.import_to_repo(skill, target_format_id, decisions)
                result.outcomes.append(ImportOutcome(skill_id=skill.id, path=path))
            except OperationCancelledError as e:
                logger.info(f"Import of {skill.id} cancelled")
                result.outcomes.append(ImportOutcome(skill_id=skill.id, error=e))
            except SkillDockError as e:
                logger.warning(f"Import of {skill.id} failed: {e}")
                result.outcomes.append(ImportOutcome(skill_id=skill.id, error=e))
            except OSError as e:
                logger.warning(f"Import of {skill.id} failed: {e}")
                result.outcomes.append(ImportOutcome(skill_id=skill.id, error=SkillDockError(str(e))))
        return result

    async def export_to_library(self, skill: Skill) -> Skill:
        """Save a project skill into the library (renamed on id collision)."""
        return await self.library.import_from_path(skill.dir_path)

    async def list_repo_skills(self, target_format_id: str) -> list[Skill]:
        """List skills already present in the project's target-format directory."""
        target_format = get_target_format(target_format_id)
        skills_dir = self._require_workspace() / target_format.skills_dir

        if not await aiofiles.os.path.isdir(skills_dir):
            return []

        skills: list[Skill] = []
        for entry in sorted(await aiofiles.os.listdir(skills_dir)):
            skill_file = skills_dir / entry / SKILL_FILENAME
            if entry.startswith(".") or not await path_exists(skill_file):
                continue
            try:
                parsed = parse_frontmatter(await read_text(skill_file))
                stat = await aiofiles.os.stat(skill_file)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping unreadable project skill {skill_file}: {e}")
                continue
            skills.append(
                Skill(
                    id=entry,
                    metadata=parsed.metadata,
                    body=parsed.body,
                    dir_path=str(skills_dir / entry),
                    file_path=str(skill_file),
                    last_modified=stat.st_mtime * 1000,
                )
            )
        return skills

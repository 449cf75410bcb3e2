"""
Local skill library storage.

Each skill lives in its own directory under the library root
(``<root>/<skill-id>/SKILL.md`` plus any sibling files). The library root
comes from the settings store and is resolved on every call so that a
changed ``library_path`` takes effect immediately.
"""

from __future__ import annotations

import asyncio
import locale
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import aiofiles.os

from skilldock.errors import InvalidInputError, SkillAlreadyExistsError, SkillNotFoundError
from skilldock.skills.models import SKILL_FILENAME, InstallStats, Skill, SkillMetadata
from skilldock.skills.parser import parse_frontmatter, serialize_skill
from skilldock.skills.scaffold import require_valid_skill_id
from skilldock.storage.stats import STATS_FILENAME, InstallStatsLedger
from skilldock.utils.fs import (
    copy_directory,
    ensure_directory,
    path_exists,
    read_text,
    remove_directory,
    write_text,
)

if TYPE_CHECKING:
    from skilldock.config.app import SettingsStore

logger = logging.getLogger(__name__)

SortKey = Literal["name", "lastModified", "author"]


def _name_key(skill: Skill) -> str:
    return locale.strxfrm(skill.metadata.name.casefold())


def sort_skills(skills: list[Skill], sort_by: SortKey = "name") -> list[Skill]:
    """Sort skills by display name, modification time (newest first) or author."""
    if sort_by == "lastModified":
        return sorted(skills, key=lambda s: (-s.last_modified, _name_key(s)))
    if sort_by == "author":
        return sorted(
            skills,
            key=lambda s: (
                s.metadata.author is None,
                locale.strxfrm((s.metadata.author or "").casefold()),
                _name_key(s),
            ),
        )
    return sorted(skills, key=_name_key)


class SkillLibrary:
    """Manages the skill library directory and its install ledger.

    Example usage:
        ```python
        library = SkillLibrary(SettingsStore())

        skill = await library.create_skill(
            "react-hooks",
            SkillMetadata(name="React Hooks", description="Best practices"),
            "# React Hooks",
        )
        matches = await library.search_skills("practices")
        ```
    """

    def __init__(self, settings: SettingsStore):
        self.settings = settings
        self._change_listeners: list[Callable[[], Any]] = []

    # ------------------------------------------------------------------
    # Paths and change notification
    # ------------------------------------------------------------------

    @property
    def library_path(self) -> Path:
        """Current library root (``~`` expanded)."""
        return self.settings.get().resolved_library_path()

    def _skill_dir(self, root: Path, skill_id: str) -> Path:
        if not skill_id or skill_id in (".", "..") or "/" in skill_id or "\\" in skill_id:
            raise InvalidInputError(f"Invalid skill id '{skill_id}'")
        return root / skill_id

    def _ledger(self, root: Path) -> InstallStatsLedger:
        return InstallStatsLedger(root / STATS_FILENAME)

    def add_change_listener(self, listener: Callable[[], Any]) -> None:
        """Add a listener called after every mutation of the library.

        The listener may be a plain function or a coroutine function.
        """
        self._change_listeners.append(listener)

    def remove_change_listener(self, listener: Callable[[], Any]) -> None:
        if listener in self._change_listeners:
            self._change_listeners.remove(listener)

    async def _notify_listeners(self) -> None:
        """Notify all change listeners, awaiting coroutine listeners."""
        for listener in list(self._change_listeners):
            try:
                result = listener()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Error in library change listener: {e}")

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def _read_skill_at(self, root: Path, skill_id: str) -> Skill | None:
        skill_dir = self._skill_dir(root, skill_id)
        skill_file = skill_dir / SKILL_FILENAME

        if not await path_exists(skill_file):
            return None

        parsed = parse_frontmatter(await read_text(skill_file))
        stat = await aiofiles.os.stat(skill_file)
        entries = await aiofiles.os.listdir(skill_dir)
        additional_files = sorted(e for e in entries if e != SKILL_FILENAME)

        return Skill(
            id=skill_id,
            metadata=parsed.metadata,
            body=parsed.body,
            dir_path=str(skill_dir),
            file_path=str(skill_file),
            last_modified=stat.st_mtime * 1000,
            additional_files=additional_files or None,
        )

    async def read_skill(self, skill_id: str) -> Skill | None:
        """Read a single skill by id.

        Returns:
            The skill, or None if its SKILL.md does not exist
        """
        return await self._read_skill_at(self.library_path, skill_id)

    async def _require_skill(self, root: Path, skill_id: str) -> Skill:
        skill = await self._read_skill_at(root, skill_id)
        if skill is None:
            raise SkillNotFoundError(f'Skill "{skill_id}" not found', str(root / skill_id))
        return skill

    async def list_skills(self, sort_by: SortKey | None = None) -> list[Skill]:
        """List all skills in the library.

        Hidden directories and directories without SKILL.md are ignored;
        unreadable skills are skipped. Install statistics are merged in.

        Args:
            sort_by: Sort order (defaults to the configured ``sort_by``)

        Returns:
            Sorted list of skills
        """
        config = self.settings.get()
        root = config.resolved_library_path()
        await ensure_directory(root)

        skills: list[Skill] = []
        for entry in sorted(await aiofiles.os.listdir(root)):
            if entry.startswith(".") or not await aiofiles.os.path.isdir(root / entry):
                continue
            try:
                skill = await self._read_skill_at(root, entry)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping unreadable skill {entry}: {e}")
                continue
            if skill is not None:
                skills.append(skill)

        stats = await self._ledger(root).read_all()
        for skill in skills:
            entry_stats = stats.get(skill.id)
            if entry_stats:
                skill.install_count = entry_stats.install_count
                skill.last_installed_at = entry_stats.last_installed_at

        return sort_skills(skills, sort_by or config.sort_by)

    async def search_skills(self, query: str) -> list[Skill]:
        """Case-insensitive substring search over name, description, tags and body."""
        needle = query.lower()

        def matches(skill: Skill) -> bool:
            meta = skill.metadata
            return (
                needle in meta.name.lower()
                or needle in meta.description.lower()
                or any(needle in tag.lower() for tag in meta.tags or [])
                or needle in skill.body.lower()
            )

        return [skill for skill in await self.list_skills() if matches(skill)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_skill(
        self,
        skill_id: str,
        metadata: SkillMetadata,
        body: str,
        validate_id: bool = True,
    ) -> Skill:
        """Create a new skill.

        Args:
            skill_id: Directory name of the new skill
            metadata: Frontmatter fields
            body: Markdown body
            validate_id: Enforce the lowercase-hyphen id format (marketplace
                installs keep the remote directory name as-is)

        Raises:
            InvalidInputError: If the id is malformed
            SkillAlreadyExistsError: If the skill directory already exists
        """
        if validate_id:
            require_valid_skill_id(skill_id)
        root = self.library_path
        skill_dir = self._skill_dir(root, skill_id)

        if await path_exists(skill_dir):
            raise SkillAlreadyExistsError(skill_id)

        await ensure_directory(skill_dir)
        await write_text(skill_dir / SKILL_FILENAME, serialize_skill(metadata, body))
        logger.info(f"Created skill {skill_id}")

        await self._notify_listeners()
        return await self._require_skill(root, skill_id)

    async def _write_skill(self, root: Path, skill_id: str, metadata: SkillMetadata, body: str) -> Skill:
        skill_file = self._skill_dir(root, skill_id) / SKILL_FILENAME
        if not await path_exists(skill_file):
            raise SkillNotFoundError(f'Skill "{skill_id}" not found', str(skill_file))

        await write_text(skill_file, serialize_skill(metadata, body))
        logger.info(f"Updated skill {skill_id}")

        await self._notify_listeners()
        return await self._require_skill(root, skill_id)

    async def update_skill(self, skill_id: str, metadata: SkillMetadata, body: str) -> Skill:
        """Overwrite an existing skill's SKILL.md.

        Raises:
            SkillNotFoundError: If the skill does not exist
        """
        return await self._write_skill(self.library_path, skill_id, metadata, body)

    async def delete_skill(self, skill_id: str) -> None:
        """Delete a skill directory.

        The install ledger entry is kept.

        Raises:
            SkillNotFoundError: If the skill directory does not exist
        """
        skill_dir = self._skill_dir(self.library_path, skill_id)
        if not await path_exists(skill_dir):
            raise SkillNotFoundError(f'Skill "{skill_id}" not found', str(skill_dir))

        await remove_directory(skill_dir)
        logger.info(f"Deleted skill {skill_id}")
        await self._notify_listeners()

    async def duplicate_skill(self, source_id: str, new_id: str) -> Skill:
        """Copy a skill directory to a new id.

        Raises:
            SkillNotFoundError: If the source skill does not exist
            InvalidInputError: If new_id is malformed
            SkillAlreadyExistsError: If new_id is already taken
        """
        root = self.library_path
        source = await self._require_skill(root, source_id)
        require_valid_skill_id(new_id)

        new_dir = self._skill_dir(root, new_id)
        if await path_exists(new_dir):
            raise SkillAlreadyExistsError(new_id)

        await copy_directory(source.dir_path, new_dir)
        logger.info(f"Duplicated skill {source_id} as {new_id}")

        await self._notify_listeners()
        return await self._require_skill(root, new_id)

    async def _free_id(self, root: Path, base_id: str) -> str:
        """First of base_id, base_id-1, base_id-2, ... not present in the library."""
        candidate = base_id
        counter = 1
        while await path_exists(root / candidate):
            candidate = f"{base_id}-{counter}"
            counter += 1
        return candidate

    async def import_from_path(self, external_dir: str | Path) -> Skill:
        """Copy a skill directory from anywhere into the library.

        The id is the directory's base name, suffixed with ``-1``, ``-2``,
        ... when already taken.

        Raises:
            SkillNotFoundError: If external_dir has no SKILL.md
        """
        source_dir = Path(external_dir)
        if not await path_exists(source_dir / SKILL_FILENAME):
            raise SkillNotFoundError(f"No {SKILL_FILENAME} found at {source_dir}", str(source_dir))

        root = self.library_path
        await ensure_directory(root)
        target_id = await self._free_id(root, source_dir.resolve().name)

        await copy_directory(source_dir, self._skill_dir(root, target_id))
        logger.info(f"Imported {source_dir} as {target_id}")

        await self._notify_listeners()
        return await self._require_skill(root, target_id)

    # ------------------------------------------------------------------
    # Install statistics
    # ------------------------------------------------------------------

    async def record_install(self, skill_id: str, version: str | None = None) -> InstallStats:
        """Record a marketplace install of a skill."""
        return await self._ledger(self.library_path).record_install(skill_id, version)

    async def get_install_stats(self, skill_id: str) -> InstallStats | None:
        return await self._ledger(self.library_path).get(skill_id)

    async def get_installed_versions(self) -> dict[str, str]:
        """Map of skill id to installed version, for entries with a version."""
        return await self._ledger(self.library_path).installed_versions()

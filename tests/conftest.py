"""Pytest configuration and shared fixtures for SkillDock tests."""

import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

from skilldock.config.app import SettingsStore
from skilldock.skills.models import SKILL_FILENAME
from skilldock.storage.library import SkillLibrary


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def library_dir(temp_dir: Path) -> Path:
    """Library root inside the temp directory."""
    return temp_dir / "library"


@pytest.fixture
def settings(library_dir: Path) -> SettingsStore:
    """In-memory settings pointing at the temp library."""
    return SettingsStore.in_memory(library_path=str(library_dir))


@pytest.fixture
def library(settings: SettingsStore) -> SkillLibrary:
    """Skill library backed by the temp directory."""
    return SkillLibrary(settings)


@pytest.fixture
def make_skill_dir(temp_dir: Path):
    """Factory writing a skill directory with a SKILL.md outside the library."""

    def _make(relative: str, content: str | None = None, extra_files: dict[str, str] | None = None) -> Path:
        skill_dir = temp_dir / relative
        skill_dir.mkdir(parents=True, exist_ok=True)
        name = skill_dir.name
        (skill_dir / SKILL_FILENAME).write_text(
            content or f"---\nname: {name}\ndescription: External {name}\n---\n\n# {name}\n",
            encoding="utf-8",
        )
        for filename, text in (extra_files or {}).items():
            (skill_dir / filename).write_text(text, encoding="utf-8")
        return skill_dir

    return _make

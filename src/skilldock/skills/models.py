"""Data classes for skills, target formats and marketplace sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

SKILL_FILENAME = "SKILL.md"
DEFAULT_SKILL_NAME = "untitled"


@dataclass
class SkillMetadata:
    """Frontmatter metadata of a skill document.

    Attributes:
        name: Display name (``untitled`` when the header has none)
        description: One-line description, never None
        license: Optional license identifier
        compatibility: Optional compatibility note
        author: Optional author (stored in the nested ``metadata:`` block)
        version: Optional version string (stored in the nested block)
        tags: Optional list of tags, None when empty
        generated_by: Optional generator note (stored in the nested block)
        extra: Unrecognized top-level keys, preserved verbatim
    """

    name: str = DEFAULT_SKILL_NAME
    description: str = ""
    license: str | None = None
    compatibility: str | None = None
    author: str | None = None
    version: str | None = None
    tags: list[str] | None = None
    generated_by: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        d: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "license": self.license,
            "compatibility": self.compatibility,
            "author": self.author,
            "version": self.version,
            "tags": list(self.tags) if self.tags else None,
            "generated_by": self.generated_by,
        }
        if self.extra:
            d["extra"] = dict(self.extra)
        return d


@dataclass
class Skill:
    """A skill stored in the library (or found in a project directory)."""

    id: str
    metadata: SkillMetadata
    body: str
    dir_path: str
    file_path: str
    last_modified: float
    additional_files: list[str] | None = None
    install_count: int | None = None
    last_installed_at: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "metadata": self.metadata.to_dict(),
            "body": self.body,
            "dir_path": self.dir_path,
            "file_path": self.file_path,
            "last_modified": self.last_modified,
            "additional_files": self.additional_files,
            "install_count": self.install_count,
            "last_installed_at": self.last_installed_at,
        }


@dataclass
class InstallStats:
    """Install ledger entry for one skill id."""

    install_count: int
    last_installed_at: float
    installed_version: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstallStats:
        """Create from the on-disk camelCase record."""
        version = data.get("installedVersion")
        return cls(
            install_count=int(data.get("installCount", 0)),
            last_installed_at=float(data.get("lastInstalledAt", 0)),
            installed_version=str(version) if version else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk camelCase record."""
        d: dict[str, Any] = {
            "installCount": self.install_count,
            "lastInstalledAt": self.last_installed_at,
        }
        if self.installed_version:
            d["installedVersion"] = self.installed_version
        return d


@dataclass(frozen=True)
class TargetFormatConfig:
    """Where a project expects skills for one tool to live.

    Attributes:
        id: Format identifier
        label: Human-readable label
        description: Short description of the format
        skills_dir: Directory relative to the project root
        scaffold_dirs: Subdirectories created inside each imported skill
    """

    id: str
    label: str
    description: str
    skills_dir: str
    scaffold_dirs: tuple[str, ...] = ()


TARGET_FORMATS: dict[str, TargetFormatConfig] = {
    "claude": TargetFormatConfig(
        id="claude",
        label="Claude (.claude/skills)",
        description="Claude Code / Claude Desktop skill format",
        skills_dir=".claude/skills",
    ),
    "cursor": TargetFormatConfig(
        id="cursor",
        label="Cursor (.cursor/skills)",
        description="Cursor IDE skill format",
        skills_dir=".cursor/skills",
    ),
    "codex": TargetFormatConfig(
        id="codex",
        label="Codex (.codex/skills)",
        description="OpenAI Codex skill format with optional scripts/references",
        skills_dir=".codex/skills",
        scaffold_dirs=("agents", "scripts", "references", "assets"),
    ),
    "github": TargetFormatConfig(
        id="github",
        label="GitHub (.github/skills)",
        description="GitHub-based skill format",
        skills_dir=".github/skills",
    ),
}


@dataclass(frozen=True)
class MarketplaceSource:
    """A GitHub repository (optionally a subdirectory of it) scanned for skills."""

    id: str
    owner: str
    repo: str
    branch: str = "main"
    path: str = ""
    label: str = ""
    is_builtin: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "owner": self.owner,
            "repo": self.repo,
            "branch": self.branch,
            "path": self.path,
            "label": self.label,
            "is_builtin": self.is_builtin,
        }


BUILTIN_MARKETPLACE_SOURCES: tuple[MarketplaceSource, ...] = (
    MarketplaceSource(
        id="anthropics/skills",
        owner="anthropics",
        repo="skills",
        label="Anthropic Skills",
        is_builtin=True,
    ),
    MarketplaceSource(
        id="github/awesome-copilot/skills",
        owner="github",
        repo="awesome-copilot",
        path="skills",
        label="GitHub Copilot Skills",
        is_builtin=True,
    ),
)


@dataclass
class RemoteSkill:
    """A skill document discovered in a marketplace source."""

    id: str
    metadata: SkillMetadata
    body: str
    source: MarketplaceSource
    repo_path: str
    download_url: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "metadata": self.metadata.to_dict(),
            "body": self.body,
            "source": self.source.to_dict(),
            "repo_path": self.repo_path,
            "download_url": self.download_url,
        }

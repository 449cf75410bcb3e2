"""
Configuration management for SkillDock.

Provides YAML-based configuration with validation, plus a small settings
store that services query on every call so live edits are picked up.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "~/.skilldock/config.yaml"
DEFAULT_LIBRARY_PATH = "~/.skilldock/skills"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def expand_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in a string."""

    def replace(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        return os.environ.get(var_name, default if default is not None else match.group(0))

    return _ENV_VAR_PATTERN.sub(replace, value)


def expand_home(path: str) -> Path:
    """Expand a leading ``~`` to the user's home directory."""
    return Path(path).expanduser()


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log record format",
    )


class SkillDockConfig(BaseModel):
    """
    Main configuration for SkillDock.

    Mirrors the host settings surface: library location, default import
    target, custom marketplace sources, GitHub token and sort preference.
    """

    library_path: str = Field(
        default=DEFAULT_LIBRARY_PATH,
        description="Skill library directory (a leading ~ is expanded)",
    )
    default_target: Literal["claude", "cursor", "codex", "github"] = Field(
        default="claude",
        description="Default target format when importing skills into a project",
    )
    marketplace_sources: list[str] = Field(
        default_factory=list,
        description="Custom marketplace source URLs (https://github.com/owner/repo[/tree/branch/path] or owner/repo)",
    )
    github_token: str | None = Field(
        default=None,
        description="GitHub personal access token (supports ${VAR} expansion)",
    )
    sort_by: Literal["name", "lastModified", "author"] = Field(
        default="name",
        description="Library sort order",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )

    @field_validator("library_path")
    @classmethod
    def validate_library_path(cls, v: str) -> str:
        """Fall back to the default library path when blank."""
        return v.strip() or DEFAULT_LIBRARY_PATH

    @field_validator("marketplace_sources")
    @classmethod
    def validate_marketplace_sources(cls, v: list[str]) -> list[str]:
        """Reject duplicate source URLs."""
        if len(set(v)) != len(v):
            raise ValueError("marketplace_sources must not contain duplicate URLs")
        return v

    def resolved_library_path(self) -> Path:
        """Library directory with ``~`` expanded."""
        return expand_home(self.library_path)

    def resolved_github_token(self) -> str | None:
        """GitHub token from config (env-expanded), else GITHUB_TOKEN, else None."""
        if self.github_token:
            token = expand_env_vars(self.github_token).strip()
            if token and not _ENV_VAR_PATTERN.search(token):
                return token
        env_token = os.environ.get("GITHUB_TOKEN", "").strip()
        return env_token or None


def load_yaml(config_file: str | Path) -> dict[str, Any]:
    """
    Load YAML configuration file.

    Args:
        config_file: Path to YAML configuration file

    Returns:
        Dictionary with parsed YAML content ({} if the file is missing)

    Raises:
        ValueError: If YAML is invalid or not a mapping
    """
    config_path = Path(config_file).expanduser()

    if not config_path.exists():
        return {}

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f.read())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")
    return data


def load_config(config_file: str | Path | None = None) -> SkillDockConfig:
    """
    Load configuration from YAML, falling back to defaults.

    Args:
        config_file: Path to YAML config file (default: ~/.skilldock/config.yaml)

    Returns:
        Validated SkillDockConfig instance

    Raises:
        ValueError: If configuration is invalid
    """
    if config_file is None:
        config_file = DEFAULT_CONFIG_FILE

    config_dict = load_yaml(config_file)

    try:
        return SkillDockConfig(**config_dict)
    except Exception as e:
        raise ValueError(
            f"Configuration validation failed: {e}\n"
            f"Please check your configuration file at {config_file}"
        ) from e


def save_config(config: SkillDockConfig, config_file: str | Path | None = None) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: SkillDockConfig instance to save
        config_file: Path to YAML config file (default: ~/.skilldock/config.yaml)

    Raises:
        OSError: If file operations fail
    """
    if config_file is None:
        config_file = DEFAULT_CONFIG_FILE

    config_path = Path(config_file).expanduser()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(mode="python", exclude_none=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

    # Set restrictive permissions (owner read/write only); the file may hold a token
    config_path.chmod(0o600)


class SettingsStore:
    """Key/value settings backed by a YAML file or held in memory.

    ``get()`` re-reads the file on every call so that services resolve the
    library path and sources fresh for each operation.
    """

    def __init__(
        self,
        config_file: str | Path | None = None,
        config: SkillDockConfig | None = None,
    ) -> None:
        self._config_file = Path(config_file).expanduser() if config_file else None
        self._config = config

    @classmethod
    def in_memory(cls, **values: Any) -> SettingsStore:
        """Create a store that never touches the filesystem."""
        return cls(config=SkillDockConfig(**values))

    @property
    def config_file(self) -> Path | None:
        return self._config_file

    def get(self) -> SkillDockConfig:
        """Return the current configuration."""
        if self._config_file is not None:
            return load_config(self._config_file)
        if self._config is None:
            self._config = SkillDockConfig()
        return self._config

    def update(self, **changes: Any) -> SkillDockConfig:
        """Apply changes, validate and persist them."""
        data = self.get().model_dump(mode="python")
        data.update(changes)
        config = SkillDockConfig(**data)
        if self._config_file is not None:
            save_config(config, self._config_file)
        else:
            self._config = config
        logger.debug(f"Updated settings: {', '.join(sorted(changes))}")
        return config

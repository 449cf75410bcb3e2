"""Skill id validation and new-skill templates."""

import re

from skilldock.errors import InvalidInputError
from skilldock.skills.models import SkillMetadata

SKILL_ID_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")


def is_valid_skill_id(skill_id: str) -> bool:
    """Return True if skill_id is lowercase letters, digits and inner hyphens."""
    return bool(SKILL_ID_PATTERN.match(skill_id))


def validate_skill_id(skill_id: str) -> str | None:
    """Validate a skill id against naming conventions.

    Returns None if valid, or an error message string if invalid.
    """
    if not is_valid_skill_id(skill_id):
        return (
            f"Invalid skill id '{skill_id}'. "
            "Id must be lowercase letters, digits, and hyphens only, "
            "and cannot start or end with a hyphen."
        )
    return None


def require_valid_skill_id(skill_id: str) -> str:
    """Raise InvalidInputError unless skill_id is valid."""
    error = validate_skill_id(skill_id)
    if error:
        raise InvalidInputError(error)
    return skill_id


def default_skill_template(skill_id: str, description: str | None = None) -> tuple[SkillMetadata, str]:
    """Build metadata and body for a freshly created skill.

    The display name is derived from the id (``react-hooks`` -> ``React Hooks``).
    """
    name = humanize_name(skill_id)
    metadata = SkillMetadata(name=name, description=description or "")
    body = f"""# {name}

## When to use

Describe when this skill should be applied.

## Instructions

1. First step
2. Second step
"""
    return metadata, body


def humanize_name(dir_name: str) -> str:
    """Turn a directory name into a display name: hyphens to spaces, words capitalized."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), dir_name.replace("-", " "))

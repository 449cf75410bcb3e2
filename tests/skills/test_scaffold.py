"""Tests for skill id validation and templates."""

import pytest

from skilldock.errors import InvalidInputError
from skilldock.skills.scaffold import (
    default_skill_template,
    humanize_name,
    is_valid_skill_id,
    require_valid_skill_id,
    validate_skill_id,
)

pytestmark = pytest.mark.unit


class TestSkillIdValidation:
    """Tests for skill id rules."""

    @pytest.mark.parametrize("skill_id", ["a", "ab", "skill-123", "1-2-3", "react-hooks"])
    def test_valid_ids(self, skill_id: str) -> None:
        """Test lowercase ids with inner hyphens are accepted."""
        assert is_valid_skill_id(skill_id)
        assert validate_skill_id(skill_id) is None

    @pytest.mark.parametrize("skill_id", ["", "-test", "test-", "MySkill", "my_skill", "my skill", "a/b"])
    def test_invalid_ids(self, skill_id: str) -> None:
        """Test malformed ids are rejected with a message."""
        assert not is_valid_skill_id(skill_id)
        error = validate_skill_id(skill_id)
        assert error is not None
        assert "Invalid skill id" in error

    def test_require_raises(self) -> None:
        """Test require_valid_skill_id raises InvalidInputError."""
        with pytest.raises(InvalidInputError):
            require_valid_skill_id("Bad_Id")

    def test_require_returns_id(self) -> None:
        """Test a valid id is returned unchanged."""
        assert require_valid_skill_id("good-id") == "good-id"


class TestTemplates:
    """Tests for new-skill templates."""

    def test_humanize_name(self) -> None:
        """Test hyphens become spaces and words are capitalized."""
        assert humanize_name("react-hooks") == "React Hooks"
        assert humanize_name("pdf") == "Pdf"

    def test_default_template(self) -> None:
        """Test the template derives a name and includes a heading."""
        metadata, body = default_skill_template("react-hooks", "Best practices")

        assert metadata.name == "React Hooks"
        assert metadata.description == "Best practices"
        assert body.startswith("# React Hooks")

    def test_default_template_without_description(self) -> None:
        """Test a missing description becomes an empty string."""
        metadata, _ = default_skill_template("x")

        assert metadata.description == ""

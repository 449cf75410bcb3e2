"""Skill documents: data model, frontmatter codec, id rules and project import/export."""

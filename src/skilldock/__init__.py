"""SkillDock - A local library of agent skills.

Stores SKILL.md documents in a library directory, copies them into the
per-tool skill directories of a project, and installs skills published in
GitHub repositories.
"""

__version__ = "0.1.0"

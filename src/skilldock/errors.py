"""Exception types raised by SkillDock services.

Storage and import/export operations raise these directly and let the
caller decide on remediation. Marketplace aggregate operations catch them
per source or per document and log them instead.
"""

from __future__ import annotations


class SkillDockError(Exception):
    """Base class for all SkillDock errors."""


class SkillAlreadyExistsError(SkillDockError):
    """Raised when creating a skill whose id is already taken."""

    def __init__(self, skill_id: str):
        self.skill_id = skill_id
        super().__init__(f'Skill "{skill_id}" already exists')


class SkillNotFoundError(SkillDockError):
    """Raised when an operation references a skill or path that does not exist."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


class NoWorkspaceError(SkillNotFoundError):
    """Raised when a project operation runs without a workspace root."""

    def __init__(self) -> None:
        super().__init__("No workspace folder open")


class OperationCancelledError(SkillDockError):
    """Raised when the user declines a confirmation.

    This is not a failure: UI layers should not show an error for it.
    """

    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(message)


class InvalidInputError(SkillDockError, ValueError):
    """Raised for malformed ids, URLs, formats or duplicate sources."""


class TransportError(SkillDockError):
    """Raised when a remote host cannot be reached or answers with an error."""

    def __init__(self, message: str, url: str | None = None):
        self.url = url
        super().__init__(message)


class RemoteHTTPError(TransportError):
    """Raised for HTTP 4xx/5xx responses."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code} for {url}", url=url)


class RateLimitError(TransportError):
    """Raised when GitHub reports the API rate limit is exhausted."""

    def __init__(self, url: str | None = None):
        super().__init__(
            "GitHub API rate limit exceeded. Set a personal access token "
            "(github_token in the SkillDock config or the GITHUB_TOKEN "
            "environment variable) to increase the limit.",
            url=url,
        )

"""GitHub Collection provider implementation.

This module provides the GitHubCollectionProvider class which discovers
skill documents in a GitHub repository by walking its recursive git tree
and fetching each SKILL.md from the raw content host.
"""

from __future__ import annotations

import asyncio
import logging
import re
from urllib.parse import quote

from skilldock.skills.hubs.github_client import GitHubClient
from skilldock.skills.models import (
    DEFAULT_SKILL_NAME,
    SKILL_FILENAME,
    MarketplaceSource,
    RemoteSkill,
)
from skilldock.skills.parser import parse_frontmatter
from skilldock.skills.scaffold import humanize_name

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_RAW_URL = "https://raw.githubusercontent.com"

_OWNER = r"[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?"
_REPO = r"[A-Za-z0-9._-]+?"
_FULL_URL_RE = re.compile(
    rf"^https?://github\.com/({_OWNER})/({_REPO})(?:\.git)?(?:/tree/([^/]+)(?:/(.+))?)?$"
)
_SHORT_RE = re.compile(rf"^({_OWNER})/({_REPO})$")


def parse_github_url(url: str) -> MarketplaceSource | None:
    """Parse a GitHub URL into a MarketplaceSource.

    Supports formats:
    - https://github.com/owner/repo
    - https://github.com/owner/repo/tree/branch
    - https://github.com/owner/repo/tree/branch/path/to/skills
    - owner/repo

    Args:
        url: GitHub URL or short form

    Returns:
        MarketplaceSource, or None if the input is not a GitHub repository
    """
    trimmed = url.strip().rstrip("/")

    match = _FULL_URL_RE.match(trimmed)
    if match:
        owner, repo = match.group(1), match.group(2)
        branch = match.group(3) or "main"
        subpath = match.group(4) or ""
    else:
        match = _SHORT_RE.match(trimmed)
        if not match:
            return None
        owner, repo = match.group(1), match.group(2)
        branch = "main"
        subpath = ""

    source_id = f"{owner}/{repo}/{subpath}" if subpath else f"{owner}/{repo}"
    return MarketplaceSource(
        id=source_id,
        owner=owner,
        repo=repo,
        branch=branch,
        path=subpath,
        label=source_id,
        is_builtin=False,
    )


def is_skill_document(path: str) -> bool:
    """True if the last path segment is SKILL.md (case-insensitive)."""
    return path.rsplit("/", 1)[-1].lower() == SKILL_FILENAME.lower()


def filter_skill_paths(paths: list[str], subpath: str = "") -> list[str]:
    """Keep SKILL.md paths, restricted to those under subpath when given."""
    documents = [p for p in paths if is_skill_document(p)]
    prefix = subpath.strip("/")
    if not prefix:
        return documents
    return [p for p in documents if p.startswith(prefix + "/")]


class GitHubCollectionProvider:
    """Provider for one GitHub-hosted skill collection.

    The repository structure is expected to be:
    ```
    repo/
    ├── skill-1/
    │   └── SKILL.md
    ├── nested/skill-2/
    │   └── SKILL.md
    └── ...
    ```

    Example usage:
        ```python
        source = parse_github_url("https://github.com/anthropics/skills")
        async with GitHubClient() as client:
            provider = GitHubCollectionProvider(source, client, token="ghp_...")
            paths = await provider.list_skill_paths()
            skills = await provider.fetch_skills(paths)
        ```
    """

    def __init__(
        self,
        source: MarketplaceSource,
        client: GitHubClient,
        token: str | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            source: The marketplace source to read
            client: HTTP client used for API and raw requests
            token: Optional GitHub token (raises the rate limit)
        """
        self._source = source
        self._client = client
        self._token = token

    @property
    def source(self) -> MarketplaceSource:
        return self._source

    def tree_url(self) -> str:
        s = self._source
        return f"{GITHUB_API_URL}/repos/{s.owner}/{s.repo}/git/trees/{quote(s.branch, safe='')}?recursive=1"

    def raw_url(self, repo_path: str) -> str:
        s = self._source
        return f"{GITHUB_RAW_URL}/{s.owner}/{s.repo}/{quote(s.branch, safe='')}/{quote(repo_path)}"

    async def list_tree(self) -> list[str]:
        """Fetch the recursive tree listing and return file (blob) paths."""
        data = await self._client.get_json(self.tree_url(), token=self._token)
        if not isinstance(data, dict) or not isinstance(data.get("tree"), list):
            logger.warning(f"Unexpected tree response for {self._source.id}")
            return []
        if data.get("truncated"):
            logger.warning(f"Tree listing for {self._source.id} was truncated by GitHub")
        return [
            item["path"]
            for item in data["tree"]
            if isinstance(item, dict) and item.get("type") == "blob" and isinstance(item.get("path"), str)
        ]

    async def list_skill_paths(self) -> list[str]:
        """Paths of SKILL.md documents under the source's subdirectory."""
        return filter_skill_paths(await self.list_tree(), self._source.path)

    async def fetch_skill(self, repo_path: str) -> RemoteSkill:
        """Fetch and parse one SKILL.md.

        The skill id is the document's parent directory name (the repo name
        for a root-level document). A document without a name gets one
        derived from that directory.
        """
        download_url = self.raw_url(repo_path)
        content = await self._client.get_text(download_url, token=self._token)
        parsed = parse_frontmatter(content)

        parts = repo_path.split("/")
        dir_name = parts[-2] if len(parts) >= 2 else self._source.repo

        metadata = parsed.metadata
        if not metadata.name or metadata.name == DEFAULT_SKILL_NAME:
            metadata.name = humanize_name(dir_name)

        return RemoteSkill(
            id=dir_name,
            metadata=metadata,
            body=parsed.body,
            source=self._source,
            repo_path=repo_path,
            download_url=download_url,
        )

    async def fetch_skills(self, repo_paths: list[str]) -> list[RemoteSkill]:
        """Fetch documents concurrently; failed documents are logged and skipped.

        Results keep the order of repo_paths.
        """
        results = await asyncio.gather(
            *[self.fetch_skill(path) for path in repo_paths],
            return_exceptions=True,
        )

        skills: list[RemoteSkill] = []
        for path, result in zip(repo_paths, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(f"Skipping {self._source.id}:{path}: {result}")
                continue
            skills.append(result)
        return skills

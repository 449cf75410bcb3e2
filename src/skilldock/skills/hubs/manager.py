"""Marketplace service coordinating GitHub skill sources.

This module provides the MarketplaceService class which manages the list
of marketplace sources (built-in plus user-defined), fetches and caches
their skills, and installs remote skills into the local library.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from skilldock.errors import InvalidInputError
from skilldock.skills.decisions import ConfirmationRequest, DecisionProvider, confirm_overwrite
from skilldock.skills.hubs.github_client import GitHubClient
from skilldock.skills.hubs.github_collection import GitHubCollectionProvider, parse_github_url
from skilldock.skills.models import BUILTIN_MARKETPLACE_SOURCES, MarketplaceSource, RemoteSkill

if TYPE_CHECKING:
    from skilldock.config.app import SettingsStore
    from skilldock.storage.library import SkillLibrary

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 5 * 60


class FetchState(str, Enum):
    """Progress of the most recent fetch of one source."""

    IDLE = "idle"
    FETCHING_TREE = "fetching_tree"
    FETCHING_DOCUMENTS = "fetching_documents"
    CACHED = "cached"
    FAILED = "failed"


@dataclass
class CacheEntry:
    """Skills fetched from one source and when they were fetched."""

    skills: list[RemoteSkill]
    timestamp: float


def has_update(
    remote: RemoteSkill,
    installed_ids: set[str],
    installed_versions: dict[str, str],
) -> bool:
    """True if the skill is installed and its remote version differs from the installed one."""
    remote_version = remote.metadata.version
    local_version = installed_versions.get(remote.id)
    return (
        remote.id in installed_ids
        and bool(remote_version)
        and bool(local_version)
        and remote_version != local_version
    )


class MarketplaceService:
    """Browse and install skills from GitHub repositories.

    Example usage:
        ```python
        settings = SettingsStore()
        library = SkillLibrary(settings)
        marketplace = MarketplaceService(library, settings)

        await marketplace.add_custom_source("https://github.com/org/skills")
        for remote in await marketplace.fetch_all():
            print(f"{remote.id}: {remote.metadata.description}")
        ```
    """

    def __init__(
        self,
        library: SkillLibrary,
        settings: SettingsStore,
        client: GitHubClient | None = None,
        clock: Callable[[], float] = time.time,
        decisions: DecisionProvider | None = None,
        cache_ttl: float = CACHE_TTL_SECONDS,
    ) -> None:
        """Initialize the marketplace service.

        Args:
            library: Library that installs are written to
            settings: Settings store holding custom sources and the GitHub token
            client: HTTP client (created on first use when omitted)
            clock: Returns the current time in seconds; drives the cache TTL
            decisions: Answers overwrite confirmations on install
            cache_ttl: Seconds a fetched source stays fresh
        """
        self.library = library
        self.settings = settings
        self.decisions = decisions
        self._client = client
        self._clock = clock
        self._cache_ttl = cache_ttl
        self._cache: dict[str, CacheEntry] = {}
        self._states: dict[str, FetchState] = {}
        self._errors: dict[str, BaseException] = {}

    @property
    def client(self) -> GitHubClient:
        if self._client is None:
            self._client = GitHubClient()
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    # ------------------------------------------------------------------
    # Source management
    # ------------------------------------------------------------------

    def get_custom_source_urls(self) -> list[str]:
        """User-defined source URLs from settings."""
        return list(self.settings.get().marketplace_sources)

    def get_sources(self) -> list[MarketplaceSource]:
        """Built-in sources followed by custom sources; unparsable URLs are dropped."""
        custom = [parse_github_url(url) for url in self.get_custom_source_urls()]
        return [*BUILTIN_MARKETPLACE_SOURCES, *(s for s in custom if s is not None)]

    def get_source(self, source_id: str) -> MarketplaceSource | None:
        for source in self.get_sources():
            if source.id == source_id:
                return source
        return None

    async def add_custom_source(self, url: str) -> MarketplaceSource:
        """Add and persist a custom source URL.

        Raises:
            InvalidInputError: If the URL is not a GitHub repository or is already added
        """
        source = parse_github_url(url)
        if source is None:
            raise InvalidInputError(f"Invalid GitHub URL: {url}")

        urls = self.get_custom_source_urls()
        if url in urls:
            raise InvalidInputError(f"Source already exists: {url}")

        self.settings.update(marketplace_sources=[*urls, url])
        logger.info(f"Added marketplace source {source.id}")
        return source

    async def remove_custom_source(self, source_id: str) -> bool:
        """Remove custom source URLs whose parsed id is source_id and evict its cache.

        Returns:
            True if a persisted URL was removed
        """
        urls = self.get_custom_source_urls()
        kept = [url for url in urls if (parsed := parse_github_url(url)) is None or parsed.id != source_id]
        if len(kept) != len(urls):
            self.settings.update(marketplace_sources=kept)
            logger.info(f"Removed marketplace source {source_id}")
        self._cache.pop(source_id, None)
        self._states.pop(source_id, None)
        return len(kept) != len(urls)

    # ------------------------------------------------------------------
    # Fetching remote skills
    # ------------------------------------------------------------------

    def get_fetch_state(self, source_id: str) -> FetchState:
        return self._states.get(source_id, FetchState.IDLE)

    @property
    def last_errors(self) -> dict[str, BaseException]:
        """Failure reason of the most recent failed fetch, per source id."""
        return dict(self._errors)

    def _cached(self, source_id: str) -> list[RemoteSkill] | None:
        entry = self._cache.get(source_id)
        if entry is None or self._clock() - entry.timestamp >= self._cache_ttl:
            return None
        return list(entry.skills)

    async def fetch_source(self, source: MarketplaceSource, force: bool = False) -> list[RemoteSkill]:
        """Fetch the skills of one source, using the cache while it is fresh.

        Args:
            source: Source to fetch
            force: Bypass the cache

        Returns:
            Skills in tree order; documents that failed to load are omitted

        Raises:
            TransportError: If the tree listing cannot be fetched
        """
        if not force:
            cached = self._cached(source.id)
            if cached is not None:
                logger.debug(f"Cache hit for {source.id}")
                return cached

        token = self.settings.get().resolved_github_token()
        provider = GitHubCollectionProvider(source, self.client, token=token)

        try:
            self._states[source.id] = FetchState.FETCHING_TREE
            paths = await provider.list_skill_paths()
            self._states[source.id] = FetchState.FETCHING_DOCUMENTS
            skills = await provider.fetch_skills(paths)
        except Exception as e:
            self._states[source.id] = FetchState.FAILED
            self._errors[source.id] = e
            raise

        self._cache[source.id] = CacheEntry(skills=skills, timestamp=self._clock())
        self._states[source.id] = FetchState.CACHED
        self._errors.pop(source.id, None)
        logger.debug(f"Fetched {len(skills)} skills from {source.id}")
        return list(skills)

    async def fetch_all(self, force: bool = False) -> list[RemoteSkill]:
        """Fetch every source concurrently.

        Sources that fail are logged and left out; the rest keep source order.
        """
        sources = self.get_sources()
        results = await asyncio.gather(
            *[self.fetch_source(source, force) for source in sources],
            return_exceptions=True,
        )

        skills: list[RemoteSkill] = []
        for source, result in zip(sources, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(f"Failed to fetch marketplace source {source.id}: {result}")
                continue
            skills.extend(result)
        return skills

    def clear_cache(self) -> None:
        """Drop all cached fetch results."""
        self._cache.clear()
        self._states.clear()

    # ------------------------------------------------------------------
    # Installing
    # ------------------------------------------------------------------

    async def install_skill(
        self,
        remote: RemoteSkill,
        decisions: DecisionProvider | None = None,
    ) -> bool:
        """Install a remote skill into the library.

        An existing library skill with the same id is only overwritten after
        confirmation.

        Returns:
            False if the user declined to overwrite, True otherwise
        """
        existing = await self.library.read_skill(remote.id)
        if existing is not None:
            request = ConfirmationRequest(
                kind="overwrite_library_skill",
                skill_id=remote.id,
                skill_name=remote.metadata.name,
                location=str(self.library.library_path),
            )
            if not await confirm_overwrite(decisions or self.decisions, request):
                logger.info(f"Install of {remote.id} declined")
                return False
            await self.library.update_skill(remote.id, remote.metadata, remote.body)
        else:
            await self.library.create_skill(remote.id, remote.metadata, remote.body, validate_id=False)

        await self.library.record_install(remote.id, remote.metadata.version)
        logger.info(f"Installed {remote.id} from {remote.source.id}")
        return True

    async def update_skill_silently(self, remote: RemoteSkill) -> None:
        """Overwrite the installed copy without asking and record the install."""
        await self.library.update_skill(remote.id, remote.metadata, remote.body)
        await self.library.record_install(remote.id, remote.metadata.version)
        logger.info(f"Updated {remote.id} from {remote.source.id}")

    async def get_installed_ids(self) -> set[str]:
        return {skill.id for skill in await self.library.list_skills()}

    async def get_installed_version_map(self) -> dict[str, str]:
        return await self.library.get_installed_versions()

    async def check_updates(self, force: bool = False) -> list[RemoteSkill]:
        """Remote skills whose version differs from the installed version."""
        remote_skills, installed_ids, installed_versions = await asyncio.gather(
            self.fetch_all(force),
            self.get_installed_ids(),
            self.get_installed_version_map(),
        )
        return [r for r in remote_skills if has_update(r, installed_ids, installed_versions)]

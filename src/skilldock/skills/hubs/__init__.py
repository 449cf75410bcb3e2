"""Marketplace providers for browsing and installing skills from GitHub."""

from skilldock.skills.hubs.github_client import GitHubClient
from skilldock.skills.hubs.github_collection import GitHubCollectionProvider, parse_github_url
from skilldock.skills.hubs.manager import FetchState, MarketplaceService, has_update

__all__ = [
    "FetchState",
    "GitHubClient",
    "GitHubCollectionProvider",
    "MarketplaceService",
    "has_update",
    "parse_github_url",
]

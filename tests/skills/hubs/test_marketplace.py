"""Tests for MarketplaceService."""

import httpx
import pytest

from skilldock.config.app import SettingsStore
from skilldock.errors import InvalidInputError, RemoteHTTPError
from skilldock.skills.decisions import ConfirmationRequest, Decision, always
from skilldock.skills.hubs.github_client import GitHubClient
from skilldock.skills.hubs.manager import CACHE_TTL_SECONDS, FetchState, MarketplaceService, has_update
from skilldock.skills.models import BUILTIN_MARKETPLACE_SOURCES, MarketplaceSource, RemoteSkill, SkillMetadata
from skilldock.storage.library import SkillLibrary

pytestmark = pytest.mark.integration


class FakeClock:
    """Clock returning a settable time in seconds."""

    def __init__(self, now: float = 10_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeGitHub:
    """MockTransport handler serving trees and raw documents per repository."""

    def __init__(self) -> None:
        self.trees: dict[str, list[str]] = {}
        self.documents: dict[str, str] = {}
        self.failing: set[str] = set()
        self.auth_headers: list[str | None] = []

    def add(self, repo: str, path: str, text: str) -> None:
        self.trees.setdefault(repo, []).append(path)
        self.documents[f"{repo}/{path}"] = text

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.auth_headers.append(request.headers.get("Authorization"))
        parts = request.url.path.strip("/").split("/")
        if request.url.host == "api.github.com":
            repo = f"{parts[1]}/{parts[2]}"
            if repo in self.failing:
                return httpx.Response(500)
            if repo not in self.trees:
                return httpx.Response(404)
            tree = [{"path": p, "type": "blob"} for p in self.trees[repo]]
            return httpx.Response(200, json={"tree": tree, "truncated": False})
        key = f"{parts[0]}/{parts[1]}/{'/'.join(parts[3:])}"
        if key not in self.documents:
            return httpx.Response(404)
        return httpx.Response(200, text=self.documents[key])


def _doc(name: str, version: str | None = None) -> str:
    version_line = f'version: "{version}"\n' if version else ""
    return f"---\nname: {name}\ndescription: {name} skill\n{version_line}---\n# {name}\n"


SOURCE = MarketplaceSource(id="org/repo", owner="org", repo="repo")


@pytest.fixture
def github() -> FakeGitHub:
    fake = FakeGitHub()
    fake.add("org/repo", "skills/alpha/SKILL.md", _doc("Alpha", "1.0"))
    fake.add("org/repo", "skills/beta/SKILL.md", _doc("Beta"))
    return fake


@pytest.fixture
def client(github: FakeGitHub) -> GitHubClient:
    return GitHubClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(github)))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def marketplace(library: SkillLibrary, settings: SettingsStore, client: GitHubClient, clock: FakeClock) -> MarketplaceService:
    return MarketplaceService(library, settings, client=client, clock=clock)


def _remote(skill_id: str, version: str | None = None, name: str | None = None) -> RemoteSkill:
    return RemoteSkill(
        id=skill_id,
        metadata=SkillMetadata(name=name or skill_id.title(), description="remote", version=version),
        body=f"# {skill_id} remote",
        source=SOURCE,
        repo_path=f"skills/{skill_id}/SKILL.md",
        download_url=f"https://raw.githubusercontent.com/org/repo/main/skills/{skill_id}/SKILL.md",
    )


class TestSources:
    """Tests for source management."""

    def test_builtin_sources_first(self, marketplace: MarketplaceService) -> None:
        """Test built-in sources come before custom ones."""
        sources = marketplace.get_sources()

        assert [s.id for s in sources] == ["anthropics/skills", "github/awesome-copilot/skills"]
        assert all(s.is_builtin for s in sources)

    @pytest.mark.asyncio
    async def test_add_custom_source(self, marketplace: MarketplaceService, settings: SettingsStore) -> None:
        """Test a custom source is persisted and listed."""
        source = await marketplace.add_custom_source("https://github.com/org/repo")

        assert source.id == "org/repo"
        assert settings.get().marketplace_sources == ["https://github.com/org/repo"]
        assert [s.id for s in marketplace.get_sources()][-1] == "org/repo"

    @pytest.mark.asyncio
    async def test_add_duplicate_source_fails(self, marketplace: MarketplaceService) -> None:
        """Test adding the same URL twice fails the second time."""
        await marketplace.add_custom_source("https://github.com/org/repo")

        with pytest.raises(InvalidInputError):
            await marketplace.add_custom_source("https://github.com/org/repo")

    @pytest.mark.asyncio
    async def test_add_invalid_source_fails(self, marketplace: MarketplaceService, settings: SettingsStore) -> None:
        """Test a non-GitHub URL is rejected and nothing is stored."""
        with pytest.raises(InvalidInputError):
            await marketplace.add_custom_source("https://example.com/org/repo")

        assert settings.get().marketplace_sources == []

    @pytest.mark.asyncio
    async def test_remove_custom_source(self, marketplace: MarketplaceService, settings: SettingsStore) -> None:
        """Test removing a source drops its URL and cached skills."""
        await marketplace.add_custom_source("org/repo")
        await marketplace.add_custom_source("https://github.com/org/other")
        await marketplace.fetch_source(SOURCE)

        assert await marketplace.remove_custom_source("org/repo")

        assert settings.get().marketplace_sources == ["https://github.com/org/other"]
        assert marketplace.get_fetch_state("org/repo") == FetchState.IDLE

    @pytest.mark.asyncio
    async def test_remove_unknown_source(self, marketplace: MarketplaceService) -> None:
        """Test removing an unknown id reports nothing removed."""
        assert not await marketplace.remove_custom_source("nobody/nothing")

    def test_unparsable_stored_urls_skipped(self, library: SkillLibrary, library_dir, client: GitHubClient) -> None:
        """Test stored URLs that do not parse are left out of the source list."""
        settings = SettingsStore.in_memory(
            library_path=str(library_dir),
            marketplace_sources=["not a url", "org/repo"],
        )
        service = MarketplaceService(library, settings, client=client)

        assert [s.id for s in service.get_sources()][len(BUILTIN_MARKETPLACE_SOURCES) :] == ["org/repo"]


class TestFetchSource:
    """Tests for fetching and caching."""

    @pytest.mark.asyncio
    async def test_fetch_source(self, marketplace: MarketplaceService) -> None:
        """Test skills are fetched in tree order."""
        skills = await marketplace.fetch_source(SOURCE)

        assert [s.id for s in skills] == ["alpha", "beta"]
        assert skills[0].metadata.version == "1.0"
        assert marketplace.get_fetch_state("org/repo") == FetchState.CACHED

    @pytest.mark.asyncio
    async def test_cache_hit_within_ttl(self, marketplace: MarketplaceService, client: GitHubClient, clock: FakeClock) -> None:
        """Test a second fetch within the TTL makes no requests."""
        await marketplace.fetch_source(SOURCE)
        requests_after_first = client.request_count

        clock.now += CACHE_TTL_SECONDS - 1
        skills = await marketplace.fetch_source(SOURCE)

        assert client.request_count == requests_after_first
        assert [s.id for s in skills] == ["alpha", "beta"]

    @pytest.mark.asyncio
    async def test_cache_expires(self, marketplace: MarketplaceService, client: GitHubClient, clock: FakeClock) -> None:
        """Test the cache is refreshed once the TTL has passed."""
        await marketplace.fetch_source(SOURCE)
        requests_after_first = client.request_count

        clock.now += CACHE_TTL_SECONDS
        await marketplace.fetch_source(SOURCE)

        assert client.request_count == 2 * requests_after_first

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(self, marketplace: MarketplaceService, client: GitHubClient) -> None:
        """Test force=True always fetches."""
        await marketplace.fetch_source(SOURCE)
        requests_after_first = client.request_count

        await marketplace.fetch_source(SOURCE, force=True)

        assert client.request_count == 2 * requests_after_first

    @pytest.mark.asyncio
    async def test_clear_cache(self, marketplace: MarketplaceService, client: GitHubClient) -> None:
        """Test clear_cache forces the next fetch to hit the network."""
        await marketplace.fetch_source(SOURCE)
        requests_after_first = client.request_count

        marketplace.clear_cache()
        await marketplace.fetch_source(SOURCE)

        assert client.request_count == 2 * requests_after_first

    @pytest.mark.asyncio
    async def test_cached_list_is_a_copy(self, marketplace: MarketplaceService) -> None:
        """Test mutating a returned list does not change the cache."""
        first = await marketplace.fetch_source(SOURCE)
        first.clear()

        assert len(await marketplace.fetch_source(SOURCE)) == 2

    @pytest.mark.asyncio
    async def test_failed_fetch(self, marketplace: MarketplaceService, github: FakeGitHub) -> None:
        """Test a failing tree request raises and marks the source failed."""
        github.failing.add("org/repo")

        with pytest.raises(RemoteHTTPError):
            await marketplace.fetch_source(SOURCE)

        assert marketplace.get_fetch_state("org/repo") == FetchState.FAILED
        assert isinstance(marketplace.last_errors["org/repo"], RemoteHTTPError)

    @pytest.mark.asyncio
    async def test_token_from_settings(
        self, library: SkillLibrary, library_dir, client: GitHubClient, github: FakeGitHub
    ) -> None:
        """Test the configured token is sent with every request."""
        settings = SettingsStore.in_memory(library_path=str(library_dir), github_token="ghp_cfg")
        service = MarketplaceService(library, settings, client=client)

        await service.fetch_source(SOURCE)

        assert github.auth_headers
        assert set(github.auth_headers) == {"token ghp_cfg"}

    @pytest.mark.asyncio
    async def test_token_from_environment(
        self,
        marketplace: MarketplaceService,
        github: FakeGitHub,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test GITHUB_TOKEN is used when no token is configured."""
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")

        await marketplace.fetch_source(SOURCE)

        assert set(github.auth_headers) == {"token ghp_env"}


class TestFetchAll:
    """Tests for fetch_all."""

    @pytest.mark.asyncio
    async def test_failed_sources_dropped(
        self,
        marketplace: MarketplaceService,
        github: FakeGitHub,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test failing sources are left out while the rest are aggregated in order."""
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        github.add("anthropics/skills", "pdf/SKILL.md", _doc("PDF"))
        github.failing.add("github/awesome-copilot")
        await marketplace.add_custom_source("org/repo")

        skills = await marketplace.fetch_all()

        assert [s.id for s in skills] == ["pdf", "alpha", "beta"]
        assert marketplace.get_fetch_state("github/awesome-copilot/skills") == FetchState.FAILED

    @pytest.mark.asyncio
    async def test_all_sources_failing(self, marketplace: MarketplaceService) -> None:
        """Test fetch_all returns an empty list when every source fails."""
        assert await marketplace.fetch_all() == []


class TestInstall:
    """Tests for installing and updating remote skills."""

    @pytest.mark.asyncio
    async def test_install_new_skill(self, marketplace: MarketplaceService, library: SkillLibrary) -> None:
        """Test installing creates the skill and records the install."""
        assert await marketplace.install_skill(_remote("alpha", "1.0"))

        skill = await library.read_skill("alpha")
        assert skill is not None
        assert skill.body == "# alpha remote"
        stats = await library.get_install_stats("alpha")
        assert stats is not None
        assert stats.install_count == 1
        assert stats.installed_version == "1.0"

    @pytest.mark.asyncio
    async def test_install_keeps_remote_directory_name(self, marketplace: MarketplaceService, library: SkillLibrary) -> None:
        """Test remote ids outside the local id format are used verbatim."""
        assert await marketplace.install_skill(_remote("Mixed_Case"))

        assert await library.read_skill("Mixed_Case") is not None

    @pytest.mark.asyncio
    async def test_install_existing_declined(self, marketplace: MarketplaceService, library: SkillLibrary) -> None:
        """Test declining the overwrite leaves the library untouched."""
        await library.create_skill("alpha", SkillMetadata(name="Local"), "local body")

        installed = await marketplace.install_skill(_remote("alpha", "1.0"), decisions=always(Decision.CANCEL))

        assert not installed
        skill = await library.read_skill("alpha")
        assert skill is not None
        assert skill.body == "local body"
        assert await library.get_install_stats("alpha") is None

    @pytest.mark.asyncio
    async def test_install_existing_without_provider_declines(
        self, marketplace: MarketplaceService, library: SkillLibrary
    ) -> None:
        """Test nothing is overwritten when no decision provider is set."""
        await library.create_skill("alpha", SkillMetadata(name="Local"), "local body")

        assert not await marketplace.install_skill(_remote("alpha"))

    @pytest.mark.asyncio
    async def test_install_existing_overwritten(self, marketplace: MarketplaceService, library: SkillLibrary) -> None:
        """Test an accepted overwrite updates in place and counts the install."""
        await library.create_skill("alpha", SkillMetadata(name="Local"), "local body")
        requests: list[ConfirmationRequest] = []

        async def decide(request: ConfirmationRequest) -> Decision:
            requests.append(request)
            return Decision.OVERWRITE

        assert await marketplace.install_skill(_remote("alpha", "2.0"), decisions=decide)

        skill = await library.read_skill("alpha")
        assert skill is not None
        assert skill.body == "# alpha remote"
        assert requests[0].kind == "overwrite_library_skill"
        assert (await library.get_installed_versions()) == {"alpha": "2.0"}

    @pytest.mark.asyncio
    async def test_update_silently(self, marketplace: MarketplaceService, library: SkillLibrary) -> None:
        """Test silent update overwrites without asking and records the version."""
        await marketplace.install_skill(_remote("alpha", "1.0"))

        await marketplace.update_skill_silently(_remote("alpha", "1.1"))

        stats = await library.get_install_stats("alpha")
        assert stats is not None
        assert stats.install_count == 2
        assert stats.installed_version == "1.1"

    @pytest.mark.asyncio
    async def test_installed_projections(self, marketplace: MarketplaceService, library: SkillLibrary) -> None:
        """Test installed ids and versions reflect the library and ledger."""
        await library.create_skill("local-only", SkillMetadata(name="Local"), "b")
        await marketplace.install_skill(_remote("alpha", "1.0"))

        assert await marketplace.get_installed_ids() == {"local-only", "alpha"}
        assert await marketplace.get_installed_version_map() == {"alpha": "1.0"}


class TestUpdateDetection:
    """Tests for has_update and check_updates."""

    @pytest.mark.parametrize(
        ("installed", "local_version", "remote_version", "expected"),
        [
            (True, "1.0", "2.0", True),
            (True, "1.0", "1.0", False),
            (True, None, "2.0", False),
            (True, "1.0", None, False),
            (False, "1.0", "2.0", False),
        ],
    )
    def test_has_update(self, installed: bool, local_version: str | None, remote_version: str | None, expected: bool) -> None:
        """Test an update needs an installed skill with two differing versions."""
        installed_ids = {"alpha"} if installed else set()
        versions = {"alpha": local_version} if local_version else {}

        assert has_update(_remote("alpha", remote_version), installed_ids, versions) is expected

    @pytest.mark.asyncio
    async def test_check_updates(
        self,
        marketplace: MarketplaceService,
        github: FakeGitHub,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test check_updates reports installed skills with a newer remote version."""
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        await marketplace.add_custom_source("org/repo")
        await marketplace.install_skill(_remote("alpha", "0.9"))
        await marketplace.install_skill(_remote("beta"))

        updates = await marketplace.check_updates()

        assert [u.id for u in updates] == ["alpha"]
        assert updates[0].metadata.version == "1.0"

"""Tests for the GitHub HTTP client."""

import httpx
import pytest

from skilldock.errors import RateLimitError, RemoteHTTPError, TransportError
from skilldock.skills.hubs.github_client import USER_AGENT, GitHubClient

pytestmark = pytest.mark.unit


def _client(handler) -> GitHubClient:
    return GitHubClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestGitHubClientRequests:
    """Tests for headers and successful responses."""

    @pytest.mark.asyncio
    async def test_headers_with_token(self) -> None:
        """Test User-Agent and token Authorization headers are sent."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        async with _client(handler) as client:
            data = await client.get_json("https://api.github.com/x", token="ghp_abc")

        assert data == {"ok": True}
        assert seen[0].headers["User-Agent"] == USER_AGENT
        assert seen[0].headers["Authorization"] == "token ghp_abc"
        assert seen[0].headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_no_auth_header_without_token(self) -> None:
        """Test no Authorization header is sent when there is no token."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="hello")

        async with _client(handler) as client:
            text = await client.get_text("https://raw.githubusercontent.com/o/r/main/SKILL.md")

        assert text == "hello"
        assert "Authorization" not in seen[0].headers
        assert client.request_count == 1

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        """Test a non-JSON body raises TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        async with _client(handler) as client:
            with pytest.raises(TransportError):
                await client.get_json("https://api.github.com/x")


class TestGitHubClientRedirects:
    """Tests for manual redirect handling."""

    @pytest.mark.asyncio
    async def test_follows_redirect_chain(self) -> None:
        """Test 3xx responses with Location are followed recursively."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/first":
                return httpx.Response(301, headers={"Location": "/second"})
            if request.url.path == "/second":
                return httpx.Response(302, headers={"Location": "https://api.github.com/final"})
            return httpx.Response(200, json={"at": request.url.path})

        async with _client(handler) as client:
            data = await client.get_json("https://api.github.com/first")

        assert data == {"at": "/final"}
        assert client.request_count == 3

    @pytest.mark.asyncio
    async def test_token_dropped_on_cross_host_redirect(self) -> None:
        """Test the token is not forwarded to a different host."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.host == "api.github.com":
                return httpx.Response(307, headers={"Location": "https://objects.example.com/blob"})
            return httpx.Response(200, text="content")

        async with _client(handler) as client:
            await client.get_text("https://api.github.com/start", token="secret")

        assert seen[0].headers["Authorization"] == "token secret"
        assert "Authorization" not in seen[1].headers

    @pytest.mark.asyncio
    async def test_too_many_redirects(self) -> None:
        """Test a redirect loop ends in TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": "/loop"})

        async with _client(handler) as client:
            with pytest.raises(TransportError, match="Too many redirects"):
                await client.get_text("https://api.github.com/loop")

        assert client.request_count == 6


class TestGitHubClientErrors:
    """Tests for error translation."""

    @pytest.mark.asyncio
    async def test_rate_limit(self) -> None:
        """Test 403 with X-RateLimit-Remaining: 0 raises RateLimitError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, headers={"X-RateLimit-Remaining": "0"})

        async with _client(handler) as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.get_json("https://api.github.com/x")

        assert "token" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_plain_forbidden(self) -> None:
        """Test a 403 with remaining quota is a generic HTTP error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, headers={"X-RateLimit-Remaining": "12"})

        async with _client(handler) as client:
            with pytest.raises(RemoteHTTPError) as exc_info:
                await client.get_json("https://api.github.com/x")

        assert not isinstance(exc_info.value, RateLimitError)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 500, 502])
    async def test_http_errors(self, status: int) -> None:
        """Test 4xx/5xx responses raise RemoteHTTPError with the status."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status)

        async with _client(handler) as client:
            with pytest.raises(RemoteHTTPError) as exc_info:
                await client.get_text("https://api.github.com/missing")

        assert exc_info.value.status_code == status
        assert exc_info.value.url == "https://api.github.com/missing"

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        """Test connection failures raise TransportError with the cause chained."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(TransportError) as exc_info:
                await client.get_text("https://api.github.com/x")

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test timeouts raise TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler) as client:
            with pytest.raises(TransportError, match="timed out"):
                await client.get_text("https://api.github.com/x")

"""Async HTTP client for the GitHub REST API and raw content host.

Redirects are followed by hand so that every hop goes through the same
error translation: a 403 with an exhausted rate limit becomes
RateLimitError, other 4xx/5xx responses become RemoteHTTPError and
connection problems become TransportError.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urljoin, urlsplit

import httpx

from skilldock.errors import RateLimitError, RemoteHTTPError, TransportError

logger = logging.getLogger(__name__)

USER_AGENT = "SkillDock-Python"


class GitHubClient:
    """Thin GET-only client with token auth and manual redirect handling.

    Args:
        timeout: Request timeout in seconds (default: 30.0)
        max_redirects: Maximum number of redirect hops to follow
        http_client: Pre-built httpx.AsyncClient (tests pass one with a MockTransport)
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_redirects: int = 5,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._timeout = timeout
        self._max_redirects = max_redirects
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self.request_count = 0

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @staticmethod
    def _headers(accept: str | None, token: str | None) -> dict[str, str]:
        headers: dict[str, str] = {"User-Agent": USER_AGENT}
        if accept:
            headers["Accept"] = accept
        if token:
            headers["Authorization"] = f"token {token}"
        return headers

    @staticmethod
    def _http_error(response: httpx.Response, url: str) -> TransportError:
        if response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0":
            return RateLimitError(url)
        return RemoteHTTPError(response.status_code, url)

    async def _get(self, url: str, accept: str | None = None, token: str | None = None) -> httpx.Response:
        """GET a URL, following redirects and translating failures.

        Raises:
            RateLimitError: On 403 with X-RateLimit-Remaining: 0
            RemoteHTTPError: On other 4xx/5xx responses
            TransportError: On connection errors, timeouts or too many redirects
        """
        origin_host = urlsplit(url).netloc

        for _ in range(self._max_redirects + 1):
            # Credentials only go to the host the request started on
            send_token = token if urlsplit(url).netloc == origin_host else None
            self.request_count += 1
            try:
                response = await self._client.get(
                    url,
                    headers=self._headers(accept, send_token),
                    follow_redirects=False,
                )
            except httpx.TimeoutException as e:
                raise TransportError(f"Request timed out: {url}", url=url) from e
            except httpx.RequestError as e:
                raise TransportError(f"Request failed for {url}: {e}", url=url) from e

            location = response.headers.get("location")
            if 300 <= response.status_code < 400 and location:
                logger.debug(f"Following redirect {response.status_code} from {url} to {location}")
                url = urljoin(url, location)
                continue

            if response.status_code >= 400:
                raise self._http_error(response, url)

            return response

        raise TransportError(f"Too many redirects for {url}", url=url)

    async def get_json(self, url: str, token: str | None = None) -> Any:
        """GET a URL and parse the body as JSON."""
        response = await self._get(url, accept="application/json", token=token)
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {url}: {e}", url=url) from e

    async def get_text(self, url: str, token: str | None = None) -> str:
        """GET a URL and return the body decoded as UTF-8."""
        response = await self._get(url, token=token)
        return response.content.decode("utf-8", errors="replace")

"""
Resolve a site string to its final URL by following HTTP redirects.

Resolution is a bounded state machine over (chain, method):
- chain: every URL requested so far, in order (a URL retried with GET
  appears twice)
- method: HEAD first, GET as a fallback for servers that mishandle HEAD

Only status lines and headers are read; response bodies are discarded.
"""

from typing import List, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx

from crawler.exceptions import HTTPStatusError, ResolutionError, TooManyRedirectsError
from runner.logging_setup import get_logger

logger = get_logger("url_resolver")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/81.0.4044.138 Safari/537.36"
)

MAX_CHAIN_LENGTH = 10

HEAD = "HEAD"
GET = "GET"

REDIRECT_STATUSES = frozenset({
    301,  # Moved Permanently
    302,  # Found
    303,  # See Other
    307,  # Temporary Redirect
    308,  # Permanent Redirect
})
METHOD_NOT_ALLOWED = 405


def normalize_url(url: str) -> str:
    """
    Normalize an absolute URL (lower-case scheme and host, "/" for an empty path).

    Raises:
        ResolutionError: If the URL has no scheme or host
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ResolutionError(f"Invalid URL: {url}", details=url)

    userinfo, at, host = parts.netloc.rpartition("@")

    return urlunsplit((
        parts.scheme.lower(),
        f"{userinfo}{at}{host.lower()}",
        parts.path or "/",
        parts.query,
        parts.fragment,
    ))


def normalize_input(site: str) -> str:
    """
    Turn an imported site string into an absolute URL.

    Strings without a scheme-looking prefix (no ":" in the first 6
    characters) are treated as hosts and get "http://" prepended.
    """
    site = site.strip()
    colon_index = site.find(":")
    if colon_index == -1 or colon_index > 5:
        site = f"http://{site}"
    return normalize_url(site)


class UrlResolver:
    """
    Follows redirects with HEAD/GET requests.

    Plain http:// requests share one keep-alive client; https:// requests
    each use a fresh connection.
    """

    def __init__(self, timeout: float = 30, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            timeout: Per-request timeout in seconds (0 disables it)
            transport: Optional httpx transport (used by tests)
        """
        self.timeout = timeout or None
        self._transport = transport
        self._keepalive_client: Optional[httpx.AsyncClient] = None

    def _new_client(self) -> httpx.AsyncClient:
        kwargs = {
            "timeout": self.timeout,
            "follow_redirects": False,
            "headers": {"User-Agent": USER_AGENT},
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    async def _send(self, client: httpx.AsyncClient, method: str, url: str) -> httpx.Response:
        response = await client.send(client.build_request(method, url), stream=True)
        await response.aclose()
        return response

    async def _request(self, method: str, url: str) -> httpx.Response:
        try:
            if url.startswith("http:"):
                if self._keepalive_client is None:
                    self._keepalive_client = self._new_client()
                return await self._send(self._keepalive_client, method, url)

            async with self._new_client() as client:
                return await self._send(client, method, url)

        except httpx.TimeoutException as e:
            raise ResolutionError(f"Timed out requesting {url}", details=url) from e
        except httpx.HTTPError as e:
            raise ResolutionError(f"Request failed for {url}: {e}", details=url) from e

    async def resolve(self, site: str) -> str:
        """
        Resolve a site to its final URL.

        Args:
            site: Host or URL as imported

        Returns:
            Final URL after redirects

        Raises:
            TooManyRedirectsError: Chain grew past MAX_CHAIN_LENGTH entries
            HTTPStatusError: The first hop failed with both HEAD and GET
            ResolutionError: Invalid URL, timeout or transport failure
        """
        url = normalize_input(site)
        chain: List[str] = []
        method = HEAD

        while True:
            chain.append(url)
            if len(chain) > MAX_CHAIN_LENGTH:
                raise TooManyRedirectsError(chain)

            response = await self._request(method, url)
            status = response.status_code
            location = response.headers.get("location")

            logger.debug(f"[URL] HTTP {method} {status} {url}")

            if 200 <= status <= 299:
                return url

            if status in REDIRECT_STATUSES or status == METHOD_NOT_ALLOWED:
                if (status == 303 and not location) or status == METHOD_NOT_ALLOWED:
                    method = GET
                elif location:
                    url = normalize_url(urljoin(url, location))
                else:
                    return url
                continue

            # Some servers answer HEAD differently from GET, give GET a try
            if method == HEAD:
                method = GET
                continue

            # Strict on the first hop, lenient once a redirect was followed
            if len(chain) == 2:
                raise HTTPStatusError(status, url)
            return url

    async def aclose(self) -> None:
        """Close the shared keep-alive client."""
        if self._keepalive_client is not None:
            await self._keepalive_client.aclose()
            self._keepalive_client = None

    async def __aenter__(self) -> "UrlResolver":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

"""
Exceptions raised while crawling a site.

Per-site failures (everything here except NoSitesError) are caught by the
scheduler, which marks the site errored and keeps going.
"""

from typing import List


class ResolutionError(Exception):
    """The site URL could not be resolved to a navigable URL."""

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.details = details


class TooManyRedirectsError(ResolutionError):
    """The redirect chain exceeded the hop limit."""

    def __init__(self, chain: List[str]):
        super().__init__("Too many redirects", details=list(chain))
        self.chain = list(chain)


class HTTPStatusError(ResolutionError):
    """The first hop answered with a non-success, non-redirect status."""

    def __init__(self, status_code: int, url: str):
        super().__init__(f"HTTP {status_code}", details=url)
        self.status_code = status_code
        self.url = url


class PageCrashedError(Exception):
    """The browser page crashed while crawling a site."""

    def __init__(self, url: str):
        super().__init__(f"Page crashed: {url}")
        self.url = url


class NoSitesError(Exception):
    """There are no unhandled sites left to crawl."""
    pass

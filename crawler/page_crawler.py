"""
Crawl a single site in the browser.

Per-site flow:
    RESOLVING -> NAVIGATING -> (FOLLOWING_LINKS)* -> DONE | FAILED

- RESOLVING: follow HTTP redirects to the final URL (no page opened yet)
- NAVIGATING: open an isolated context, install the header-rewriting route
  and the instrumentation script, load the page and wait for network idle
- FOLLOWING_LINKS: click random same-origin links, depth - 1 times at most
- DONE: page and context are closed (also after a failure)

Page content is never read or stored; only the number of navigations is
reported back.
"""

import asyncio
import enum
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from playwright.async_api import (
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Route,
    TimeoutError as PlaywrightTimeoutError,
)

from crawler.browser import BrowserSession
from crawler.exceptions import PageCrashedError
from crawler.header_rewriter import rewrite_response_headers
from crawler.instrumentation import render_client_script
from crawler.link_follower import LinkFollower
from crawler.url_resolver import UrlResolver
from db.crawl_store import CrawlStore, QueuedSite
from runner.config import RunOptions
from runner.logging_setup import get_logger

logger = get_logger("page_crawler")

PageCallback = Optional[Callable[[], Awaitable[None]]]

# Responses of these types may carry reporting headers worth rewriting
REWRITE_RESOURCE_TYPES = frozenset({"document", "script", "stylesheet"})

# These can still trigger a CSP violation, so they are only blocked when
# bandwidth matters more than catching every browser report
BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "media", "font", "other"})


class CrawlState(enum.Enum):
    RESOLVING = "resolving"
    NAVIGATING = "navigating"
    FOLLOWING_LINKS = "following_links"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CrawlResult:
    """Outcome of a successful site crawl."""

    site: QueuedSite
    resolved_url: str
    pages: int
    state: CrawlState = CrawlState.DONE


class PageCrawler:
    """Drives one site through resolution, navigation and link following."""

    def __init__(
        self,
        browser: BrowserSession,
        resolver: UrlResolver,
        store: CrawlStore,
        options: RunOptions,
        endpoint: str,
        client_script: str,
        link_follower: Optional[LinkFollower] = None,
    ):
        """
        Args:
            browser: Shared browser session (one context per site)
            resolver: URL resolver
            store: Crawl store, used to persist the resolved URL
            options: Run options
            endpoint: Telemetry API endpoint for header rewrites and the script
            client_script: Instrumentation template
            link_follower: Optional LinkFollower (default: random choice)
        """
        self.browser = browser
        self.resolver = resolver
        self.store = store
        self.options = options
        self.endpoint = endpoint
        self.client_script = client_script
        self.link_follower = link_follower or LinkFollower()

    async def crawl(self, site: QueuedSite, on_page: PageCallback = None) -> CrawlResult:
        """
        Crawl one site.

        Args:
            site: Claimed site
            on_page: Awaited once per completed navigation

        Returns:
            CrawlResult with the resolved URL and navigation count

        Raises:
            ResolutionError: The URL could not be resolved
            PageCrashedError: The page crashed during navigation
            playwright Error: Navigation or first-hop link failure
        """
        state = CrawlState.RESOLVING
        logger.debug(f"[{state.name}] {site.url}")
        context = None
        page = None
        crashed = []

        try:
            resolved_url = await self.resolver.resolve(site.url)
            await asyncio.to_thread(self.store.set_resolved, site.id, resolved_url)

            state = CrawlState.NAVIGATING
            logger.debug(f"[{state.name}] {resolved_url}")

            context = await self.browser.new_context()
            page = await context.new_page()
            page.on("crash", lambda crashed_page: crashed.append(crashed_page.url))
            if self.options.verbose or self.options.debug:
                self._attach_page_logging(page)

            await page.route("**/*", self._handle_route)
            await page.add_init_script(
                render_client_script(self.client_script, self.endpoint, site.url)
            )

            try:
                await page.goto(resolved_url, wait_until="networkidle")
            except PlaywrightTimeoutError as e:
                logger.warning(f"[NAVIGATE] Timeout loading {resolved_url}: {e}")
            except PlaywrightError as e:
                if crashed:
                    raise PageCrashedError(crashed[0] or resolved_url) from e
                raise

            if crashed:
                raise PageCrashedError(crashed[0] or resolved_url)

            pages = 1
            if on_page:
                await on_page()

            if self.options.depth > 1:
                state = CrawlState.FOLLOWING_LINKS
                pages += await self._follow_links(page, crashed, on_page)

            state = CrawlState.DONE
            logger.debug(f"[{state.name}] {site.url} ({pages} pages)")
            return CrawlResult(site=site, resolved_url=resolved_url, pages=pages, state=state)

        except Exception:
            logger.debug(f"[{CrawlState.FAILED.name}] {site.url} while {state.value}")
            raise

        finally:
            await self._close(page, context)

    async def _follow_links(self, page: Page, crashed: list,
                            on_page: PageCallback) -> int:
        """Follow up to depth - 1 links; returns the number of navigations."""
        seen = []
        followed = 0

        for hop in range(1, self.options.depth):
            try:
                moved = await self.link_follower.follow(page, seen)
                if crashed:
                    raise PageCrashedError(crashed[0] or page.url)
            except Exception as e:
                # Without a single followed link the site counts as failed
                if hop == 1:
                    raise
                logger.warning(f"[LINKS] Stopped following links after {followed} hops: {e}")
                break

            if not moved:
                break

            followed += 1
            if on_page:
                await on_page()

        return followed

    async def _handle_route(self, route: Route):
        """Block, pass through or rewrite the headers of one request."""
        request = route.request
        resource_type = request.resource_type

        if self.options.block and resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
            return

        if resource_type not in REWRITE_RESOURCE_TYPES:
            await route.continue_()
            return

        try:
            response = await route.fetch(timeout=self.options.timeout_ms)
            headers = rewrite_response_headers(response.headers, self.endpoint)
            await route.fulfill(response=response, headers=headers)
        except PlaywrightError as e:
            logger.warning(f"[ROUTE] Could not rewrite headers for {request.url}: {e}")
            await route.continue_()

    def _attach_page_logging(self, page: Page):
        def on_page_error(error):
            logger.error(f"Page Error: {error}")

        def on_console(message):
            location = message.location or {}
            logger.info(
                f"{location.get('url') or page.url}:{location.get('lineNumber')}:"
                f"{location.get('columnNumber')} [{message.type}] {message.text}"
            )

        page.on("pageerror", on_page_error)
        page.on("console", on_console)

    async def _close(self, page: Optional[Page], context: Optional[BrowserContext]):
        try:
            if page is not None:
                await page.close()
            if context is not None:
                await context.close()
        except PlaywrightError as e:
            logger.warning(f"Error closing page: {e}")

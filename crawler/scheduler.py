"""
Crawl scheduler: bounded-concurrency workers over the persistent site queue.

A run:
1. Creates a run record holding the options snapshot
2. Optionally resets every site (restart), then checks there is work
3. Launches the shared browser and `parallel` worker tasks
4. Each worker claims one site at a time and crawls it until the visit
   cap is reached or the queue is exhausted
5. Finalizes the run record (ts_end) whatever happened

Claiming is the only critical section: check the cap, refill the prefetch
buffer when empty, pop, count and mark the site handled. It runs under one
asyncio.Lock. Store calls run in worker threads (asyncio.to_thread), so a
busy database never stalls the event loop driving the browser.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

from sqlalchemy.exc import SQLAlchemyError

from crawler.browser import BrowserSession
from crawler.exceptions import NoSitesError, ResolutionError
from crawler.page_crawler import PageCrawler
from crawler.url_resolver import UrlResolver
from db.crawl_store import DEFAULT_BATCH_SIZE, CrawlStore, QueuedSite, RunCounter, SiteOrder
from runner.config import CrawlerConfig, RunOptions
from runner.logging_setup import get_logger

logger = get_logger("scheduler")


@dataclass
class RunSummary:
    """Totals for one scheduler invocation."""

    run_id: int
    visited: int = 0
    skipped: int = 0
    pages: int = 0
    error: bool = False


class CrawlScheduler:
    """Runs one crawl over the unhandled sites in the store."""

    def __init__(
        self,
        store: CrawlStore,
        options: RunOptions,
        config: CrawlerConfig,
        client_script: str,
        browser: Optional[BrowserSession] = None,
        resolver: Optional[UrlResolver] = None,
        page_crawler: Optional[PageCrawler] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        """
        Args:
            store: Crawl store (site queue and run records)
            options: Validated run options
            config: Crawler configuration (API endpoint, paths)
            client_script: Instrumentation template
            browser: Optional BrowserSession (default: built from options)
            resolver: Optional UrlResolver (default: options.timeout)
            page_crawler: Optional PageCrawler (default: built from the above)
            batch_size: Sites fetched per buffer refill
        """
        self.store = store
        self.options = options
        self.config = config
        self.batch_size = batch_size

        self.browser = browser or BrowserSession(options)
        self.resolver = resolver or UrlResolver(timeout=options.timeout)
        self.page_crawler = page_crawler or PageCrawler(
            browser=self.browser,
            resolver=self.resolver,
            store=store,
            options=options,
            endpoint=config.api_endpoint,
            client_script=client_script,
        )

        self.order = SiteOrder(options.order)
        self.run_id: Optional[int] = None
        self.handled = 0
        self.skipped = 0
        self.pages = 0
        self.errored = False

        self._lock: Optional[asyncio.Lock] = None
        self._buffer: Deque[QueuedSite] = deque()
        self._stopped = False
        self._previous_handler = None

    @property
    def max_label(self) -> str:
        return str(self.options.max_sites) if self.options.max_sites is not None else "all"

    async def run(self) -> RunSummary:
        """
        Execute the crawl.

        Returns:
            RunSummary with visited/skipped/page totals

        Raises:
            NoSitesError: No unhandled site exists
            SQLAlchemyError: The store failed (run marked errored)
        """
        self._lock = asyncio.Lock()
        self.run_id = await asyncio.to_thread(self.store.start_run, self.options.snapshot(self.config))
        logger.info(f"Run {self.run_id} started")

        loop = asyncio.get_running_loop()
        self._previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._on_loop_exception)

        try:
            if self.options.restart:
                await asyncio.to_thread(self.store.reset_all)

            unhandled = await asyncio.to_thread(self.store.count_unhandled)
            if unhandled == 0:
                logger.error("No unvisited sites found in database")
                raise NoSitesError("No unvisited sites found in database")
            if self.options.max_sites is not None and unhandled < self.options.max_sites:
                logger.warning(
                    f"Only {unhandled} unvisited sites, but max is set to {self.options.max_sites}"
                )

            await self.browser.start()

            results = await asyncio.gather(
                *(self._worker(worker_id) for worker_id in range(self.options.parallel)),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result

        except BaseException:
            self._mark_run_error()
            raise

        finally:
            loop.set_exception_handler(self._previous_handler)
            await self.browser.close()
            await self.resolver.aclose()
            await asyncio.to_thread(self.store.finish_run, self.run_id)

        logger.info(f"Done! Visited: {self.handled} Skipped: {self.skipped}")
        return RunSummary(
            run_id=self.run_id,
            visited=self.handled,
            skipped=self.skipped,
            pages=self.pages,
            error=self.errored,
        )

    async def _worker(self, worker_id: int):
        """Claim and crawl sites until there is nothing left to do."""
        logger.debug(f"Worker {worker_id} started")

        try:
            while not self._stopped:
                site = await self._claim()
                if site is None:
                    break

                try:
                    await self.page_crawler.crawl(site, on_page=self._on_page)
                except SQLAlchemyError:
                    raise
                except ResolutionError as e:
                    details = f" {e.details}" if e.details else ""
                    logger.warning(f"[SKIP] {site.url}: {e}{details}")
                    await self._skip(site)
                except Exception as e:
                    logger.error(f"[SKIP] {site.url}: {type(e).__name__}: {e}")
                    await self._skip(site)

        except SQLAlchemyError as e:
            # Let the other workers finish what they hold, then fail the run
            logger.error(f"Worker {worker_id} stopping on store error: {e}")
            self._stopped = True
            raise

        logger.debug(f"Worker {worker_id} finished")

    async def _claim(self) -> Optional[QueuedSite]:
        async with self._lock:
            if self._stopped:
                return None
            if self.options.max_sites is not None and self.handled >= self.options.max_sites:
                return None

            if not self._buffer:
                self._buffer.extend(
                    await asyncio.to_thread(self.store.claim_batch, self.order, self.batch_size)
                )

            if not self._buffer:
                return None

            site = self._buffer.popleft()
            self.handled += 1
            position = self.handled
            await asyncio.to_thread(self._record_claim, site)

        logger.info(f"[+] {position}/{self.max_label} {site.url}")
        return site

    def _record_claim(self, site: QueuedSite):
        self.store.mark_handled(site.id)
        self.store.increment_run_counter(self.run_id, RunCounter.SITE)

    async def _on_page(self):
        self.pages += 1
        await asyncio.to_thread(self.store.increment_run_counter, self.run_id, RunCounter.PAGE)

    def _record_skip(self, site: QueuedSite):
        self.store.mark_error(site.id)
        self.store.increment_run_counter(self.run_id, RunCounter.SKIPPED)

    async def _skip(self, site: QueuedSite):
        await asyncio.to_thread(self._record_skip, site)
        self.skipped += 1

    def _mark_run_error(self):
        if self.errored:
            return
        self.errored = True
        try:
            self.store.mark_run_error(self.run_id)
        except SQLAlchemyError as e:
            logger.error(f"Could not mark run {self.run_id} as errored: {e}")

    def _on_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict):
        """Unhandled task errors during the run fail the run, then get reported as usual."""
        logger.error(f"Unhandled error during run {self.run_id}: {context.get('message')}")
        self._mark_run_error()
        if self._previous_handler is not None:
            self._previous_handler(loop, context)
        else:
            loop.default_exception_handler(context)

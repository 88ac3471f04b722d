"""
Crawler package for trackx-crawler.

This package handles:
- URL resolution (HEAD/GET redirect following)
- Security reporting header rewrites
- Browser session, page crawling and link following
- Crawl scheduling over the persistent site queue
"""

from crawler.exceptions import (
    HTTPStatusError,
    NoSitesError,
    PageCrashedError,
    ResolutionError,
    TooManyRedirectsError,
)
from crawler.url_resolver import UrlResolver
from crawler.header_rewriter import rewrite_response_headers
from crawler.browser import BrowserSession
from crawler.link_follower import LinkFollower
from crawler.page_crawler import CrawlResult, CrawlState, PageCrawler
from crawler.scheduler import CrawlScheduler, RunSummary

__all__ = [
    "HTTPStatusError",
    "NoSitesError",
    "PageCrashedError",
    "ResolutionError",
    "TooManyRedirectsError",
    "UrlResolver",
    "rewrite_response_headers",
    "BrowserSession",
    "LinkFollower",
    "CrawlResult",
    "CrawlState",
    "PageCrawler",
    "CrawlScheduler",
    "RunSummary",
]

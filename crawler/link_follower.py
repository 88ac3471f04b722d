"""
Random same-origin link following.

After the landing page has loaded the crawler clicks through a few links
like a visitor would. Candidate links are collected from the page in one
evaluate call and filtered here, so the rules are plain Python.
"""

import random
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlsplit

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from runner.logging_setup import get_logger

logger = get_logger("link_follower")

VISIBLE_LINKS_SELECTOR = "a:visible"

# href as written, the resolved target attribute and the ARIA role
LINK_ATTRIBUTES_JS = """
(links) => links.map((link) => ({
    href: link.getAttribute('href'),
    target: link.target,
    role: link.getAttribute('role'),
}))
"""

FOLLOWABLE_SCHEMES = ("http", "https")

DEFAULT_PORTS = {"http": 80, "https": 443}


def origin(url: str) -> Tuple[str, str, Optional[int]]:
    """
    Scheme, host and effective port of a URL.

    Userinfo is ignored and an explicit default port equals no port, so
    http://site.test:80/ and http://site.test/ share an origin.

    Raises:
        ValueError: If the port is not a valid number
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    return scheme, parts.hostname or "", parts.port or DEFAULT_PORTS.get(scheme)


def page_key(url: str) -> str:
    """origin + path, used to avoid revisiting a page."""
    scheme, host, port = origin(url)
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    return f"{scheme}://{host}{urlsplit(url).path or '/'}"


def is_followable_link(
    href: Optional[str],
    target: Optional[str],
    role: Optional[str],
    page_url: str,
    seen: Sequence[str],
) -> bool:
    """
    Check whether a link is worth clicking.

    A link qualifies when its href resolves to the current page's origin
    over http(s), carries no fragment, does not open a new tab, is not
    styled as a button, and points at a page not visited in this traversal.
    """
    if not href or href == "#":
        return False

    link = urlsplit(urljoin(page_url, href))

    if link.scheme.lower() not in FOLLOWABLE_SCHEMES:
        return False
    try:
        if origin(link.geturl()) != origin(page_url):
            return False
    except ValueError:
        return False
    if link.fragment:
        return False
    if target == "_blank" or role == "button":
        return False

    return page_key(link.geturl()) not in seen


class LinkFollower:
    """Clicks one random eligible link per call."""

    def __init__(self, choose: Callable[[List[int]], int] = random.choice):
        """
        Args:
            choose: Picks one index from the eligible ones (random by default)
        """
        self.choose = choose

    async def follow(self, page: Page, seen: List[str]) -> bool:
        """
        Follow one link on the page.

        Args:
            page: Page currently showing the last visited URL
            seen: origin+path keys visited in this traversal (updated in place)

        Returns:
            True when a navigation happened, False when no link qualified

        Raises:
            playwright Error: Click or navigation failure other than a timeout
        """
        current_url = page.url
        seen.append(page_key(current_url))

        links = page.locator(VISIBLE_LINKS_SELECTOR)
        if await links.count() == 0:
            return False

        attributes: List[Dict[str, Optional[str]]] = await links.evaluate_all(LINK_ATTRIBUTES_JS)
        candidates = [
            index for index, link in enumerate(attributes)
            if is_followable_link(link.get("href"), link.get("target"), link.get("role"), current_url, seen)
        ]

        if not candidates:
            logger.debug(f"[LINKS] No followable links on {current_url}")
            return False

        index = self.choose(candidates)
        logger.debug(f"[LINKS] Clicking link {index} of {len(attributes)} on {current_url}")

        try:
            async with page.expect_navigation(wait_until="networkidle"):
                await links.nth(index).click(force=True)
        except PlaywrightTimeoutError as e:
            logger.warning(f"[LINKS] Timeout following link on {current_url}: {e}")

        return True

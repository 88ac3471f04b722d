#!/usr/bin/env python3
"""
Unit tests for random same-origin link following.
"""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from crawler.link_follower import LinkFollower, is_followable_link, page_key

PAGE_URL = "https://site.test/blog/"


@pytest.mark.parametrize("href", [
    "/about",
    "post-1",
    "https://site.test/contact?x=1",
    "//site.test/team",
    "https://site.test:443/team",
    "https://user:pw@SITE.test/team",
])
def test_followable_links(href):
    assert is_followable_link(href, "", None, PAGE_URL, [])


@pytest.mark.parametrize("href, target, role", [
    (None, "", None),
    ("", "", None),
    ("#", "", None),
    ("#comments", "", None),
    ("/about#team", "", None),
    ("https://other.test/", "", None),
    ("http://site.test/about", "", None),
    ("https://site.test:8443/about", "", None),
    ("https://site.test:bad/about", "", None),
    ("mailto:hi@site.test", "", None),
    ("javascript:void(0)", "", None),
    ("/about", "_blank", None),
    ("/about", "", "button"),
])
def test_unfollowable_links(href, target, role):
    assert not is_followable_link(href, target, role, PAGE_URL, [])


def test_seen_pages_are_skipped():
    seen = [page_key("https://site.test/about")]

    assert not is_followable_link("/about", "", None, PAGE_URL, seen)
    assert not is_followable_link("/about?page=2", "", None, PAGE_URL, seen)
    assert is_followable_link("/about/", "", None, PAGE_URL, seen)


def test_default_port_matches_origin_without_port():
    assert is_followable_link("http://site.test:80/about", None, None, "http://site.test/", [])
    assert not is_followable_link("http://site.test:8080/about", None, None, "http://site.test/", [])


def test_page_key_normalizes_origin():
    assert page_key("HTTPS://user@Site.test:443/a?b=1") == "https://site.test/a"
    assert page_key("http://site.test:8080") == "http://site.test:8080/"


class FakePage:
    """Just enough of a Playwright page for link following."""

    def __init__(self, url, links, click_error=None, navigate_to=None):
        self.url = url
        self.navigate_to = navigate_to
        self.clicked = []

        self.links = MagicMock()
        self.links.count = AsyncMock(return_value=len(links))
        self.links.evaluate_all = AsyncMock(return_value=links)

        def nth(index):
            link = MagicMock()

            async def click(force=False):
                self.clicked.append((index, force))
                if click_error is not None:
                    raise click_error
                if self.navigate_to:
                    self.url = self.navigate_to

            link.click = click
            return link

        self.links.nth = nth

    def locator(self, selector):
        assert selector == "a:visible"
        return self.links

    @asynccontextmanager
    async def expect_navigation(self, wait_until=None):
        assert wait_until == "networkidle"
        yield


def link(href, target="", role=None):
    return {"href": href, "target": target, "role": role}


def test_follow_clicks_chosen_candidate():
    page = FakePage(
        PAGE_URL,
        [link("https://other.test/"), link("/a"), link("#top"), link("/b")],
        navigate_to="https://site.test/b",
    )
    seen = []
    follower = LinkFollower(choose=lambda candidates: candidates[-1])

    assert asyncio.run(follower.follow(page, seen)) is True

    assert page.clicked == [(3, True)]
    assert seen == ["https://site.test/blog/"]
    assert page.url == "https://site.test/b"


def test_follow_without_links():
    page = FakePage(PAGE_URL, [])

    assert asyncio.run(LinkFollower().follow(page, [])) is False
    page.links.evaluate_all.assert_not_awaited()


def test_follow_without_candidates():
    page = FakePage(PAGE_URL, [link("https://other.test/"), link("/a", target="_blank")])

    assert asyncio.run(LinkFollower().follow(page, [])) is False
    assert page.clicked == []


def test_follow_does_not_return_to_current_page():
    page = FakePage(PAGE_URL, [link("/blog/"), link("/blog/?sort=new")])

    assert asyncio.run(LinkFollower().follow(page, [])) is False


def test_follow_tolerates_navigation_timeout():
    page = FakePage(PAGE_URL, [link("/a")], click_error=PlaywrightTimeoutError("Timeout 30000ms exceeded"))

    assert asyncio.run(LinkFollower().follow(page, [])) is True


def test_follow_raises_other_click_errors():
    page = FakePage(PAGE_URL, [link("/a")], click_error=PlaywrightError("Element is detached"))

    with pytest.raises(PlaywrightError):
        asyncio.run(LinkFollower().follow(page, []))

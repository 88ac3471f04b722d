#!/usr/bin/env python3
"""
Unit tests for browser launch and context options.
"""

from crawler.browser import FIREFOX_USER_PREFS, GEOLOCATION, BrowserSession
from runner.config import RunOptions


def test_firefox_launch_options():
    kwargs = BrowserSession(RunOptions()).launch_kwargs()

    assert kwargs == {"headless": True, "firefox_user_prefs": FIREFOX_USER_PREFS}
    assert kwargs["firefox_user_prefs"]["permissions.default.image"] == 2
    assert kwargs["firefox_user_prefs"]["dom.reporting.header.enabled"] is True


def test_chromium_debug_with_proxy():
    options = RunOptions(browser="chromium", debug=True, proxy="http://localhost:8080")

    kwargs = BrowserSession(options).launch_kwargs()

    assert kwargs == {"headless": False, "proxy": {"server": "http://localhost:8080"}}


def test_context_options():
    kwargs = BrowserSession(RunOptions(bypass_csp=True)).context_kwargs()

    assert kwargs == {
        "reduced_motion": "reduce",
        "geolocation": GEOLOCATION,
        "bypass_csp": True,
        "service_workers": "block",
    }

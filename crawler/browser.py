"""
Shared Playwright browser for a crawl run.

One browser process is launched per run; every site gets a fresh browser
context so cookies, storage and service workers never leak between sites.
"""

from typing import Any, Dict, Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Playwright

from runner.config import RunOptions
from runner.logging_setup import get_logger

logger = get_logger("browser")

# Tokyo, Japan
GEOLOCATION = {"latitude": 35.689487, "longitude": 139.691706}

FIREFOX_USER_PREFS = {
    # block audio and video autoplay
    "media.autoplay.block-event.enabled": True,
    "media.autoplay.block-webaudio": True,
    "media.autoplay.blocking_policy": 2,
    "media.autoplay.default": 5,
    # disable loading images
    "permissions.default.image": 2,
    # enable Report-To header support
    "dom.reporting.header.enabled": True,
}


class BrowserSession:
    """
    Owns the Playwright instance and the launched browser.

    Usage:
        session = BrowserSession(options)
        await session.start()
        context = await session.new_context()
        ...
        await session.close()
    """

    def __init__(self, options: RunOptions):
        self.options = options
        self.playwright_instance: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    def launch_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"headless": not self.options.debug}
        if self.options.browser == "firefox":
            kwargs["firefox_user_prefs"] = dict(FIREFOX_USER_PREFS)
        if self.options.proxy:
            kwargs["proxy"] = {"server": self.options.proxy}
        return kwargs

    def context_kwargs(self) -> Dict[str, Any]:
        return {
            "reduced_motion": "reduce",
            "geolocation": dict(GEOLOCATION),
            "bypass_csp": self.options.bypass_csp,
            # Routes can't intercept service worker requests
            "service_workers": "block",
        }

    async def start(self) -> Browser:
        """Start Playwright and launch the configured browser."""
        if self.browser is not None:
            return self.browser

        self.playwright_instance = await async_playwright().start()
        browser_type = getattr(self.playwright_instance, self.options.browser)
        self.browser = await browser_type.launch(**self.launch_kwargs())

        logger.info(
            f"Launched {self.options.browser} "
            f"({'headed' if self.options.debug else 'headless'})"
        )
        return self.browser

    async def new_context(self) -> BrowserContext:
        """Create an isolated context with the run's navigation timeout."""
        if self.browser is None:
            await self.start()

        context = await self.browser.new_context(**self.context_kwargs())
        context.set_default_navigation_timeout(self.options.timeout_ms)
        return context

    async def close(self):
        """Close the browser and stop Playwright."""
        if self.browser is not None:
            try:
                await self.browser.close()
                logger.debug("Browser closed")
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            finally:
                self.browser = None

        if self.playwright_instance is not None:
            try:
                await self.playwright_instance.stop()
            except Exception as e:
                logger.warning(f"Error stopping Playwright: {e}")
            finally:
                self.playwright_instance = None

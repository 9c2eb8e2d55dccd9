"""Shared headless browser for the scraping adapters (playwright)."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from songscout.config import ScraperSettings

logger = logging.getLogger(__name__)

_SAME_SITE = {"strict": "Strict", "lax": "Lax", "none": "None", "no_restriction": "None"}


def to_playwright_cookie(raw: dict[str, Any]) -> dict[str, Any]:
    """Convert an exported browser cookie into playwright's add_cookies() shape.

    Browser extensions export `expirationDate`/`sameSite: no_restriction`; playwright
    wants `expires`/`sameSite: None`.
    """
    cookie: dict[str, Any] = {
        "name": raw["name"],
        "value": raw["value"],
        "domain": raw.get("domain", ".spotify.com"),
        "path": raw.get("path", "/"),
        "httpOnly": bool(raw.get("httpOnly", False)),
        "secure": bool(raw.get("secure", True)),
    }
    expires = raw.get("expires", raw.get("expirationDate"))
    if expires is not None and float(expires) > 0:
        cookie["expires"] = float(expires)
    same_site = _SAME_SITE.get(str(raw.get("sameSite", "")).lower())
    if same_site:
        cookie["sameSite"] = same_site
    return cookie


# Hey future me - ONE chromium per process, started lazily on first use. Each scrape gets
# its own short-lived context+page (cookies isolated per call), but navigation is serialized
# through self._navigation_lock: the logged-in session is a single shared resource and
# hammering it in parallel is the fastest way to get the account flagged.
class BrowserSession:
    """Lazily started chromium with serialized page access."""

    def __init__(self, settings: ScraperSettings) -> None:
        self.settings = settings
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._start_lock = asyncio.Lock()
        self._navigation_lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        async with self._start_lock:
            if self._browser is None or not self._browser.is_connected():
                logger.info(f"Launching chromium (headless={self.settings.headless})")
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.settings.headless,
                    args=["--no-sandbox", "--disable-dev-shm-usage", "--disable-gpu"],
                )
            return self._browser

    @asynccontextmanager
    async def page(self, cookies: list[dict[str, Any]] | None = None) -> AsyncIterator[Page]:
        """Open a page (optionally with session cookies) while holding the navigation lock."""
        async with self._navigation_lock:
            browser = await self._ensure_browser()
            context: BrowserContext = await browser.new_context(
                user_agent=self.settings.user_agent,
                viewport={"width": 1280, "height": 900},
            )
            try:
                if cookies:
                    await context.add_cookies([to_playwright_cookie(c) for c in cookies])
                page = await context.new_page()
                page.set_default_navigation_timeout(
                    self.settings.navigation_timeout_seconds * 1000
                )
                page.set_default_timeout(self.settings.selector_timeout_seconds * 1000)
                yield page
            finally:
                await context.close()

    async def close(self) -> None:
        """Shut down chromium and the playwright driver."""
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

"""Credits scraper for streaming-site track pages (playwright)."""

import asyncio
import logging
from datetime import datetime
from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from songscout.config import ScraperSettings
from songscout.domain.entities import CookieSource
from songscout.domain.exceptions import (
    AuthExpiredError,
    ConfigurationMissingError,
    SourceUnavailableError,
)
from songscout.domain.ports import (
    CreditsResult,
    IAuthMonitor,
    ICreditsSource,
    ISessionCookieProvider,
)
from songscout.infrastructure.integrations import scraping_patterns as patterns
from songscout.infrastructure.integrations.browser import BrowserSession

logger = logging.getLogger(__name__)

SOURCE = "spotify_credits"
_CONSENT_TIMEOUT_MS = 2000
_SETTLE_SECONDS = 1.0


class SpotifyCreditsScraper(ICreditsSource):
    """Scrapes writer/producer/publisher credits and the play count of a track page.

    Hey future me - every navigation here depends on the logged-in session, so EVERY
    outcome goes to the auth monitor: a 401/403 or a login wall is record_failure() (which
    prints the remediation steps), a page that rendered is record_success(). Anything else
    that goes wrong (timeouts, a redesign) is SourceUnavailableError and leaves the auth
    record alone.
    """

    def __init__(
        self,
        settings: ScraperSettings,
        browser: BrowserSession,
        cookie_provider: ISessionCookieProvider,
        auth_monitor: IAuthMonitor,
    ) -> None:
        self.settings = settings
        self.browser = browser
        self.cookie_provider = cookie_provider
        self.auth_monitor = auth_monitor

    async def fetch_credits(self, track_url: str) -> CreditsResult:
        """Scrape credits for a track page.

        Raises:
            ConfigurationMissingError: No session cookies are configured
            AuthExpiredError: The session was rejected
            SourceUnavailableError: Timeout or browser failure
        """
        session = self.cookie_provider.load_session_cookies()
        if session.source is CookieSource.NONE or not session.cookies:
            raise ConfigurationMissingError("No streaming session cookies configured", SOURCE)

        try:
            return await asyncio.wait_for(
                self._scrape(track_url, session.cookies, session.source, session.expiry),
                timeout=self.settings.track_timeout_seconds,
            )
        except TimeoutError as e:
            raise SourceUnavailableError(
                f"Credits scrape timed out after {self.settings.track_timeout_seconds}s: "
                f"{track_url}",
                SOURCE,
            ) from e
        except PlaywrightTimeoutError as e:
            raise SourceUnavailableError(f"Page timed out: {track_url}", SOURCE) from e
        except PlaywrightError as e:
            raise SourceUnavailableError(f"Browser error on {track_url}: {e}", SOURCE) from e

    async def _scrape(
        self,
        track_url: str,
        cookies: list[dict[str, Any]],
        source: CookieSource,
        expiry: datetime | None,
    ) -> CreditsResult:
        async with self.browser.page(cookies) as page:
            response = await page.goto(track_url, wait_until="domcontentloaded")
            status = response.status if response is not None else None

            if status in (401, 403):
                self._auth_failed(status, f"HTTP {status} loading {track_url}")
            if await self._login_wall_visible(page):
                self._auth_failed(None, "Page rendered logged-out (login wall)")

            self.auth_monitor.record_success(source, expiry)

            await self._dismiss_cookie_consent(page)
            await asyncio.sleep(_SETTLE_SECONDS)

            stream_count = await self._extract_stream_count(page)
            credits_text = await self._open_credits(page)

        parsed = patterns.parse_credits_text(credits_text) if credits_text else None
        result = CreditsResult(
            songwriters=parsed.songwriters if parsed else [],
            producers=parsed.producers if parsed else [],
            publishers=parsed.publishers if parsed else [],
            label=", ".join(parsed.labels) if parsed and parsed.labels else None,
            stream_count=stream_count,
        )
        logger.debug(
            f"Credits for {track_url}: {len(result.songwriters)} writers, "
            f"{len(result.publishers)} publishers, streams={stream_count}"
        )
        return result

    def _auth_failed(self, status: int | None, message: str) -> None:
        diagnostic = self.auth_monitor.record_failure(status, message)
        raise AuthExpiredError(diagnostic, source=SOURCE, http_status=status)

    async def _login_wall_visible(self, page: Page) -> bool:
        for selector in patterns.LOGIN_WALL_SELECTORS:
            if await page.locator(selector).count() > 0:
                return True
        return False

    async def _dismiss_cookie_consent(self, page: Page) -> None:
        for selector in patterns.COOKIE_CONSENT_SELECTORS:
            button = page.locator(selector).first
            try:
                await button.click(timeout=_CONSENT_TIMEOUT_MS)
                return
            except PlaywrightTimeoutError:
                continue

    async def _extract_stream_count(self, page: Page) -> int | None:
        playcount = page.locator(patterns.PLAYCOUNT_SELECTOR).first
        if await playcount.count() > 0:
            value = patterns.parse_stream_count(await playcount.inner_text())
            if value is not None:
                return value

        aria_label = None
        aria = page.locator(patterns.STREAMS_ARIA_SELECTOR).first
        if await aria.count() > 0:
            aria_label = await aria.get_attribute("aria-label")
        body_text = await page.locator("body").inner_text()
        return patterns.parse_stream_count(patterns.find_stream_text(aria_label, body_text))

    # Yo, credits are either already on the page or hidden behind "⋯ > View credits". We
    # try the page first; if no "Credits" heading is visible we open the dialog and read its
    # text. A missing dialog is NOT an error - it means the track simply has no credits.
    async def _open_credits(self, page: Page) -> str | None:
        body_text = await page.locator("body").inner_text()
        if "credits" in body_text.lower() and patterns.parse_credits_text(body_text).songwriters:
            return body_text

        more = page.locator(patterns.MORE_OPTIONS_SELECTOR).first
        if await more.count() == 0:
            return None
        await more.click()
        item = page.locator(patterns.CREDITS_MENU_ITEM_SELECTOR).first
        if await item.count() == 0:
            return None
        await item.click()

        dialog = page.locator(patterns.CREDITS_DIALOG_SELECTOR).first
        try:
            await dialog.wait_for(timeout=self.settings.selector_timeout_seconds * 1000)
        except PlaywrightTimeoutError:
            logger.debug("Credits dialog did not appear, scanning page text instead")
            return await page.locator("body").inner_text()
        return await dialog.inner_text()

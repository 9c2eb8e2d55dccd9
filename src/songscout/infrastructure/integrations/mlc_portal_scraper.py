"""Registry public-search portal scraper (playwright fallback for the API)."""

import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from songscout.config import RegistrySettings
from songscout.domain.exceptions import SourceUnavailableError
from songscout.domain.ports import RegistryPublisher, RegistryWork, RegistryWriter
from songscout.infrastructure.integrations import scraping_patterns as patterns
from songscout.infrastructure.integrations.browser import BrowserSession

logger = logging.getLogger(__name__)

SOURCE = "mlc_portal"
_RESULTS_IDLE_TIMEOUT_MS = 10000


class MLCPortalScraper:
    """Searches the public registry portal by ISRC and reads publishers off the page.

    Yo, this is the heuristic tier: no login, no JSON, just "type the ISRC, hit enter, read
    whatever publisher/writer text shows up". It never touches the streaming session, so it
    has nothing to do with the auth monitor.
    """

    def __init__(self, settings: RegistrySettings, browser: BrowserSession) -> None:
        self.settings = settings
        self.browser = browser

    async def lookup_by_isrc(self, isrc: str) -> RegistryWork | None:
        """Search the portal for a recording.

        Returns:
            The work found on the page, or None if the page showed no publishers/writers

        Raises:
            SourceUnavailableError: Timeout, missing search box or browser failure
        """
        try:
            async with self.browser.page() as page:
                result = await self._search(page, isrc)
        except PlaywrightTimeoutError as e:
            raise SourceUnavailableError(f"Registry portal timed out for {isrc}", SOURCE) from e
        except PlaywrightError as e:
            raise SourceUnavailableError(f"Registry portal browser error: {e}", SOURCE) from e

        if result.is_empty():
            logger.debug(f"Registry portal had nothing for {isrc}")
            return None
        return RegistryWork(
            song_code=result.song_code,
            iswc=result.iswc,
            publishers=[RegistryPublisher(name=name) for name in result.publishers],
            writers=[RegistryWriter(name=name) for name in result.writers],
            source="portal",
        )

    async def _search(self, page: Page, isrc: str) -> patterns.PortalResult:
        await page.goto(self.settings.portal_url, wait_until="domcontentloaded")

        search_input = page.locator(patterns.PORTAL_SEARCH_INPUT_SELECTOR).first
        await search_input.wait_for()
        await search_input.fill(isrc)

        submit = page.locator(patterns.PORTAL_SUBMIT_SELECTOR).first
        if await submit.count() > 0:
            await submit.click()
        else:
            await search_input.press("Enter")

        try:
            await page.wait_for_load_state("networkidle", timeout=_RESULTS_IDLE_TIMEOUT_MS)
        except PlaywrightTimeoutError:
            # Slow result pages still render partial data worth reading
            logger.debug(f"Registry portal never went idle for {isrc}, reading what's there")

        body_text = await page.locator("body").inner_text()
        publisher_cells = await page.locator(patterns.PORTAL_PUBLISHER_SELECTOR).all_inner_texts()
        writer_cells = await page.locator(patterns.PORTAL_WRITER_SELECTOR).all_inner_texts()
        table_rows: list[list[str]] = []
        for row in await page.locator("tr").all():
            table_rows.append(await row.locator("td, th").all_inner_texts())

        return patterns.parse_portal_page(body_text, publisher_cells, writer_cells, table_rows)

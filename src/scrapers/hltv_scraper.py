from typing import List, Optional

import httpx
from loguru import logger
from playwright.async_api import (
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from src.config.settings import settings
from src.models.enums import DataSource
from src.models.records import RawHtmlRow
from src.models.team import RosterPlayer, UpcomingMatch
from src.normalization.html_extractor import extract_roster, extract_rows, extract_upcoming
from .base_scraper import (
    DEFAULT_USER_AGENT,
    BaseScraper,
    NavigationError,
    ScraperError,
    SourceHTTPError,
)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
]


class HltvScraper(BaseScraper):
    """Scraper for HLTV team pages.

    HLTV serves its stats pages behind a bot check, so pages are rendered in
    headless Chromium by default. With use_browser=False the plain (cookie
    keeping) httpx client is used instead.
    """

    source: DataSource = DataSource.HTML

    def __init__(
        self,
        *args,
        use_browser: bool = True,
        headless: Optional[bool] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.use_browser = use_browser
        self.headless = settings.headless if headless is None else headless
        self.navigation_timeout_ms = int(settings.request_timeout_seconds * 1000)
        self.base_url = settings.hltv_base_url.rstrip("/")
        self.team_path = f"{settings.hltv_team_id}/{settings.hltv_team_slug}"

    @property
    def matches_url(self) -> str:
        return f"{self.base_url}/stats/teams/matches/{self.team_path}?csVersion=CS2"

    @property
    def team_url(self) -> str:
        return f"{self.base_url}/team/{self.team_path}"

    async def fetch_rendered_page(self, url: str) -> str:
        """Returns the page HTML; an empty page is returned as-is, not raised.

        Navigation failures and timeouts raise NavigationError, non-2xx pages
        raise SourceHTTPError.
        """
        fetch = self._render if self.use_browser else self._fetch_plain
        try:
            html = await self.retry_policy.call(fetch, url)
        except httpx.RequestError as e:
            raise ScraperError(f"Failed to load {url}: {e!r}") from e
        logger.info(f"HTML fetched from {url} ({len(html)} characters)")
        return html

    async def _fetch_plain(self, url: str) -> str:
        response = await self._send("GET", url)
        return response.text

    async def _render(self, url: str) -> str:
        logger.debug(f"Rendering {url} with headless Chromium")
        async with async_playwright() as playwright:
            try:
                browser = await playwright.chromium.launch(
                    headless=self.headless, args=BROWSER_ARGS
                )
            except PlaywrightError as e:
                raise ScraperError(f"Failed to launch browser: {e}") from e

            try:
                page = await browser.new_page(user_agent=DEFAULT_USER_AGENT)
                response = await page.goto(
                    url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms
                )
                if response is None:
                    raise NavigationError(f"No response when navigating to {url}")
                if not response.ok:
                    raise SourceHTTPError(response.status, response.status_text, url)
                return await page.content()
            except PlaywrightTimeoutError as e:
                raise NavigationError(f"Timed out loading {url}") from e
            except PlaywrightError as e:
                raise NavigationError(f"Navigation to {url} failed: {e}") from e
            finally:
                await browser.close()

    async def fetch_raw_matches(self) -> List[RawHtmlRow]:
        html = await self.fetch_rendered_page(self.matches_url)
        rows = list(extract_rows(html))
        logger.info(f"Extracted {len(rows)} match rows from stats page")
        return rows

    async def fetch_roster(self) -> List[RosterPlayer]:
        return extract_roster(await self.fetch_rendered_page(self.team_url))

    async def fetch_upcoming(self) -> List[UpcomingMatch]:
        return extract_upcoming(await self.fetch_rendered_page(self.team_url))

import asyncio
from contextlib import asynccontextmanager
from typing import List, Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright, Route

from ..models import (
    log, USER_AGENT, ScrapeContext, ScrapingOptions, ImageOptions, ParsingType, ScrapeReport
)
from .writer import EpubWriter

BLOCKED_RESOURCES = {"stylesheet", "font"}
BLOCKED_MEDIA = {"image", "media"}

class BrowserConnection:
    """Playwright browser plus the main page drivers navigate with."""

    def __init__(self, headless: bool = True):
        self.headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    async def start(self) -> "BrowserConnection":
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        self._context = await self._browser.new_context(user_agent=USER_AGENT)
        self.page = await self.new_page()
        log.info(f"Browser started (headless={self.headless})")
        return self

    async def stop(self):
        if self._context:
            await self._context.close()
            self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        self.page = None
        log.info("Browser closed")

    async def new_page(self, allow_images: bool = True) -> Page:
        if not self._context:
            raise RuntimeError("Browser not started")
        page = await self._context.new_page()

        async def _route(route: Route):
            kind = route.request.resource_type
            if kind in BLOCKED_RESOURCES or (not allow_images and kind in BLOCKED_MEDIA):
                await route.abort()
            else:
                await route.continue_()

        await page.route("**/*", _route)
        return page

class TabPool:
    """Fixed set of pages; each task owns one page until it hands it back."""

    def __init__(self, connection, size: int, allow_images: bool = True):
        self.connection = connection
        self.size = size
        self.allow_images = allow_images
        self._pages: List[Page] = []
        self._queue: asyncio.Queue = asyncio.Queue()

    async def __aenter__(self) -> "TabPool":
        for _ in range(self.size):
            page = await self.connection.new_page(self.allow_images)
            self._pages.append(page)
            self._queue.put_nowait(page)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        for page in self._pages:
            try:
                await page.close()
            except Exception as e:
                log.debug(f"Failed to close tab: {e}")
        self._pages = []

    @asynccontextmanager
    async def acquire(self):
        page = await self._queue.get()
        try:
            yield page
        finally:
            self._queue.put_nowait(page)

@asynccontextmanager
async def get_context(
    staging_path: str,
    scraping: Optional[ScrapingOptions] = None,
    images: Optional[ImageOptions] = None,
    parsing: ParsingType = ParsingType.WITH_IMAGE,
    headless: bool = True,
    show_progress: bool = True,
    create_staging: bool = True,
):
    """Run-scoped browser and staging directory, torn down whatever happens."""
    if create_staging:
        EpubWriter.create_staging(staging_path)
    connection = BrowserConnection(headless=headless)
    try:
        await connection.start()
        yield ScrapeContext(
            connection=connection,
            staging_path=staging_path,
            scraping=scraping or ScrapingOptions(),
            images=images or ImageOptions(),
            parsing=parsing,
            report=ScrapeReport(),
            show_progress=show_progress,
        )
    finally:
        await connection.stop()
        EpubWriter.clear_staging(staging_path)

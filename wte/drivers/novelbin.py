from typing import List

from playwright.async_api import Error as PlaywrightError

from .base import BaseDriver
from ..models import log, ChapterSkeleton
from ..errors import ExtractionError
from ..core.extractor import scrape_page_html, read_meta, read_links

CHAPTER_LINKS = "div.tab-content div.panel-body div.row ul.list-chapter a"
CHAPTER_LINKS_JS = "els => els.map(a => ({title: a.getAttribute('title') || a.innerText, url: a.href}))"
CONTENT = "div#chr-content"

class NovelbinDriver(BaseDriver):
    name = "novelbin"
    domains = ("novelbin.me",)

    async def get_title(self) -> str:
        return await read_meta(self.page, "og:novel:novel_name", "title", self.url, self.options.timeout_ms)

    async def get_author(self) -> str:
        return await read_meta(self.page, "og:novel:author", "author", self.url, self.options.timeout_ms)

    async def get_cover_image_url(self) -> str:
        return await read_meta(self.page, "og:image", "cover image", self.url, self.options.timeout_ms)

    async def list_chapters(self) -> List[ChapterSkeleton]:
        # The chapter tab is filled in by script after load.
        try:
            await self.page.goto(self.url, wait_until="networkidle", timeout=self.options.timeout_ms)
        except PlaywrightError as e:
            raise ExtractionError("chapter list", self.url, str(e)) from e
        links = await read_links(self.page, CHAPTER_LINKS, CHAPTER_LINKS_JS, self.url, self.options.timeout_ms)
        chapters = self.to_skeletons(links)
        log.info(f"Novelbin listed {len(chapters)} chapters")
        return chapters

    async def fetch_chapter_markup(self, page, skeleton: ChapterSkeleton) -> str:
        return await scrape_page_html(page, skeleton.url, CONTENT, self.options.timeout_ms)

from typing import List

from playwright.async_api import Error as PlaywrightError

from .base import BaseDriver
from ..models import log, ChapterSkeleton
from ..errors import ExtractionError
from ..core.extractor import scrape_page_html, read_meta, read_selector, read_links, INNER_TEXT

AUTHOR = "main > div > div:nth-of-type(1) > div:nth-of-type(2) > div:nth-of-type(4) > a"
LOAD_MORE = "main > div > div:nth-of-type(2) > button"
LOAD_MORE_DONE = f'document.querySelector("{LOAD_MORE}").disabled == false'
CHAPTER_LINKS = "main > div > div:nth-of-type(2) > div:nth-of-type(2) > a"
CHAPTER_LINKS_JS = "els => els.map(a => ({title: (a.querySelector('div > div > h3') || a).innerText.trim(), url: a.href}))"
CONTENT = "main main > div > div:nth-of-type(1)"

class WoopreadDriver(BaseDriver):
    name = "woopread"
    domains = ("woopread.com", "noveltranslationhub.com")

    async def get_title(self) -> str:
        return await read_meta(self.page, "og:title", "title", self.url, self.options.timeout_ms)

    async def get_author(self) -> str:
        return await read_selector(self.page, AUTHOR, INNER_TEXT, "author", self.url, self.options.timeout_ms)

    async def get_cover_image_url(self) -> str:
        return await read_meta(self.page, "og:image", "cover image", self.url, self.options.timeout_ms)

    async def list_chapters(self) -> List[ChapterSkeleton]:
        timeout = self.options.timeout_ms
        try:
            await self.page.wait_for_selector(LOAD_MORE, timeout=timeout)
            await self.page.click(LOAD_MORE, delay=500, timeout=timeout)
            await self.page.wait_for_function(LOAD_MORE_DONE, timeout=timeout)
        except PlaywrightError as e:
            raise ExtractionError("chapter list", self.url, str(e)) from e

        links = await read_links(self.page, CHAPTER_LINKS, CHAPTER_LINKS_JS, self.url, timeout)
        # Listed newest first.
        links.reverse()
        chapters = self.to_skeletons(links)
        log.info(f"Woopread listed {len(chapters)} chapters")
        return chapters

    async def fetch_chapter_markup(self, page, skeleton: ChapterSkeleton) -> str:
        return await scrape_page_html(page, skeleton.url, CONTENT, self.options.timeout_ms)

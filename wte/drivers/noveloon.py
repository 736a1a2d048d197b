from typing import List

from playwright.async_api import Error as PlaywrightError

from .base import BaseDriver
from ..models import log, ChapterSkeleton
from ..errors import ExtractionError
from ..core.extractor import scrape_page_html, read_meta, read_links

CHAPTER_LINKS = "main div div:nth-of-type(2) div ul li a"
CHAPTER_LINKS_JS = "els => els.map(a => ({title: (a.querySelector('h3') || a).innerText.trim(), url: a.href}))"
NEXT_TOC_PAGE = "main div div:nth-of-type(2) div div nav a:nth-child(3)"
CONTENT = "main div article"
MAX_TOC_PAGES = 500

class NoveloonDriver(BaseDriver):
    name = "noveloon"
    domains = ("noveloon.com",)

    async def get_title(self) -> str:
        return await read_meta(self.page, "og:novel:novel_name", "title", self.url, self.options.timeout_ms)

    async def get_author(self) -> str:
        return await read_meta(self.page, "og:novel:author", "author", self.url, self.options.timeout_ms)

    async def get_cover_image_url(self) -> str:
        return await read_meta(self.page, "og:image", "cover image", self.url, self.options.timeout_ms)

    async def list_chapters(self) -> List[ChapterSkeleton]:
        links = []
        visited = set()
        current = self.url
        while current and current not in visited and len(visited) < MAX_TOC_PAGES:
            visited.add(current)
            links.extend(await read_links(self.page, CHAPTER_LINKS, CHAPTER_LINKS_JS, current, self.options.timeout_ms))

            next_url = await self._next_toc_page()
            if not next_url or next_url in visited: break
            log.debug(f"Noveloon TOC page {len(visited) + 1}: {next_url}")
            try:
                await self.page.goto(next_url, wait_until="domcontentloaded", timeout=self.options.timeout_ms)
            except PlaywrightError as e:
                raise ExtractionError("chapter list", next_url, str(e)) from e
            current = next_url

        chapters = self.to_skeletons(links)
        log.info(f"Noveloon listed {len(chapters)} chapters over {len(visited)} TOC pages")
        return chapters

    async def _next_toc_page(self) -> str:
        try:
            href = await self.page.eval_on_selector(NEXT_TOC_PAGE, "a => a.href")
        except PlaywrightError:
            # No pager on the last page.
            return ""
        return href or ""

    async def fetch_chapter_markup(self, page, skeleton: ChapterSkeleton) -> str:
        return await scrape_page_html(page, skeleton.url, CONTENT, self.options.timeout_ms)

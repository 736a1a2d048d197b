from abc import ABC, abstractmethod
from typing import List, Dict, Optional, Tuple

from playwright.async_api import Error as PlaywrightError

from ..models import log, apex_domain, ChapterSkeleton, ScrapingOptions
from ..errors import ExtractionError

class BaseDriver(ABC):
    """Capability set every supported site provides."""
    name: str = "base"
    domains: Tuple[str, ...] = ()

    def __init__(self):
        self.page = None
        self.url: Optional[str] = None
        self.options: ScrapingOptions = ScrapingOptions()

    @classmethod
    def matches(cls, url: str) -> bool:
        return apex_domain(url) in cls.domains

    async def initialize(self, url: str, connection, options: ScrapingOptions):
        self.page = connection.page
        self.url = url
        self.options = options
        log.info(f"{self.name} driver opening {url}")
        try:
            await self.page.goto(url, wait_until="domcontentloaded", timeout=options.timeout_ms)
        except PlaywrightError as e:
            raise ExtractionError("start page", url, str(e)) from e

    @abstractmethod
    async def get_title(self) -> str: ...

    @abstractmethod
    async def get_author(self) -> str: ...

    @abstractmethod
    async def get_cover_image_url(self) -> str: ...

    @abstractmethod
    async def list_chapters(self) -> List[ChapterSkeleton]: ...

    @abstractmethod
    async def fetch_chapter_markup(self, page, skeleton: ChapterSkeleton) -> str: ...

    @staticmethod
    def to_skeletons(links: List[Dict[str, str]]) -> List[ChapterSkeleton]:
        """Number links 0..n-1 in the order given, skipping repeated URLs."""
        seen = set()
        skeletons = []
        for link in links:
            url = link["url"]
            if url in seen: continue
            seen.add(url)
            title = (link.get("title") or "").strip() or f"Chapter {len(skeletons) + 1}"
            skeletons.append(ChapterSkeleton(index=len(skeletons), title=title, url=url))
        return skeletons

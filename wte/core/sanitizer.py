import html
from typing import List, Dict, Tuple, Optional, Callable, Awaitable
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Comment

from ..models import log, IMAGE_DIR, ParsingType, ArchiveItem

DENY_TAGS = [
    "script", "video", "audio", "iframe", "input", "button",
    "form", "canvas", "embed", "figure", "search", "select",
]
INVISIBLE_TAGS = ["style", "noscript", "template", "head", "title"]
BLOCK_TAGS = [
    "p", "div", "li", "ul", "ol", "h1", "h2", "h3", "h4", "h5", "h6", "tr", "table",
    "blockquote", "pre", "section", "article", "header", "footer", "hr", "dd", "dt",
]
LOCAL_IMAGE_PREFIX = f"../{IMAGE_DIR}/"

ImageFetcher = Callable[[List[str]], Awaitable[Dict[str, ArchiveItem]]]

class ContentSanitizer:
    @staticmethod
    def _strip(soup: BeautifulSoup, names: List[str]):
        for tag in soup.find_all(names):
            if tag.decomposed: continue
            tag.decompose()

    @staticmethod
    def _to_paragraphs(soup: BeautifulSoup) -> str:
        ContentSanitizer._strip(soup, INVISIBLE_TAGS)
        for br in soup.find_all("br"):
            br.replace_with("\n")
        for block in soup.find_all(BLOCK_TAGS):
            block.insert_before("\n")
            block.insert_after("\n")

        lines = (" ".join(line.split()) for line in soup.get_text().splitlines())
        return "\n".join(f"<p>{html.escape(line, quote=False)}</p>" for line in lines if line)

    @staticmethod
    async def _localize_images(soup: BeautifulSoup, base_url: str, fetch_images: Optional[ImageFetcher]) -> List[ArchiveItem]:
        remote = []
        for img in soup.find_all("img"):
            src = (img.get("src") or "").strip()
            if not src:
                img.decompose()
            elif not src.startswith(LOCAL_IMAGE_PREFIX):
                remote.append((img, urljoin(base_url, src) if base_url else src))
        if not remote:
            return []

        wanted = list(dict.fromkeys(url for _, url in remote))
        captured = await fetch_images(wanted) if fetch_images else {}

        for img, url in remote:
            item = captured.get(url)
            if item is None:
                log.debug(f"Dropping image that was not captured: {url}")
                img.decompose()
                continue
            img["src"] = f"../{item.relative_path}"
            if img.has_attr("srcset"):
                del img["srcset"]

        return [captured[url] for url in wanted if url in captured]

    @staticmethod
    async def sanitize(markup: str, mode: ParsingType, base_url: str = "",
                       fetch_images: Optional[ImageFetcher] = None) -> Tuple[str, List[ArchiveItem]]:
        """
        Clean raw chapter markup for the selected mode.
        Returns the cleaned markup and the archive items for any images captured along the way.
        """
        soup = BeautifulSoup(markup or "", "html.parser")
        for comment in soup.find_all(string=lambda t: isinstance(t, Comment)):
            comment.extract()

        deny = DENY_TAGS if mode == ParsingType.WITH_IMAGE else DENY_TAGS + ["img"]
        ContentSanitizer._strip(soup, deny)

        if mode == ParsingType.TEXT_ONLY:
            return ContentSanitizer._to_paragraphs(soup), []

        items = []
        if mode == ParsingType.WITH_IMAGE:
            items = await ContentSanitizer._localize_images(soup, base_url, fetch_images)
        # Removed nodes leave adjacent whitespace runs that the parser would merge on the next pass.
        return str(BeautifulSoup(str(soup), "html.parser")), items

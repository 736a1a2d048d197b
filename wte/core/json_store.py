import os
import json
from typing import List

from bs4 import BeautifulSoup
from pydantic import ValidationError

from ..models import log, CONTENT_DIR, Chapter, Webnovel, sanitize_filename
from ..errors import InvalidInputError, ArchiveWriteError
from .snapshot import FlatChapter, FlatWebnovel

class JsonStore:
    """Flat, portable JSON form of a webnovel (chapter markup inline, images by URL)."""

    @staticmethod
    def _chapter_body(staging_path: str, relative_path: str, image_urls: dict) -> str:
        with open(os.path.join(staging_path, CONTENT_DIR, relative_path), encoding="utf-8") as f:
            soup = BeautifulSoup(f.read(), "html.parser")
        body = soup.find("div", class_="chapter-body")
        if body is None:
            return ""
        for img in body.find_all("img"):
            src = img.get("src", "")
            original = image_urls.get(src[3:] if src.startswith("../") else src)
            if original:
                img["src"] = original
        return body.decode_contents().strip()

    @staticmethod
    def to_flat(webnovel: Webnovel, staging_path: str) -> FlatWebnovel:
        webnovel.finalize()
        image_urls = {i.relative_path: i.source_url for i in webnovel.items if i.source_url}
        chapters = [
            FlatChapter(
                title=c.title,
                url=c.source_url,
                content=JsonStore._chapter_body(staging_path, c.relative_path, image_urls),
                has_been_scraped=True,
                has_been_parsed=True,
            )
            for c in webnovel.chapters
        ]
        meta = webnovel.metadata
        return FlatWebnovel(title=meta.title, author=meta.author, cover_image_url=meta.cover_url,
                            source_urls=list(meta.source_urls), chapters=chapters)

    @staticmethod
    def write(webnovel: Webnovel, staging_path: str, out_dir: str) -> str:
        doc = JsonStore.to_flat(webnovel, staging_path)
        out_path = os.path.join(out_dir, f"{sanitize_filename(doc.title)}.json")
        try:
            os.makedirs(out_dir, exist_ok=True)
            with open(out_path, "w", encoding="utf-8") as f:
                f.write(doc.model_dump_json(indent=2))
        except OSError as e:
            raise ArchiveWriteError(out_path, str(e)) from e
        log.info(f"Wrote JSON: {out_path} ({len(doc.chapters)} chapters)")
        return out_path

    @staticmethod
    def read(path: str) -> FlatWebnovel:
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            doc = FlatWebnovel.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            log.error(f"Invalid JSON format at path {path}")
            raise InvalidInputError(path, str(e)) from e
        log.info(f"Read '{doc.title}' with {len(doc.chapters)} chapters from {path}")
        return doc

    @staticmethod
    def to_chapters(doc: FlatWebnovel) -> List[Chapter]:
        """Chapters ready for re-processing, numbered in document order. Unscraped ones are skipped."""
        chapters = []
        for position, flat in enumerate(doc.chapters):
            if not flat.has_been_scraped and not flat.content:
                log.warning(f"Skipping chapter without content: {flat.url}")
                continue
            chapters.append(Chapter(index=position, title=flat.title, url=flat.url, content=flat.content))
        return chapters

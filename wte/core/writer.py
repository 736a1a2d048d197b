import os
import html
import json
import uuid
import shutil
import zipfile

from ebooklib import epub
from lxml import etree
from pydantic import ValidationError

from ..models import (
    log, CONTENT_DIR, IMAGE_DIR, TEXT_DIR, FONT_DIR, SNAPSHOT_FILE_NAME, SNAPSHOT_ITEM_ID,
    XHTML_MEDIA_TYPE, Chapter, ChapterArchiveItem, Webnovel
)
from ..errors import InvalidArchiveError, ArchiveWriteError
from .snapshot import WebnovelSnapshot, to_snapshot, from_snapshot

CHAPTER_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops" lang="en" xml:lang="en">
<head>
  <title>{title}</title>
</head>
<body>
  <h1>{title}</h1>
  <div class="chapter-body">
{body}
  </div>
</body>
</html>
"""

WRITE_OPTIONS = {"epub3_pages": False}

class StagedItem(epub.EpubItem):
    """Manifest entry whose bytes stay on disk until the archive is written."""

    def __init__(self, uid: str, file_name: str, media_type: str, source_path: str):
        super().__init__(uid=uid, file_name=file_name, media_type=media_type)
        self.source_path = source_path

    def get_content(self, default=b''):
        with open(self.source_path, "rb") as f:
            return f.read()

class EpubWriter:
    @staticmethod
    def create_staging(path: str):
        content_root = os.path.join(path, CONTENT_DIR)
        for sub in ("", IMAGE_DIR, TEXT_DIR, FONT_DIR):
            os.makedirs(os.path.join(content_root, sub), exist_ok=True)
        os.makedirs(os.path.join(path, "META-INF"), exist_ok=True)
        log.debug(f"Staging ready at {path}")

    @staticmethod
    def clear_staging(path: str):
        if not os.path.exists(path): return
        shutil.rmtree(path)
        log.debug(f"Removed staging {path}")

    @staticmethod
    def render_chapter(title: str, body: str) -> str:
        return CHAPTER_TEMPLATE.format(title=html.escape(title), body=body)

    @staticmethod
    def write_chapter(staging_path: str, chapter: Chapter, band: int = 0) -> ChapterArchiveItem:
        """Write one chapter document into staging and describe it for the manifest."""
        item_id = str(uuid.uuid4())
        relative_path = f"{TEXT_DIR}/{item_id}.xhtml"
        target = os.path.join(staging_path, CONTENT_DIR, TEXT_DIR, f"{item_id}.xhtml")
        document = EpubWriter.render_chapter(chapter.title, chapter.content).encode("utf-8")
        with open(target, "wb") as f:
            f.write(document)
        return ChapterArchiveItem(
            id=item_id, relative_path=relative_path, media_type=XHTML_MEDIA_TYPE,
            source_url=chapter.url, index=chapter.index, band=band, title=chapter.title
        )

    @staticmethod
    def build_book(webnovel: Webnovel, staging_path: str) -> epub.EpubBook:
        meta = webnovel.metadata
        content_root = os.path.join(staging_path, CONTENT_DIR)

        book = epub.EpubBook()
        book.set_identifier(meta.id)
        book.set_title(meta.title)
        book.set_language("en")
        book.add_author(meta.author)

        added = set()
        resources = list(webnovel.items)
        if meta.cover_image:
            resources.insert(0, meta.cover_image)
        for item in resources:
            if item.id in added: continue
            added.add(item.id)
            book.add_item(StagedItem(item.id, item.relative_path, item.media_type,
                                     os.path.join(content_root, item.relative_path)))
        if meta.cover_image:
            book.add_metadata(None, "meta", "", {"name": "cover", "content": meta.cover_image.id})

        spine, toc = [], []
        for chap in webnovel.chapters:
            doc = StagedItem(chap.id, chap.relative_path, XHTML_MEDIA_TYPE,
                             os.path.join(content_root, chap.relative_path))
            book.add_item(doc)
            spine.append(doc)
            toc.append(epub.Link(chap.relative_path, chap.title, f"nav-{chap.id}"))

        book.toc = tuple(toc)
        book.add_item(epub.EpubNcx())
        book.add_item(epub.EpubNav())
        book.spine = ["nav"] + spine

        snapshot = to_snapshot(webnovel).model_dump_json()
        book.add_item(epub.EpubItem(uid=SNAPSHOT_ITEM_ID, file_name=SNAPSHOT_FILE_NAME,
                                    media_type="application/json", content=snapshot.encode("utf-8")))
        return book

    @staticmethod
    def finalize(webnovel: Webnovel, staging_path: str, out_path: str) -> str:
        webnovel.finalize()
        book = EpubWriter.build_book(webnovel, staging_path)

        partial = f"{out_path}.part"
        try:
            out_dir = os.path.dirname(os.path.abspath(out_path))
            os.makedirs(out_dir, exist_ok=True)
            writer = epub.EpubWriter(partial, book, WRITE_OPTIONS)
            writer.process()
            writer.write()
            os.replace(partial, out_path)
        except (OSError, epub.EpubException) as e:
            if os.path.exists(partial):
                os.remove(partial)
            log.error(f"Failed to write EPUB {out_path}: {e}")
            raise ArchiveWriteError(out_path, str(e)) from e

        log.info(f"Wrote EPUB: {out_path} ({len(webnovel.chapters)} chapters, {len(webnovel.items)} items)")
        return out_path

    @staticmethod
    def reopen(path: str, extract_to: str) -> Webnovel:
        """Unpack a previously written EPUB into extract_to and rebuild its Webnovel."""
        try:
            with zipfile.ZipFile(path) as archive:
                archive.extractall(extract_to)
            book = epub.read_epub(path, {"ignore_ncx": True})
        except (OSError, zipfile.BadZipFile, KeyError, epub.EpubException, etree.LxmlError) as e:
            raise InvalidArchiveError(path, str(e)) from e

        item = book.get_item_with_id(SNAPSHOT_ITEM_ID)
        if item is None:
            raise InvalidArchiveError(path, f"no {SNAPSHOT_FILE_NAME} entry")
        try:
            snap = WebnovelSnapshot.model_validate(json.loads(item.get_content()))
        except (ValueError, ValidationError) as e:
            raise InvalidArchiveError(path, str(e)) from e

        EpubWriter.create_staging(extract_to)
        webnovel = from_snapshot(snap)
        log.info(f"Reopened '{webnovel.metadata.title}' with {len(webnovel.chapters)} chapters")
        return webnovel

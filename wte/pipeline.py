import os
import uuid
import tempfile
from typing import List, Optional

from .models import log, Metadata, Webnovel, is_valid_url, sanitize_filename
from .errors import WteError, SourceNotFound
from .core.config import ConfigManager, Settings
from .core.session import get_context
from .core.writer import EpubWriter
from .core.json_store import JsonStore
from .core.aggregator import combine
from .core.orchestrator import scrape_webnovel, update_webnovel, process_stored_chapters, capture_image

def _staging_path() -> str:
    return os.path.join(tempfile.gettempdir(), f"wte-{uuid.uuid4()}")

def _context(settings: Settings, staging_path: str, create_staging: bool = True):
    return get_context(
        staging_path,
        scraping=settings.scraping,
        images=settings.images,
        parsing=settings.parsing,
        headless=settings.headless,
        show_progress=settings.show_progress,
        create_staging=create_staging,
    )

def _epub_path(settings: Settings, webnovel: Webnovel) -> str:
    return os.path.join(settings.output_dir, f"{sanitize_filename(webnovel.metadata.title)}.epub")

def _check_url(url: str):
    if not is_valid_url(url):
        log.error(f"Not a valid http(s) URL: {url}")
        raise SourceNotFound(url)

async def webnovel_to_epub(url: str, settings: Optional[Settings] = None) -> str:
    settings = settings or ConfigManager.get_instance().settings()
    _check_url(url)
    async with _context(settings, _staging_path()) as context:
        webnovel = await scrape_webnovel(url, context)
        return EpubWriter.finalize(webnovel, context.staging_path, _epub_path(settings, webnovel))

async def webnovels_to_epub(urls: List[str], settings: Optional[Settings] = None, keep_metadata_from: int = 0) -> str:
    """Scrape several sources into one EPUB. Sources that fail are skipped."""
    settings = settings or ConfigManager.get_instance().settings()
    scraped = []
    async with _context(settings, _staging_path()) as context:
        for position, url in enumerate(urls):
            try:
                _check_url(url)
                scraped.append((position, await scrape_webnovel(url, context)))
            except WteError as e:
                log.error(f"Skipping source {url}: {e}")
        if not scraped:
            raise WteError("None of the sources could be scraped")

        positions = [p for p, _ in scraped]
        keep = positions.index(keep_metadata_from) if keep_metadata_from in positions else 0
        webnovel = combine([w for _, w in scraped], keep)
        return EpubWriter.finalize(webnovel, context.staging_path, _epub_path(settings, webnovel))

async def update_epub(path: str, settings: Optional[Settings] = None) -> str:
    """Add newly published chapters to an EPUB written by this package, in place."""
    settings = settings or ConfigManager.get_instance().settings()
    staging = _staging_path()
    try:
        webnovel = EpubWriter.reopen(path, staging)
    except WteError:
        EpubWriter.clear_staging(staging)
        raise

    async with _context(settings, staging, create_staging=False) as context:
        before = len(webnovel.chapters)
        webnovel = await update_webnovel(webnovel, context)
        log.info(f"Added {len(webnovel.chapters) - before} chapters to {path}")
        return EpubWriter.finalize(webnovel, staging, path)

async def webnovel_to_json(url: str, settings: Optional[Settings] = None) -> str:
    settings = settings or ConfigManager.get_instance().settings()
    _check_url(url)
    async with _context(settings, _staging_path()) as context:
        webnovel = await scrape_webnovel(url, context)
        return JsonStore.write(webnovel, context.staging_path, settings.output_dir)

async def json_to_epub(path: str, settings: Optional[Settings] = None) -> str:
    settings = settings or ConfigManager.get_instance().settings()
    doc = JsonStore.read(path)
    chapters = JsonStore.to_chapters(doc)

    async with _context(settings, _staging_path()) as context:
        cover = await capture_image(doc.cover_image_url, context) if doc.cover_image_url else None
        metadata = Metadata(title=doc.title, author=doc.author, id=str(uuid.uuid4()),
                            cover_image=cover, cover_url=doc.cover_image_url,
                            source_urls=list(doc.source_urls))
        staged, items = await process_stored_chapters(chapters, context)
        webnovel = Webnovel(metadata=metadata, chapters=staged, items=items)
        return EpubWriter.finalize(webnovel, context.staging_path, _epub_path(settings, webnovel))

import uuid
from typing import List, Tuple, Optional, Callable, Awaitable

from tqdm.asyncio import tqdm_asyncio

from ..models import (
    log, MAX_TRIES, ParsingType, Chapter, ChapterSkeleton, ArchiveItem, ChapterArchiveItem,
    ChapterFailureRecord, Metadata, Webnovel, ScrapeContext
)
from ..errors import WteError, ExtractionError, FetchFailure, ParseFailure
from ..drivers.base import BaseDriver
from .dispatcher import DriverDispatcher
from .session import TabPool
from .sanitizer import ContentSanitizer
from .image_processor import ImageProcessor
from .writer import EpubWriter

async def fetch_chapter(driver: BaseDriver, page, skeleton: ChapterSkeleton, context: ScrapeContext) -> Chapter:
    chapter = Chapter.from_skeleton(skeleton)
    for attempt in range(1, MAX_TRIES + 1):
        context.report.record_attempt(skeleton.url)
        try:
            chapter.content = await driver.fetch_chapter_markup(page, skeleton)
            return chapter
        except Exception as e:
            log.warning(f"Fetch attempt {attempt}/{MAX_TRIES} failed for {skeleton.url}: {e}")
    raise FetchFailure(skeleton.url, MAX_TRIES)

async def parse_chapter(page, chapter: Chapter, context: ScrapeContext) -> Tuple[str, List[ArchiveItem]]:
    async def _fetch_images(urls: List[str]):
        return await ImageProcessor.download_images_locally(page, chapter.url, urls, context)

    for attempt in range(1, MAX_TRIES + 1):
        try:
            return await ContentSanitizer.sanitize(chapter.content, context.parsing, chapter.url, _fetch_images)
        except Exception as e:
            log.warning(f"Parse attempt {attempt}/{MAX_TRIES} failed for {chapter.url}: {e}")
    raise ParseFailure(chapter.url, MAX_TRIES)

ChapterLoader = Callable[[object, ChapterSkeleton], Awaitable[Chapter]]

async def _run_chapters(skeletons: List[ChapterSkeleton], load: ChapterLoader, context: ScrapeContext,
                        band: int) -> Tuple[List[ChapterArchiveItem], List[ArchiveItem]]:
    chapters: List[ChapterArchiveItem] = []
    items: List[ArchiveItem] = []
    if not skeletons:
        return chapters, items

    report = context.report
    report.total += len(skeletons)
    pool_size = min(context.scraping.concurrency, len(skeletons))
    allow_images = context.parsing == ParsingType.WITH_IMAGE

    async with TabPool(context.connection, pool_size, allow_images) as pool:
        async def _process(skeleton: ChapterSkeleton):
            async with pool.acquire() as page:
                try:
                    chapter = await load(page, skeleton)
                    chapter.content, new_items = await parse_chapter(page, chapter, context)
                    staged = EpubWriter.write_chapter(context.staging_path, chapter, band)
                except (FetchFailure, ParseFailure) as e:
                    stage = "fetch" if isinstance(e, FetchFailure) else "parse"
                    log.error(str(e))
                    report.failures.append(ChapterFailureRecord(skeleton.url, stage, str(e)))
                    return
                except Exception as e:
                    log.error(f"Could not stage chapter {skeleton.url}: {e}")
                    report.failures.append(ChapterFailureRecord(skeleton.url, "write", str(e)))
                    return
                finally:
                    report.mark_done()
            chapters.append(staged)
            items.extend(new_items)

        await tqdm_asyncio.gather(*[_process(s) for s in skeletons], desc="Chapters", unit="chap",
                                  leave=False, disable=not context.show_progress)

    chapters.sort(key=lambda c: c.sort_key)
    log.info(f"Processed {len(chapters)}/{len(skeletons)} chapters (band {band})")
    return chapters, items

async def process_chapters(driver: BaseDriver, skeletons: List[ChapterSkeleton], context: ScrapeContext,
                           band: int = 0) -> Tuple[List[ChapterArchiveItem], List[ArchiveItem]]:
    """
    Fetch, sanitize and stage every chapter using a fixed pool of browser tabs.
    Chapters that run out of retries are reported and left out; the rest still complete.
    """
    async def _load(page, skeleton: ChapterSkeleton) -> Chapter:
        return await fetch_chapter(driver, page, skeleton, context)
    return await _run_chapters(skeletons, _load, context, band)

async def process_stored_chapters(chapters: List[Chapter], context: ScrapeContext,
                                  band: int = 0) -> Tuple[List[ChapterArchiveItem], List[ArchiveItem]]:
    """Sanitize and stage chapters whose markup is already known (e.g. read back from JSON)."""
    by_url = {c.url: c for c in chapters}

    async def _load(page, skeleton: ChapterSkeleton) -> Chapter:
        return by_url[skeleton.url]

    skeletons = [ChapterSkeleton(index=c.index, title=c.title, url=c.url) for c in by_url.values()]
    return await _run_chapters(skeletons, _load, context, band)

async def capture_image(url: str, context: ScrapeContext) -> Optional[ArchiveItem]:
    # Separate tab so the driver's page stays on the novel.
    page = await context.connection.new_page()
    try:
        captured = await ImageProcessor.download_images_locally(page, url, [url], context)
    finally:
        await page.close()

    image = captured.get(url)
    if image is None:
        log.warning(f"Cover image {url} could not be captured; continuing without a cover")
    return image

async def capture_cover(driver: BaseDriver, context: ScrapeContext) -> Tuple[Optional[ArchiveItem], Optional[str]]:
    try:
        cover_url = await driver.get_cover_image_url()
    except ExtractionError as e:
        log.warning(f"No cover image: {e}")
        return None, None
    return await capture_image(cover_url, context), cover_url

async def scrape_webnovel(url: str, context: ScrapeContext, band: int = 0) -> Webnovel:
    driver = DriverDispatcher.require_driver(url)
    await driver.initialize(url, context.connection, context.scraping)

    title = await driver.get_title()
    author = await driver.get_author()
    log.info(f"Scraping '{title}' by {author} from {url}")
    cover, cover_url = await capture_cover(driver, context)
    metadata = Metadata(title=title, author=author, id=str(uuid.uuid4()),
                        cover_image=cover, cover_url=cover_url, source_urls=[url])

    skeletons = await driver.list_chapters()
    already_failed = len(context.report.failures)
    chapters, items = await process_chapters(driver, skeletons, context, band)
    failed = context.report.failed_urls(since=already_failed)
    if failed:
        log.warning(f"{len(failed)} chapters of '{title}' failed: {', '.join(failed)}")
    return Webnovel(metadata=metadata, chapters=chapters, items=items)

async def update_webnovel(webnovel: Webnovel, context: ScrapeContext) -> Webnovel:
    """Append chapters published since the webnovel was built; existing ones are left alone."""
    known = webnovel.chapter_urls()
    for band, source in enumerate(webnovel.metadata.source_urls):
        driver = DriverDispatcher.get_driver(source)
        if driver is None:
            log.warning(f"Skipping {source}: no driver for this site")
            continue
        try:
            await driver.initialize(source, context.connection, context.scraping)
            skeletons = await driver.list_chapters()
        except WteError as e:
            log.warning(f"Skipping {source}: {e}")
            continue

        fresh = [s for s in skeletons if s.url not in known]
        log.info(f"{source}: {len(fresh)} new of {len(skeletons)} chapters")
        chapters, items = await process_chapters(driver, fresh, context, band)
        webnovel.chapters.extend(chapters)
        webnovel.items.extend(items)
        known.update(c.source_url for c in chapters)
    return webnovel.finalize()

import pytest
from unittest.mock import AsyncMock, MagicMock

from playwright.async_api import Error as PlaywrightError

from wte.models import ScrapingOptions, ChapterSkeleton
from wte.errors import ExtractionError
from wte.drivers.base import BaseDriver
from wte.drivers.novelbin import NovelbinDriver
from wte.drivers.noveloon import NoveloonDriver, NEXT_TOC_PAGE
from wte.drivers.woopread import WoopreadDriver
from wte.core.extractor import scrape_page_html, read_meta

OPTIONS = ScrapingOptions(timeout_ms=1000)

def mock_page():
    page = MagicMock()
    page.goto = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.wait_for_function = AsyncMock()
    page.click = AsyncMock()
    page.eval_on_selector = AsyncMock()
    page.eval_on_selector_all = AsyncMock()
    return page

async def started(driver_cls, url, page):
    driver = driver_cls()
    connection = MagicMock()
    connection.page = page
    await driver.initialize(url, connection, OPTIONS)
    return driver

def test_to_skeletons_numbers_and_dedupes():
    links = [
        {"title": " One ", "url": "https://x.com/1"},
        {"title": "", "url": "https://x.com/2"},
        {"title": "One again", "url": "https://x.com/1"},
        {"title": "Three", "url": "https://x.com/3"},
    ]
    assert BaseDriver.to_skeletons(links) == [
        ChapterSkeleton(0, "One", "https://x.com/1"),
        ChapterSkeleton(1, "Chapter 2", "https://x.com/2"),
        ChapterSkeleton(2, "Three", "https://x.com/3"),
    ]

@pytest.mark.asyncio
async def test_initialize_wraps_navigation_errors():
    page = mock_page()
    page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
    with pytest.raises(ExtractionError) as exc:
        await started(NovelbinDriver, "https://novelbin.me/b/x", page)
    assert exc.value.stage == "start page"

@pytest.mark.asyncio
async def test_scrape_page_html_returns_inner_html():
    page = mock_page()
    page.eval_on_selector.return_value = "<p>hello</p>"
    html = await scrape_page_html(page, "https://novelbin.me/c/1", "div#chr-content", 1000)
    assert html == "<p>hello</p>"
    page.goto.assert_awaited_once()
    page.wait_for_selector.assert_awaited_once_with("div#chr-content", timeout=1000)

@pytest.mark.asyncio
async def test_scrape_page_html_missing_region():
    page = mock_page()
    page.wait_for_selector.side_effect = PlaywrightError("Timeout 1000ms exceeded")
    with pytest.raises(ExtractionError) as exc:
        await scrape_page_html(page, "https://novelbin.me/c/1", "div#chr-content", 1000)
    assert exc.value.url == "https://novelbin.me/c/1"

@pytest.mark.asyncio
async def test_read_meta_empty_value():
    page = mock_page()
    page.eval_on_selector.return_value = "   "
    with pytest.raises(ExtractionError):
        await read_meta(page, "og:title", "title", "https://woopread.com/s/x", 1000)

@pytest.mark.asyncio
async def test_novelbin_metadata_and_chapters():
    page = mock_page()
    driver = await started(NovelbinDriver, "https://novelbin.me/novel-book/x", page)

    page.eval_on_selector.side_effect = ["The Title", "The Author", "https://novelbin.me/cover.jpg"]
    assert await driver.get_title() == "The Title"
    assert await driver.get_author() == "The Author"
    assert await driver.get_cover_image_url() == "https://novelbin.me/cover.jpg"

    page.eval_on_selector_all.return_value = [
        {"title": "Chapter 1", "url": "https://novelbin.me/c1"},
        {"title": "Chapter 2", "url": "https://novelbin.me/c2"},
    ]
    chapters = await driver.list_chapters()
    assert [(c.index, c.url) for c in chapters] == [(0, "https://novelbin.me/c1"), (1, "https://novelbin.me/c2")]

@pytest.mark.asyncio
async def test_noveloon_follows_toc_pages():
    page = mock_page()
    driver = await started(NoveloonDriver, "https://noveloon.com/novel/x", page)

    page.eval_on_selector_all.side_effect = [
        [{"title": "C1", "url": "https://noveloon.com/c1"}, {"title": "C2", "url": "https://noveloon.com/c2"}],
        [{"title": "C3", "url": "https://noveloon.com/c3"}],
    ]
    page.eval_on_selector.side_effect = ["https://noveloon.com/novel/x?page=2", PlaywrightError("no pager")]

    chapters = await driver.list_chapters()
    assert [c.title for c in chapters] == ["C1", "C2", "C3"]
    assert [c.index for c in chapters] == [0, 1, 2]
    page.eval_on_selector.assert_any_await(NEXT_TOC_PAGE, "a => a.href")

@pytest.mark.asyncio
async def test_noveloon_stops_on_repeated_page():
    page = mock_page()
    driver = await started(NoveloonDriver, "https://noveloon.com/novel/x", page)
    page.eval_on_selector_all.return_value = [{"title": "C1", "url": "https://noveloon.com/c1"}]
    page.eval_on_selector.return_value = "https://noveloon.com/novel/x"

    chapters = await driver.list_chapters()
    assert len(chapters) == 1

@pytest.mark.asyncio
async def test_woopread_reverses_listing_after_load_more():
    page = mock_page()
    driver = await started(WoopreadDriver, "https://woopread.com/series/x", page)
    page.eval_on_selector_all.return_value = [
        {"title": "Newest", "url": "https://woopread.com/c3"},
        {"title": "Middle", "url": "https://woopread.com/c2"},
        {"title": "Oldest", "url": "https://woopread.com/c1"},
    ]
    chapters = await driver.list_chapters()
    page.click.assert_awaited_once()
    assert [c.title for c in chapters] == ["Oldest", "Middle", "Newest"]
    assert [c.index for c in chapters] == [0, 1, 2]

@pytest.mark.asyncio
async def test_woopread_missing_load_more():
    page = mock_page()
    driver = await started(WoopreadDriver, "https://woopread.com/series/x", page)
    page.wait_for_selector.side_effect = PlaywrightError("Timeout")
    with pytest.raises(ExtractionError) as exc:
        await driver.list_chapters()
    assert exc.value.stage == "chapter list"

@pytest.mark.asyncio
async def test_fetch_chapter_markup_uses_given_tab():
    main_page, tab = mock_page(), mock_page()
    driver = await started(WoopreadDriver, "https://woopread.com/series/x", main_page)
    tab.eval_on_selector.return_value = "<p>chapter</p>"
    skeleton = ChapterSkeleton(0, "C1", "https://woopread.com/c1")
    assert await driver.fetch_chapter_markup(tab, skeleton) == "<p>chapter</p>"
    tab.goto.assert_awaited_once()
    main_page.eval_on_selector.assert_not_awaited()

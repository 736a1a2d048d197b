from typing import List, Dict

from playwright.async_api import Error as PlaywrightError

from ..models import log
from ..errors import ExtractionError

INNER_HTML = "el => el.innerHTML"
INNER_TEXT = "el => el.innerText.trim()"
META_CONTENT = "el => el.content"

async def scrape_page_html(page, url: str, selector: str, timeout_ms: int) -> str:
    """Navigate a page to url, wait for selector and return its inner HTML."""
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        await page.wait_for_selector(selector, timeout=timeout_ms)
        html = await page.eval_on_selector(selector, INNER_HTML)
    except PlaywrightError as e:
        raise ExtractionError("chapter content", url, str(e)) from e
    if html is None:
        raise ExtractionError("chapter content", url, f"'{selector}' is empty")
    return html

async def read_selector(page, selector: str, expression: str, stage: str, url: str, timeout_ms: int) -> str:
    try:
        await page.wait_for_selector(selector, timeout=timeout_ms)
        value = await page.eval_on_selector(selector, expression)
    except PlaywrightError as e:
        raise ExtractionError(stage, url, str(e)) from e
    value = value.strip() if isinstance(value, str) else ""
    if not value:
        raise ExtractionError(stage, url, f"'{selector}' has no value")
    return value

async def read_meta(page, prop: str, stage: str, url: str, timeout_ms: int) -> str:
    return await read_selector(page, f'meta[property="{prop}"]', META_CONTENT, stage, url, timeout_ms)

async def read_links(page, selector: str, expression: str, url: str, timeout_ms: int) -> List[Dict[str, str]]:
    """Collect {title, url} dicts for every element matching selector."""
    try:
        await page.wait_for_selector(selector, timeout=timeout_ms)
        links = await page.eval_on_selector_all(selector, expression)
    except PlaywrightError as e:
        raise ExtractionError("chapter list", url, str(e)) from e
    if not isinstance(links, list):
        raise ExtractionError("chapter list", url, "unexpected result")
    log.debug(f"Found {len(links)} links with '{selector}' on {url}")
    return [l for l in links if l and l.get("url")]

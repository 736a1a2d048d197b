import io
import asyncio

import pytest
from PIL import Image as PillowImage

from wte.models import ScrapeContext, ScrapingOptions, ImageOptions, ParsingType, ChapterSkeleton
from wte.drivers.base import BaseDriver
from wte.core.writer import EpubWriter
from wte.errors import ExtractionError

def make_png(width=40, height=30, color="red") -> bytes:
    out = io.BytesIO()
    PillowImage.new("RGB", (width, height), color).save(out, format="PNG")
    return out.getvalue()

class FakeResponse:
    def __init__(self, url, body, delay=0):
        self.url = url
        self._body = body
        self._delay = delay

    async def body(self):
        if self._delay:
            await asyncio.sleep(self._delay)
        return self._body

class FakePage:
    """Stands in for a Playwright page: goto() replays scripted network responses."""

    def __init__(self, responses=None):
        self.responses = {} if responses is None else responses
        self.listeners = {}
        self.visited = []
        self.closed = False

    def on(self, event, callback):
        self.listeners.setdefault(event, []).append(callback)

    def remove_listener(self, event, callback):
        self.listeners[event].remove(callback)

    async def goto(self, url, **kwargs):
        self.visited.append(url)
        for response in self.responses.get(url, []):
            for callback in list(self.listeners.get("response", [])):
                callback(response)
        await asyncio.sleep(0)

    async def close(self):
        self.closed = True

class FakeConnection:
    def __init__(self, responses=None):
        self.responses = {} if responses is None else responses
        self.pages = []
        self.page = FakePage(self.responses)

    async def new_page(self, allow_images=True):
        page = FakePage(self.responses)
        self.pages.append(page)
        return page

class ScriptedDriver(BaseDriver):
    """Driver whose chapter fetches follow a per-URL script of markup strings or exceptions."""
    name = "scripted"
    domains = ("scripted.test",)

    def __init__(self, chapters=None, scripts=None, title="Scripted Novel", author="Anon", cover_url=None):
        super().__init__()
        self.chapters = chapters or []
        self.scripts = scripts or {}
        self.title = title
        self.author = author
        self.cover_url = cover_url
        self.fetch_calls = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def initialize(self, url, connection, options):
        self.page = connection.page
        self.url = url
        self.options = options

    async def get_title(self):
        return self.title

    async def get_author(self):
        return self.author

    async def get_cover_image_url(self):
        if not self.cover_url:
            raise ExtractionError("cover image", self.url)
        return self.cover_url

    async def list_chapters(self):
        return list(self.chapters)

    async def fetch_chapter_markup(self, page, skeleton):
        self.fetch_calls[skeleton.url] = self.fetch_calls.get(skeleton.url, 0) + 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            script = self.scripts.get(skeleton.url)
            if script:
                step = script.pop(0)
                if isinstance(step, Exception):
                    raise step
                return step
            return f"<p>{skeleton.title} text</p>"
        finally:
            self.in_flight -= 1

def skeletons(count, prefix="https://scripted.test/c"):
    return [ChapterSkeleton(index=i, title=f"Chapter {i + 1}", url=f"{prefix}{i}") for i in range(count)]

@pytest.fixture
def staging(tmp_path):
    path = str(tmp_path / "staging")
    EpubWriter.create_staging(path)
    return path

@pytest.fixture
def connection():
    return FakeConnection()

@pytest.fixture
def context(staging, connection):
    return ScrapeContext(
        connection=connection,
        staging_path=staging,
        scraping=ScrapingOptions(concurrency=2, timeout_ms=300),
        images=ImageOptions(),
        parsing=ParsingType.WITH_FORMAT,
        show_progress=False,
    )

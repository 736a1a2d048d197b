import os
import re
import enum
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Tuple
from urllib.parse import urlparse

# --- Constants ---
MAX_TRIES = 3
DEFAULT_CONCURRENCY = 3
DEFAULT_TIMEOUT_MS = 30000
CONTENT_DIR = "EPUB"
IMAGE_DIR = "Images"
TEXT_DIR = "Text"
FONT_DIR = "Fonts"
SNAPSHOT_FILE_NAME = "wte.json"
SNAPSHOT_ITEM_ID = "wte-snapshot"
XHTML_MEDIA_TYPE = "application/xhtml+xml"
USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'

URL_PATTERN = re.compile(
    r'^https?://'
    r'(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}'
    r'(?::\d{1,5})?'
    r'(?:[/?#][^\s]*)?$',
    re.IGNORECASE
)

# --- Logging ---
_LOGLEVEL = os.getenv("LOGLEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, _LOGLEVEL, logging.INFO),
                    format='%(asctime)s - %(levelname)s - %(message)s')
log = logging.getLogger(__name__)

# --- Data Structures ---

class ParsingType(enum.Enum):
    WITH_IMAGE = "with_image"
    WITH_FORMAT = "with_format"
    TEXT_ONLY = "text_only"

@dataclass
class ScrapingOptions:
    concurrency: int = DEFAULT_CONCURRENCY
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    def __post_init__(self):
        if not isinstance(self.concurrency, int) or self.concurrency < 1:
            raise ValueError(f"concurrency must be a positive integer, got {self.concurrency!r}")
        if not isinstance(self.timeout_ms, int) or self.timeout_ms < 1:
            raise ValueError(f"timeout_ms must be a positive integer, got {self.timeout_ms!r}")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

@dataclass
class ImageOptions:
    quality: int = 80
    webp: bool = True
    should_resize: bool = False
    max_width: int = 1000
    max_height: int = 1000

    def __post_init__(self):
        if not isinstance(self.quality, int) or not 0 <= self.quality <= 100:
            raise ValueError(f"quality must be between 0 and 100, got {self.quality!r}")
        if self.should_resize and (self.max_width < 1 or self.max_height < 1):
            raise ValueError("max_width and max_height must be positive when resizing")

    @property
    def extension(self) -> str:
        return "webp" if self.webp else "png"

    @property
    def media_type(self) -> str:
        return f"image/{self.extension}"

@dataclass(frozen=True)
class ChapterSkeleton:
    index: int
    title: str
    url: str

@dataclass
class Chapter:
    index: int
    title: str
    url: str
    content: str = ""

    @classmethod
    def from_skeleton(cls, skeleton: ChapterSkeleton) -> "Chapter":
        return cls(index=skeleton.index, title=skeleton.title, url=skeleton.url)

@dataclass
class ArchiveItem:
    id: str
    relative_path: str
    media_type: str
    source_url: Optional[str] = None

@dataclass
class ChapterArchiveItem(ArchiveItem):
    index: int = 0
    band: int = 0
    title: str = ""

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.band, self.index)

@dataclass
class Metadata:
    title: str
    author: str
    id: str
    cover_image: Optional[ArchiveItem] = None
    cover_url: Optional[str] = None
    source_urls: List[str] = field(default_factory=list)

@dataclass
class Webnovel:
    metadata: Metadata
    chapters: List[ChapterArchiveItem] = field(default_factory=list)
    items: List[ArchiveItem] = field(default_factory=list)

    def chapter_urls(self) -> set:
        return {c.source_url for c in self.chapters}

    def finalize(self) -> "Webnovel":
        """Sort chapters into reading order and drop duplicate chapters/items."""
        seen_urls = set()
        chapters = []
        for chap in sorted(self.chapters, key=lambda c: c.sort_key):
            if chap.source_url in seen_urls:
                log.debug(f"Dropping duplicate chapter {chap.source_url}")
                continue
            seen_urls.add(chap.source_url)
            chapters.append(chap)
        self.chapters = chapters

        seen_ids = set()
        items = []
        for item in self.items:
            if item.id in seen_ids: continue
            seen_ids.add(item.id)
            items.append(item)
        self.items = items
        return self

@dataclass
class ChapterFailureRecord:
    url: str
    stage: str
    error: str

@dataclass
class ScrapeReport:
    """Progress and per-chapter outcome of one run."""
    total: int = 0
    completed: int = 0
    attempts: Dict[str, int] = field(default_factory=dict)
    failures: List[ChapterFailureRecord] = field(default_factory=list)

    def record_attempt(self, url: str) -> int:
        self.attempts[url] = self.attempts.get(url, 0) + 1
        return self.attempts[url]

    def mark_done(self):
        self.completed += 1

    def failed_urls(self, since: int = 0) -> List[str]:
        return [f.url for f in self.failures[since:]]

@dataclass
class ScrapeContext:
    """State threaded through one scraping run."""
    connection: Any
    staging_path: str
    scraping: ScrapingOptions = field(default_factory=ScrapingOptions)
    images: ImageOptions = field(default_factory=ImageOptions)
    parsing: ParsingType = ParsingType.WITH_IMAGE
    report: ScrapeReport = field(default_factory=ScrapeReport)
    show_progress: bool = True

    @property
    def content_root(self) -> str:
        return os.path.join(self.staging_path, CONTENT_DIR)

# --- Helper Functions ---

def is_valid_url(url: str) -> bool:
    if not url or not isinstance(url, str):
        return False
    return bool(URL_PATTERN.match(url.strip()))

def apex_domain(url: str) -> str:
    """Last two labels of the hostname, lower-cased (sub.example.com -> example.com)."""
    if not url or not isinstance(url, str):
        return ""
    host = (urlparse(url.strip()).hostname or "").strip().lower().rstrip(".")
    return ".".join(host.split(".")[-2:])

def sanitize_filename(filename):
    if not filename: return "untitled"
    filename = re.sub(r'[\x00-\x1f]', '', filename)
    sanitized = re.sub(r'[<>:"/\\|?*]', '', filename)
    sanitized = re.sub(r'\s+', '_', sanitized).strip('_')
    return sanitized[:150] or "untitled"

from typing import List, Optional

from pydantic import BaseModel

from ..models import ArchiveItem, ChapterArchiveItem, Metadata, Webnovel

class ItemSnapshot(BaseModel):
    id: str
    relative_path: str
    media_type: str
    source_url: Optional[str] = None

class ChapterSnapshot(ItemSnapshot):
    source_url: str
    index: int
    band: int = 0
    title: str

class WebnovelSnapshot(BaseModel):
    title: str
    author: str
    id: str
    cover_image: Optional[ItemSnapshot] = None
    cover_url: Optional[str] = None
    source_urls: List[str] = []
    chapters: List[ChapterSnapshot] = []
    items: List[ItemSnapshot] = []

class FlatChapter(BaseModel):
    title: str
    url: str
    content: str = ""
    has_been_scraped: bool = False
    has_been_parsed: bool = False

class FlatWebnovel(BaseModel):
    title: str
    author: str
    cover_image_url: Optional[str] = None
    source_urls: List[str] = []
    chapters: List[FlatChapter] = []

def _item(snap: ItemSnapshot) -> ArchiveItem:
    return ArchiveItem(id=snap.id, relative_path=snap.relative_path,
                       media_type=snap.media_type, source_url=snap.source_url)

def to_snapshot(webnovel: Webnovel) -> WebnovelSnapshot:
    meta = webnovel.metadata
    cover = meta.cover_image
    return WebnovelSnapshot(
        title=meta.title,
        author=meta.author,
        id=meta.id,
        cover_image=ItemSnapshot(**vars(cover)) if cover else None,
        cover_url=meta.cover_url,
        source_urls=list(meta.source_urls),
        chapters=[ChapterSnapshot(**vars(c)) for c in webnovel.chapters],
        items=[ItemSnapshot(**vars(i)) for i in webnovel.items],
    )

def from_snapshot(snap: WebnovelSnapshot) -> Webnovel:
    metadata = Metadata(
        title=snap.title,
        author=snap.author,
        id=snap.id,
        cover_image=_item(snap.cover_image) if snap.cover_image else None,
        cover_url=snap.cover_url,
        source_urls=list(snap.source_urls),
    )
    chapters = [
        ChapterArchiveItem(id=c.id, relative_path=c.relative_path, media_type=c.media_type,
                           source_url=c.source_url, index=c.index, band=c.band, title=c.title)
        for c in snap.chapters
    ]
    return Webnovel(metadata=metadata, chapters=chapters, items=[_item(i) for i in snap.items])

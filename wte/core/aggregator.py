import uuid
from dataclasses import replace
from typing import List

from ..models import log, Metadata, Webnovel

def combine(webnovels: List[Webnovel], keep_metadata_from: int = 0) -> Webnovel:
    """
    Merge several webnovels into one book.
    Each input keeps its own band range, so chapters read input by input in the given order.
    Title, author and cover come from webnovels[keep_metadata_from] (0 when out of range).
    """
    if not webnovels:
        raise ValueError("Nothing to combine")
    if keep_metadata_from < 0 or keep_metadata_from >= len(webnovels):
        log.warning(f"Metadata index {keep_metadata_from} out of range, using the first webnovel")
        keep_metadata_from = 0

    kept = webnovels[keep_metadata_from].metadata
    combined = Webnovel(metadata=Metadata(
        title=kept.title,
        author=kept.author,
        id=str(uuid.uuid4()),
        cover_image=kept.cover_image,
        cover_url=kept.cover_url,
    ))

    offset = 0
    for webnovel in webnovels:
        combined.chapters.extend(replace(c, band=c.band + offset) for c in webnovel.chapters)
        combined.items.extend(webnovel.items)
        combined.metadata.source_urls.extend(webnovel.metadata.source_urls)
        # Band n belongs to source_urls[n]; a webnovel without sources still gets its own band.
        offset += max(1, len(webnovel.metadata.source_urls))

    combined.finalize()
    log.info(f"Combined {len(webnovels)} webnovels into {len(combined.chapters)} chapters")
    return combined

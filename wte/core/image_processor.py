import io
import os
import uuid
import asyncio
import contextlib
from typing import Dict, Iterable

from PIL import Image as PillowImage
from playwright.async_api import Error as PlaywrightError

from ..models import log, IMAGE_DIR, ImageOptions, ArchiveItem, ScrapeContext

class ImageProcessor:
    @staticmethod
    def optimize(data: bytes, options: ImageOptions) -> bytes:
        """Re-encode image bytes as lossless WebP (or PNG), shrinking to fit when asked."""
        img_io = io.BytesIO(data)
        with PillowImage.open(img_io) as img:
            img.load()
            if options.should_resize and (img.width > options.max_width or img.height > options.max_height):
                img.thumbnail((options.max_width, options.max_height), PillowImage.Resampling.LANCZOS)

            out_io = io.BytesIO()
            if options.webp:
                if img.mode not in ("RGB", "RGBA"):
                    img = img.convert("RGBA")
                img.save(out_io, format="WEBP", lossless=True, quality=options.quality)
            else:
                if img.mode not in ("RGB", "RGBA", "L", "LA", "P"):
                    img = img.convert("RGBA")
                img.save(out_io, format="PNG", optimize=True)
            return out_io.getvalue()

    @staticmethod
    async def download_images_locally(page, page_url: str, urls: Iterable[str], context: ScrapeContext) -> Dict[str, ArchiveItem]:
        """
        Navigate page to page_url and keep every listed image the browser loads on the way.
        Returns {original url: ArchiveItem}; images not seen before the timeout are left out.
        """
        pending = {u for u in urls if u}
        captured: Dict[str, ArchiveItem] = {}
        if not pending:
            return captured

        loop = asyncio.get_running_loop()
        done = asyncio.Event()
        captures = set()
        closed = False
        image_dir = os.path.join(context.content_root, IMAGE_DIR)
        options = context.images

        async def _capture(response):
            url = response.url
            try:
                data = await response.body()
                encoded = await loop.run_in_executor(None, ImageProcessor.optimize, data, options)
            except (PlaywrightError, OSError, ValueError) as e:
                log.debug(f"Could not capture image {url}: {e}")
                return

            # Lost the race against the timeout or a duplicate response.
            if closed or url not in pending:
                return

            item_id = str(uuid.uuid4())
            file_name = f"{item_id}.{options.extension}"
            with open(os.path.join(image_dir, file_name), "wb") as f:
                f.write(encoded)
            captured[url] = ArchiveItem(id=item_id, relative_path=f"{IMAGE_DIR}/{file_name}",
                                        media_type=options.media_type, source_url=url)
            pending.discard(url)
            if not pending:
                done.set()

        def _on_response(response):
            if closed or response.url not in pending:
                return
            task = asyncio.ensure_future(_capture(response))
            captures.add(task)
            task.add_done_callback(captures.discard)

        async def _navigate():
            try:
                await page.goto(page_url, wait_until="load", timeout=context.scraping.timeout_ms)
            except PlaywrightError as e:
                log.debug(f"Navigation to {page_url} ended early: {e}")

        page.on("response", _on_response)
        navigation = asyncio.ensure_future(_navigate())
        try:
            await asyncio.wait_for(done.wait(), timeout=context.scraping.timeout_seconds)
        except asyncio.TimeoutError:
            log.warning(f"Captured {len(captured)}/{len(captured) + len(pending)} images from {page_url} before timeout")
        finally:
            closed = True
            page.remove_listener("response", _on_response)
            leftovers = [navigation, *captures]
            for task in leftovers:
                task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.gather(*leftovers, return_exceptions=True)

        log.debug(f"Captured {len(captured)} images from {page_url}")
        return captured

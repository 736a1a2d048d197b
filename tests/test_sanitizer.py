import pytest

from wte.models import ParsingType, ArchiveItem
from wte.core.sanitizer import ContentSanitizer

RAW = """
<div class="chapter">
  <!-- ad slot -->
  <p>First line of the chapter.</p>
  <script>track()</script>
  <iframe src="https://ads.example.com"></iframe>
  <figure><img src="https://cdn.example.com/fig.png"/><figcaption>cap</figcaption></figure>
  <form><input name="q"/><button>Go</button></form>
  <p>Second <b>bold</b> line.</p>
</div>
"""

class RecordingFetcher:
    def __init__(self, available):
        self.available = available
        self.calls = []

    async def __call__(self, urls):
        self.calls.append(list(urls))
        return {u: ArchiveItem(id=f"id{i}", relative_path=f"Images/{i}.webp", media_type="image/webp", source_url=u)
                for i, u in enumerate(urls) if u in self.available}

@pytest.mark.asyncio
async def test_with_format_removes_deny_list_and_comments():
    cleaned, items = await ContentSanitizer.sanitize(RAW, ParsingType.WITH_FORMAT)
    assert items == []
    for gone in ("<script", "<iframe", "<figure", "<form", "<input", "<button", "ad slot", "<img"):
        assert gone not in cleaned
    assert "<p>First line of the chapter.</p>" in cleaned
    assert "<b>bold</b>" in cleaned

@pytest.mark.asyncio
async def test_with_format_strips_plain_images():
    cleaned, _ = await ContentSanitizer.sanitize('<p>a<img src="x.png"/>b</p>', ParsingType.WITH_FORMAT)
    assert cleaned == "<p>ab</p>"

@pytest.mark.asyncio
async def test_text_only_wraps_lines_in_paragraphs():
    markup = "<div>Line one<br>Line two</div><p>Para <b>bold</b> &amp; more</p><style>p {}</style>"
    cleaned, items = await ContentSanitizer.sanitize(markup, ParsingType.TEXT_ONLY)
    assert items == []
    assert cleaned == "<p>Line one</p>\n<p>Line two</p>\n<p>Para bold &amp; more</p>"

@pytest.mark.asyncio
async def test_with_image_keeps_captured_and_drops_missing():
    markup = (
        '<p>x</p><img src="https://cdn.example.com/a.png"/>'
        '<img src="/img/b.png"/>'
        '<img src="https://cdn.example.com/missing.png"/>'
        '<img alt="no source"/>'
    )
    fetcher = RecordingFetcher({"https://cdn.example.com/a.png", "https://novelbin.me/img/b.png"})
    cleaned, items = await ContentSanitizer.sanitize(markup, ParsingType.WITH_IMAGE,
                                                     "https://novelbin.me/book/ch-1", fetcher)

    assert fetcher.calls == [["https://cdn.example.com/a.png", "https://novelbin.me/img/b.png",
                              "https://cdn.example.com/missing.png"]]
    assert len(items) == 2
    assert cleaned.count("<img") == 2
    assert 'src="../Images/0.webp"' in cleaned
    assert 'src="../Images/1.webp"' in cleaned
    assert "missing.png" not in cleaned
    assert "no source" not in cleaned

@pytest.mark.asyncio
async def test_with_image_asks_once_per_distinct_url():
    markup = '<img src="https://cdn.example.com/a.png"/><img src="https://cdn.example.com/a.png"/>'
    fetcher = RecordingFetcher({"https://cdn.example.com/a.png"})
    cleaned, items = await ContentSanitizer.sanitize(markup, ParsingType.WITH_IMAGE, "", fetcher)
    assert fetcher.calls == [["https://cdn.example.com/a.png"]]
    assert len(items) == 1
    assert cleaned.count('src="../Images/0.webp"') == 2

@pytest.mark.asyncio
async def test_with_image_without_fetcher_drops_remote_images():
    cleaned, items = await ContentSanitizer.sanitize('<p>t</p><img src="https://x.com/a.png"/>', ParsingType.WITH_IMAGE)
    assert cleaned == "<p>t</p>"
    assert items == []

@pytest.mark.asyncio
@pytest.mark.parametrize("mode", list(ParsingType))
async def test_sanitize_is_idempotent(mode):
    fetcher = RecordingFetcher({"https://cdn.example.com/fig.png", "https://cdn.example.com/inline.png"})
    markup = RAW + '<p>inline <img src="https://cdn.example.com/inline.png"/> image</p>'
    once, _ = await ContentSanitizer.sanitize(markup, mode, "https://novelbin.me/c/1", fetcher)
    calls_after_first = len(fetcher.calls)
    twice, items = await ContentSanitizer.sanitize(once, mode, "https://novelbin.me/c/1", fetcher)
    assert twice == once
    assert items == []
    assert len(fetcher.calls) == calls_after_first

@pytest.mark.asyncio
@pytest.mark.parametrize("mode", [ParsingType.WITH_IMAGE, ParsingType.WITH_FORMAT])
async def test_removed_nodes_do_not_leave_double_whitespace(mode):
    markup = "<div>\n  <!-- ad -->\n  <p>a</p>\n  <script>x()</script>\n  <p>b</p>\n</div>"
    once, _ = await ContentSanitizer.sanitize(markup, mode)
    assert once == "<div>\n<p>a</p>\n<p>b</p>\n</div>"
    twice, _ = await ContentSanitizer.sanitize(once, mode)
    assert twice == once

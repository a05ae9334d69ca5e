from __future__ import annotations

import logging
import re
from html.parser import HTMLParser
from urllib.parse import urljoin

import httpx

from web_scrape_indexer.fetchers.base import BROWSER_HEADERS, now_ms
from web_scrape_indexer.models import ImageRef, ScrapedDocument
from web_scrape_indexer.normalize import clean_title, normalize_images, normalize_text

logger = logging.getLogger(__name__)

_SKIP_TAGS = {"script", "style", "nav", "header", "footer", "aside", "noscript", "form", "iframe", "template", "svg"}
_SKIP_ROLES = {"navigation", "banner", "contentinfo"}
_VOID_TAGS = {
    "area",
    "base",
    "br",
    "col",
    "embed",
    "hr",
    "img",
    "input",
    "link",
    "meta",
    "param",
    "source",
    "track",
    "wbr",
}
_BLOCK_TAGS = {"p", "div", "li", "tr", "section", "article", "main", "h1", "h2", "h3", "h4", "h5", "h6", "blockquote"}

_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tiff", ".ico")
_IMAGE_REJECT_PATTERNS = (
    "grey-box",
    "placeholder",
    "spacer",
    "blank",
    "transparent",
    "1x1",
    "pixel",
    "loading",
    "spinner",
    "icon",
    "svg",
)
_HAS_WORD_RE = re.compile(r"[A-Za-z]{2,}")


def _accept_image(src: str, page_url: str) -> str | None:
    if not (src.startswith("http") or src.startswith("/")):
        return None
    absolute = urljoin(page_url, src)
    low = absolute.lower()
    if any(p in low for p in _IMAGE_REJECT_PATTERNS):
        return None
    if not any(ext in low for ext in _IMAGE_EXTENSIONS):
        return None
    return absolute


class _PageParser(HTMLParser):
    def __init__(self, page_url: str) -> None:
        super().__init__(convert_charrefs=True)
        self.page_url = page_url
        self.in_head = False
        self.in_title = False
        self.in_h1 = False
        self._title_parts: list[str] = []
        self._h1_parts: list[str] = []
        self._chunks: list[str] = []
        self._skip_depth = 0
        self._skip_tag_stack: list[str] = []
        self.description: str | None = None
        self.images: list[ImageRef] = []

    @staticmethod
    def _attrs_dict(attrs: list[tuple[str, str | None]]) -> dict[str, str]:
        return {k.lower(): v for k, v in attrs if isinstance(v, str)}

    def _handle_void(self, tag: str, attrs: dict[str, str]) -> None:
        if tag == "meta":
            name = (attrs.get("name") or "").lower()
            content = (attrs.get("content") or "").strip()
            if name == "description" and content and self.description is None:
                self.description = content
            return
        if self._skip_depth > 0:
            return
        if tag == "br":
            self._chunks.append("\n")
        elif tag == "img":
            raw = attrs.get("src") or attrs.get("data-src") or attrs.get("data-lazy-src")
            src = _accept_image(raw, self.page_url) if raw else None
            if src:
                self.images.append(
                    ImageRef(src=src, alt=attrs.get("alt") or None, title=attrs.get("title") or None)
                )

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        tag = tag.lower()
        attrs_d = self._attrs_dict(attrs)

        if tag in _VOID_TAGS:
            self._handle_void(tag, attrs_d)
            return
        if tag == "head":
            self.in_head = True
            return
        if tag == "title" and self._skip_depth == 0 and not self._title_parts:
            self.in_title = True
            return

        role = (attrs_d.get("role") or "").lower()
        if self._skip_depth > 0 or tag in _SKIP_TAGS or role in _SKIP_ROLES:
            self._skip_depth += 1
            self._skip_tag_stack.append(tag)
            return
        if tag == "h1" and not self._h1_parts:
            self.in_h1 = True

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self.handle_starttag(tag, attrs)

    def handle_endtag(self, tag: str) -> None:
        tag = tag.lower()
        if tag == "head":
            self.in_head = False
            return
        if tag == "title" and self.in_title:
            self.in_title = False
            return
        if self._skip_depth > 0 and self._skip_tag_stack:
            while self._skip_tag_stack:
                popped = self._skip_tag_stack.pop()
                self._skip_depth -= 1
                if popped == tag:
                    break
            return
        if tag == "h1":
            self.in_h1 = False
        if tag in _BLOCK_TAGS:
            self._chunks.append("\n")

    def handle_data(self, data: str) -> None:
        if self.in_title:
            self._title_parts.append(data)
            return
        if self.in_head or self._skip_depth > 0:
            return
        if self.in_h1:
            self._h1_parts.append(data)
        if data.strip():
            self._chunks.append(data)
            self._chunks.append(" ")

    def title(self) -> str:
        title = "".join(self._title_parts).strip()
        return title or "".join(self._h1_parts).strip()

    def text(self) -> str:
        return "".join(self._chunks)


def parse_html_document(html_text: str, *, url: str) -> ScrapedDocument:
    parser = _PageParser(url)
    parser.feed(html_text)
    parser.close()

    lines = normalize_text(parser.text()).split("\n")
    # Keep blank lines (paragraph breaks) and lines that carry at least one real word.
    content = "\n".join(line for line in lines if not line or _HAS_WORD_RE.search(line))
    return ScrapedDocument(
        url=url,
        title=clean_title(parser.title()),
        content=normalize_text(content),
        description=parser.description,
        timestamp=now_ms(),
        images=normalize_images(parser.images),
    )


class StaticHtmlFetcher:
    """
    Plain GET + HTML parsing. Does not run JavaScript.
    """

    name = "static"

    def __init__(self, *, timeout_s: float = 15.0, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout_s = timeout_s
        self._transport = transport

    async def fetch_document(self, url: str) -> ScrapedDocument | None:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_s,
                headers=BROWSER_HEADERS,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                resp = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Static fetch failed for %s: %s", url, e)
            return None
        if not resp.is_success:
            logger.warning("Static fetch for %s returned HTTP %d", url, resp.status_code)
            return None
        content_type = (resp.headers.get("content-type") or "").lower()
        if content_type and "html" not in content_type and not content_type.startswith("text/"):
            logger.warning("Skipping %s: unsupported content type %s", url, content_type)
            return None

        doc = parse_html_document(resp.text, url=url)
        logger.info("Fetched %s: %d chars, %d images", url, len(doc.content), len(doc.images))
        return doc

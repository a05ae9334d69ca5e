from __future__ import annotations

import re
from collections.abc import Iterable

from web_scrape_indexer.chunking import MAX_CONTENT_LENGTH
from web_scrape_indexer.models import ImageRef

MAX_IMAGES_PER_PAGE = 20

_WS_RE = re.compile(r"[ \t\r\f\v]+")
_NL_RE = re.compile(r"\n\s*\n\s*(?:\n\s*)+")
_TITLE_SEP_RE = re.compile(r"\s+[|\-–—]\s+|\|")


def normalize_text(text: str, *, max_chars: int = MAX_CONTENT_LENGTH) -> str:
    text = (text or "").replace("\x00", "").replace("\u200b", "")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _WS_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _NL_RE.sub("\n\n", text)
    text = text.strip()
    if len(text) > max_chars:
        text = text[:max_chars]
    return text


def clean_title(title: str | None, *, fallback: str = "Untitled Page") -> str:
    """
    Drop the site-name suffix, e.g. "Pricing | Acme" -> "Pricing".
    """
    text = re.sub(r"\s+", " ", title or "").strip()
    if not text:
        return fallback
    head = _TITLE_SEP_RE.split(text, maxsplit=1)[0].strip()
    return head or text


def normalize_images(images: Iterable[ImageRef], *, limit: int = MAX_IMAGES_PER_PAGE) -> tuple[ImageRef, ...]:
    seen: set[str] = set()
    out: list[ImageRef] = []
    for img in images:
        if not img.src or img.src in seen:
            continue
        seen.add(img.src)
        out.append(img)
        if len(out) >= limit:
            break
    return tuple(out)

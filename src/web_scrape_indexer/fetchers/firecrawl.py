from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from web_scrape_indexer.fetchers.base import now_ms
from web_scrape_indexer.models import ImageRef, ScrapedDocument
from web_scrape_indexer.normalize import clean_title, normalize_images, normalize_text
from web_scrape_indexer.util import truncate

logger = logging.getLogger(__name__)

_MARKDOWN_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)\s]+)[^)]*\)")


def markdown_images(markdown: str, *, og_image: str | None = None) -> list[ImageRef]:
    images: list[ImageRef] = []
    if og_image:
        images.append(ImageRef(src=og_image, alt="Open Graph Image"))
    for m in _MARKDOWN_IMAGE_RE.finditer(markdown):
        alt, src = m.group(1), m.group(2)
        if src.startswith("http"):
            images.append(ImageRef(src=src, alt=alt or None))
    return images


def parse_scrape_response(payload: dict[str, Any], *, url: str) -> ScrapedDocument | None:
    if not payload.get("success") or not isinstance(payload.get("data"), dict):
        logger.warning("Firecrawl could not scrape %s: %s", url, payload.get("error") or "unknown error")
        return None
    data = payload["data"]
    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    markdown = data.get("markdown") or ""
    description = (metadata.get("description") or "").strip() or None
    return ScrapedDocument(
        url=url,
        title=clean_title(metadata.get("title"), fallback="Untitled"),
        content=normalize_text(markdown),
        description=description,
        timestamp=now_ms(),
        images=normalize_images(markdown_images(markdown, og_image=metadata.get("ogImage"))),
    )


class FirecrawlFetcher:
    """
    Firecrawl `/v1/scrape` client returning LLM-ready markdown.

    The same API is served by the hosted service and by a self-hosted (Docker)
    instance; the two differ only in base URL and whether an API key is required.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None = None,
        name: str = "firecrawl",
        timeout_s: float = 60.0,
        wait_for_ms: int = 2000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.name = name
        self.timeout_s = timeout_s
        self.wait_for_ms = wait_for_ms
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def fetch_document(self, url: str) -> ScrapedDocument | None:
        body = {
            "url": url,
            "formats": ["markdown"],
            "onlyMainContent": True,
            "waitFor": self.wait_for_ms,
        }
        endpoint = self.base_url.rstrip("/") + "/v1/scrape"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                resp = await client.post(endpoint, headers=self._headers(), json=body)
        except httpx.TimeoutException:
            logger.warning("%s timed out for %s", self.name, url)
            return None
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("%s request failed for %s: %s", self.name, url, e)
            return None
        if not resp.is_success:
            logger.warning("%s API error for %s: HTTP %d - %s", self.name, url, resp.status_code, truncate(resp.text, 300))
            return None
        try:
            payload = resp.json()
        except ValueError:
            logger.warning("%s returned a non-JSON body for %s", self.name, url)
            return None

        doc = parse_scrape_response(payload, url=url)
        if doc is not None:
            logger.info("Fetched %s via %s: %d chars, %d images", url, self.name, len(doc.content), len(doc.images))
        return doc

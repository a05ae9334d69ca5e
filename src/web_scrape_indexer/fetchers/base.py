from __future__ import annotations

import time
from typing import Protocol

from web_scrape_indexer.models import ScrapedDocument

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


class DocumentFetcher(Protocol):
    name: str

    async def fetch_document(self, url: str) -> ScrapedDocument | None: ...


def now_ms() -> int:
    return int(time.time() * 1000)

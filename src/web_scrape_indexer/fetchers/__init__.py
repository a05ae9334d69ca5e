from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence

import httpx

from web_scrape_indexer.config import Settings
from web_scrape_indexer.fetchers.base import DocumentFetcher
from web_scrape_indexer.fetchers.firecrawl import FirecrawlFetcher
from web_scrape_indexer.fetchers.static_html import StaticHtmlFetcher
from web_scrape_indexer.models import ScrapedDocument

logger = logging.getLogger(__name__)

ENGINES = ("static", "firecrawl", "firecrawl-docker")

__all__ = [
    "ENGINES",
    "DocumentFetcher",
    "FirecrawlFetcher",
    "StaticHtmlFetcher",
    "build_fetchers",
    "fetch_documents",
    "fetch_with_fallback",
]


def build_fetchers(
    engine: str,
    settings: Settings,
    *,
    firecrawl_docker_url: str | None = None,
    firecrawl_docker_key: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[DocumentFetcher]:
    """
    Ordered fetchers for an engine: the requested backend first, static HTML as the fallback.
    """
    if engine not in ENGINES:
        raise ValueError(f"Unknown scraper engine {engine!r}; expected one of {', '.join(ENGINES)}")

    static = StaticHtmlFetcher(transport=transport)
    if engine == "static":
        return [static]

    if engine == "firecrawl":
        if not settings.firecrawl_api_key:
            logger.warning("FIRECRAWL_API_KEY not configured; using static HTML fetching only")
            return [static]
        primary = FirecrawlFetcher(
            base_url=settings.firecrawl_api_url,
            api_key=settings.firecrawl_api_key,
            name="firecrawl",
            transport=transport,
        )
    else:
        primary = FirecrawlFetcher(
            base_url=firecrawl_docker_url or settings.firecrawl_docker_url,
            api_key=firecrawl_docker_key or settings.firecrawl_docker_api_key,
            name="firecrawl-docker",
            transport=transport,
        )
    return [primary, static]


async def fetch_with_fallback(url: str, fetchers: Sequence[DocumentFetcher]) -> ScrapedDocument | None:
    for fetcher in fetchers:
        try:
            doc = await fetcher.fetch_document(url)
        except Exception:  # noqa: BLE001
            logger.warning("%s fetcher raised for %s", fetcher.name, url, exc_info=True)
            doc = None
        if doc is not None:
            return doc
        logger.info("%s returned nothing for %s", fetcher.name, url)
    logger.warning("All fetchers failed for %s", url)
    return None


async def fetch_documents(
    urls: Sequence[str],
    fetchers: Sequence[DocumentFetcher],
    *,
    concurrency: int = 3,
    delay_s: float = 0.3,
) -> AsyncIterator[ScrapedDocument]:
    """
    Fetch up to `concurrency` URLs at a time and yield the documents in URL order.

    A URL that no fetcher could handle yields nothing.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")
    for i in range(0, len(urls), concurrency):
        group = urls[i : i + concurrency]
        logger.info("Fetching %d-%d of %d", i + 1, i + len(group), len(urls))
        docs = await asyncio.gather(*(fetch_with_fallback(u, fetchers) for u in group))
        for doc in docs:
            if doc is not None:
                yield doc
        if delay_s > 0 and i + concurrency < len(urls):
            await asyncio.sleep(delay_s)

from __future__ import annotations

from collections.abc import Callable

import pytest

from fakes import CallbackRecorder, FakeRedis, FakeVectorServer
from web_scrape_indexer.models import ScrapedDocument


@pytest.fixture()
def vector_server() -> FakeVectorServer:
    return FakeVectorServer()


@pytest.fixture()
def redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def callbacks() -> CallbackRecorder:
    return CallbackRecorder()


@pytest.fixture()
def make_doc() -> Callable[..., ScrapedDocument]:
    def _make(
        n: int = 1,
        *,
        content: str | None = None,
        title: str | None = None,
        description: str | None = None,
    ) -> ScrapedDocument:
        return ScrapedDocument(
            url=f"https://example.com/page-{n}",
            title=title if title is not None else f"Page {n}",
            content=content if content is not None else f"Page {n} explains how the product works in detail. " * 3,
            description=description,
            timestamp=1_700_000_000_000 + n,
        )

    return _make

from __future__ import annotations

from collections.abc import Callable

import pytest

from fakes import FakeVectorServer
from web_scrape_indexer.indexer import ContentIndexer, build_records
from web_scrape_indexer.models import ImageRef, ScrapedDocument

LONG_CONTENT = "\n\n".join(
    f"Paragraph {i}. " + "This sentence describes one feature of the product in some depth. " * 6
    for i in range(8)
)


def _indexer(server: FakeVectorServer) -> ContentIndexer:
    return ContentIndexer(vector_store=server.client(), chunk_delay_s=0)


def test_build_records_single_chunk_has_no_section_marker(make_doc: Callable[..., ScrapedDocument]) -> None:
    doc = make_doc(1, title="Pricing", description="Plans and prices")
    records = build_records(doc, ["only chunk"], brand_slug="acme", job_id="job1")

    assert len(records) == 1
    assert records[0].data == "Pricing\n\nonly chunk"
    meta = records[0].metadata
    assert meta["url"] == doc.url
    assert meta["brandSlug"] == "acme"
    assert meta["chunkIndex"] == 0
    assert meta["totalChunks"] == 1
    assert meta["timestamp"] == doc.timestamp
    assert meta["jobId"] == "job1"
    assert meta["description"] == "Plans and prices"


def test_build_records_page_fields_only_on_first_chunk() -> None:
    doc = ScrapedDocument(
        url="https://example.com/a",
        title="About",
        content="irrelevant",
        description="desc",
        timestamp=1,
        images=tuple(ImageRef(src=f"https://example.com/{i}.png") for i in range(8)),
    )
    records = build_records(doc, ["one", "two", "three"], brand_slug="acme")

    assert records[0].data == "About\n\nSection 1 of 3\n\none"
    assert records[2].data == "About\n\nSection 3 of 3\n\nthree"
    assert records[0].metadata["description"] == "desc"
    assert len(records[0].metadata["images"]) == 5
    for r in records[1:]:
        assert "description" not in r.metadata
        assert "images" not in r.metadata
    assert "jobId" not in records[0].metadata


@pytest.mark.asyncio
async def test_index_document_upserts_each_chunk_in_order(vector_server: FakeVectorServer, make_doc) -> None:
    doc = make_doc(1, content=LONG_CONTENT)
    result = await _indexer(vector_server).index_document(doc, brand_slug="acme")

    assert result.success is True
    assert result.chunks_indexed > 1
    assert len(vector_server.requests) == result.chunks_indexed
    assert all(len(body) == 1 for body in vector_server.requests)
    indexes = [body[0]["metadata"]["chunkIndex"] for body in vector_server.requests]
    assert indexes == list(range(result.chunks_indexed))


@pytest.mark.asyncio
async def test_index_document_combines_description_and_content(vector_server: FakeVectorServer, make_doc) -> None:
    doc = make_doc(1, content="Body text that is long enough to become a chunk on its own.", description="Lead")
    result = await _indexer(vector_server).index_document(doc, brand_slug="acme")

    assert result.success is True
    (body,) = vector_server.requests
    assert body[0]["data"] == f"{doc.title}\n\nLead\n\n{doc.content}"


@pytest.mark.asyncio
async def test_reindexing_same_document_overwrites(vector_server: FakeVectorServer, make_doc) -> None:
    indexer = _indexer(vector_server)
    doc = make_doc(1, content=LONG_CONTENT)
    first = await indexer.index_document(doc, brand_slug="acme")
    ids_after_first = set(vector_server.records)
    second = await indexer.index_document(doc, brand_slug="acme")

    assert first.chunks_indexed == second.chunks_indexed
    assert set(vector_server.records) == ids_after_first
    assert len(vector_server.records) == first.chunks_indexed


@pytest.mark.asyncio
async def test_too_short_content_is_a_successful_no_op(vector_server: FakeVectorServer, make_doc) -> None:
    doc = make_doc(1, content="tiny")
    result = await _indexer(vector_server).index_document(doc, brand_slug="acme")
    assert result.success is True
    assert result.chunks_indexed == 0
    assert result.error is None
    assert vector_server.requests == []


@pytest.mark.asyncio
async def test_upsert_failure_aborts_remaining_chunks(make_doc) -> None:
    server = FakeVectorServer(fail_when=lambda r: r["metadata"]["chunkIndex"] == 0)
    content = "\n\n".join(["A paragraph of text that fills out the page. " * 20] * 3)
    doc = make_doc(1, content=content)

    result = await _indexer(server).index_document(doc, brand_slug="acme", chunk_size=1000, chunk_overlap=200)

    assert result.success is False
    assert result.chunks_indexed == 0
    assert result.error is not None and "500" in result.error
    assert len(server.requests) == 1
    assert server.records == {}


@pytest.mark.asyncio
async def test_failure_mid_document_keeps_earlier_chunks(make_doc) -> None:
    server = FakeVectorServer(fail_when=lambda r: r["metadata"]["chunkIndex"] == 1)
    doc = make_doc(1, content=LONG_CONTENT)

    result = await _indexer(server).index_document(doc, brand_slug="acme")

    assert result.success is False
    assert result.chunks_indexed == 0
    assert len(server.records) == 1
    assert len(server.requests) == 2


@pytest.mark.asyncio
async def test_index_documents_aggregates(make_doc) -> None:
    server = FakeVectorServer(fail_when=lambda r: r["metadata"]["url"].endswith("page-2"))
    docs = [make_doc(1), make_doc(2), make_doc(3)]

    result = await _indexer(server).index_documents(docs, brand_slug="acme")

    assert result.total_indexed == 2
    assert result.failed == 1
    assert result.total_chunks == 2
    assert len(result.errors) == 1
    assert result.errors[0].startswith("https://example.com/page-2: ")

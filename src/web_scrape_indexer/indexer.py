from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from web_scrape_indexer.chunking import chunk_text
from web_scrape_indexer.models import IndexResult, ScrapedDocument, VectorRecord
from web_scrape_indexer.util import chunk_vector_id
from web_scrape_indexer.vector_store import VectorStoreClient, VectorStoreError

logger = logging.getLogger(__name__)

MAX_METADATA_IMAGES = 5


@dataclass(frozen=True)
class BulkIndexResult:
    total_indexed: int
    total_chunks: int
    failed: int
    errors: list[str]


def _embedding_input(title: str, chunk: str, index: int, total: int) -> str:
    parts = [title.strip()] if title and title.strip() else []
    if total > 1:
        parts.append(f"Section {index + 1} of {total}")
    parts.append(chunk)
    return "\n\n".join(parts)


def build_records(
    doc: ScrapedDocument,
    chunks: list[str],
    *,
    brand_slug: str,
    job_id: str | None = None,
) -> list[VectorRecord]:
    total = len(chunks)
    records: list[VectorRecord] = []
    for i, chunk in enumerate(chunks):
        metadata: dict[str, Any] = {
            "url": doc.url,
            "title": doc.title,
            "brandSlug": brand_slug,
            "chunkIndex": i,
            "totalChunks": total,
            "timestamp": doc.timestamp,
        }
        if job_id:
            metadata["jobId"] = job_id
        # Page-level fields go on the first chunk only.
        if i == 0:
            if doc.description:
                metadata["description"] = doc.description
            if doc.images:
                metadata["images"] = [img.to_dict() for img in doc.images[:MAX_METADATA_IMAGES]]
        records.append(
            VectorRecord(
                id=chunk_vector_id(brand_slug=brand_slug, url=doc.url, chunk_index=i),
                data=_embedding_input(doc.title, chunk, i, total),
                metadata=metadata,
            )
        )
    return records


@dataclass
class ContentIndexer:
    """
    Chunks one scraped page and upserts the chunks one request at a time.

    The vector store computes embeddings from each record's `data`.
    """

    vector_store: VectorStoreClient
    chunk_size: int = 1000
    chunk_overlap: int = 200
    chunk_delay_s: float = 0.05

    async def index_document(
        self,
        doc: ScrapedDocument,
        *,
        brand_slug: str,
        job_id: str | None = None,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ) -> IndexResult:
        combined = "\n\n".join(p for p in (doc.description, doc.content) if p)
        chunks = chunk_text(
            text=combined,
            chunk_size=chunk_size or self.chunk_size,
            chunk_overlap=self.chunk_overlap if chunk_overlap is None else chunk_overlap,
        )
        if not chunks:
            logger.info("No valid chunks for %s", doc.url)
            return IndexResult(success=True, chunks_indexed=0)

        records = build_records(doc, [c.text for c in chunks], brand_slug=brand_slug, job_id=job_id)
        indexed = 0
        try:
            for i, record in enumerate(records):
                if i > 0 and self.chunk_delay_s > 0:
                    await asyncio.sleep(self.chunk_delay_s)
                await self.vector_store.upsert([record])
                indexed += 1
        except VectorStoreError as e:
            # Chunks already sent stay in the index; their ids make a later retry overwrite them.
            logger.warning("Failed to index %s after %d/%d chunks: %s", doc.url, indexed, len(records), e)
            return IndexResult(success=False, chunks_indexed=0, error=str(e))

        logger.info("Indexed %d chunks for %s", indexed, doc.url)
        return IndexResult(success=True, chunks_indexed=indexed)

    async def index_documents(
        self,
        docs: list[ScrapedDocument],
        *,
        brand_slug: str,
        job_id: str | None = None,
    ) -> BulkIndexResult:
        total_indexed = 0
        total_chunks = 0
        failed = 0
        errors: list[str] = []
        for doc in docs:
            result = await self.index_document(doc, brand_slug=brand_slug, job_id=job_id)
            if result.success:
                total_indexed += 1
                total_chunks += result.chunks_indexed
            else:
                failed += 1
                if result.error:
                    errors.append(f"{doc.url}: {result.error}")
        return BulkIndexResult(
            total_indexed=total_indexed,
            total_chunks=total_chunks,
            failed=failed,
            errors=errors,
        )

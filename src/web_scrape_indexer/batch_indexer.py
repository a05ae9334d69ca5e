from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable

import httpx

from web_scrape_indexer.callbacks import CallbackPayload, send_callback
from web_scrape_indexer.indexer import ContentIndexer
from web_scrape_indexer.job_status import JobStatusStore
from web_scrape_indexer.models import BatchProgress, IndexerStats, ScrapedDocument
from web_scrape_indexer.vector_store import CredentialsMissingError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
MAX_RETAINED_ERRORS = 100

ProgressCallback = Callable[[BatchProgress], "Awaitable[None] | None"]


class IncrementalBatchIndexer:
    """
    Indexes scraped pages in small batches while scraping is still running.

    `add` blocks while a triggered batch is being indexed, so at most `batch_size` pages
    sit in memory and at most one batch of progress is lost if the process dies.
    After every batch the cumulative progress goes to `on_progress`, the job status
    store and the callback URL; a failure in any of those is logged and indexing goes on.
    Call `flush` once scraping is done to index the remainder.
    """

    def __init__(
        self,
        *,
        content_indexer: ContentIndexer,
        brand_slug: str,
        job_id: str | None = None,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        on_progress: ProgressCallback | None = None,
        status_store: JobStatusStore | None = None,
        callback_url: str | None = None,
        callback_secret: str | None = None,
        callback_transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not brand_slug:
            raise ValueError("brand_slug is required")
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        self._content_indexer = content_indexer
        self.brand_slug = brand_slug
        self.job_id = job_id
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.batch_size = batch_size
        self._on_progress = on_progress
        self._status_store = status_store
        self._callback_url = callback_url
        self._callback_secret = callback_secret
        self._callback_transport = callback_transport

        self._buffer: list[ScrapedDocument] = []
        self._total_indexed = 0
        self._total_failed = 0
        self._total_chunks = 0
        self._batch_number = 0
        self._errors: list[str] = []

        logger.info("Incremental batch indexer ready (batch size %d)", batch_size)

    async def add(self, doc: ScrapedDocument) -> None:
        self._buffer.append(doc)
        if len(self._buffer) >= self.batch_size:
            await self._flush_buffer()

    async def add_multiple(self, docs: Iterable[ScrapedDocument]) -> None:
        for doc in docs:
            await self.add(doc)

    async def flush(self) -> None:
        if self._buffer:
            await self._flush_buffer()

    def has_pending(self) -> bool:
        return bool(self._buffer)

    @property
    def pending_count(self) -> int:
        return len(self._buffer)

    def get_stats(self) -> IndexerStats:
        return IndexerStats(
            total_indexed=self._total_indexed,
            total_failed=self._total_failed,
            total_chunks=self._total_chunks,
            batch_count=self._batch_number,
            errors=list(self._errors),
            pending_count=len(self._buffer),
        )

    def _record_error(self, message: str) -> None:
        if len(self._errors) < MAX_RETAINED_ERRORS:
            self._errors.append(message)

    async def _flush_buffer(self) -> None:
        batch, self._buffer = self._buffer, []
        self._batch_number += 1
        batch_number = self._batch_number
        logger.info("Batch %d: indexing %d pages", batch_number, len(batch))

        batch_urls: list[str] = []
        batch_errors: list[str] = []
        batch_indexed = 0
        batch_failed = 0
        batch_chunks = 0

        for doc in batch:
            try:
                result = await self._content_indexer.index_document(
                    doc,
                    brand_slug=self.brand_slug,
                    job_id=self.job_id,
                    chunk_size=self.chunk_size,
                    chunk_overlap=self.chunk_overlap,
                )
            except CredentialsMissingError:
                raise
            except Exception as e:  # noqa: BLE001
                logger.exception("Failed to index %s", doc.url)
                batch_failed += 1
                batch_errors.append(f"{doc.url}: {e}")
                continue

            if result.success:
                batch_indexed += 1
                batch_chunks += result.chunks_indexed
                batch_urls.append(doc.url)
            else:
                batch_failed += 1
                if result.error:
                    batch_errors.append(f"{doc.url}: {result.error}")

        self._total_indexed += batch_indexed
        self._total_failed += batch_failed
        self._total_chunks += batch_chunks
        for err in batch_errors:
            self._record_error(err)

        logger.info(
            "Batch %d complete: %d/%d indexed (%d chunks); total %d indexed, %d failed",
            batch_number,
            batch_indexed,
            len(batch),
            batch_chunks,
            self._total_indexed,
            self._total_failed,
        )

        progress = BatchProgress(
            indexed_count=self._total_indexed,
            failed_count=self._total_failed,
            chunks_indexed=self._total_chunks,
            batch_number=batch_number,
            batch_urls=batch_urls,
            batch_errors=batch_errors,
        )
        await self._report_progress(progress)

    async def _report_progress(self, progress: BatchProgress) -> None:
        if self._on_progress is not None:
            try:
                maybe = self._on_progress(progress)
                if inspect.isawaitable(maybe):
                    await maybe
            except Exception:  # noqa: BLE001
                logger.warning("Progress callback failed for batch %d", progress.batch_number, exc_info=True)

        if self.job_id and self._status_store is not None:
            try:
                await self._status_store.update_progress(
                    self.job_id,
                    progress.indexed_count,
                    progress.failed_count,
                    progress.chunks_indexed,
                )
                await self._status_store.mark_batch_completed(
                    self.job_id, progress.batch_number, progress.batch_urls
                )
            except Exception:  # noqa: BLE001
                logger.warning("Failed to update job status for batch %d", progress.batch_number, exc_info=True)

        if self._callback_url:
            payload = CallbackPayload(
                job_id=self.job_id or "unknown",
                status="progress",
                indexed=progress.indexed_count,
                failed=progress.failed_count,
                total=progress.indexed_count + progress.failed_count,
                batch_number=progress.batch_number,
                batch_urls=progress.batch_urls,
            )
            try:
                await send_callback(
                    self._callback_url,
                    payload,
                    secret=self._callback_secret,
                    transport=self._callback_transport,
                )
            except Exception:  # noqa: BLE001
                logger.warning("Progress callback for batch %d failed", progress.batch_number, exc_info=True)

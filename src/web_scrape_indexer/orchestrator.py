from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

import httpx

from web_scrape_indexer.batch_indexer import DEFAULT_BATCH_SIZE, IncrementalBatchIndexer
from web_scrape_indexer.callbacks import CallbackPayload, send_callback
from web_scrape_indexer.fetchers import DocumentFetcher, fetch_documents
from web_scrape_indexer.indexer import ContentIndexer
from web_scrape_indexer.job_status import JobStatusStore, terminal_status
from web_scrape_indexer.models import JobStatus
from web_scrape_indexer.sharding import shard_urls
from web_scrape_indexer.vector_store import CredentialsMissingError, VectorCredentials, VectorStoreClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobOptions:
    urls: list[str]
    brand_slug: str = "default"
    job_id: str | None = None
    concurrency: int = 3
    batch_size: int = DEFAULT_BATCH_SIZE
    chunk_size: int = 1000
    chunk_overlap: int = 200
    callback_url: str | None = None
    callback_secret: str | None = None
    vector_credentials: VectorCredentials | None = None
    # Sharded runs: 1-based shard id and the shard count of the whole job.
    chunk_id: int | None = None
    total_chunks: int | None = None

    @property
    def is_sharded(self) -> bool:
        return self.chunk_id is not None and self.total_chunks is not None


@dataclass(frozen=True)
class JobOutcome:
    status: JobStatus
    indexed: int
    failed: int
    total: int
    chunks: int
    errors: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def exit_code(self) -> int:
        return 1 if self.failed > self.indexed else 0


async def run_job(
    options: JobOptions,
    *,
    vector_store: VectorStoreClient,
    fetchers: Sequence[DocumentFetcher],
    status_store: JobStatusStore | None = None,
    callback_transport: httpx.AsyncBaseTransport | None = None,
    fetch_delay_s: float = 0.3,
) -> JobOutcome:
    """
    Scrape the job's URLs and index them batch by batch, then record the final status
    and notify the caller.

    Raises CredentialsMissingError before any work when no vector store credentials
    are available; nothing is written and no callback is sent in that case.
    """
    if options.vector_credentials is not None:
        vector_store.set_dynamic_credentials(options.vector_credentials)
    vector_store.resolve_credentials()

    urls = list(options.urls)
    if options.is_sharded:
        urls = shard_urls(options.urls, options.chunk_id, options.total_chunks)  # type: ignore[arg-type]
        logger.info("Shard %d/%d: %d of %d URLs", options.chunk_id, options.total_chunks, len(urls), len(options.urls))

    job_id = options.job_id
    if job_id and status_store is not None:
        await status_store.mark_job_started(job_id, len(options.urls))
        if options.is_sharded:
            await status_store.set_chunks_total(job_id, options.total_chunks)  # type: ignore[arg-type]
    elif job_id:
        logger.info("Redis not configured; job status tracking disabled")

    indexer = IncrementalBatchIndexer(
        content_indexer=ContentIndexer(vector_store=vector_store),
        brand_slug=options.brand_slug,
        job_id=job_id,
        chunk_size=options.chunk_size,
        chunk_overlap=options.chunk_overlap,
        batch_size=options.batch_size,
        status_store=status_store,
        callback_url=options.callback_url,
        callback_secret=options.callback_secret,
        callback_transport=callback_transport,
    )

    error: str | None = None
    try:
        async for doc in fetch_documents(urls, fetchers, concurrency=options.concurrency, delay_s=fetch_delay_s):
            await indexer.add(doc)
        await indexer.flush()
    except CredentialsMissingError:
        raise
    except Exception as e:  # noqa: BLE001
        logger.exception("Job %s aborted", job_id or "(no id)")
        error = str(e) or e.__class__.__name__
        if job_id and status_store is not None:
            await status_store.record_job_error(job_id, error)

    stats = indexer.get_stats()
    indexed = stats.total_indexed
    # Pages that could not be fetched count as failed along with indexing failures.
    failed = len(urls) - indexed
    logger.info(
        "Indexing results: %d indexed (%d chunks), %d failed of %d URLs",
        indexed,
        stats.total_chunks,
        failed,
        len(urls),
    )
    for err in stats.errors[:5]:
        logger.warning("  - %s", err)

    report_indexed, report_failed, report_total = indexed, failed, len(urls)
    send_terminal = True
    if job_id and status_store is not None:
        if options.is_sharded:
            send_terminal = await status_store.mark_chunk_completed(
                job_id, options.chunk_id, indexed, failed  # type: ignore[arg-type]
            )
            if send_terminal:
                record = await status_store.get_job_status(job_id)
                if record is not None:
                    report_indexed, report_failed, report_total = record.indexed, record.failed, record.total
        else:
            await status_store.mark_job_completed(job_id, indexed, failed)

    status = terminal_status(report_indexed, report_failed)
    if options.callback_url and send_terminal:
        await send_callback(
            options.callback_url,
            CallbackPayload(
                job_id=job_id or "unknown",
                status=status,
                indexed=report_indexed,
                failed=report_failed,
                total=report_total,
            ),
            secret=options.callback_secret,
            transport=callback_transport,
        )

    return JobOutcome(
        status=terminal_status(indexed, failed),
        indexed=indexed,
        failed=failed,
        total=len(urls),
        chunks=stats.total_chunks,
        errors=stats.errors,
        error=error,
    )

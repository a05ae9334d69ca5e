from web_scrape_indexer.batch_indexer import IncrementalBatchIndexer
from web_scrape_indexer.callbacks import CallbackPayload, send_callback
from web_scrape_indexer.chunking import TextChunk, chunk_text
from web_scrape_indexer.config import Settings, load_settings
from web_scrape_indexer.indexer import ContentIndexer
from web_scrape_indexer.job_status import JobStatusStore
from web_scrape_indexer.models import (
    BatchProgress,
    ImageRef,
    IndexerStats,
    IndexResult,
    JobRecord,
    ScrapedDocument,
    VectorRecord,
)
from web_scrape_indexer.orchestrator import JobOptions, JobOutcome, run_job
from web_scrape_indexer.util import chunk_vector_id
from web_scrape_indexer.vector_store import (
    CredentialsMissingError,
    UpsertFailedError,
    VectorCredentials,
    VectorStoreClient,
    VectorStoreError,
    VectorStoreTimeoutError,
)

__all__ = [
    "__version__",
    "BatchProgress",
    "CallbackPayload",
    "ContentIndexer",
    "CredentialsMissingError",
    "ImageRef",
    "IncrementalBatchIndexer",
    "IndexResult",
    "IndexerStats",
    "JobOptions",
    "JobOutcome",
    "JobRecord",
    "JobStatusStore",
    "ScrapedDocument",
    "Settings",
    "TextChunk",
    "UpsertFailedError",
    "VectorCredentials",
    "VectorRecord",
    "VectorStoreClient",
    "VectorStoreError",
    "VectorStoreTimeoutError",
    "chunk_text",
    "chunk_vector_id",
    "load_settings",
    "run_job",
    "send_callback",
]

__version__ = "0.0.0"

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal
from urllib.parse import urlparse

JobStatus = Literal["pending", "running", "completed", "failed"]


@dataclass(frozen=True)
class ImageRef:
    src: str
    alt: str | None = None
    title: str | None = None

    def to_dict(self) -> dict[str, str]:
        out = {"src": self.src}
        if self.alt:
            out["alt"] = self.alt
        if self.title:
            out["title"] = self.title
        return out


@dataclass(frozen=True)
class ScrapedDocument:
    """
    One fetched page, as produced by an extraction backend.

    `timestamp` is the capture time in epoch milliseconds.
    """

    url: str
    title: str
    content: str
    timestamp: int
    description: str | None = None
    images: tuple[ImageRef, ...] = ()

    def __post_init__(self) -> None:
        parsed = urlparse(self.url or "")
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"ScrapedDocument.url must be an absolute URL, got {self.url!r}")


@dataclass(frozen=True)
class VectorRecord:
    id: str
    data: str
    metadata: dict[str, Any]

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "data": self.data, "metadata": self.metadata}


@dataclass(frozen=True)
class IndexResult:
    success: bool
    chunks_indexed: int
    error: str | None = None


@dataclass(frozen=True)
class BatchProgress:
    # indexed_count, failed_count and chunks_indexed are cumulative for the whole job
    indexed_count: int
    failed_count: int
    chunks_indexed: int
    batch_number: int
    batch_urls: list[str] = field(default_factory=list)
    batch_errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class IndexerStats:
    total_indexed: int
    total_failed: int
    total_chunks: int
    batch_count: int
    errors: list[str]
    pending_count: int


@dataclass(frozen=True)
class JobRecord:
    job_id: str
    status: JobStatus
    total: int
    indexed: int
    failed: int
    started_at: str | None = None
    completed_at: str | None = None
    error: str | None = None

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from web_scrape_indexer.config import Settings
from web_scrape_indexer.models import JobRecord, JobStatus

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 86400
KEY_PREFIX = "scrape-job"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def terminal_status(indexed: int, failed: int) -> JobStatus:
    return "failed" if failed > indexed else "completed"


class JobStatusStore:
    """
    Job progress kept in Upstash Redis through its REST API.

    Every key is written with the same TTL. Transport failures are logged and never
    raised: status tracking is advisory and must not break a job. A process without
    Redis configuration has no store at all (see `from_settings`).
    """

    def __init__(
        self,
        *,
        url: str,
        token: str,
        ttl_s: int = DEFAULT_TTL_S,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self._token = token
        self.ttl_s = ttl_s
        self.timeout_s = timeout_s
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> JobStatusStore | None:
        if not settings.redis_url or not settings.redis_token:
            return None
        return cls(
            url=settings.redis_url,
            token=settings.redis_token,
            ttl_s=settings.job_status_ttl_s,
            **kwargs,
        )

    @staticmethod
    def key(job_id: str, name: str) -> str:
        return f"{KEY_PREFIX}:{job_id}:{name}"

    async def _command(self, *args: str | int) -> Any:
        command = [str(a) for a in args]
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                resp = await client.post(
                    self.url,
                    headers={"Authorization": f"Bearer {self._token}"},
                    json=command,
                )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Redis command %s failed: %s", command[0], e)
            return None
        if not resp.is_success:
            logger.warning("Redis command %s failed: HTTP %d", command[0], resp.status_code)
            return None
        try:
            return resp.json().get("result")
        except (ValueError, AttributeError):
            logger.warning("Redis command %s returned an unexpected body", command[0])
            return None

    async def _set(self, key: str, value: str | int) -> None:
        await self._command("SET", key, value, "EX", self.ttl_s)

    async def _get(self, key: str) -> str | None:
        result = await self._command("GET", key)
        return None if result is None else str(result)

    async def mark_job_started(self, job_id: str, total: int) -> None:
        await self._set(self.key(job_id, "status"), "running")
        await self._set(self.key(job_id, "total"), total)
        await self._set(self.key(job_id, "indexed"), 0)
        await self._set(self.key(job_id, "failed"), 0)
        await self._set(self.key(job_id, "started_at"), _now_iso())

    async def update_progress(
        self,
        job_id: str,
        indexed: int,
        failed: int,
        chunks: int | None = None,
    ) -> None:
        await self._set(self.key(job_id, "indexed"), indexed)
        await self._set(self.key(job_id, "failed"), failed)
        if chunks is not None:
            await self._set(self.key(job_id, "chunks_indexed"), chunks)
        await self._set(self.key(job_id, "updated_at"), _now_iso())

    async def mark_job_completed(self, job_id: str, indexed: int, failed: int) -> JobStatus:
        status = terminal_status(indexed, failed)
        await self._set(self.key(job_id, "status"), status)
        await self._set(self.key(job_id, "indexed"), indexed)
        await self._set(self.key(job_id, "failed"), failed)
        await self._set(self.key(job_id, "completed_at"), _now_iso())
        return status

    async def record_job_error(self, job_id: str, error: str) -> None:
        await self._set(self.key(job_id, "error"), error[:1000])

    async def mark_batch_completed(self, job_id: str, batch_number: int, urls: list[str]) -> None:
        await self._set(self.key(job_id, f"batch_{batch_number}"), json.dumps(urls))
        await self._set(self.key(job_id, "last_batch"), batch_number)

    async def get_job_status(self, job_id: str) -> JobRecord | None:
        status = await self._get(self.key(job_id, "status"))
        if not status:
            return None
        return JobRecord(
            job_id=job_id,
            status=status,  # type: ignore[arg-type]
            total=_int(await self._get(self.key(job_id, "total"))),
            indexed=_int(await self._get(self.key(job_id, "indexed"))),
            failed=_int(await self._get(self.key(job_id, "failed"))),
            started_at=await self._get(self.key(job_id, "started_at")),
            completed_at=await self._get(self.key(job_id, "completed_at")),
            error=await self._get(self.key(job_id, "error")),
        )

    async def set_chunks_total(self, job_id: str, total_chunks: int) -> None:
        await self._set(self.key(job_id, "chunks_total"), total_chunks)

    async def mark_chunk_completed(
        self,
        job_id: str,
        chunk_id: int,
        indexed: int,
        failed: int,
    ) -> bool:
        """
        Record one shard's result and finalize the job if it was the last shard.

        Relies on Redis INCR being atomic so exactly one shard sees the final count.
        Nothing here guards against a second finalization if that ever fails to hold.
        """
        await self._set(self.key(job_id, f"chunk_{chunk_id}:completed"), "true")
        await self._set(self.key(job_id, f"chunk_{chunk_id}:indexed"), indexed)
        await self._set(self.key(job_id, f"chunk_{chunk_id}:failed"), failed)

        completed = await self._command("INCR", self.key(job_id, "chunks_completed"))
        total = await self._get(self.key(job_id, "chunks_total"))
        if not completed or not total:
            return False

        completed_n = _int(completed)
        total_n = _int(total)
        logger.info("Shard %d of job %s completed (%d/%d)", chunk_id, job_id, completed_n, total_n)
        if completed_n < total_n:
            return False

        await self._finalize_sharded_job(job_id, total_n)
        return True

    async def _finalize_sharded_job(self, job_id: str, total_chunks: int) -> None:
        total_indexed = 0
        total_failed = 0
        for i in range(1, total_chunks + 1):
            total_indexed += _int(await self._get(self.key(job_id, f"chunk_{i}:indexed")))
            total_failed += _int(await self._get(self.key(job_id, f"chunk_{i}:failed")))
        logger.info(
            "All %d shards of job %s completed: %d indexed, %d failed",
            total_chunks,
            job_id,
            total_indexed,
            total_failed,
        )
        await self.mark_job_completed(job_id, total_indexed, total_failed)

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx

from web_scrape_indexer.job_status import JobStatusStore
from web_scrape_indexer.models import IndexResult, ScrapedDocument
from web_scrape_indexer.vector_store import VectorCredentials, VectorStoreClient

VECTOR_URL = "https://vector.test"
VECTOR_TOKEN = "vec-token"
REDIS_URL = "https://redis.test"
REDIS_TOKEN = "redis-token"


class FakeVectorServer:
    """In-memory stand-in for the Upstash Vector REST API."""

    def __init__(self, *, fail_when: Callable[[dict[str, Any]], bool] | None = None, status_code: int = 500):
        self.records: dict[str, dict[str, Any]] = {}
        self.requests: list[list[dict[str, Any]]] = []
        self.auth_headers: list[str] = []
        self.fail_when = fail_when
        self.status_code = status_code

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.auth_headers.append(request.headers.get("Authorization", ""))
        if request.url.path.endswith("/upsert-data"):
            body = json.loads(request.content)
            self.requests.append(body)
            if self.fail_when is not None and any(self.fail_when(r) for r in body):
                return httpx.Response(self.status_code, text="internal error")
            for r in body:
                self.records[r["id"]] = r
            return httpx.Response(200, json={"result": "Success"})
        if request.url.path.endswith("/info"):
            return httpx.Response(200, json={"result": {"vectorCount": len(self.records), "dimension": 1024}})
        return httpx.Response(404, text="not found")

    def client(self, **kwargs: Any) -> VectorStoreClient:
        return VectorStoreClient(
            env_credentials=VectorCredentials(url=VECTOR_URL, token=VECTOR_TOKEN),
            transport=httpx.MockTransport(self.handler),
            **kwargs,
        )


class FakeRedis:
    """Understands the SET/GET/INCR subset of the Upstash Redis REST API."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.commands: list[list[str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == f"Bearer {REDIS_TOKEN}"
        cmd = json.loads(request.content)
        self.commands.append(cmd)
        op, key = cmd[0], cmd[1]
        if op == "SET":
            self.data[key] = cmd[2]
            if len(cmd) >= 5 and cmd[3] == "EX":
                self.ttls[key] = int(cmd[4])
            return httpx.Response(200, json={"result": "OK"})
        if op == "GET":
            return httpx.Response(200, json={"result": self.data.get(key)})
        if op == "INCR":
            value = int(self.data.get(key, "0")) + 1
            self.data[key] = str(value)
            return httpx.Response(200, json={"result": value})
        return httpx.Response(400, json={"error": f"unsupported command {op}"})

    def store(self, **kwargs: Any) -> JobStatusStore:
        return JobStatusStore(
            url=REDIS_URL,
            token=REDIS_TOKEN,
            transport=httpx.MockTransport(self.handler),
            **kwargs,
        )


class CallbackRecorder:
    def __init__(self, status_code: int = 200) -> None:
        self.payloads: list[dict[str, Any]] = []
        self.auth_headers: list[str | None] = []
        self.status_code = status_code

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.payloads.append(json.loads(request.content))
        self.auth_headers.append(request.headers.get("Authorization"))
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)



class ScriptedContentIndexer:
    """Content indexer double: succeeds with 2 chunks unless told otherwise."""

    def __init__(
        self,
        results: dict[str, IndexResult] | None = None,
        *,
        raise_for: dict[str, Exception] | None = None,
        on_call: Callable[[ScrapedDocument], None] | None = None,
    ) -> None:
        self.results = results or {}
        self.raise_for = raise_for or {}
        self.on_call = on_call
        self.calls: list[dict[str, Any]] = []

    async def index_document(
        self,
        doc: ScrapedDocument,
        *,
        brand_slug: str,
        job_id: str | None = None,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ) -> IndexResult:
        self.calls.append(
            {
                "url": doc.url,
                "brand_slug": brand_slug,
                "job_id": job_id,
                "chunk_size": chunk_size,
                "chunk_overlap": chunk_overlap,
            }
        )
        if self.on_call is not None:
            self.on_call(doc)
        if doc.url in self.raise_for:
            raise self.raise_for[doc.url]
        return self.results.get(doc.url, IndexResult(success=True, chunks_indexed=2))

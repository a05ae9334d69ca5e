from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from web_scrape_indexer.config import Settings
from web_scrape_indexer.models import VectorRecord
from web_scrape_indexer.util import truncate


class CredentialsMissingError(RuntimeError):
    pass


class VectorStoreError(RuntimeError):
    pass


class VectorStoreTimeoutError(VectorStoreError):
    pass


class UpsertFailedError(VectorStoreError):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Vector store request failed: HTTP {status_code} - {truncate(body, 500)}")


@dataclass(frozen=True)
class VectorCredentials:
    url: str
    token: str


@dataclass(frozen=True)
class IndexInfo:
    total_vectors: int
    dimension: int


class VectorStoreClient:
    """
    Upstash Vector REST client.

    Credentials set through `set_dynamic_credentials` (BYOK) win over the ones taken
    from the environment. The resolved pair is cached until the dynamic credentials change.
    No retries here; callers decide what a failed upsert means.
    """

    def __init__(
        self,
        *,
        env_credentials: VectorCredentials | None = None,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._env_credentials = env_credentials
        self._dynamic_credentials: VectorCredentials | None = None
        self._resolved: VectorCredentials | None = None
        self.timeout_s = timeout_s
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> VectorStoreClient:
        env = None
        if settings.vector_url and settings.vector_token:
            env = VectorCredentials(url=settings.vector_url, token=settings.vector_token)
        return cls(env_credentials=env, **kwargs)

    def set_dynamic_credentials(self, credentials: VectorCredentials | None) -> None:
        self._dynamic_credentials = credentials
        self._resolved = None

    def resolve_credentials(self) -> VectorCredentials:
        if self._resolved is not None:
            return self._resolved
        creds = self._dynamic_credentials or self._env_credentials
        if creds is None or not creds.url or not creds.token:
            raise CredentialsMissingError(
                "Upstash Vector credentials not found. "
                "Set UPSTASH_VECTOR_REST_URL and UPSTASH_VECTOR_REST_TOKEN or pass BYOK credentials."
            )
        self._resolved = creds
        return creds

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)

    async def _request(self, method: str, path: str, *, json: Any = None) -> httpx.Response:
        creds = self.resolve_credentials()
        url = creds.url.rstrip("/") + path
        headers = {"Authorization": f"Bearer {creds.token}"}
        try:
            async with self._client() as client:
                resp = await client.request(method, url, headers=headers, json=json)
        except httpx.TimeoutException as e:
            raise VectorStoreTimeoutError(
                f"Vector store request timed out after {self.timeout_s}s: {method} {path}"
            ) from e
        except (httpx.TransportError, httpx.InvalidURL) as e:
            raise VectorStoreError(f"Vector store transport error: {e}") from e
        # The body is already read in full here, so the connection is released either way.
        if not resp.is_success:
            raise UpsertFailedError(resp.status_code, resp.text)
        return resp

    async def upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        await self._request("POST", "/upsert-data", json=[r.to_payload() for r in records])

    async def info(self) -> IndexInfo:
        resp = await self._request("GET", "/info")
        try:
            body = resp.json()
        except ValueError as e:
            raise VectorStoreError("Vector store info response is not JSON") from e
        result = body.get("result") if isinstance(body, dict) else None
        if not isinstance(result, dict):
            raise VectorStoreError("Unexpected vector store info response shape")
        count = result.get("vectorCount")
        dimension = result.get("dimension")
        if not isinstance(count, int) or not isinstance(dimension, int):
            raise VectorStoreError("Unexpected vector store info response shape")
        return IndexInfo(total_vectors=count, dimension=dimension)

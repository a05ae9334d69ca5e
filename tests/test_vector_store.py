from __future__ import annotations

import httpx
import pytest

from fakes import VECTOR_TOKEN, FakeVectorServer
from web_scrape_indexer.config import Settings
from web_scrape_indexer.models import VectorRecord
from web_scrape_indexer.vector_store import (
    CredentialsMissingError,
    UpsertFailedError,
    VectorCredentials,
    VectorStoreClient,
    VectorStoreError,
    VectorStoreTimeoutError,
)


def _record(i: int = 0) -> VectorRecord:
    return VectorRecord(id=f"r{i}", data=f"text {i}", metadata={"chunkIndex": i})


def test_resolve_credentials_requires_configuration() -> None:
    client = VectorStoreClient()
    with pytest.raises(CredentialsMissingError):
        client.resolve_credentials()


def test_dynamic_credentials_take_precedence_and_reset() -> None:
    env = VectorCredentials(url="https://env.test", token="env")
    byok = VectorCredentials(url="https://byok.test", token="byok")
    client = VectorStoreClient(env_credentials=env)

    assert client.resolve_credentials() == env
    client.set_dynamic_credentials(byok)
    assert client.resolve_credentials() == byok
    client.set_dynamic_credentials(None)
    assert client.resolve_credentials() == env


def test_from_settings_reads_env_credentials() -> None:
    settings = Settings.model_validate(
        {"UPSTASH_VECTOR_REST_URL": "https://vector.test", "UPSTASH_VECTOR_REST_TOKEN": "tok"}
    )
    client = VectorStoreClient.from_settings(settings)
    assert client.resolve_credentials() == VectorCredentials(url="https://vector.test", token="tok")


@pytest.mark.asyncio
async def test_upsert_posts_records_with_bearer_token(vector_server: FakeVectorServer) -> None:
    client = vector_server.client()
    await client.upsert([_record(0), _record(1)])

    assert vector_server.requests == [
        [
            {"id": "r0", "data": "text 0", "metadata": {"chunkIndex": 0}},
            {"id": "r1", "data": "text 1", "metadata": {"chunkIndex": 1}},
        ]
    ]
    assert vector_server.auth_headers == [f"Bearer {VECTOR_TOKEN}"]


@pytest.mark.asyncio
async def test_upsert_empty_list_makes_no_request(vector_server: FakeVectorServer) -> None:
    await vector_server.client().upsert([])
    assert vector_server.requests == []


@pytest.mark.asyncio
async def test_upsert_non_2xx_raises_with_status_and_body() -> None:
    server = FakeVectorServer(fail_when=lambda r: True, status_code=503)
    with pytest.raises(UpsertFailedError) as excinfo:
        await server.client().upsert([_record()])
    assert excinfo.value.status_code == 503
    assert "503" in str(excinfo.value)
    assert "internal error" in str(excinfo.value)


@pytest.mark.asyncio
async def test_upsert_error_message_truncates_long_bodies() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="x" * 5000)

    client = VectorStoreClient(
        env_credentials=VectorCredentials(url="https://vector.test", token="t"),
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(UpsertFailedError) as excinfo:
        await client.upsert([_record()])
    assert len(excinfo.value.body) == 5000
    assert len(str(excinfo.value)) < 700


@pytest.mark.asyncio
async def test_upsert_timeout_is_distinguishable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = VectorStoreClient(
        env_credentials=VectorCredentials(url="https://vector.test", token="t"),
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(VectorStoreTimeoutError):
        await client.upsert([_record()])


@pytest.mark.asyncio
async def test_connection_errors_are_vector_store_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = VectorStoreClient(
        env_credentials=VectorCredentials(url="https://vector.test", token="t"),
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(VectorStoreError):
        await client.upsert([_record()])


@pytest.mark.asyncio
async def test_info_returns_counts(vector_server: FakeVectorServer) -> None:
    client = vector_server.client()
    await client.upsert([_record(0), _record(1), _record(2)])
    info = await client.info()
    assert info.total_vectors == 3
    assert info.dimension == 1024


@pytest.mark.asyncio
async def test_byok_credentials_are_used_for_requests() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(f"{request.url.host} {request.headers['Authorization']}")
        return httpx.Response(200, json={"result": "Success"})

    client = VectorStoreClient(
        env_credentials=VectorCredentials(url="https://env.test", token="env"),
        transport=httpx.MockTransport(handler),
    )
    client.set_dynamic_credentials(VectorCredentials(url="https://byok.test/", token="byok"))
    await client.upsert([_record()])
    assert seen == ["byok.test Bearer byok"]


@pytest.mark.asyncio
async def test_info_non_json_body_is_vector_store_error() -> None:
    client = VectorStoreClient(
        env_credentials=VectorCredentials(url="https://vector.test", token="t"),
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>maintenance</html>")),
    )
    with pytest.raises(VectorStoreError, match="not JSON"):
        await client.info()

from __future__ import annotations

import logging
from typing import Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class CallbackPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    status: Literal["completed", "failed", "progress"]
    indexed: int
    failed: int
    total: int
    batch_number: int | None = Field(default=None, alias="batchNumber")
    batch_urls: list[str] | None = Field(default=None, alias="batchUrls")


async def send_callback(
    callback_url: str,
    payload: CallbackPayload,
    *,
    secret: str | None = None,
    timeout_s: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """
    POST a job status payload to the caller's endpoint.

    Best effort: failures are logged, never retried and never raised. Returns whether the
    endpoint accepted the payload.
    """
    headers = {"Content-Type": "application/json"}
    if secret:
        headers["Authorization"] = f"Bearer {secret}"
    body = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        async with httpx.AsyncClient(timeout=timeout_s, transport=transport) as client:
            resp = await client.post(callback_url, headers=headers, json=body)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("Failed to send %s callback to %s: %s", payload.status, callback_url, e)
        return False
    if not resp.is_success:
        logger.warning(
            "Callback %s to %s rejected: HTTP %d %s",
            payload.status,
            callback_url,
            resp.status_code,
            resp.reason_phrase,
        )
        return False
    logger.info("Sent %s callback to %s", payload.status, callback_url)
    return True

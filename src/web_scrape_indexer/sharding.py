from __future__ import annotations

import math
from collections.abc import Sequence

MAX_AUTO_SHARDS = 5


def plan_shard_count(url_count: int, requested: int = 1) -> int:
    """
    Number of shards to run for a job.

    An explicit request above 1 is honored. Otherwise shards hold 10-50 URLs each
    (about a tenth of the job) and at most MAX_AUTO_SHARDS are used.
    """
    if url_count <= 0:
        return 1
    if requested > 1:
        return requested
    shard_size = min(50, max(10, math.ceil(url_count / 10)))
    return max(1, min(MAX_AUTO_SHARDS, math.ceil(url_count / shard_size)))


def split_urls(urls: Sequence[str], shards: int) -> list[list[str]]:
    if shards < 1:
        raise ValueError("shards must be >= 1")
    if not urls:
        return []
    size = math.ceil(len(urls) / shards)
    return [list(urls[i : i + size]) for i in range(0, len(urls), size)]


def shard_urls(urls: Sequence[str], shard_id: int, total_shards: int) -> list[str]:
    """
    URLs handled by one shard; `shard_id` is 1-based.
    """
    if not 1 <= shard_id <= total_shards:
        raise ValueError(f"shard_id must be between 1 and {total_shards}")
    parts = split_urls(urls, total_shards)
    if shard_id > len(parts):
        return []
    return parts[shard_id - 1]

from __future__ import annotations

import hashlib
import re

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")


def chunk_vector_id(*, brand_slug: str, url: str, chunk_index: int) -> str:
    """
    Deterministic vector id for one chunk of one page.

    The readable URL slug is cut at 50 chars, so a short digest of the full URL keeps
    long URLs with a shared prefix apart. Re-indexing the same page overwrites its vectors.
    """
    slug = _NON_ALNUM_RE.sub("-", _SCHEME_RE.sub("", url))[:50]
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:10]  # noqa: S324
    return f"{brand_slug}_{slug}_{digest}_chunk_{chunk_index}"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."

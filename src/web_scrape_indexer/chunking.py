from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 100_000
MIN_CHUNK_LENGTH = 50
MAX_CHUNKS_PER_PAGE = 50

# Highest priority first. A lower-priority separator is only tried when no
# higher-priority one gives a usable break.
SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", "! ", "? ", "; ", ", ", " ")


@dataclass(frozen=True)
class TextChunk:
    """
    A trimmed window of the source text.

    `start`/`end` are offsets of the untrimmed window in the normalized input
    (stripped and cut to MAX_CONTENT_LENGTH), so windows can be checked for coverage.
    """

    text: str
    start: int
    end: int


def _find_break(content: str, start: int, end: int, chunk_size: int) -> int:
    min_break = start + chunk_size // 2
    for sep in SEPARATORS:
        idx = content.rfind(sep, start, end)
        if idx != -1 and idx >= min_break:
            return idx + len(sep)
    return end


def chunk_text(
    *,
    text: str,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
) -> list[TextChunk]:
    """
    Split text into overlapping chunks that end on paragraph, line, sentence or word
    boundaries where possible.

    Deterministic: the same input always yields the same chunks, which keeps chunk ids
    stable across re-indexing.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    if chunk_overlap < 0:
        raise ValueError("chunk_overlap must be >= 0")
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be < chunk_size")

    content = (text or "").strip()[:MAX_CONTENT_LENGTH]

    if len(content) <= chunk_size:
        if len(content) >= MIN_CHUNK_LENGTH:
            return [TextChunk(text=content, start=0, end=len(content))]
        return []

    chunks: list[TextChunk] = []
    start = 0
    while start < len(content):
        if len(chunks) >= MAX_CHUNKS_PER_PAGE:
            logger.warning(
                "Chunk limit reached (%d); dropping text after offset %d of %d",
                MAX_CHUNKS_PER_PAGE,
                start,
                len(content),
            )
            break

        end = min(start + chunk_size, len(content))
        if end < len(content):
            end = _find_break(content, start, end, chunk_size)

        piece = content[start:end].strip()
        if len(piece) >= MIN_CHUNK_LENGTH:
            chunks.append(TextChunk(text=piece, start=start, end=end))

        if end >= len(content):
            break

        next_start = end - chunk_overlap
        start = next_start if next_start > start else end

    return chunks

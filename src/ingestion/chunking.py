"""Size-bounded chunking of normalized transcript text for the extraction service."""

from __future__ import annotations

import logging

from src.ingestion.parsers import is_speaker_line

logger = logging.getLogger(__name__)

# Roughly 100k tokens at ~4 characters per token
DEFAULT_MAX_CHARS = 400_000


def plan_chunks(content: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[str]:
    """Split *content* into line-aligned chunks of at most *max_chars* characters.

    Lines are accumulated into a running buffer; when the next line would push
    the buffer past *max_chars* the buffer is closed and the line opens the
    next chunk.  Cuts landing on a speaker change are the natural case; a cut
    in the middle of a speaker turn still happens at the limit.

    A single line longer than *max_chars* becomes its own oversized chunk
    rather than being truncated.  ``"\\n".join(chunks)`` reproduces *content*.

    Args:
        content: Normalized transcript text.
        max_chars: Maximum characters per chunk.

    Returns:
        Ordered list of chunk strings.
    """
    if max_chars <= 0:
        msg = f"max_chars must be positive, got {max_chars}"
        raise ValueError(msg)
    if not content.strip():
        return []

    chunks: list[str] = []
    buffer: list[str] = []
    buffer_len = 0

    for line in content.split("\n"):
        added = len(line) + (1 if buffer else 0)
        if buffer and buffer_len + added > max_chars:
            if not is_speaker_line(line):
                logger.debug("Chunk %d closed mid speaker turn", len(chunks) + 1)
            chunks.append("\n".join(buffer))
            buffer = [line]
            buffer_len = len(line)
        else:
            buffer.append(line)
            buffer_len += added

    if buffer:
        chunks.append("\n".join(buffer))

    oversized = sum(1 for c in chunks if len(c) > max_chars)
    if oversized:
        logger.warning("%d chunk(s) exceed %d characters (single long lines)", oversized, max_chars)
    return chunks

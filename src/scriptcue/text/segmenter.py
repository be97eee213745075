"""
segmenter.py

Split a screenplay's extracted text into line-aligned chunks small enough for
the external action classifier.

A chunk boundary is always the last newline within max_chunk_size characters
of the chunk start; the newline itself is consumed and belongs to neither
chunk. Only when the window holds no newline at all (a single line longer than
the limit) is the text cut at the hard character limit, and that chunk is
flagged hard_break.

Each chunk records the absolute (0-based) line number of its first line, so
that per-chunk results can be merged back into one document.
"""
from __future__ import annotations

from typing import List

from scriptcue.models import Chunk


def segment(text: str, max_chunk_size: int) -> List[Chunk]:
    """
    Split text into Chunk objects no longer than max_chunk_size characters.

    Args:
        text: Full extracted screenplay text.
        max_chunk_size: Maximum characters per chunk (must be >= 1).

    Returns:
        Chunks in document order; [] for empty text. reconstruct() of the
        result equals text.
    """
    if max_chunk_size < 1:
        raise ValueError(f"max_chunk_size must be >= 1, got {max_chunk_size}")
    if not text:
        return []

    chunks: List[Chunk] = []
    pos = 0
    line = 0
    n = len(text)

    while True:
        if n - pos <= max_chunk_size:
            chunks.append(Chunk(text[pos:], line))
            break

        nl = text.rfind("\n", pos, pos + max_chunk_size + 1)
        if nl == -1:
            # single line longer than the limit
            chunk = Chunk(text[pos:pos + max_chunk_size], line, hard_break=True)
            chunks.append(chunk)
            pos += max_chunk_size
            continue

        chunk = Chunk(text[pos:nl], line)
        chunks.append(chunk)
        line += chunk.line_count
        pos = nl + 1

    return chunks


def reconstruct(chunks: List[Chunk]) -> str:
    """Inverse of segment(): re-insert the newlines consumed at boundaries."""
    parts: List[str] = []
    for i, c in enumerate(chunks):
        parts.append(c.text)
        if i < len(chunks) - 1 and not c.hard_break:
            parts.append("\n")
    return "".join(parts)

"""
Fixed-Overlap Chunker
----------------------
Splits chapter text into consecutive character windows of `chunk_size`,
each starting `chunk_size - overlap` characters after the previous one.

Text is sliced verbatim: no normalisation, no trimming, whitespace and
punctuation preserved.  Dropping the first `overlap` characters of every
chunk after the first and concatenating reconstructs the source exactly.

For non-empty text the number of chunks is

    1                                               if len(text) <= chunk_size
    ceil((len(text) - overlap) / (chunk_size - overlap))   otherwise

Windowing stops as soon as a window reaches the end of the text, so no
trailing chunk is ever made up entirely of the previous chunk's overlap.
"""
from __future__ import annotations

from typing import Iterator

from loguru import logger

from novel_rag.chunking.schemas import ContentChunk


# ── Constants ─────────────────────────────────────────────────────────────────

CHUNK_SIZE = 800
OVERLAP = 100


def _validate(chunk_size: int, overlap: int) -> None:
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ValueError(f"overlap must be non-negative, got {overlap}")
    if overlap >= chunk_size:
        raise ValueError(
            f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size}); "
            "the window would never advance"
        )


def _windows(text: str, chunk_size: int, overlap: int) -> Iterator[tuple[int, str]]:
    stride = chunk_size - overlap
    start = 0
    while start < len(text):
        end = start + chunk_size
        yield start, text[start:end]
        if end >= len(text):
            break
        start += stride


def split_text(text: str, chunk_size: int = CHUNK_SIZE, overlap: int = OVERLAP) -> list[str]:
    """
    Split text into overlapping fixed-size windows.

    Raises:
        ValueError: if chunk_size <= 0, overlap < 0 or overlap >= chunk_size.
    """
    _validate(chunk_size, overlap)
    return [window for _, window in _windows(text, chunk_size, overlap)]


# ── Main Chunker ──────────────────────────────────────────────────────────────

class FixedOverlapChunker:
    """
    Applies split_text to a chapter and tags every window with its owners.

    Usage:
        chunker = FixedOverlapChunker(chunk_size=800, overlap=100)
        chunks = chunker.chunk_chapter(chapter)
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE, overlap: int = OVERLAP) -> None:
        _validate(chunk_size, overlap)
        self.chunk_size = chunk_size
        self.overlap = overlap

    def split(self, text: str) -> list[str]:
        return split_text(text, self.chunk_size, self.overlap)

    def chunk_chapter(self, chapter) -> list[ContentChunk]:
        """
        Chunk a Chapter's current content.

        Args:
            chapter: A Chapter instance.

        Returns:
            List of ContentChunk objects in text order.
        """
        chunks = [
            ContentChunk(
                chapter_id=chapter.id,
                novel_id=chapter.novel_id,
                chunk_index=i,
                start=start,
                text=window,
            )
            for i, (start, window) in enumerate(
                _windows(chapter.content, self.chunk_size, self.overlap)
            )
        ]
        logger.debug(
            f"[Chunker] chapter={chapter.id} | {len(chapter.content)} chars | "
            f"size={self.chunk_size} overlap={self.overlap} -> {len(chunks)} chunk(s)"
        )
        return chunks

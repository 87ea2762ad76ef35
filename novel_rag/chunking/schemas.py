"""
Chunk schema - the atomic unit that gets embedded and stored.

A ContentChunk traces back to its parent chapter and novel so every
retrieval result can be attributed to the chapter it came from.
"""
from __future__ import annotations

from pydantic import BaseModel


class ContentChunk(BaseModel):
    """
    A contiguous window of a chapter's content.

    Chunks are not user-addressable; they exist only to support retrieval.
    Every chunk except possibly the last is exactly `chunk_size` characters
    and neighbouring chunks share `overlap` characters.
    """

    chapter_id: int
    novel_id: int
    chunk_index: int                     # Position within the chapter
    start: int                           # Character offset into the chapter content
    text: str                            # Verbatim slice, no trimming

"""
Core Pydantic schemas for the novel context-retrieval core.

Novels and chapters are the persisted entities; embedding rows hang off a
chapter.  RetrievalResult, RecentChapter and AIContext are ephemeral and
only exist as the output of a query.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# --- Persisted Entities -------------------------------------------------------

class Novel(BaseModel):
    id: int
    title: str
    description: str = ""
    total_words: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Chapter(BaseModel):
    """
    One chapter of a novel.

    `word_count` is derived from `content` with count_words() whenever the
    chapter is created or its content changes.
    """

    id: int
    novel_id: int
    chapter_number: int
    title: str
    content: str = ""
    word_count: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class EmbeddingRecord(BaseModel):
    """A chunk/vector pair ready to be persisted, tagged with its owners."""

    chapter_id: int
    novel_id: int
    chunk_index: int = 0
    chunk_text: str
    embedding: list[float]


class StoredEmbedding(BaseModel):
    """A chunk/vector pair as returned by ContextStore.get_all_embeddings()."""

    chapter_id: int
    chunk_text: str
    embedding: list[float]


# --- Query Results (never persisted) ------------------------------------------

class RetrievalResult(BaseModel):
    """A chunk's text paired with its cosine similarity to the query, in [-1, 1]."""

    text: str
    score: float
    chapter_id: Optional[int] = None


class RecentChapter(BaseModel):
    number: int
    title: str
    content: str


class AIContext(BaseModel):
    """
    Bundle handed to prompt construction.

    `rag_context` is the ranked excerpts serialised as one text block (empty
    when the novel has no stored embeddings); `recent_chapters` is ordered by
    descending chapter number.
    """

    rag_context: str = ""
    results: list[RetrievalResult] = Field(default_factory=list)
    recent_chapters: list[RecentChapter] = Field(default_factory=list)

    @property
    def has_background(self) -> bool:
        return bool(self.rag_context)


# --- Generation ---------------------------------------------------------------

class ModelConfig(BaseModel):
    """
    Per-request model selection.

    A user endpoint is used only when both api_key and base_url are set;
    otherwise the built-in default model handles the request.
    """

    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None

    @property
    def uses_user_endpoint(self) -> bool:
        return bool(self.api_key and self.base_url)


class ChapterOutline(BaseModel):
    """
    Parsed outline response.

    `missing_sections` lists the labels that were absent from the model
    output and were filled with placeholders instead.
    """

    theme: str
    framework: str
    conflicts: str
    interactions: str
    missing_sections: list[str] = Field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.missing_sections)


class ExpandedChapter(BaseModel):
    content: str
    word_count: int

"""
Storage contracts.

The relational database is an external collaborator.  Retrieval reads it
through ChapterStore and ContextStore; the write path, pipeline and CLI use
NovelStore, which adds the write methods.  Vectors cross the boundary as
plain float lists and are persisted as JSON arrays by implementations
that lack a vector column type.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from novel_rag.schemas import Chapter, EmbeddingRecord, Novel, StoredEmbedding


class ChapterStore(ABC):
    """Read access to novels and chapters."""

    @abstractmethod
    async def get_novel(self, novel_id: int) -> Optional[Novel]:
        ...

    @abstractmethod
    async def get_chapter(self, chapter_id: int) -> Optional[Chapter]:
        ...

    @abstractmethod
    async def get_recent_chapters(self, novel_id: int, limit: int) -> list[Chapter]:
        """Return up to `limit` chapters ordered by descending chapter_number."""
        ...


class ContextStore(ABC):
    """Persistence for chunk/vector pairs keyed by chapter and novel."""

    @abstractmethod
    async def get_all_embeddings(self, novel_id: int) -> list[StoredEmbedding]:
        """All rows for the novel, in insertion order."""
        ...

    @abstractmethod
    async def save_embeddings(self, records: list[EmbeddingRecord]) -> None:
        ...

    @abstractmethod
    async def delete_embeddings_for_chapter(self, chapter_id: int) -> None:
        ...


class NovelStore(ChapterStore, ContextStore):
    """
    Full store used by the write path, the pipeline and the CLI.

    Implementations must keep `Novel.total_words` in step with chapter
    writes (never below 0), and deleting a chapter or novel must remove
    its embedding rows.
    """

    @abstractmethod
    async def create_novel(self, title: str, description: str = "") -> Novel:
        ...

    @abstractmethod
    async def list_novels(self) -> list[Novel]:
        ...

    @abstractmethod
    async def delete_novel(self, novel_id: int) -> None:
        """Raises NotFoundError if the novel does not exist."""
        ...

    @abstractmethod
    async def create_chapter(
        self,
        novel_id: int,
        chapter_number: int,
        title: str,
        content: str,
        word_count: int,
    ) -> Chapter:
        """Raises NotFoundError if the novel does not exist."""
        ...

    @abstractmethod
    async def list_chapters(self, novel_id: int) -> list[Chapter]:
        """Chapters of the novel by ascending chapter_number."""
        ...

    @abstractmethod
    async def update_chapter(self, chapter_id: int, **fields: Any) -> Chapter:
        """Raises NotFoundError if the chapter does not exist."""
        ...

    @abstractmethod
    async def delete_chapter(self, chapter_id: int) -> None:
        """Raises NotFoundError if the chapter does not exist."""
        ...

"""
In-memory NovelStore (ChapterStore + ContextStore + writes).

Used by tests, by the CLI through JsonFileStore, and as the reference
behaviour for a database-backed implementation:

  - novel.total_words follows chapter create/update/delete (never < 0)
  - deleting a chapter cascades to its embedding rows
  - deleting a novel cascades to its chapters and embedding rows
  - embedding rows keep insertion order and hold the vector as a JSON array
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from loguru import logger

from novel_rag.exceptions import NotFoundError
from novel_rag.schemas import Chapter, EmbeddingRecord, Novel, StoredEmbedding
from novel_rag.storage.base import NovelStore
from novel_rag.utils.helpers import decode_vector, encode_vector


class InMemoryStore(NovelStore):
    """Dict-backed store.  Ids are assigned sequentially per entity type."""

    def __init__(self) -> None:
        self.novels: dict[int, Novel] = {}
        self.chapters: dict[int, Chapter] = {}
        self.embeddings: list[dict[str, Any]] = []
        self._next_ids: dict[str, int] = {"novel": 1, "chapter": 1}

    def _allocate_id(self, entity: str) -> int:
        new_id = self._next_ids[entity]
        self._next_ids[entity] = new_id + 1
        return new_id

    # --- Novels ---------------------------------------------------------------

    async def create_novel(self, title: str, description: str = "") -> Novel:
        novel = Novel(id=self._allocate_id("novel"), title=title, description=description)
        self.novels[novel.id] = novel
        logger.debug(f"[Store] Created novel {novel.id} {title!r}")
        return novel

    async def get_novel(self, novel_id: int) -> Optional[Novel]:
        return self.novels.get(novel_id)

    async def list_novels(self) -> list[Novel]:
        return sorted(self.novels.values(), key=lambda n: n.id)

    async def delete_novel(self, novel_id: int) -> None:
        if self.novels.pop(novel_id, None) is None:
            raise NotFoundError("novel", novel_id)
        self.chapters = {
            cid: ch for cid, ch in self.chapters.items() if ch.novel_id != novel_id
        }
        self.embeddings = [row for row in self.embeddings if row["novel_id"] != novel_id]
        logger.debug(f"[Store] Deleted novel {novel_id} with its chapters and embeddings")

    # --- Chapters -------------------------------------------------------------

    async def create_chapter(
        self,
        novel_id: int,
        chapter_number: int,
        title: str,
        content: str,
        word_count: int,
    ) -> Chapter:
        novel = self.novels.get(novel_id)
        if novel is None:
            raise NotFoundError("novel", novel_id)

        chapter = Chapter(
            id=self._allocate_id("chapter"),
            novel_id=novel_id,
            chapter_number=chapter_number,
            title=title,
            content=content,
            word_count=word_count,
        )
        self.chapters[chapter.id] = chapter
        novel.total_words += word_count
        novel.updated_at = datetime.utcnow()
        return chapter

    async def get_chapter(self, chapter_id: int) -> Optional[Chapter]:
        return self.chapters.get(chapter_id)

    async def list_chapters(self, novel_id: int) -> list[Chapter]:
        return sorted(
            (ch for ch in self.chapters.values() if ch.novel_id == novel_id),
            key=lambda ch: ch.chapter_number,
        )

    async def get_recent_chapters(self, novel_id: int, limit: int) -> list[Chapter]:
        chapters = await self.list_chapters(novel_id)
        chapters.reverse()
        return chapters[: max(limit, 0)]

    async def update_chapter(self, chapter_id: int, **fields: Any) -> Chapter:
        chapter = self.chapters.get(chapter_id)
        if chapter is None:
            raise NotFoundError("chapter", chapter_id)

        old_words = chapter.word_count
        updated = chapter.model_copy(update={**fields, "updated_at": datetime.utcnow()})
        self.chapters[chapter_id] = updated

        novel = self.novels.get(updated.novel_id)
        if novel is not None and updated.word_count != old_words:
            novel.total_words = max(0, novel.total_words + updated.word_count - old_words)
            novel.updated_at = datetime.utcnow()
        return updated

    async def delete_chapter(self, chapter_id: int) -> None:
        chapter = self.chapters.pop(chapter_id, None)
        if chapter is None:
            raise NotFoundError("chapter", chapter_id)
        await self.delete_embeddings_for_chapter(chapter_id)

        novel = self.novels.get(chapter.novel_id)
        if novel is not None:
            novel.total_words = max(0, novel.total_words - chapter.word_count)
            novel.updated_at = datetime.utcnow()

    # --- Embeddings -----------------------------------------------------------

    async def get_all_embeddings(self, novel_id: int) -> list[StoredEmbedding]:
        return [
            StoredEmbedding(
                chapter_id=row["chapter_id"],
                chunk_text=row["chunk_text"],
                embedding=decode_vector(row["embedding"]),
            )
            for row in self.embeddings
            if row["novel_id"] == novel_id
        ]

    async def save_embeddings(self, records: list[EmbeddingRecord]) -> None:
        for record in records:
            self.embeddings.append(
                {
                    "chapter_id": record.chapter_id,
                    "novel_id": record.novel_id,
                    "chunk_index": record.chunk_index,
                    "chunk_text": record.chunk_text,
                    "embedding": encode_vector(record.embedding),
                }
            )

    async def delete_embeddings_for_chapter(self, chapter_id: int) -> None:
        self.embeddings = [row for row in self.embeddings if row["chapter_id"] != chapter_id]

    def embedding_count(self, chapter_id: Optional[int] = None) -> int:
        if chapter_id is None:
            return len(self.embeddings)
        return sum(1 for row in self.embeddings if row["chapter_id"] == chapter_id)

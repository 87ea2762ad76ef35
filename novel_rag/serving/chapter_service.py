"""
Chapter write path.

Saves chapters with their derived word count and hands reindexing to the
background ReindexQueue.  The write has already succeeded by the time a
reindex runs, and a reindex failure never reaches the caller.
"""
from __future__ import annotations

from typing import Optional

from loguru import logger

from novel_rag.exceptions import NotFoundError
from novel_rag.indexing.queue import ReindexQueue
from novel_rag.schemas import Chapter, Novel
from novel_rag.storage.base import NovelStore
from novel_rag.utils.helpers import count_words


class ChapterService:

    def __init__(self, store: NovelStore, reindex_queue: ReindexQueue) -> None:
        self.store = store
        self.reindex_queue = reindex_queue

    async def create_novel(self, title: str, description: str = "") -> Novel:
        return await self.store.create_novel(title, description)

    async def delete_novel(self, novel_id: int) -> None:
        await self.store.delete_novel(novel_id)
        logger.info(f"[ChapterService] Deleted novel {novel_id}")

    async def create_chapter(
        self,
        novel_id: int,
        chapter_number: int,
        title: str,
        content: str,
    ) -> Chapter:
        chapter = await self.store.create_chapter(
            novel_id=novel_id,
            chapter_number=chapter_number,
            title=title,
            content=content,
            word_count=count_words(content),
        )
        logger.info(
            f"[ChapterService] Created chapter {chapter.id} "
            f"(novel {novel_id}, #{chapter_number}, {chapter.word_count} words)"
        )
        self.reindex_queue.submit(chapter.id)
        return chapter

    async def update_chapter(
        self,
        chapter_id: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
        chapter_number: Optional[int] = None,
    ) -> Chapter:
        """
        Apply the given fields.  A reindex is scheduled only when `content` is
        supplied and differs from what is stored.
        """
        existing = await self.store.get_chapter(chapter_id)
        if existing is None:
            raise NotFoundError("chapter", chapter_id)

        fields: dict = {}
        if title is not None:
            fields["title"] = title
        if chapter_number is not None:
            fields["chapter_number"] = chapter_number
        content_changed = content is not None and content != existing.content
        if content_changed:
            fields["content"] = content
            fields["word_count"] = count_words(content)

        chapter = await self.store.update_chapter(chapter_id, **fields)
        if content_changed:
            self.reindex_queue.submit(chapter_id)
        logger.info(
            f"[ChapterService] Updated chapter {chapter_id} | fields={sorted(fields)} | "
            f"reindex={'queued' if content_changed else 'skipped'}"
        )
        return chapter

    async def delete_chapter(self, chapter_id: int) -> None:
        await self.store.delete_chapter(chapter_id)
        logger.info(f"[ChapterService] Deleted chapter {chapter_id} and its embeddings")

"""
Context Assembler
------------------
Two operations sit on top of the chunker, embedder and stores:

    reindex(chapter_id)
        lock chapter -> load -> chunk -> embed (batch) -> re-check chapter
        -> delete its old rows -> save chunk/vector pairs tagged with ids

    build_context(novel_id, current_chapter_number, recent_limit)
        most recent chapters by number -> concatenate as query
        -> ContextRetriever (top 15) -> "[相关片段 N]" text block
        -> AIContext(rag_context, recent_chapters)

reindex is a full rebuild, serialised per chapter by an asyncio.Lock, so
racing reindexes of one chapter run back to back and the last one leaves
exactly one chunking of the content it read.  Every stored row pairs a
chunk with the vector computed from that same chunk.  A chapter deleted
while its vectors were being computed gets no rows written back.

Recent chapters are the `recent_limit` highest-numbered chapters of the
novel.  They are not filtered to numbers below current_chapter_number, so
an already-saved current chapter is part of its own context.
"""
from __future__ import annotations

import asyncio

from langsmith import traceable
from loguru import logger

from novel_rag.chunking.chunker import FixedOverlapChunker
from novel_rag.embedding.embedder import Embedder
from novel_rag.exceptions import NotFoundError
from novel_rag.retrieval.retriever import ContextRetriever
from novel_rag.schemas import AIContext, EmbeddingRecord, RecentChapter, RetrievalResult
from novel_rag.storage.base import ChapterStore, ContextStore

EXCERPT_TEMPLATE = "[相关片段 {index}]\n{text}"
EXCERPT_SEPARATOR = "\n\n"
QUERY_SEPARATOR = "\n\n"


def serialize_results(results: list[RetrievalResult]) -> str:
    """Render ranked results as one block, each labelled with a 1-based ordinal."""
    return EXCERPT_SEPARATOR.join(
        EXCERPT_TEMPLATE.format(index=i, text=result.text)
        for i, result in enumerate(results, start=1)
    )


class ContextAssembler:
    """
    Orchestrates indexing and context building for one store pair.

    Usage:
        assembler = ContextAssembler(chapters=store, contexts=store, embedder=HashEmbedder())
        await assembler.reindex(chapter.id)
        context = await assembler.build_context(novel.id, current_chapter_number=4)
    """

    def __init__(
        self,
        chapters: ChapterStore,
        contexts: ContextStore,
        embedder: Embedder,
        chunker: FixedOverlapChunker | None = None,
        top_k: int = 15,
        recent_limit: int = 3,
    ) -> None:
        self.chapters = chapters
        self.contexts = contexts
        self.embedder = embedder
        self.chunker = chunker or FixedOverlapChunker()
        self.recent_limit = recent_limit
        self.retriever = ContextRetriever(store=contexts, embedder=embedder, top_k=top_k)
        self._locks: dict[int, asyncio.Lock] = {}

    def _lock_for(self, chapter_id: int) -> asyncio.Lock:
        lock = self._locks.get(chapter_id)
        if lock is None:
            lock = self._locks[chapter_id] = asyncio.Lock()
        return lock

    async def reindex(self, chapter_id: int) -> int:
        """
        Rebuild all embeddings for one chapter.

        Reindexes of the same chapter run one at a time; different chapters
        proceed concurrently.  Old rows are only replaced once the new
        vectors are ready, and nothing is written for a chapter deleted
        while it was being embedded.

        Returns:
            Number of chunk/vector pairs stored.

        Raises:
            NotFoundError: if the chapter does not exist (nothing is deleted).
        """
        async with self._lock_for(chapter_id):
            return await self._rebuild(chapter_id)

    async def _rebuild(self, chapter_id: int) -> int:
        chapter = await self.chapters.get_chapter(chapter_id)
        if chapter is None:
            self._locks.pop(chapter_id, None)
            raise NotFoundError("chapter", chapter_id)

        chunks = self.chunker.chunk_chapter(chapter)
        vectors = await self.embedder.embed_texts([c.text for c in chunks])

        if await self.chapters.get_chapter(chapter_id) is None:
            self._locks.pop(chapter_id, None)
            logger.warning(
                f"[Assembler] Chapter {chapter_id} was deleted during reindex, nothing stored"
            )
            return 0

        await self.contexts.delete_embeddings_for_chapter(chapter_id)

        records = [
            EmbeddingRecord(
                chapter_id=chapter.id,
                novel_id=chapter.novel_id,
                chunk_index=chunk.chunk_index,
                chunk_text=chunk.text,
                embedding=vector.tolist(),
            )
            for chunk, vector in zip(chunks, vectors)
        ]
        if records:
            await self.contexts.save_embeddings(records)

        logger.info(
            f"[Assembler] Reindexed chapter {chapter.id} (novel {chapter.novel_id}) "
            f"-> {len(records)} chunk(s)"
        )
        return len(records)

    @traceable(name="build_context", run_type="chain")
    async def build_context(
        self,
        novel_id: int,
        current_chapter_number: int | None = None,
        recent_limit: int | None = None,
    ) -> AIContext:
        """
        Assemble background excerpts plus the most recent chapters.

        Args:
            novel_id:               Novel being written.
            current_chapter_number: Chapter about to be drafted (logged only;
                                    see module docstring).
            recent_limit:           Override for self.recent_limit.

        Raises:
            NotFoundError: if the novel does not exist.
        """
        if await self.chapters.get_novel(novel_id) is None:
            raise NotFoundError("novel", novel_id)

        limit = self.recent_limit if recent_limit is None else recent_limit
        recent = await self.chapters.get_recent_chapters(novel_id, limit)

        query = QUERY_SEPARATOR.join(ch.content for ch in recent)
        results = await self.retriever.retrieve(novel_id, query)

        context = AIContext(
            rag_context=serialize_results(results),
            results=results,
            recent_chapters=[
                RecentChapter(number=ch.chapter_number, title=ch.title, content=ch.content)
                for ch in recent
            ],
        )
        logger.info(
            f"[Assembler] Context for novel {novel_id} chapter {current_chapter_number} | "
            f"{len(results)} excerpt(s) | recent={[ch.number for ch in context.recent_chapters]}"
        )
        return context

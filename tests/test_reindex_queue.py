"""Tests for background reindexing and the chapter write path."""
import asyncio

import pytest

from novel_rag.chunking.chunker import split_text
from novel_rag.exceptions import NotFoundError
from novel_rag.indexing.queue import ReindexQueue
from novel_rag.serving.chapter_service import ChapterService

TEXT = "这是一段很长的文本。" * 100


class _ExplodingAssembler:
    def __init__(self) -> None:
        self.calls: list[int] = []

    async def reindex(self, chapter_id: int) -> int:
        self.calls.append(chapter_id)
        raise RuntimeError("embedding provider unavailable")


class _SlowAssembler:
    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def reindex(self, chapter_id: int) -> int:
        self.started.set()
        await self.release.wait()
        return 1


class TestReindexQueue:

    async def test_submitted_chapters_get_indexed(self, reindex_queue, store, novel, make_chapter):
        chapter = await make_chapter(novel.id, 1, "开篇", TEXT)

        reindex_queue.submit(chapter.id)
        await reindex_queue.join()

        assert store.embedding_count(chapter.id) == 13
        assert reindex_queue.completed_count == 1

    async def test_failures_are_logged_not_raised(self):
        assembler = _ExplodingAssembler()
        queue = ReindexQueue(assembler, workers=1)
        await queue.start()

        queue.submit(1)
        queue.submit(2)
        await queue.join()
        await queue.stop()

        assert assembler.calls == [1, 2]
        assert queue.failed_count == 2
        assert queue.completed_count == 0

    async def test_missing_chapter_counts_as_failure(self, reindex_queue):
        reindex_queue.submit(12345)
        await reindex_queue.join()
        assert reindex_queue.failed_count == 1

    async def test_submit_does_not_wait_for_reindex(self):
        assembler = _SlowAssembler()
        queue = ReindexQueue(assembler, workers=1)
        await queue.start()

        queue.submit(1)
        await asyncio.wait_for(assembler.started.wait(), timeout=1)
        assert queue.completed_count == 0

        assembler.release.set()
        await queue.stop(drain=True)
        assert queue.completed_count == 1

    async def test_run_one_swallows_not_found(self, assembler):
        queue = ReindexQueue(assembler)
        assert await queue.run_one(999) is None
        assert queue.failed_count == 1


class TestChapterService:

    async def test_create_computes_words_and_indexes(self, chapter_service, reindex_queue, store, novel):
        chapter = await chapter_service.create_chapter(novel.id, 1, "开篇", "Hello world 你好世界")

        assert chapter.word_count == 6
        assert (await store.get_novel(novel.id)).total_words == 6

        await reindex_queue.join()
        assert store.embedding_count(chapter.id) == 1

    async def test_create_for_unknown_novel_raises(self, chapter_service):
        with pytest.raises(NotFoundError):
            await chapter_service.create_chapter(404, 1, "开篇", "正文")

    async def test_update_content_reindexes(self, chapter_service, reindex_queue, store, novel):
        chapter = await chapter_service.create_chapter(novel.id, 1, "开篇", "旧的内容")
        await reindex_queue.join()

        updated = await chapter_service.update_chapter(chapter.id, content=TEXT)
        await reindex_queue.join()

        assert updated.word_count == 900
        assert (await store.get_novel(novel.id)).total_words == 900
        assert store.embedding_count(chapter.id) == 13
        assert reindex_queue.completed_count == 2

    async def test_title_only_update_skips_reindex(self, chapter_service, reindex_queue, novel):
        chapter = await chapter_service.create_chapter(novel.id, 1, "开篇", "内容")
        await reindex_queue.join()

        updated = await chapter_service.update_chapter(chapter.id, title="新标题", content="内容")
        await reindex_queue.join()

        assert updated.title == "新标题"
        assert reindex_queue.completed_count == 1

    async def test_update_missing_chapter_raises(self, chapter_service):
        with pytest.raises(NotFoundError):
            await chapter_service.update_chapter(77, title="x")

    async def test_delete_cascades_embeddings_and_words(self, chapter_service, reindex_queue, store, novel):
        chapter = await chapter_service.create_chapter(novel.id, 1, "开篇", TEXT)
        await reindex_queue.join()

        await chapter_service.delete_chapter(chapter.id)

        assert await store.get_chapter(chapter.id) is None
        assert store.embedding_count(chapter.id) == 0
        assert (await store.get_novel(novel.id)).total_words == 0

    async def test_write_survives_failed_reindex(self, store, novel):
        queue = ReindexQueue(_ExplodingAssembler(), workers=1)
        await queue.start()
        service = ChapterService(store, queue)

        chapter = await service.create_chapter(novel.id, 1, "开篇", "正文内容")
        await queue.join()
        await queue.stop()

        assert (await store.get_chapter(chapter.id)).content == "正文内容"
        assert queue.failed_count == 1


class TestConcurrentReindex:
    """Reindexing with an embedder that yields to the event loop."""

    async def test_racing_reindexes_leave_one_chunking(self, slow_assembler, store, novel, make_chapter):
        chapter = await make_chapter(novel.id, 1, "开篇", "甲" * 250)

        counts = await asyncio.gather(slow_assembler.reindex(chapter.id), slow_assembler.reindex(chapter.id))

        assert counts == [3, 3]
        assert store.embedding_count(chapter.id) == len(split_text("甲" * 250, 100, 20))

    async def test_create_then_update_on_two_workers(self, store, slow_queue, novel):
        service = ChapterService(store, slow_queue)
        chapter = await service.create_chapter(novel.id, 1, "开篇", "甲" * 250)
        await service.update_chapter(chapter.id, content="乙" * 250)

        await slow_queue.join()

        rows = await store.get_all_embeddings(novel.id)
        assert len(rows) == len(split_text("乙" * 250, 100, 20))
        assert {ch for row in rows for ch in row.chunk_text} == {"乙"}

    async def test_delete_while_embedding_stores_nothing(
        self, slow_assembler, suspending_embedder, store, novel, make_chapter
    ):
        chapter = await make_chapter(novel.id, 1, "开篇", "甲" * 250)
        suspending_embedder.gate = asyncio.Event()

        task = asyncio.create_task(slow_assembler.reindex(chapter.id))
        await asyncio.wait_for(suspending_embedder.started.wait(), timeout=1)
        await store.delete_chapter(chapter.id)
        suspending_embedder.gate.set()

        assert await task == 0
        assert store.embedding_count(chapter.id) == 0
        assert await store.get_all_embeddings(novel.id) == []

    async def test_delete_right_after_create_leaves_no_rows(self, store, slow_queue, novel):
        service = ChapterService(store, slow_queue)
        chapter = await service.create_chapter(novel.id, 1, "开篇", "甲" * 250)
        await asyncio.sleep(0)
        await service.delete_chapter(chapter.id)

        await slow_queue.join()

        assert store.embedding_count(chapter.id) == 0

    async def test_old_rows_survive_until_new_vectors_are_ready(
        self, slow_assembler, suspending_embedder, store, novel, make_chapter
    ):
        chapter = await make_chapter(novel.id, 1, "开篇", "甲" * 250)
        await slow_assembler.reindex(chapter.id)
        suspending_embedder.gate = asyncio.Event()

        task = asyncio.create_task(slow_assembler.reindex(chapter.id))
        await asyncio.sleep(0)
        assert store.embedding_count(chapter.id) == 3

        suspending_embedder.gate.set()
        await task
        assert store.embedding_count(chapter.id) == 3

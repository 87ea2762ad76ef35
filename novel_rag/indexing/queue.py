"""
Background reindex queue.

Chapter writes call submit() and return immediately; a small pool of
asyncio worker tasks drains the queue and runs ContextAssembler.reindex().
Reindexes of different chapters run concurrently with no ordering
guarantee between them; reindexes of the same chapter are serialised by
ContextAssembler.

A failed reindex is logged and counted, never raised: it must not fail or
roll back the chapter write that scheduled it.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from novel_rag.exceptions import NotFoundError
from novel_rag.retrieval.assembler import ContextAssembler


class ReindexQueue:
    """
    Usage:
        queue = ReindexQueue(assembler, workers=2)
        await queue.start()
        queue.submit(chapter.id)
        await queue.join()      # wait until everything submitted so far is done
        await queue.stop()
    """

    def __init__(self, assembler: ContextAssembler, workers: int = 2) -> None:
        self.assembler = assembler
        self.workers = workers
        self._queue: asyncio.Queue[int] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []
        self.completed_count: int = 0
        self.failed_count: int = 0

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(n), name=f"reindex-worker-{n}")
            for n in range(self.workers)
        ]
        logger.debug(f"[ReindexQueue] Started {self.workers} worker(s)")

    def submit(self, chapter_id: int) -> None:
        """Schedule a reindex without waiting for it."""
        self._queue.put_nowait(chapter_id)
        logger.debug(f"[ReindexQueue] Queued chapter {chapter_id} ({self.pending} pending)")

    async def join(self) -> None:
        """Block until every submitted chapter has been processed."""
        await self._queue.join()

    async def stop(self, drain: bool = True) -> None:
        """Cancel the workers, optionally after draining the queue first."""
        if drain and self._tasks:
            await self.join()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.debug(
            f"[ReindexQueue] Stopped | completed={self.completed_count} failed={self.failed_count}"
        )

    async def _worker(self, number: int) -> None:
        while True:
            chapter_id = await self._queue.get()
            try:
                await self.run_one(chapter_id)
            finally:
                self._queue.task_done()

    async def run_one(self, chapter_id: int) -> Optional[int]:
        """Reindex one chapter, logging instead of raising on failure."""
        try:
            stored = await self.assembler.reindex(chapter_id)
        except NotFoundError:
            self.failed_count += 1
            logger.warning(f"[ReindexQueue] Chapter {chapter_id} no longer exists, skipped")
            return None
        except Exception as exc:
            self.failed_count += 1
            logger.error(f"[ReindexQueue] Failed to reindex chapter {chapter_id}: {exc}")
            return None
        self.completed_count += 1
        return stored

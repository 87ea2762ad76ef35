"""
Shared test fixtures.

Provides: in-memory store, hash embedder (plus a variant that suspends like
a network embedder), context assembler, reindex queue, a recording fake
generation gateway, and a seeded novel.
"""
from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from novel_rag.chunking.chunker import FixedOverlapChunker
from novel_rag.embedding.embedder import HashEmbedder
from novel_rag.exceptions import GatewayError
from novel_rag.generation.gateway import GenerationGateway
from novel_rag.indexing.queue import ReindexQueue
from novel_rag.retrieval.assembler import ContextAssembler
from novel_rag.schemas import ModelConfig
from novel_rag.serving.chapter_service import ChapterService
from novel_rag.storage.memory import InMemoryStore
from novel_rag.utils.helpers import count_words

SAMPLE_OUTLINE_RESPONSE = """\
【章节主题】
少年离开山村,踏上寻找师父的旅程。

【情节框架】
清晨辞别母亲,途经集市,遭遇盗匪。

【关键冲突】
盗匪首领认出了少年腰间的玉佩。

【人物互动】
少年与同行的商队少女结识。
"""


class FakeGateway(GenerationGateway):
    """Records every prompt; returns a canned response or raises a queued error."""

    def __init__(self, response: str = SAMPLE_OUTLINE_RESPONSE, error: Optional[Exception] = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[tuple[str, Optional[ModelConfig]]] = []

    async def complete(self, prompt: str, model_config: Optional[ModelConfig] = None) -> str:
        self.calls.append((prompt, model_config))
        if self.error is not None:
            raise self.error
        return self.response

    @property
    def last_prompt(self) -> str:
        return self.calls[-1][0]


class SuspendingEmbedder(HashEmbedder):
    """
    HashEmbedder that yields to the event loop inside embed_texts, the way
    a network-backed embedder does.  Set `gate` to hold every call until
    the test releases it.
    """

    def __init__(self, delay: float = 0.01) -> None:
        super().__init__()
        self.delay = delay
        self.started = asyncio.Event()
        self.gate: Optional[asyncio.Event] = None

    async def embed_texts(self, texts: list[str]):
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(self.delay)
        return await super().embed_texts(texts)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def embedder():
    return HashEmbedder()


@pytest.fixture
def assembler(store, embedder):
    return ContextAssembler(
        chapters=store,
        contexts=store,
        embedder=embedder,
        chunker=FixedOverlapChunker(chunk_size=100, overlap=20),
        top_k=15,
        recent_limit=3,
    )


@pytest.fixture
async def reindex_queue(assembler):
    queue = ReindexQueue(assembler, workers=2)
    await queue.start()
    yield queue
    await queue.stop(drain=False)


@pytest.fixture
def chapter_service(store, reindex_queue):
    return ChapterService(store, reindex_queue)


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def failing_gateway():
    return FakeGateway(error=GatewayError("API call failed: Too Many Requests", status_code=429))


@pytest.fixture
async def novel(store):
    return await store.create_novel("长夜将明", "一部关于旅程的小说")


async def add_chapter(store: InMemoryStore, novel_id: int, number: int, title: str, content: str):
    """Insert a chapter directly, bypassing the reindex queue."""
    return await store.create_chapter(
        novel_id=novel_id,
        chapter_number=number,
        title=title,
        content=content,
        word_count=count_words(content),
    )


@pytest.fixture
def make_chapter(store):
    async def _make(novel_id: int, number: int, title: str, content: str):
        return await add_chapter(store, novel_id, number, title, content)
    return _make


@pytest.fixture
def suspending_embedder():
    return SuspendingEmbedder()


@pytest.fixture
def slow_assembler(store, suspending_embedder):
    return ContextAssembler(
        chapters=store,
        contexts=store,
        embedder=suspending_embedder,
        chunker=FixedOverlapChunker(chunk_size=100, overlap=20),
    )


@pytest.fixture
async def slow_queue(slow_assembler):
    queue = ReindexQueue(slow_assembler, workers=2)
    await queue.start()
    yield queue
    await queue.stop(drain=False)

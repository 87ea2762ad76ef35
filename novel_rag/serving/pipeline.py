"""
Novel RAG Pipeline
-------------------
Wires every component from one AppConfig:

    NovelStore (InMemoryStore / JsonFileStore)
        |
        v
    FixedOverlapChunker + Embedder  ->  ContextAssembler  <-  ReindexQueue
        |                                      |
        v                                      v
    ChapterService (writes)            ChapterGenerator (outline / expand)
                                               |
                                               v
                                       OpenAIGateway

The CLI and the API server both build one pipeline, start() it to launch
the reindex workers, and stop() it on the way out.
"""
from __future__ import annotations

from typing import Optional

from loguru import logger

from novel_rag.chunking.chunker import FixedOverlapChunker
from novel_rag.config import AppConfig
from novel_rag.embedding.embedder import Embedder, make_embedder
from novel_rag.generation.gateway import GenerationGateway, OpenAIGateway
from novel_rag.generation.generator import ChapterGenerator
from novel_rag.indexing.queue import ReindexQueue
from novel_rag.retrieval.assembler import ContextAssembler
from novel_rag.serving.chapter_service import ChapterService
from novel_rag.storage.base import NovelStore
from novel_rag.storage.json_store import JsonFileStore


class NovelRAGPipeline:
    """
    Usage:
        pipeline = NovelRAGPipeline(load_config())
        async with pipeline:
            chapter = await pipeline.chapters.create_chapter(novel.id, 1, "开篇", text)
            outline = await pipeline.generator.generate_outline(novel.id, 2)
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        store: Optional[NovelStore] = None,
        embedder: Optional[Embedder] = None,
        gateway: Optional[GenerationGateway] = None,
    ) -> None:
        self.config = config or AppConfig()
        cfg = self.config

        self.store = store if store is not None else JsonFileStore.load(cfg.storage.path)
        self.embedder = embedder or make_embedder(cfg.embedding)
        self.chunker = FixedOverlapChunker(cfg.chunking.chunk_size, cfg.chunking.overlap)

        self.assembler = ContextAssembler(
            chapters=self.store,
            contexts=self.store,
            embedder=self.embedder,
            chunker=self.chunker,
            top_k=cfg.retrieval.top_k,
            recent_limit=cfg.retrieval.recent_limit,
        )
        self.reindex_queue = ReindexQueue(self.assembler, workers=cfg.indexing.workers)
        self.chapters = ChapterService(self.store, self.reindex_queue)

        self.gateway = gateway or OpenAIGateway(
            model=cfg.generation.model,
            user_default_model=cfg.generation.user_default_model,
            temperature=cfg.generation.temperature,
        )
        self.generator = ChapterGenerator(
            assembler=self.assembler,
            gateway=self.gateway,
            config=cfg.generation,
            recent_limit=cfg.retrieval.recent_limit,
        )

        logger.info(
            f"[Pipeline] Ready | embedder={type(self.embedder).__name__} "
            f"dim={self.embedder.dimensions} | chunk={cfg.chunking.chunk_size}/"
            f"{cfg.chunking.overlap} | top_k={cfg.retrieval.top_k} | "
            f"model={cfg.generation.model}"
        )

    async def start(self) -> None:
        await self.reindex_queue.start()

    async def stop(self) -> None:
        """Drain pending reindexes, stop the workers, persist file-backed stores."""
        await self.reindex_queue.stop(drain=True)
        self.persist()

    def persist(self) -> None:
        if isinstance(self.store, JsonFileStore):
            self.store.save()

    async def __aenter__(self) -> "NovelRAGPipeline":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

"""
Context Retriever
------------------
Embeds a query and ranks every stored chunk of one novel against it by
cosine similarity.

The retriever is stateless per query -- call retrieve() as many times as
you like from the same instance.
"""
from __future__ import annotations

from langsmith import traceable
from loguru import logger

from novel_rag.embedding.embedder import Embedder
from novel_rag.retrieval.similarity import rank
from novel_rag.schemas import RetrievalResult
from novel_rag.storage.base import ContextStore


class ContextRetriever:
    """Brute-force cosine retrieval over a ContextStore."""

    def __init__(self, store: ContextStore, embedder: Embedder, top_k: int = 15) -> None:
        self.store = store
        self.embedder = embedder
        self.top_k = top_k

    @traceable(name="retrieve", run_type="retriever")
    async def retrieve(self, novel_id: int, query: str, top_k: int | None = None) -> list[RetrievalResult]:
        """
        Embed the query and return the novel's top-k most similar chunks.

        Args:
            novel_id: Novel whose chunks are searched.
            query:    Raw query text.
            top_k:    Override for self.top_k.

        Returns:
            RetrievalResults sorted by descending score; empty when the novel
            has no stored embeddings.
        """
        limit = self.top_k if top_k is None else top_k
        logger.debug(f"[Retriever] novel={novel_id} | query={query[:80]!r}")

        stored = await self.store.get_all_embeddings(novel_id)
        if not stored:
            logger.info(f"[Retriever] novel={novel_id} has no stored embeddings")
            return []

        query_vec = await self.embedder.embed_query(query)
        results = rank(
            query_vec,
            [(row.chunk_text, row.embedding) for row in stored],
            top_k=limit,
            chapter_ids=[row.chapter_id for row in stored],
        )

        logger.info(
            f"[Retriever] Retrieved {len(results)} of {len(stored)} chunks "
            f"(top score: {results[0].score:.4f})" if results else "[Retriever] No results"
        )
        return results

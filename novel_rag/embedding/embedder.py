"""
Embedders
----------
Every embedder maps text to a fixed-length, L2-normalised float vector and
exposes the same async interface, so the retriever and assembler never
know which one they are talking to:

  HashEmbedder    -- deterministic, offline placeholder (default)
  OpenAIEmbedder  -- text-embedding-3-small via the OpenAI API

HashEmbedder carries NO semantic meaning.  Each character's code point is
accumulated into the slot `(code_point * position) % dimensions`, then the
vector is normalised.  Similarity between two hash embeddings is only a
weak proxy for lexical/positional overlap.  It exists so the retrieval
path works (and is reproducible bit-for-bit) without an embedding
provider; swap in OpenAIEmbedder for real semantic retrieval.
"""
from __future__ import annotations

import os
import time
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
from langsmith import traceable
from loguru import logger
from openai import AsyncOpenAI
from tenacity import retry, stop_after_attempt, wait_exponential


DIMENSIONS = 1536          # text-embedding-3-small native dimensions
MODEL = "text-embedding-3-small"
BATCH_SIZE = 512           # OpenAI allows up to 2048; 512 keeps requests < 1 MB


def hash_embedding(text: str, dimensions: int = DIMENSIONS) -> np.ndarray:
    """
    Deterministic character-position embedding.

    Returns a float64 vector of length `dimensions` with unit Euclidean
    norm, or the zero vector for empty text.
    """
    vector = np.zeros(dimensions, dtype=np.float64)
    if not text:
        return vector

    codes = np.fromiter((ord(ch) for ch in text), dtype=np.int64, count=len(text))
    positions = np.arange(len(text), dtype=np.int64)
    slots = (codes * positions) % dimensions
    # np.add.at accumulates repeated slots in index order, so the result is
    # bit-identical across calls.
    np.add.at(vector, slots, codes / 1000.0)

    magnitude = np.linalg.norm(vector)
    if magnitude > 0:
        vector /= magnitude
    return vector


def _l2_normalise(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms = np.where(norms == 0, 1, norms)  # avoid div-by-zero
    return matrix / norms


class Embedder(ABC):
    """Text -> vector interface shared by every embedding provider."""

    dimensions: int

    @abstractmethod
    async def embed_texts(self, texts: list[str]) -> np.ndarray:
        """
        Embed texts independently and in order.

        Returns an (N, dimensions) array; row i belongs to texts[i].  No
        deduplication or caching.
        """
        ...

    async def embed_query(self, text: str) -> np.ndarray:
        """Embed a single string. Returns shape (dimensions,)."""
        return (await self.embed_texts([text]))[0]


class HashEmbedder(Embedder):
    """Offline placeholder embedder built on hash_embedding()."""

    name = "hash"

    def __init__(self, dimensions: int = DIMENSIONS) -> None:
        self.dimensions = dimensions

    async def embed_texts(self, texts: list[str]) -> np.ndarray:
        if not texts:
            return np.empty((0, self.dimensions), dtype=np.float64)
        matrix = np.vstack([hash_embedding(t, self.dimensions) for t in texts])
        logger.debug(f"[Embedder] hash | {len(texts)} texts | dim={self.dimensions}")
        return matrix


class OpenAIEmbedder(Embedder):
    """
    Generates L2-normalised embeddings using text-embedding-3-small.

    Texts are sent in batches; each batch call is retried with exponential
    backoff by tenacity.
    """

    name = "openai"

    def __init__(
        self,
        model: str = MODEL,
        dimensions: int = DIMENSIONS,
        batch_size: int = BATCH_SIZE,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model = model
        self.dimensions = dimensions
        self.batch_size = batch_size
        self._client = client or AsyncOpenAI(api_key=os.getenv("OPENAI_API_KEY"))
        self.total_tokens_used: int = 0
        self.total_api_calls: int = 0

    @traceable(name="embed_texts", run_type="embedding")
    async def embed_texts(self, texts: list[str]) -> np.ndarray:
        if not texts:
            return np.empty((0, self.dimensions), dtype=np.float64)

        all_embeddings: list[list[float]] = []

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i: i + self.batch_size]
            embeddings, tokens = await self._embed_batch(batch)
            all_embeddings.extend(embeddings)
            self.total_tokens_used += tokens
            self.total_api_calls += 1

            logger.debug(
                f"[Embedder] Batch {i // self.batch_size + 1} | "
                f"{len(batch)} texts | {tokens} tokens | "
                f"Running total: {self.total_tokens_used} tokens"
            )

        return _l2_normalise(np.array(all_embeddings, dtype=np.float64))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def _embed_batch(self, texts: list[str]) -> tuple[list[list[float]], int]:
        """Call the OpenAI Embeddings API for a single batch."""
        # The API rejects empty strings
        safe_texts = [t if t.strip() else " " for t in texts]
        start = time.perf_counter()
        response = await self._client.embeddings.create(
            model=self.model, input=safe_texts, dimensions=self.dimensions
        )
        elapsed = time.perf_counter() - start

        embeddings = [item.embedding for item in sorted(response.data, key=lambda x: x.index)]
        tokens_used = response.usage.total_tokens
        logger.debug(f"[Embedder] API call: {len(texts)} texts, {tokens_used} tokens, {elapsed:.2f}s")
        return embeddings, tokens_used

    def usage_summary(self) -> dict:
        return {
            "model": self.model,
            "total_api_calls": self.total_api_calls,
            "total_tokens_used": self.total_tokens_used,
            # text-embedding-3-small: $0.020 per million tokens
            "estimated_cost_usd": round(self.total_tokens_used / 1_000_000 * 0.020, 6),
        }


def make_embedder(config) -> Embedder:
    """Build the embedder selected by an EmbeddingConfig."""
    if config.provider == "openai":
        return OpenAIEmbedder(
            model=config.model,
            dimensions=config.dimensions,
            batch_size=config.batch_size,
        )
    return HashEmbedder(dimensions=config.dimensions)

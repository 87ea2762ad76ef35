"""
Cosine Similarity Ranker
-------------------------
Exact (brute-force) cosine ranking over a novel's stored chunks.  A single
novel holds tens to low hundreds of chunks, so no ANN index is needed.

Ordering is deterministic: Python's sort is stable, so candidates with
equal scores keep their storage order.
"""
from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
from loguru import logger

from novel_rag.exceptions import DimensionMismatchError
from novel_rag.schemas import RetrievalResult


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """
    dot(a, b) / (|a| * |b|), or 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatchError: if the vectors differ in length.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise DimensionMismatchError(expected=va.shape[0], actual=vb.shape[0])

    magnitude_a = float(np.sqrt(np.dot(va, va)))
    magnitude_b = float(np.sqrt(np.dot(vb, vb)))
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0
    return float(np.dot(va, vb)) / (magnitude_a * magnitude_b)


def rank(
    query_vector: Sequence[float] | np.ndarray,
    candidates: Sequence[tuple[str, Sequence[float]]],
    top_k: int,
    chapter_ids: Optional[Sequence[int]] = None,
) -> list[RetrievalResult]:
    """
    Score (text, vector) candidates against the query, best first.

    Args:
        query_vector: The embedded query.
        candidates:   (chunk_text, vector) pairs in storage order.
        top_k:        Maximum number of results to return.
        chapter_ids:  Optional owner ids parallel to `candidates`, copied onto
                      the results for attribution.

    Returns:
        min(top_k, len(candidates)) RetrievalResults sorted by descending
        score; ties keep their input order.

    Raises:
        DimensionMismatchError: if any candidate vector's length differs from
        the query vector's.
    """
    query = np.asarray(query_vector, dtype=np.float64)
    dimension = query.shape[0]

    scored: list[RetrievalResult] = []
    for position, (text, vector) in enumerate(candidates):
        if len(vector) != dimension:
            raise DimensionMismatchError(
                expected=dimension,
                actual=len(vector),
                details={"candidate": position},
            )
        scored.append(
            RetrievalResult(
                text=text,
                score=cosine_similarity(query, vector),
                chapter_id=chapter_ids[position] if chapter_ids is not None else None,
            )
        )

    scored.sort(key=lambda r: r.score, reverse=True)
    results = scored[: max(top_k, 0)]

    logger.debug(
        f"[Ranker] {len(candidates)} candidates -> top {len(results)}"
        + (f" (best {results[0].score:.4f})" if results else "")
    )
    return results

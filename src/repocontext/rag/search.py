"""Hybrid search: sqlite-vec cosine similarity + FTS5 BM25, fused via RRF.

Reciprocal Rank Fusion (weighted, no smoothing constant):
  score(c) = weight_vector / rank_vector(c) + weight_fts / rank_fts(c)

A chunk missing from one list simply gets no contribution from it. Equal
fused scores are ordered by ascending chunk id so results are reproducible.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from repocontext.db.documents import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class HybridSearchOptions:
    """Fusion weights and result limits for one hybrid search.

    Attributes:
        weight_fts: Multiplier for the full-text reciprocal rank.
        weight_vector: Multiplier for the vector reciprocal rank.
        top_k: Maximum number of fused results; each leg fetches ``2 * top_k``.
        min_score: Fused results scoring below this are discarded.
    """

    weight_fts: float = 1.0
    weight_vector: float = 1.0
    top_k: int = 10
    min_score: float = 0.0


@dataclass
class SearchHit:
    """A fused search result."""

    chunk_id: int
    document_id: int
    chunk_index: int
    repository_id: str
    file_path: str
    title: str | None
    content: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


def fuse_rankings(
    vector_results: Sequence[tuple[int, float]],
    fts_results: Sequence[tuple[int, float]],
    weight_vector: float = 1.0,
    weight_fts: float = 1.0,
) -> dict[int, float]:
    """Weighted reciprocal-rank fusion of two best-first ``(chunk_id, score)`` lists.

    Only the positions matter; the leg scores themselves are ignored.
    """
    combined: dict[int, float] = {}
    for rank, (chunk_id, _) in enumerate(vector_results, start=1):
        combined[chunk_id] = combined.get(chunk_id, 0.0) + weight_vector / rank
    for rank, (chunk_id, _) in enumerate(fts_results, start=1):
        combined[chunk_id] = combined.get(chunk_id, 0.0) + weight_fts / rank
    return combined


class HybridSearch:
    """Stateless search engine over a DocumentStore.

    The synchronous store calls run in worker threads so the vector and
    full-text legs proceed concurrently.
    """

    def __init__(self, documents: DocumentStore) -> None:
        self._documents = documents

    def vector_search(
        self,
        query_embedding: Sequence[float],
        repository_ids: Sequence[str],
        limit: int = 20,
    ) -> list[tuple[int, float]]:
        """Rank every embedded chunk of *repository_ids* by cosine similarity."""
        return self._documents.search_vectors(query_embedding, repository_ids, limit)

    def fts_search(
        self,
        query: str,
        repository_ids: Sequence[str],
        limit: int = 20,
    ) -> list[tuple[int, float]]:
        """BM25 full-text matches, scores normalized so the best is 1.0."""
        results = self._documents.search_fts(query, repository_ids, limit)
        if not results:
            return results
        best = max(score for _, score in results)
        if best <= 0:
            return results
        return [(chunk_id, score / best) for chunk_id, score in results]

    async def hybrid_search(
        self,
        query: str,
        query_embedding: Sequence[float],
        repository_ids: Sequence[str],
        options: HybridSearchOptions | None = None,
    ) -> list[SearchHit]:
        """Run both legs concurrently and return fused hits, best-first."""
        options = options or HybridSearchOptions()
        if not repository_ids:
            return []

        leg_limit = options.top_k * 2
        vector_results, fts_results = await asyncio.gather(
            asyncio.to_thread(self.vector_search, query_embedding, repository_ids, leg_limit),
            asyncio.to_thread(self.fts_search, query, repository_ids, leg_limit),
        )
        combined = fuse_rankings(
            vector_results,
            fts_results,
            weight_vector=options.weight_vector,
            weight_fts=options.weight_fts,
        )
        logger.debug(
            "Hybrid search: %d vector, %d fts, %d fused candidates",
            len(vector_results),
            len(fts_results),
            len(combined),
        )
        if not combined:
            return []

        rows = await asyncio.to_thread(
            self._documents.get_chunks_with_documents, list(combined)
        )
        hits = [
            SearchHit(
                chunk_id=row.chunk_id,
                document_id=row.document_id,
                chunk_index=row.chunk_index,
                repository_id=row.repository_id,
                file_path=row.file_path,
                title=row.title,
                content=row.content,
                score=combined[row.chunk_id],
                metadata=row.metadata,
            )
            for row in rows
            if combined[row.chunk_id] >= options.min_score
        ]
        hits.sort(key=lambda hit: (-hit.score, hit.chunk_id))
        return hits[: options.top_k]

    def get_document_context(
        self, document_id: int, center_chunk_id: int, context_chunks: int = 2
    ) -> str:
        """Join the centre chunk with up to *context_chunks* neighbours on each side.

        Returns "" when the centre chunk does not exist.
        """
        center = self._documents.get_chunk(center_chunk_id)
        if center is None:
            return ""
        neighbours = self._documents.get_neighbour_chunks(
            document_id, center.chunk_index, context_chunks
        )
        return "\n\n".join(chunk.content for chunk in neighbours)

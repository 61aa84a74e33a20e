"""
Hybrid search combining vector similarity and keyword matching.

This module provides:
- Hybrid search via the chunk store (pgvector + tsvector fused with RRF)
- Semantic-only search, used directly or as the fallback when hybrid fails
- Final ordering, truncation and candidate sizing for the re-rank stage
"""

import logging

from ingestion.embeddings import EmbeddingClient
from retrieval.exceptions import SearchUnavailable
from retrieval.fusion import rrf_score
from schemas.config import RetrievalConfig
from schemas.models import SearchCandidate
from storage.base import ChunkStore, SearchError

logger = logging.getLogger(__name__)


class HybridSearcher:
    """
    Hybrid search combining vector similarity and keyword matching.

    Uses Reciprocal Rank Fusion (RRF) to combine results from both
    search methods, providing robust retrieval for both semantic
    and exact keyword queries.

    RRF formula: score = sum(weight * 1/(k + rank)) for each method

    If the hybrid query fails, the searcher falls back to semantic-only
    search with the same threshold and result count. If that fails too,
    SearchUnavailable is raised.
    """

    def __init__(
        self,
        store: ChunkStore,
        config: RetrievalConfig | None = None,
        embedding_client: EmbeddingClient | None = None,
    ):
        """
        Initialize the hybrid searcher.

        Args:
            store: Chunk store exposing the search procedures
            config: Retrieval configuration
            embedding_client: Embedding provider used when no query embedding is given
        """
        self.store = store
        self.config = config or RetrievalConfig()
        self._embedding_client = embedding_client

    @property
    def embedding_client(self) -> EmbeddingClient:
        """Lazy initialization of the embedding client."""
        if self._embedding_client is None:
            self._embedding_client = EmbeddingClient()
        return self._embedding_client

    def candidate_count(self, top_k: int, for_reranking: bool = False) -> int:
        """Rows to request: top_k, or top_k x multiplier when a re-ranker follows."""
        if for_reranking:
            return top_k * self.config.candidate_multiplier
        return top_k

    async def search(
        self,
        query: str,
        brand_id: str,
        query_embedding: list[float] | None = None,
        top_k: int | None = None,
        threshold: float | None = None,
        semantic_weight: float | None = None,
        rrf_k: int | None = None,
        for_reranking: bool = False,
    ) -> list[SearchCandidate]:
        """
        Execute hybrid search with RRF fusion.

        Args:
            query: Search query text
            brand_id: Brand scope
            query_embedding: Precomputed query embedding (generated if omitted)
            top_k: Number of results (default: config.top_k)
            threshold: Minimum semantic similarity (default: config.threshold)
            semantic_weight: RRF semantic weight (default: config.semantic_weight)
            rrf_k: RRF constant (default: config.rrf_k)
            for_reranking: Fetch top_k x candidate_multiplier candidates

        Returns:
            List of SearchCandidate models ordered by fused score

        Raises:
            EmbeddingProviderError: If the query embedding cannot be generated
            SearchUnavailable: If hybrid and semantic-only search both fail
        """
        top_k = top_k or self.config.top_k
        threshold = self.config.threshold if threshold is None else threshold
        semantic_weight = (
            self.config.semantic_weight if semantic_weight is None else semantic_weight
        )
        rrf_k = rrf_k or self.config.rrf_k
        match_count = self.candidate_count(top_k, for_reranking)

        if query_embedding is None:
            query_embedding = await self.embedding_client.embed_single(query)

        if self.config.search_mode == "semantic":
            return await self.semantic_search(
                query_embedding, brand_id, match_count, threshold, semantic_weight, rrf_k
            )

        try:
            candidates = await self.store.hybrid_search(
                query=query,
                query_embedding=query_embedding,
                brand_id=brand_id,
                threshold=threshold,
                match_count=match_count,
                semantic_weight=semantic_weight,
                rrf_k=rrf_k,
            )
        except SearchError as e:
            logger.warning(f"Hybrid search error: {e}, falling back to semantic")
            return await self.semantic_search(
                query_embedding, brand_id, match_count, threshold, semantic_weight, rrf_k
            )

        results = self._finalize(candidates, match_count)
        logger.info(
            f"Hybrid search: {len(results)} candidates "
            f"({self._match_summary(results)})"
        )
        return results

    async def semantic_search(
        self,
        query_embedding: list[float],
        brand_id: str,
        match_count: int | None = None,
        threshold: float | None = None,
        semantic_weight: float | None = None,
        rrf_k: int | None = None,
    ) -> list[SearchCandidate]:
        """
        Perform semantic-only search.

        Candidates get the fused score they would have from the semantic
        list alone, so scores stay comparable with hybrid results.

        Args:
            query_embedding: Query embedding
            brand_id: Brand scope
            match_count: Number of results (default: config.top_k)
            threshold: Minimum semantic similarity (default: config.threshold)
            semantic_weight: RRF semantic weight (default: config.semantic_weight)
            rrf_k: RRF constant (default: config.rrf_k)

        Returns:
            List of SearchCandidate models ordered by similarity

        Raises:
            SearchUnavailable: If the semantic search fails
        """
        match_count = match_count or self.config.top_k
        threshold = self.config.threshold if threshold is None else threshold
        semantic_weight = (
            self.config.semantic_weight if semantic_weight is None else semantic_weight
        )
        rrf_k = rrf_k or self.config.rrf_k

        try:
            rows = await self.store.semantic_search(
                query_embedding=query_embedding,
                brand_id=brand_id,
                threshold=threshold,
                match_count=match_count,
            )
        except SearchError as e:
            logger.error(f"Semantic search error: {e}")
            raise SearchUnavailable(f"Search unavailable: {e}") from e

        rows = sorted(rows, key=lambda c: c.semantic_similarity, reverse=True)
        results = [
            c.model_copy(
                update={
                    "keyword_rank": None,
                    "match_type": "semantic",
                    "fused_score": rrf_score(rank, semantic_weight, rrf_k),
                }
            )
            for rank, c in enumerate(rows[:match_count], start=1)
        ]

        logger.info(f"Semantic search returned {len(results)} results")
        return results

    def _finalize(
        self,
        candidates: list[SearchCandidate],
        match_count: int,
    ) -> list[SearchCandidate]:
        """Deduplicate by chunk, order by fused score, truncate."""
        seen: dict[str, SearchCandidate] = {}
        for candidate in candidates:
            current = seen.get(candidate.id)
            if current is None or candidate.fused_score > current.fused_score:
                seen[candidate.id] = candidate

        ordered = sorted(seen.values(), key=lambda c: c.fused_score, reverse=True)
        return ordered[:match_count]

    @staticmethod
    def _match_summary(candidates: list[SearchCandidate]) -> str:
        counts = {"semantic": 0, "keyword": 0, "both": 0}
        for c in candidates:
            counts[c.match_type] += 1
        return ", ".join(f"{n} {t}" for t, n in counts.items())

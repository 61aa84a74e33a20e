"""
Complete retrieval pipeline: hybrid search, re-ranking and diversity.

Flow per query:
1. Embed the query
2. Hybrid search (semantic fallback inside the searcher)
3. If a reranker is available: re-rank top_k x 3 candidates, then MMR
4. Return the top_k results as SearchHits
"""

import logging

from ingestion.embeddings import EmbeddingClient
from retrieval.diversity import mmr_with_embeddings
from retrieval.exceptions import RerankerError
from retrieval.hybrid_search import HybridSearcher
from retrieval.reranker import Reranker, fallback_ranking, get_reranker
from schemas.config import RerankConfig, RetrievalConfig, get_settings
from schemas.models import SearchHit
from storage.base import ChunkStore

logger = logging.getLogger(__name__)


class RetrievalPipeline:
    """
    Complete retrieval pipeline with hybrid search and reranking.

    This combines:
    1. Hybrid search (vector + keyword with RRF)
    2. Optional re-ranking (Cohere or CrossEncoder)
    3. Optional MMR diversity selection over the re-ranked results

    Whether re-ranking runs is decided once, when the pipeline is built.
    """

    def __init__(
        self,
        store: ChunkStore,
        embedding_client: EmbeddingClient | None = None,
        retrieval_config: RetrievalConfig | None = None,
        rerank_config: RerankConfig | None = None,
        reranker: Reranker | None = None,
        use_reranking: bool = True,
    ):
        """
        Initialize the retrieval pipeline.

        Args:
            store: Chunk store to search
            embedding_client: Embedding provider for queries and MMR
            retrieval_config: Hybrid search configuration
            rerank_config: Re-ranking configuration
            reranker: Reranker to use instead of the configured one
            use_reranking: Set False to disable re-ranking entirely
        """
        settings = get_settings()
        self.retrieval_config = retrieval_config or settings.get_retrieval_config()
        self.rerank_config = rerank_config or settings.get_rerank_config()
        self.embedding_client = embedding_client or EmbeddingClient()
        self.searcher = HybridSearcher(
            store,
            config=self.retrieval_config,
            embedding_client=self.embedding_client,
        )

        if not use_reranking:
            self.reranker = None
        elif reranker is not None:
            self.reranker = reranker
        else:
            self.reranker = get_reranker(self.rerank_config)

    @property
    def reranking_available(self) -> bool:
        return self.reranker is not None

    def search_config(self) -> dict:
        """Snapshot of the effective settings, as stored with eval results."""
        return {
            "threshold": self.retrieval_config.threshold,
            "topK": self.retrieval_config.top_k,
            "model": self.embedding_client.model,
            "searchMode": self.retrieval_config.search_mode,
            "semanticWeight": self.retrieval_config.semantic_weight,
            "rrfK": self.retrieval_config.rrf_k,
            "rerank": self.reranking_available,
            "rerankProvider": self.rerank_config.provider,
            "rerankModel": self.rerank_config.model,
            "diversity": self.rerank_config.diversity,
            "diversityLambda": self.rerank_config.diversity_lambda,
        }

    async def retrieve(
        self,
        query: str,
        brand_id: str,
        top_k: int | None = None,
    ) -> list[SearchHit]:
        """
        Execute the full retrieval pipeline.

        Args:
            query: Search query
            brand_id: Brand scope
            top_k: Number of results to return (default: retrieval_config.top_k)

        Returns:
            At most top_k SearchHits, best first

        Raises:
            EmbeddingProviderError: If the query cannot be embedded
            SearchUnavailable: If both hybrid and semantic search fail
        """
        top_k = top_k or self.retrieval_config.top_k
        query_embedding = await self.embedding_client.embed_single(query)

        if self.reranker is None:
            candidates = await self.searcher.search(
                query, brand_id, query_embedding=query_embedding, top_k=top_k
            )
            return [SearchHit.from_candidate(c) for c in candidates[:top_k]]

        candidates = await self.searcher.search(
            query,
            brand_id,
            query_embedding=query_embedding,
            top_k=top_k,
            for_reranking=True,
        )
        if not candidates:
            return []

        diversity = self.rerank_config.diversity
        rerank_k = top_k * 2 if diversity else top_k

        try:
            ranked = await self.reranker.rerank_async(query, candidates, rerank_k)
        except RerankerError as e:
            logger.error(f"Re-ranking failed: {e}, falling back to fused ordering")
            ranked = fallback_ranking(candidates, rerank_k)

        if diversity and len(ranked) > top_k:
            ranked = await mmr_with_embeddings(
                ranked,
                self.embedding_client,
                top_k,
                self.rerank_config.diversity_lambda,
            )

        logger.info(
            f"Retrieval: {len(candidates)} candidates -> "
            f"{min(len(ranked), top_k)} after reranking"
        )
        return [SearchHit.from_ranked(r) for r in ranked[:top_k]]


async def retrieve(
    query: str,
    brand_id: str,
    store: ChunkStore,
    top_k: int | None = None,
) -> list[SearchHit]:
    """
    Convenience function for retrieval with the configured pipeline.

    Args:
        query: Search query
        brand_id: Brand scope
        store: Chunk store to search
        top_k: Number of results to return

    Returns:
        List of SearchHit models
    """
    pipeline = RetrievalPipeline(store)
    return await pipeline.retrieve(query, brand_id, top_k)

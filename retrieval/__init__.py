"""
Retrieval pipeline for brand knowledge search.

This package implements hybrid search combining vector similarity
and keyword matching with RRF fusion, optional re-ranking and MMR
diversity selection.

Modules:
- fusion: Reciprocal Rank Fusion
- hybrid_search: HybridSearcher with semantic-only fallback
- reranker: Cohere and CrossEncoder re-ranking
- diversity: MMR selection
- pipeline: RetrievalPipeline tying the stages together
"""

from retrieval.diversity import mmr_select, mmr_with_embeddings
from retrieval.exceptions import RerankerError, SearchUnavailable
from retrieval.fusion import rrf_merge, rrf_score
from retrieval.hybrid_search import HybridSearcher
from retrieval.pipeline import RetrievalPipeline, retrieve
from retrieval.reranker import (
    CohereReranker,
    CrossEncoderReranker,
    fallback_ranking,
    get_reranker,
    validate_reranker_setup,
)

__version__ = "0.1.0"

__all__ = [
    # Fusion
    "rrf_merge",
    "rrf_score",
    # Hybrid Search
    "HybridSearcher",
    "SearchUnavailable",
    # Reranking
    "CohereReranker",
    "CrossEncoderReranker",
    "RerankerError",
    "fallback_ranking",
    "get_reranker",
    "validate_reranker_setup",
    # Diversity
    "mmr_select",
    "mmr_with_embeddings",
    # Pipeline
    "RetrievalPipeline",
    "retrieve",
]

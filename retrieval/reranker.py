"""
Re-ranking of hybrid search candidates.

This module provides:
- Cohere Rerank API re-ranking (default provider)
- Local CrossEncoder re-ranking via sentence-transformers
- Fallback ordering when a re-ranking call fails
- Setup validation for the configured provider
"""

import asyncio
import logging

import requests
from sentence_transformers import CrossEncoder

from retrieval.exceptions import RerankerError
from schemas.config import RerankConfig, get_settings
from schemas.models import RankedResult, SearchCandidate

logger = logging.getLogger(__name__)


def fallback_ranking(
    candidates: list[SearchCandidate],
    top_k: int,
) -> list[RankedResult]:
    """Keep the fused ordering, scoring each result by its similarity."""
    return [
        RankedResult(
            candidate=candidate,
            relevance_score=candidate.similarity,
            original_rank=idx,
        )
        for idx, candidate in enumerate(candidates[:top_k])
    ]


class CohereReranker:
    """
    Reranker backed by the Cohere Rerank API.

    Candidates are sent as plain document texts; Cohere returns the indices
    of the top_n documents with a relevance score in [0, 1].
    """

    def __init__(
        self,
        api_key: str | None = None,
        config: RerankConfig | None = None,
    ):
        """
        Initialize the reranker.

        Args:
            api_key: Cohere API key (uses env var if not provided)
            config: Re-ranking configuration
        """
        self.config = config or RerankConfig()
        self.api_key = api_key or get_settings().cleaned_cohere_api_key
        self.model_name = self.config.model

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def rerank(
        self,
        query: str,
        candidates: list[SearchCandidate],
        top_k: int,
    ) -> list[RankedResult]:
        """
        Rerank candidates with the Cohere API.

        Args:
            query: Original search query
            candidates: Candidates from hybrid search
            top_k: Number of results to request

        Returns:
            RankedResult list ordered by relevance, below min_score dropped

        Raises:
            RerankerError: On missing key, HTTP or connection errors
        """
        if not candidates:
            return []
        if not self.api_key:
            raise RerankerError("COHERE_API_KEY not configured")

        payload = {
            "query": query,
            "documents": [c.content for c in candidates],
            "top_n": min(top_k, len(candidates)),
            "model": self.model_name,
            "return_documents": False,
        }

        try:
            response = requests.post(
                self.config.api_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            raise RerankerError(f"Cohere request failed: {e}") from e

        if not response.ok:
            raise RerankerError(f"Cohere API error: {response.status_code} - {response.text}")

        try:
            rows = response.json()["results"]
            ranked = [
                RankedResult(
                    candidate=candidates[row["index"]],
                    relevance_score=float(row["relevance_score"]),
                    original_rank=row["index"],
                )
                for row in rows
            ]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise RerankerError(f"Unexpected Cohere response: {e}") from e

        ranked = [r for r in ranked if r.relevance_score >= self.config.min_score]
        ranked.sort(key=lambda r: r.relevance_score, reverse=True)

        logger.info(f"Cohere reranked {len(candidates)} candidates to top {len(ranked)}")
        return ranked

    async def rerank_async(
        self,
        query: str,
        candidates: list[SearchCandidate],
        top_k: int,
    ) -> list[RankedResult]:
        """Run the blocking HTTP call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, lambda: self.rerank(query, candidates, top_k)
        )


class CrossEncoderReranker:
    """
    Reranker using CrossEncoder models.

    CrossEncoder models score query-document pairs directly,
    providing more accurate relevance scores than bi-encoder
    similarity for the final ranking.
    """

    def __init__(
        self,
        model_name: str | None = None,
        config: RerankConfig | None = None,
    ):
        """
        Initialize the reranker.

        Args:
            model_name: CrossEncoder model name
            config: Re-ranking configuration
        """
        self.config = config or RerankConfig()
        self.model_name = model_name or self.config.cross_encoder_model
        self._model: CrossEncoder | None = None

    @property
    def available(self) -> bool:
        return True

    @property
    def model(self) -> CrossEncoder:
        """Lazy initialization of CrossEncoder model."""
        if self._model is None:
            logger.info(f"Loading reranker model: {self.model_name}")
            self._model = CrossEncoder(self.model_name)
            logger.info("Reranker model loaded")
        return self._model

    def rerank(
        self,
        query: str,
        candidates: list[SearchCandidate],
        top_k: int,
    ) -> list[RankedResult]:
        """
        Rerank candidates using CrossEncoder.

        Args:
            query: Original search query
            candidates: Candidates from hybrid search
            top_k: Number of results to return after reranking

        Returns:
            RankedResult list ordered by relevance, below min_score dropped

        Raises:
            RerankerError: If the model cannot be loaded or scored
        """
        if not candidates:
            return []

        pairs = [(query, c.content) for c in candidates]

        try:
            scores = self.model.predict(pairs)
        except (OSError, RuntimeError, ValueError) as e:
            raise RerankerError(f"CrossEncoder scoring failed: {e}") from e

        ranked = [
            RankedResult(candidate=c, relevance_score=float(score), original_rank=idx)
            for idx, (c, score) in enumerate(zip(candidates, scores))
            if float(score) >= self.config.min_score
        ]
        ranked.sort(key=lambda r: r.relevance_score, reverse=True)
        ranked = ranked[:top_k]

        logger.info(f"Reranked {len(candidates)} candidates to top {len(ranked)}")
        return ranked

    async def rerank_async(
        self,
        query: str,
        candidates: list[SearchCandidate],
        top_k: int,
    ) -> list[RankedResult]:
        """
        Async wrapper for reranking.

        CrossEncoder prediction is CPU-bound, so it runs in the default
        executor.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, lambda: self.rerank(query, candidates, top_k)
        )


Reranker = CohereReranker | CrossEncoderReranker


def get_reranker(config: RerankConfig | None = None) -> Reranker | None:
    """
    Get the configured reranker, or None when it cannot run.

    Args:
        config: Re-ranking configuration

    Returns:
        Reranker instance, or None if the Cohere key is missing
    """
    config = config or get_settings().get_rerank_config()

    if config.provider == "cross_encoder":
        return CrossEncoderReranker(config=config)

    reranker = CohereReranker(config=config)
    if not reranker.available:
        logger.warning("COHERE_API_KEY not set, re-ranking disabled")
        return None
    return reranker


def validate_reranker_setup(config: RerankConfig | None = None) -> dict:
    """
    Check whether re-ranking can run with the current configuration.

    A missing Cohere key is valid: search falls back to fused ordering.

    Returns:
        Dict with ``valid``, ``reranker_configured``, ``provider`` and ``error``
    """
    config = config or get_settings().get_rerank_config()

    if config.provider == "cross_encoder":
        return {
            "valid": True,
            "reranker_configured": True,
            "provider": config.provider,
            "error": None,
        }

    if not get_settings().cleaned_cohere_api_key:
        return {
            "valid": True,
            "reranker_configured": False,
            "provider": config.provider,
            "error": "COHERE_API_KEY not set - search will use fused ordering without re-ranking",
        }

    return {
        "valid": True,
        "reranker_configured": True,
        "provider": config.provider,
        "error": None,
    }

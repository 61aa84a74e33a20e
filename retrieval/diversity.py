"""
Maximal Marginal Relevance (MMR) diversity selection.

MMR balances relevance with diversity by penalizing results that are too
similar to results already selected:

    mmr(d) = lambda * norm_relevance(d) - (1 - lambda) * max_sim(d, selected)

Relevance is min-max normalized over the candidate set; similarity is cosine
over candidate embeddings.
"""

import logging

import numpy as np

from ingestion.embeddings import EmbeddingClient, EmbeddingProviderError
from schemas.models import RankedResult

logger = logging.getLogger(__name__)


def similarity_matrix(embeddings: list[list[float]]) -> np.ndarray:
    """Pairwise cosine similarity; rows with zero norm score 0 against everything."""
    vectors = np.asarray(embeddings, dtype=float)
    norms = np.linalg.norm(vectors, axis=1)
    norms[norms == 0] = 1.0
    unit = vectors / norms[:, None]
    return unit @ unit.T


def mmr_select(
    results: list[RankedResult],
    embeddings: list[list[float]],
    top_k: int,
    lambda_: float = 0.7,
) -> list[RankedResult]:
    """
    Select a diverse subset of re-ranked results.

    Args:
        results: Re-ranked results
        embeddings: One embedding per result, same order
        top_k: Number of results to select
        lambda_: 1.0 is pure relevance, 0.0 pure novelty

    Returns:
        Up to top_k results in selection order, with diversity_score set.
        Inputs no longer than top_k are returned unchanged.
    """
    if len(results) <= top_k:
        return list(results)
    if len(embeddings) != len(results):
        raise ValueError(
            f"Expected {len(results)} embeddings for MMR, got {len(embeddings)}"
        )

    relevance = np.array([r.relevance_score for r in results], dtype=float)
    spread = float(relevance.max() - relevance.min()) or 1.0
    normalized = (relevance - relevance.min()) / spread

    sims = similarity_matrix(embeddings)
    max_sim = np.zeros(len(results))
    available = np.ones(len(results), dtype=bool)

    selected: list[RankedResult] = []
    while len(selected) < top_k and available.any():
        scores = lambda_ * normalized - (1 - lambda_) * max_sim
        scores[~available] = -np.inf
        best = int(np.argmax(scores))

        selected.append(
            results[best].model_copy(update={"diversity_score": float(scores[best])})
        )
        available[best] = False
        max_sim = np.maximum(max_sim, sims[best])

    return selected


async def mmr_with_embeddings(
    results: list[RankedResult],
    embedding_client: EmbeddingClient,
    top_k: int,
    lambda_: float = 0.7,
) -> list[RankedResult]:
    """
    Embed result contents, then apply MMR.

    Falls back to the top_k results by relevance if embeddings cannot be
    generated.
    """
    if len(results) <= top_k:
        return list(results)

    try:
        embeddings = await embedding_client.embed([r.content for r in results])
    except EmbeddingProviderError as e:
        logger.warning(f"Failed to generate embeddings for MMR: {e}, using relevance order")
        return list(results[:top_k])

    return mmr_select(results, embeddings, top_k, lambda_)

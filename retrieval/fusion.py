"""
Reciprocal Rank Fusion of semantic and keyword rankings.

RRF combines rankings from multiple retrieval methods by assigning scores
based on rank position rather than raw scores, so cosine similarity and
ts_rank never have to be put on a common scale.

Formula: RRF(d) = semantic_weight / (k + rank_s(d)) + (1 - semantic_weight) / (k + rank_k(d))
"""

from schemas.models import SearchCandidate


def rrf_score(rank: int | None, weight: float, rrf_k: int) -> float:
    """Contribution of one ranked list; ``rank`` is 1-indexed, None means absent."""
    if rank is None:
        return 0.0
    return weight * (1.0 / (rrf_k + rank))


def rrf_merge(
    semantic_results: list[SearchCandidate],
    keyword_results: list[SearchCandidate],
    semantic_weight: float = 0.7,
    rrf_k: int = 60,
) -> list[SearchCandidate]:
    """
    Merge two ranked candidate lists using Reciprocal Rank Fusion.

    Args:
        semantic_results: Candidates ordered by semantic similarity
        keyword_results: Candidates ordered by keyword rank
        semantic_weight: Weight of the semantic list; keyword gets 1 - weight
        rrf_k: RRF constant

    Returns:
        Deduplicated candidates ordered by fused score, tagged with match_type
    """
    keyword_weight = 1.0 - semantic_weight

    semantic_ranks: dict[str, int] = {}
    keyword_ranks: dict[str, int] = {}
    by_id: dict[str, SearchCandidate] = {}
    keyword_by_id: dict[str, SearchCandidate] = {}

    for rank, candidate in enumerate(semantic_results, start=1):
        semantic_ranks.setdefault(candidate.id, rank)
        by_id.setdefault(candidate.id, candidate)

    for rank, candidate in enumerate(keyword_results, start=1):
        keyword_ranks.setdefault(candidate.id, rank)
        keyword_by_id.setdefault(candidate.id, candidate)
        by_id.setdefault(candidate.id, candidate)

    merged = []
    for chunk_id, base in by_id.items():
        s_rank = semantic_ranks.get(chunk_id)
        k_rank = keyword_ranks.get(chunk_id)

        if s_rank is not None and k_rank is not None:
            match_type = "both"
        elif s_rank is not None:
            match_type = "semantic"
        else:
            match_type = "keyword"

        keyword_hit = keyword_by_id.get(chunk_id)
        merged.append(
            SearchCandidate(
                chunk=base.chunk,
                semantic_similarity=base.semantic_similarity if s_rank is not None else 0.0,
                keyword_rank=keyword_hit.keyword_rank if keyword_hit is not None else None,
                fused_score=(
                    rrf_score(s_rank, semantic_weight, rrf_k)
                    + rrf_score(k_rank, keyword_weight, rrf_k)
                ),
                match_type=match_type,
            )
        )

    merged.sort(key=lambda c: c.fused_score, reverse=True)
    return merged

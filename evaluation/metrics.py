"""
Retrieval quality metrics.

This module provides:
- Relevance judgement of a search hit against a labeled query
- Reciprocal Rank, Recall@K and exact-match rank per query
- Nearest-rank percentiles and aggregation over many queries
"""

import math

from schemas.models import (
    QUERY_TYPES,
    EvalQuery,
    OverallMetrics,
    QueryResult,
    SearchHit,
    TypeMetrics,
)


def is_relevant(hit: SearchHit, query: EvalQuery) -> bool:
    """
    Check whether a hit matches the query's expected documents or topics.

    The hit's content, title, category and heading path are lowercased and
    joined. An expected document slug matches with dashes read as spaces,
    or when the category contains the slug itself. Topics match as
    case-insensitive substrings.
    """
    category = (hit.document_category or "").lower()
    combined = " ".join(
        [
            hit.content.lower(),
            (hit.document_title or "").lower(),
            category,
            " ".join(hit.heading_hierarchy).lower(),
        ]
    )

    for doc in query.expected_documents:
        slug = doc.lower()
        if slug.replace("-", " ") in combined or slug in category:
            return True

    return any(topic.lower() in combined for topic in query.expected_topics)


def reciprocal_rank(hits: list[SearchHit], query: EvalQuery, k: int = 10) -> float:
    """1 / rank of the first relevant hit within the top k, else 0."""
    for rank, hit in enumerate(hits[:k], start=1):
        if is_relevant(hit, query):
            return 1.0 / rank
    return 0.0


def recall_at_k(hits: list[SearchHit], query: EvalQuery, k: int) -> float:
    """
    Relevant hits in the top k divided by the number of expected topics.

    The denominator is at least 1. Several hits can match the same topic,
    so the value is not capped at 1.
    """
    found = sum(1 for hit in hits[:k] if is_relevant(hit, query))
    return found / max(len(query.expected_topics), 1)


def exact_match_rank(hits: list[SearchHit], query_text: str) -> int | None:
    """1-indexed rank of the first hit whose content or title contains the query."""
    needle = query_text.lower()
    for rank, hit in enumerate(hits, start=1):
        if needle in hit.content.lower() or needle in (hit.document_title or "").lower():
            return rank
    return None


def percentile(values: list[float], p: float) -> float:
    """Nearest-rank percentile, no interpolation; 0 for an empty list."""
    if not values:
        return 0.0
    ordered = sorted(values)
    index = math.ceil((p / 100) * len(ordered)) - 1
    return ordered[max(0, index)]


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _exact_rate(results: list[QueryResult]) -> float:
    return _mean([1.0 if r.exact_match_rank == 1 else 0.0 for r in results])


def aggregate_overall(results: list[QueryResult]) -> OverallMetrics:
    """
    Aggregate per-query metrics across the whole run.

    Exact-match rate is computed over ``exact-match`` queries only. Latency
    statistics cover queries that completed without error.
    """
    latencies = [r.latency_ms for r in results if r.error is None]

    return OverallMetrics(
        mrr10=_mean([r.reciprocal_rank for r in results]),
        recall5=_mean([r.recall.get(5, 0.0) for r in results]),
        recall10=_mean([r.recall.get(10, 0.0) for r in results]),
        exact_match_rate=_exact_rate([r for r in results if r.type == "exact-match"]),
        avg_latency_ms=_mean(latencies),
        p95_latency_ms=percentile(latencies, 95),
    )


def aggregate_by_type(results: list[QueryResult]) -> dict[str, TypeMetrics]:
    """Per-type breakdown; types without queries are left out."""
    by_type: dict[str, TypeMetrics] = {}
    for query_type in QUERY_TYPES:
        typed = [r for r in results if r.type == query_type]
        if not typed:
            continue
        by_type[query_type] = TypeMetrics(
            count=len(typed),
            mrr10=_mean([r.reciprocal_rank for r in typed]),
            recall5=_mean([r.recall.get(5, 0.0) for r in typed]),
            recall10=_mean([r.recall.get(10, 0.0) for r in typed]),
            exact_match_rate=_exact_rate(typed),
        )
    return by_type

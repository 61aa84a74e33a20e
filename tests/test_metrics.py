"""Tests for evaluation/metrics.py: relevance, RR, Recall@K, exact match, aggregation."""
from __future__ import annotations

import pytest

from evaluation.metrics import (
    aggregate_by_type,
    aggregate_overall,
    exact_match_rank,
    is_relevant,
    percentile,
    recall_at_k,
    reciprocal_rank,
)
from schemas.models import EvalQuery, QueryResult, SearchHit


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _hit(
    content: str = "unrelated text",
    title: str | None = "Other",
    category: str | None = "misc",
    headings: list[str] | None = None,
) -> SearchHit:
    return SearchHit(
        id=f"h-{abs(hash((content, title)))}",
        content=content,
        similarity=0.5,
        document_title=title,
        document_category=category,
        heading_hierarchy=headings or [],
    )


def _query(
    text: str = "brand colors",
    documents: tuple[str, ...] = (),
    topics: tuple[str, ...] = (),
    query_type: str = "semantic",
) -> EvalQuery:
    return EvalQuery(
        id="q1",
        query=text,
        type=query_type,
        expected_documents=documents,
        expected_topics=topics,
    )


def _result(query_type: str, rr: float, recall5: float = 0.0, exact: int | None = None,
            latency: float = 10.0, error: str | None = None) -> QueryResult:
    return QueryResult(
        query_id=f"{query_type}-{rr}",
        query="q",
        type=query_type,
        reciprocal_rank=rr,
        recall={5: recall5, 10: recall5},
        exact_match_rank=exact,
        latency_ms=latency,
        error=error,
    )


# ---------------------------------------------------------------------------
# Relevance
# ---------------------------------------------------------------------------

class TestIsRelevant:
    def test_document_slug_matches_with_spaces(self):
        assert is_relevant(_hit(title="Brand Colors"), _query(documents=("brand-colors",)))

    def test_document_slug_matches_category(self):
        assert is_relevant(_hit(category="logo-usage"), _query(documents=("logo-usage",)))

    def test_topic_matches_heading_case_insensitively(self):
        hit = _hit(headings=["Visual Identity", "Color Palette"])
        assert is_relevant(hit, _query(topics=("color palette",)))

    def test_topic_matches_content(self):
        assert is_relevant(_hit(content="Use HEX #1A1A1A"), _query(topics=("#1a1a1a",)))

    def test_no_match(self):
        assert not is_relevant(_hit(), _query(documents=("brand-colors",), topics=("palette",)))

    def test_missing_title_and_category(self):
        assert not is_relevant(_hit(title=None, category=None), _query(topics=("palette",)))


# ---------------------------------------------------------------------------
# Reciprocal Rank
# ---------------------------------------------------------------------------

class TestReciprocalRank:
    def test_first_relevant_at_third_position(self):
        hits = [_hit(), _hit(content="x"), _hit(content="the palette")]
        assert reciprocal_rank(hits, _query(topics=("palette",))) == pytest.approx(1 / 3)

    def test_first_position(self):
        assert reciprocal_rank([_hit(content="palette")], _query(topics=("palette",))) == 1.0

    def test_no_relevant_result(self):
        assert reciprocal_rank([_hit()] * 10, _query(topics=("palette",))) == 0.0

    def test_relevant_beyond_cutoff_ignored(self):
        hits = [_hit(content=f"filler {i}") for i in range(10)] + [_hit(content="palette")]
        assert reciprocal_rank(hits, _query(topics=("palette",)), k=10) == 0.0

    def test_empty_results(self):
        assert reciprocal_rank([], _query(topics=("palette",))) == 0.0


# ---------------------------------------------------------------------------
# Recall@K
# ---------------------------------------------------------------------------

class TestRecallAtK:
    def test_fraction_of_expected_topics(self):
        hits = [_hit(content="palette"), _hit(), _hit(content="hex codes")]
        query = _query(topics=("palette", "hex", "typeface", "logo"))
        assert recall_at_k(hits, query, 5) == pytest.approx(0.5)

    def test_only_top_k_counted(self):
        hits = [_hit()] * 5 + [_hit(content="palette")]
        assert recall_at_k(hits, _query(topics=("palette",)), 5) == 0.0
        assert recall_at_k(hits, _query(topics=("palette",)), 10) == 1.0

    def test_denominator_at_least_one(self):
        hits = [_hit(title="Brand Colors"), _hit(title="Brand Colors Extended")]
        assert recall_at_k(hits, _query(documents=("brand-colors",)), 5) == pytest.approx(2.0)


# ---------------------------------------------------------------------------
# Exact match
# ---------------------------------------------------------------------------

class TestExactMatchRank:
    def test_match_in_second_result_title(self):
        hits = [_hit(), _hit(title="Brand Colors")]
        assert exact_match_rank(hits, "brand colors") == 2

    def test_match_in_content(self):
        assert exact_match_rank([_hit(content="Our BRAND COLORS are")], "brand colors") == 1

    def test_no_match(self):
        assert exact_match_rank([_hit(), _hit()], "brand colors") is None

    def test_words_must_be_contiguous(self):
        assert exact_match_rank([_hit(content="brand and colors")], "brand colors") is None


# ---------------------------------------------------------------------------
# Percentile and aggregation
# ---------------------------------------------------------------------------

class TestPercentile:
    def test_nearest_rank(self):
        values = [float(v) for v in range(1, 21)]
        assert percentile(values, 95) == 19.0

    def test_unsorted_input(self):
        assert percentile([30.0, 10.0, 20.0], 50) == 20.0

    def test_single_value(self):
        assert percentile([42.0], 95) == 42.0

    def test_empty(self):
        assert percentile([], 95) == 0.0


class TestAggregation:
    def test_overall_means(self):
        results = [
            _result("exact-match", 1.0, recall5=1.0, exact=1, latency=10.0),
            _result("semantic", 0.5, recall5=0.5, latency=30.0),
        ]
        overall = aggregate_overall(results)
        assert overall.mrr10 == pytest.approx(0.75)
        assert overall.recall5 == pytest.approx(0.75)
        assert overall.exact_match_rate == 1.0
        assert overall.avg_latency_ms == pytest.approx(20.0)
        assert overall.p95_latency_ms == 30.0

    def test_exact_match_rate_only_over_exact_match_queries(self):
        results = [
            _result("exact-match", 1.0, exact=2),
            _result("exact-match", 1.0, exact=1),
            _result("semantic", 1.0, exact=1),
        ]
        assert aggregate_overall(results).exact_match_rate == pytest.approx(0.5)

    def test_no_exact_match_queries_rate_zero(self):
        assert aggregate_overall([_result("semantic", 1.0, exact=1)]).exact_match_rate == 0.0

    def test_failed_queries_excluded_from_latency(self):
        results = [
            _result("semantic", 1.0, latency=40.0),
            _result("semantic", 0.0, latency=0.0, error="timeout"),
        ]
        overall = aggregate_overall(results)
        assert overall.avg_latency_ms == pytest.approx(40.0)
        assert overall.mrr10 == pytest.approx(0.5)

    def test_by_type_omits_empty_types(self):
        by_type = aggregate_by_type(
            [_result("semantic", 1.0), _result("semantic", 0.0), _result("edge-cases", 0.5)]
        )
        assert list(by_type) == ["semantic", "edge-cases"]
        assert by_type["semantic"].count == 2
        assert by_type["semantic"].mrr10 == pytest.approx(0.5)

    def test_by_type_exact_match_rate_over_type(self):
        by_type = aggregate_by_type([_result("ambiguous", 1.0, exact=1), _result("ambiguous", 1.0)])
        assert by_type["ambiguous"].exact_match_rate == pytest.approx(0.5)

    def test_empty_run(self):
        overall = aggregate_overall([])
        assert overall.mrr10 == 0.0
        assert aggregate_by_type([]) == {}

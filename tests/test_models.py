"""Tests for schemas/models.py: search and evaluation models."""
from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from conftest import make_candidate, make_chunk
from schemas.models import (
    EvalDataset,
    EvaluationMetrics,
    OverallMetrics,
    QueryResult,
    RankedResult,
    SearchCandidate,
    SearchHit,
)


class TestDocumentChunk:
    def test_heading_path_joins_hierarchy(self):
        chunk = make_chunk("c1", "text", headings=["Visual Identity", "Logo"])
        assert chunk.heading_path == "Visual Identity > Logo"


class TestSearchCandidate:
    def test_keyword_match_requires_keyword_rank(self):
        with pytest.raises(ValidationError):
            SearchCandidate(
                chunk=make_chunk("c1", "text"),
                semantic_similarity=0.0,
                keyword_rank=None,
                fused_score=0.01,
                match_type="keyword",
            )

    @pytest.mark.parametrize("match_type", ["semantic", "both"])
    def test_semantic_match_requires_similarity(self, match_type):
        with pytest.raises(ValidationError):
            SearchCandidate(
                chunk=make_chunk("c1", "text"),
                semantic_similarity=0.0,
                keyword_rank=0.3,
                fused_score=0.01,
                match_type=match_type,
            )

    def test_both_match_with_both_signals(self):
        candidate = SearchCandidate(
            chunk=make_chunk("c1", "text"),
            semantic_similarity=0.6,
            keyword_rank=0.3,
            fused_score=0.02,
            match_type="both",
        )
        assert candidate.similarity == pytest.approx(0.6)

    def test_similarity_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            SearchCandidate(chunk=make_chunk("c1", "text"), semantic_similarity=1.2)

    def test_negative_fused_score_rejected(self):
        with pytest.raises(ValidationError):
            SearchCandidate(chunk=make_chunk("c1", "text"), fused_score=-0.1)

    def test_similarity_falls_back_to_fused_score(self):
        candidate = SearchCandidate(
            chunk=make_chunk("c1", "text"),
            semantic_similarity=0.0,
            keyword_rank=0.4,
            fused_score=0.005,
            match_type="keyword",
        )
        assert candidate.similarity == pytest.approx(0.005)


class TestSearchHit:
    def test_from_candidate_copies_document_fields(self):
        candidate = make_candidate("c1", "Brand colors", similarity=0.8, title="Brand Colors")
        hit = SearchHit.from_candidate(candidate)
        assert hit.id == "c1"
        assert hit.document_title == "Brand Colors"
        assert hit.similarity == pytest.approx(0.8)
        assert hit.match_type == "semantic"

    def test_from_ranked_uses_relevance_score(self):
        ranked = RankedResult(
            candidate=make_candidate("c1", similarity=0.4),
            relevance_score=0.93,
            original_rank=2,
        )
        assert SearchHit.from_ranked(ranked).similarity == pytest.approx(0.93)


class TestEvalDataset:
    def test_parses_camel_case_fixture(self):
        dataset = EvalDataset.model_validate(
            {
                "metadata": {"version": "2.0", "createdAt": "2026-01-01", "totalQueries": 1},
                "queries": [
                    {
                        "id": "q1",
                        "query": "brand colors",
                        "type": "exact-match",
                        "expectedDocuments": ["brand-colors"],
                        "expectedTopics": ["palette"],
                    }
                ],
            }
        )
        assert dataset.metadata.total_queries == 1
        assert dataset.queries[0].expected_documents == ("brand-colors",)

    def test_dataset_is_immutable(self):
        dataset = EvalDataset()
        with pytest.raises(ValidationError):
            dataset.queries = ()

    def test_unknown_query_type_rejected(self):
        with pytest.raises(ValidationError):
            EvalDataset.model_validate(
                {"queries": [{"id": "q1", "query": "x", "type": "fuzzy"}]}
            )


class TestEvaluationMetrics:
    def _metrics(self, error: str | None = None) -> EvaluationMetrics:
        return EvaluationMetrics(
            brand_slug="open-session",
            total_queries=1,
            overall_metrics=OverallMetrics(
                mrr10=1.0,
                recall5=1.0,
                recall10=1.0,
                exact_match_rate=1.0,
                avg_latency_ms=12.0,
                p95_latency_ms=12.0,
            ),
            query_results=[
                QueryResult(query_id="q1", query="brand colors", type="exact-match", error=error)
            ],
        )

    def test_to_json_uses_camel_case_keys(self):
        payload = json.loads(self._metrics().to_json())
        assert payload["brandSlug"] == "open-session"
        assert payload["overallMetrics"]["exactMatchRate"] == 1.0
        assert payload["queryResults"][0]["queryId"] == "q1"

    def test_failed_queries(self):
        assert self._metrics().failed_queries == []
        assert len(self._metrics(error="boom").failed_queries) == 1

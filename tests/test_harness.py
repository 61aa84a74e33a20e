"""Tests for evaluation/harness.py: full evaluation runs over the in-memory store."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone

import pytest

from conftest import FakeEmbeddingClient, make_chunk
from evaluation.harness import SearchEvaluator, results_filename
from retrieval.pipeline import RetrievalPipeline
from schemas.config import EvaluationConfig, RetrievalConfig
from schemas.models import EvalDataset, EvalQuery
from storage.base import BrandNotFoundError
from storage.memory import InMemoryChunkStore


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _store(*chunks) -> InMemoryChunkStore:
    return InMemoryChunkStore(list(chunks), brands={"open-session": "brand-1"})


def _evaluator(store, tmp_path, embedder=None) -> SearchEvaluator:
    pipeline = RetrievalPipeline(
        store,
        embedding_client=embedder or FakeEmbeddingClient(),
        retrieval_config=RetrievalConfig(),
        use_reranking=False,
    )
    return SearchEvaluator(pipeline, store, EvaluationConfig(results_dir=tmp_path / "results"))


def _dataset(*queries: EvalQuery) -> EvalDataset:
    return EvalDataset(queries=queries)


BRAND_COLORS_QUERY = EvalQuery(
    id="em-001",
    query="brand colors",
    type="exact-match",
    expected_documents=("brand-colors",),
)


class FlakyEmbeddingClient(FakeEmbeddingClient):
    """Fails for one specific query text."""

    def __init__(self, failing_text: str):
        super().__init__()
        self.failing_text = failing_text

    async def embed(self, texts):
        if self.failing_text in texts:
            raise RuntimeError("socket closed")
        return await super().embed(texts)


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------

class TestSearchEvaluator:
    def test_exact_match_query_end_to_end(self, tmp_path):
        store = _store(make_chunk("c1", "Brand colors", title="Brand Colors"))
        evaluator = _evaluator(store, tmp_path)

        metrics = asyncio.run(evaluator.run(_dataset(BRAND_COLORS_QUERY), "open-session"))

        result = metrics.query_results[0]
        assert result.reciprocal_rank == 1.0
        assert result.exact_match_rank == 1
        assert result.recall[5] == 1.0
        assert metrics.overall_metrics.exact_match_rate == 1.0
        assert metrics.overall_metrics.mrr10 == 1.0
        assert metrics.by_type["exact-match"].count == 1
        assert metrics.reranking_available is False

    def test_exact_match_query_labeled_by_topic(self, tmp_path):
        store = _store(make_chunk("c1", "Brand colors", title="Brand Colors"))
        evaluator = _evaluator(store, tmp_path)
        query = EvalQuery(
            id="em-001",
            query="brand colors",
            type="exact-match",
            expected_topics=("brand colors",),
        )

        metrics = asyncio.run(evaluator.run(_dataset(query), "open-session"))

        result = metrics.query_results[0]
        assert result.reciprocal_rank == 1.0
        assert result.exact_match_rank == 1
        assert result.recall[5] == 1.0
        assert metrics.overall_metrics.exact_match_rate == 1.0

    def test_evaluation_is_idempotent(self, tmp_path):
        store = _store(
            make_chunk("c1", "Brand colors: black and orange", title="Brand Colors"),
            make_chunk("c2", "Logo clear space rules", title="Logo Usage"),
        )
        dataset = _dataset(
            BRAND_COLORS_QUERY,
            EvalQuery(id="sem-001", query="logo spacing", type="semantic", expected_topics=("clear space",)),
        )
        evaluator = _evaluator(store, tmp_path)

        first = asyncio.run(evaluator.run(dataset, "open-session"))
        second = asyncio.run(evaluator.run(dataset, "open-session"))

        def strip(metrics):
            payload = metrics.model_dump(exclude={"timestamp"})
            payload["overall_metrics"].pop("avg_latency_ms")
            payload["overall_metrics"].pop("p95_latency_ms")
            for result in payload["query_results"]:
                result.pop("latency_ms")
            return payload

        assert strip(first) == strip(second)

    def test_failed_query_recorded_and_run_continues(self, tmp_path, capsys):
        store = _store(make_chunk("c1", "Brand colors", title="Brand Colors"))
        evaluator = _evaluator(store, tmp_path, FlakyEmbeddingClient("broken query"))
        dataset = _dataset(
            EvalQuery(id="bad-1", query="broken query", type="semantic"),
            BRAND_COLORS_QUERY,
        )

        metrics = asyncio.run(evaluator.run(dataset, "open-session"))

        failed = metrics.query_results[0]
        assert failed.error == "socket closed"
        assert failed.reciprocal_rank == 0.0
        assert failed.recall == {5: 0.0, 10: 0.0}
        assert failed.results == []
        assert metrics.query_results[1].reciprocal_rank == 1.0
        assert [r.query_id for r in metrics.failed_queries] == ["bad-1"]
        assert "bad-1" in capsys.readouterr().out

    def test_unknown_brand_is_fatal(self, tmp_path):
        evaluator = _evaluator(_store(), tmp_path)
        with pytest.raises(BrandNotFoundError):
            asyncio.run(evaluator.run(_dataset(BRAND_COLORS_QUERY), "missing-brand"))

    def test_only_top_results_stored(self, tmp_path):
        store = _store(*[make_chunk(f"c{i}", f"brand colors variant {i}") for i in range(8)])
        evaluator = _evaluator(store, tmp_path)

        metrics = asyncio.run(evaluator.run(_dataset(BRAND_COLORS_QUERY), "open-session"))

        assert len(metrics.query_results[0].results) == 5

    def test_verbose_prints_per_query_lines(self, tmp_path, capsys):
        store = _store(make_chunk("c1", "Brand colors", title="Brand Colors"))
        evaluator = _evaluator(store, tmp_path)

        asyncio.run(evaluator.run(_dataset(BRAND_COLORS_QUERY), "open-session", verbose=True))

        out = capsys.readouterr().out
        assert '[OK] em-001: "brand colors"' in out
        assert "Top: Brand Colors" in out


# ---------------------------------------------------------------------------
# Reporting and persistence
# ---------------------------------------------------------------------------

class TestResultsFiles:
    @pytest.fixture()
    def metrics_and_evaluator(self, tmp_path):
        store = _store(make_chunk("c1", "Brand colors", title="Brand Colors"))
        evaluator = _evaluator(store, tmp_path)
        metrics = asyncio.run(evaluator.run(_dataset(BRAND_COLORS_QUERY), "open-session"))
        return metrics, evaluator

    def test_results_filename_replaces_separators(self):
        stamp = datetime(2026, 3, 4, 5, 6, 7, 890000, tzinfo=timezone.utc)
        assert results_filename(stamp) == "eval-2026-03-04T05-06-07-890Z.json"

    def test_save_writes_results_and_baseline(self, metrics_and_evaluator, tmp_path):
        metrics, evaluator = metrics_and_evaluator

        results_path, baseline_path = evaluator.save_results(metrics)

        assert results_path.exists()
        assert baseline_path == tmp_path / "results" / "baseline.json"
        payload = json.loads(results_path.read_text())
        assert payload["brandSlug"] == "open-session"
        assert payload["overallMetrics"]["mrr10"] == 1.0
        assert payload["queryResults"][0]["queryId"] == "em-001"

    def test_baseline_written_only_once(self, metrics_and_evaluator, tmp_path):
        metrics, evaluator = metrics_and_evaluator
        baseline = tmp_path / "results" / "baseline.json"
        baseline.parent.mkdir(parents=True)
        baseline.write_text('{"original": true}')

        _, baseline_path = evaluator.save_results(metrics)

        assert baseline_path is None
        assert json.loads(baseline.read_text()) == {"original": True}

    def test_report_contains_sections(self, metrics_and_evaluator, capsys):
        metrics, evaluator = metrics_and_evaluator
        evaluator.print_report(metrics)
        out = capsys.readouterr().out
        assert "MRR@10:           100.0%" in out
        assert "By Query Type:" in out
        assert "Worst Performing Queries:" in out

    def test_check_target(self, metrics_and_evaluator, capsys):
        metrics, evaluator = metrics_and_evaluator
        assert evaluator.check_target(metrics) is True

        low = metrics.model_copy(
            update={"overall_metrics": metrics.overall_metrics.model_copy(update={"mrr10": 0.5})}
        )
        assert evaluator.check_target(low) is False
        assert "below target (70%)" in capsys.readouterr().out

"""
Offline evaluation of search quality against a labeled dataset.

This module provides:
- SearchEvaluator: runs every dataset query through the retrieval pipeline
- Console report (overall metrics, per-type table, worst queries)
- Results persistence (timestamped file plus a write-once baseline)

Queries run strictly one after another so latency numbers are not skewed
by contention.
"""

import logging
import time
from datetime import datetime, timezone
from pathlib import Path

from evaluation.metrics import (
    aggregate_by_type,
    aggregate_overall,
    exact_match_rank,
    is_relevant,
    recall_at_k,
    reciprocal_rank,
)
from retrieval.pipeline import RetrievalPipeline
from schemas.config import EvaluationConfig
from schemas.models import EvalDataset, EvalQuery, EvaluationMetrics, QueryResult
from storage.base import ChunkStore

logger = logging.getLogger(__name__)

RULE = "=" * 70
THIN_RULE = "-" * 70
BASELINE_FILENAME = "baseline.json"


def results_filename(timestamp: datetime) -> str:
    """``eval-<ISO timestamp>.json`` with ':' and '.' replaced by '-'."""
    iso = timestamp.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    return f"eval-{iso.replace(':', '-').replace('.', '-')}.json"


class SearchEvaluator:
    """
    Evaluates a retrieval pipeline over an evaluation dataset.

    Usage:
        evaluator = SearchEvaluator(pipeline, store)
        metrics = await evaluator.run(dataset, "open-session")
        evaluator.print_report(metrics)
        evaluator.save_results(metrics)
    """

    def __init__(
        self,
        pipeline: RetrievalPipeline,
        store: ChunkStore,
        config: EvaluationConfig | None = None,
    ):
        """
        Initialize the evaluator.

        Args:
            pipeline: Retrieval pipeline under evaluation
            store: Chunk store used to resolve the brand slug
            config: Evaluation configuration
        """
        self.pipeline = pipeline
        self.store = store
        self.config = config or EvaluationConfig()

    async def evaluate_query(self, query: EvalQuery, brand_id: str) -> QueryResult:
        """
        Run one query and score its results.

        Exceptions from the pipeline propagate to the caller.
        """
        start = time.perf_counter()
        hits = await self.pipeline.retrieve(query.query, brand_id)
        latency_ms = (time.perf_counter() - start) * 1000

        return QueryResult(
            query_id=query.id,
            query=query.query,
            type=query.type,
            results=hits[: self.config.stored_results_per_query],
            reciprocal_rank=reciprocal_rank(hits, query, self.config.mrr_cutoff),
            recall={k: recall_at_k(hits, query, k) for k in self.config.recall_ks},
            exact_match_rank=exact_match_rank(hits, query.query),
            latency_ms=latency_ms,
        )

    async def run(
        self,
        dataset: EvalDataset,
        brand_slug: str,
        verbose: bool = False,
    ) -> EvaluationMetrics:
        """
        Evaluate every query in the dataset.

        A failing query is recorded with zeroed metrics and its error
        message; the run continues with the next query.

        Args:
            dataset: Labeled queries
            brand_slug: Brand to search
            verbose: Print a line per query instead of progress dots

        Returns:
            EvaluationMetrics for the run

        Raises:
            BrandNotFoundError: If the brand slug is unknown
        """
        self._print_header(brand_slug, len(dataset.queries))
        brand_id = await self.store.get_brand_id(brand_slug)

        print("Running queries...")
        print(THIN_RULE)

        query_results: list[QueryResult] = []
        for query in dataset.queries:
            try:
                result = await self.evaluate_query(query, brand_id)
            except Exception as e:
                logger.error(f"Error processing query {query.id}: {e}")
                print(f"Error processing query {query.id}: {e}")
                result = QueryResult(
                    query_id=query.id,
                    query=query.query,
                    type=query.type,
                    results=[],
                    reciprocal_rank=0.0,
                    recall={k: 0.0 for k in self.config.recall_ks},
                    exact_match_rank=None,
                    latency_ms=0.0,
                    error=str(e) or type(e).__name__,
                )
                query_results.append(result)
                continue

            query_results.append(result)
            if verbose:
                self._print_query_line(query, result)
            else:
                print(".", end="", flush=True)

        if not verbose:
            print(" done")
        print()

        return EvaluationMetrics(
            timestamp=datetime.now(timezone.utc),
            brand_slug=brand_slug,
            total_queries=len(query_results),
            search_config=self.pipeline.search_config(),
            overall_metrics=aggregate_overall(query_results),
            by_type=aggregate_by_type(query_results),
            query_results=query_results,
            reranking_available=self.pipeline.reranking_available,
        )

    def _print_header(self, brand_slug: str, total: int) -> None:
        search_config = self.pipeline.search_config()
        print(RULE)
        print("Search Evaluation")
        print(RULE)
        print(f"Brand: {brand_slug}")
        print(f"Search Mode: {search_config['searchMode']}")
        print(f"Model: {search_config['model']}")
        if self.pipeline.reranking_available:
            print(f"Re-ranking: ENABLED ({search_config['rerankProvider']})")
        else:
            print("Re-ranking: DISABLED (no API key)")
        print(f"Diversity (MMR): {'ENABLED' if search_config['diversity'] else 'DISABLED'}")
        print()
        print(f"Loaded {total} evaluation queries")
        print()

    @staticmethod
    def _print_query_line(query: EvalQuery, result: QueryResult) -> None:
        status = "OK" if result.reciprocal_rank > 0 else "MISS"
        exact = result.exact_match_rank if result.exact_match_rank is not None else "N/A"
        print(f'[{status}] {query.id}: "{query.query}"')
        print(
            f"     RR: {result.reciprocal_rank:.3f} | "
            f"Recall@5: {result.recall.get(5, 0.0):.2f} | "
            f"Exact: {exact} | {result.latency_ms:.0f}ms"
        )
        if result.results:
            top = result.results[0]
            print(f"     Top: {top.document_title or 'Unknown'} ({top.similarity * 100:.1f}%)")

    def print_report(self, metrics: EvaluationMetrics) -> None:
        """Print overall metrics, the per-type table and the worst queries."""
        overall = metrics.overall_metrics

        print(RULE)
        print("EVALUATION RESULTS")
        print(RULE)
        print()
        print("Overall Metrics:")
        print(f"  MRR@10:           {overall.mrr10 * 100:.1f}%")
        print(f"  Recall@5:         {overall.recall5 * 100:.1f}%")
        print(f"  Recall@10:        {overall.recall10 * 100:.1f}%")
        print(f"  Exact Match Rate: {overall.exact_match_rate * 100:.1f}%")
        print(f"  Avg Latency:      {overall.avg_latency_ms:.0f}ms")
        print(f"  P95 Latency:      {overall.p95_latency_ms:.0f}ms")
        print()

        print("By Query Type:")
        print(THIN_RULE)
        print(f"{'Type':<15} {'Count':<7} {'MRR@10':<10} {'Recall@5':<10} {'Exact%':<10}")
        print(THIN_RULE)
        for query_type, data in metrics.by_type.items():
            print(
                f"{query_type:<15} {data.count:<7} "
                f"{data.mrr10 * 100:>5.1f}%    "
                f"{data.recall5 * 100:>5.1f}%    "
                f"{data.exact_match_rate * 100:>5.1f}%"
            )
        print()

        worst = sorted(metrics.query_results, key=lambda r: r.reciprocal_rank)[:5]
        print("Worst Performing Queries:")
        print(THIN_RULE)
        for result in worst:
            print(f'  [{result.type}] "{result.query}" - RR: {result.reciprocal_rank:.3f}')
            if result.results:
                top = result.results[0]
                print(
                    f"    Top result: {top.document_title or 'Unknown'} "
                    f"({top.similarity * 100:.1f}%)"
                )
            else:
                print("    No results found")
        print()

        failed = metrics.failed_queries
        if failed:
            print(f"Failed Queries ({len(failed)}):")
            print(THIN_RULE)
            for result in failed:
                print(f"  {result.query_id}: {result.error}")
            print()

    def save_results(
        self,
        metrics: EvaluationMetrics,
        results_dir: Path | None = None,
    ) -> tuple[Path, Path | None]:
        """
        Write the run to ``eval-<timestamp>.json``; write ``baseline.json`` only if absent.

        Returns:
            (results path, baseline path or None if a baseline already existed)
        """
        results_dir = Path(results_dir or self.config.results_dir)
        results_dir.mkdir(parents=True, exist_ok=True)

        payload = metrics.to_json()

        results_path = results_dir / results_filename(metrics.timestamp)
        results_path.write_text(payload, encoding="utf-8")
        print(f"Results saved to: {results_path}")

        baseline_path = results_dir / BASELINE_FILENAME
        if baseline_path.exists():
            return results_path, None

        baseline_path.write_text(payload, encoding="utf-8")
        print(f"Baseline saved to: {baseline_path}")
        return results_path, baseline_path

    def check_target(self, metrics: EvaluationMetrics) -> bool:
        """Print a note when MRR@10 is below target; never fails the run."""
        mrr = metrics.overall_metrics.mrr10
        if mrr < self.config.target_mrr:
            print(
                f"\nNote: MRR@10 ({mrr * 100:.1f}%) is below target "
                f"({self.config.target_mrr * 100:.0f}%)"
            )
            return False
        return True

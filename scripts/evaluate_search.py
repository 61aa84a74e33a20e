#!/usr/bin/env python3
"""
Evaluate search quality against the labeled dataset.

Calculates:
- MRR@10 (Mean Reciprocal Rank): how high is the first relevant result?
- Recall@5 / Recall@10: how many relevant results appear in the top K?
- Exact match rate: for keyword queries, does the literal match rank #1?
- Latency (mean and p95)

Usage:
    python -m scripts.evaluate_search [brand-slug] [--verbose|-v]

Environment variables required:
- SUPABASE_URL
- SUPABASE_SERVICE_KEY
- OPENAI_API_KEY
- COHERE_API_KEY (optional, enables re-ranking)

Exits 0 once the run completes, whatever the metrics; exits 1 on setup or
execution failure.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from evaluation.dataset import load_dataset
from evaluation.harness import RULE, SearchEvaluator
from ingestion.embeddings import EmbeddingProviderError, validate_embedding_setup
from retrieval.pipeline import RetrievalPipeline
from schemas.config import EvaluationConfig, get_settings
from storage.availability import check_storage_availability
from storage.supabase import SupabaseClient

logger = logging.getLogger(__name__)


def build_parser(config: EvaluationConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Evaluate brand knowledge search against a labeled dataset",
    )
    parser.add_argument(
        "brand_slug",
        nargs="?",
        default=config.default_brand_slug,
        help=f"Brand to evaluate (default: {config.default_brand_slug})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print a line per query",
    )
    parser.add_argument(
        "--dataset",
        type=Path,
        default=config.dataset_path,
        help="Path to the evaluation dataset JSON",
    )
    parser.add_argument(
        "--results-dir",
        type=Path,
        default=config.results_dir,
        help="Directory for results and baseline files",
    )
    return parser


async def run_evaluation(args: argparse.Namespace, config: EvaluationConfig) -> None:
    """Load the dataset, check storage, evaluate, report and save."""
    dataset = load_dataset(args.dataset)

    embedding = validate_embedding_setup()
    if not embedding["valid"]:
        raise EmbeddingProviderError(embedding["error"])

    store = SupabaseClient()
    availability = await check_storage_availability(store.client)
    availability.require()

    pipeline = RetrievalPipeline(store)
    evaluator = SearchEvaluator(pipeline, store, config)

    metrics = await evaluator.run(dataset, args.brand_slug, verbose=args.verbose)
    evaluator.print_report(metrics)
    evaluator.save_results(metrics, args.results_dir)

    print()
    print(RULE)
    print("Evaluation complete!")
    print(RULE)

    evaluator.check_target(metrics)


def main(argv: list[str] | None = None) -> int:
    load_dotenv(Path.cwd() / ".env.local")
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = EvaluationConfig()
    args = build_parser(config).parse_args(argv)

    try:
        asyncio.run(run_evaluation(args, config))
    except Exception as e:
        logger.exception("Evaluation failed")
        print(f"\n❌ Evaluation failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

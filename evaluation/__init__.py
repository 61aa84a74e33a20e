"""
Offline search quality evaluation.

This package scores the retrieval pipeline against a labeled query set.

Modules:
- dataset: fixture loading and validation
- metrics: relevance, Reciprocal Rank, Recall@K, exact-match rank, aggregation
- harness: SearchEvaluator, console report, results files
"""

from evaluation.dataset import DatasetError, load_dataset
from evaluation.harness import SearchEvaluator, results_filename
from evaluation.metrics import (
    aggregate_by_type,
    aggregate_overall,
    exact_match_rank,
    is_relevant,
    percentile,
    recall_at_k,
    reciprocal_rank,
)

__version__ = "0.1.0"

__all__ = [
    # Dataset
    "DatasetError",
    "load_dataset",
    # Metrics
    "is_relevant",
    "reciprocal_rank",
    "recall_at_k",
    "exact_match_rank",
    "percentile",
    "aggregate_overall",
    "aggregate_by_type",
    # Harness
    "SearchEvaluator",
    "results_filename",
]

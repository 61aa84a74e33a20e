"""
Pydantic schemas for brand knowledge search.

This module contains all data models and configuration schemas used throughout
the search pipeline, including chunk and candidate models and evaluation types.
"""

from schemas.config import (
    AppSettings,
    EmbeddingConfig,
    EvaluationConfig,
    IngestionConfig,
    RerankConfig,
    RetrievalConfig,
    get_settings,
)
from schemas.models import (
    BatchIngestResult,
    BrandDocument,
    DocumentChunk,
    EvalDataset,
    EvalQuery,
    EvaluationMetrics,
    IngestResult,
    QueryResult,
    RankedResult,
    SearchCandidate,
    SearchHit,
)

__all__ = [
    # Config
    "AppSettings",
    "EmbeddingConfig",
    "IngestionConfig",
    "RetrievalConfig",
    "RerankConfig",
    "EvaluationConfig",
    "get_settings",
    # Models
    "BrandDocument",
    "DocumentChunk",
    "IngestResult",
    "BatchIngestResult",
    "SearchCandidate",
    "RankedResult",
    "SearchHit",
    "EvalQuery",
    "EvalDataset",
    "QueryResult",
    "EvaluationMetrics",
]

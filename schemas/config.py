"""
Configuration schemas for brand knowledge search.

This module defines Pydantic models for all configurable aspects of the
search pipeline, including embeddings, hybrid retrieval, re-ranking and the
offline evaluation harness.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class EmbeddingConfig(BaseModel):
    """Configuration for the embedding provider."""

    model: str = Field(
        default="text-embedding-3-large",
        description="OpenAI embedding model used for queries and chunks",
    )
    dimensions: int = Field(
        default=3072,
        ge=1,
        description="Embedding vector dimensions produced by the model",
    )
    max_batch_size: int = Field(
        default=100,
        ge=1,
        le=2048,
        description="Maximum texts sent in a single embeddings request",
    )
    max_input_chars: int = Field(
        default=8000,
        ge=1,
        description="Rough character limit applied to each text before embedding",
    )


class IngestionConfig(BaseModel):
    """Configuration for markdown chunking of brand documents."""

    max_tokens: int = Field(
        default=500,
        ge=1,
        le=8000,
        description="Maximum estimated tokens per chunk",
    )
    min_tokens: int = Field(
        default=20,
        ge=0,
        description="Split parts smaller than this are dropped",
    )
    chars_per_token: int = Field(
        default=4,
        ge=1,
        description="Characters per token used for estimation",
    )
    include_heading_in_content: bool = Field(
        default=True,
        description="Prefix each chunk with its markdown heading line",
    )

    @model_validator(mode="after")
    def validate_bounds(self) -> "IngestionConfig":
        """Ensure the minimum chunk size is below the maximum."""
        if self.min_tokens >= self.max_tokens:
            raise ValueError("min_tokens must be less than max_tokens")
        return self


class RetrievalConfig(BaseModel):
    """Configuration for the hybrid search engine."""

    search_mode: Literal["hybrid", "semantic"] = Field(
        default="hybrid",
        description="Hybrid RRF search or semantic-only search",
    )
    # text-embedding-3-large produces lower similarity scores than ada-002,
    # so the threshold sits lower than the usual 0.5.
    threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Minimum semantic similarity for a chunk to be returned",
    )
    top_k: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Number of results returned to the caller",
    )
    semantic_weight: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Weight of the semantic rank in RRF; keyword gets the rest",
    )
    rrf_k: int = Field(
        default=60,
        ge=1,
        le=1000,
        description="Constant k for Reciprocal Rank Fusion",
    )
    candidate_multiplier: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Candidates fetched per requested result when re-ranking follows",
    )

    @property
    def keyword_weight(self) -> float:
        """Weight of the keyword rank in RRF."""
        return 1.0 - self.semantic_weight


class RerankConfig(BaseModel):
    """Configuration for the optional re-ranking and diversity stage."""

    provider: Literal["cohere", "cross_encoder"] = Field(
        default="cohere",
        description="Re-ranking backend",
    )
    model: str = Field(
        default="rerank-v3.5",
        description="Cohere rerank model",
    )
    cross_encoder_model: str = Field(
        default="cross-encoder/ms-marco-MiniLM-L-6-v2",
        description="Local CrossEncoder model used by the cross_encoder provider",
    )
    api_url: str = Field(
        default="https://api.cohere.ai/v1/rerank",
        description="Cohere rerank endpoint",
    )
    timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="HTTP timeout in seconds for the rerank call",
    )
    min_score: float = Field(
        default=0.0,
        description="Results scored below this are dropped",
    )
    diversity: bool = Field(
        default=True,
        description="Whether to apply MMR diversity selection after re-ranking",
    )
    diversity_lambda: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="MMR trade-off: 1.0 is pure relevance, 0.0 pure novelty",
    )


class EvaluationConfig(BaseModel):
    """Configuration for the offline evaluation harness."""

    dataset_path: Path = Field(
        default=PROJECT_ROOT / "evaluation" / "fixtures" / "search_eval_dataset.json",
        description="Labeled query set",
    )
    results_dir: Path = Field(
        default=PROJECT_ROOT / "evaluation" / "results",
        description="Directory for timestamped results and baseline.json",
    )
    default_brand_slug: str = Field(
        default="open-session",
        description="Brand evaluated when none is given on the command line",
    )
    mrr_cutoff: int = Field(
        default=10,
        ge=1,
        description="Rank cutoff for reciprocal rank",
    )
    recall_ks: tuple[int, ...] = Field(
        default=(5, 10),
        description="Cutoffs reported for Recall@K",
    )
    target_mrr: float = Field(
        default=0.70,
        ge=0.0,
        le=1.0,
        description="MRR@10 below which a note is printed",
    )
    stored_results_per_query: int = Field(
        default=5,
        ge=0,
        description="Top results kept per query in the results file",
    )


class AppSettings(BaseSettings):
    """Application-wide settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Keys
    openai_api_key: str | None = Field(default=None)
    cohere_api_key: str | None = Field(default=None)

    # Supabase
    supabase_url: str | None = Field(default=None)
    supabase_service_key: str | None = Field(default=None)

    # Embeddings
    embedding_model: str = Field(default="text-embedding-3-large")
    embedding_dimensions: int = Field(default=3072)

    # Chunking
    chunk_max_tokens: int = Field(default=500)
    chunk_min_tokens: int = Field(default=20)

    # Retrieval defaults
    search_mode: str = Field(default="hybrid")
    match_threshold: float = Field(default=0.3)
    semantic_weight: float = Field(default=0.7)
    rrf_k: int = Field(default=60)

    # Re-ranking defaults
    reranker_provider: str = Field(default="cohere")
    rerank_model: str = Field(default="rerank-v3.5")
    rerank_diversity: bool = Field(default=True)
    diversity_lambda: float = Field(default=0.7)

    # Application settings
    log_level: str = Field(default="INFO")

    @property
    def cleaned_cohere_api_key(self) -> str | None:
        """Cohere key with quotes and trailing commas stripped (CLI export format)."""
        return clean_api_key(self.cohere_api_key)

    @property
    def cleaned_openai_api_key(self) -> str | None:
        """OpenAI key with quotes and trailing commas stripped."""
        return clean_api_key(self.openai_api_key)

    def get_embedding_config(self) -> EmbeddingConfig:
        """Create EmbeddingConfig from environment settings."""
        return EmbeddingConfig(
            model=self.embedding_model,
            dimensions=self.embedding_dimensions,
        )

    def get_ingestion_config(self) -> IngestionConfig:
        """Create IngestionConfig from environment settings."""
        return IngestionConfig(
            max_tokens=self.chunk_max_tokens,
            min_tokens=self.chunk_min_tokens,
        )

    def get_retrieval_config(self) -> RetrievalConfig:
        """Create RetrievalConfig from environment settings."""
        return RetrievalConfig(
            search_mode=self.search_mode,  # type: ignore
            threshold=self.match_threshold,
            semantic_weight=self.semantic_weight,
            rrf_k=self.rrf_k,
        )

    def get_rerank_config(self) -> RerankConfig:
        """Create RerankConfig from environment settings."""
        return RerankConfig(
            provider=self.reranker_provider,  # type: ignore
            model=self.rerank_model,
            diversity=self.rerank_diversity,
            diversity_lambda=self.diversity_lambda,
        )


def clean_api_key(value: str | None) -> str | None:
    """Strip surrounding quotes and a trailing comma from an exported key."""
    if value is None:
        return None
    cleaned = value.strip().strip(",").strip().strip("\"'").strip()
    return cleaned or None


# Singleton instance for app settings
_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """Get the application settings singleton."""
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None

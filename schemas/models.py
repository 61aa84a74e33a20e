"""
Data models for brand knowledge search.

This module defines Pydantic models for document chunks, search candidates,
re-ranked results, evaluation fixtures and evaluation output.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

MatchType = Literal["semantic", "keyword", "both"]
QueryType = Literal["exact-match", "semantic", "ambiguous", "edge-cases"]

QUERY_TYPES: tuple[str, ...] = ("exact-match", "semantic", "ambiguous", "edge-cases")


class DocumentChunk(BaseModel):
    """A token-bounded slice of a brand document."""

    id: str = Field(...)
    document_id: str = Field(...)
    content: str = Field(...)
    token_count: int = Field(default=0, ge=0)
    heading_hierarchy: list[str] = Field(
        default_factory=list,
        description="Ancestor section headings, outermost first",
    )
    embedding: list[float] | None = Field(default=None, description="Vector embedding")
    chunk_index: int | None = Field(default=None, ge=0)
    brand_id: str | None = Field(default=None)
    document_title: str | None = Field(default=None)
    document_category: str | None = Field(default=None)
    document_slug: str | None = Field(default=None)

    class Config:
        from_attributes = True

    @property
    def heading_path(self) -> str:
        """Heading hierarchy joined for display."""
        return " > ".join(self.heading_hierarchy)


class SearchCandidate(BaseModel):
    """A chunk scored against one query by the hybrid search engine."""

    chunk: DocumentChunk = Field(...)
    semantic_similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    keyword_rank: float | None = Field(
        default=None,
        description="Lexical score; None when the chunk was not matched lexically",
    )
    fused_score: float = Field(default=0.0, ge=0.0, description="RRF score")
    match_type: MatchType = Field(default="semantic")

    class Config:
        from_attributes = True

    @model_validator(mode="after")
    def _check_retrieved(self) -> "SearchCandidate":
        if self.match_type in ("keyword", "both") and self.keyword_rank is None:
            raise ValueError(f"{self.match_type} candidate requires a keyword_rank")
        if self.match_type in ("semantic", "both") and self.semantic_similarity <= 0.0:
            raise ValueError(f"{self.match_type} candidate requires a positive semantic_similarity")
        return self

    @property
    def id(self) -> str:
        return self.chunk.id

    @property
    def content(self) -> str:
        return self.chunk.content

    @property
    def similarity(self) -> float:
        """Display score: semantic similarity, or the fused score for keyword-only hits."""
        return self.semantic_similarity or self.fused_score


class RankedResult(BaseModel):
    """A candidate re-scored by the re-ranking stage."""

    candidate: SearchCandidate = Field(...)
    relevance_score: float = Field(..., description="Re-ranker relevance score")
    original_rank: int = Field(..., ge=0, description="Index in the candidate list")
    diversity_score: float | None = Field(
        default=None,
        description="MMR score when diversity selection picked this result",
    )

    class Config:
        from_attributes = True

    @property
    def id(self) -> str:
        return self.candidate.chunk.id

    @property
    def content(self) -> str:
        return self.candidate.chunk.content


class SearchHit(BaseModel):
    """
    Flattened result row handed back to callers and stored in eval output.

    Both fusion-only and re-ranked results are reduced to this shape so the
    evaluation metrics see one format.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    document_id: str | None = None
    content: str
    similarity: float
    document_title: str | None = None
    document_category: str | None = None
    heading_hierarchy: list[str] = Field(default_factory=list)
    match_type: MatchType | None = None

    @classmethod
    def from_candidate(cls, candidate: SearchCandidate) -> "SearchHit":
        chunk = candidate.chunk
        return cls(
            id=chunk.id,
            document_id=chunk.document_id,
            content=chunk.content,
            similarity=candidate.similarity,
            document_title=chunk.document_title,
            document_category=chunk.document_category,
            heading_hierarchy=list(chunk.heading_hierarchy),
            match_type=candidate.match_type,
        )

    @classmethod
    def from_ranked(cls, result: RankedResult) -> "SearchHit":
        hit = cls.from_candidate(result.candidate)
        hit.similarity = result.relevance_score
        return hit


# =========================================================================
# INGESTION
# =========================================================================


class BrandDocument(BaseModel):
    """A markdown brand document as stored in ``brand_documents``."""

    id: str = Field(...)
    brand_id: str = Field(...)
    category: str = Field(...)
    slug: str = Field(...)
    title: str = Field(...)
    content: str = Field(default="")

    class Config:
        from_attributes = True


class IngestResult(BaseModel):
    """Outcome of chunking, embedding and storing one document."""

    document_id: str
    title: str
    chunks_created: int = 0
    total_tokens: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class BatchIngestResult(BaseModel):
    """Outcome of ingesting every document of a brand."""

    brand_slug: str
    results: list[IngestResult] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list, description="Titles of empty documents")

    @property
    def documents_processed(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def total_chunks(self) -> int:
        return sum(r.chunks_created for r in self.results)

    @property
    def total_tokens(self) -> int:
        return sum(r.total_tokens for r in self.results)

    @property
    def errors(self) -> list[str]:
        return [f"{r.title}: {r.error}" for r in self.results if r.error is not None]

    @property
    def success(self) -> bool:
        return not self.errors


# =========================================================================
# EVALUATION FIXTURES
# =========================================================================


class EvalQuery(BaseModel):
    """A labeled evaluation query."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(...)
    query: str = Field(..., min_length=1)
    type: QueryType = Field(...)
    expected_documents: tuple[str, ...] = Field(default=(), alias="expectedDocuments")
    expected_topics: tuple[str, ...] = Field(default=(), alias="expectedTopics")
    notes: str | None = Field(default=None)


class EvalDatasetMetadata(BaseModel):
    """Version information for an evaluation dataset."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str = Field(default="1.0")
    created_at: str | None = Field(default=None, alias="createdAt")
    description: str = Field(default="")
    total_queries: int | None = Field(default=None, alias="totalQueries")


class EvalDataset(BaseModel):
    """Versioned, immutable collection of evaluation queries."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    metadata: EvalDatasetMetadata = Field(default_factory=EvalDatasetMetadata)
    queries: tuple[EvalQuery, ...] = Field(default=())


# =========================================================================
# EVALUATION OUTPUT
# =========================================================================


class QueryResult(BaseModel):
    """Metrics for one evaluated query."""

    model_config = ConfigDict(populate_by_name=True)

    query_id: str = Field(..., alias="queryId")
    query: str
    type: str
    results: list[SearchHit] = Field(default_factory=list)
    reciprocal_rank: float = Field(default=0.0, alias="reciprocalRank")
    recall: dict[int, float] = Field(default_factory=dict)
    exact_match_rank: int | None = Field(default=None, alias="exactMatchRank")
    latency_ms: float = Field(default=0.0, alias="latencyMs")
    error: str | None = Field(default=None)


class TypeMetrics(BaseModel):
    """Aggregate metrics for one query type."""

    model_config = ConfigDict(populate_by_name=True)

    count: int
    mrr10: float
    recall5: float
    recall10: float
    exact_match_rate: float = Field(..., alias="exactMatchRate")


class OverallMetrics(BaseModel):
    """Aggregate metrics across the whole dataset."""

    model_config = ConfigDict(populate_by_name=True)

    mrr10: float
    recall5: float
    recall10: float
    exact_match_rate: float = Field(..., alias="exactMatchRate")
    avg_latency_ms: float = Field(..., alias="avgLatencyMs")
    p95_latency_ms: float = Field(..., alias="p95LatencyMs")


class EvaluationMetrics(BaseModel):
    """Complete output of one evaluation run."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    brand_slug: str = Field(..., alias="brandSlug")
    total_queries: int = Field(..., alias="totalQueries")
    search_config: dict = Field(default_factory=dict, alias="searchConfig")
    overall_metrics: OverallMetrics = Field(..., alias="overallMetrics")
    by_type: dict[str, TypeMetrics] = Field(default_factory=dict, alias="byType")
    query_results: list[QueryResult] = Field(default_factory=list, alias="queryResults")
    reranking_available: bool = Field(default=False, alias="rerankingAvailable")

    @property
    def failed_queries(self) -> list[QueryResult]:
        """Queries that raised during evaluation."""
        return [r for r in self.query_results if r.error is not None]

    def to_json(self) -> str:
        """Serialise with camelCase keys, as stored in results files."""
        return self.model_dump_json(by_alias=True, indent=2)

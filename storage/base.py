"""
Chunk store interface consumed by the hybrid search engine.

A chunk store exposes the two search procedures the engine relies on
(hybrid RRF search and semantic-only search) plus keyword-only search and
brand lookup. A document store lists brand documents and replaces their
chunks during ingestion. Implementations of both:
- storage.supabase.SupabaseClient: Postgres RPCs via Supabase
- storage.memory.InMemoryChunkStore: in-process, for tests and offline runs
"""

from typing import Any, Protocol

from schemas.models import BrandDocument, DocumentChunk, SearchCandidate


class SearchError(Exception):
    """A chunk store query (RPC or in-process search) failed."""


class BrandNotFoundError(LookupError):
    """No brand exists for the requested slug."""


class StorageWriteError(Exception):
    """Writing chunks to the store failed."""


class ChunkStore(Protocol):
    """Search procedures over brand document chunks."""

    async def get_brand_id(self, brand_slug: str) -> str:
        ...

    async def hybrid_search(
        self,
        query: str,
        query_embedding: list[float],
        brand_id: str,
        threshold: float,
        match_count: int,
        semantic_weight: float,
        rrf_k: int,
    ) -> list[SearchCandidate]:
        ...

    async def semantic_search(
        self,
        query_embedding: list[float],
        brand_id: str,
        threshold: float,
        match_count: int,
    ) -> list[SearchCandidate]:
        ...

    async def keyword_search(
        self,
        query: str,
        brand_id: str,
        match_count: int,
    ) -> list[SearchCandidate]:
        ...


class DocumentStore(Protocol):
    """Document listing and chunk replacement used by ingestion."""

    async def get_brand_id(self, brand_slug: str) -> str:
        ...

    async def list_documents(self, brand_id: str) -> list[BrandDocument]:
        ...

    async def replace_document_chunks(
        self,
        document_id: str,
        chunks: list[DocumentChunk],
    ) -> None:
        ...


def document_from_row(row: dict[str, Any]) -> BrandDocument:
    """Build a BrandDocument from a ``brand_documents`` row."""
    return BrandDocument(
        id=str(row["id"]),
        brand_id=str(row["brand_id"]),
        category=row.get("category") or "",
        slug=row.get("slug") or "",
        title=row.get("title") or "",
        content=row.get("content") or "",
    )


def chunk_record(chunk: DocumentChunk) -> dict[str, Any]:
    """Row written to ``brand_document_chunks`` for an embedded chunk."""
    return {
        "id": chunk.id,
        "document_id": chunk.document_id,
        "brand_id": chunk.brand_id,
        "heading_hierarchy": chunk.heading_hierarchy,
        "chunk_index": chunk.chunk_index,
        "content": chunk.content,
        "token_count": chunk.token_count,
        "embedding": chunk.embedding,
    }


def chunk_from_row(row: dict[str, Any]) -> DocumentChunk:
    """Build a DocumentChunk from a search RPC row."""
    return DocumentChunk(
        id=str(row["id"]),
        document_id=str(row.get("document_id") or ""),
        content=row.get("content") or "",
        token_count=row.get("token_count") or 0,
        heading_hierarchy=list(row.get("heading_hierarchy") or []),
        chunk_index=row.get("chunk_index"),
        brand_id=str(row["brand_id"]) if row.get("brand_id") else None,
        document_title=row.get("document_title"),
        document_category=row.get("document_category"),
        document_slug=row.get("document_slug"),
    )


def clamp_similarity(value: Any) -> float:
    """Clamp a similarity value into [0, 1]; None becomes 0."""
    if value is None:
        return 0.0
    return max(0.0, min(1.0, float(value)))


def has_semantic_signal(row: dict[str, Any], key: str = "similarity") -> bool:
    """A row only counts as a semantic match when its clamped similarity is positive."""
    return clamp_similarity(row.get(key)) > 0.0


def candidate_from_hybrid_row(row: dict[str, Any]) -> SearchCandidate:
    """
    Convert a ``hybrid_search_chunks`` row into a SearchCandidate.

    The RPC reports ``keyword_rank`` as 0 for chunks that only matched
    semantically, so the keyword signal is dropped for those. A ``both`` row
    whose similarity clamps to 0 is kept as a keyword match.
    """
    match_type = row.get("match_type") or "semantic"
    if match_type == "both" and not has_semantic_signal(row, "semantic_similarity"):
        match_type = "keyword"
    keyword_rank = row.get("keyword_rank")
    if match_type == "semantic":
        keyword_rank = None
    elif keyword_rank is None:
        keyword_rank = 0.0

    return SearchCandidate(
        chunk=chunk_from_row(row),
        semantic_similarity=clamp_similarity(row.get("semantic_similarity")),
        keyword_rank=float(keyword_rank) if keyword_rank is not None else None,
        fused_score=max(0.0, float(row.get("rrf_score") or 0.0)),
        match_type=match_type,
    )


def candidate_from_semantic_row(row: dict[str, Any]) -> SearchCandidate:
    """Convert a ``match_document_chunks`` row into a SearchCandidate."""
    return SearchCandidate(
        chunk=chunk_from_row(row),
        semantic_similarity=clamp_similarity(row.get("similarity")),
        keyword_rank=None,
        fused_score=0.0,
        match_type="semantic",
    )


def candidate_from_keyword_row(row: dict[str, Any]) -> SearchCandidate:
    """Convert a ``keyword_search_chunks`` row into a SearchCandidate."""
    return SearchCandidate(
        chunk=chunk_from_row(row),
        semantic_similarity=0.0,
        keyword_rank=float(row.get("keyword_rank") or 0.0),
        fused_score=0.0,
        match_type="keyword",
    )

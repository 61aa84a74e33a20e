"""
In-process chunk store.

Implements the same search procedures as the Postgres RPCs:
- semantic search: cosine similarity (numpy) with a similarity threshold
- keyword search: BM25 (rank_bm25) over heading path + content, requiring
  every query term, like ``plainto_tsquery``
- hybrid search: both of the above fused with RRF

It also holds brand documents so ingestion can be run without a database.
Used by the test suite and for offline evaluation against fixture chunks.
"""

import logging
import re

import numpy as np
from rank_bm25 import BM25Okapi

from retrieval.fusion import rrf_merge
from schemas.models import BrandDocument, DocumentChunk, SearchCandidate
from storage.base import BrandNotFoundError

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "do", "for", "from",
        "how", "i", "in", "is", "it", "of", "on", "or", "our", "the", "to",
        "we", "what", "when", "where", "which", "with",
    }
)


def tokenize(text: str) -> list[str]:
    """Lowercase alphanumeric tokens."""
    return re.findall(r"[a-z0-9]+", text.lower())


def query_terms(query: str) -> list[str]:
    """Query tokens without stop words, deduplicated in order."""
    seen: dict[str, None] = {}
    for token in tokenize(query):
        if token not in STOP_WORDS:
            seen.setdefault(token, None)
    return list(seen)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity; 0 for mismatched shapes or zero vectors."""
    if a.shape != b.shape:
        return 0.0
    magnitude = float(np.linalg.norm(a) * np.linalg.norm(b))
    if magnitude == 0.0:
        return 0.0
    return float(np.dot(a, b) / magnitude)


class InMemoryChunkStore:
    """
    Chunk store holding DocumentChunks in memory.

    Chunks are scoped to brands through ``DocumentChunk.brand_id``; brand
    slugs are resolved through the ``brands`` mapping.
    """

    def __init__(
        self,
        chunks: list[DocumentChunk] | None = None,
        brands: dict[str, str] | None = None,
        documents: list[BrandDocument] | None = None,
    ):
        """
        Initialize the store.

        Args:
            chunks: Initial chunks
            brands: Mapping of brand slug to brand ID
            documents: Brand documents available for ingestion
        """
        self._chunks: list[DocumentChunk] = list(chunks or [])
        self._brands: dict[str, str] = dict(brands or {})
        self._documents: list[BrandDocument] = list(documents or [])

    def add_chunks(self, chunks: list[DocumentChunk]) -> None:
        self._chunks.extend(chunks)

    def add_brand(self, slug: str, brand_id: str) -> None:
        self._brands[slug] = brand_id

    @property
    def chunks(self) -> list[DocumentChunk]:
        return list(self._chunks)

    async def list_documents(self, brand_id: str) -> list[BrandDocument]:
        documents = [d for d in self._documents if d.brand_id == brand_id]
        return sorted(documents, key=lambda d: (d.category, d.slug))

    async def replace_document_chunks(
        self,
        document_id: str,
        chunks: list[DocumentChunk],
    ) -> None:
        self._chunks = [c for c in self._chunks if c.document_id != document_id]
        self._chunks.extend(chunks)
        logger.debug(f"Stored {len(chunks)} chunks for document {document_id}")

    def _scoped(self, brand_id: str) -> list[DocumentChunk]:
        return [c for c in self._chunks if c.brand_id == brand_id]

    async def get_brand_id(self, brand_slug: str) -> str:
        if brand_slug not in self._brands:
            raise BrandNotFoundError(f"Brand not found: {brand_slug}")
        return self._brands[brand_slug]

    async def semantic_search(
        self,
        query_embedding: list[float],
        brand_id: str,
        threshold: float,
        match_count: int,
    ) -> list[SearchCandidate]:
        query_vec = np.asarray(query_embedding, dtype=float)

        scored: list[tuple[float, DocumentChunk]] = []
        for chunk in self._scoped(brand_id):
            if chunk.embedding is None:
                continue
            similarity = cosine_similarity(query_vec, np.asarray(chunk.embedding, dtype=float))
            if similarity > 0.0 and similarity >= threshold:
                scored.append((similarity, chunk))

        scored.sort(key=lambda item: item[0], reverse=True)

        return [
            SearchCandidate(
                chunk=chunk,
                semantic_similarity=max(0.0, min(1.0, similarity)),
                keyword_rank=None,
                fused_score=0.0,
                match_type="semantic",
            )
            for similarity, chunk in scored[:match_count]
        ]

    async def keyword_search(
        self,
        query: str,
        brand_id: str,
        match_count: int,
    ) -> list[SearchCandidate]:
        terms = query_terms(query)
        chunks = self._scoped(brand_id)
        if not terms or not chunks:
            return []

        corpus = [tokenize(" ".join(c.heading_hierarchy) + " " + c.content) for c in chunks]
        if not any(corpus):
            return []

        index = BM25Okapi(corpus)
        scores = index.get_scores(terms)

        matched = [
            (float(scores[i]), chunks[i])
            for i, tokens in enumerate(corpus)
            if all(term in tokens for term in terms)
        ]
        matched.sort(key=lambda item: item[0], reverse=True)

        return [
            SearchCandidate(
                chunk=chunk,
                semantic_similarity=0.0,
                keyword_rank=score,
                fused_score=0.0,
                match_type="keyword",
            )
            for score, chunk in matched[:match_count]
        ]

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
        # Each path contributes up to 3x the requested rows before fusion
        semantic = await self.semantic_search(
            query_embedding, brand_id, threshold, match_count * 3
        )
        keyword = await self.keyword_search(query, brand_id, match_count * 3)

        fused = rrf_merge(semantic, keyword, semantic_weight, rrf_k)
        logger.debug(
            f"In-memory hybrid search: {len(semantic)} semantic + "
            f"{len(keyword)} keyword -> {len(fused)} fused"
        )
        return fused[:match_count]

"""
Supabase storage client for brand knowledge search.

This module provides:
- Brand lookup by slug
- Hybrid (semantic + keyword RRF), semantic-only and keyword-only chunk search
  via Postgres RPC functions
- Brand document listing and chunk replacement for ingestion
- Message embedding writes for the background embedding queue
"""

import asyncio
import logging
from typing import Any

from supabase import Client, create_client

from schemas.config import get_settings
from schemas.models import BrandDocument, DocumentChunk, SearchCandidate
from storage.base import (
    BrandNotFoundError,
    SearchError,
    StorageWriteError,
    candidate_from_hybrid_row,
    candidate_from_keyword_row,
    candidate_from_semantic_row,
    chunk_record,
    document_from_row,
    has_semantic_signal,
)

logger = logging.getLogger(__name__)

HYBRID_SEARCH_RPC = "hybrid_search_chunks"
SEMANTIC_SEARCH_RPC = "match_document_chunks"
KEYWORD_SEARCH_RPC = "keyword_search_chunks"


class SupabaseClient:
    """
    Supabase client wrapper for all database operations.

    Implements the ChunkStore protocol over the search RPCs defined in
    migrations/001_brand_search.sql. The underlying SDK is synchronous, so
    each request runs in a worker thread.
    """

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        client: Client | None = None,
    ):
        """
        Initialize the Supabase client.

        Args:
            url: Supabase project URL
            key: Supabase service key
            client: Pre-built SDK client (skips URL/key validation)
        """
        self._client: Client | None = client

        if client is not None:
            self.url = url
            self.key = key
            return

        settings = get_settings()
        self.url = url or settings.supabase_url
        self.key = key or settings.supabase_service_key

        if not self.url or not self.key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment variables"
            )

    @property
    def client(self) -> Client:
        """Lazy initialization of Supabase client."""
        if self._client is None:
            self._client = create_client(self.url, self.key)
            logger.info("Supabase client initialized")
        return self._client

    async def _rpc(self, name: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Run an RPC function and return its rows, wrapping failures in SearchError."""
        try:
            result = await asyncio.to_thread(self.client.rpc(name, params).execute)
        except Exception as e:
            raise SearchError(f"RPC {name} failed: {e}") from e
        return result.data or []

    # =========================================================================
    # BRANDS
    # =========================================================================

    async def get_brand_id(self, brand_slug: str) -> str:
        """
        Resolve a brand slug to its ID.

        Args:
            brand_slug: Brand slug, e.g. "open-session"

        Returns:
            Brand ID

        Raises:
            BrandNotFoundError: If no brand has this slug
        """
        query = self.client.table("brands").select("id").eq("slug", brand_slug).limit(1)
        result = await asyncio.to_thread(query.execute)

        if not result.data:
            raise BrandNotFoundError(f"Brand not found: {brand_slug}")

        return str(result.data[0]["id"])

    # =========================================================================
    # SEARCH
    # =========================================================================

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
        """
        Hybrid semantic + keyword search fused with RRF inside Postgres.

        Args:
            query: Raw query text for full-text search
            query_embedding: Query embedding for vector search
            brand_id: Brand scope
            threshold: Minimum semantic similarity
            match_count: Maximum rows returned
            semantic_weight: RRF weight of the semantic rank
            rrf_k: RRF constant

        Returns:
            Candidates ordered by RRF score
        """
        rows = await self._rpc(
            HYBRID_SEARCH_RPC,
            {
                "p_query": query,
                "query_embedding": query_embedding,
                "p_brand_id": brand_id,
                "match_threshold": threshold,
                "match_count": match_count,
                "semantic_weight": semantic_weight,
                "rrf_k": rrf_k,
            },
        )
        return [
            candidate_from_hybrid_row(r)
            for r in rows
            if (r.get("match_type") or "semantic") != "semantic"
            or has_semantic_signal(r, "semantic_similarity")
        ]

    async def semantic_search(
        self,
        query_embedding: list[float],
        brand_id: str,
        threshold: float,
        match_count: int,
    ) -> list[SearchCandidate]:
        """
        Vector similarity search only.

        Args:
            query_embedding: Query embedding
            brand_id: Brand scope
            threshold: Minimum semantic similarity
            match_count: Maximum rows returned

        Returns:
            Candidates ordered by similarity
        """
        rows = await self._rpc(
            SEMANTIC_SEARCH_RPC,
            {
                "query_embedding": query_embedding,
                "p_brand_id": brand_id,
                "match_threshold": threshold,
                "match_count": match_count,
            },
        )
        return [candidate_from_semantic_row(r) for r in rows if has_semantic_signal(r)]

    async def keyword_search(
        self,
        query: str,
        brand_id: str,
        match_count: int,
    ) -> list[SearchCandidate]:
        """Full-text search only, ordered by ts_rank_cd."""
        rows = await self._rpc(
            KEYWORD_SEARCH_RPC,
            {
                "p_query": query,
                "p_brand_id": brand_id,
                "match_count": match_count,
            },
        )
        return [candidate_from_keyword_row(r) for r in rows]

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    async def list_documents(self, brand_id: str) -> list[BrandDocument]:
        """
        List a brand's documents, ordered by category and slug.

        Args:
            brand_id: Brand ID

        Returns:
            List of BrandDocument models
        """
        query = (
            self.client.table("brand_documents")
            .select("id, brand_id, category, slug, title, content")
            .eq("brand_id", brand_id)
            .order("category")
            .order("slug")
        )
        try:
            result = await asyncio.to_thread(query.execute)
        except Exception as e:
            raise SearchError(f"Failed to fetch documents: {e}") from e

        return [document_from_row(row) for row in result.data or []]

    async def replace_document_chunks(
        self,
        document_id: str,
        chunks: list[DocumentChunk],
    ) -> None:
        """
        Delete a document's chunks and insert new ones.

        Args:
            document_id: Document ID
            chunks: Embedded chunks for the document

        Raises:
            StorageWriteError: If the delete or insert fails
        """
        delete = self.client.table("brand_document_chunks").delete().eq("document_id", document_id)
        try:
            await asyncio.to_thread(delete.execute)
            if chunks:
                insert = self.client.table("brand_document_chunks").insert(
                    [chunk_record(c) for c in chunks]
                )
                await asyncio.to_thread(insert.execute)
        except Exception as e:
            logger.error(f"Failed to store chunks for document {document_id}: {e}")
            raise StorageWriteError(f"Failed to store chunks: {e}") from e

        logger.info(f"Stored {len(chunks)} chunks for document {document_id}")

    # =========================================================================
    # MESSAGE EMBEDDINGS
    # =========================================================================

    async def save_message_embedding(self, message_id: str, embedding: list[float]) -> None:
        """
        Store the embedding of a chat message.

        Args:
            message_id: Message ID
            embedding: Message embedding
        """
        query = (
            self.client.table("messages")
            .update({"embedding": embedding})
            .eq("id", message_id)
        )
        await asyncio.to_thread(query.execute)
        logger.debug(f"Stored embedding for message {message_id}")


# Singleton instance
_client: SupabaseClient | None = None


def get_supabase_client() -> SupabaseClient:
    """Get or create the Supabase client singleton."""
    global _client
    if _client is None:
        _client = SupabaseClient()
    return _client

"""Shared pytest fixtures for brand knowledge search tests."""
from __future__ import annotations

import re
import zlib

import numpy as np
import pytest

from ingestion.embeddings import EmbeddingProviderError
from schemas.config import RerankConfig, RetrievalConfig, reset_settings
from schemas.models import DocumentChunk, SearchCandidate
from storage.memory import InMemoryChunkStore

BRAND_SLUG = "open-session"
BRAND_ID = "brand-1"
DIMENSIONS = 256


def embed_text(text: str, dimensions: int = DIMENSIONS) -> list[float]:
    """Deterministic bag-of-words embedding: one hashed bucket per token."""
    vector = np.zeros(dimensions)
    for token in re.findall(r"[a-z0-9]+", text.lower()):
        vector[zlib.crc32(token.encode()) % dimensions] += 1.0
    norm = np.linalg.norm(vector)
    if norm:
        vector = vector / norm
    return vector.tolist()


class FakeEmbeddingClient:
    """Stands in for EmbeddingClient without network access."""

    def __init__(self, fail: bool = False):
        self.model = "fake-embedding"
        self.fail = fail
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise EmbeddingProviderError("embedding service down")
        return [embed_text(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]


def make_chunk(
    chunk_id: str,
    content: str,
    title: str = "Untitled",
    category: str = "guidelines",
    headings: list[str] | None = None,
    brand_id: str = BRAND_ID,
    embed: bool = True,
) -> DocumentChunk:
    headings = headings or []
    return DocumentChunk(
        id=chunk_id,
        document_id=f"doc-{chunk_id}",
        content=content,
        heading_hierarchy=headings,
        embedding=embed_text(" ".join(headings) + " " + content) if embed else None,
        chunk_index=0,
        brand_id=brand_id,
        document_title=title,
        document_category=category,
        document_slug=title.lower().replace(" ", "-"),
    )


def make_candidate(
    chunk_id: str,
    content: str = "text",
    similarity: float = 0.5,
    fused: float = 0.01,
    title: str = "Untitled",
) -> SearchCandidate:
    return SearchCandidate(
        chunk=make_chunk(chunk_id, content, title=title, embed=False),
        semantic_similarity=similarity,
        keyword_rank=None,
        fused_score=fused,
        match_type="semantic",
    )


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep real credentials out of the tests."""
    for var in ("OPENAI_API_KEY", "COHERE_API_KEY", "SUPABASE_URL", "SUPABASE_SERVICE_KEY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture()
def brand_chunks() -> list[DocumentChunk]:
    return [
        make_chunk(
            "c-colors",
            "Our color palette uses a primary black #1A1A1A and a warm accent orange.",
            title="Brand Colors",
            category="design",
            headings=["Visual Identity", "Brand Colors"],
        ),
        make_chunk(
            "c-logo",
            "Keep clear space around the logo equal to the height of the mark.",
            title="Logo Usage",
            category="design",
            headings=["Visual Identity", "Logo"],
        ),
        make_chunk(
            "c-type",
            "Headlines use a geometric sans typeface; body copy uses a serif font.",
            title="Typography",
            category="design",
            headings=["Visual Identity", "Typography"],
        ),
        make_chunk(
            "c-voice",
            "Our tone of voice is warm, direct and curious when writing to customers.",
            title="Brand Voice",
            category="messaging",
            headings=["Messaging", "Voice"],
        ),
        make_chunk(
            "c-other-brand",
            "Brand colors for a different brand entirely.",
            title="Brand Colors",
            brand_id="brand-2",
        ),
    ]


@pytest.fixture()
def memory_store(brand_chunks) -> InMemoryChunkStore:
    return InMemoryChunkStore(brand_chunks, brands={BRAND_SLUG: BRAND_ID, "other": "brand-2"})


@pytest.fixture()
def fake_embedder() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture()
def retrieval_config() -> RetrievalConfig:
    return RetrievalConfig()


@pytest.fixture()
def rerank_config() -> RerankConfig:
    return RerankConfig()

"""Tests for ingestion/embeddings.py: EmbeddingClient (OpenAI client mocked)."""
from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import openai
import pytest

from ingestion.embeddings import (
    EmbeddingClient,
    EmbeddingProviderError,
    clean_text,
    validate_embedding_setup,
)
from schemas.config import EmbeddingConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _openai_returning_vectors() -> MagicMock:
    """OpenAI client whose embeddings echo the input position, in shuffled order."""
    sdk = MagicMock()

    def create(model, input, **kwargs):
        items = [MagicMock(index=i, embedding=[float(len(text)), float(i)]) for i, text in enumerate(input)]
        return MagicMock(data=list(reversed(items)))

    sdk.embeddings.create.side_effect = create
    return sdk


class TestCleanText:
    def test_collapses_whitespace(self):
        assert clean_text("  brand\n\n colors\t guide ") == "brand colors guide"

    def test_truncates(self):
        assert clean_text("a" * 20, max_chars=8) == "a" * 8


class TestEmbeddingClient:
    def test_embed_single(self):
        sdk = _openai_returning_vectors()
        client = EmbeddingClient(api_key="sk-test", client=sdk)

        vector = asyncio.run(client.embed_single("brand colors"))

        assert vector == [12.0, 0.0]
        sdk.embeddings.create.assert_called_once_with(
            model="text-embedding-3-large", input=["brand colors"], dimensions=3072
        )

    def test_results_sorted_by_index(self):
        client = EmbeddingClient(api_key="sk-test", client=_openai_returning_vectors())
        vectors = asyncio.run(client.embed(["a", "bb", "ccc"]))
        assert [v[1] for v in vectors] == [0.0, 1.0, 2.0]

    def test_batches_requests(self):
        sdk = _openai_returning_vectors()
        client = EmbeddingClient(
            config=EmbeddingConfig(max_batch_size=2), api_key="sk-test", client=sdk
        )

        vectors = asyncio.run(client.embed(["a", "b", "c", "d", "e"]))

        assert len(vectors) == 5
        assert sdk.embeddings.create.call_count == 3

    def test_inputs_cleaned_before_sending(self):
        sdk = _openai_returning_vectors()
        client = EmbeddingClient(
            config=EmbeddingConfig(max_input_chars=5), api_key="sk-test", client=sdk
        )
        asyncio.run(client.embed(["  brand   colors  "]))
        assert sdk.embeddings.create.call_args.kwargs["input"] == ["brand"]

    def test_dimensions_forwarded(self):
        sdk = _openai_returning_vectors()
        client = EmbeddingClient(
            config=EmbeddingConfig(dimensions=1536), api_key="sk-test", client=sdk
        )
        asyncio.run(client.embed_single("logo"))
        assert sdk.embeddings.create.call_args.kwargs["dimensions"] == 1536

    def test_empty_input_skips_request(self):
        sdk = _openai_returning_vectors()
        assert asyncio.run(EmbeddingClient(api_key="sk-test", client=sdk).embed([])) == []
        sdk.embeddings.create.assert_not_called()

    def test_provider_error_wrapped(self):
        sdk = MagicMock()
        sdk.embeddings.create.side_effect = openai.OpenAIError("rate limited")
        client = EmbeddingClient(api_key="sk-test", client=sdk)

        with pytest.raises(EmbeddingProviderError, match="rate limited"):
            asyncio.run(client.embed_single("brand colors"))

    def test_count_mismatch_raises(self):
        sdk = MagicMock()
        sdk.embeddings.create.return_value = MagicMock(data=[])
        client = EmbeddingClient(api_key="sk-test", client=sdk)

        with pytest.raises(EmbeddingProviderError):
            asyncio.run(client.embed(["a"]))

    def test_missing_api_key(self):
        client = EmbeddingClient()
        with pytest.raises(EmbeddingProviderError, match="OPENAI_API_KEY"):
            asyncio.run(client.embed_single("brand colors"))


class TestValidateEmbeddingSetup:
    def test_missing_key(self):
        assert validate_embedding_setup()["valid"] is False

    def test_configured_key(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert validate_embedding_setup() == {
            "valid": True,
            "openai_configured": True,
            "error": None,
        }

"""
Embedding generation for queries, chunks and chat messages.

This module provides:
- Batched OpenAI embedding generation (text-embedding-3-large by default)
- Text cleanup before embedding (whitespace collapse, length cap)
- Setup validation for the embedding provider
"""

import asyncio
import logging
import re

import openai
from openai import OpenAI

from schemas.config import EmbeddingConfig, get_settings

logger = logging.getLogger(__name__)


class EmbeddingProviderError(Exception):
    """The embedding provider could not produce vectors (network, auth, timeout or API error)."""


def clean_text(text: str, max_chars: int = 8000) -> str:
    """Collapse whitespace and cap length to stay under the model's token limit."""
    return re.sub(r"\s+", " ", text).strip()[:max_chars]


class EmbeddingClient:
    """
    OpenAI embedding client with batching.

    Failures are surfaced as EmbeddingProviderError; there is no retry loop
    and no zero-vector fallback, so ranking never silently degrades.
    """

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        api_key: str | None = None,
        client: OpenAI | None = None,
    ):
        """
        Initialize the embedding client.

        Args:
            config: Embedding configuration (model, batch size)
            api_key: OpenAI API key (uses env var if not provided)
            client: Pre-built OpenAI client
        """
        settings = get_settings()
        self.config = config or settings.get_embedding_config()
        self.model = self.config.model
        self.api_key = api_key or settings.cleaned_openai_api_key
        self._client: OpenAI | None = client

    @property
    def client(self) -> OpenAI:
        """Lazy initialization of the OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise EmbeddingProviderError("OPENAI_API_KEY environment variable is not set")
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """
        Create embeddings for multiple texts.

        Args:
            texts: List of texts to embed

        Returns:
            List of embedding vectors, in input order

        Raises:
            EmbeddingProviderError: If any batch fails
        """
        if not texts:
            return []

        batch_size = self.config.max_batch_size
        embeddings: list[list[float]] = []

        for i in range(0, len(texts), batch_size):
            batch = [clean_text(t, self.config.max_input_chars) for t in texts[i : i + batch_size]]
            embeddings.extend(await self._embed_batch(batch))

        logger.debug(f"Embedded {len(texts)} texts with {self.model}")
        return embeddings

    async def embed_single(self, text: str) -> list[float]:
        """
        Create embedding for a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector
        """
        embeddings = await self.embed([text])
        return embeddings[0]

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        client = self.client
        try:
            response = await asyncio.to_thread(
                client.embeddings.create,
                model=self.model,
                input=batch,
                dimensions=self.config.dimensions,
            )
        except openai.OpenAIError as e:
            logger.error(f"Embedding request failed: {e}")
            raise EmbeddingProviderError(f"OpenAI embedding request failed: {e}") from e

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(batch):
            raise EmbeddingProviderError(
                f"Expected {len(batch)} embeddings, got {len(data)}"
            )
        return [item.embedding for item in data]


def validate_embedding_setup(api_key: str | None = None) -> dict:
    """
    Check whether the embedding provider is configured.

    Returns:
        Dict with ``valid``, ``openai_configured`` and ``error``
    """
    key = api_key or get_settings().cleaned_openai_api_key
    if not key:
        return {
            "valid": False,
            "openai_configured": False,
            "error": "OPENAI_API_KEY not configured",
        }
    return {"valid": True, "openai_configured": True, "error": None}

"""
Embedding generation and document ingestion.

This package turns brand documents and text into dense vectors for search.

Modules:
- chunker: heading-aware markdown chunking
- documents: chunk, embed and store brand documents
- embeddings: OpenAI embedding client used for queries, chunks and MMR
- queue: background embedding of chat messages
"""

from ingestion.chunker import MarkdownChunker, estimate_tokens, get_chunker
from ingestion.documents import DocumentIngester
from ingestion.embeddings import (
    EmbeddingClient,
    EmbeddingProviderError,
    validate_embedding_setup,
)
from ingestion.queue import EmbeddingQueue, EmbeddingQueueStats

__version__ = "0.1.0"

__all__ = [
    # Chunking
    "MarkdownChunker",
    "estimate_tokens",
    "get_chunker",
    # Ingestion
    "DocumentIngester",
    # Embeddings
    "EmbeddingClient",
    "EmbeddingProviderError",
    "validate_embedding_setup",
    # Background queue
    "EmbeddingQueue",
    "EmbeddingQueueStats",
]

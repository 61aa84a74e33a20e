"""
Brand document ingestion.

Chunks each markdown document, embeds the chunks in batches and replaces the
document's rows in ``brand_document_chunks``. One failing document is
recorded and does not stop the rest of the brand.
"""

import logging

from ingestion.chunker import MarkdownChunker, summarize_chunks
from ingestion.embeddings import EmbeddingClient, EmbeddingProviderError
from schemas.models import BatchIngestResult, BrandDocument, IngestResult
from storage.base import DocumentStore, StorageWriteError

logger = logging.getLogger(__name__)


class DocumentIngester:
    """Chunk, embed and store brand documents."""

    def __init__(
        self,
        store: DocumentStore,
        embedding_client: EmbeddingClient | None = None,
        chunker: MarkdownChunker | None = None,
    ):
        """
        Initialize the ingester.

        Args:
            store: Store listing documents and holding their chunks
            embedding_client: Embedding provider for chunk vectors
            chunker: Markdown chunker
        """
        self.store = store
        self.chunker = chunker or MarkdownChunker()
        self._embedding_client = embedding_client

    @property
    def embedding_client(self) -> EmbeddingClient:
        """Lazy initialization of the embedding client."""
        if self._embedding_client is None:
            self._embedding_client = EmbeddingClient()
        return self._embedding_client

    async def ingest_document(self, document: BrandDocument) -> IngestResult:
        """
        Chunk, embed and store one document.

        Args:
            document: Document to ingest

        Returns:
            IngestResult with chunk and token counts

        Raises:
            EmbeddingProviderError: If the chunks cannot be embedded
            StorageWriteError: If the chunks cannot be stored
        """
        chunks = self.chunker.chunk_markdown(document.content, document)
        if not chunks:
            return IngestResult(document_id=document.id, title=document.title)

        logger.debug(summarize_chunks(chunks))

        embeddings = await self.embedding_client.embed([c.content for c in chunks])
        embedded = [
            chunk.model_copy(update={"embedding": embedding})
            for chunk, embedding in zip(chunks, embeddings)
        ]

        await self.store.replace_document_chunks(document.id, embedded)

        return IngestResult(
            document_id=document.id,
            title=document.title,
            chunks_created=len(embedded),
            total_tokens=sum(c.token_count for c in embedded),
        )

    async def ingest_brand(self, brand_slug: str) -> BatchIngestResult:
        """
        Ingest every document of a brand.

        Args:
            brand_slug: Brand slug

        Returns:
            BatchIngestResult with one entry per non-empty document

        Raises:
            BrandNotFoundError: If the brand does not exist
            SearchError: If the documents cannot be listed
        """
        brand_id = await self.store.get_brand_id(brand_slug)
        documents = await self.store.list_documents(brand_id)
        batch = BatchIngestResult(brand_slug=brand_slug)

        logger.info(f"Found {len(documents)} documents for {brand_slug}")

        for document in documents:
            if not document.content.strip():
                logger.info(f"Skipping '{document.title}': no content")
                batch.skipped.append(document.title)
                continue

            try:
                result = await self.ingest_document(document)
            except (EmbeddingProviderError, StorageWriteError) as e:
                logger.error(f"Ingestion failed for '{document.title}': {e}")
                result = IngestResult(document_id=document.id, title=document.title, error=str(e))

            batch.results.append(result)

        logger.info(
            f"Ingested {batch.documents_processed} documents "
            f"({batch.total_chunks} chunks, {batch.total_tokens} tokens)"
        )
        return batch

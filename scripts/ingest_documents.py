#!/usr/bin/env python3
"""
Chunk, embed and store every brand document of a brand.

Documents are read from brand_documents, split by markdown heading, embedded
with OpenAI and written to brand_document_chunks (replacing earlier chunks).

Usage:
    python -m scripts.ingest_documents [brand-slug]

Environment variables required:
- SUPABASE_URL
- SUPABASE_SERVICE_KEY
- OPENAI_API_KEY

Exits 0 when every document was ingested; exits 1 on setup failure or when
any document failed.
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from ingestion.chunker import MarkdownChunker
from ingestion.documents import DocumentIngester
from ingestion.embeddings import EmbeddingProviderError, validate_embedding_setup
from schemas.config import EvaluationConfig, get_settings
from schemas.models import BatchIngestResult
from storage.availability import check_storage_availability
from storage.supabase import SupabaseClient

logger = logging.getLogger(__name__)

RULE = "=" * 60
THIN_RULE = "-" * 60


def build_parser(default_brand_slug: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Chunk and embed brand documents for search",
    )
    parser.add_argument(
        "brand_slug",
        nargs="?",
        default=default_brand_slug,
        help=f"Brand to ingest (default: {default_brand_slug})",
    )
    return parser


def print_summary(result: BatchIngestResult, duration_s: float) -> None:
    print()
    print(RULE)
    print("📊 Ingestion Summary")
    print(RULE)
    print(f"Duration: {duration_s:.1f}s")
    print(f"Documents processed: {result.documents_processed}")
    print(f"Total chunks created: {result.total_chunks}")
    print(f"Total tokens: {result.total_tokens:,}")
    print()

    succeeded = [r for r in result.results if r.success]
    if succeeded:
        print("📄 Document Details:")
        for doc in succeeded:
            print(f"  • {doc.title}: {doc.chunks_created} chunks ({doc.total_tokens} tokens)")
        print()

    if result.skipped:
        print("⊘ Skipped (no content):")
        for title in result.skipped:
            print(f"  • {title}")
        print()

    if result.errors:
        print("❌ Errors:")
        for error in result.errors:
            print(f"  • {error}")
        print()


async def run_ingestion(args: argparse.Namespace) -> BatchIngestResult:
    """Validate setup, then ingest every document of the brand."""
    embedding = validate_embedding_setup()
    if not embedding["valid"]:
        raise EmbeddingProviderError(embedding["error"])

    store = SupabaseClient()
    availability = await check_storage_availability(store.client)
    availability.require()

    settings = get_settings()
    ingester = DocumentIngester(store, chunker=MarkdownChunker(settings.get_ingestion_config()))

    print(RULE)
    print("🧠 Brand Document Ingestion")
    print(RULE)
    print(f"Brand: {args.brand_slug}")
    print()
    print("🚀 Starting document ingestion...")
    print(THIN_RULE)

    started = time.perf_counter()
    result = await ingester.ingest_brand(args.brand_slug)
    print_summary(result, time.perf_counter() - started)
    return result


def main(argv: list[str] | None = None) -> int:
    load_dotenv(Path.cwd() / ".env.local")
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    args = build_parser(EvaluationConfig().default_brand_slug).parse_args(argv)

    try:
        result = asyncio.run(run_ingestion(args))
    except Exception as e:
        logger.exception("Ingestion failed")
        print(f"\n❌ Ingestion failed: {e}")
        return 1

    if not result.success:
        print("⚠️  Document ingestion completed with errors")
        return 1

    print("✅ Document ingestion completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())

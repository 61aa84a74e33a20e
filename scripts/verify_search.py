#!/usr/bin/env python3
"""
Verify the search setup: environment, tables, RPC functions, providers.

Usage:
    python -m scripts.verify_search [brand-slug]
"""

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

from ingestion.embeddings import validate_embedding_setup
from retrieval.reranker import validate_reranker_setup
from schemas.config import get_settings
from storage.availability import check_storage_availability
from storage.base import BrandNotFoundError, SearchError
from storage.supabase import SupabaseClient

NIL_BRAND_ID = "00000000-0000-0000-0000-000000000000"


async def verify_search(brand_slug: str | None = None) -> bool:
    """Verify tables, search functions and provider configuration."""
    load_dotenv(Path.cwd() / ".env.local")
    settings = get_settings()

    if not settings.supabase_url or not settings.supabase_service_key:
        print("❌ SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in .env")
        return False

    print("🔍 Verifying search setup...\n")

    ok = True
    store = SupabaseClient()

    availability = await check_storage_availability(store.client)
    for table, available in availability.tables.items():
        if available:
            print(f"✅ Table '{table}' exists and is accessible")
        else:
            print(f"❌ Table '{table}' failed: {availability.errors.get(table)}")
    if not availability.available:
        return False

    print("\n🔍 Testing RPC functions...\n")

    dummy_embedding = [0.0] * settings.embedding_dimensions
    checks = [
        (
            "match_document_chunks",
            lambda: store.semantic_search(dummy_embedding, NIL_BRAND_ID, 0.0, 1),
        ),
        (
            "keyword_search_chunks",
            lambda: store.keyword_search("test", NIL_BRAND_ID, 1),
        ),
        (
            "hybrid_search_chunks",
            lambda: store.hybrid_search("test", dummy_embedding, NIL_BRAND_ID, 0.0, 1, 0.7, 60),
        ),
    ]
    for name, call in checks:
        try:
            await call()
            print(f"✅ Function '{name}' exists and is callable")
        except SearchError as e:
            print(f"❌ Function '{name}' failed: {e}")
            ok = False

    if brand_slug:
        try:
            brand_id = await store.get_brand_id(brand_slug)
            print(f"✅ Brand '{brand_slug}' found ({brand_id})")
        except BrandNotFoundError as e:
            print(f"❌ {e}")
            ok = False

    print("\n🔍 Checking providers...\n")

    embedding = validate_embedding_setup()
    if embedding["valid"]:
        print(f"✅ Embeddings: {settings.embedding_model}")
    else:
        print(f"❌ Embeddings: {embedding['error']}")
        ok = False

    reranker = validate_reranker_setup()
    if reranker["reranker_configured"]:
        print(f"✅ Re-ranking: {reranker['provider']}")
    else:
        print(f"⚠️  Re-ranking: {reranker['error']}")

    print("\n" + "=" * 70)
    if ok:
        print("✅ SEARCH VERIFICATION COMPLETE")
    else:
        print("❌ SEARCH VERIFICATION FAILED")
    print("=" * 70)

    if ok:
        print("\nNext steps:")
        print("  1. Run the evaluation: python -m scripts.evaluate_search --verbose")
        print("  2. Compare results against evaluation/results/baseline.json")
    else:
        print("\nPlease ensure:")
        print("  1. migrations/001_brand_search.sql was applied")
        print("  2. SUPABASE_URL, SUPABASE_SERVICE_KEY and OPENAI_API_KEY are correct in .env")

    return ok


if __name__ == "__main__":
    slug = sys.argv[1] if len(sys.argv) > 1 else None
    sys.exit(0 if asyncio.run(verify_search(slug)) else 1)

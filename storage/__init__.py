"""
Storage layer for brand document chunks.

This package provides the chunk store interface consumed by the hybrid
search engine and its implementations.

Modules:
- base: ChunkStore and DocumentStore protocols, row mapping, storage exceptions
- supabase: Supabase client over the search RPCs
- memory: in-process chunk store (numpy + BM25)
- availability: one-shot table availability check
"""

from storage.availability import (
    StorageAvailability,
    StorageUnavailableError,
    check_storage_availability,
)
from storage.base import (
    BrandNotFoundError,
    ChunkStore,
    DocumentStore,
    SearchError,
    StorageWriteError,
)
from storage.memory import InMemoryChunkStore
from storage.supabase import SupabaseClient, get_supabase_client

__version__ = "0.1.0"

__all__ = [
    # Interface
    "ChunkStore",
    "DocumentStore",
    "SearchError",
    "StorageWriteError",
    "BrandNotFoundError",
    # Supabase
    "SupabaseClient",
    "get_supabase_client",
    # In-memory
    "InMemoryChunkStore",
    # Availability
    "StorageAvailability",
    "StorageUnavailableError",
    "check_storage_availability",
]

"""
Storage availability checks.

Availability is checked once at startup and passed around as an explicit
value, so callers can see (and tests can construct) exactly which tables
were reachable.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from supabase import Client

logger = logging.getLogger(__name__)

SEARCH_TABLES: tuple[str, ...] = ("brands", "brand_documents", "brand_document_chunks")


class StorageUnavailableError(RuntimeError):
    """Required tables are missing or unreachable."""


@dataclass(frozen=True)
class StorageAvailability:
    """Result of probing a set of tables."""

    tables: dict[str, bool] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def available(self) -> bool:
        return bool(self.tables) and all(self.tables.values())

    @property
    def missing(self) -> list[str]:
        return [name for name, ok in self.tables.items() if not ok]

    def is_available(self, table: str) -> bool:
        return self.tables.get(table, False)

    def require(self) -> "StorageAvailability":
        """Raise StorageUnavailableError unless every checked table is reachable."""
        if not self.available:
            details = ", ".join(
                f"{name} ({self.errors.get(name, 'not checked')})"
                for name in self.missing
            ) or "no tables checked"
            raise StorageUnavailableError(f"Storage unavailable: {details}")
        return self


async def check_storage_availability(
    client: Client,
    tables: tuple[str, ...] = SEARCH_TABLES,
) -> StorageAvailability:
    """
    Check each table with a one-row select.

    Args:
        client: Supabase SDK client
        tables: Tables to check

    Returns:
        StorageAvailability with one entry per table
    """
    status: dict[str, bool] = {}
    errors: dict[str, str] = {}

    for table in tables:
        query = client.table(table).select("id").limit(1)
        try:
            await asyncio.to_thread(query.execute)
            status[table] = True
        except Exception as e:
            logger.warning(f"Table '{table}' is not available: {e}")
            status[table] = False
            errors[table] = str(e)

    availability = StorageAvailability(tables=status, errors=errors)
    logger.info(
        f"Storage check: {sum(status.values())}/{len(status)} tables available"
    )
    return availability

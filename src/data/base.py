"""Protocol definitions for the calculator's collaborators.

Each protocol defines the interface that concrete implementations must satisfy.
"""

from typing import Protocol, runtime_checkable

from src.models.property import PropertyRecord
from src.models.results import CacheEntry, HistoryVersion, SaveResult, TaxAnalysis


@runtime_checkable
class PropertyDataSource(Protocol):
    async def fetch(self, address: str) -> PropertyRecord | None:
        """Fetch the property record for an address, or None if the provider has none.

        Raises ServiceUnavailable, FetchTimeout, or MalformedUpstreamData.
        """
        ...


@runtime_checkable
class PropertyStore(Protocol):
    async def get(self, address: str) -> CacheEntry | None:
        """Return the fresh cache entry for an address; None on miss, expiry, or read failure."""
        ...

    async def put(
        self, address: str, record: PropertyRecord, analysis: TaxAnalysis | None = None
    ) -> SaveResult:
        """Upsert the entry, archiving the previous snapshot. Raises StoreWriteError."""
        ...

    async def get_history(self, address: str, limit: int = 10) -> list[HistoryVersion]:
        """Archived snapshots, most recent first."""
        ...

"""Calculate orchestrator: turns an address into a tax savings estimate.

Flow: validate → cache lookup → scrape on miss → calculate when the analysis
is missing. Persisting the result is a separate step the HTTP layer runs
after the response has been sent.
"""

import logging
import secrets
import string
import time

from src.data.address import validate_address
from src.data.base import PropertyDataSource, PropertyStore
from src.engine.tax import calculate_tax_analysis
from src.errors import InvalidInput, PropertyNotFound
from src.models.property import PropertyRecord
from src.models.results import CalculationResult, HistoryVersion, ScrapeResult, TaxAnalysis

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_request_id() -> str:
    """Correlation ID for logs only; not used for idempotency."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


class TaxSavingsService:
    def __init__(self, store: PropertyStore, fetcher: PropertyDataSource, cache_enabled: bool = True):
        self.store = store
        self.fetcher = fetcher
        self.cache_enabled = cache_enabled

    def _validated(self, raw_address: object) -> str:
        validation = validate_address(raw_address)
        if not validation.valid:
            raise InvalidInput(validation.error)
        return validation.address

    async def _fetch(self, address: str, request_id: str) -> PropertyRecord:
        logger.info("[%s] Scraping property data from Zillow: %s", request_id, address)
        record = await self.fetcher.fetch(address)
        if record is None:
            raise PropertyNotFound(f"No data available for {address}")
        return record

    async def calculate(self, raw_address: object, request_id: str) -> CalculationResult:
        address = self._validated(raw_address)
        logger.info("[%s] Processing calculate tax request: %s", request_id, address)

        record: PropertyRecord | None = None

        if self.cache_enabled:
            cached = await self.store.get(address)
            if cached is not None and cached.calculations is not None:
                logger.info(
                    "[%s] Cache hit, returning cached calculations from %s",
                    request_id, cached.calculations.calculated_at,
                )
                return CalculationResult(
                    address=address,
                    record=cached.record,
                    analysis=cached.calculations,
                    cache_hit=True,
                    needs_persist=False,
                )
            if cached is not None:
                logger.info("[%s] Cache hit (scraped data only), calculating now", request_id)
                record = cached.record
            else:
                logger.info("[%s] Cache miss, will scrape and calculate", request_id)

        cache_hit = record is not None
        if record is None:
            record = await self._fetch(address, request_id)

        logger.info("[%s] Calculating tax analysis: %s", request_id, address)
        analysis = calculate_tax_analysis(record)

        return CalculationResult(
            address=address,
            record=record,
            analysis=analysis,
            cache_hit=cache_hit,
            needs_persist=True,
        )

    async def persist(
        self, address: str, record: PropertyRecord, analysis: TaxAnalysis | None, request_id: str
    ) -> None:
        """Best-effort cache write. Failures are logged, never raised."""
        try:
            result = await self.store.put(address, record, analysis)
        except Exception as e:
            logger.error("[%s] Failed to save %s to cache: %s", request_id, address, e)
            return
        logger.info(
            "[%s] Cache save completed: %s (count %d, new=%s)",
            request_id, address, result.scrape_count, result.is_new_property,
        )

    async def scrape(self, raw_address: object, request_id: str) -> ScrapeResult:
        """Return the property record only, saving fresh scrapes before responding."""
        address = self._validated(raw_address)
        logger.info("[%s] Processing scrape property request: %s", request_id, address)

        if self.cache_enabled:
            cached = await self.store.get(address)
            if cached is not None:
                logger.info("[%s] Cache hit, returning cached data (count %d)", request_id, cached.scrape_count)
                return ScrapeResult(
                    address=address,
                    record=cached.record,
                    cache_hit=True,
                    scraped_at=cached.scraped_at,
                    scrape_count=cached.scrape_count,
                )
            logger.info("[%s] Cache miss, will scrape fresh data", request_id)

        record = await self._fetch(address, request_id)

        scrape_count = 1
        try:
            saved = await self.store.put(address, record)
            scrape_count = saved.scrape_count
        except Exception as e:
            logger.error("[%s] Failed to save %s to cache: %s", request_id, address, e)

        return ScrapeResult(address=address, record=record, cache_hit=False, scrape_count=scrape_count)

    async def history(self, raw_address: object, limit: int = 10) -> list[HistoryVersion]:
        address = self._validated(raw_address)
        return await self.store.get_history(address, limit)

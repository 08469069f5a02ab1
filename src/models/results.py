from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.models.property import PropertyRecord

CALCULATION_VERSION = "1.0"


@dataclass(frozen=True)
class TaxAnalysis:
    # Rate, derived from the most recent complete tax year
    tax_rate_percent: Decimal  # e.g. Decimal("1.9") for 1.9%
    derived_from_year: int

    # Current assessment (may be newer than derived_from_year)
    current_assessed_value: Decimal
    current_assessed_year: int
    market_estimate: Decimal

    # Bills, whole currency units
    current_tax_bill: Decimal
    reduced_tax_bill: Decimal
    potential_savings: Decimal  # Negative = no benefit
    potential_savings_percent: Decimal

    calculated_at: datetime
    calculation_version: str = CALCULATION_VERSION


@dataclass(frozen=True)
class CacheEntry:
    record: PropertyRecord
    calculations: TaxAnalysis | None
    scraped_at: datetime
    scrape_count: int
    expires_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class SaveResult:
    doc_id: str
    scrape_count: int
    is_new_property: bool

    @property
    def version_history_created(self) -> bool:
        return not self.is_new_property


@dataclass(frozen=True)
class HistoryVersion:
    version_id: str
    entry: CacheEntry


@dataclass(frozen=True)
class CalculationResult:
    address: str  # Trimmed request address, used as the cache key source
    record: PropertyRecord
    analysis: TaxAnalysis
    cache_hit: bool
    needs_persist: bool


@dataclass(frozen=True)
class ScrapeResult:
    address: str
    record: PropertyRecord
    cache_hit: bool
    scraped_at: datetime | None = None
    scrape_count: int = 1

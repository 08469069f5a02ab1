"""Canonical test fixtures used across the calculator tests.

Fixture property: 2025 assessed at $500K (not yet billed), 2024 assessed at
$480K with $9,120 paid (1.9% effective), market estimate $400K.
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from src.data.cache import PropertyCacheStore
from src.engine.tax import calculate_tax_analysis
from src.models.property import PropertyRecord, PurchaseEvent, TaxYearEntry

FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def canonical_record() -> PropertyRecord:
    return PropertyRecord(
        address="123 Main St, Austin, TX, 78701",
        purchase_history=[
            PurchaseEvent(date=date(2019, 5, 10), price=Decimal("350000")),
            PurchaseEvent(date=date(2012, 3, 2), price=Decimal("210000")),
        ],
        tax_history=[
            TaxYearEntry(year=2025, assessed_value=Decimal("500000"), tax_paid=None),
            TaxYearEntry(year=2024, assessed_value=Decimal("480000"), tax_paid=Decimal("9120")),
            TaxYearEntry(year=2023, assessed_value=Decimal("450000"), tax_paid=Decimal("8800")),
        ],
        market_estimate=Decimal("400000"),
    )


@pytest.fixture
def canonical_analysis(canonical_record):
    return calculate_tax_analysis(canonical_record, now=FIXED_NOW)


@pytest.fixture
def zillow_listing() -> dict:
    """Raw Apify Zillow detail scraper item (trimmed to the fields we read)."""
    return {
        "zpid": 29370000,
        "address": {
            "streetAddress": "123 Main St",
            "city": "Austin",
            "state": "TX",
            "zipcode": "78701",
        },
        "zestimate": 400000,
        "priceHistory": [
            {"event": "Listed for sale", "price": 365000, "date": "2019-04-01"},
            {"event": "Sold", "price": 210000, "date": "2012-03-02"},
            {"event": "Sold", "price": 350000, "date": "2019-05-10"},
            {"event": "Sold", "price": None, "date": "2005-01-01"},
        ],
        "taxHistory": [
            {"time": 1704067200000, "value": 480000, "taxPaid": 9120.4},  # 2024
            {"time": 1735689600000, "value": 500000, "taxPaid": None},  # 2025
            {"time": 1672531200000, "value": 450000.6, "taxPaid": 8800},  # 2023
            {"time": 1640995200000, "value": None, "taxPaid": 8000},  # 2022, dropped
        ],
    }


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def clock():
    """Mutable clock: tests advance ``clock.now`` to simulate elapsed time."""

    class Clock:
        now = FIXED_NOW

        def __call__(self) -> datetime:
            return self.now

    return Clock()


@pytest.fixture
async def store(session_factory, clock) -> PropertyCacheStore:
    s = PropertyCacheStore(
        session_factory,
        collection="test_properties",
        ttl_days=30,
        enabled=True,
        clock=clock,
    )
    await s.create_tables()
    return s

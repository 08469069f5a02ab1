"""Tests for the address-keyed property cache with version history."""

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from src.data.cache import PropertyCacheStore
from src.errors import StoreWriteError


class TestGet:
    async def test_miss_on_empty_store(self, store):
        assert await store.get("123 Main St, Austin, TX") is None

    async def test_round_trip(self, store, canonical_record, canonical_analysis, clock):
        await store.put("123 Main St, Austin, TX", canonical_record, canonical_analysis)
        entry = await store.get("123 Main St, Austin, TX")

        assert entry.record == canonical_record
        assert entry.calculations == canonical_analysis
        assert entry.scrape_count == 1
        assert entry.scraped_at == clock.now
        assert entry.created_at == clock.now
        assert entry.expires_at == clock.now + timedelta(days=30)

    async def test_partial_entry_without_calculations(self, store, canonical_record):
        await store.put("123 Main St, Austin, TX", canonical_record)
        entry = await store.get("123 Main St, Austin, TX")
        assert entry.record == canonical_record
        assert entry.calculations is None

    async def test_punctuation_variants_share_entry(self, store, canonical_record):
        await store.put("123 Main St, Austin, TX", canonical_record)
        assert await store.get("123 MAIN ST. AUSTIN TX") is not None

    async def test_expired_entry_is_a_miss(self, store, canonical_record, clock):
        await store.put("123 Main St, Austin, TX", canonical_record)

        clock.now = clock.now + timedelta(days=30)
        assert await store.get("123 Main St, Austin, TX") is not None

        clock.now = clock.now + timedelta(seconds=1)
        assert await store.get("123 Main St, Austin, TX") is None

    async def test_disabled_cache_always_misses(self, session_factory, store, canonical_record):
        await store.put("123 Main St, Austin, TX", canonical_record)
        disabled = PropertyCacheStore(session_factory, collection="test_properties", enabled=False)
        assert await disabled.get("123 Main St, Austin, TX") is None

    async def test_collections_are_isolated(self, session_factory, store, canonical_record):
        await store.put("123 Main St, Austin, TX", canonical_record)
        other = PropertyCacheStore(session_factory, collection="other", ttl_days=30, enabled=True)
        assert await other.get("123 Main St, Austin, TX") is None

    async def test_read_failure_is_a_miss(self):
        broken = MagicMock(side_effect=RuntimeError("database unreachable"))
        s = PropertyCacheStore(broken, collection="test_properties", ttl_days=30, enabled=True)
        assert await s.get("123 Main St, Austin, TX") is None


class TestPut:
    async def test_first_write_is_new(self, store, canonical_record):
        result = await store.put("123 Main St, Austin, TX", canonical_record)
        assert result.doc_id == "123-main-st-austin-tx"
        assert result.scrape_count == 1
        assert result.is_new_property
        assert not result.version_history_created

    async def test_rewrite_increments_and_archives(self, store, canonical_record, canonical_analysis, clock):
        created = clock.now
        await store.put("123 Main St, Austin, TX", canonical_record)

        clock.now = created + timedelta(days=31)
        result = await store.put("123 Main St, Austin, TX", canonical_record, canonical_analysis)

        assert result.scrape_count == 2
        assert not result.is_new_property
        assert result.version_history_created

        entry = await store.get("123 Main St, Austin, TX")
        assert entry.scrape_count == 2
        assert entry.calculations == canonical_analysis
        assert entry.scraped_at == clock.now
        assert entry.updated_at == clock.now
        assert entry.created_at == created

    async def test_scrape_count_is_monotonic(self, store, canonical_record):
        counts = [(await store.put("123 Main St, Austin, TX", canonical_record)).scrape_count for _ in range(4)]
        assert counts == [1, 2, 3, 4]

    async def test_write_failure_raises_store_error(self, canonical_record):
        broken = MagicMock(side_effect=RuntimeError("database unreachable"))
        s = PropertyCacheStore(broken, collection="test_properties", ttl_days=30, enabled=True)
        with pytest.raises(StoreWriteError):
            await s.put("123 Main St, Austin, TX", canonical_record)


class TestHistory:
    async def test_empty_for_unknown_address(self, store):
        assert await store.get_history("404 Nowhere Ln") == []

    async def test_snapshots_most_recent_first(self, store, canonical_record, clock):
        start = clock.now
        for i, estimate in enumerate(["400000", "410000", "420000"]):
            clock.now = start + timedelta(days=40 * i)
            await store.put("123 Main St, Austin, TX", replace(canonical_record, market_estimate=Decimal(estimate)))

        history = await store.get_history("123 Main St, Austin, TX")

        assert [v.entry.record.market_estimate for v in history] == [Decimal("410000"), Decimal("400000")]
        assert [v.entry.scrape_count for v in history] == [2, 1]
        assert history[0].version_id == str(int((start + timedelta(days=80)).timestamp() * 1000))

    async def test_limit(self, store, canonical_record):
        for _ in range(5):
            await store.put("123 Main St, Austin, TX", canonical_record)
        assert len(await store.get_history("123 Main St, Austin, TX", limit=2)) == 2

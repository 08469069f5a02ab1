"""Address-keyed property cache with version history.

Each address key maps to one current document holding the scraped record,
the computed analysis (attached lazily), and bookkeeping timestamps. Every
overwrite first archives the previous document verbatim.

History is best-effort under concurrency: two writers racing on the same key
each archive whatever they read, so duplicated or out-of-order versions are
possible. scrape_count itself is incremented SQL-side.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.data.address import hash_address
from src.errors import StoreWriteError
from src.models.db import Base, PropertyCacheRecord, PropertyCacheVersion
from src.models.property import PropertyRecord, PurchaseEvent, TaxYearEntry
from src.models.results import CacheEntry, HistoryVersion, SaveResult, TaxAnalysis

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _dec(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _undec(value: Any) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _unts(value: str | None) -> datetime | None:
    return _as_utc(datetime.fromisoformat(value)) if value else None


# ---- Document (de)serialization ----

def analysis_to_document(analysis: TaxAnalysis) -> dict:
    return {
        "taxRatePercent": _dec(analysis.tax_rate_percent),
        "derivedFromYear": analysis.derived_from_year,
        "currentAssessedValue": _dec(analysis.current_assessed_value),
        "currentAssessedYear": analysis.current_assessed_year,
        "marketEstimate": _dec(analysis.market_estimate),
        "currentTaxBill": _dec(analysis.current_tax_bill),
        "reducedTaxBill": _dec(analysis.reduced_tax_bill),
        "potentialSavings": _dec(analysis.potential_savings),
        "potentialSavingsPercent": _dec(analysis.potential_savings_percent),
        "calculatedAt": _ts(analysis.calculated_at),
        "calculationVersion": analysis.calculation_version,
    }


def analysis_from_document(doc: dict) -> TaxAnalysis:
    return TaxAnalysis(
        tax_rate_percent=_undec(doc["taxRatePercent"]),
        derived_from_year=doc["derivedFromYear"],
        current_assessed_value=_undec(doc["currentAssessedValue"]),
        current_assessed_year=doc["currentAssessedYear"],
        market_estimate=_undec(doc["marketEstimate"]),
        current_tax_bill=_undec(doc["currentTaxBill"]),
        reduced_tax_bill=_undec(doc["reducedTaxBill"]),
        potential_savings=_undec(doc["potentialSavings"]),
        potential_savings_percent=_undec(doc["potentialSavingsPercent"]),
        calculated_at=_unts(doc["calculatedAt"]),
        calculation_version=doc.get("calculationVersion", "1.0"),
    )


def entry_to_document(
    record: PropertyRecord,
    analysis: TaxAnalysis | None,
    scraped_at: datetime,
    scrape_count: int,
    expires_at: datetime,
    created_at: datetime | None,
    updated_at: datetime,
) -> dict:
    return {
        "address": record.address,
        "purchaseHistory": [
            {"date": p.date.isoformat(), "price": _dec(p.price)} for p in record.purchase_history
        ],
        "taxHistory": [
            {"year": t.year, "assessedValue": _dec(t.assessed_value), "taxPaid": _dec(t.tax_paid)}
            for t in record.tax_history
        ],
        "marketEstimate": _dec(record.market_estimate),
        "warnings": list(record.warnings),
        "calculations": analysis_to_document(analysis) if analysis else None,
        "scrapedAt": _ts(scraped_at),
        "scrapeCount": scrape_count,
        "expiresAt": _ts(expires_at),
        "createdAt": _ts(created_at),
        "updatedAt": _ts(updated_at),
    }


def entry_from_document(doc: dict) -> CacheEntry:
    record = PropertyRecord(
        address=doc["address"],
        purchase_history=[
            PurchaseEvent(date=date.fromisoformat(p["date"]), price=_undec(p["price"]))
            for p in doc.get("purchaseHistory") or []
        ],
        tax_history=[
            TaxYearEntry(
                year=t["year"],
                assessed_value=_undec(t.get("assessedValue")),
                tax_paid=_undec(t.get("taxPaid")),
            )
            for t in doc.get("taxHistory") or []
        ],
        market_estimate=_undec(doc.get("marketEstimate")),
        warnings=list(doc.get("warnings") or []),
    )
    calculations = doc.get("calculations")
    return CacheEntry(
        record=record,
        calculations=analysis_from_document(calculations) if calculations else None,
        scraped_at=_unts(doc.get("scrapedAt")),
        scrape_count=doc.get("scrapeCount") or 1,
        expires_at=_unts(doc.get("expiresAt")),
        created_at=_unts(doc.get("createdAt")),
        updated_at=_unts(doc.get("updatedAt")),
    )


class PropertyCacheStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        collection: str | None = None,
        ttl_days: int | None = None,
        enabled: bool | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.session_factory = session_factory
        self.collection = collection or settings.cache_collection
        self.ttl_days = ttl_days if ttl_days is not None else settings.cache_ttl_days
        self.enabled = enabled if enabled is not None else settings.cache_enabled
        self.clock = clock

    async def create_tables(self) -> None:
        async with self.session_factory() as session:
            conn = await session.connection()
            await conn.run_sync(Base.metadata.create_all)
            await session.commit()

    def is_expired(self, scraped_at: datetime | None) -> bool:
        if scraped_at is None:
            return True
        return self.clock() - _as_utc(scraped_at) > timedelta(days=self.ttl_days)

    async def get(self, address: str) -> CacheEntry | None:
        if not self.enabled:
            logger.debug("Cache disabled, treating %s as a miss", address)
            return None

        doc_id = hash_address(address)
        try:
            async with self.session_factory() as session:
                row = await session.get(PropertyCacheRecord, (self.collection, doc_id))
        except Exception:
            logger.exception("Failed to read cache for %s (doc %s), treating as miss", address, doc_id)
            return None

        if row is None:
            logger.info("Property data not found in cache: %s (doc %s)", address, doc_id)
            return None

        if self.is_expired(row.scraped_at):
            logger.info(
                "Property data cache expired: %s (scraped %s, ttl %d days)",
                address, row.scraped_at, self.ttl_days,
            )
            return None

        try:
            entry = entry_from_document(row.document)
        except (KeyError, TypeError, ValueError, ArithmeticError):
            logger.exception("Unreadable cache document for %s (doc %s), treating as miss", address, doc_id)
            return None

        logger.info(
            "Property data retrieved from cache: %s (scraped %s, count %d)",
            address, entry.scraped_at, entry.scrape_count,
        )
        return entry

    async def put(
        self, address: str, record: PropertyRecord, analysis: TaxAnalysis | None = None
    ) -> SaveResult:
        doc_id = hash_address(address)
        key = (
            PropertyCacheRecord.collection == self.collection,
            PropertyCacheRecord.doc_id == doc_id,
        )
        now = self.clock()
        expires_at = now + timedelta(days=self.ttl_days)

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    existing = (await session.execute(
                        select(PropertyCacheRecord.document, PropertyCacheRecord.scraped_at).where(*key)
                    )).first()

                    if existing is None:
                        scrape_count = 1
                        session.add(PropertyCacheRecord(
                            collection=self.collection,
                            doc_id=doc_id,
                            document=entry_to_document(
                                record, analysis, now, scrape_count, expires_at, now, now
                            ),
                            scrape_count=scrape_count,
                            scraped_at=now,
                            expires_at=expires_at,
                            created_at=now,
                            updated_at=now,
                        ))
                    else:
                        previous, previous_scraped_at = existing
                        version_id = str(int(now.timestamp() * 1000))
                        session.add(PropertyCacheVersion(
                            collection=self.collection,
                            doc_id=doc_id,
                            version_id=version_id,
                            snapshot=previous,
                            scraped_at=previous_scraped_at,
                        ))
                        logger.info("Saved version %s to history for %s", version_id, address)

                        scrape_count = (await session.execute(
                            update(PropertyCacheRecord)
                            .where(*key)
                            .values(scrape_count=PropertyCacheRecord.scrape_count + 1)
                            .returning(PropertyCacheRecord.scrape_count)
                            .execution_options(synchronize_session=False)
                        )).scalar_one()

                        created_at = _unts(previous.get("createdAt"))
                        await session.execute(
                            update(PropertyCacheRecord)
                            .where(*key)
                            .values(
                                document=entry_to_document(
                                    record, analysis, now, scrape_count, expires_at, created_at, now
                                ),
                                scraped_at=now,
                                expires_at=expires_at,
                                updated_at=now,
                            )
                            .execution_options(synchronize_session=False)
                        )
        except Exception as e:
            logger.exception("Failed to save property data for %s (doc %s)", address, doc_id)
            raise StoreWriteError(f"Failed to save property data for {address}: {e}") from e

        result = SaveResult(doc_id=doc_id, scrape_count=scrape_count, is_new_property=existing is None)
        logger.info(
            "Property data saved: %s (doc %s, count %d, new=%s, calculations=%s)",
            address, doc_id, result.scrape_count, result.is_new_property, analysis is not None,
        )
        return result

    async def get_history(self, address: str, limit: int = 10) -> list[HistoryVersion]:
        doc_id = hash_address(address)
        try:
            async with self.session_factory() as session:
                rows = (await session.execute(
                    select(PropertyCacheVersion)
                    .where(
                        PropertyCacheVersion.collection == self.collection,
                        PropertyCacheVersion.doc_id == doc_id,
                    )
                    .order_by(PropertyCacheVersion.scraped_at.desc(), PropertyCacheVersion.id.desc())
                    .limit(limit)
                )).scalars().all()
            versions = [HistoryVersion(version_id=r.version_id, entry=entry_from_document(r.snapshot)) for r in rows]
        except Exception:
            logger.exception("Failed to get version history for %s", address)
            return []

        logger.info("Retrieved %d history versions for %s", len(versions), address)
        return versions

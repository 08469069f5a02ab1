"""Zillow property data via the Apify Zillow detail scraper.

Runs the actor synchronously and reads its dataset items in one call, then
validates the first listing into a PropertyRecord.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

import httpx
from pydantic import BaseModel, ValidationError

from src.config import settings
from src.data.address import clean_address_for_search, unit_mismatch_warnings
from src.errors import FetchTimeout, MalformedUpstreamData, ServiceNotConfigured, ServiceUnavailable
from src.models.property import PropertyRecord, PurchaseEvent, TaxYearEntry

logger = logging.getLogger(__name__)


# ---- Raw provider payload ----

class ZillowAddress(BaseModel):
    streetAddress: str | None = None
    city: str | None = None
    state: str | None = None
    zipcode: str | None = None


class ZillowPriceEvent(BaseModel):
    event: str | None = None
    price: float | None = None
    date: str | None = None


class ZillowTaxEntry(BaseModel):
    time: int | None = None  # epoch milliseconds
    value: float | None = None  # assessed value
    taxPaid: float | None = None


class ZillowListing(BaseModel):
    address: ZillowAddress | None = None
    priceHistory: list[ZillowPriceEvent] | None = None
    taxHistory: list[ZillowTaxEntry] | None = None
    zestimate: float | None = None


# ---- Mapping ----

def _whole(value: float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("1"), ROUND_HALF_UP)


def format_address(address: ZillowAddress | None) -> str | None:
    if address is None:
        return None
    parts = [address.streetAddress, address.city, address.state, address.zipcode]
    joined = ", ".join(p for p in parts if p)
    return joined or None


def extract_purchase_history(events: list[ZillowPriceEvent] | None) -> list[PurchaseEvent]:
    """Sold events with both a price and a date, most recent first."""
    purchases = []
    for e in events or []:
        if e.event != "Sold" or not e.price or not e.date:
            continue
        try:
            sold_on = date.fromisoformat(e.date[:10])
        except ValueError as exc:
            raise MalformedUpstreamData(f"Unparseable sale date {e.date!r}") from exc
        purchases.append(PurchaseEvent(date=sold_on, price=Decimal(str(e.price))))
    return sorted(purchases, key=lambda p: p.date, reverse=True)


def extract_tax_history(entries: list[ZillowTaxEntry] | None) -> list[TaxYearEntry]:
    """Entries with an assessed value and a timestamp, most recent year first.

    taxPaid is left as None for years assessed but not yet billed.
    """
    taxes = []
    for e in entries or []:
        if not e.value or not e.time:
            continue
        try:
            year = datetime.fromtimestamp(e.time / 1000, tz=timezone.utc).year
        except (OverflowError, OSError, ValueError) as exc:
            raise MalformedUpstreamData(f"Unparseable tax timestamp {e.time!r}") from exc
        taxes.append(TaxYearEntry(
            year=year,
            assessed_value=_whole(e.value),
            tax_paid=_whole(e.taxPaid) if e.taxPaid else None,
        ))
    return sorted(taxes, key=lambda t: t.year, reverse=True)


def parse_listing(raw: dict, requested_address: str) -> PropertyRecord:
    """Validate a raw listing and map it into a PropertyRecord."""
    try:
        listing = ZillowListing.model_validate(raw)
    except ValidationError as e:
        raise MalformedUpstreamData(f"Invalid Zillow listing: {e.error_count()} errors") from e

    address = format_address(listing.address) or requested_address
    return PropertyRecord(
        address=address,
        purchase_history=extract_purchase_history(listing.priceHistory),
        tax_history=extract_tax_history(listing.taxHistory),
        market_estimate=Decimal(str(listing.zestimate)) if listing.zestimate else None,
        warnings=unit_mismatch_warnings(requested_address, address),
    )


class ZillowScraper:
    """Apify-backed PropertyDataSource. One instance per process."""

    def __init__(
        self,
        api_key: str | None = None,
        actor_id: str | None = None,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.apify_api_key
        self.actor_id = actor_id or settings.zillow_actor_id
        self.timeout_seconds = timeout_seconds or settings.scraper_timeout_seconds
        self.client = client or httpx.AsyncClient(
            base_url=settings.apify_base_url,
            timeout=self.timeout_seconds,
            transport=httpx.AsyncHTTPTransport(retries=settings.max_retries),
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _run_actor(self, cleaned_address: str) -> list:
        actor_path = self.actor_id.replace("/", "~")
        try:
            resp = await self.client.post(
                f"/acts/{actor_path}/run-sync-get-dataset-items",
                params={"timeout": int(self.timeout_seconds)},
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"addresses": [cleaned_address]},
            )
        except httpx.TimeoutException as e:
            raise FetchTimeout(f"Zillow scraper timeout after {self.timeout_seconds}s") from e
        except httpx.HTTPError as e:
            raise ServiceUnavailable(f"Failed to scrape property data: {e}") from e

        if resp.status_code == 408:
            raise FetchTimeout("Zillow scraper run timeout")
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ServiceUnavailable(f"Failed to scrape property data: {e}") from e

        try:
            items = resp.json()
        except ValueError as e:
            raise MalformedUpstreamData("Zillow scraper returned non-JSON body") from e
        if not isinstance(items, list):
            raise MalformedUpstreamData("Zillow scraper returned a non-list dataset")
        return items

    async def fetch(self, address: str) -> PropertyRecord | None:
        if not self.api_key:
            raise ServiceNotConfigured("APIFY_API_KEY is not configured")

        cleaned = clean_address_for_search(address)
        logger.info("Starting Zillow scraper: %s (cleaned: %s, actor %s)", address, cleaned, self.actor_id)

        items = await self._run_actor(cleaned)
        if not items:
            logger.warning("No property data found for %s", address)
            return None

        if not isinstance(items[0], dict):
            raise MalformedUpstreamData("Zillow listing is not an object")
        logger.debug("Zillow raw listing keys: %s", list(items[0].keys()))

        record = parse_listing(items[0], address)
        logger.info(
            "Property data transformed: %s → %s (estimate=%s, purchases=%d, tax years=%d, warnings=%d)",
            address,
            record.address,
            record.market_estimate,
            len(record.purchase_history),
            len(record.tax_history),
            len(record.warnings),
        )
        return record

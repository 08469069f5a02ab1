"""Pydantic schemas for API request/response models.

Responses use camelCase aliases and serialize Decimals as JSON numbers.
Dump with ``by_alias=True, exclude_unset=True`` so optional blocks
(``warnings``, ``details``) only appear when set.
"""

import datetime as dt
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from src.models.property import PropertyRecord
from src.models.results import TaxAnalysis


def _number(value: Decimal) -> int | float:
    return int(value) if value == value.to_integral_value() else float(value)


Number = Annotated[Decimal, PlainSerializer(_number, return_type=int | float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---- Request schemas ----

class AddressRequest(BaseModel):
    # checked by validate_address
    address: Any = None


# ---- Response schemas ----

class PurchaseEventResponse(CamelModel):
    date: dt.date
    price: Number


class TaxYearResponse(CamelModel):
    year: int
    tax_paid: Number | None
    assessed_value: Number | None


class PropertyResponse(CamelModel):
    address: str
    purchase_history: list[PurchaseEventResponse]
    tax_history: list[TaxYearResponse]
    market_estimate: Number | None

    @classmethod
    def from_record(cls, record: PropertyRecord) -> "PropertyResponse":
        return cls(
            address=record.address,
            purchase_history=[PurchaseEventResponse(date=p.date, price=p.price) for p in record.purchase_history],
            tax_history=[
                TaxYearResponse(year=t.year, tax_paid=t.tax_paid, assessed_value=t.assessed_value)
                for t in record.tax_history
            ],
            market_estimate=record.market_estimate,
        )


class CalculationsResponse(CamelModel):
    tax_rate_percent: Number
    derived_from_year: int
    current_assessed_value: Number
    current_assessed_year: int
    market_estimate: Number
    current_tax_bill: Number
    reduced_tax_bill: Number
    potential_savings: Number
    potential_savings_percent: Number

    @classmethod
    def from_analysis(cls, analysis: TaxAnalysis) -> "CalculationsResponse":
        return cls(
            tax_rate_percent=analysis.tax_rate_percent,
            derived_from_year=analysis.derived_from_year,
            current_assessed_value=analysis.current_assessed_value,
            current_assessed_year=analysis.current_assessed_year,
            market_estimate=analysis.market_estimate,
            current_tax_bill=analysis.current_tax_bill,
            reduced_tax_bill=analysis.reduced_tax_bill,
            potential_savings=analysis.potential_savings,
            potential_savings_percent=analysis.potential_savings_percent,
        )


class CalculateData(CamelModel):
    property: PropertyResponse
    calculations: CalculationsResponse


class CalculateMetadata(CamelModel):
    request_id: str
    cache_hit: bool
    calculated_at: dt.datetime
    calculation_version: str
    latency_ms: int


class CalculateResponse(CamelModel):
    success: bool
    data: CalculateData
    metadata: CalculateMetadata
    warnings: list[str] | None = None


class ScrapeMetadata(CamelModel):
    request_id: str
    cache_hit: bool
    scraped_at: dt.datetime
    scrape_count: int
    cache_ttl_days: int
    latency_ms: int


class ScrapeResponse(CamelModel):
    success: bool
    data: PropertyResponse
    metadata: ScrapeMetadata
    warnings: list[str] | None = None


class HistoryVersionResponse(CamelModel):
    version_id: str
    scraped_at: dt.datetime | None
    scrape_count: int
    property: PropertyResponse
    calculations: CalculationsResponse | None


class HistoryResponse(CamelModel):
    success: bool
    data: list[HistoryVersionResponse]


class ErrorBody(CamelModel):
    code: str
    message: str
    details: str | None = None


class ErrorMetadata(CamelModel):
    request_id: str | None = None
    latency_ms: int | None = None


class ErrorResponse(CamelModel):
    success: bool
    error: ErrorBody
    metadata: ErrorMetadata

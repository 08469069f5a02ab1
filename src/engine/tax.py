"""Effective tax rate derivation and savings projection.

The rate is the one actually realized in the most recent complete tax year
(tax paid / assessed value), so exemptions and caps already applied by the
county carry over into the projection.

Pure functions: dataclasses in, dataclasses out. No I/O.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from src.errors import NoAssessedValue, NoCompleteTaxYear, NoMarketEstimate, NoTaxHistory
from src.models.property import PropertyRecord, TaxYearEntry
from src.models.results import TaxAnalysis

logger = logging.getLogger(__name__)

WHOLE_UNITS = Decimal("1")
TWO_PLACES = Decimal("0.01")
FOUR_PLACES = Decimal("0.0001")
HUNDRED = Decimal("100")


def derive_tax_rate(tax_history: list[TaxYearEntry]) -> tuple[Decimal, int]:
    """Return (tax_rate_percent, year) from the first complete entry.

    tax_history must be sorted most recent first.
    """
    entry = next((e for e in tax_history if e.is_complete), None)
    if entry is None:
        raise NoCompleteTaxYear()

    rate = (entry.tax_paid / entry.assessed_value * HUNDRED).quantize(FOUR_PLACES, ROUND_HALF_UP)
    logger.debug(
        "Tax rate derived: year=%s tax_paid=%s assessed=%s rate=%s%%",
        entry.year, entry.tax_paid, entry.assessed_value, rate,
    )
    return rate, entry.year


def current_assessment(tax_history: list[TaxYearEntry]) -> tuple[Decimal, int]:
    """Return (assessed_value, year) of the most recent assessed entry, billed or not."""
    entry = next((e for e in tax_history if e.has_assessment), None)
    if entry is None:
        raise NoAssessedValue()

    logger.debug(
        "Current assessment: year=%s assessed=%s has_tax_paid=%s",
        entry.year, entry.assessed_value, entry.tax_paid is not None,
    )
    return entry.assessed_value, entry.year


def tax_bill(value: Decimal, rate_percent: Decimal) -> Decimal:
    return (value * rate_percent / HUNDRED).quantize(WHOLE_UNITS, ROUND_HALF_UP)


def savings_percent(savings: Decimal, current_bill: Decimal) -> Decimal:
    if current_bill == 0:
        return Decimal("0")
    return (savings / current_bill * HUNDRED).quantize(TWO_PLACES, ROUND_HALF_UP)


def calculate_tax_analysis(record: PropertyRecord, now: datetime | None = None) -> TaxAnalysis:
    """Project the tax bill at market value against the current assessment.

    Raises a CalculationError subclass when the record cannot support an
    estimate; these reflect unusable upstream data and are never retried.
    """
    if not record.tax_history:
        raise NoTaxHistory()
    if not record.market_estimate:
        raise NoMarketEstimate()

    rate, derived_year = derive_tax_rate(record.tax_history)
    assessed_value, assessed_year = current_assessment(record.tax_history)

    current_bill = tax_bill(assessed_value, rate)
    reduced_bill = tax_bill(record.market_estimate, rate)
    savings = current_bill - reduced_bill

    analysis = TaxAnalysis(
        tax_rate_percent=rate,
        derived_from_year=derived_year,
        current_assessed_value=assessed_value,
        current_assessed_year=assessed_year,
        market_estimate=record.market_estimate,
        current_tax_bill=current_bill,
        reduced_tax_bill=reduced_bill,
        potential_savings=savings,
        potential_savings_percent=savings_percent(savings, current_bill),
        calculated_at=now or datetime.now(timezone.utc),
    )

    logger.info(
        "Tax analysis calculated: rate=%s%% (from %s) assessed_year=%s savings=%s (%s%%)",
        analysis.tax_rate_percent,
        analysis.derived_from_year,
        analysis.current_assessed_year,
        analysis.potential_savings,
        analysis.potential_savings_percent,
    )
    return analysis

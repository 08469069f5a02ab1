from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.engine.tax import (
    calculate_tax_analysis,
    current_assessment,
    derive_tax_rate,
    savings_percent,
    tax_bill,
)
from src.errors import (
    CalculationError,
    NoAssessedValue,
    NoCompleteTaxYear,
    NoMarketEstimate,
    NoTaxHistory,
)
from src.models.property import TaxYearEntry


class TestDeriveTaxRate:
    def test_uses_first_complete_entry(self, canonical_record):
        """2025 has no tax paid yet, so the rate comes from 2024."""
        rate, year = derive_tax_rate(canonical_record.tax_history)
        assert rate == Decimal("1.9")
        assert year == 2024

    def test_rounds_to_four_places(self):
        history = [TaxYearEntry(year=2024, assessed_value=Decimal("300000"), tax_paid=Decimal("5000"))]
        rate, _ = derive_tax_rate(history)
        assert rate == Decimal("1.6667")

    def test_no_complete_entry(self):
        history = [
            TaxYearEntry(year=2025, assessed_value=Decimal("500000")),
            TaxYearEntry(year=2024, assessed_value=Decimal("480000")),
        ]
        with pytest.raises(NoCompleteTaxYear):
            derive_tax_rate(history)


class TestCurrentAssessment:
    def test_unbilled_year_still_counts(self, canonical_record):
        value, year = current_assessment(canonical_record.tax_history)
        assert value == Decimal("500000")
        assert year == 2025

    def test_no_assessed_value(self):
        history = [TaxYearEntry(year=2024, assessed_value=None, tax_paid=Decimal("9000"))]
        with pytest.raises(NoAssessedValue):
            current_assessment(history)


class TestBills:
    def test_tax_bill_rounds_to_whole_units(self):
        assert tax_bill(Decimal("333333"), Decimal("1.9")) == Decimal("6333")
        assert tax_bill(Decimal("250"), Decimal("1")) == Decimal("3")  # 2.5 rounds half up

    def test_savings_percent_zero_bill(self):
        assert savings_percent(Decimal("0"), Decimal("0")) == Decimal("0")

    def test_savings_percent_two_places(self):
        assert savings_percent(Decimal("1"), Decimal("3")) == Decimal("33.33")


class TestCalculateTaxAnalysis:
    def test_scenario_incomplete_latest_year(self, canonical_analysis):
        a = canonical_analysis
        assert a.tax_rate_percent == Decimal("1.9")
        assert a.derived_from_year == 2024
        assert a.current_assessed_value == Decimal("500000")
        assert a.current_assessed_year == 2025
        assert a.market_estimate == Decimal("400000")
        assert a.current_tax_bill == Decimal("9500")
        assert a.reduced_tax_bill == Decimal("7600")
        assert a.potential_savings == Decimal("1900")
        assert a.potential_savings_percent == Decimal("20.0")
        assert a.calculation_version == "1.0"

    def test_negative_savings_not_clamped(self, canonical_record):
        record = replace(canonical_record, market_estimate=Decimal("600000"))
        a = calculate_tax_analysis(record)
        assert a.reduced_tax_bill == Decimal("11400")
        assert a.potential_savings == Decimal("-1900")
        assert a.potential_savings_percent == Decimal("-20.0")

    def test_deterministic_except_timestamp(self, canonical_record):
        first = calculate_tax_analysis(canonical_record)
        second = calculate_tax_analysis(canonical_record)
        assert replace(first, calculated_at=second.calculated_at) == second

    def test_injected_clock(self, canonical_record):
        now = datetime(2025, 1, 15, tzinfo=timezone.utc)
        assert calculate_tax_analysis(canonical_record, now=now).calculated_at == now

    def test_empty_tax_history(self, canonical_record):
        with pytest.raises(NoTaxHistory, match="No tax history"):
            calculate_tax_analysis(replace(canonical_record, tax_history=[]))

    def test_missing_market_estimate(self, canonical_record):
        with pytest.raises(NoMarketEstimate):
            calculate_tax_analysis(replace(canonical_record, market_estimate=None))

    def test_no_complete_year(self, canonical_record):
        record = replace(canonical_record, tax_history=[
            TaxYearEntry(year=2025, assessed_value=Decimal("500000")),
        ])
        with pytest.raises(NoCompleteTaxYear):
            calculate_tax_analysis(record)

    def test_failures_are_calculation_errors(self, canonical_record):
        with pytest.raises(CalculationError) as exc_info:
            calculate_tax_analysis(replace(canonical_record, tax_history=[]))
        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "CALCULATION_ERROR"

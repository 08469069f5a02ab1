from dataclasses import dataclass, field
from decimal import Decimal
from datetime import date


@dataclass(frozen=True)
class PurchaseEvent:
    date: date
    price: Decimal


@dataclass(frozen=True)
class TaxYearEntry:
    year: int
    assessed_value: Decimal | None = None
    tax_paid: Decimal | None = None  # None when the year is assessed but not billed yet

    @property
    def has_assessment(self) -> bool:
        return bool(self.assessed_value)

    @property
    def is_complete(self) -> bool:
        return bool(self.assessed_value) and bool(self.tax_paid)


@dataclass(frozen=True)
class PropertyRecord:
    """Best-known facts about a property, as confirmed by the data source.

    Both histories are ordered most recent first.
    """

    address: str
    purchase_history: list[PurchaseEvent] = field(default_factory=list)
    tax_history: list[TaxYearEntry] = field(default_factory=list)
    market_estimate: Decimal | None = None
    warnings: list[str] = field(default_factory=list)

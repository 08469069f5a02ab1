"""Error taxonomy for the calculator service.

Each error carries the HTTP status and stable machine-readable code the API
responds with. ``message`` is user-facing; ``details`` is internal and only
returned outside production.
"""


class PropertyTaxError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    public_message: str = "An unexpected error occurred while calculating property tax."

    @property
    def message(self) -> str:
        return self.public_message

    @property
    def details(self) -> str:
        return str(self)


class _UserFacing:
    """Mixin for errors whose text is safe to show; the hint becomes the details."""

    @property
    def message(self) -> str:
        return str(self)

    @property
    def details(self) -> str:
        return self.public_message


# ---- Input errors (client-fixable) ----

class InputError(PropertyTaxError):
    status_code = 400
    code = "INVALID_INPUT"
    public_message = "Please provide a valid property address"


class InvalidInput(_UserFacing, InputError):
    pass


# ---- Data errors (usable connection, unusable data) ----

class DataError(PropertyTaxError):
    status_code = 400


class CalculationError(_UserFacing, DataError):
    code = "CALCULATION_ERROR"
    public_message = "Unable to calculate tax analysis for this property"


class NoTaxHistory(CalculationError):
    def __init__(self, msg: str = "No tax history available for calculation."):
        super().__init__(msg)


class NoMarketEstimate(CalculationError):
    def __init__(self, msg: str = "Market estimate unavailable for calculation."):
        super().__init__(msg)


class NoCompleteTaxYear(CalculationError):
    def __init__(self, msg: str = "No complete tax history available for rate calculation."):
        super().__init__(msg)


class NoAssessedValue(CalculationError):
    def __init__(self, msg: str = "No assessed value found in tax history."):
        super().__init__(msg)


class PropertyNotFound(DataError):
    status_code = 404
    code = "PROPERTY_NOT_FOUND"
    public_message = "Property data not found."

    @property
    def details(self) -> str:
        return "No data available for the provided address. Please verify the address and try again."


# ---- Upstream errors (provider down or slow) ----

class UpstreamError(PropertyTaxError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"
    public_message = "Property data service is temporarily unavailable."


class ServiceUnavailable(UpstreamError):
    pass


class ServiceNotConfigured(ServiceUnavailable):
    public_message = "Property data service is not configured."


class MalformedUpstreamData(UpstreamError):
    public_message = "Property data service returned unusable data."


class FetchTimeout(UpstreamError):
    status_code = 504
    code = "GATEWAY_TIMEOUT"
    public_message = "Property data service timed out. Please try again."


# ---- Store errors (never user-visible) ----

class StoreWriteError(Exception):
    pass

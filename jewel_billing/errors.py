"""
Billing errors
==============
Business-level exceptions raised by the calculator and its collaborators.
Each carries the name of the input that blocked the calculation so callers
can tell the user exactly what to fill in.
"""


class BillingError(Exception):
    """Base exception for all billing errors."""

    def __init__(self, message: str = "Billing calculation failed.", field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


class MissingInputError(BillingError):
    """Raised when a required input is absent."""

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"{field} is required.", field=field)


class MissingRateError(MissingInputError):
    """Raised when a rate for today is absent and must be entered manually."""

    def __init__(self, field: str, message: str | None = None):
        super().__init__(
            field,
            message or f"{field} not found for today. Please enter it manually.",
        )


class InvalidInputError(BillingError, ValueError):
    """Raised for non-numeric, negative or out-of-range inputs."""

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"{field} must be a valid non-negative number.", field=field)


class ExchangeRateZeroError(BillingError):
    """Raised when the dollar rate is zero in dual-currency mode."""

    def __init__(self, field: str = "usd_to_inr_rate"):
        super().__init__("Dollar rate must be greater than zero.", field=field)


class RateConflictError(BillingError):
    """Raised when a value already recorded for the day would be overwritten."""

    def __init__(self, field: str, rate_date: str):
        super().__init__(f"{field} is already recorded for {rate_date}.", field=field)


class APIError(BillingError):
    """Raised when the inventory API fails or returns an unexpected payload."""
    pass


class PartialRateFetchError(APIError):
    """Raised when some rate endpoints answered and others failed."""

    def __init__(self, rates: dict, failures: list[APIError]):
        self.rates = rates
        self.failures = failures
        super().__init__("; ".join(failure.message for failure in failures), field=failures[0].field)


class EstimateValidationError(InvalidInputError):
    """Raised when an estimate record fails validation."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("estimate", "Validation failed: " + ", ".join(errors))

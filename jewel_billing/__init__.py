from jewel_billing.errors import (
    APIError,
    BillingError,
    EstimateValidationError,
    ExchangeRateZeroError,
    InvalidInputError,
    MissingInputError,
    MissingRateError,
    PartialRateFetchError,
    RateConflictError,
)
from jewel_billing.models import CategoryCharges, CurrencyMode, JewelryItem, PricingBreakdown, RateSnapshot, StoneLine
from jewel_billing.pricing import as_display, price_item

__all__ = [
	"APIError",
	"BillingError",
	"CategoryCharges",
	"CurrencyMode",
	"EstimateValidationError",
	"ExchangeRateZeroError",
	"InvalidInputError",
	"JewelryItem",
	"MissingInputError",
	"MissingRateError",
	"PartialRateFetchError",
	"PricingBreakdown",
	"RateConflictError",
	"RateSnapshot",
	"StoneLine",
	"as_display",
	"price_item",
]

import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from jewel_billing.errors import EstimateValidationError
from jewel_billing.models import CategoryCharges, CurrencyMode, JewelryItem, PricingBreakdown
from jewel_billing.pricing import round_money, round_weight

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")

NUMERIC_FIELDS = [
    "gold_purity",
    "gross_weight",
    "net_weight",
    "fine_weight",
    "gold_rate",
    "gold_price",
    "gold_value",
    "wastage_percent",
    "wastage_amount",
    "making_charge_per_gram",
    "making_amount",
    "total_gold_amount",
    "stone_total",
    "diamond_carats",
    "certification_charges",
    "usd_to_inr_rate",
    "tax_rate",
    "tax_amount",
    "subtotal",
    "grand_total",
    "grand_total_inr",
    "grand_total_usd",
]


@dataclass(frozen=True)
class Customer:
    name: str
    phone: str = ""
    email: str = ""


def _money(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(round_money(value))


def _weight(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(round_weight(value))


def build_estimate_record(
    item: JewelryItem,
    category: Optional[CategoryCharges],
    breakdown: PricingBreakdown,
    customer: Customer,
    estimate_date: date | None = None,
    valid_days: int = 30,
    notes: str = "",
) -> dict[str, Any]:
    """Flatten a priced item into the record posted to the estimates endpoint."""
    issued = estimate_date or date.today()
    is_usd = breakdown.mode == CurrencyMode.USD
    stone_details = [
        {
            "code": line.code,
            "name": line.name,
            "weight": _weight(line.weight_carats),
            "rate": _money(line.rate_per_carat),
            "cost": _money(line.cost),
        }
        for line in breakdown.stone_lines
    ]

    return {
        "estimate_date": issued.isoformat(),
        "valid_until": (issued + timedelta(days=valid_days)).isoformat(),
        "customer_name": customer.name.strip(),
        "customer_phone": customer.phone.strip(),
        "customer_email": customer.email.strip(),
        "item_code": item.code,
        "jewelry_name": item.name,
        "category_id": category.id if category else None,
        "gold_purity": item.purity,
        "gross_weight": _weight(item.gross_weight),
        "net_weight": _weight(breakdown.net_weight),
        "fine_weight": _weight(breakdown.fine_weight),
        "gold_rate": _money(breakdown.gold_rate_per_gram),
        "gold_price": _money(breakdown.gold_price_per_gram),
        "gold_value": _money(breakdown.gold_value),
        "wastage_percent": float(breakdown.wastage_percent),
        "wastage_amount": _money(breakdown.wastage_amount),
        "making_charge_per_gram": _money(breakdown.making_charge_per_gram),
        "making_amount": _money(breakdown.making_amount),
        "total_gold_amount": _money(breakdown.total_gold_amount),
        "stone_total": _money(breakdown.stone_total),
        "stone_details": stone_details,
        "diamond_carats": _weight(breakdown.diamond_carats),
        "certification_required": breakdown.certification_required,
        "certification_charges": _money(breakdown.certification_charge),
        "currency": breakdown.mode.value,
        "usd_to_inr_rate": float(breakdown.usd_to_inr_rate) if is_usd else None,
        "tax_rate": float(breakdown.tax_percent),
        "tax_amount": _money(breakdown.tax_amount),
        "subtotal": _money(breakdown.subtotal),
        "grand_total": _money(breakdown.grand_total_usd if is_usd else breakdown.grand_total),
        "grand_total_inr": _money(breakdown.grand_total),
        "grand_total_usd": _money(breakdown.grand_total_usd),
        "notes": notes,
        "status": "draft",
    }


def validate_estimate_record(record: dict[str, Any]) -> None:
    errors: list[str] = []

    if not str(record.get("customer_name") or "").strip():
        errors.append("Customer name is required")
    if not str(record.get("jewelry_name") or "").strip():
        errors.append("Jewelry name is required")
    if record.get("currency") not in {"INR", "USD"}:
        errors.append("Valid currency (INR or USD) is required")

    for field in NUMERIC_FIELDS:
        value = record.get(field)
        if value is None or value == "":
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            number = -1.0
        if number != number or number < 0:
            errors.append(f"{field.replace('_', ' ')} must be a valid positive number")

    email = str(record.get("customer_email") or "").strip()
    if email and not EMAIL_PATTERN.match(email):
        errors.append("Invalid email format")

    phone = re.sub(r"\s", "", str(record.get("customer_phone") or ""))
    if phone and not PHONE_PATTERN.match(phone):
        errors.append("Invalid phone number format")

    if errors:
        raise EstimateValidationError(errors)

"""
Billing flow
============
Fetch an item and its pricing context from the inventory API, price it, and
save estimates. Everything the calculator needs is passed in explicitly.
"""

import logging
import sqlite3
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Optional

from jewel_billing.catalog import find_category
from jewel_billing.db import get_all_settings
from jewel_billing.estimates import Customer, build_estimate_record, validate_estimate_record
from jewel_billing.models import CategoryCharges, CurrencyMode, JewelryItem, PricingBreakdown, RateSnapshot
from jewel_billing.pricing import price_item, to_decimal
from jewel_billing.providers.inventory_api import InventoryAPIClient
from jewel_billing.rates import get_rates_for_today

logger = logging.getLogger("jewel_billing.billing")


@dataclass(frozen=True)
class Quote:
    item: JewelryItem
    category: Optional[CategoryCharges]
    rates: RateSnapshot
    breakdown: PricingBreakdown
    warning: Optional[str] = None


def apply_charge_overrides(
    category: Optional[CategoryCharges],
    item_code: str,
    wastage_percent: Any = None,
    making_charge_per_gram: Any = None,
) -> Optional[CategoryCharges]:
    """Category defaults with the values the user edited on the bill."""
    overrides = {}
    if wastage_percent is not None:
        overrides["wastage_percent"] = to_decimal(wastage_percent, "wastage_percent")
    if making_charge_per_gram is not None:
        overrides["making_charge_per_gram"] = to_decimal(making_charge_per_gram, "making_charge_per_gram")
    if not overrides:
        return category
    if category is None:
        category = CategoryCharges(
            code="",
            name=item_code,
            wastage_percent=None,
            making_charge_per_gram=None,
            certification_charge_per_carat=None,
        )
    return replace(category, **overrides)


def quote_item(
    client: InventoryAPIClient,
    conn: sqlite3.Connection,
    item_code: str,
    mode: CurrencyMode | str = CurrencyMode.INR,
    wastage_percent: Any = None,
    making_charge_per_gram: Any = None,
    certificate_required: Optional[bool] = None,
) -> Quote:
    item = client.get_jewelry_details(item_code)
    if certificate_required is not None:
        item = replace(item, certificate_required=certificate_required)

    category = apply_charge_overrides(
        find_category(client.list_categories(), item.code),
        item.code,
        wastage_percent,
        making_charge_per_gram,
    )
    if category is None:
        logger.warning("No category found for item %s", item.code)

    diamond_codes = client.list_diamond_codes()
    rates, warning = get_rates_for_today(conn, client)
    breakdown = price_item(item, category, rates, mode, diamond_codes)
    return Quote(item=item, category=category, rates=rates, breakdown=breakdown, warning=warning)


def save_estimate(
    client: InventoryAPIClient,
    conn: sqlite3.Connection,
    quote: Quote,
    customer: Customer,
    notes: str = "",
    estimate_date: date | None = None,
) -> dict[str, Any]:
    settings = get_all_settings(conn)
    record = build_estimate_record(
        quote.item,
        quote.category,
        quote.breakdown,
        customer,
        estimate_date=estimate_date,
        valid_days=settings["estimate_valid_days"],
        notes=notes,
    )
    validate_estimate_record(record)
    result = client.create_estimate(record)
    logger.info("Saved %s estimate for %s", record["currency"], record["item_code"])
    return result

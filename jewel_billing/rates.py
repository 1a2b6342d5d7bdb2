"""
Daily rate snapshots
====================
One snapshot of gold, dollar and tax rates per day, cached in sqlite. A value
recorded for a day is never replaced; missing values are filled from the
provider or entered by hand, and pricing is blocked until they exist.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from jewel_billing.db import RATE_FIELDS, fill_rate_row, get_rate_row, list_rate_rows
from jewel_billing.errors import (
    APIError,
    ExchangeRateZeroError,
    InvalidInputError,
    PartialRateFetchError,
    RateConflictError,
)
from jewel_billing.models import RateSnapshot
from jewel_billing.pricing import to_decimal

if TYPE_CHECKING:
    from jewel_billing.providers.base import RateProvider

logger = logging.getLogger("jewel_billing.rates")

GOLD_RATE_UNITS = {"per_gram": Decimal(1), "per_10g": Decimal(10)}


def today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def normalize_gold_rate(value: Optional[Decimal], unit: str) -> Optional[Decimal]:
    """Convert a 24K gold rate quoted per `unit` into the per-gram rate the calculator expects."""
    if unit not in GOLD_RATE_UNITS:
        raise InvalidInputError("gold_rate_unit", f"Unknown gold rate unit: {unit}")
    if value is None:
        return None
    return value / GOLD_RATE_UNITS[unit]


def snapshot_from_row(row: sqlite3.Row | None, rate_date: str) -> RateSnapshot:
    if row is None:
        return RateSnapshot(rate_date=rate_date)
    values = {key: (Decimal(row[key]) if row[key] is not None else None) for key in RATE_FIELDS}
    return RateSnapshot(rate_date=row["rate_date"], source=row["source"] or "", **values)


def _as_text(values: dict[str, Optional[Decimal]]) -> dict[str, str]:
    return {key: format(value, "f") for key, value in values.items() if key in RATE_FIELDS and value is not None}


def get_rates_for_today(
    conn: sqlite3.Connection,
    provider: "RateProvider",
    today: str | None = None,
) -> tuple[RateSnapshot, str | None]:
    """
    Returns today's snapshot, asking the provider only for values not yet recorded.

    If the provider fails the stored values are returned with a warning, and
    on a partial failure the rates it did return are recorded first. Any rate
    still missing must then be entered manually.
    """
    rate_date = today or today_iso()
    snapshot = snapshot_from_row(get_rate_row(conn, rate_date), rate_date)
    missing = [key for key in RATE_FIELDS if getattr(snapshot, key) is None]
    if not missing:
        return snapshot, None

    warning = None
    try:
        fresh = provider.fetch_today()
    except PartialRateFetchError as exc:
        logger.warning("Rate fetch from %s partly failed: %s", provider.provider_name, exc)
        warning = f"Rate API unavailable for some rates. Stored what was returned for {rate_date}. Details: {exc}"
        fresh = exc.rates
    except APIError as exc:
        logger.warning("Rate fetch from %s failed: %s", provider.provider_name, exc)
        warning = f"Rate API unavailable. Using stored rates for {rate_date}. Details: {exc}"
        fresh = {}

    fresh_missing = {key: fresh.get(key) for key in missing if fresh.get(key) is not None}
    if fresh_missing:
        fill_rate_row(conn, rate_date, _as_text(fresh_missing), provider.provider_name)
        logger.info("Recorded %s for %s from %s", ", ".join(sorted(fresh_missing)), rate_date, provider.provider_name)
        snapshot = snapshot_from_row(get_rate_row(conn, rate_date), rate_date)

    still_missing = [key for key in RATE_FIELDS if getattr(snapshot, key) is None]
    if still_missing and warning is None:
        warning = f"Rates not found for {rate_date}: {', '.join(still_missing)}. Please enter them manually."
    return snapshot, warning


def record_manual_rates(
    conn: sqlite3.Connection,
    today: str | None = None,
    source: str = "manual entry",
    **rates: Any,
) -> RateSnapshot:
    rate_date = today or today_iso()
    unknown = set(rates) - set(RATE_FIELDS)
    if unknown:
        raise InvalidInputError(sorted(unknown)[0], f"Unknown rate: {sorted(unknown)[0]}")

    values = {key: to_decimal(value, key) for key, value in rates.items()}
    values = {key: value for key, value in values.items() if value is not None}
    if not values:
        raise InvalidInputError("rates", "At least one rate must be provided.")
    if values.get("usd_to_inr_rate") == 0:
        raise ExchangeRateZeroError()

    current = snapshot_from_row(get_rate_row(conn, rate_date), rate_date)
    for key in values:
        if getattr(current, key) is not None:
            raise RateConflictError(key, rate_date)

    fill_rate_row(conn, rate_date, _as_text(values), source)
    logger.info("Manual rates recorded for %s: %s", rate_date, ", ".join(sorted(values)))
    return snapshot_from_row(get_rate_row(conn, rate_date), rate_date)


def list_rate_history(conn: sqlite3.Connection, limit: int = 30) -> list[RateSnapshot]:
    return [snapshot_from_row(row, row["rate_date"]) for row in list_rate_rows(conn, limit)]

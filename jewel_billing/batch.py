import logging
from collections import defaultdict
from typing import Any, Iterable

import pandas as pd

from jewel_billing.catalog import find_category, normalize_item_code, parse_jewelry_details
from jewel_billing.errors import BillingError
from jewel_billing.models import CategoryCharges, CurrencyMode, RateSnapshot
from jewel_billing.pricing import as_display, price_item

logger = logging.getLogger("jewel_billing.batch")

ITEM_COLUMNS = ["item_code", "purity", "gross_weight"]
OPTIONAL_ITEM_COLUMNS = ["name", "net_weight", "stone_weight", "certificate"]
STONE_COLUMNS = ["item_code", "stone_code", "weight", "rate"]


def _cell(value: Any) -> Any:
    return None if pd.isna(value) else value


def _require_columns(df: pd.DataFrame, required: list[str]) -> None:
    missing = [column for column in required if column not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(missing)}")


def _stones_by_item(stones_df: pd.DataFrame | None) -> dict[str, list[dict[str, Any]]]:
    grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
    if stones_df is None:
        return grouped
    _require_columns(stones_df, STONE_COLUMNS)
    for _, row in stones_df.iterrows():
        grouped[normalize_item_code(str(row["item_code"]))].append(
            {
                "stone_code": str(row["stone_code"]).strip(),
                "stone_name": "" if "stone_name" not in stones_df.columns else str(_cell(row["stone_name"]) or ""),
                "weight": _cell(row["weight"]),
                "sale_price": _cell(row["rate"]),
            }
        )
    return grouped


def reprice_frame(
    items_df: pd.DataFrame,
    categories: Iterable[CategoryCharges],
    rates: RateSnapshot,
    mode: CurrencyMode | str = CurrencyMode.INR,
    diamond_codes: Iterable[str] = (),
    stones_df: pd.DataFrame | None = None,
) -> pd.DataFrame:
    """
    Price every row of an inventory frame against one rate snapshot.

    Rows that cannot be priced keep their item code and name the blocking
    field in `blocked_on`; the rest of the batch still prices.
    """
    _require_columns(items_df, ITEM_COLUMNS)
    categories = list(categories)
    diamond_codes = frozenset(diamond_codes)
    stones = _stones_by_item(stones_df)

    results = []
    for _, row in items_df.iterrows():
        code = normalize_item_code(str(row["item_code"]))
        payload = {"code": code, "gold_purity": _cell(row["purity"]), "gross_weight": _cell(row["gross_weight"])}
        for column in OPTIONAL_ITEM_COLUMNS:
            if column in items_df.columns:
                payload[column] = _cell(row[column])
        payload["stones"] = stones.get(code, [])

        try:
            item = parse_jewelry_details(payload)
            breakdown = price_item(item, find_category(categories, code), rates, mode, diamond_codes)
        except BillingError as exc:
            logger.warning("Could not price %s: %s", code, exc.message)
            results.append({"item_code": code, "blocked_on": exc.field, "error": exc.message})
            continue

        display = as_display(breakdown)
        display.pop("stone_lines")
        results.append({"item_code": code, **display, "blocked_on": None, "error": None})

    return pd.DataFrame(results)

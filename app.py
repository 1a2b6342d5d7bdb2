import argparse
import json
import logging
import sys
from dataclasses import asdict
from decimal import Decimal
from pathlib import Path

import pandas as pd
from dotenv import load_dotenv

from jewel_billing.batch import reprice_frame
from jewel_billing.billing import quote_item, save_estimate
from jewel_billing.db import get_all_settings, get_connection, init_db
from jewel_billing.errors import BillingError, EstimateValidationError
from jewel_billing.estimates import Customer
from jewel_billing.models import RateSnapshot
from jewel_billing.pricing import as_display, to_decimal
from jewel_billing.providers.inventory_api import InventoryAPIClient
from jewel_billing.rates import get_rates_for_today, list_rate_history, normalize_gold_rate, record_manual_rates


# Load environment variables from local .env file.
load_dotenv(dotenv_path=Path(__file__).parent / ".env")

logger = logging.getLogger("jewel_billing")


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _snapshot_dict(snapshot: RateSnapshot) -> dict:
    return {key: (format(value, "f") if isinstance(value, Decimal) else value) for key, value in asdict(snapshot).items()}


def _certificate_flag(value: str | None) -> bool | None:
    if value is None:
        return None
    return value.strip().lower() in {"yes", "true", "1"}


def _build_client(conn) -> InventoryAPIClient:
    settings = get_all_settings(conn)
    return InventoryAPIClient(gold_rate_unit=settings["api_gold_rate_unit"])


def _add_pricing_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("item_code")
    parser.add_argument("--currency", choices=["INR", "USD"], type=str.upper)
    parser.add_argument("--wastage", help="Override category wastage %%")
    parser.add_argument("--making", help="Override category making charge per gram")
    parser.add_argument("--certificate", choices=["yes", "no"], type=str.lower)


def _run_rates(args: argparse.Namespace, conn) -> int:
    if args.history is not None:
        _print_json([_snapshot_dict(snapshot) for snapshot in list_rate_history(conn, args.history)])
        return 0

    gold_per_gram = args.gold_per_gram
    if args.gold_per_10g is not None:
        gold_per_gram = normalize_gold_rate(to_decimal(args.gold_per_10g, "gold_rate_per_gram"), "per_10g")

    manual = {
        "gold_rate_per_gram": gold_per_gram,
        "usd_to_inr_rate": args.usd_inr,
        "gst_percent": args.gst,
        "customs_duty_percent": args.customs_duty,
        "state_tax_percent": args.state_tax,
    }
    manual = {key: value for key, value in manual.items() if value is not None}
    if manual:
        snapshot = record_manual_rates(conn, args.date, **manual)
        _print_json(_snapshot_dict(snapshot))
        return 0

    snapshot, warning = get_rates_for_today(conn, _build_client(conn), args.date)
    if warning:
        logger.warning(warning)
    _print_json(_snapshot_dict(snapshot))
    return 0


def _run_price(args: argparse.Namespace, conn) -> int:
    settings = get_all_settings(conn)
    quote = quote_item(
        _build_client(conn),
        conn,
        args.item_code,
        mode=args.currency or settings["default_currency"],
        wastage_percent=args.wastage,
        making_charge_per_gram=args.making,
        certificate_required=_certificate_flag(args.certificate),
    )
    if quote.warning:
        logger.warning(quote.warning)
    _print_json(as_display(quote.breakdown))
    return 0


def _run_estimate(args: argparse.Namespace, conn) -> int:
    settings = get_all_settings(conn)
    client = _build_client(conn)
    quote = quote_item(
        client,
        conn,
        args.item_code,
        mode=args.currency or settings["default_currency"],
        wastage_percent=args.wastage,
        making_charge_per_gram=args.making,
        certificate_required=_certificate_flag(args.certificate),
    )
    customer = Customer(name=args.customer_name, phone=args.phone or "", email=args.email or "")
    result = save_estimate(client, conn, quote, customer, notes=args.notes or "")
    _print_json(result)
    return 0


def _run_reprice(args: argparse.Namespace, conn) -> int:
    settings = get_all_settings(conn)
    client = _build_client(conn)
    mode = args.currency or settings["default_currency"]

    items_df = pd.read_csv(args.items_csv)
    stones_df = pd.read_csv(args.stones) if args.stones else None
    rates, warning = get_rates_for_today(conn, client)
    if warning:
        logger.warning(warning)

    priced = reprice_frame(
        items_df,
        client.list_categories(),
        rates,
        mode,
        client.list_diamond_codes(),
        stones_df=stones_df,
    )
    priced.to_csv(args.output_csv, index=False)
    blocked = int(priced["blocked_on"].notna().sum()) if "blocked_on" in priced.columns else 0
    print(f"Priced {len(priced) - blocked} of {len(priced)} items. Output: {args.output_csv}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jewel-billing", description="Jewelry billing and estimates")
    parser.add_argument("--db", help="Path to the local sqlite database")
    parser.add_argument("-v", "--verbose", action="store_true")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the local database and default settings")

    rates = commands.add_parser("rates", help="Show today's rates or enter missing ones manually")
    rates.add_argument("--date", help="Rate date (YYYY-MM-DD), defaults to today")
    gold = rates.add_mutually_exclusive_group()
    gold.add_argument("--gold-per-gram", help="24K gold rate per gram")
    gold.add_argument("--gold-per-10g", help="24K gold rate per 10 grams")
    rates.add_argument("--usd-inr", help="USD to INR rate")
    rates.add_argument("--gst", help="GST %%")
    rates.add_argument("--customs-duty", help="Customs duty %%")
    rates.add_argument("--state-tax", help="State tax %%")
    rates.add_argument("--history", type=int, metavar="N", help="List the last N snapshots")

    price = commands.add_parser("price", help="Price an item by code")
    _add_pricing_arguments(price)

    estimate = commands.add_parser("estimate", help="Price an item and save an estimate")
    _add_pricing_arguments(estimate)
    estimate.add_argument("--customer-name", required=True)
    estimate.add_argument("--phone")
    estimate.add_argument("--email")
    estimate.add_argument("--notes")

    reprice = commands.add_parser("reprice", help="Re-price an inventory CSV")
    reprice.add_argument("items_csv")
    reprice.add_argument("output_csv")
    reprice.add_argument("--stones", help="CSV of stone lines (item_code, stone_code, weight, rate)")
    reprice.add_argument("--currency", choices=["INR", "USD"], type=str.upper)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    conn = get_connection(args.db)
    init_db(conn)

    handlers = {
        "rates": _run_rates,
        "price": _run_price,
        "estimate": _run_estimate,
        "reprice": _run_reprice,
    }
    try:
        if args.command == "init-db":
            print("Database initialised successfully.")
            return 0
        return handlers[args.command](args, conn)
    except EstimateValidationError as exc:
        _print_json({"error": exc.message, "errors": exc.errors})
        return 1
    except BillingError as exc:
        _print_json({"error": exc.message, "field": exc.field})
        return 1
    finally:
        conn.close()


if __name__ == "__main__":
    sys.exit(main())

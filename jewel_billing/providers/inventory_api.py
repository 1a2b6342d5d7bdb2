import logging
import os
from decimal import Decimal
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from jewel_billing.catalog import (
    DIAMOND_CATEGORY,
    diamond_codes_from_materials,
    normalize_item_code,
    parse_category,
    parse_jewelry_details,
)
from jewel_billing.errors import APIError, InvalidInputError, PartialRateFetchError
from jewel_billing.models import CategoryCharges, JewelryItem
from jewel_billing.pricing import to_decimal
from jewel_billing.providers.base import RateProvider
from jewel_billing.rates import normalize_gold_rate

logger = logging.getLogger("jewel_billing.api")


def _timeout_from_env() -> int:
    raw = os.getenv("JEWEL_API_TIMEOUT", "10").strip()
    try:
        timeout = int(raw)
    except ValueError:
        timeout = 0
    if timeout <= 0:
        raise InvalidInputError(
            "JEWEL_API_TIMEOUT",
            f"JEWEL_API_TIMEOUT must be a positive whole number of seconds, got {raw!r}.",
        )
    return timeout


class InventoryAPIClient(RateProvider):
    """
    Client for the jewelry inventory REST API.

    The gold endpoint reports the 24K rate in a field named per 10 g; how that
    number is read is set by `gold_rate_unit` and it is normalised to a
    per-gram rate here, before anything reaches the calculator.
    """

    provider_name = "inventory-api"

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout_seconds: int | None = None,
        gold_rate_unit: str = "per_10g",
        session: Any = None,
    ):
        self.base_url = (base_url or os.getenv("JEWEL_API_BASE_URL", "http://localhost:5000")).rstrip("/")
        self.token = token or os.getenv("JEWEL_API_TOKEN", "")
        self.timeout_seconds = timeout_seconds or _timeout_from_env()
        self.gold_rate_unit = gold_rate_unit
        self.session = session or self._build_session()

    @staticmethod
    def _build_session() -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=2,
            connect=2,
            read=2,
            backoff_factor=0.5,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            if method == "POST":
                response = self.session.post(url, headers=self._headers(), timeout=self.timeout_seconds, **kwargs)
            else:
                response = self.session.get(url, headers=self._headers(), timeout=self.timeout_seconds, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise APIError(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise APIError(f"{method} {path} returned invalid JSON") from exc

    def _get_rate(self, path: str) -> dict[str, Any]:
        payload = self._request("GET", path)
        if not isinstance(payload, dict):
            raise APIError(f"Unexpected payload from {path}")
        if payload.get("success") is False:
            raise APIError(payload.get("message") or f"Rate request to {path} was unsuccessful")
        return payload.get("rate") or {}

    @staticmethod
    def _rate_value(rate: dict[str, Any], key: str, field: str) -> Optional[Decimal]:
        try:
            return to_decimal(rate.get(key), field)
        except InvalidInputError as exc:
            raise APIError(f"Invalid {field} from inventory API", field=field) from exc

    def _fetch_gold(self) -> dict[str, Optional[Decimal]]:
        gold = self._get_rate("/api/rates/gold/today")
        value = self._rate_value(gold, "gold_24k_per_10g", "gold_rate_per_gram")
        return {"gold_rate_per_gram": normalize_gold_rate(value, self.gold_rate_unit)}

    def _fetch_dollar(self) -> dict[str, Optional[Decimal]]:
        dollar = self._get_rate("/api/rates/dollar/today")
        return {"usd_to_inr_rate": self._rate_value(dollar, "usd_to_inr", "usd_to_inr_rate")}

    def _fetch_tax(self) -> dict[str, Optional[Decimal]]:
        tax = self._get_rate("/api/rates/tax/latest")
        return {
            "gst_percent": self._rate_value(tax, "gst_percentage", "gst_percent"),
            "customs_duty_percent": self._rate_value(tax, "customs_duty", "customs_duty_percent"),
            "state_tax_percent": self._rate_value(tax, "state_tax", "state_tax_percent"),
        }

    def fetch_today(self) -> dict[str, Optional[Decimal]]:
        """
        Each rate endpoint is read on its own. If only some fail, the rates
        that did come back travel on a PartialRateFetchError.
        """
        rates: dict[str, Optional[Decimal]] = {}
        failures: list[APIError] = []
        for fetch in (self._fetch_gold, self._fetch_dollar, self._fetch_tax):
            try:
                rates.update(fetch())
            except APIError as exc:
                failures.append(exc)

        if failures and not rates:
            raise APIError("; ".join(failure.message for failure in failures), field=failures[0].field)
        if failures:
            raise PartialRateFetchError(rates, failures)
        return rates

    def list_categories(self) -> list[CategoryCharges]:
        payload = self._request("GET", "/api/categories")
        if not isinstance(payload, list):
            raise APIError("Categories endpoint did not return a list")
        return [parse_category(row) for row in payload]

    def list_diamond_codes(self) -> frozenset[str]:
        payload = self._request("GET", f"/api/materials/category/{DIAMOND_CATEGORY}")
        if not isinstance(payload, list):
            raise APIError("Materials endpoint did not return a list")
        return diamond_codes_from_materials(payload)

    def get_jewelry_details(self, item_code: str) -> JewelryItem:
        code = normalize_item_code(item_code)
        payload = self._request("GET", f"/api/jewelry/details/{code}")
        if not isinstance(payload, dict) or normalize_item_code(str(payload.get("code") or "")) != code:
            raise APIError(f"Jewelry item {code} not found", field="item_code")
        return parse_jewelry_details(payload)

    def create_estimate(self, record: dict[str, Any]) -> dict[str, Any]:
        result = self._request("POST", "/api/estimates", json=record)
        if isinstance(result, dict) and result.get("success") is False:
            raise APIError(result.get("message") or "Estimate was not saved")
        return result

from decimal import Decimal

import pytest
import requests

from jewel_billing.db import get_connection, init_db
from jewel_billing.models import CategoryCharges, JewelryItem, RateSnapshot, StoneLine
from jewel_billing.providers.inventory_api import InventoryAPIClient

API_BASE = "http://api.test"


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        return self.payload


class FakeSession:
    """Answers GET/POST by path; unknown paths get a 404."""

    def __init__(self, routes=None):
        self.routes = routes if routes is not None else {}
        self.calls = []
        self.posted = []

    def _respond(self, method, url, headers):
        path = url[len(API_BASE):]
        self.calls.append((method, path, headers))
        response = self.routes.get((method, path), self.routes.get(path))
        if response is None:
            return FakeResponse({"message": "not found"}, status_code=404)
        if isinstance(response, FakeResponse):
            return response
        return FakeResponse(response)

    def get(self, url, headers=None, timeout=None, **kwargs):
        return self._respond("GET", url, headers)

    def post(self, url, headers=None, timeout=None, json=None, **kwargs):
        self.posted.append(json)
        return self._respond("POST", url, headers)

    def paths(self):
        return [path for _, path, _ in self.calls]


@pytest.fixture
def conn():
    connection = get_connection(":memory:")
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture
def ruby():
    return StoneLine(code="RUBY", name="Ruby", weight_carats=Decimal("2"), rate_per_carat=Decimal("1000"))


@pytest.fixture
def ring(ruby):
    # 10 g net, 22K, one ruby line worth 2000
    return JewelryItem(
        code="RNG-1",
        name="Ruby Ring",
        purity=22,
        gross_weight=Decimal("10.4"),
        net_weight=Decimal("10"),
        stones=(ruby,),
        id=1,
    )


@pytest.fixture
def ring_charges():
    return CategoryCharges(
        code="RNG",
        name="Rings",
        wastage_percent=Decimal("8"),
        making_charge_per_gram=Decimal("500"),
        certification_charge_per_carat=Decimal("700"),
        id=3,
    )


@pytest.fixture
def rates():
    return RateSnapshot(
        rate_date="2026-10-18",
        gold_rate_per_gram=Decimal("6000"),
        usd_to_inr_rate=Decimal("83"),
        gst_percent=Decimal("3"),
        customs_duty_percent=Decimal("10"),
        state_tax_percent=Decimal("3.75"),
    )


@pytest.fixture
def api_routes():
    return {
        "/api/rates/gold/today": {"success": True, "rate": {"gold_24k_per_10g": "60000.00"}},
        "/api/rates/dollar/today": {"success": True, "rate": {"usd_to_inr": "83.0000"}},
        "/api/rates/tax/latest": {
            "success": True,
            "rate": {"gst_percentage": "3.00", "customs_duty": "10.00", "state_tax": "3.75"},
        },
        "/api/categories": [
            {"id": 3, "name": "Rings", "code": "RNG", "wastage_charges": "8.00", "making_charges": "500.00",
             "certification_charges": "700.00"},
            {"id": 4, "name": "Necklaces", "code": "DNS", "wastage_charges": "10.00", "making_charges": "800.00",
             "certification_charges": "700.00"},
        ],
        "/api/materials/category/Diamond": [
            {"id": 11, "code": "DIA-VS", "name": "Diamond VS"},
            {"id": 12, "code": "DIA-SI", "name": "Diamond SI"},
        ],
        "/api/jewelry/details/RNG-1": {
            "id": 1,
            "code": "RNG-1",
            "name": "Ruby Ring",
            "gold_purity": "22",
            "gross_weight": "10.400",
            "net_weight": "10.000",
            "certificate": "No",
            "stones": [
                {"stone_code": "RUBY", "stone_name": "Ruby", "weight": "2.00", "sale_price": "1000.00"},
            ],
        },
        "/api/jewelry/details/DNS-7": {
            "id": 7,
            "code": "DNS-7",
            "name": "Diamond Necklace",
            "gold_purity": 18,
            "gross_weight": "20.000",
            "net_weight": "19.500",
            "certificate": "Yes",
            "stones": [
                {"stone_code": "DIA-VS", "stone_name": "Diamond VS", "weight": "1.50", "sale_price": "40000"},
                {"stone_code": "DIA-SI", "stone_name": "Diamond SI", "weight": "0.50", "sale_price": "25000"},
                {"stone_code": "EMR", "stone_name": "Emerald", "weight": "0.50", "sale_price": "8000"},
            ],
        },
        ("POST", "/api/estimates"): {"success": True, "data": {"id": 99, "estimate_number": "EST-INR-0001"}},
    }


@pytest.fixture
def session(api_routes):
    return FakeSession(api_routes)


@pytest.fixture
def client(session):
    return InventoryAPIClient(base_url=API_BASE, token="secret", timeout_seconds=5, session=session)

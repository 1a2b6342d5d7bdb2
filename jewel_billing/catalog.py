"""
Catalog helpers
===============
Turn inventory API payloads into pricing inputs and resolve the category
charges that apply to an item code.
"""

from typing import Any, Iterable, Optional

from jewel_billing.errors import InvalidInputError
from jewel_billing.models import CategoryCharges, JewelryItem, StoneLine
from jewel_billing.pricing import to_decimal, to_purity

DIAMOND_CATEGORY = "Diamond"


def normalize_item_code(code: str) -> str:
    return code.strip().upper()


def category_code_from_item_code(code: str) -> str:
    """DNS-1 -> DNS"""
    return normalize_item_code(code).split("-")[0]


def _first_present(payload: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None and value != "":
            return value
    return None


def parse_category(payload: dict[str, Any]) -> CategoryCharges:
    return CategoryCharges(
        code=str(payload.get("code") or "").strip().upper(),
        name=str(payload.get("name") or ""),
        wastage_percent=to_decimal(
            _first_present(payload, "wastage_charges", "wastageCharges"), "wastage_percent"
        ),
        making_charge_per_gram=to_decimal(
            _first_present(payload, "making_charges", "makingCharges"), "making_charge_per_gram"
        ),
        certification_charge_per_carat=to_decimal(
            _first_present(payload, "certification_charges", "certificationCharges"),
            "certification_charge_per_carat",
        ),
        id=payload.get("id"),
    )


def find_category(categories: Iterable[CategoryCharges], item_code: str) -> Optional[CategoryCharges]:
    category_code = category_code_from_item_code(item_code)
    if not category_code:
        return None
    categories = list(categories)
    for category in categories:
        if category.code == category_code:
            return category
    # Fall back to a category whose name mentions the code.
    for category in categories:
        if category_code in category.name.upper():
            return category
    return None


def parse_stone_line(payload: dict[str, Any]) -> StoneLine:
    code = str(_first_present(payload, "stone_code", "code") or "")
    return StoneLine(
        code=code,
        name=str(_first_present(payload, "stone_name", "name") or ""),
        weight_carats=to_decimal(payload.get("weight"), f"stone {code} weight_carats"),
        rate_per_carat=to_decimal(
            _first_present(payload, "sale_price", "rate"), f"stone {code} rate_per_carat"
        ),
    )


def _parse_purity(value: Any) -> Optional[int]:
    purity = to_purity(value)
    return None if purity is None else int(purity)


def _parse_certificate(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"yes", "true", "1"}


def parse_jewelry_details(payload: dict[str, Any]) -> JewelryItem:
    code = payload.get("code")
    if not code:
        raise InvalidInputError("code", "Jewelry details payload has no item code.")
    return JewelryItem(
        code=normalize_item_code(str(code)),
        name=str(payload.get("name") or ""),
        purity=_parse_purity(payload.get("gold_purity")),
        gross_weight=to_decimal(payload.get("gross_weight"), "gross_weight"),
        net_weight=to_decimal(payload.get("net_weight"), "net_weight"),
        stone_weight=to_decimal(payload.get("stone_weight"), "stone_weight"),
        certificate_required=_parse_certificate(payload.get("certificate")),
        stones=tuple(parse_stone_line(stone) for stone in payload.get("stones") or []),
        id=payload.get("id"),
    )


def diamond_codes_from_materials(materials: Iterable[dict[str, Any]]) -> frozenset[str]:
    return frozenset(str(material["code"]) for material in materials if material.get("code"))

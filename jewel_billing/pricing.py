from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from jewel_billing.errors import (
    ExchangeRateZeroError,
    InvalidInputError,
    MissingInputError,
    MissingRateError,
)
from jewel_billing.models import (
    CategoryCharges,
    CurrencyMode,
    JewelryItem,
    PricingBreakdown,
    RateSnapshot,
    StoneLine,
)

KARAT_BASIS = Decimal(24)
HUNDRED = Decimal(100)
ZERO = Decimal(0)
CENT = Decimal("0.01")
MILLIGRAM = Decimal("0.001")


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_weight(value: Decimal) -> Decimal:
    return value.quantize(MILLIGRAM, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str) -> Optional[Decimal]:
    """
    Coerce a form or API value to Decimal.

    None and blank strings are "absent" and come back as None. Anything
    non-numeric, non-finite or negative is rejected, never coerced to zero.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    if isinstance(value, bool):
        raise InvalidInputError(field)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise InvalidInputError(field) from None
    if not result.is_finite() or result < 0:
        raise InvalidInputError(field)
    return result


def to_purity(value: Any, field: str = "purity") -> Optional[Decimal]:
    purity = to_decimal(value, field)
    if purity is None:
        return None
    if purity != purity.to_integral_value() or not 1 <= purity <= 24:
        raise InvalidInputError(field, f"{field} must be a whole karat between 1 and 24.")
    return purity


def derive_net_weight(gross_weight: Any, stone_weight: Any) -> Optional[Decimal]:
    gross = to_decimal(gross_weight, "gross_weight")
    stones = to_decimal(stone_weight, "stone_weight")
    if gross is None or stones is None:
        return None
    net = gross - stones
    if net < 0:
        raise InvalidInputError("net_weight", "Stone weight cannot exceed gross weight.")
    return net


def resolve_net_weight(item: JewelryItem) -> Optional[Decimal]:
    if item.net_weight is not None:
        return to_decimal(item.net_weight, "net_weight")
    stone_weight = item.stone_weight
    if stone_weight is None and not item.stones:
        stone_weight = ZERO
    return derive_net_weight(item.gross_weight, stone_weight)


def compute_fine_weight(net_weight: Any, purity_karat: Any) -> Optional[Decimal]:
    net = to_decimal(net_weight, "net_weight")
    purity = to_purity(purity_karat)
    if net is None or purity is None:
        return None
    return net * purity / KARAT_BASIS


def compute_gold_price_per_gram(gold_rate_24k_per_gram: Any, purity_karat: Any) -> Optional[Decimal]:
    rate = to_decimal(gold_rate_24k_per_gram, "gold_rate_per_gram")
    purity = to_purity(purity_karat)
    if rate is None or purity is None:
        return None
    return rate * purity / KARAT_BASIS


def compute_gold_value(gold_price_per_gram: Any, fine_weight: Any) -> Optional[Decimal]:
    price = to_decimal(gold_price_per_gram, "gold_price_per_gram")
    fine = to_decimal(fine_weight, "fine_weight")
    if price is None or fine is None:
        return None
    return price * fine


def compute_wastage_amount(net_weight: Any, wastage_percent: Any, gold_price_per_gram: Any) -> Optional[Decimal]:
    # Wastage weight is taken on net weight and priced at the karat gold price.
    net = to_decimal(net_weight, "net_weight")
    pct = to_decimal(wastage_percent, "wastage_percent")
    price = to_decimal(gold_price_per_gram, "gold_price_per_gram")
    if net is None or pct is None or price is None:
        return None
    return net * pct / HUNDRED * price


def compute_making_amount(net_weight: Any, making_charge_per_gram: Any) -> Optional[Decimal]:
    net = to_decimal(net_weight, "net_weight")
    charge = to_decimal(making_charge_per_gram, "making_charge_per_gram")
    if net is None or charge is None:
        return None
    return net * charge


def _sum_or_none(*values: Optional[Decimal]) -> Optional[Decimal]:
    if any(value is None for value in values):
        return None
    return sum(values, ZERO)


def compute_total_gold_amount(gold_value: Any, wastage_amount: Any, making_amount: Any) -> Optional[Decimal]:
    return _sum_or_none(
        to_decimal(gold_value, "gold_value"),
        to_decimal(wastage_amount, "wastage_amount"),
        to_decimal(making_amount, "making_amount"),
    )


def _stone_weight(line: StoneLine) -> Optional[Decimal]:
    return to_decimal(line.weight_carats, f"stone {line.code} weight_carats")


def compute_stone_total(stone_lines: Iterable[StoneLine]) -> Optional[Decimal]:
    total = ZERO
    for line in stone_lines:
        weight = _stone_weight(line)
        rate = to_decimal(line.rate_per_carat, f"stone {line.code} rate_per_carat")
        if weight is None or rate is None:
            return None
        total += weight * rate
    return total


def compute_diamond_carats(stone_lines: Iterable[StoneLine], diamond_codes: Iterable[str]) -> Optional[Decimal]:
    codes = set(diamond_codes)
    carats = ZERO
    for line in stone_lines:
        if line.code not in codes:
            continue
        weight = _stone_weight(line)
        if weight is None:
            return None
        carats += weight
    return carats


def compute_certification_charge(
    diamond_carats: Any,
    certification_required: bool,
    charge_per_carat: Any,
) -> Optional[Decimal]:
    if not certification_required:
        return ZERO
    carats = to_decimal(diamond_carats, "diamond_carats")
    if carats is None:
        return None
    if carats == 0:
        return ZERO
    charge = to_decimal(charge_per_carat, "certification_charge_per_carat")
    if charge is None:
        return None
    return carats * charge


def compute_subtotal(total_gold_amount: Any, stone_total: Any, certification_charge: Any) -> Optional[Decimal]:
    return _sum_or_none(
        to_decimal(total_gold_amount, "total_gold_amount"),
        to_decimal(stone_total, "stone_total"),
        to_decimal(certification_charge, "certification_charge"),
    )


@dataclass(frozen=True)
class TaxResult:
    tax_percent: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    subtotal_usd: Optional[Decimal] = None
    tax_usd: Optional[Decimal] = None
    grand_total_usd: Optional[Decimal] = None


def compute_gst_tax(subtotal: Decimal, gst_percent: Any) -> TaxResult:
    gst = to_decimal(gst_percent, "gst_percent")
    if gst is None:
        raise MissingRateError("gst_percent")
    tax_amount = subtotal * gst / HUNDRED
    return TaxResult(tax_percent=gst, tax_amount=tax_amount, grand_total=subtotal + tax_amount)


def compute_dual_currency_tax(
    subtotal: Decimal,
    usd_to_inr_rate: Any,
    customs_duty_percent: Any,
    state_tax_percent: Any,
) -> TaxResult:
    """
    Duty is defined against the USD value: convert the INR subtotal to USD,
    apply customs duty plus state tax there, then convert the tax back.
    """
    dollar_rate = to_decimal(usd_to_inr_rate, "usd_to_inr_rate")
    if dollar_rate is None:
        raise MissingRateError("usd_to_inr_rate")
    if dollar_rate == 0:
        raise ExchangeRateZeroError()
    customs = to_decimal(customs_duty_percent, "customs_duty_percent")
    if customs is None:
        raise MissingRateError("customs_duty_percent")
    state_tax = to_decimal(state_tax_percent, "state_tax_percent")
    if state_tax is None:
        raise MissingRateError("state_tax_percent")

    tax_percent = customs + state_tax
    subtotal_usd = subtotal / dollar_rate
    tax_usd = subtotal_usd * tax_percent / HUNDRED
    tax_inr = tax_usd * dollar_rate
    return TaxResult(
        tax_percent=tax_percent,
        tax_amount=tax_inr,
        grand_total=subtotal + tax_inr,
        subtotal_usd=subtotal_usd,
        tax_usd=tax_usd,
        grand_total_usd=subtotal_usd + tax_usd,
    )


def compute_tax(subtotal: Any, rates: RateSnapshot, mode: CurrencyMode | str) -> TaxResult:
    amount = to_decimal(subtotal, "subtotal")
    if amount is None:
        raise MissingInputError("subtotal")
    if CurrencyMode(mode) == CurrencyMode.USD:
        return compute_dual_currency_tax(
            amount,
            rates.usd_to_inr_rate,
            rates.customs_duty_percent,
            rates.state_tax_percent,
        )
    return compute_gst_tax(amount, rates.gst_percent)


def _require(value: Optional[Decimal], field: str) -> Decimal:
    if value is None:
        raise MissingInputError(field)
    return value


def price_item(
    item: JewelryItem,
    charges: Optional[CategoryCharges],
    rates: RateSnapshot,
    mode: CurrencyMode | str = CurrencyMode.INR,
    diamond_codes: Iterable[str] = (),
) -> PricingBreakdown:
    """
    Price one jewelry item.

    Returns a complete breakdown at full precision or raises a BillingError
    naming the first input that blocks the calculation.
    """
    mode = CurrencyMode(mode)
    missing = rates.missing_for(mode)
    if missing:
        raise MissingRateError(missing[0])
    if charges is None:
        raise MissingInputError("category", f"No category charges found for item {item.code}.")

    net_weight = _require(resolve_net_weight(item), "net_weight")
    purity = _require(to_purity(item.purity), "purity")
    gold_rate = _require(to_decimal(rates.gold_rate_per_gram, "gold_rate_per_gram"), "gold_rate_per_gram")
    wastage_percent = _require(to_decimal(charges.wastage_percent, "wastage_percent"), "wastage_percent")
    making_charge = _require(
        to_decimal(charges.making_charge_per_gram, "making_charge_per_gram"),
        "making_charge_per_gram",
    )

    fine_weight = compute_fine_weight(net_weight, purity)
    gold_price = compute_gold_price_per_gram(gold_rate, purity)
    gold_value = compute_gold_value(gold_price, fine_weight)
    wastage_amount = compute_wastage_amount(net_weight, wastage_percent, gold_price)
    making_amount = compute_making_amount(net_weight, making_charge)
    total_gold_amount = compute_total_gold_amount(gold_value, wastage_amount, making_amount)

    for line in item.stones:
        rate_field = f"stone {line.code} rate_per_carat"
        _require(_stone_weight(line), f"stone {line.code} weight_carats")
        _require(to_decimal(line.rate_per_carat, rate_field), rate_field)
    stone_total = compute_stone_total(item.stones)
    diamond_carats = compute_diamond_carats(item.stones, diamond_codes)

    charge_per_carat = to_decimal(charges.certification_charge_per_carat, "certification_charge_per_carat")
    certification_charge = _require(
        compute_certification_charge(diamond_carats, item.certificate_required, charge_per_carat),
        "certification_charge_per_carat",
    )

    subtotal = compute_subtotal(total_gold_amount, stone_total, certification_charge)
    tax = compute_tax(subtotal, rates, mode)

    return PricingBreakdown(
        mode=mode,
        net_weight=net_weight,
        fine_weight=fine_weight,
        gold_rate_per_gram=gold_rate,
        gold_price_per_gram=gold_price,
        gold_value=gold_value,
        wastage_percent=wastage_percent,
        wastage_amount=wastage_amount,
        making_charge_per_gram=making_charge,
        making_amount=making_amount,
        total_gold_amount=total_gold_amount,
        stone_lines=tuple(item.stones),
        stone_total=stone_total,
        diamond_carats=diamond_carats,
        certification_required=item.certificate_required,
        certification_charge_per_carat=charge_per_carat if charge_per_carat is not None else ZERO,
        certification_charge=certification_charge,
        subtotal=subtotal,
        tax_percent=tax.tax_percent,
        tax_amount=tax.tax_amount,
        grand_total=tax.grand_total,
        usd_to_inr_rate=rates.usd_to_inr_rate if mode == CurrencyMode.USD else None,
        subtotal_usd=tax.subtotal_usd,
        tax_usd=tax.tax_usd,
        grand_total_usd=tax.grand_total_usd,
    )


def _money(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(round_money(value))


def as_display(breakdown: PricingBreakdown) -> dict[str, Any]:
    """Rounded view of a breakdown: money to 2 places, weights to 3."""
    stone_lines = [
        {
            "code": line.code,
            "name": line.name,
            "weight": float(line.weight_carats),
            "rate": _money(line.rate_per_carat),
            "cost": _money(line.cost),
        }
        for line in breakdown.stone_lines
    ]
    result = {
        "currency": breakdown.mode.value,
        "net_weight": float(round_weight(breakdown.net_weight)),
        "fine_weight": float(round_weight(breakdown.fine_weight)),
        "gold_rate_per_gram": _money(breakdown.gold_rate_per_gram),
        "gold_price_per_gram": _money(breakdown.gold_price_per_gram),
        "gold_value": _money(breakdown.gold_value),
        "wastage_percent": float(breakdown.wastage_percent),
        "wastage_amount": _money(breakdown.wastage_amount),
        "making_charge_per_gram": _money(breakdown.making_charge_per_gram),
        "making_amount": _money(breakdown.making_amount),
        "total_gold_amount": _money(breakdown.total_gold_amount),
        "stone_lines": stone_lines,
        "stone_total": _money(breakdown.stone_total),
        "diamond_carats": float(round_weight(breakdown.diamond_carats)),
        "certification_required": breakdown.certification_required,
        "certification_charge_per_carat": _money(breakdown.certification_charge_per_carat),
        "certification_charge": _money(breakdown.certification_charge),
        "subtotal": _money(breakdown.subtotal),
        "tax_percent": float(breakdown.tax_percent),
        "tax_amount": _money(breakdown.tax_amount),
        "grand_total": _money(breakdown.grand_total),
    }
    if breakdown.mode == CurrencyMode.USD:
        result.update(
            {
                "usd_to_inr_rate": float(breakdown.usd_to_inr_rate),
                "subtotal_usd": _money(breakdown.subtotal_usd),
                "tax_usd": _money(breakdown.tax_usd),
                "grand_total_usd": _money(breakdown.grand_total_usd),
            }
        )
    return result

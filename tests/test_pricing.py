from dataclasses import replace
from decimal import Decimal

import pytest

from jewel_billing.errors import (
    ExchangeRateZeroError,
    InvalidInputError,
    MissingInputError,
    MissingRateError,
)
from jewel_billing.models import CurrencyMode, StoneLine
from jewel_billing.pricing import (
    as_display,
    compute_certification_charge,
    compute_diamond_carats,
    compute_fine_weight,
    compute_gold_price_per_gram,
    compute_gold_value,
    compute_making_amount,
    compute_stone_total,
    compute_subtotal,
    compute_tax,
    compute_total_gold_amount,
    compute_wastage_amount,
    derive_net_weight,
    price_item,
    round_money,
    round_weight,
)

DIAMOND = StoneLine(code="DIA-VS", name="Diamond VS", weight_carats=Decimal("0.5"), rate_per_carat=Decimal("40000"))


def test_gst_bill_breakdown(ring, ring_charges, rates):
    breakdown = price_item(ring, ring_charges, rates, CurrencyMode.INR)

    assert round_weight(breakdown.fine_weight) == Decimal("9.167")
    assert round_money(breakdown.gold_price_per_gram) == Decimal("5500.00")
    assert round_money(breakdown.gold_value) == Decimal("50416.67")
    assert round_money(breakdown.wastage_amount) == Decimal("4400.00")
    assert round_money(breakdown.making_amount) == Decimal("5000.00")
    assert round_money(breakdown.total_gold_amount) == Decimal("59816.67")
    assert breakdown.stone_total == Decimal("2000")
    assert breakdown.certification_charge == 0
    assert round_money(breakdown.subtotal) == Decimal("61816.67")
    assert round_money(breakdown.tax_amount) == Decimal("1854.50")
    assert round_money(breakdown.grand_total) == Decimal("63671.17")
    assert breakdown.grand_total_usd is None


def test_dual_currency_bill_computes_duty_in_usd(ring, ring_charges, rates):
    breakdown = price_item(ring, ring_charges, rates, CurrencyMode.USD)

    assert round_money(breakdown.subtotal) == Decimal("61816.67")
    assert breakdown.tax_percent == Decimal("13.75")
    assert round_money(breakdown.subtotal_usd) == Decimal("744.78")
    assert round_money(breakdown.tax_usd) == Decimal("102.41")
    assert round_money(breakdown.grand_total_usd) == Decimal("847.19")
    # Full precision end to end; no intermediate rounding.
    assert round_money(breakdown.tax_amount) == Decimal("8499.79")
    assert round_money(breakdown.grand_total) == Decimal("70316.46")


def test_dual_currency_totals_keep_their_documented_relationship(ring, ring_charges, rates):
    breakdown = price_item(ring, ring_charges, rates, "USD")

    assert breakdown.grand_total_usd == breakdown.subtotal_usd + breakdown.tax_usd
    assert breakdown.tax_amount == breakdown.tax_usd * rates.usd_to_inr_rate
    assert breakdown.grand_total == breakdown.subtotal + breakdown.tax_amount
    assert abs(breakdown.grand_total_usd * rates.usd_to_inr_rate - breakdown.grand_total) < Decimal("0.0001")


@pytest.mark.parametrize("purity", [1, 9, 14, 18, 22, 24])
@pytest.mark.parametrize("net_weight", ["0", "1.5", "10", "123.456"])
def test_fine_weight_scales_net_weight_by_purity(net_weight, purity):
    fine = compute_fine_weight(net_weight, purity)

    assert fine == Decimal(net_weight) * purity / 24
    assert fine <= Decimal(net_weight)


def test_gold_price_uses_per_gram_rate():
    assert compute_gold_price_per_gram("6000", 22) == Decimal("5500")
    assert compute_gold_price_per_gram(6000, 24) == Decimal("6000")


def test_gold_value_is_linear():
    price, fine = Decimal("5500"), Decimal("9.25")
    base = compute_gold_value(price, fine)

    assert compute_gold_value(price * 2, fine) == base * 2
    assert compute_gold_value(price, fine * 2) == base * 2


def test_wastage_is_priced_on_net_weight_at_karat_price():
    assert compute_wastage_amount("10", "8", "5500") == Decimal("4400")


def test_absent_inputs_are_undefined_not_zero():
    assert compute_fine_weight(None, 22) is None
    assert compute_fine_weight("", 22) is None
    assert compute_gold_price_per_gram(None, 22) is None
    assert compute_making_amount("10", None) is None
    assert compute_wastage_amount("10", " ", "5500") is None
    assert compute_total_gold_amount("100", None, "5") is None
    assert compute_subtotal("100", "0", None) is None


@pytest.mark.parametrize("value", ["abc", "-1", float("nan"), float("inf"), True])
def test_invalid_numbers_are_rejected(value):
    with pytest.raises(InvalidInputError) as excinfo:
        compute_making_amount(value, "500")
    assert excinfo.value.field == "net_weight"


@pytest.mark.parametrize("purity", [0, 25, "22.5", -18])
def test_purity_must_be_a_whole_karat(purity):
    with pytest.raises(InvalidInputError):
        compute_fine_weight("10", purity)


def test_stone_total_of_empty_list_is_zero():
    assert compute_stone_total([]) == 0


def test_stone_total_sums_line_costs(ruby):
    assert ruby.cost == Decimal("2000")
    assert compute_stone_total([ruby, DIAMOND]) == Decimal("22000")


def test_diamond_carats_only_counts_diamond_codes(ruby):
    assert compute_diamond_carats([ruby, DIAMOND], {"DIA-VS", "DIA-SI"}) == Decimal("0.5")
    assert compute_diamond_carats([ruby], {"DIA-VS"}) == 0


def test_certification_charge_gating():
    assert compute_certification_charge(Decimal("2"), False, Decimal("700")) == 0
    assert compute_certification_charge(Decimal("0"), True, None) == 0
    assert compute_certification_charge(Decimal("2"), True, Decimal("700")) == Decimal("1400")
    assert compute_certification_charge(Decimal("2"), True, None) is None


def test_certificate_not_required_means_no_charge_even_with_diamonds(ring, ring_charges, rates):
    item = replace(ring, stones=ring.stones + (DIAMOND,), certificate_required=False)
    breakdown = price_item(item, ring_charges, rates, diamond_codes={"DIA-VS"})

    assert breakdown.diamond_carats == Decimal("0.5")
    assert breakdown.certification_charge == 0


def test_certificate_required_charges_per_diamond_carat(ring, ring_charges, rates):
    item = replace(ring, stones=ring.stones + (DIAMOND,), certificate_required=True)
    breakdown = price_item(item, ring_charges, rates, diamond_codes={"DIA-VS"})

    assert breakdown.certification_charge == Decimal("350")
    assert breakdown.subtotal == breakdown.total_gold_amount + Decimal("22000") + Decimal("350")


def test_certification_without_charge_per_carat_is_blocked(ring, ring_charges, rates):
    item = replace(ring, stones=(DIAMOND,), certificate_required=True)
    charges = replace(ring_charges, certification_charge_per_carat=None)

    with pytest.raises(MissingInputError) as excinfo:
        price_item(item, charges, rates, diamond_codes={"DIA-VS"})
    assert excinfo.value.field == "certification_charge_per_carat"


def test_pricing_is_idempotent(ring, ring_charges, rates):
    first = price_item(ring, ring_charges, rates, CurrencyMode.USD)
    second = price_item(ring, ring_charges, rates, CurrencyMode.USD)

    assert first == second
    assert as_display(first) == as_display(second)


def test_missing_gold_rate_blocks_pricing(ring, ring_charges, rates):
    with pytest.raises(MissingRateError) as excinfo:
        price_item(ring, ring_charges, replace(rates, gold_rate_per_gram=None))
    assert excinfo.value.field == "gold_rate_per_gram"


def test_missing_gst_blocks_only_gst_bills(ring, ring_charges, rates):
    no_gst = replace(rates, gst_percent=None)

    with pytest.raises(MissingRateError) as excinfo:
        price_item(ring, ring_charges, no_gst, CurrencyMode.INR)
    assert excinfo.value.field == "gst_percent"
    assert price_item(ring, ring_charges, no_gst, CurrencyMode.USD).grand_total_usd is not None


@pytest.mark.parametrize("field", ["usd_to_inr_rate", "customs_duty_percent", "state_tax_percent"])
def test_missing_dual_currency_rates_block_usd_bills(ring, ring_charges, rates, field):
    with pytest.raises(MissingRateError) as excinfo:
        price_item(ring, ring_charges, replace(rates, **{field: None}), CurrencyMode.USD)
    assert excinfo.value.field == field


def test_zero_dollar_rate_fails_closed(ring, ring_charges, rates):
    with pytest.raises(ExchangeRateZeroError):
        price_item(ring, ring_charges, replace(rates, usd_to_inr_rate=Decimal("0")), CurrencyMode.USD)


def test_compute_tax_gst_mode(rates):
    tax = compute_tax(Decimal("1000"), rates, CurrencyMode.INR)

    assert tax.tax_amount == Decimal("30")
    assert tax.grand_total == Decimal("1030")
    assert tax.tax_usd is None


def test_missing_category_charges_are_not_zero(ring, ring_charges, rates):
    with pytest.raises(MissingInputError) as excinfo:
        price_item(ring, replace(ring_charges, wastage_percent=None), rates)
    assert excinfo.value.field == "wastage_percent"

    with pytest.raises(MissingInputError) as excinfo:
        price_item(ring, None, rates)
    assert excinfo.value.field == "category"


def test_missing_purity_is_reported(ring, ring_charges, rates):
    with pytest.raises(MissingInputError) as excinfo:
        price_item(replace(ring, purity=None), ring_charges, rates)
    assert excinfo.value.field == "purity"


def test_stone_line_without_rate_is_reported(ring, ring_charges, rates, ruby):
    item = replace(ring, stones=(replace(ruby, rate_per_carat=None),))

    with pytest.raises(MissingInputError) as excinfo:
        price_item(item, ring_charges, rates)
    assert excinfo.value.field == "stone RUBY rate_per_carat"


def test_net_weight_is_derived_from_gross_and_stone_weight(ring, ring_charges, rates):
    item = replace(ring, net_weight=None, gross_weight=Decimal("10.4"), stone_weight=Decimal("0.4"))

    assert price_item(item, ring_charges, rates).net_weight == Decimal("10.0")
    assert derive_net_weight("12", "2") == Decimal("10")
    with pytest.raises(InvalidInputError):
        derive_net_weight("1", "2")


def test_display_rounds_money_and_weights(ring, ring_charges, rates):
    inr = as_display(price_item(ring, ring_charges, rates))
    usd = as_display(price_item(ring, ring_charges, rates, CurrencyMode.USD))

    assert inr["fine_weight"] == 9.167
    assert inr["grand_total"] == 63671.17
    assert inr["stone_lines"][0]["cost"] == 2000.0
    assert "grand_total_usd" not in inr
    assert usd["currency"] == "USD"
    assert usd["grand_total_usd"] == 847.19

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class CurrencyMode(str, Enum):
    INR = "INR"
    USD = "USD"


@dataclass(frozen=True)
class StoneLine:
    code: str
    name: str
    weight_carats: Optional[Decimal]
    rate_per_carat: Optional[Decimal]

    @property
    def cost(self) -> Optional[Decimal]:
        if self.weight_carats is None or self.rate_per_carat is None:
            return None
        return self.weight_carats * self.rate_per_carat


@dataclass(frozen=True)
class JewelryItem:
    code: str
    name: str
    purity: Optional[int]
    gross_weight: Optional[Decimal]
    net_weight: Optional[Decimal] = None
    stone_weight: Optional[Decimal] = None
    certificate_required: bool = False
    stones: tuple[StoneLine, ...] = ()
    id: Optional[int] = None


@dataclass(frozen=True)
class CategoryCharges:
    code: str
    name: str
    wastage_percent: Optional[Decimal]
    making_charge_per_gram: Optional[Decimal]
    certification_charge_per_carat: Optional[Decimal]
    id: Optional[int] = None


@dataclass(frozen=True)
class RateSnapshot:
    rate_date: str
    gold_rate_per_gram: Optional[Decimal] = None
    usd_to_inr_rate: Optional[Decimal] = None
    gst_percent: Optional[Decimal] = None
    customs_duty_percent: Optional[Decimal] = None
    state_tax_percent: Optional[Decimal] = None
    source: str = ""

    def missing_for(self, mode: CurrencyMode) -> list[str]:
        """Names of the rates that block pricing in the given mode."""
        required = ["gold_rate_per_gram"]
        if mode == CurrencyMode.USD:
            required += ["usd_to_inr_rate", "customs_duty_percent", "state_tax_percent"]
        else:
            required.append("gst_percent")
        return [name for name in required if getattr(self, name) is None]


@dataclass(frozen=True)
class PricingBreakdown:
    mode: CurrencyMode
    net_weight: Decimal
    fine_weight: Decimal
    gold_rate_per_gram: Decimal
    gold_price_per_gram: Decimal
    gold_value: Decimal
    wastage_percent: Decimal
    wastage_amount: Decimal
    making_charge_per_gram: Decimal
    making_amount: Decimal
    total_gold_amount: Decimal
    stone_lines: tuple[StoneLine, ...]
    stone_total: Decimal
    diamond_carats: Decimal
    certification_required: bool
    certification_charge_per_carat: Decimal
    certification_charge: Decimal
    subtotal: Decimal
    tax_percent: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    usd_to_inr_rate: Optional[Decimal] = None
    subtotal_usd: Optional[Decimal] = None
    tax_usd: Optional[Decimal] = None
    grand_total_usd: Optional[Decimal] = None

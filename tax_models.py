from dataclasses import dataclass
from typing import List, Optional, Sequence
import math

from config import TAX_BRACKETS, PENSION_EXEMPTION, CAPITAL_TAX_RATES

# ---------- Data structures ----------
@dataclass
class Bracket:
    upper: Optional[float]  # upper limit of bracket; None for the unbounded top
    rate: float             # e.g., 0.20

@dataclass
class TaxResult:
    gross_monthly: float
    tax_monthly: float
    net_monthly: float
    effective_rate: float   # fraction of gross

@dataclass
class PensionExemption:
    rate: float = PENSION_EXEMPTION["rate"]
    max_monthly: float = PENSION_EXEMPTION["max_monthly"]
    max_qualified_income: float = PENSION_EXEMPTION["max_qualified_income"]

@dataclass
class PensionTaxResult:
    gross_monthly: float
    qualified_pension: float
    other_taxable_income: float
    exemption_amount: float
    taxable_monthly: float
    tax_monthly: float
    net_monthly: float
    effective_rate: float   # percent
    is_pension_age: bool

@dataclass
class CapitalTaxResult:
    gross_capital: float
    tax_exempt: float
    taxable_amount: float
    tax: float
    net_capital: float
    effective_rate: float   # percent, one decimal


def round_currency(x: float) -> int:
    """Round half away from zero to whole currency units."""
    return int(math.floor(abs(x) + 0.5)) * (1 if x >= 0 else -1)


def normalize_rate(rate: float) -> float:
    # whole percentages (35) arrive from uncontrolled bracket tables
    rate = float(rate)
    return rate / 100.0 if rate > 1.0 else rate


def default_brackets() -> List[Bracket]:
    return [Bracket(upper=up, rate=r) for up, r in TAX_BRACKETS]


def apply_progressive_tax(gross_monthly: float, brackets: Optional[Sequence[Bracket]] = None) -> TaxResult:
    """
    Marginal-rate tax on a monthly amount. Each bracket taxes the slice of
    income in (previous upper, upper]; the unbounded bracket takes the rest.
    """
    if brackets is None:
        brackets = default_brackets()
    gross = float(gross_monthly)
    if gross <= 0:
        return TaxResult(gross_monthly=gross, tax_monthly=0.0, net_monthly=gross, effective_rate=0.0)

    remaining = gross
    last_upper = 0.0
    tax = 0.0
    for b in brackets:
        if remaining <= 0:
            break
        up = math.inf if b.upper is None else float(b.upper)
        width = min(remaining, up - last_upper)
        if width > 0:
            tax += width * normalize_rate(b.rate)
            remaining -= width
            last_upper = up
    return TaxResult(
        gross_monthly=gross,
        tax_monthly=tax,
        net_monthly=gross - tax,
        effective_rate=tax / gross,
    )


def calculate_pension_tax(qualified_pension: float, other_taxable_income: float = 0.0,
                          brackets: Optional[Sequence[Bracket]] = None,
                          exemption: Optional[PensionExemption] = None,
                          age: Optional[float] = None, retirement_age: float = 67) -> PensionTaxResult:
    """
    Tax on monthly pension-age income. From `retirement_age` a share of the
    qualified pension annuity is exempt (capped); everything else goes through
    the brackets unchanged. `exemption=None` disables the exemption.
    """
    is_pension_age = age is not None and age >= retirement_age
    exemption_amount = 0.0
    if exemption is not None and is_pension_age and qualified_pension > 0:
        exemption_amount = min(qualified_pension * exemption.rate, exemption.max_monthly)

    taxable = max(0.0, qualified_pension - exemption_amount) + other_taxable_income
    total_gross = qualified_pension + other_taxable_income
    tax = apply_progressive_tax(taxable, brackets).tax_monthly

    return PensionTaxResult(
        gross_monthly=total_gross,
        qualified_pension=round_currency(qualified_pension),
        other_taxable_income=round_currency(other_taxable_income),
        exemption_amount=round_currency(exemption_amount),
        taxable_monthly=round_currency(taxable),
        tax_monthly=round_currency(tax),
        net_monthly=round_currency(total_gross - tax),
        effective_rate=(tax / total_gross) * 100 if total_gross > 0 else 0.0,
        is_pension_age=is_pension_age,
    )


def calculate_capital_tax(capital_amount: float, tax_exempt_amount: float = 0.0,
                          rate: float = CAPITAL_TAX_RATES["standard"]) -> CapitalTaxResult:
    taxable = max(0.0, capital_amount - tax_exempt_amount)
    tax = taxable * rate
    return CapitalTaxResult(
        gross_capital=capital_amount,
        tax_exempt=tax_exempt_amount,
        taxable_amount=taxable,
        tax=round_currency(tax),
        net_capital=round_currency(capital_amount - tax),
        effective_rate=round_currency(tax / capital_amount * 1000) / 10 if capital_amount > 0 else 0.0,
    )

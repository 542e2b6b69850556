"""
Income streams in retirement and the total income they provide at a given age.
"""

from dataclasses import dataclass, replace
from typing import List, Optional

from config import NI_ENTITLEMENT_AGE
from fiscal import FiscalParameters
from national_insurance import NationalInsuranceResult, calculate_national_insurance
from tax_models import calculate_pension_tax, round_currency

PENSION = "pension"
NATIONAL_INSURANCE = "nationalInsurance"
RENT = "rent"
CAPITAL = "capital"
WORK = "work"
OTHER = "other"
INCOME_TYPES = (PENSION, NATIONAL_INSURANCE, RENT, CAPITAL, WORK, OTHER)

@dataclass
class IncomeSource:
    id: str
    type: str
    amount: float                 # gross monthly; the full sum for lump sums
    start_age: float
    end_age: Optional[float] = None
    is_taxable: bool = True
    is_lump_sum: bool = False
    enabled: bool = True
    name: str = ""
    contribution_years: Optional[float] = None   # national insurance only
    auto_calculated: bool = False

    def is_active(self, age: float) -> bool:
        return (self.enabled and age >= self.start_age
                and (self.end_age is None or age < self.end_age))

@dataclass
class IncomeAtAge:
    age: float
    active_sources: List[IncomeSource]
    total_gross: float
    taxable_gross: float
    non_taxable_income: float
    tax: float
    total_net: float
    effective_tax_rate: float     # percent, one decimal
    qualified_pension: float = 0.0
    other_taxable_income: float = 0.0
    non_work_income: float = 0.0
    ni_details: Optional[NationalInsuranceResult] = None


def _total(sources) -> float:
    return sum(float(s.amount) for s in sources)


def calculate_income_at_age(sources: List[IncomeSource], age: float,
                            parameters: Optional[FiscalParameters] = None) -> IncomeAtAge:
    params = parameters or FiscalParameters()
    active = [s for s in sources if not s.is_lump_sum and s.is_active(age)]

    qualified = [s for s in active if s.type == PENSION and s.is_taxable]
    other_taxable = [s for s in active if s.type not in (PENSION, NATIONAL_INSURANCE) and s.is_taxable]
    exempt = [s for s in active if not s.is_taxable or s.type == NATIONAL_INSURANCE]
    non_work = [s for s in active if s.type not in (WORK, NATIONAL_INSURANCE)]

    total_gross = _total(active)
    taxed = calculate_pension_tax(
        _total(qualified), _total(other_taxable),
        brackets=params.tax_brackets,
        exemption=params.pension_exemption,
        age=age,
        retirement_age=params.retirement_age,
    )
    non_taxable = _total(exempt)

    return IncomeAtAge(
        age=age,
        active_sources=active,
        total_gross=total_gross,
        taxable_gross=_total(qualified) + _total(other_taxable),
        non_taxable_income=non_taxable,
        tax=taxed.tax_monthly,
        total_net=taxed.net_monthly + non_taxable,
        effective_tax_rate=round_currency(taxed.tax_monthly / total_gross * 1000) / 10 if total_gross > 0 else 0.0,
        qualified_pension=_total(qualified),
        other_taxable_income=_total(other_taxable),
        non_work_income=_total(non_work),
    )


def income_with_national_insurance(sources: List[IncomeSource], age: float,
                                   parameters: Optional[FiscalParameters] = None) -> IncomeAtAge:
    """
    Income at `age` with the national-insurance source recalculated: the benefit
    depends on the other non-work income active at that age (income test).
    """
    params = parameters or FiscalParameters()
    others = [s for s in sources if s.type != NATIONAL_INSURANCE]
    income = calculate_income_at_age(others, age, params)

    ni_source = next((s for s in sources if s.type == NATIONAL_INSURANCE and not s.is_lump_sum), None)
    if ni_source is None or not ni_source.is_active(age):
        return income

    details = calculate_national_insurance(
        age,
        ni_source.contribution_years or 35,
        params.national_insurance,
        params.family_status,
        income.non_work_income,
    )
    amount = details.total_monthly
    active = list(income.active_sources)
    if amount > 0:
        active.append(replace(ni_source, amount=amount))

    income.active_sources = active
    income.total_gross += amount
    income.non_taxable_income += amount
    income.total_net += amount
    income.ni_details = details
    if income.total_gross > 0:
        income.effective_tax_rate = round_currency(income.tax / income.total_gross * 1000) / 10
    return income


def national_insurance_source(start_age: float, contribution_years: float,
                              parameters: Optional[FiscalParameters] = None) -> IncomeSource:
    params = parameters or FiscalParameters()
    start = max(NI_ENTITLEMENT_AGE, start_age)
    calc = calculate_national_insurance(start, contribution_years, params.national_insurance, params.family_status)
    return IncomeSource(
        id="national_insurance",
        type=NATIONAL_INSURANCE,
        name="National Insurance",
        amount=calc.total_monthly,
        start_age=start,
        is_taxable=False,
        contribution_years=contribution_years,
        auto_calculated=True,
    )


def create_default_income_sources(retirement_end_age: float,
                                  parameters: Optional[FiscalParameters] = None) -> List[IncomeSource]:
    """Pension annuity from the end of the self-funded period, plus national insurance."""
    pension_start = retirement_end_age
    contribution_years = max(10, pension_start - 22)  # assume work started at 22
    return [
        IncomeSource(id="pension_1", type=PENSION, name="Pension Annuity", amount=0,
                     start_age=pension_start),
        national_insurance_source(pension_start, contribution_years, parameters),
    ]

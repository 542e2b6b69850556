"""
Old-age pension (national insurance) benefit.

Base amount by family status, plus a seniority bonus for contribution years
beyond the first ten and a deferral bonus for claiming after the entitlement
age. Between entitlement age and 70 an income test can cancel the benefit.
"""

from dataclasses import dataclass, field
from typing import Optional

from config import (
    NI_ENTITLEMENT_AGE,
    NI_INCOME_TEST_CUTOFF_AGE,
    NI_AGE80_SUPPLEMENT_AGE,
    SENIORITY_EXCLUDED_YEARS,
    SENIORITY_MAX_YEARS,
    DEFERRAL_MAX_YEARS,
)
from fiscal import NationalInsuranceParameters
from tax_models import round_currency

@dataclass
class IncomeTest:
    applied: bool
    threshold: float
    other_income: float
    reduction_amount: float

@dataclass
class NationalInsuranceResult:
    base_pension: int
    seniority_bonus: int
    seniority_bonus_percent: int
    deferral_bonus: int
    deferral_bonus_percent: int
    total_monthly: int
    income_test: IncomeTest
    details: dict = field(default_factory=dict)


def percent_per_year(value: Optional[float], default: float) -> float:
    """
    Bonus rates arrive as 5, 0.05 or a monthly 0.00417. Convert to an annual
    percentage once; values already in percent pass through unchanged.
    """
    if not value:
        return default
    if 0 < value < 0.01:
        return value * 12 * 100
    if 0 < value < 0.25:
        return value * 100
    return value


def income_test_threshold(params: NationalInsuranceParameters, family_status: str) -> float:
    thresholds = params.income_test_threshold
    if family_status in thresholds:
        return thresholds[family_status]
    if family_status.startswith("couple") and "couple" in thresholds:
        return thresholds["couple"]
    return thresholds["single"]


def calculate_national_insurance(age: float, contribution_years: float = 35,
                                 parameters: Optional[NationalInsuranceParameters] = None,
                                 family_status: str = "single",
                                 other_income: float = 0.0) -> NationalInsuranceResult:
    params = parameters or NationalInsuranceParameters()
    status = family_status or "single"
    threshold = income_test_threshold(params, status)
    details = {"contribution_years": contribution_years, "age": age, "family_status": status}

    if age < NI_ENTITLEMENT_AGE:
        return NationalInsuranceResult(
            base_pension=0, seniority_bonus=0, seniority_bonus_percent=0,
            deferral_bonus=0, deferral_bonus_percent=0, total_monthly=0,
            income_test=IncomeTest(False, threshold, other_income, 0),
            details=details,
        )

    raw_base = params.base_rates.get(status, params.base_rates["single"])

    seniority_rate = percent_per_year(params.seniority_addition_per_year, 2)
    seniority_years = max(0, min(contribution_years - SENIORITY_EXCLUDED_YEARS, SENIORITY_MAX_YEARS))
    seniority_pct = round_currency(seniority_years * seniority_rate)
    seniority_bonus = raw_base * seniority_pct / 100

    deferral_rate = percent_per_year(params.deferral_bonus_per_year, 5)
    deferral_years = max(0.0, min(age - NI_ENTITLEMENT_AGE, DEFERRAL_MAX_YEARS))
    deferral_pct = round_currency(deferral_years * deferral_rate)
    deferral_bonus = raw_base * deferral_pct / 100

    base_pension = raw_base
    if age >= NI_AGE80_SUPPLEMENT_AGE:
        base_pension += params.age80_plus_addon

    total = round_currency(base_pension + seniority_bonus + deferral_bonus)
    applied = False
    reduction = 0

    if age < NI_INCOME_TEST_CUTOFF_AGE and other_income > threshold and not params.ignore_income_test:
        applied = True
        if params.income_test_taper is None:
            reduction = total
        else:
            reduction = min(total, round_currency((other_income - threshold) * params.income_test_taper))
        total -= reduction

    return NationalInsuranceResult(
        base_pension=round_currency(base_pension),
        seniority_bonus=round_currency(seniority_bonus),
        seniority_bonus_percent=seniority_pct,
        deferral_bonus=round_currency(deferral_bonus),
        deferral_bonus_percent=deferral_pct,
        total_monthly=max(0, total),
        income_test=IncomeTest(applied, threshold, other_income, reduction),
        details=details,
    )

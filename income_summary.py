"""
Retirement income by milestone age and how long the remaining capital lasts.

Capital is known at the end of the self-funded period (retirement end age).
From there we walk forward through every age at which an income source starts
or stops. Between two milestones capital earns the monthly return and pays the
monthly deficit of the income that was in force at the earlier milestone.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from calendar_utils import whole_months
from config import DEPLETION_CAP_YEARS
from fiscal import FiscalParameters
from income_sources import IncomeAtAge, IncomeSource, income_with_national_insurance
from tax_models import round_currency

logger = logging.getLogger(__name__)

@dataclass
class CapitalDuration:
    years_until_depletion: Optional[float]   # None = never within the horizon
    months: int
    monthly_deficit: float
    annual_return_rate: float
    remaining_capital: float

@dataclass
class MilestoneSummary:
    age: float
    income: IncomeAtAge
    accumulated_capital: int          # display value, floored at 0
    monthly_deficit: float
    monthly_surplus: float
    capital_duration: CapitalDuration
    age_at_depletion: Optional[float]

    @property
    def income_at_age(self) -> float:
        return self.income.total_net

@dataclass
class RetirementIncomeSummary:
    milestones: List[MilestoneSummary]
    capital: float
    monthly_expenses: float
    retirement_start_age: float
    retirement_end_age: float


def months_between(from_age: float, to_age: float) -> int:
    """Whole months in an age gap; fractional gaps round half up."""
    return whole_months(to_age - from_age)


def calculate_capital_duration(capital: float, monthly_deficit: float,
                               annual_return_rate: float = 4.0) -> CapitalDuration:
    if monthly_deficit <= 0:
        return CapitalDuration(None, 0, monthly_deficit, annual_return_rate, capital)

    monthly_rate = annual_return_rate / 100 / 12
    remaining = capital
    months = 0
    max_months = DEPLETION_CAP_YEARS * 12
    while remaining > 0 and months < max_months:
        remaining *= (1 + monthly_rate)
        remaining -= monthly_deficit
        months += 1

    if remaining > 0:
        # growth outpaces the deficit
        return CapitalDuration(None, months, monthly_deficit, annual_return_rate, remaining)
    return CapitalDuration(round_currency(months / 12 * 10) / 10, months, monthly_deficit,
                           annual_return_rate, remaining)


def milestone_ages(sources: List[IncomeSource], retirement_end_age: float) -> List[float]:
    ages = {retirement_end_age}
    for s in sources:
        if not s.enabled or s.is_lump_sum:
            continue
        ages.add(s.start_age)
        if s.end_age is not None:
            ages.add(s.end_age)
    return sorted(a for a in ages if a >= retirement_end_age)


def lump_sums_by_age(sources: List[IncomeSource]) -> Dict[float, float]:
    out: Dict[float, float] = {}
    for s in sources:
        if s.is_lump_sum and s.enabled:
            out[s.start_age] = out.get(s.start_age, 0.0) + float(s.amount or 0)
    return out


def calculate_retirement_income_summary(sources: List[IncomeSource], retirement_start_age: float,
                                        retirement_end_age: float, capital: float, monthly_expenses: float,
                                        capital_return_rate: float = 4.0,
                                        parameters: Optional[FiscalParameters] = None) -> RetirementIncomeSummary:
    params = parameters or FiscalParameters()
    lump_sums = lump_sums_by_age(sources)
    monthly_rate = capital_return_rate / 100 / 12

    running = float(capital)
    previous_age = retirement_end_age
    previous_income: Optional[IncomeAtAge] = None
    milestones = []

    # each milestone depends on the previous one's capital, so this stays sequential
    for age in milestone_ages(sources, retirement_end_age):
        income = income_with_national_insurance(sources, age, params)
        deficit = monthly_expenses - income.total_net

        months = months_between(previous_age, age)
        if months > 0 and previous_income is not None:
            previous_deficit = monthly_expenses - previous_income.total_net
            for _ in range(months):
                running = running * (1 + monthly_rate) - previous_deficit

        running += lump_sums.get(age, 0.0)

        display_capital = max(0, round_currency(running))
        duration = calculate_capital_duration(display_capital, deficit, capital_return_rate)
        age_at_depletion = None
        if duration.years_until_depletion is not None:
            age_at_depletion = round_currency((age + duration.years_until_depletion) * 10) / 10

        milestones.append(MilestoneSummary(
            age=age,
            income=income,
            accumulated_capital=display_capital,
            monthly_deficit=max(0.0, deficit),
            monthly_surplus=max(0.0, -deficit),
            capital_duration=duration,
            age_at_depletion=age_at_depletion,
        ))
        previous_age = age
        previous_income = income

    logger.debug("Income summary: %d milestones from age %s", len(milestones), retirement_end_age)
    return RetirementIncomeSummary(
        milestones=milestones,
        capital=capital,
        monthly_expenses=monthly_expenses,
        retirement_start_age=retirement_start_age,
        retirement_end_age=retirement_end_age,
    )

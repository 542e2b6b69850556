import math
from typing import Callable, List, Optional

from config import MIN_AGE, MAX_AGE
from drawdown import WithdrawalStrategy


class InputValidationError(ValueError):
    """Profile fields are missing or out of range; no projection was produced."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


def _number(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def validate_inputs(profile, translate: Optional[Callable[[str], str]] = None) -> List[str]:
    """Return the list of problems with `profile` (empty when it can be projected)."""
    def text(key: str, fallback: str) -> str:
        return translate(key) if translate else fallback

    errors = []
    current_age = _number(profile.current_age)
    start_age = _number(profile.retirement_start_age)
    end_age = _number(profile.retirement_end_age)
    savings = _number(profile.current_savings)
    contribution = _number(profile.monthly_contribution)
    income = _number(profile.monthly_net_income_desired)
    return_rate = _number(profile.annual_return_rate)
    tax_rate = _number(profile.tax_rate)

    if math.isnan(current_age) or not (MIN_AGE < current_age <= MAX_AGE):
        errors.append(text("validationCurrentAgeBetween", "Current age must be between 0 and 120"))
    if math.isnan(start_age) or not (MIN_AGE <= start_age <= MAX_AGE):
        errors.append(text("validationRetirementStartAgeBetween", "Retirement start age must be between 0 and 120"))
    if math.isnan(end_age) or not (MIN_AGE <= end_age <= MAX_AGE):
        errors.append(text("validationRetirementEndAgeBetween", "Retirement end age must be between 0 and 120"))

    # NaN comparisons are False, so these only fire for real numbers
    if start_age <= current_age:
        errors.append(text("validationRetirementStartGreater", "Retirement start age must be greater than current age"))
    if end_age <= start_age:
        errors.append(text("validationRetirementEndGreater",
                           "Retirement end age must be greater than retirement start age"))

    if math.isnan(savings) or savings < 0:
        errors.append(text("validationCurrentSavingsNonNegative", "Current savings cannot be negative"))
    if math.isnan(contribution) or contribution < 0:
        errors.append(text("validationMonthlyContributionNonNegative", "Monthly contribution cannot be negative"))
    if math.isnan(income) or income < 0:
        errors.append(text("validationMonthlyIncomeNonNegative", "Monthly net income desired cannot be negative"))

    if math.isnan(return_rate) or not (-100 <= return_rate <= 100):
        errors.append(text("validationAnnualReturnBetween", "Annual return rate must be between -100% and 100%"))
    if math.isnan(tax_rate) or not (0 <= tax_rate <= 100):
        errors.append(text("validationTaxRateBetween", "Tax rate must be between 0% and 100%"))

    try:
        WithdrawalStrategy(getattr(profile, "withdrawal_strategy", WithdrawalStrategy.FIXED))
    except ValueError:
        errors.append(text("validationWithdrawalStrategy",
                           f"Unknown withdrawal strategy {profile.withdrawal_strategy!r}"))

    if getattr(profile, "variable_rates_enabled", False):
        for year, rate in (profile.variable_rates or {}).items():
            r = _number(rate)
            if math.isnan(r) or not (-100 <= r <= 100):
                errors.append(text("validationVariableRateBetween",
                                   f"Return rate for {year} must be between -100% and 100%"))
        for year, amount in (profile.variable_contributions or {}).items():
            a = _number(amount)
            if math.isnan(a) or a < 0:
                errors.append(text("validationVariableContributionNonNegative",
                                   f"Contribution for {year} cannot be negative"))
    return errors


def ensure_valid(profile, translate: Optional[Callable[[str], str]] = None) -> None:
    errors = validate_inputs(profile, translate)
    if errors:
        raise InputValidationError(errors)

"""
Figures derived from a finished projection: the capital that would fund the
desired income forever, and what the shortfalls are worth today.
"""

from dataclasses import dataclass

@dataclass
class ProjectionStatistics:
    required_capital_for_perpetuity: float   # 0.0 when the after-tax return is not positive
    pv_of_deficit: float
    pv_of_capital_preservation: float
    surplus: float
    average_gross_withdrawal: float
    average_net_withdrawal: float


def effective_monthly_rate(annual_return_rate: float, tax_rate_decimal: float) -> float:
    return (annual_return_rate / 100 / 12) * (1 - tax_rate_decimal)


def perpetuity_capital(monthly_net_income: float, annual_return_rate: float, tax_rate_decimal: float) -> float:
    rate = effective_monthly_rate(annual_return_rate, tax_rate_decimal)
    if rate <= 0:
        return 0.0
    return monthly_net_income / rate


def future_value_of_contributions(monthly_contribution: float, monthly_rate: float, months: int) -> float:
    if monthly_rate == 0:
        return monthly_contribution * months
    return monthly_contribution * ((1 + monthly_rate) ** months - 1) / monthly_rate


def calculate_statistics(balance_at_retirement: float, required_capital_at_retirement: float,
                         monthly_net_income_desired: float, monthly_contribution: float,
                         annual_return_rate: float, tax_rate_decimal: float,
                         months_to_retirement: int, months_in_retirement: int,
                         accumulated_withdrawals: float, total_net_withdrawal: float) -> ProjectionStatistics:
    monthly_rate = annual_return_rate / 100 / 12
    perpetuity = perpetuity_capital(monthly_net_income_desired, annual_return_rate, tax_rate_decimal)

    surplus = balance_at_retirement - required_capital_at_retirement
    pv_of_deficit = 0.0
    if surplus < 0:
        if monthly_rate > 0:
            pv_of_deficit = -surplus / (1 + monthly_rate) ** months_to_retirement
        else:
            pv_of_deficit = -surplus

    # what would have to be saved today so that savings + contributions reach the perpetuity capital
    fv_contributions = future_value_of_contributions(monthly_contribution, monthly_rate, months_to_retirement)
    if monthly_rate != 0:
        pv_preservation = (perpetuity - fv_contributions) / (1 + monthly_rate) ** months_to_retirement
    else:
        pv_preservation = perpetuity - fv_contributions

    if months_in_retirement > 0:
        avg_gross = accumulated_withdrawals / months_in_retirement
        avg_net = total_net_withdrawal / months_in_retirement
    else:
        avg_gross = avg_net = 0.0

    return ProjectionStatistics(
        required_capital_for_perpetuity=perpetuity,
        pv_of_deficit=pv_of_deficit,
        pv_of_capital_preservation=pv_preservation,
        surplus=surplus,
        average_gross_withdrawal=avg_gross,
        average_net_withdrawal=avg_net,
    )

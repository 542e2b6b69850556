import datetime as dt
from dataclasses import replace
from enum import Enum
from typing import Optional

import numpy as np

from config import (
    DEFAULTS,
    MONTE_CARLO_VOLATILITY,
    CONSERVATIVE_RATE_SHIFT,
    OPTIMISTIC_RATE_SHIFT,
)
from calendar_utils import month_of_period
from drawdown import WithdrawalStrategy
from simulation import FinancialProfile, SimulationRange, calculate_retirement_projection
from validators import ensure_valid


class SimulationType(str, Enum):
    MONTE_CARLO = "monte_carlo"
    CONSERVATIVE = "conservative"
    OPTIMISTIC = "optimistic"
    DETERMINISTIC = "deterministic"


class CalculationMode(str, Enum):
    MATHEMATICAL = "mathematical"
    AI = "ai"
    SIMULATIONS = "simulations"
    COMPARE = "compare"


def resolve_calculation_mode(mode, profile: FinancialProfile) -> CalculationMode:
    """Dynamic withdrawals depend on the path of returns, so they always run as a simulation."""
    mode = CalculationMode(mode)
    if mode is CalculationMode.MATHEMATICAL and \
            WithdrawalStrategy(profile.withdrawal_strategy) is WithdrawalStrategy.DYNAMIC:
        return CalculationMode.SIMULATIONS
    return mode


def clone_profile(profile: FinancialProfile, **overrides) -> FinancialProfile:
    return replace(profile, **overrides)


def _calendar_years(profile: FinancialProfile, today: dt.date) -> list:
    months = int(round((float(profile.retirement_end_age) - float(profile.current_age)) * 12))
    first = today.year
    last = month_of_period(today, max(1, months)).year
    return list(range(first, last + 1))


def run_monte_carlo(profile: FinancialProfile, iterations: int = DEFAULTS["num_paths"],
                    volatility: float = MONTE_CARLO_VOLATILITY, seed: Optional[int] = None,
                    today: Optional[dt.date] = None):
    """
    Each path draws a return for every calendar year (normal around the profile's
    rate) and runs the projection with those as variable rates. Returns the
    median path (by ending balance) with the spread of ending balances.
    """
    if iterations < 1:
        raise ValueError(f"iterations must be at least 1, got {iterations}")
    today = today or dt.date.today()
    rng = np.random.default_rng(seed)
    years = _calendar_years(profile, today)
    base_rate = float(profile.annual_return_rate)

    results = []
    for _ in range(iterations):
        draws = np.clip(base_rate + rng.normal(0.0, volatility, size=len(years)), -100.0, 100.0)
        rates = {year: float(r) for year, r in zip(years, draws)}
        if profile.variable_rates_enabled:
            # user-fixed years stay fixed
            rates.update(profile.variable_rates)
        path = clone_profile(profile, variable_rates_enabled=True, variable_rates=rates,
                             variable_contributions=dict(profile.variable_contributions)
                             if profile.variable_rates_enabled else {})
        results.append(calculate_retirement_projection(path, today=today))

    results.sort(key=lambda r: r.balance_at_end)
    ending = np.array([r.balance_at_end for r in results])
    median = results[int(iterations * 0.5)]

    median.pv_of_deficit = max(0.0, median.pv_of_deficit)
    median.simulation_range = SimulationRange(
        p25_balance=float(results[int(iterations * 0.25)].balance_at_end),
        p75_balance=float(results[int(iterations * 0.75)].balance_at_end),
        min_balance=float(ending.min()),
        max_balance=float(ending.max()),
        success_rate=100.0 * sum(not r.depleted for r in results) / iterations,
    )
    median.source = "simulation"
    return median


def calculate_simulation(profile: FinancialProfile, simulation_type=SimulationType.DETERMINISTIC,
                         seed: Optional[int] = None, iterations: int = DEFAULTS["num_paths"],
                         today: Optional[dt.date] = None):
    ensure_valid(profile)
    simulation_type = SimulationType(simulation_type)
    base_rate = float(profile.annual_return_rate)

    if simulation_type is SimulationType.MONTE_CARLO:
        return run_monte_carlo(profile, iterations=iterations, seed=seed, today=today)

    if simulation_type is SimulationType.CONSERVATIVE:
        profile = clone_profile(profile, annual_return_rate=max(0.0, base_rate + CONSERVATIVE_RATE_SHIFT))
    elif simulation_type is SimulationType.OPTIMISTIC:
        profile = clone_profile(profile, annual_return_rate=min(100.0, base_rate + OPTIMISTIC_RATE_SHIFT))

    result = calculate_retirement_projection(profile, today=today)
    result.source = "simulation"
    return result


def compare(profile: FinancialProfile, variants: list, today: Optional[dt.date] = None):
    """
    variants: list of (name, overrides-dict)
    returns: dict name -> projection
    """
    res = {}
    for name, edits in variants:
        res[name] = calculate_retirement_projection(clone_profile(profile, **edits), today=today)
    return res

import datetime as dt
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

import pandas as pd

from calendar_utils import end_year_for, month_of_period, months_for_year, parse_date, whole_months
from config import DEFAULTS
from drawdown import WithdrawalPlanner, WithdrawalStrategy
from projection_stats import calculate_statistics, effective_monthly_rate
from validators import ensure_valid

logger = logging.getLogger(__name__)

ACCUMULATION = "accumulation"
DECUMULATION = "decumulation"


class EventType(str, Enum):
    ONE_TIME_INCOME = "one_time_income"
    ONE_TIME_EXPENSE = "one_time_expense"
    INCOME_CHANGE = "income_change"     # recurring: raises contributions / lowers withdrawals
    EXPENSE_CHANGE = "expense_change"   # recurring: lowers contributions / raises withdrawals

@dataclass
class LifeEvent:
    type: EventType
    amount: float
    start: dt.date
    end: Optional[dt.date] = None
    enabled: bool = True
    title: str = ""

@dataclass
class FinancialProfile:
    current_age: float = DEFAULTS["current_age"]
    retirement_start_age: float = DEFAULTS["retirement_start_age"]
    retirement_end_age: float = DEFAULTS["retirement_end_age"]
    current_savings: float = DEFAULTS["current_savings"]
    monthly_contribution: float = DEFAULTS["monthly_contribution"]
    monthly_net_income_desired: float = DEFAULTS["monthly_net_income_desired"]
    annual_return_rate: float = DEFAULTS["annual_return_rate"]   # nominal %
    tax_rate: float = DEFAULTS["tax_rate"]                       # % of investment growth
    withdrawal_strategy: WithdrawalStrategy = WithdrawalStrategy.FIXED
    withdrawal_percentage: float = DEFAULTS["withdrawal_percentage"]
    variable_rates_enabled: bool = False
    variable_rates: Dict[int, float] = field(default_factory=dict)          # calendar year -> annual %
    variable_contributions: Dict[int, float] = field(default_factory=dict)  # calendar year -> monthly
    birth_date: Optional[dt.date] = None
    contribution_years: float = DEFAULTS["contribution_years"]
    family_status: str = DEFAULTS["family_status"]
    life_events: List[LifeEvent] = field(default_factory=list)
    income_sources: list = field(default_factory=list)
    allow_negative_balance: bool = False

@dataclass
class PeriodRecord:
    period_index: int        # 1-based month of the simulation
    calendar_month: dt.date
    age: float
    phase: str
    balance_start: float
    contribution: float      # net external inflow (contributions and one-off events)
    growth: float
    gross_withdrawal: float
    tax: float
    net_withdrawal: float
    balance_end: float

@dataclass
class SimulationRange:
    p25_balance: float
    p75_balance: float
    min_balance: float
    max_balance: float
    success_rate: float      # % of paths that never ran out

@dataclass
class SimulationResult:
    records: List[PeriodRecord]
    months_to_retirement: int
    months_in_retirement: int
    balance_at_retirement: float
    balance_at_end: float
    total_principal: float
    initial_gross_withdrawal: float
    initial_net_withdrawal: float
    accumulated_withdrawals: float
    total_net_withdrawal: float
    required_capital_at_retirement: float
    required_capital_for_perpetuity: float
    pv_of_deficit: float
    pv_of_capital_preservation: float
    surplus: float
    average_gross_withdrawal: float
    average_net_withdrawal: float
    ran_out_at_age: Optional[float]
    withdrawal_strategy: WithdrawalStrategy
    source: str = "calculation"
    simulation_range: Optional[SimulationRange] = None

    @property
    def depleted(self) -> bool:
        return self.ran_out_at_age is not None

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([r.__dict__ for r in self.records])

    def yearly(self, today: Optional[dt.date] = None, birth_date=None,
               retirement_end_age: Optional[float] = None) -> pd.DataFrame:
        """Monthly records laid onto calendar years (partial first and last years)."""
        if not self.records:
            return pd.DataFrame()
        today = today or self.records[0].calendar_month
        start_year = self.records[0].calendar_month.year
        end_year = end_year_for(birth_date, retirement_end_age) if birth_date else None
        if end_year is None:
            end_year = self.records[-1].calendar_month.year

        rows = []
        idx, year = 0, start_year
        while idx < len(self.records) and year <= end_year:
            n = months_for_year(year, start_year, end_year, today, birth_date, retirement_end_age)
            chunk = self.records[idx:idx + n]
            idx += n
            rows.append({
                "year": year,
                "months": len(chunk),
                "age": chunk[-1].age,
                "balance_start": chunk[0].balance_start,
                "contribution": sum(r.contribution for r in chunk),
                "growth": sum(r.growth for r in chunk),
                "gross_withdrawal": sum(r.gross_withdrawal for r in chunk),
                "tax": sum(r.tax for r in chunk),
                "net_withdrawal": sum(r.net_withdrawal for r in chunk),
                "balance_end": chunk[-1].balance_end,
            })
            year += 1
        return pd.DataFrame(rows)


class RateSchedule:
    """Return rate and contribution in force for a calendar year."""

    def __init__(self, profile: FinancialProfile):
        self.enabled = profile.variable_rates_enabled
        self.rates = profile.variable_rates or {}
        self.contributions = profile.variable_contributions or {}
        self.annual_return_rate = float(profile.annual_return_rate)
        self.monthly_contribution = float(profile.monthly_contribution)

    @staticmethod
    def _lookup(table, year, default):
        if year in table:
            return float(table[year])
        if str(year) in table:
            return float(table[str(year)])
        return default

    def monthly_rate(self, year: int) -> float:
        rate = self._lookup(self.rates, year, self.annual_return_rate) if self.enabled else self.annual_return_rate
        return rate / 100 / 12

    def contribution(self, year: int) -> float:
        if not self.enabled:
            return self.monthly_contribution
        return self._lookup(self.contributions, year, self.monthly_contribution)


class EventSchedule:
    """Life events mapped onto simulated months (month 1 = the current calendar month)."""

    def __init__(self, events: List[LifeEvent], today: dt.date):
        self.events = []
        for e in events:
            start = parse_date(e.start)
            if not e.enabled or start is None:
                continue
            kind = EventType(e.type)
            end = parse_date(e.end)
            first = self._offset(start, today) + 1
            last = self._offset(end, today) + 1 if end is not None else None
            if kind in (EventType.ONE_TIME_INCOME, EventType.ONE_TIME_EXPENSE):
                # already happened; savings figures include it
                if first < 1:
                    continue
            else:
                if last is not None and last < 1:
                    continue
                # changes already in force apply from month 1
                first = max(1, first)
            self.events.append((kind, float(e.amount), first, last))

    @staticmethod
    def _offset(when: dt.date, today: dt.date) -> int:
        return (when.year - today.year) * 12 + (when.month - today.month)

    def one_time(self, period: int) -> float:
        total = 0.0
        for kind, amount, first, _ in self.events:
            if first != period:
                continue
            if kind is EventType.ONE_TIME_INCOME:
                total += amount
            elif kind is EventType.ONE_TIME_EXPENSE:
                total -= amount
        return total

    def recurring(self, period: int) -> float:
        """Net recurring monthly change in force: income changes positive, expense changes negative."""
        total = 0.0
        for kind, amount, first, last in self.events:
            if period < first or (last is not None and period > last):
                continue
            if kind is EventType.INCOME_CHANGE:
                total += amount
            elif kind is EventType.EXPENSE_CHANGE:
                total -= amount
        return total


def calculate_retirement_projection(profile: FinancialProfile, today: Optional[dt.date] = None,
                                    translate: Optional[Callable[[str], str]] = None) -> SimulationResult:
    """
    Month-by-month projection from today to the end of the self-funded period.
    Each month applies growth first, then the contribution or withdrawal.
    Raises InputValidationError before doing any work if the profile is invalid.
    """
    ensure_valid(profile, translate)
    today = today or dt.date.today()

    current_age = float(profile.current_age)
    start_age = float(profile.retirement_start_age)
    months_to_retirement = whole_months(start_age - current_age)
    months_in_retirement = whole_months(float(profile.retirement_end_age) - start_age)
    tax_dec = float(profile.tax_rate) / 100
    desired = float(profile.monthly_net_income_desired)
    allow_negative = profile.allow_negative_balance

    schedule = RateSchedule(profile)
    events = EventSchedule(profile.life_events, today)
    records: List[PeriodRecord] = []
    ran_out_at_age = None

    # --- Phase 1: Accumulation (Now -> Retirement Start) ---
    balance = float(profile.current_savings)
    total_principal = balance
    for i in range(1, months_to_retirement + 1):
        month = month_of_period(today, i)
        opening = balance
        growth = balance * schedule.monthly_rate(month.year)
        inflow = schedule.contribution(month.year) + events.recurring(i) + events.one_time(i)
        balance = balance + growth + inflow
        total_principal = max(0.0, total_principal + inflow)
        if balance < 0 and not allow_negative:
            inflow -= balance
            balance = 0.0
            if ran_out_at_age is None:
                ran_out_at_age = current_age + i / 12
        records.append(PeriodRecord(i, month, current_age + i / 12, ACCUMULATION,
                                    opening, inflow, growth, 0.0, 0.0, 0.0, balance))

    balance_at_retirement = balance

    # --- Phase 2: Decumulation (Retirement Start -> End) ---
    planner = WithdrawalPlanner(profile.withdrawal_strategy, desired, balance_at_retirement,
                                float(profile.withdrawal_percentage))
    discount_rate = effective_monthly_rate(float(profile.annual_return_rate), tax_dec)
    required_pv = 0.0
    initial_gross = initial_net = 0.0
    accumulated_withdrawals = total_net = 0.0

    for j in range(1, months_in_retirement + 1):
        i = months_to_retirement + j
        month = month_of_period(today, i)
        opening = balance
        growth = balance * schedule.monthly_rate(month.year)
        tax = max(0.0, growth) * tax_dec

        recurring = events.recurring(i)
        one_time = events.one_time(i)
        net = planner.net_withdrawal(j, balance, growth, tax) - recurring
        inflow = one_time
        if net < 0:
            # income beyond spending goes back into the portfolio
            inflow += -net
            net = 0.0
        gross = net + tax

        if j == 1:
            initial_gross, initial_net = gross, net

        available = balance + growth + inflow
        if available < gross and not allow_negative:
            gross = max(0.0, available)
            net = max(0.0, gross - tax)
            tax = gross - net
            if ran_out_at_age is None:
                ran_out_at_age = start_age + j / 12
        balance = available - gross
        if balance < 0:
            if not allow_negative:
                # a one-off expense larger than what is left
                inflow -= balance
                balance = 0.0
            if ran_out_at_age is None:
                ran_out_at_age = start_age + j / 12

        accumulated_withdrawals += gross
        total_net += net

        need = desired - recurring - one_time
        if discount_rate != 0:
            required_pv += need / (1 + discount_rate) ** j
        else:
            required_pv += need

        records.append(PeriodRecord(i, month, start_age + j / 12, DECUMULATION,
                                    opening, inflow, growth, gross, tax, net, balance))

    stats = calculate_statistics(
        balance_at_retirement=balance_at_retirement,
        required_capital_at_retirement=required_pv,
        monthly_net_income_desired=desired,
        monthly_contribution=float(profile.monthly_contribution),
        annual_return_rate=float(profile.annual_return_rate),
        tax_rate_decimal=tax_dec,
        months_to_retirement=months_to_retirement,
        months_in_retirement=months_in_retirement,
        accumulated_withdrawals=accumulated_withdrawals,
        total_net_withdrawal=total_net,
    )
    logger.debug("Projection: %d + %d months, balance at retirement %.0f, at end %.0f",
                 months_to_retirement, months_in_retirement, balance_at_retirement, balance)

    return SimulationResult(
        records=records,
        months_to_retirement=months_to_retirement,
        months_in_retirement=months_in_retirement,
        balance_at_retirement=balance_at_retirement,
        balance_at_end=balance if allow_negative else max(0.0, balance),
        total_principal=total_principal,
        initial_gross_withdrawal=initial_gross,
        initial_net_withdrawal=initial_net,
        accumulated_withdrawals=accumulated_withdrawals,
        total_net_withdrawal=total_net,
        required_capital_at_retirement=required_pv,
        required_capital_for_perpetuity=stats.required_capital_for_perpetuity,
        pv_of_deficit=stats.pv_of_deficit,
        pv_of_capital_preservation=stats.pv_of_capital_preservation,
        surplus=stats.surplus,
        average_gross_withdrawal=stats.average_gross_withdrawal,
        average_net_withdrawal=stats.average_net_withdrawal,
        ran_out_at_age=ran_out_at_age,
        withdrawal_strategy=WithdrawalStrategy(profile.withdrawal_strategy),
    )

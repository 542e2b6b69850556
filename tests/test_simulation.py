"""
Tests for the month-by-month accumulation/withdrawal simulator.
"""

import datetime as dt

import pytest

from calendar_utils import months_for_year, whole_months
from drawdown import WithdrawalStrategy
from simulation import (
    ACCUMULATION,
    DECUMULATION,
    EventType,
    FinancialProfile,
    LifeEvent,
    calculate_retirement_projection,
)
from validators import InputValidationError, validate_inputs

TODAY = dt.date(2026, 1, 15)


def short_profile(**overrides):
    """One year of saving then one year of spending, no growth, no tax."""
    values = dict(
        current_age=40,
        retirement_start_age=41,
        retirement_end_age=42,
        current_savings=0,
        monthly_contribution=1_000,
        monthly_net_income_desired=500,
        annual_return_rate=0,
        tax_rate=0,
    )
    values.update(overrides)
    return FinancialProfile(**values)


class TestEndToEnd:
    def test_reference_scenario(self):
        profile = FinancialProfile(
            current_age=40,
            retirement_start_age=67,
            retirement_end_age=90,
            current_savings=100_000,
            monthly_contribution=2_000,
            monthly_net_income_desired=10_000,
            annual_return_rate=5,
            tax_rate=0,
        )
        result = calculate_retirement_projection(profile, today=TODAY)
        assert result.months_to_retirement == 27 * 12
        assert result.months_in_retirement == 23 * 12
        assert result.balance_at_retirement > 100_000
        assert result.required_capital_for_perpetuity == pytest.approx(2_400_000)
        assert result.source == "calculation"

    def test_zero_return_arithmetic(self):
        result = calculate_retirement_projection(short_profile(), today=TODAY)
        assert result.balance_at_retirement == pytest.approx(12_000)
        assert result.balance_at_end == pytest.approx(6_000)
        assert result.total_principal == pytest.approx(12_000)
        assert result.required_capital_at_retirement == pytest.approx(6_000)
        assert result.surplus == pytest.approx(6_000)
        assert result.pv_of_deficit == 0
        assert result.required_capital_for_perpetuity == 0.0
        assert result.average_net_withdrawal == pytest.approx(500)
        assert not result.depleted

    def test_records_are_continuous(self):
        result = calculate_retirement_projection(
            short_profile(annual_return_rate=6, tax_rate=25, current_savings=5_000), today=TODAY)
        records = result.records
        assert len(records) == 24
        assert [r.phase for r in records[:12]] == [ACCUMULATION] * 12
        assert [r.phase for r in records[12:]] == [DECUMULATION] * 12
        for previous, current in zip(records, records[1:]):
            assert current.balance_start == pytest.approx(previous.balance_end)
        assert records[0].calendar_month == dt.date(2026, 1, 1)
        assert records[-1].calendar_month == dt.date(2027, 12, 1)

    def test_tax_applies_to_growth_only(self):
        result = calculate_retirement_projection(
            short_profile(annual_return_rate=12, tax_rate=25, current_savings=100_000), today=TODAY)
        first = result.records[12]
        assert first.tax == pytest.approx(first.growth * 0.25)
        assert first.gross_withdrawal == pytest.approx(500 + first.tax)

    def test_fractional_retirement_rounds_months(self):
        result = calculate_retirement_projection(short_profile(retirement_start_age=41.5,
                                                               retirement_end_age=42.25), today=TODAY)
        assert result.months_to_retirement == 18
        assert result.months_in_retirement == 9


class TestDepletion:
    def test_running_out_is_flagged(self):
        """1,200 saved against 500 a month lasts two months and a bit."""
        result = calculate_retirement_projection(short_profile(monthly_contribution=100), today=TODAY)
        assert result.depleted
        assert result.ran_out_at_age == pytest.approx(41 + 3 / 12)
        assert result.balance_at_end == 0
        assert all(r.balance_end >= 0 for r in result.records)
        assert result.records[14].net_withdrawal == pytest.approx(200)

    def test_negative_balance_allowed(self):
        result = calculate_retirement_projection(
            short_profile(monthly_contribution=100, allow_negative_balance=True), today=TODAY)
        assert result.balance_at_end == pytest.approx(1_200 - 6_000)
        assert result.depleted


class TestValidation:
    def test_default_profile_is_valid(self):
        assert validate_inputs(FinancialProfile()) == []

    def test_retirement_before_current_age(self):
        with pytest.raises(InputValidationError) as excinfo:
            calculate_retirement_projection(short_profile(current_age=70, retirement_start_age=67,
                                                          retirement_end_age=90))
        assert "Retirement start age must be greater than current age" in excinfo.value.errors

    def test_messages_are_translated(self):
        with pytest.raises(InputValidationError) as excinfo:
            calculate_retirement_projection(short_profile(monthly_net_income_desired=-1),
                                            translate=lambda key: key)
        assert excinfo.value.errors == ["validationMonthlyIncomeNonNegative"]

    @pytest.mark.parametrize("overrides", [
        {"current_age": 0},
        {"retirement_end_age": 121},
        {"current_savings": -1},
        {"monthly_contribution": -5},
        {"annual_return_rate": 150},
        {"tax_rate": -1},
        {"current_age": "forty"},
    ])
    def test_out_of_range(self, overrides):
        assert validate_inputs(short_profile(**overrides))

    def test_unknown_withdrawal_strategy(self):
        with pytest.raises(InputValidationError) as excinfo:
            calculate_retirement_projection(short_profile(withdrawal_strategy="bogus"), today=TODAY)
        assert excinfo.value.errors == ["Unknown withdrawal strategy 'bogus'"]

    def test_variable_rates_checked_only_when_enabled(self):
        assert validate_inputs(short_profile(variable_rates={2026: 500})) == []
        assert validate_inputs(short_profile(variable_rates_enabled=True, variable_rates={2026: 500}))

    def test_negative_return_is_valid(self):
        result = calculate_retirement_projection(short_profile(annual_return_rate=-3, current_savings=10_000),
                                                 today=TODAY)
        assert result.records[0].growth < 0
        assert result.records[12].tax == 0


class TestWithdrawalStrategies:
    def run(self, strategy, **overrides):
        profile = short_profile(withdrawal_strategy=strategy, **overrides)
        return calculate_retirement_projection(profile, today=TODAY)

    def test_percentage(self):
        result = self.run(WithdrawalStrategy.PERCENTAGE, withdrawal_percentage=4)
        assert result.records[12].net_withdrawal == pytest.approx(12_000 * 0.04 / 12)
        assert result.records[13].net_withdrawal < result.records[12].net_withdrawal

    def test_four_percent_is_fixed_at_retirement(self):
        result = self.run(WithdrawalStrategy.FOUR_PERCENT)
        nets = {round(r.net_withdrawal, 6) for r in result.records[12:]}
        assert nets == {round(12_000 * 0.04 / 12, 6)}

    def test_interest_only_preserves_capital(self):
        result = self.run(WithdrawalStrategy.INTEREST_ONLY, annual_return_rate=12, tax_rate=25)
        for r in result.records[12:]:
            assert r.balance_end == pytest.approx(r.balance_start)
            assert r.net_withdrawal == pytest.approx(r.growth * 0.75)

    def test_dynamic_stays_within_guardrails(self):
        result = self.run(WithdrawalStrategy.DYNAMIC, current_savings=1_000_000, annual_return_rate=5,
                          monthly_net_income_desired=2_000, retirement_end_age=46)
        nets = [r.net_withdrawal for r in result.records if r.phase == DECUMULATION]
        assert nets[0] == pytest.approx(2_000)
        assert all(1_600 - 1e-9 <= n <= 2_400 + 1e-9 for n in nets)
        assert result.withdrawal_strategy is WithdrawalStrategy.DYNAMIC

    def test_strategy_given_as_string(self):
        assert self.run("fixed").initial_net_withdrawal == pytest.approx(500)


class TestLifeEvents:
    def test_one_time_income_in_first_month(self):
        event = LifeEvent(EventType.ONE_TIME_INCOME, 10_000, dt.date(2026, 1, 1))
        result = calculate_retirement_projection(short_profile(life_events=[event]), today=TODAY)
        assert result.records[0].contribution == pytest.approx(11_000)
        assert result.balance_at_retirement == pytest.approx(22_000)

    def test_one_time_expense(self):
        event = LifeEvent(EventType.ONE_TIME_EXPENSE, 3_000, dt.date(2026, 6, 1))
        result = calculate_retirement_projection(short_profile(life_events=[event]), today=TODAY)
        assert result.records[5].contribution == pytest.approx(-2_000)
        assert result.balance_at_retirement == pytest.approx(9_000)

    def test_recurring_expense_in_retirement(self):
        event = LifeEvent(EventType.EXPENSE_CHANGE, 200, dt.date(2027, 1, 1))
        result = calculate_retirement_projection(short_profile(life_events=[event]), today=TODAY)
        assert result.records[11].contribution == pytest.approx(1_000)
        assert result.records[12].net_withdrawal == pytest.approx(700)

    def test_recurring_income_with_end(self):
        event = LifeEvent(EventType.INCOME_CHANGE, 500, dt.date(2026, 3, 1), end=dt.date(2026, 4, 1))
        result = calculate_retirement_projection(short_profile(life_events=[event]), today=TODAY)
        assert [r.contribution for r in result.records[1:5]] == [1_000, 1_500, 1_500, 1_000]

    def test_income_beyond_spending_is_reinvested(self):
        event = LifeEvent(EventType.INCOME_CHANGE, 800, dt.date(2027, 1, 1))
        result = calculate_retirement_projection(short_profile(life_events=[event]), today=TODAY)
        first = result.records[12]
        assert first.net_withdrawal == 0
        assert first.contribution == pytest.approx(300)

    def test_past_one_time_events_do_not_fire(self):
        """A one-off dated before today is already reflected in current savings."""
        event = LifeEvent(EventType.ONE_TIME_EXPENSE, 5_000, dt.date(2020, 1, 1))
        profile = short_profile(current_savings=10_000, monthly_contribution=0, monthly_net_income_desired=0,
                                life_events=[event])
        result = calculate_retirement_projection(profile, today=dt.date(2026, 10, 1))
        assert result.balance_at_retirement == pytest.approx(10_000)
        assert result.records[0].contribution == 0

    def test_recurring_change_already_in_force(self):
        event = LifeEvent(EventType.EXPENSE_CHANGE, 200, dt.date(2020, 1, 1))
        result = calculate_retirement_projection(short_profile(life_events=[event]), today=TODAY)
        assert result.records[0].contribution == pytest.approx(800)

    def test_recurring_change_that_ended_before_today(self):
        event = LifeEvent(EventType.INCOME_CHANGE, 500, dt.date(2020, 1, 1), end=dt.date(2025, 12, 1))
        result = calculate_retirement_projection(short_profile(life_events=[event]), today=TODAY)
        assert result.records[0].contribution == pytest.approx(1_000)

    def test_disabled_events_are_ignored(self):
        event = LifeEvent(EventType.ONE_TIME_INCOME, 10_000, dt.date(2026, 1, 1), enabled=False)
        result = calculate_retirement_projection(short_profile(life_events=[event]), today=TODAY)
        assert result.balance_at_retirement == pytest.approx(12_000)


class TestVariableRates:
    def test_rates_follow_calendar_year(self):
        profile = short_profile(current_savings=12_000, monthly_contribution=0, variable_rates_enabled=True,
                                variable_rates={2026: 12.0}, retirement_start_age=42, retirement_end_age=43)
        result = calculate_retirement_projection(profile, today=TODAY)
        assert result.records[0].growth == pytest.approx(120)
        assert result.records[12].growth == 0

    def test_string_year_keys(self):
        profile = short_profile(current_savings=12_000, variable_rates_enabled=True, variable_rates={"2026": 12})
        result = calculate_retirement_projection(profile, today=TODAY)
        assert result.records[0].growth == pytest.approx(120)

    def test_variable_contributions(self):
        profile = short_profile(variable_rates_enabled=True, variable_contributions={2026: 500})
        result = calculate_retirement_projection(profile, today=TODAY)
        assert result.records[0].contribution == pytest.approx(500)
        assert result.balance_at_retirement == pytest.approx(6_000)

    def test_ignored_when_disabled(self):
        profile = short_profile(current_savings=12_000, variable_rates={2026: 12.0})
        result = calculate_retirement_projection(profile, today=TODAY)
        assert result.records[0].growth == 0


class TestCalendarYears:
    def test_whole_months(self):
        assert whole_months(1.5) == 18
        assert whole_months(0.125) == 2
        assert whole_months(-0.125) == -2
        assert whole_months(0) == 0

    def test_partial_end_year(self):
        """Born February 1974, plan ends at 65.5: January through August."""
        assert months_for_year(2039, 2026, 2039, TODAY, "1974-02-15", 65.5) == 8

    def test_partial_first_year(self):
        assert months_for_year(2026, 2026, 2040, dt.date(2026, 10, 3)) == 3
        assert months_for_year(2030, 2026, 2040, dt.date(2026, 10, 3)) == 12

    def test_yearly_table(self):
        result = calculate_retirement_projection(short_profile(), today=dt.date(2026, 10, 1))
        table = result.yearly(today=dt.date(2026, 10, 1))
        assert table["year"].tolist() == [2026, 2027, 2028]
        assert table["months"].tolist() == [3, 12, 9]
        assert table["balance_end"].iloc[-1] == pytest.approx(result.balance_at_end)

    def test_yearly_defaults_to_projection_start(self):
        """Without `today` the first year starts at the first simulated month."""
        result = calculate_retirement_projection(short_profile(), today=dt.date(2024, 3, 1))
        table = result.yearly()
        assert table["year"].tolist() == [2024, 2025, 2026]
        assert table["months"].tolist() == [10, 12, 2]

    def test_monthly_frame(self):
        frame = calculate_retirement_projection(short_profile(), today=TODAY).to_frame()
        assert len(frame) == 24
        assert "net_withdrawal" in frame.columns

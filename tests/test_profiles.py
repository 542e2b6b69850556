"""
Tests for stored-profile loading, dumping, fingerprints and exports.
"""

import datetime as dt
import json

import numpy as np
import pytest

from drawdown import WithdrawalStrategy
from exporters import _json_default, export_profile, export_yearly_table
from income_sources import NATIONAL_INSURANCE, PENSION
from profiles import dump_profile, load_profile, profile_fingerprint
from simulation import EventType, calculate_retirement_projection

TODAY = dt.date(2026, 1, 15)


class TestLoadProfile:
    def test_empty_record_uses_defaults(self):
        profile = load_profile({})
        assert profile.current_age == 30
        assert profile.retirement_start_age == 50
        assert profile.monthly_net_income_desired == 4_000
        assert profile.withdrawal_strategy is WithdrawalStrategy.FIXED
        assert profile.income_sources == []
        assert profile.life_events == []
        assert profile.variable_rates_enabled is False

    def test_numeric_strings(self):
        profile = load_profile({"currentAge": "45", "currentSavings": "1,000", "taxRate": "abc"})
        assert profile.current_age == 45.0
        assert profile.current_savings == 1_000.0
        assert profile.tax_rate == 0.0

    def test_age_from_birthdate(self):
        profile = load_profile({"birthdate": "1976-01-15", "currentAge": 20}, today=TODAY)
        assert profile.current_age == pytest.approx(50.0, abs=0.01)
        assert profile.birth_date == dt.date(1976, 1, 15)

    def test_manual_age_wins(self):
        profile = load_profile({"birthdate": "1976-01-15", "currentAge": 20, "manualAge": True}, today=TODAY)
        assert profile.current_age == 20

    def test_variable_rates_keyed_by_year(self):
        profile = load_profile({"variableRatesEnabled": True, "variableRates": {"2027": "6", "bad": 3},
                                "variableContributions": {"2027": 1500}})
        assert profile.variable_rates == {2027: 6.0}
        assert profile.variable_contributions == {2027: 1_500.0}

    def test_life_events(self):
        profile = load_profile({"lifeEvents": [
            {"type": "ONE_TIME_INCOME", "amount": 5_000, "startDate": {"year": 2027, "month": 3}},
            {"type": "expense_change", "amount": 0, "monthlyChange": 800,
             "startDate": {"year": 2028, "month": 1}, "endDate": {"year": 2030, "month": 12}},
            {"type": "lottery", "amount": 1, "startDate": {"year": 2027, "month": 1}},
        ]})
        first, second = profile.life_events
        assert first.type is EventType.ONE_TIME_INCOME
        assert first.start == dt.date(2027, 3, 1)
        assert second.amount == 800
        assert second.end == dt.date(2030, 12, 1)

    def test_national_insurance_added_to_saved_sources(self):
        profile = load_profile({"contributionYears": 35, "pensionIncomeSources": [
            {"id": "p1", "type": "pension", "amount": "6,000", "startAge": 67, "endAge": None},
        ]})
        kinds = [s.type for s in profile.income_sources]
        assert kinds == [PENSION, NATIONAL_INSURANCE]
        assert profile.income_sources[0].amount == 6_000
        assert profile.income_sources[1].amount == 2_757

    def test_existing_national_insurance_kept(self):
        profile = load_profile({"pensionIncomeSources": [
            {"id": "ni", "type": "nationalInsurance", "amount": 2_000, "startAge": 67, "isTaxable": False,
             "details": {"contributionYears": 30}},
        ]})
        assert len(profile.income_sources) == 1
        assert profile.income_sources[0].contribution_years == 30
        assert profile.income_sources[0].is_taxable is False

    def test_loaded_profile_projects(self):
        profile = load_profile({"currentAge": 40, "retirementStartAge": 45, "retirementEndAge": 60,
                                "currentSavings": "250000", "monthlyContribution": 3000})
        result = calculate_retirement_projection(profile, today=TODAY)
        assert result.months_to_retirement == 60


class TestDumpAndFingerprint:
    record = {
        "currentAge": 40,
        "retirementStartAge": 60,
        "retirementEndAge": 67,
        "currentSavings": 100_000,
        "withdrawalStrategy": "percentage",
        "variableRates": {"2030": 3},
        "lifeEvents": [{"type": "one_time_expense", "amount": 20_000, "startDate": {"year": 2030, "month": 6}}],
    }

    def test_dump_then_load(self):
        profile = load_profile(self.record)
        assert load_profile(dump_profile(profile)) == profile

    def test_fingerprint_ignores_key_order(self):
        reordered = dict(reversed(list(self.record.items())))
        assert profile_fingerprint(load_profile(self.record)) == profile_fingerprint(load_profile(reordered))

    def test_fingerprint_changes_with_content(self):
        changed = dict(self.record, currentSavings=100_001)
        assert profile_fingerprint(load_profile(self.record)) != profile_fingerprint(load_profile(changed))


class TestExporters:
    def test_yearly_csv(self):
        profile = load_profile({"currentAge": 40, "retirementStartAge": 41, "retirementEndAge": 42})
        name, blob = export_yearly_table(calculate_retirement_projection(profile, today=TODAY), today=TODAY)
        assert name == "projection_yearly.csv"
        header = blob.decode().splitlines()[0]
        assert header.startswith("year,months,age")
        assert "balance_end" in header

    def test_profile_json(self):
        name, blob = export_profile(load_profile({"currentAge": 41}))
        data = json.loads(blob)
        assert name == "profile.json"
        assert data["currentAge"] == 41
        assert data["withdrawalStrategy"] == "fixed"

    def test_json_default(self):
        assert _json_default(np.float64(1.5)) == 1.5
        assert _json_default(np.array([1, 2])) == [1, 2]
        assert _json_default(dt.date(2026, 1, 1)) == "2026-01-01"
        assert _json_default(WithdrawalStrategy.DYNAMIC) == "dynamic"
        with pytest.raises(TypeError):
            _json_default(object())

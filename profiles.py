"""
Saved-profile records <-> FinancialProfile.

The persistence layer stores a flat camelCase record. Older records lack the
newer fields (income sources, variable rates, life events), so every optional
field falls back to its default. Numbers may have been stored as strings.
"""

import datetime as dt
import hashlib
import json
import logging
import math
from typing import Any, Dict, List, Optional

from calendar_utils import age_from_birth_date, parse_date
from config import DEFAULTS
from drawdown import WithdrawalStrategy
from fiscal import FiscalParameters, to_number
from income_sources import NATIONAL_INSURANCE, IncomeSource, national_insurance_source
from simulation import EventType, FinancialProfile, LifeEvent

logger = logging.getLogger(__name__)

# record key -> (profile attribute, default)
NUMERIC_FIELDS = {
    "currentAge": ("current_age", DEFAULTS["current_age"]),
    "retirementStartAge": ("retirement_start_age", DEFAULTS["retirement_start_age"]),
    "retirementEndAge": ("retirement_end_age", DEFAULTS["retirement_end_age"]),
    "currentSavings": ("current_savings", DEFAULTS["current_savings"]),
    "monthlyContribution": ("monthly_contribution", DEFAULTS["monthly_contribution"]),
    "monthlyNetIncomeDesired": ("monthly_net_income_desired", DEFAULTS["monthly_net_income_desired"]),
    "annualReturnRate": ("annual_return_rate", DEFAULTS["annual_return_rate"]),
    "taxRate": ("tax_rate", DEFAULTS["tax_rate"]),
    "withdrawalPercentage": ("withdrawal_percentage", DEFAULTS["withdrawal_percentage"]),
    "contributionYears": ("contribution_years", DEFAULTS["contribution_years"]),
}


def _number(value: Any, default: float) -> float:
    """Missing fields take the default; anything present but unreadable counts as 0."""
    if value is None or value == "":
        return default
    number = to_number(value)
    if number is None or math.isnan(number):
        logger.warning("Unreadable number %r in stored profile, using 0", value)
        return 0.0
    return number


def _year_table(raw: Optional[dict]) -> Dict[int, float]:
    table = {}
    for year, value in (raw or {}).items():
        number = to_number(value)
        try:
            key = int(year)
        except (TypeError, ValueError):
            continue
        if number is not None:
            table[key] = number
    return table


def _event_date(raw: Any) -> Optional[dt.date]:
    if isinstance(raw, dict) and raw.get("year"):
        return dt.date(int(raw["year"]), int(raw.get("month") or 1), 1)
    return parse_date(raw)


def load_life_event(raw: dict) -> Optional[LifeEvent]:
    start = _event_date(raw.get("startDate"))
    try:
        kind = EventType(str(raw.get("type", "")).lower())
    except ValueError:
        logger.warning("Skipping life event with unknown type %r", raw.get("type"))
        return None
    if start is None:
        return None
    recurring = kind in (EventType.INCOME_CHANGE, EventType.EXPENSE_CHANGE)
    amount = raw.get("monthlyChange") if recurring and raw.get("monthlyChange") is not None else raw.get("amount")
    return LifeEvent(
        type=kind,
        amount=_number(amount, 0.0),
        start=start,
        end=_event_date(raw.get("endDate")),
        enabled=raw.get("enabled", True) is not False,
        title=raw.get("title", ""),
    )


def load_income_source(raw: dict) -> IncomeSource:
    end_age = to_number(raw.get("endAge"))
    details = raw.get("details") or raw.get("calculationDetails") or {}
    return IncomeSource(
        id=str(raw.get("id", "")),
        type=raw.get("type", "other"),
        amount=_number(raw.get("amount"), 0.0),
        start_age=_number(raw.get("startAge"), 0.0),
        end_age=end_age or None,
        is_taxable=raw.get("isTaxable", True) is not False,
        is_lump_sum=bool(raw.get("isLumpSum", False)),
        enabled=raw.get("enabled", True) is not False,
        name=raw.get("nameEn") or raw.get("name", ""),
        contribution_years=to_number(raw.get("contributionYears", details.get("contributionYears"))),
        auto_calculated=bool(raw.get("autoCalculated", False)),
    )


def load_profile(record: Optional[dict], today: Optional[dt.date] = None,
                 parameters: Optional[FiscalParameters] = None) -> FinancialProfile:
    """
    Build a profile from a stored record. Unless `manualAge` is set, the age is
    recomputed from the birth date. Saved income sources always carry a National
    Insurance entry; one is added from the contribution years if it is missing.
    """
    record = record or {}
    kwargs: Dict[str, Any] = {}
    for key, (attr, default) in NUMERIC_FIELDS.items():
        kwargs[attr] = _number(record.get(key), default)

    birth_date = parse_date(record.get("birthdate") or record.get("birthDate"))
    if birth_date is not None and not record.get("manualAge"):
        kwargs["current_age"] = round(age_from_birth_date(birth_date, today), 2)

    try:
        strategy = WithdrawalStrategy(str(record.get("withdrawalStrategy") or DEFAULTS["withdrawal_strategy"]).lower())
    except ValueError:
        logger.warning("Unknown withdrawal strategy %r, using fixed", record.get("withdrawalStrategy"))
        strategy = WithdrawalStrategy.FIXED

    events = [load_life_event(e) for e in record.get("lifeEvents") or []]
    sources = load_income_sources(record.get("pensionIncomeSources"))
    if sources:
        sources = with_national_insurance(sources, kwargs["contribution_years"], parameters)
    return FinancialProfile(
        withdrawal_strategy=strategy,
        variable_rates_enabled=bool(record.get("variableRatesEnabled", False)),
        variable_rates=_year_table(record.get("variableRates")),
        variable_contributions=_year_table(record.get("variableContributions")),
        birth_date=birth_date,
        family_status=record.get("familyStatus") or DEFAULTS["family_status"],
        life_events=[e for e in events if e is not None],
        income_sources=sources,
        allow_negative_balance=bool(record.get("allowNegativeBalance", False)),
        **kwargs,
    )


def _dump_date(value: Optional[dt.date]) -> Optional[dict]:
    return None if value is None else {"year": value.year, "month": value.month}


def dump_profile(profile: FinancialProfile) -> dict:
    record: Dict[str, Any] = {key: getattr(profile, attr) for key, (attr, _) in NUMERIC_FIELDS.items()}
    record.update({
        "withdrawalStrategy": WithdrawalStrategy(profile.withdrawal_strategy).value,
        "variableRatesEnabled": profile.variable_rates_enabled,
        "variableRates": {str(y): r for y, r in sorted(profile.variable_rates.items())},
        "variableContributions": {str(y): c for y, c in sorted(profile.variable_contributions.items())},
        "birthdate": profile.birth_date.isoformat() if profile.birth_date else "",
        "manualAge": profile.birth_date is None,
        "familyStatus": profile.family_status,
        "allowNegativeBalance": profile.allow_negative_balance,
        "lifeEvents": [{
            "type": EventType(e.type).value,
            "amount": e.amount,
            "startDate": _dump_date(parse_date(e.start)),
            "endDate": _dump_date(parse_date(e.end)),
            "enabled": e.enabled,
            "title": e.title,
        } for e in profile.life_events],
        "pensionIncomeSources": [dump_income_source(s) for s in profile.income_sources],
    })
    return record


def dump_income_source(source: IncomeSource) -> dict:
    return {
        "id": source.id,
        "type": source.type,
        "name": source.name,
        "amount": source.amount,
        "startAge": source.start_age,
        "endAge": source.end_age,
        "isTaxable": source.is_taxable,
        "isLumpSum": source.is_lump_sum,
        "enabled": source.enabled,
        "contributionYears": source.contribution_years,
        "autoCalculated": source.auto_calculated,
    }


def profile_fingerprint(profile: FinancialProfile) -> str:
    """Content hash of a profile; equal inputs give equal fingerprints regardless of key order."""
    blob = json.dumps(dump_profile(profile), sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(blob.encode()).hexdigest()


def load_income_sources(records: List[dict]) -> List[IncomeSource]:
    return [load_income_source(r) for r in records or []]


def with_national_insurance(sources: List[IncomeSource], contribution_years: float,
                            parameters: Optional[FiscalParameters] = None) -> List[IncomeSource]:
    if any(s.type == NATIONAL_INSURANCE for s in sources):
        return sources
    logger.info("Profile has no National Insurance source, adding one for %s contribution years",
                contribution_years)
    return sources + [national_insurance_source(0, contribution_years, parameters)]

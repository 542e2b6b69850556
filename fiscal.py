"""
Fiscal parameters: the national-insurance table, income tax brackets and the
pension exemption the engine calculates with.

Parameters are passed explicitly into every calculation. Updated tables come
from an external research service (a text-generation model), so everything it
returns goes through `normalize_fiscal_payload` before use: percentages vs
fractions, "60,130" vs 60130, "Infinity" vs null, and a known stale NI rate.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

from config import (
    NATIONAL_INSURANCE_DEFAULTS,
    NI_ENTITLEMENT_AGE,
    STALE_SINGLE_RATE_RANGE,
    COUPLE_RATE_FLOOR,
    UNBOUNDED_BRACKET_CEILING,
)
from tax_models import Bracket, PensionExemption, default_brackets, normalize_rate

logger = logging.getLogger(__name__)


@dataclass
class NationalInsuranceParameters:
    base_rates: Dict[str, float] = field(
        default_factory=lambda: dict(NATIONAL_INSURANCE_DEFAULTS["base_rates"]))
    seniority_addition_per_year: float = NATIONAL_INSURANCE_DEFAULTS["seniority_addition_per_year"]
    deferral_bonus_per_year: float = NATIONAL_INSURANCE_DEFAULTS["deferral_bonus_per_year"]
    age80_plus_addon: float = NATIONAL_INSURANCE_DEFAULTS["age80_plus_addon"]
    income_test_threshold: Dict[str, float] = field(
        default_factory=lambda: dict(NATIONAL_INSURANCE_DEFAULTS["income_test_threshold"]))
    ignore_income_test: bool = False
    income_test_taper: Optional[float] = None  # None = full disqualification above threshold


@dataclass
class FiscalParameters:
    national_insurance: NationalInsuranceParameters = field(default_factory=NationalInsuranceParameters)
    tax_brackets: List[Bracket] = field(default_factory=default_brackets)
    pension_exemption: Optional[PensionExemption] = field(default_factory=PensionExemption)
    retirement_age: float = NI_ENTITLEMENT_AGE
    family_status: str = "single"


@dataclass
class NormalizationWarning:
    field: str
    original: Any
    corrected: Any
    reason: str


class TextGenerator(Protocol):
    """Anything that turns a prompt into text (provider adapters live outside the engine)."""

    def generate(self, prompt: str) -> str: ...


def default_fiscal_parameters() -> FiscalParameters:
    return FiscalParameters()


def to_number(value: Any) -> Optional[float]:
    """Parse numbers the way they come back from the research service: 1756, "1,756", "60130.5"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "").strip())
    except ValueError:
        return None


def parse_limit(limit: Any) -> Optional[float]:
    if limit is None:
        return None
    if isinstance(limit, str) and limit.replace(",", "").strip().lower() in ("infinity", "inf", "null", "none", ""):
        return None
    number = to_number(limit)
    if number is None or math.isinf(number) or number <= 0:
        return None
    return number


def normalize_brackets(raw_brackets: List[dict], warnings: List[NormalizationWarning]) -> List[Bracket]:
    brackets = []
    for i, item in enumerate(raw_brackets):
        raw_rate = item.get("rate", 0)
        rate = to_number(raw_rate) or 0.0
        if rate > 1.0:
            warnings.append(NormalizationWarning(f"taxBrackets[{i}].rate", raw_rate, rate / 100.0,
                                                 "percentage converted to fraction"))
        rate = normalize_rate(rate)

        raw_limit = item.get("limit", item.get("upper"))
        limit = parse_limit(raw_limit)
        if raw_limit is not None and not isinstance(raw_limit, (int, float)) and limit is not None:
            warnings.append(NormalizationWarning(f"taxBrackets[{i}].limit", raw_limit, limit,
                                                 "formatted limit parsed"))
        brackets.append(Bracket(upper=limit, rate=rate))

    # ascending limits, unbounded last; anything after the first unbounded bracket is unreachable
    brackets.sort(key=lambda b: math.inf if b.upper is None else b.upper)
    for i, b in enumerate(brackets):
        if b.upper is None:
            brackets = brackets[:i + 1]
            break

    if brackets and brackets[-1].upper is not None:
        last = brackets[-1]
        if last.upper > UNBOUNDED_BRACKET_CEILING:
            warnings.append(NormalizationWarning("taxBrackets", None, {"limit": None, "rate": last.rate},
                                                 "missing unbounded top bracket added"))
            brackets.append(Bracket(upper=None, rate=last.rate))
        else:
            warnings.append(NormalizationWarning(f"taxBrackets[{len(brackets) - 1}].limit", last.upper, None,
                                                 "last bracket made unbounded"))
            last.upper = None
    return brackets


def _correct_stale_rates(base_rates: Dict[str, Any], warnings: List[NormalizationWarning]) -> None:
    single = to_number(base_rates.get("single"))
    lo, hi = STALE_SINGLE_RATE_RANGE
    if single is None or not (lo <= single <= hi):
        return
    current = NATIONAL_INSURANCE_DEFAULTS["base_rates"]
    warnings.append(NormalizationWarning("nationalInsurance.baseRates.single", base_rates["single"],
                                         current["single"], "outdated rate replaced"))
    base_rates["single"] = current["single"]
    couple = to_number(base_rates.get("couple"))
    if couple is not None and couple < COUPLE_RATE_FLOOR:
        warnings.append(NormalizationWarning("nationalInsurance.baseRates.couple", base_rates["couple"],
                                             current["couple"], "outdated rate replaced"))
        base_rates["couple"] = current["couple"]


def normalize_national_insurance(raw: dict, base: NationalInsuranceParameters,
                                 warnings: List[NormalizationWarning],
                                 correct_stale_rates: bool = True) -> NationalInsuranceParameters:
    raw_rates = dict(raw.get("baseRates") or {})
    if correct_stale_rates:
        _correct_stale_rates(raw_rates, warnings)

    base_rates = dict(base.base_rates)
    # the research payload nests a few scalars inside baseRates
    seniority = to_number(raw_rates.pop("seniorityAdditionPerYear", None))
    addon = to_number(raw_rates.pop("age80PlusAddon", None))
    raw_rates.pop("single_all_seniority", None)
    for status, amount in raw_rates.items():
        number = to_number(amount)
        if number is not None:
            base_rates[status] = number

    thresholds = dict(base.income_test_threshold)
    for status, amount in (raw.get("incomeTestThreshold") or {}).items():
        number = to_number(amount)
        if number is not None:
            thresholds[status] = number
    # a single "couple" threshold also covers couple_child
    if "couple" in (raw.get("incomeTestThreshold") or {}) and "couple_child" not in raw["incomeTestThreshold"]:
        thresholds["couple_child"] = thresholds["couple"]
    if "single" in (raw.get("incomeTestThreshold") or {}) and "single_child" not in raw["incomeTestThreshold"]:
        thresholds["single_child"] = thresholds["single"]

    seniority = to_number(raw.get("seniorityAdditionPerYear")) or seniority
    deferral = to_number(raw.get("deferralBonusPerYear", raw.get("deferralBonusPerMonth")))
    taper = to_number(raw.get("incomeTestTaper"))

    return NationalInsuranceParameters(
        base_rates=base_rates,
        seniority_addition_per_year=seniority or base.seniority_addition_per_year,
        deferral_bonus_per_year=deferral or base.deferral_bonus_per_year,
        age80_plus_addon=to_number(raw.get("age80PlusAddon")) or addon or base.age80_plus_addon,
        income_test_threshold=thresholds,
        ignore_income_test=bool(raw.get("ignoreIncomeTest", base.ignore_income_test)),
        income_test_taper=normalize_rate(taper) if taper is not None else base.income_test_taper,
    )


def normalize_fiscal_payload(raw: dict, base: Optional[FiscalParameters] = None,
                             correct_stale_rates: bool = True) -> Tuple[FiscalParameters, List[NormalizationWarning]]:
    """
    Turn an externally supplied fiscal payload into `FiscalParameters`.
    Missing sections keep the values of `base` (defaults if not given).
    Returns the parameters and the list of corrections that were applied.
    """
    if base is None:
        base = default_fiscal_parameters()
    if not isinstance(raw, dict):
        raise ValueError("fiscal payload must be a JSON object")
    if isinstance(raw.get("fiscalParameters"), dict):
        raw = raw["fiscalParameters"]

    warnings: List[NormalizationWarning] = []

    ni = base.national_insurance
    if isinstance(raw.get("nationalInsurance"), dict):
        ni = normalize_national_insurance(raw["nationalInsurance"], ni, warnings, correct_stale_rates)

    brackets = list(base.tax_brackets)
    if isinstance(raw.get("taxBrackets"), list) and raw["taxBrackets"]:
        brackets = normalize_brackets(raw["taxBrackets"], warnings)

    exemption = base.pension_exemption
    if isinstance(raw.get("pensionExemption"), dict):
        pe = raw["pensionExemption"]
        current = exemption or PensionExemption()
        exemption = PensionExemption(
            rate=normalize_rate(to_number(pe.get("rate")) or current.rate),
            max_monthly=to_number(pe.get("maxMonthly")) or current.max_monthly,
            max_qualified_income=to_number(pe.get("maxQualifiedIncome")) or current.max_qualified_income,
        )

    for w in warnings:
        logger.warning("Fiscal data corrected: %s %r -> %r (%s)", w.field, w.original, w.corrected, w.reason)

    params = FiscalParameters(
        national_insurance=ni,
        tax_brackets=brackets,
        pension_exemption=exemption,
        retirement_age=to_number(raw.get("retirementAge")) or base.retirement_age,
        family_status=raw.get("familyStatus") or base.family_status,
    )
    return params, warnings


def parse_fiscal_response(text: str) -> dict:
    """Strip markdown code fences from a model response and parse the JSON inside."""
    clean = text.replace("```json", "").replace("```", "").strip()
    return json.loads(clean)


def fetch_fiscal_parameters(generator: TextGenerator, prompt: str, base: Optional[FiscalParameters] = None,
                            correct_stale_rates: bool = True) -> Tuple[FiscalParameters, List[NormalizationWarning]]:
    raw = parse_fiscal_response(generator.generate(prompt))
    return normalize_fiscal_payload(raw, base=base, correct_stale_rates=correct_stale_rates)

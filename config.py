APP_NAME = "Pension Horizon: Retirement Fiscal Projection"

# Default profile (nominal ILS; rates are percentages as users type them)
DEFAULTS = {
    "current_age": 30,
    "retirement_start_age": 50,
    "retirement_end_age": 67,
    "current_savings": 0,
    "monthly_contribution": 0,
    "monthly_net_income_desired": 4_000,
    "annual_return_rate": 5.0,        # nominal per year
    "tax_rate": 25.0,                 # flat tax on investment gains
    "withdrawal_strategy": "fixed",
    "withdrawal_percentage": 4.0,
    "family_status": "single",
    "contribution_years": 35,
    "capital_return_rate": 4.0,       # return on capital after pension age

    # Sims
    "num_paths": 500,
    "seed": 123,
}

# Old-age pension (January 2026 monthly amounts)
NATIONAL_INSURANCE_DEFAULTS = {
    "base_rates": {
        "single": 1_838,
        "single_child": 2_419,
        "couple": 2_762,
        "couple_child": 3_343,
    },
    "seniority_addition_per_year": 2,  # % of base per qualifying year
    "deferral_bonus_per_year": 5,      # % of base per year past entitlement age
    "age80_plus_addon": 103,
    "income_test_threshold": {
        "single": 20_226,
        "single_child": 20_226,
        "couple": 26_968,
        "couple_child": 26_968,
    },
    "work_earnings_limit": 9_781,
}

FAMILY_STATUSES = ("single", "single_child", "couple", "couple_child")

# Monthly income tax brackets (2026); None = no upper limit
TAX_BRACKETS = [
    (7_010, 0.10),
    (10_060, 0.14),
    (16_150, 0.20),
    (22_440, 0.31),
    (46_690, 0.35),
    (60_130, 0.47),
    (None, 0.47),
]

# Exempt share of qualified pension annuity (2026)
PENSION_EXEMPTION = {
    "rate": 0.575,
    "max_monthly": 5_422,
    "max_qualified_income": 9_430,
}

CAPITAL_TAX_RATES = {
    "standard": 0.25,
    "real_estate": 0.25,
    "pension_exemption": 0.35,
}

# Engine constants
NI_ENTITLEMENT_AGE = 67
NI_INCOME_TEST_CUTOFF_AGE = 70
NI_AGE80_SUPPLEMENT_AGE = 80
SENIORITY_EXCLUDED_YEARS = 10
SENIORITY_MAX_YEARS = 25
DEFERRAL_MAX_YEARS = 3
DEPLETION_CAP_YEARS = 100
MIN_AGE, MAX_AGE = 0, 120

# Stale single-person NI rate the fiscal research service keeps proposing
STALE_SINGLE_RATE_RANGE = (1_750, 1_760)
COUPLE_RATE_FLOOR = 2_700
UNBOUNDED_BRACKET_CEILING = 50_000

# Dynamic (guardrail) withdrawals
GUARDRAILS = {
    "band": 0.10,
    "max_raise": 0.10,
    "max_cut": 0.10,
    "floor_pct": 0.80,                # of desired income
    "ceiling_pct": 1.20,
}

# Simulation arms
MONTE_CARLO_VOLATILITY = 5.0          # annual return std dev, percentage points
CONSERVATIVE_RATE_SHIFT = -2.0
OPTIMISTIC_RATE_SHIFT = 1.5

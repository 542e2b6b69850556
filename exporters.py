# exporters.py
import datetime as dt
import json
from enum import Enum
from typing import Optional

import numpy as np
import pandas as pd

from profiles import dump_profile


def export_monthly_table(result) -> tuple[str, bytes]:
    return "projection_monthly.csv", result.to_frame().to_csv(index=False).encode()


def export_yearly_table(result, today: Optional[dt.date] = None, birth_date=None,
                        retirement_end_age: Optional[float] = None) -> tuple[str, bytes]:
    df = result.yearly(today=today, birth_date=birth_date, retirement_end_age=retirement_end_age)
    return "projection_yearly.csv", df.to_csv(index=False).encode()


def export_income_summary(summary) -> tuple[str, bytes]:
    df = pd.DataFrame([{
        "age": m.age,
        "total_gross": m.income.total_gross,
        "tax": m.income.tax,
        "total_net": m.income.total_net,
        "monthly_deficit": m.monthly_deficit,
        "monthly_surplus": m.monthly_surplus,
        "capital": m.accumulated_capital,
        "age_at_depletion": m.age_at_depletion,
    } for m in summary.milestones])
    return "income_summary.csv", df.to_csv(index=False).encode()


def _json_default(o):
    # numpy, dates and enums; anything else is a bug
    if isinstance(o, np.ndarray):
        return o.tolist()
    if isinstance(o, np.generic):
        return o.item()
    if isinstance(o, (dt.date, dt.datetime)):
        return o.isoformat()
    if isinstance(o, Enum):
        return o.value
    raise TypeError(f"Object of type {o.__class__.__name__} is not JSON serializable")


def export_profile(profile) -> tuple[str, bytes]:
    """Profile as the same camelCase record the loader reads back."""
    blob = json.dumps(dump_profile(profile), indent=2, default=_json_default)
    return "profile.json", blob.encode()

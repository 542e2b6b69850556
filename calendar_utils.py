"""
Calendar helpers: the simulation runs in months starting from the current
calendar month, but reports in calendar years. The first year is usually
partial (current month to December) and so is the last one (January to the
month the plan ends, derived from the birth month).
"""

import datetime as dt
import math
from typing import Optional, Union

from dateutil import parser
from dateutil.relativedelta import relativedelta

DateLike = Union[dt.date, dt.datetime, str, None]


def parse_date(value: DateLike) -> Optional[dt.date]:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return parser.isoparse(str(value)).date()
    except ValueError:
        return None


def age_from_birth_date(birth_date: DateLike, today: Optional[dt.date] = None) -> Optional[float]:
    """Fractional age; 365.25 days a year."""
    born = parse_date(birth_date)
    if born is None:
        return None
    today = today or dt.date.today()
    return (today - born).days / 365.25


def whole_months(years: float) -> int:
    """Months in a span of years; half months round away from zero."""
    months = float(years) * 12
    return int(math.floor(abs(months) + 0.5)) * (1 if months >= 0 else -1)


def month_of_period(start: dt.date, period_index: int) -> dt.date:
    """First day of the calendar month of 1-based simulated month `period_index`."""
    return start.replace(day=1) + relativedelta(months=period_index - 1)


def months_for_year(year: int, start_year: int, end_year: int, today: Optional[dt.date] = None,
                    birth_date: DateLike = None, retirement_end_age: Optional[float] = None) -> int:
    """Number of simulated months that fall in calendar `year`."""
    if year == start_year:
        today = today or dt.date.today()
        return 12 - (today.month - 1)

    if year == end_year:
        born = parse_date(birth_date)
        if born is None or retirement_end_age is None:
            return 12
        end_age_months = (float(retirement_end_age) % 1) * 12
        end_month_index = math.floor(((born.month - 1) + end_age_months) % 12)
        return end_month_index + 1

    return 12


def end_year_for(birth_date: DateLike, retirement_end_age: float) -> Optional[int]:
    born = parse_date(birth_date)
    if born is None:
        return None
    return (born.replace(day=1) + relativedelta(months=round(float(retirement_end_age) * 12))).year

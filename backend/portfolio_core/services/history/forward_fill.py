# backend/portfolio_core/services/history/forward_fill.py
"""
Calendar alignment of sparse provider series.

    calendar:  Mon Tue Wed Thu Fri Sat Sun Mon
    observed:   10       12          .   .  13
    filled:     10  10   12  12  12  12  12 13

Days before the first observation stay absent (never zero-filled).
Non-positive observations are ignored, so the previous value carries over them.
An observation dated before the calendar still seeds the first days.
"""

from datetime import date, timedelta

import pandas as pd

from portfolio_core.services.market_data.base import PricePoint


def calendar_window(end_date: date, lookback_days: int) -> pd.DatetimeIndex:
    """Every calendar day of [end_date - lookback_days, end_date], inclusive."""
    return pd.date_range(end_date - timedelta(days=lookback_days), end_date, freq="D")


def forward_fill(points: list[PricePoint], calendar: pd.DatetimeIndex) -> pd.Series:
    """
    Align `points` onto `calendar`, carrying the last known value forward.

    Returns a float series indexed by the calendar days that have a known
    positive value; leading days without one are dropped.
    """
    if not points:
        return pd.Series(dtype="float64", index=calendar[:0])

    observed = pd.Series(
        [float(point.value) for point in points],
        index=pd.DatetimeIndex([pd.Timestamp(point.date) for point in points]),
        dtype="float64",
    )
    observed = observed[~observed.index.duplicated(keep="last")].sort_index()
    # Non-positive closes are skipped; the previous value fills their days
    observed = observed[observed > 0]

    filled = observed.reindex(calendar.union(observed.index)).ffill().reindex(calendar)
    return filled.dropna()


def constant_series(value: float, calendar: pd.DatetimeIndex) -> pd.Series:
    return pd.Series(value, index=calendar, dtype="float64")

"""Latest trip end date that keeps a country under its day limit."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Sequence

from residency_roll.forecast import HypotheticalTrip, forecast_tally, tally_get
from residency_roll.models import DEFAULT_THRESHOLD_DAYS, STANDARD_DURATIONS, WINDOW_DAYS, TravelLeg


@dataclass(frozen=True, slots=True)
class MaxEndDate:
    """Search result: latest end date within the limit and the forecast days at that date."""

    end_date: date
    days_at_limit: int


@dataclass(frozen=True, slots=True)
class DurationForecast:
    duration_days: int
    end_date: date
    total_days: int
    exceeds_limit: bool


def forecast_days(legs: Sequence[TravelLeg], country: str, trip_start: date, trip_end: date) -> int:
    """Forecast window days in ``country`` for a trip there from ``trip_start`` to ``trip_end``."""

    tally = forecast_tally(legs, HypotheticalTrip(country, trip_start, trip_end))
    return tally_get(tally, country)


def max_end_date(
    existing_legs: Iterable[TravelLeg],
    country: str,
    trip_start: date,
    day_limit: int = DEFAULT_THRESHOLD_DAYS,
) -> MaxEndDate:
    """Binary search the latest end date in [trip_start, trip_start + 365) within ``day_limit``.

    Relies on the forecast for ``country`` being non-decreasing in the end date.
    If even ending on ``trip_start`` exceeds the limit, returns ``(trip_start, 0)``.
    """

    legs = list(existing_legs)
    best = MaxEndDate(end_date=trip_start, days_at_limit=0)
    lo = trip_start
    hi = trip_start + timedelta(days=WINDOW_DAYS)
    while lo < hi:
        mid = lo + timedelta(days=(hi - lo).days // 2)
        total = forecast_days(legs, country, trip_start, mid)
        if total <= day_limit:
            best = MaxEndDate(end_date=mid, days_at_limit=total)
            lo = mid + timedelta(days=1)
        else:
            hi = mid
    return best


def standard_duration_forecasts(
    existing_legs: Iterable[TravelLeg],
    country: str,
    trip_start: date,
    day_limit: int = DEFAULT_THRESHOLD_DAYS,
    durations: Sequence[int] | None = None,
) -> list[DurationForecast]:
    """Forecast fixed-length trips (7/14/21 days by default) and flag the ones over the limit."""

    legs = list(existing_legs)
    out: list[DurationForecast] = []
    for duration in durations or STANDARD_DURATIONS:
        end = trip_start + timedelta(days=duration)
        total = forecast_days(legs, country, trip_start, end)
        out.append(
            DurationForecast(
                duration_days=duration,
                end_date=end,
                total_days=total,
                exceeds_limit=total > day_limit,
            )
        )
    return out

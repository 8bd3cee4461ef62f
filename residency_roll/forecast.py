"""Rolling 365-day window totals and "what if I take this trip" forecasts.

This is a coarse estimator, separate from the ledger: each leg is read as a
stay in its arrival country over the wall-clock interval [arrival, departure),
and whole days of overlap with the window are added up per country. Timezones
and midnights are ignored, and overlapping stays in different countries are
each counted in full (they are not netted against each other). Use
``ledger.build_ledger`` + ``counter.count_days`` for legally precise counts.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Sequence

from residency_roll.models import WINDOW_DAYS, TravelLeg
from residency_roll.timeutils import resolve_zone, wall_clock

_WINDOW = timedelta(days=WINDOW_DAYS)


@dataclass(frozen=True, slots=True)
class Stay:
    """A naive wall-clock interval [start, end) spent in one country."""

    country: str
    start: datetime
    end: datetime

    @property
    def days(self) -> int:
        return max(0, (self.end - self.start).days)


@dataclass(frozen=True, slots=True)
class HypotheticalTrip:
    """A planned stay in ``country`` from ``start`` to ``end``."""

    country: str
    start: date | datetime
    end: date | datetime

    def as_stay(self) -> Stay:
        return Stay(self.country, as_datetime(self.start), as_datetime(self.end))


@dataclass(frozen=True, slots=True)
class ForecastResult:
    """Country tallies for the current window and for the window ending with the trip."""

    current: dict[str, int]
    forecast: dict[str, int]


def as_datetime(value: date | datetime) -> datetime:
    """Naive datetime for a date (local midnight) or a datetime (tzinfo dropped)."""

    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return datetime.combine(value, time.min)


def stay_from_leg(leg: TravelLeg) -> Stay:
    """Read a leg as a stay in its arrival country from arrival until departure."""

    arrival = wall_clock(leg.arrival.timestamp, resolve_zone(leg.arrival.tz_name))
    departure = wall_clock(leg.departure.timestamp, resolve_zone(leg.departure.tz_name))
    return Stay(leg.arrival.country, arrival, departure)


def overlap_days(start: datetime, end: datetime, window_start: datetime, window_end: datetime) -> int:
    """Whole days of overlap between [start, end) and [window_start, window_end)."""

    lo = max(start, window_start)
    hi = min(end, window_end)
    if lo >= hi:
        return 0
    return (hi - lo).days


def window_tally(stays: Iterable[Stay], window_end: datetime) -> dict[str, int]:
    """Days per country within [window_end - 365 days, window_end)."""

    window_start = window_end - _WINDOW
    totals: defaultdict[str, int] = defaultdict(int)
    for s in stays:
        days = overlap_days(s.start, s.end, window_start, window_end)
        if days > 0:
            totals[s.country] += days
    return dict(totals)


def _as_trips(hypothetical: HypotheticalTrip | Sequence[HypotheticalTrip]) -> list[HypotheticalTrip]:
    if isinstance(hypothetical, HypotheticalTrip):
        return [hypothetical]
    return list(hypothetical)


def forecast_tally(
    existing_legs: Iterable[TravelLeg],
    hypothetical: HypotheticalTrip | Sequence[HypotheticalTrip],
) -> dict[str, int]:
    """Days per country in the 365-day window ending at the (latest) hypothetical end.

    Existing legs and hypothetical trips are added independently.
    """

    trips = _as_trips(hypothetical)
    if not trips:
        raise ValueError("至少需要一个假设行程")
    stays = [stay_from_leg(leg) for leg in existing_legs]
    stays.extend(t.as_stay() for t in trips)
    window_end = max(as_datetime(t.end) for t in trips)
    return window_tally(stays, window_end)


def forecast(
    existing_legs: Iterable[TravelLeg],
    hypothetical: HypotheticalTrip | Sequence[HypotheticalTrip],
    as_of: date | None = None,
) -> ForecastResult:
    """Current 365-day totals and totals as they would be at the end of a planned trip.

    Args:
        existing_legs: Recorded legs, each read as a stay (see ``stay_from_leg``).
        hypothetical: One planned trip or several.
        as_of: End of the current window (exclusive). Defaults to today.

    Returns:
        ForecastResult with ``current`` over [as_of - 365, as_of) and ``forecast``
        over [end - 365, end).
    """

    legs = list(existing_legs)
    current = days_in_window(legs, as_of)
    return ForecastResult(current=current, forecast=forecast_tally(legs, hypothetical))


def days_in_window(legs: Iterable[TravelLeg], as_of: date | None = None) -> dict[str, int]:
    """Days per country in the last 365 days before ``as_of`` (today by default)."""

    window_end = as_datetime(as_of or date.today())
    return window_tally((stay_from_leg(leg) for leg in legs), window_end)


def days_per_country(legs: Iterable[TravelLeg]) -> dict[str, int]:
    """All-time stay days per country."""

    totals: defaultdict[str, int] = defaultdict(int)
    for leg in legs:
        s = stay_from_leg(leg)
        totals[s.country] += s.days
    return dict(totals)


def days_away(legs: Iterable[TravelLeg], as_of: date | None = None) -> int:
    """Total recorded stay days in the last 365 days."""

    return sum(days_in_window(legs, as_of).values())


def days_at_home(legs: Iterable[TravelLeg], as_of: date | None = None) -> int:
    """365 minus days away, never negative."""

    return max(0, WINDOW_DAYS - days_away(legs, as_of))


def tally_get(tally: dict[str, int], country: str) -> int:
    """Days for ``country`` in a tally, case-insensitive, 0 if absent."""

    key = country.casefold()
    return sum(v for k, v in tally.items() if k.casefold() == key)

"""Presence ledger: rebuild a dense day-by-day location record from travel legs.

For every calendar date touched by a leg, the midnight of that date is projected
into the departure and arrival timezones and compared against the leg's UTC
departure/arrival instants. This is what makes International Date Line
crossings come out right: a westbound Pacific flight can "skip" a local date,
and that date is attributed to ``IN_TRANSIT`` rather than to either country.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Iterable, Sequence

from residency_roll.models import IN_TRANSIT, UNKNOWN_LOCATION, DailyPresence, TravelLeg
from residency_roll.timeutils import (
    day_bounds_utc,
    iter_days,
    local_date,
    local_midnight_utc,
    resolve_zone,
    to_utc,
)

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True, slots=True)
class ResolvedLeg:
    """A leg with both instants normalized to UTC.

    A zone is None when its IANA id could not be resolved; the corresponding
    timestamp was then treated as UTC.
    """

    leg: TravelLeg
    departure_utc: datetime
    arrival_utc: datetime
    departure_zone: tzinfo | None
    arrival_zone: tzinfo | None

    @property
    def is_unresolved(self) -> bool:
        """Neither zone could be resolved."""

        return self.departure_zone is None and self.arrival_zone is None

    @property
    def departure_date(self) -> date:
        if self.is_unresolved:
            return self.leg.departure.timestamp.date()
        return local_date(self.departure_utc, self.departure_zone)

    @property
    def arrival_date(self) -> date:
        if self.is_unresolved:
            return self.leg.arrival.timestamp.date()
        return local_date(self.arrival_utc, self.arrival_zone)


def resolve_leg(leg: TravelLeg) -> ResolvedLeg:
    """Normalize a leg's departure/arrival to UTC through the timezone service."""

    dep_zone = resolve_zone(leg.departure.tz_name)
    arr_zone = resolve_zone(leg.arrival.tz_name)
    return ResolvedLeg(
        leg=leg,
        departure_utc=to_utc(leg.departure.timestamp, dep_zone),
        arrival_utc=to_utc(leg.arrival.timestamp, arr_zone),
        departure_zone=dep_zone,
        arrival_zone=arr_zone,
    )


def chronological(legs: Iterable[TravelLeg]) -> list[ResolvedLeg]:
    """Resolve legs and sort them by arrival (then departure, then input order)."""

    resolved = [resolve_leg(leg) for leg in legs]
    order = sorted(
        range(len(resolved)),
        key=lambda i: (resolved[i].arrival_utc, resolved[i].departure_utc, i),
    )
    return [resolved[i] for i in order]


@dataclass(slots=True)
class _DayDraft:
    midnight: str = ""
    in_transit: bool = False
    during: set[str] = field(default_factory=set)


class _LedgerDraft:
    """Date-keyed accumulator. Only ``freeze()`` output leaves this module."""

    def __init__(self) -> None:
        self._days: dict[date, _DayDraft] = {}

    def touch(self, day: date) -> _DayDraft:
        draft = self._days.get(day)
        if draft is None:
            draft = _DayDraft()
            self._days[day] = draft
        return draft

    def set_midnight(self, day: date, location: str, in_transit: bool) -> None:
        # First assignment for a date wins.
        draft = self.touch(day)
        if not draft.midnight:
            draft.midnight = location
            draft.in_transit = in_transit

    def add_during(self, day: date, country: str) -> None:
        self.touch(day).during.add(country)

    def fill_stay(self, day: date, country: str) -> None:
        """Gap-fill a date with an ordinary stay unless its midnight is already known."""

        draft = self._days.get(day)
        if draft is not None and draft.midnight:
            return
        draft = self.touch(day)
        draft.midnight = country
        draft.in_transit = False
        draft.during.add(country)

    def freeze(self) -> list[DailyPresence]:
        """Emit one immutable record per date, dense from first to last date."""

        if not self._days:
            return []
        out: list[DailyPresence] = []
        for day in iter_days(min(self._days), max(self._days)):
            draft = self._days.get(day)
            if draft is None:
                out.append(DailyPresence(day=day))
                continue
            out.append(
                DailyPresence(
                    day=day,
                    location_at_midnight=draft.midnight,
                    is_in_transit_at_midnight=draft.in_transit,
                    locations_during_day=frozenset(draft.during),
                )
            )
        return out


def _midnight_location(midnight_utc: datetime, r: ResolvedLeg) -> tuple[str, bool]:
    """Where the subject was at an absolute midnight instant, relative to one leg."""

    leg = r.leg
    if midnight_utc < r.departure_utc:
        return leg.departure.country, False
    if midnight_utc >= r.arrival_utc:
        return leg.arrival.country, False
    if leg.is_domestic:
        return leg.departure.country, False
    return IN_TRANSIT, True


def _apply_leg(draft: _LedgerDraft, r: ResolvedLeg) -> None:
    dep_tz = r.departure_zone or UTC
    arr_tz = r.arrival_zone or UTC
    dep_day = local_date(r.departure_utc, dep_tz)
    arr_day = local_date(r.arrival_utc, arr_tz)

    first, last = min(dep_day, arr_day), max(dep_day, arr_day)
    if arr_day < dep_day:
        # Arrived on an earlier local date than departure (date line): widen the range
        # so the dates on both sides of the crossing are projected too.
        first -= _ONE_DAY
        last += _ONE_DAY

    zones = [dep_tz] if str(dep_tz) == str(arr_tz) else [dep_tz, arr_tz]
    for day in iter_days(first, last):
        draft.touch(day)
        for tz in zones:
            midnight = local_midnight_utc(day, tz)
            if midnight is None:
                logger.debug("跳过不存在的本地午夜：%s %s", day, tz)
                continue
            location, in_transit = _midnight_location(midnight, r)
            draft.set_midnight(day, location, in_transit)

        day_start, day_end = day_bounds_utc(day, dep_tz)
        if day_start <= r.departure_utc < day_end:
            draft.add_during(day, r.leg.departure.country)
        day_start, day_end = day_bounds_utc(day, arr_tz)
        if day_start <= r.arrival_utc < day_end:
            draft.add_during(day, r.leg.arrival.country)


def _apply_leg_naive(draft: _LedgerDraft, r: ResolvedLeg) -> None:
    """Fallback when no zone resolves: raw wall-clock dates, no UTC conversion."""

    leg = r.leg
    logger.warning(
        "时区均无法识别（%r -> %r），按本地日期粗略处理该航段",
        leg.departure.tz_name,
        leg.arrival.tz_name,
    )
    dep_day = r.departure_date
    arr_day = r.arrival_date

    draft.set_midnight(dep_day, leg.departure.country, False)
    draft.add_during(dep_day, leg.departure.country)
    for day in iter_days(dep_day + _ONE_DAY, arr_day - _ONE_DAY):
        if leg.is_domestic:
            draft.set_midnight(day, leg.departure.country, False)
        else:
            draft.set_midnight(day, IN_TRANSIT, True)
    draft.set_midnight(arr_day, leg.arrival.country, False)
    draft.add_during(arr_day, leg.arrival.country)


def _fill_gaps(draft: _LedgerDraft, ordered: Sequence[ResolvedLeg]) -> None:
    """Fill the ordinary stay between an arrival and the next departure from the same country."""

    for prev, nxt in zip(ordered, ordered[1:]):
        country = prev.leg.arrival.country
        if country.casefold() != nxt.leg.departure.country.casefold():
            continue
        for day in iter_days(prev.arrival_date + _ONE_DAY, nxt.departure_date - _ONE_DAY):
            draft.fill_stay(day, country)


def build_ledger(legs: Iterable[TravelLeg]) -> list[DailyPresence]:
    """Build the daily presence ledger for one subject.

    Args:
        legs: Travel legs in any order. Not mutated.

    Returns:
        Records sorted by date, one per date, with no gaps between the first and
        last date. Dates nothing could be said about have an empty
        ``location_at_midnight``.
    """

    ordered = chronological(legs)
    draft = _LedgerDraft()
    for r in ordered:
        if r.is_unresolved:
            _apply_leg_naive(draft, r)
        else:
            _apply_leg(draft, r)
    _fill_gaps(draft, ordered)
    return draft.freeze()


def filter_ledger(
    ledger: Iterable[DailyPresence],
    start: date | None = None,
    end: date | None = None,
) -> list[DailyPresence]:
    """Keep records with ``start <= day <= end`` (either bound optional)."""

    return [
        p
        for p in ledger
        if (start is None or p.day >= start) and (end is None or p.day <= end)
    ]


def location_at(instant: datetime, legs: Iterable[TravelLeg]) -> str:
    """Return where the subject was at an absolute instant.

    Args:
        instant: Aware datetime (naive is treated as UTC).
        legs: Travel legs in any order.

    Returns:
        ``IN_TRANSIT`` while a leg is underway, the arrival country between an
        arrival and the next departure, otherwise ``UNKNOWN``.
    """

    t = to_utc(instant, None)
    resolved = sorted((resolve_leg(leg) for leg in legs), key=lambda r: r.departure_utc)
    for i, r in enumerate(resolved):
        if r.departure_utc <= t < r.arrival_utc:
            return IN_TRANSIT
        if t < r.arrival_utc:
            continue
        next_departure = next(
            (o.departure_utc for j, o in enumerate(resolved) if j != i and o.departure_utc >= r.arrival_utc),
            None,
        )
        if next_departure is None or t < next_departure:
            return r.leg.arrival.country
    return UNKNOWN_LOCATION

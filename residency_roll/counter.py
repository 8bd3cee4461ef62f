"""Rule-based day counting over a presence ledger."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from residency_roll.ledger import filter_ledger
from residency_roll.models import APPROACHING_MARGIN_DAYS, IN_TRANSIT, DailyPresence
from residency_roll.rules import DEFAULT_REGISTRY, ResidencyRule, RuleKind, RuleRegistry, describe

logger = logging.getLogger(__name__)


def _midnight_country(p: DailyPresence) -> str | None:
    if p.is_in_transit_at_midnight or not p.location_at_midnight or p.location_at_midnight == IN_TRANSIT:
        return None
    return p.location_at_midnight


def _present_during(p: DailyPresence) -> set[str]:
    """Countries the subject was in at any moment of the date (midnight included)."""

    present = {c for c in p.locations_during_day if c and c != IN_TRANSIT}
    midnight = _midnight_country(p)
    if midnight is not None:
        present.add(midnight)
    return present


def _counts_for(country: str, p: DailyPresence, rule: ResidencyRule) -> bool:
    key = country.casefold()
    if rule.kind is RuleKind.MIDNIGHT:
        midnight = _midnight_country(p)
        return midnight is not None and midnight.casefold() == key
    return any(c.casefold() == key for c in _present_during(p))


def _transit_exempt_days(country: str, days: Sequence[DailyPresence], rule: ResidencyRule) -> set[date]:
    """Dates excluded by a country's transit exception.

    Always empty: the carve-out (< 24h present while transiting between two
    foreign points) is recognised on the rule but not applied, so every
    partial-day is counted.
    """

    # TODO: detect foreign -> country -> foreign connections shorter than 24h from the legs.
    if rule.has_transit_exception and days:
        logger.debug("%s 的过境豁免未实现，按全部部分日计数", country)
    return set()


def count_days(
    ledger: Iterable[DailyPresence],
    registry: RuleRegistry | None = None,
    start: date | None = None,
    end: date | None = None,
) -> dict[str, int]:
    """Tally counted days per country.

    Each record adds at most one day per country, and a record in transit at
    midnight adds to no country at all. Otherwise midnight-rule countries count
    the record if they are the location at midnight, and partial-day countries
    count it if the subject was there at any moment of the date. A single date
    may therefore count for two countries.

    Args:
        ledger: Daily presence records.
        registry: Country rules. Built-ins if None.
        start: Optional first date (inclusive).
        end: Optional last date (inclusive).

    Returns:
        Country name -> days. Countries with no counted day are absent.
    """

    reg = registry or DEFAULT_REGISTRY
    tally: Counter[str] = Counter()
    for p in filter_ledger(ledger, start, end):
        if p.is_in_transit_at_midnight:
            continue
        midnight = _midnight_country(p)
        if midnight is not None and reg.rule_for(midnight).kind is RuleKind.MIDNIGHT:
            tally[midnight] += 1
        for country in _present_during(p):
            if reg.rule_for(country).kind is RuleKind.PARTIAL_DAY:
                tally[country] += 1
    return {k: v for k, v in tally.items() if v > 0}


def count_for_country(
    country: str,
    ledger: Iterable[DailyPresence],
    registry: RuleRegistry | None = None,
    start: date | None = None,
    end: date | None = None,
) -> int:
    """Count days for one country under its own rule (name matched case-insensitively).

    Unlike ``count_days``, a partial-day country still counts a date it was
    present on when that date's midnight was spent in transit.
    """

    rule = (registry or DEFAULT_REGISTRY).rule_for(country)
    days = [p for p in filter_ledger(ledger, start, end) if _counts_for(country, p, rule)]
    if rule.kind is RuleKind.PARTIAL_DAY:
        exempt = _transit_exempt_days(country, days, rule)
        days = [p for p in days if p.day not in exempt]
    return len(days)


@dataclass(frozen=True, slots=True)
class CountrySummary:
    """Per-country residency status against its threshold."""

    country: str
    total_days: int
    rule_type: str
    threshold_days: int
    days_until_threshold: int
    is_approaching_threshold: bool


def residency_summary(
    tally: dict[str, int],
    registry: RuleRegistry | None = None,
    approaching_margin_days: int = APPROACHING_MARGIN_DAYS,
) -> list[CountrySummary]:
    """Compare each country's tally with its rule threshold, largest tally first."""

    reg = registry or DEFAULT_REGISTRY
    out: list[CountrySummary] = []
    for country, days in sorted(tally.items(), key=lambda kv: (-kv[1], kv[0])):
        rule = reg.rule_for(country)
        remaining = rule.threshold_days - days
        out.append(
            CountrySummary(
                country=country,
                total_days=days,
                rule_type=describe(rule),
                threshold_days=rule.threshold_days,
                days_until_threshold=max(0, remaining),
                is_approaching_threshold=0 < remaining <= approaching_margin_days,
            )
        )
    return out

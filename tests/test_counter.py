"""
Tests for rule-based day counting.
"""

from datetime import date

from residency_roll.counter import count_days, count_for_country, residency_summary
from residency_roll.ledger import build_ledger
from residency_roll.models import IN_TRANSIT, DailyPresence
from residency_roll.rules import DEFAULT_REGISTRY, ResidencyRule, RuleKind


class TestScenarios:
    """Reference trips."""

    def test_usa_late_arrival_counts_two_days(self, usa_weekend_legs):
        """Partial-day rule: Friday and Saturday both count."""
        ledger = build_ledger(usa_weekend_legs)

        assert count_for_country("USA", ledger) == 2
        assert count_days(ledger)["USA"] == 2

    def test_uk_late_arrival_counts_one_day(self, uk_weekend_legs):
        """Midnight rule: only Saturday counts."""
        ledger = build_ledger(uk_weekend_legs)

        assert count_for_country("United Kingdom", ledger) == 1
        assert count_days(ledger)["United Kingdom"] == 1

    def test_one_date_can_count_for_two_countries(self, usa_weekend_legs):
        """Friday counts for Canada (midnight) and USA (partial-day)."""
        tally = count_days(build_ledger(usa_weekend_legs))

        assert tally == {"Canada": 1, "USA": 2}

    def test_stay_with_gap_fill(self, canada_stay_legs):
        """Three Canadian midnights, two US partial days."""
        tally = count_days(build_ledger(canada_stay_legs))

        assert tally == {"USA": 2, "Canada": 3}


class TestTransit:
    """Transit records count for nobody."""

    def test_transit_date_excluded(self):
        """IN_TRANSIT never appears in a tally."""
        ledger = [
            DailyPresence(date(2025, 1, 1), "Canada", False, frozenset({"Canada"})),
            DailyPresence(date(2025, 1, 2), IN_TRANSIT, True, frozenset()),
            DailyPresence(date(2025, 1, 3), "USA", False, frozenset({"USA"})),
        ]

        tally = count_days(ledger)

        assert tally == {"Canada": 1, "USA": 1}
        assert count_for_country("Canada", ledger) == 1

    def test_overnight_flight_day_not_counted_for_arrival_country(self, make_leg, at_utc):
        """London -> New York over midnight: the arrival date adds nothing to the tally."""
        legs = [
            make_leg(
                "United Kingdom", "Europe/London", at_utc(2025, 3, 14, 22, 0),
                "USA", "America/New_York", at_utc(2025, 3, 15, 7, 0),
            )
        ]
        ledger = build_ledger(legs)
        arrival_day = [p for p in ledger if p.day == date(2025, 3, 15)][0]

        assert arrival_day.is_in_transit_at_midnight
        assert "USA" in arrival_day.locations_during_day
        assert count_days(ledger, start=date(2025, 3, 15), end=date(2025, 3, 15)) == {}
        assert count_days(ledger) == {"United Kingdom": 1}

    def test_single_country_count_keeps_partial_day(self, make_leg, at_utc):
        """Per-country count still sees the partial US day."""
        legs = [
            make_leg(
                "United Kingdom", "Europe/London", at_utc(2025, 3, 14, 22, 0),
                "USA", "America/New_York", at_utc(2025, 3, 15, 7, 0),
            )
        ]

        assert count_for_country("USA", build_ledger(legs)) == 1

    def test_undetermined_dates_count_for_nobody(self):
        """Empty records add nothing."""
        assert count_days([DailyPresence(date(2025, 1, 1))]) == {}


class TestFilters:
    """Date range and registry options."""

    def test_start_end_inclusive(self, canada_stay_legs):
        """Only dates in range are counted."""
        ledger = build_ledger(canada_stay_legs)

        assert count_days(ledger, start=date(2025, 7, 3)) == {"Canada": 2, "USA": 1}
        assert count_for_country("Canada", ledger, end=date(2025, 7, 2)) == 1

    def test_case_insensitive_country(self, usa_weekend_legs):
        """Country lookups ignore case."""
        ledger = build_ledger(usa_weekend_legs)

        assert count_for_country("usa", ledger) == 2
        assert count_for_country("france", ledger) == 0

    def test_registry_override_changes_rule(self, uk_weekend_legs):
        """Switching the UK to partial-day counts both dates."""
        registry = DEFAULT_REGISTRY.with_overrides(
            {"United Kingdom": ResidencyRule("GB", "United Kingdom", RuleKind.PARTIAL_DAY)}
        )
        ledger = build_ledger(uk_weekend_legs)

        assert count_for_country("United Kingdom", ledger, registry) == 2
        assert count_days(ledger, registry) == {"Ireland": 1, "United Kingdom": 2}


class TestResidencySummary:
    """Threshold comparison."""

    def test_summary_rows(self):
        """Sorted by days; approaching within the margin; floored at zero."""
        rows = residency_summary({"Canada": 160, "USA": 100, "France": 200})

        assert [r.country for r in rows] == ["France", "Canada", "USA"]
        france, canada, usa = rows
        assert france.days_until_threshold == 0
        assert not france.is_approaching_threshold
        assert canada.days_until_threshold == 23
        assert canada.is_approaching_threshold
        assert canada.rule_type == "Midnight"
        assert usa.rule_type == "PartialDay"
        assert not usa.is_approaching_threshold

    def test_custom_margin(self):
        """Margin is configurable."""
        rows = residency_summary({"USA": 100}, approaching_margin_days=90)
        assert rows[0].is_approaching_threshold

    def test_at_threshold_not_approaching(self):
        """Zero remaining is past approaching."""
        rows = residency_summary({"Canada": 183})
        assert rows[0].days_until_threshold == 0
        assert not rows[0].is_approaching_threshold

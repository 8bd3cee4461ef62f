"""
Pytest fixtures shared by the residency_roll test suite.
"""

from datetime import UTC, datetime

import pytest

from residency_roll.models import Endpoint, TravelLeg


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """Aware UTC datetime shorthand."""
    return datetime(year, month, day, hour, minute, tzinfo=UTC)


def _make_leg(
    dep_country: str,
    dep_tz: str,
    dep_ts: datetime,
    arr_country: str,
    arr_tz: str,
    arr_ts: datetime,
    dep_city: str = "",
    arr_city: str = "",
) -> TravelLeg:
    return TravelLeg(
        departure=Endpoint(dep_country, dep_city, dep_ts, dep_tz),
        arrival=Endpoint(arr_country, arr_city, arr_ts, arr_tz),
    )


@pytest.fixture
def make_leg():
    """Factory for TravelLeg objects."""
    return _make_leg


@pytest.fixture
def at_utc():
    """Factory for aware UTC datetimes."""
    return utc


@pytest.fixture
def usa_weekend_legs():
    """Arrive USA 23:50 Friday, leave 02:00 Saturday (America/New_York, EDT)."""
    return [
        _make_leg(
            "Canada", "America/Toronto", utc(2025, 3, 14, 23, 0),
            "USA", "America/New_York", utc(2025, 3, 15, 3, 50),
            "Toronto", "New York",
        ),
        _make_leg(
            "USA", "America/New_York", utc(2025, 3, 15, 6, 0),
            "Canada", "America/Toronto", utc(2025, 3, 15, 7, 30),
            "New York", "Toronto",
        ),
    ]


@pytest.fixture
def uk_weekend_legs():
    """Arrive UK 23:50 Friday, leave 02:00 Saturday (GMT)."""
    return [
        _make_leg(
            "Ireland", "Europe/Dublin", utc(2025, 3, 14, 22, 0),
            "United Kingdom", "Europe/London", utc(2025, 3, 14, 23, 50),
            "Dublin", "London",
        ),
        _make_leg(
            "United Kingdom", "Europe/London", utc(2025, 3, 15, 2, 0),
            "Ireland", "Europe/Dublin", utc(2025, 3, 15, 3, 30),
            "London", "Dublin",
        ),
    ]


@pytest.fixture
def canada_stay_legs():
    """Seattle -> Vancouver on July 1, back on July 4."""
    return [
        _make_leg(
            "USA", "America/Los_Angeles", utc(2025, 7, 1, 17, 0),
            "Canada", "America/Vancouver", utc(2025, 7, 1, 20, 0),
            "Seattle", "Vancouver",
        ),
        _make_leg(
            "Canada", "America/Vancouver", utc(2025, 7, 4, 17, 0),
            "USA", "America/Los_Angeles", utc(2025, 7, 4, 20, 0),
            "Vancouver", "Seattle",
        ),
    ]

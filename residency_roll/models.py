"""Data models for travel legs and daily presence records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Final


@dataclass(frozen=True, slots=True)
class Endpoint:
    """One end of a travel leg.

    Attributes:
        country: Country name, e.g. "Canada".
        city: City name. Informational only.
        timestamp: Departure/arrival time. Either timezone-aware (explicit offset)
            or naive wall-clock time in ``tz_name``.
        tz_name: IANA timezone of the endpoint, e.g. "America/Vancouver".
        airport_code: Optional IATA code, resolved to city/country/zone elsewhere.
    """

    country: str
    city: str
    timestamp: datetime
    tz_name: str
    airport_code: str | None = None


@dataclass(frozen=True, slots=True)
class TravelLeg:
    """A single journey segment from one country to another (or the same one)."""

    departure: Endpoint
    arrival: Endpoint
    carrier: str | None = None

    @property
    def is_domestic(self) -> bool:
        """True if departure and arrival are in the same country."""

        return self.departure.country.casefold() == self.arrival.country.casefold()


@dataclass(frozen=True, slots=True)
class DailyPresence:
    """Where the subject was on one calendar date.

    Note:
        ``day`` is a naive date bucket, not an instant. ``location_at_midnight``
        is a country name, ``IN_TRANSIT``, or "" when it could not be determined.
    """

    day: date
    location_at_midnight: str = ""
    is_in_transit_at_midnight: bool = False
    locations_during_day: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_undetermined(self) -> bool:
        return not self.location_at_midnight


IN_TRANSIT: Final[str] = "IN_TRANSIT"
UNKNOWN_LOCATION: Final[str] = "UNKNOWN"

DEFAULT_TZ: Final[str] = "UTC"
DEFAULT_THRESHOLD_DAYS: Final[int] = 183
WINDOW_DAYS: Final[int] = 365
APPROACHING_MARGIN_DAYS: Final[int] = 30
STANDARD_DURATIONS: Final[tuple[int, ...]] = (7, 14, 21)

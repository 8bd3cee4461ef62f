"""Timezone service: zone lookup, UTC conversion and local day boundaries.

All conversion helpers that can fail return ``None`` instead of raising, so
callers decide the fallback explicitly.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from functools import lru_cache
from typing import Iterator

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def tzinfo_from_name(tz_name: str) -> ZoneInfo:
    """Create tzinfo from an IANA timezone name.

    Args:
        tz_name: Timezone name like "America/Toronto".

    Returns:
        ZoneInfo instance.

    Raises:
        ValueError: If timezone name is invalid on this system.
    """

    zone = resolve_zone(tz_name)
    if zone is None:
        raise ValueError(f"无效时区：{tz_name!r}。例如可用：America/Toronto, Europe/London")
    return zone


@lru_cache(maxsize=512)
def resolve_zone(tz_name: str | None) -> ZoneInfo | None:
    """Look up an IANA zone, or None if it is unknown on this system.

    Unknown zones are logged once per name (the lookup is cached).
    """

    if not tz_name or not tz_name.strip():
        logger.warning("缺少时区，按UTC处理")
        return None
    try:
        return ZoneInfo(tz_name.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # ZoneInfo raises ZoneInfoNotFoundError / ValueError / IsADirectoryError (platform dependent)
        logger.warning("未知时区：%r，按UTC处理", tz_name)
        return None


def to_utc(ts: datetime, zone: tzinfo | None) -> datetime:
    """Normalize a timestamp to an aware UTC datetime.

    Args:
        ts: Aware timestamp, or naive wall-clock time in ``zone``.
        zone: Endpoint zone. If None, naive timestamps are treated as UTC.

    Returns:
        Aware datetime in UTC.
    """

    if ts.tzinfo is not None:
        return ts.astimezone(UTC)
    if zone is None:
        return ts.replace(tzinfo=UTC)
    return ts.replace(tzinfo=zone).astimezone(UTC)


def local_date(instant: datetime, zone: tzinfo | None) -> date:
    """Calendar date of an aware instant in ``zone`` (UTC if None)."""

    return instant.astimezone(zone or UTC).date()


def wall_clock(ts: datetime, zone: tzinfo | None) -> datetime:
    """Naive local wall-clock time of a timestamp in its own zone."""

    if ts.tzinfo is None:
        return ts
    if zone is None:
        return ts.replace(tzinfo=None)
    return ts.astimezone(zone).replace(tzinfo=None)


def wall_to_utc(local: datetime, zone: tzinfo) -> datetime | None:
    """Convert a naive local time to UTC, or None if it does not exist in ``zone``.

    A wall time inside a DST spring-forward gap does not round-trip, which is
    how nonexistent times are detected.
    """

    instant = local.replace(tzinfo=zone).astimezone(UTC)
    if instant.astimezone(zone).replace(tzinfo=None) != local:
        return None
    return instant


def local_midnight_utc(day: date, zone: tzinfo) -> datetime | None:
    """UTC instant of local 00:00 on ``day`` in ``zone``, or None if 00:00 is skipped."""

    return wall_to_utc(datetime.combine(day, time.min), zone)


def day_bounds_utc(day: date, zone: tzinfo) -> tuple[datetime, datetime]:
    """UTC half-open interval [start, end) covering the local date ``day`` in ``zone``.

    Unlike ``local_midnight_utc`` this never fails: when 00:00 falls in a DST
    gap, the pre-transition offset maps it onto the transition instant, which is
    exactly when that local date begins.
    """

    start = datetime.combine(day, time.min).replace(tzinfo=zone).astimezone(UTC)
    end = datetime.combine(day + timedelta(days=1), time.min).replace(tzinfo=zone).astimezone(UTC)
    return start, end


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date in [start, end] inclusive."""

    cur = start
    one = timedelta(days=1)
    while cur <= end:
        yield cur
        cur += one


def parse_dt(text: str, tz_name: str | None = None) -> datetime:
    """Parse user-provided datetime text.

    Supported formats:
      - "YYYY-MM-DD"
      - "YYYY-MM-DD HH:MM[:SS]"
      - "YYYY-MM-DDTHH:MM[:SS]"
      - with optional timezone offset, e.g. "+08:00" or "Z"

    If timezone is missing and ``tz_name`` is given, the result is localized to
    that zone; otherwise naive strings stay naive (wall-clock of the endpoint).

    Args:
        text: Datetime string.
        tz_name: Optional IANA timezone name for naive strings.

    Returns:
        Datetime.

    Raises:
        ValueError: If cannot parse.
    """

    s = text.strip().replace("T", " ")
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValueError(f"无法解析时间：{text!r}。建议格式：2025-12-18 09:30:00") from exc

    if tz_name is None:
        return dt
    tz = tzinfo_from_name(tz_name)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)

"""CSV input/output for travel legs and presence ledgers."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Sequence

from residency_roll.models import DEFAULT_TZ, DailyPresence, Endpoint, TravelLeg
from residency_roll.timeutils import parse_dt

logger = logging.getLogger(__name__)

LEG_FIELDS: tuple[str, ...] = (
    "DepartureCountry",
    "DepartureCity",
    "DepartureDateTime",
    "DepartureTimezone",
    "DepartureIataCode",
    "ArrivalCountry",
    "ArrivalCity",
    "ArrivalDateTime",
    "ArrivalTimezone",
    "ArrivalIataCode",
)
_REQUIRED_LEG_FIELDS: tuple[str, ...] = (
    "DepartureCountry",
    "DepartureDateTime",
    "ArrivalCountry",
    "ArrivalDateTime",
)
_STAY_FIELDS: tuple[str, ...] = ("CountryName", "StartDate", "EndDate")


@dataclass(frozen=True, slots=True)
class CsvSummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _text(row: Mapping[str, str | None], key: str, default: str = "") -> str:
    return (row.get(key) or default).strip()


def _leg_from_row(row: Mapping[str, str | None]) -> TravelLeg:
    dep_code = _text(row, "DepartureIataCode")
    arr_code = _text(row, "ArrivalIataCode")
    return TravelLeg(
        departure=Endpoint(
            country=_text(row, "DepartureCountry"),
            city=_text(row, "DepartureCity"),
            timestamp=parse_dt(row["DepartureDateTime"] or ""),
            tz_name=_text(row, "DepartureTimezone", DEFAULT_TZ),
            airport_code=dep_code or None,
        ),
        arrival=Endpoint(
            country=_text(row, "ArrivalCountry"),
            city=_text(row, "ArrivalCity"),
            timestamp=parse_dt(row["ArrivalDateTime"] or ""),
            tz_name=_text(row, "ArrivalTimezone", DEFAULT_TZ),
            airport_code=arr_code or None,
        ),
        carrier=_text(row, "Carrier") or None,
    )


def _leg_from_stay_row(row: Mapping[str, str | None]) -> TravelLeg:
    """Legacy stay row: arrived in CountryName at StartDate, left at EndDate."""

    country = _text(row, "CountryName")
    tz_name = _text(row, "Timezone", DEFAULT_TZ)
    return TravelLeg(
        departure=Endpoint(country=country, city="", timestamp=parse_dt(row["EndDate"] or ""), tz_name=tz_name),
        arrival=Endpoint(country=country, city="", timestamp=parse_dt(row["StartDate"] or ""), tz_name=tz_name),
    )


def _row_parser(fieldnames: Sequence[str]):
    names = set(fieldnames)
    if names.issuperset(_REQUIRED_LEG_FIELDS):
        return _leg_from_row
    if names.issuperset(_STAY_FIELDS):
        return _leg_from_stay_row
    raise KeyError(f"CSV缺少必要字段：需要 {list(_REQUIRED_LEG_FIELDS)} 或 {list(_STAY_FIELDS)}。实际字段：{list(fieldnames)}")


def iter_legs(csv_path: str | Path) -> Iterator[TravelLeg]:
    """Yield TravelLeg objects from a trips CSV.

    Args:
        csv_path: Path to the CSV. Either the leg format (``LEG_FIELDS``; the
            IATA code columns are optional) or the legacy stay format
            ``CountryName,StartDate,EndDate``.

    Yields:
        Legs parsed successfully. Rows with unparseable times are skipped.

    Raises:
        KeyError: If the header matches neither format.
    """

    p = Path(csv_path)
    with p.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            return
        parse_row = _row_parser(reader.fieldnames)
        for row in reader:
            try:
                yield parse_row(row)
            except (ValueError, TypeError):
                # 损坏/空行直接跳过
                continue


def load_legs(csv_path: str | Path) -> tuple[list[TravelLeg], CsvSummary]:
    """Load all legs into memory.

    Args:
        csv_path: Path to the CSV.

    Returns:
        (legs, summary)
    """

    p = Path(csv_path)
    rows_total = 0
    parsed: list[TravelLeg] = []
    fieldnames: Sequence[str] = ()

    with p.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = reader.fieldnames or ()
        if fieldnames:
            parse_row = _row_parser(fieldnames)
            for row in reader:
                rows_total += 1
                try:
                    parsed.append(parse_row(row))
                except (ValueError, TypeError):
                    continue

    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("CSV中有 %s 行解析失败已跳过", summary.rows_skipped)
    return parsed, summary


def _format_ts(endpoint: Endpoint) -> str:
    return endpoint.timestamp.isoformat(sep=" ")


def write_legs_csv(legs: Iterable[TravelLeg], out_path: str | Path) -> None:
    """Export legs in the leg format (round-trips through ``load_legs``)."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=list(LEG_FIELDS))
        w.writeheader()
        for leg in legs:
            w.writerow(
                {
                    "DepartureCountry": leg.departure.country,
                    "DepartureCity": leg.departure.city,
                    "DepartureDateTime": _format_ts(leg.departure),
                    "DepartureTimezone": leg.departure.tz_name,
                    "DepartureIataCode": leg.departure.airport_code or "",
                    "ArrivalCountry": leg.arrival.country,
                    "ArrivalCity": leg.arrival.city,
                    "ArrivalDateTime": _format_ts(leg.arrival),
                    "ArrivalTimezone": leg.arrival.tz_name,
                    "ArrivalIataCode": leg.arrival.airport_code or "",
                }
            )


def ledger_rows(ledger: Iterable[DailyPresence]) -> list[dict[str, object]]:
    """Flatten ledger records into plain dict rows (CSV / dataframe friendly)."""

    return [
        {
            "date": p.day.isoformat(),
            "location_at_midnight": p.location_at_midnight,
            "in_transit_at_midnight": p.is_in_transit_at_midnight,
            "locations_during_day": ";".join(sorted(p.locations_during_day)),
        }
        for p in ledger
    ]


def write_ledger_csv(ledger: Iterable[DailyPresence], out_path: str | Path) -> None:
    """Write the daily presence ledger to CSV."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(
            f,
            fieldnames=["date", "location_at_midnight", "in_transit_at_midnight", "locations_during_day"],
        )
        w.writeheader()
        w.writerows(ledger_rows(ledger))

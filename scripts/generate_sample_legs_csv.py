from __future__ import annotations

import argparse
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from zoneinfo import ZoneInfo

from residency_roll.csv_io import write_legs_csv
from residency_roll.models import Endpoint, TravelLeg


@dataclass(frozen=True, slots=True)
class Airport:
    code: str
    city: str
    country: str
    tz_name: str


AIRPORTS: list[Airport] = [
    Airport("YVR", "Vancouver", "Canada", "America/Vancouver"),
    Airport("YYZ", "Toronto", "Canada", "America/Toronto"),
    Airport("JFK", "New York", "USA", "America/New_York"),
    Airport("LAX", "Los Angeles", "USA", "America/Los_Angeles"),
    Airport("LHR", "London", "United Kingdom", "Europe/London"),
    Airport("SYD", "Sydney", "Australia", "Australia/Sydney"),
    Airport("AKL", "Auckland", "New Zealand", "Pacific/Auckland"),
    Airport("NRT", "Tokyo", "Japan", "Asia/Tokyo"),
]


def generate_legs(*, count: int, seed: int, start_utc: datetime, home: Airport) -> list[TravelLeg]:
    """Generate a chain of plausible legs: stay a while, fly somewhere, repeat."""

    rng = random.Random(seed)
    cur = start_utc
    here = home
    legs: list[TravelLeg] = []

    for _ in range(count):
        # Mostly fly home after being abroad, otherwise go somewhere new
        if here.country != home.country and rng.random() < 0.6:
            there = home
        else:
            there = rng.choice([a for a in AIRPORTS if a.country != here.country])

        cur = cur + timedelta(days=rng.randint(2, 40), hours=rng.randint(0, 23))
        flight = timedelta(hours=rng.uniform(1.5, 16.0))
        dep_local = cur.astimezone(ZoneInfo(here.tz_name)).replace(tzinfo=None, second=0, microsecond=0)
        arr_local = (cur + flight).astimezone(ZoneInfo(there.tz_name)).replace(tzinfo=None, second=0, microsecond=0)

        legs.append(
            TravelLeg(
                departure=Endpoint(here.country, here.city, dep_local, here.tz_name, here.code),
                arrival=Endpoint(there.country, there.city, arr_local, there.tz_name, there.code),
            )
        )
        cur = cur + flight
        here = there
    return legs


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake trips.csv for demo/testing (privacy-safe).")
    p.add_argument("--out", type=str, default="sample_data/trips.csv", help="Output CSV path")
    p.add_argument("--legs", type=int, default=30, help="Number of legs")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument("--start", type=str, default="2025-01-01 08:00:00", help="Start time in UTC")
    p.add_argument("--home", type=str, default="YVR", help="Home airport code")
    args = p.parse_args()

    by_code = {a.code: a for a in AIRPORTS}
    if args.home not in by_code:
        p.error(f"unknown airport {args.home!r}; choose from {', '.join(sorted(by_code))}")

    start_utc = datetime.fromisoformat(args.start).replace(tzinfo=ZoneInfo("UTC"))
    legs = generate_legs(count=args.legs, seed=args.seed, start_utc=start_utc, home=by_code[args.home])

    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    write_legs_csv(legs, out_path)

    print(f"Generated: {out_path} (legs={len(legs)}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

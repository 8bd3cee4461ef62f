"""Module entry point: python -m residency_roll ..."""

from __future__ import annotations

from residency_roll.cli import main


if __name__ == "__main__":
    raise SystemExit(main())

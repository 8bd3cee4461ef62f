"""Command-line interface for residency_roll.

Run:
    python -m residency_roll summary --csv trips.csv
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from datetime import date

from residency_roll.counter import count_days, count_for_country, residency_summary
from residency_roll.csv_io import ledger_rows, load_legs, write_ledger_csv
from residency_roll.forecast import HypotheticalTrip, days_at_home, days_away, forecast
from residency_roll.ledger import build_ledger, filter_ledger, location_at
from residency_roll.models import (
    APPROACHING_MARGIN_DAYS,
    DEFAULT_THRESHOLD_DAYS,
    DEFAULT_TZ,
    STANDARD_DURATIONS,
)
from residency_roll.rules import DEFAULT_REGISTRY, RuleRegistry, load_rules
from residency_roll.threshold import max_end_date, standard_duration_forecasts
from residency_roll.timeutils import parse_dt


def _date_arg(text: str) -> date:
    try:
        return date.fromisoformat(text.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"无法解析日期：{text!r}。建议格式：2025-12-18") from exc


def _registry(args: argparse.Namespace) -> RuleRegistry:
    if args.rules:
        return load_rules(args.rules)
    return DEFAULT_REGISTRY


def _print_tally(title: str, tally: dict[str, int]) -> None:
    print(f"### {title}")
    if not tally:
        print("（无）")
    for country, days in sorted(tally.items(), key=lambda kv: (-kv[1], kv[0])):
        print(f"{country}\t{days}")
    print()


def _cmd_ledger(args: argparse.Namespace) -> int:
    legs, summary = load_legs(args.csv)
    ledger = filter_ledger(build_ledger(legs), args.start, args.end)
    if args.out:
        write_ledger_csv(ledger, args.out)
        print(f"已导出：{args.out}（{len(ledger)} 天，航段={summary.rows_parsed}）")
        return 0
    for row in ledger_rows(ledger):
        print(f"{row['date']}\t{row['location_at_midnight'] or '-'}\t{row['locations_during_day']}")
    return 0


def _cmd_count(args: argparse.Namespace) -> int:
    legs, _ = load_legs(args.csv)
    registry = _registry(args)
    ledger = build_ledger(legs)
    if args.country:
        days = count_for_country(args.country, ledger, registry, args.start, args.end)
        rule = registry.rule_for(args.country)
        print(f"{args.country}: {days} 天（规则={rule.kind.value}，阈值={rule.threshold_days}）")
        return 0
    _print_tally("按国家计数", count_days(ledger, registry, args.start, args.end))
    return 0


def _cmd_summary(args: argparse.Namespace) -> int:
    legs, _ = load_legs(args.csv)
    registry = _registry(args)
    tally = count_days(build_ledger(legs), registry, args.start, args.end)
    rows = residency_summary(tally, registry, args.margin)
    if args.json:
        print(json.dumps([asdict(r) for r in rows], ensure_ascii=False, indent=2))
        return 0
    print("### 居留汇总")
    for r in rows:
        flag = "  ⚠ 接近阈值" if r.is_approaching_threshold else ""
        print(
            f"{r.country}\t{r.total_days}/{r.threshold_days} 天\t{r.rule_type}\t"
            f"剩余={r.days_until_threshold}{flag}"
        )
    print()
    print(f"近365天在外={days_away(legs, args.as_of)} 天，在家={days_at_home(legs, args.as_of)} 天")
    return 0


def _cmd_forecast(args: argparse.Namespace) -> int:
    legs, _ = load_legs(args.csv)
    trip = HypotheticalTrip(args.country, args.trip_start, args.trip_end)
    result = forecast(legs, trip, as_of=args.as_of)
    if args.json:
        print(json.dumps(asdict(result), ensure_ascii=False, indent=2))
        return 0
    _print_tally("当前（近365天）", result.current)
    _print_tally(f"行程结束时（截至 {args.trip_end.isoformat()}）", result.forecast)
    return 0


def _cmd_max_end_date(args: argparse.Namespace) -> int:
    legs, _ = load_legs(args.csv)
    res = max_end_date(legs, args.country, args.trip_start, args.day_limit)
    print(f"最晚结束日期={res.end_date.isoformat()}，届时 {args.country} 天数={res.days_at_limit}/{args.day_limit}")
    return 0


def _cmd_durations(args: argparse.Namespace) -> int:
    legs, _ = load_legs(args.csv)
    items = standard_duration_forecasts(legs, args.country, args.trip_start, args.day_limit, args.durations)
    print(f"### {args.country}：从 {args.trip_start.isoformat()} 出发")
    for it in items:
        flag = "超出" if it.exceeds_limit else "未超出"
        print(f"{it.duration_days} 天\t结束={it.end_date.isoformat()}\t合计={it.total_days}\t{flag}")
    return 0


def _cmd_where(args: argparse.Namespace) -> int:
    legs, _ = load_legs(args.csv)
    instant = parse_dt(args.at, args.tz)
    print(location_at(instant, legs))
    return 0


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--csv", type=str, default="trips.csv", help="航段CSV路径")
    p.add_argument("--rules", type=str, default=None, help="国家规则JSON（覆盖/补充内置规则）")


def _add_range(p: argparse.ArgumentParser) -> None:
    p.add_argument("--start", type=_date_arg, default=None, help="起始日期（含），例如 2025-01-01")
    p.add_argument("--end", type=_date_arg, default=None, help="结束日期（含），例如 2025-12-31")


def _add_trip(p: argparse.ArgumentParser) -> None:
    p.add_argument("--country", type=str, required=True, help="目标国家，例如 Canada")
    p.add_argument("--trip-start", type=_date_arg, required=True, help="行程开始日期")
    p.add_argument("--day-limit", type=int, default=DEFAULT_THRESHOLD_DAYS, help="天数上限（默认183）")


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="residency_roll")
    p.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_led = sub.add_parser("ledger", help="按天重建所在地（午夜所在地 + 当天到过的国家）")
    _add_common(p_led)
    _add_range(p_led)
    p_led.add_argument("--out", type=str, default=None, help="导出CSV路径（不填则打印）")
    p_led.set_defaults(func=_cmd_ledger)

    p_cnt = sub.add_parser("count", help="按各国规则统计居留天数")
    _add_common(p_cnt)
    _add_range(p_cnt)
    p_cnt.add_argument("--country", type=str, default=None, help="只统计该国家")
    p_cnt.set_defaults(func=_cmd_count)

    p_sum = sub.add_parser("summary", help="居留天数与阈值对比")
    _add_common(p_sum)
    _add_range(p_sum)
    p_sum.add_argument("--margin", type=int, default=APPROACHING_MARGIN_DAYS, help="剩余天数不超过该值时提示接近阈值")
    p_sum.add_argument("--as-of", type=_date_arg, default=None, help="近365天窗口的截止日期（默认今天）")
    p_sum.add_argument("--json", action="store_true", help="输出JSON")
    p_sum.set_defaults(func=_cmd_summary)

    p_fc = sub.add_parser("forecast", help="假设新增一次行程后的365天窗口天数（粗略估算）")
    _add_common(p_fc)
    p_fc.add_argument("--country", type=str, required=True, help="行程目的国家")
    p_fc.add_argument("--trip-start", type=_date_arg, required=True, help="行程开始日期")
    p_fc.add_argument("--trip-end", type=_date_arg, required=True, help="行程结束日期")
    p_fc.add_argument("--as-of", type=_date_arg, default=None, help="当前窗口截止日期（默认今天）")
    p_fc.add_argument("--json", action="store_true", help="输出JSON")
    p_fc.set_defaults(func=_cmd_forecast)

    p_max = sub.add_parser("max-end-date", help="不超过天数上限的最晚结束日期")
    _add_common(p_max)
    _add_trip(p_max)
    p_max.set_defaults(func=_cmd_max_end_date)

    p_dur = sub.add_parser("durations", help="常见行程长度（7/14/21天）是否超限")
    _add_common(p_dur)
    _add_trip(p_dur)
    p_dur.add_argument(
        "--durations",
        type=int,
        nargs="+",
        default=list(STANDARD_DURATIONS),
        help="行程天数列表，例如 7 14 21",
    )
    p_dur.set_defaults(func=_cmd_durations)

    p_at = sub.add_parser("where", help="查询某一时刻所在国家")
    _add_common(p_at)
    p_at.add_argument("--at", type=str, required=True, help="时刻，例如 2025-09-15 16:00:00")
    p_at.add_argument("--tz", type=str, default=DEFAULT_TZ, help="无偏移时间所用时区（IANA）")
    p_at.set_defaults(func=_cmd_where)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())

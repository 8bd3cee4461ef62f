from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path

import streamlit as st

from residency_roll.counter import count_days, residency_summary
from residency_roll.csv_io import ledger_rows, load_legs
from residency_roll.forecast import HypotheticalTrip, days_at_home, days_away, forecast
from residency_roll.ledger import build_ledger, filter_ledger
from residency_roll.models import DEFAULT_THRESHOLD_DAYS, STANDARD_DURATIONS, DailyPresence, TravelLeg
from residency_roll.rules import DEFAULT_REGISTRY, RuleRegistry, load_rules
from residency_roll.threshold import max_end_date, standard_duration_forecasts


@st.cache_data(show_spinner=False)
def _load_legs(trips_csv: str, mtime: float) -> list[TravelLeg]:
    _ = mtime  # part of cache key so updated files reload automatically
    legs, _summary = load_legs(trips_csv)
    return legs


@st.cache_data(show_spinner=False)
def _ledger(trips_csv: str, mtime: float) -> list[DailyPresence]:
    return build_ledger(_load_legs(trips_csv, mtime))


def _registry(rules_json: str) -> RuleRegistry:
    if rules_json and Path(rules_json).exists():
        return load_rules(rules_json)
    return DEFAULT_REGISTRY


def _tally_rows(tally: dict[str, int]) -> list[dict[str, object]]:
    return [{"country": k, "days": v} for k, v in sorted(tally.items(), key=lambda kv: (-kv[1], kv[0]))]


def main() -> None:
    st.set_page_config(page_title="居留天数统计", layout="wide")
    st.title("居留天数：按各国规则统计与行程预估")

    with st.sidebar:
        st.subheader("数据")
        trips_csv = st.text_input("航段CSV路径", value="trips.csv")
        rules_json = st.text_input("国家规则JSON（可选）", value="")

        st.subheader("统计范围")
        today = date.today()
        start_d = st.date_input("开始日期", value=today - timedelta(days=365))
        end_d = st.date_input("结束日期", value=today)

    p = Path(trips_csv)
    if not p.exists():
        st.error(f"找不到文件：{trips_csv!r}")
        return
    if start_d > end_d:
        st.error("开始日期不能晚于结束日期。")
        return

    try:
        legs = _load_legs(trips_csv, p.stat().st_mtime)
        ledger = _ledger(trips_csv, p.stat().st_mtime)
        registry = _registry(rules_json)
    except (KeyError, ValueError) as exc:
        st.exception(exc)
        return

    tally = count_days(ledger, registry, start_d, end_d)

    st.subheader("汇总")
    c1, c2, c3 = st.columns(3)
    c1.metric("航段数", str(len(legs)))
    c2.metric("近365天在外（天）", str(days_away(legs, today)))
    c3.metric("近365天在家（天）", str(days_at_home(legs, today)))

    summary_rows = [
        {
            "country": r.country,
            "days": r.total_days,
            "rule": r.rule_type,
            "threshold": r.threshold_days,
            "remaining": r.days_until_threshold,
            "approaching": r.is_approaching_threshold,
        }
        for r in residency_summary(tally, registry)
    ]
    st.dataframe(summary_rows, use_container_width=True)

    with st.expander("按天明细（午夜所在地 / 当天到过的国家）", expanded=False):
        st.dataframe(ledger_rows(filter_ledger(ledger, start_d, end_d)), use_container_width=True, height=420)

    st.subheader("行程预估（365天滚动窗口，粗略估算）")
    f1, f2, f3, f4 = st.columns(4)
    country = f1.text_input("目的国家", value="Canada")
    trip_start = f2.date_input("出发日期", value=today)
    trip_end = f3.date_input("返回日期", value=today + timedelta(days=14))
    day_limit = int(f4.number_input("天数上限", value=DEFAULT_THRESHOLD_DAYS, step=1))

    if trip_end < trip_start:
        st.error("返回日期不能早于出发日期。")
        return

    result = forecast(legs, HypotheticalTrip(country, trip_start, trip_end), as_of=today)
    r1, r2 = st.columns(2)
    r1.caption("当前")
    r1.dataframe(_tally_rows(result.current), use_container_width=True)
    r2.caption(f"截至 {trip_end.isoformat()}")
    r2.dataframe(_tally_rows(result.forecast), use_container_width=True)

    best = max_end_date(legs, country, trip_start, day_limit)
    st.metric("不超限的最晚返回日期", best.end_date.isoformat(), f"{best.days_at_limit}/{day_limit} 天")

    durations = standard_duration_forecasts(legs, country, trip_start, day_limit, STANDARD_DURATIONS)
    st.dataframe(
        [
            {
                "duration_days": d.duration_days,
                "end_date": d.end_date.isoformat(),
                "total_days": d.total_days,
                "exceeds_limit": d.exceeds_limit,
            }
            for d in durations
        ],
        use_container_width=True,
    )

    st.caption(
        "说明：上方居留天数按每日午夜/当天所在地逐日重建并按各国规则计数；"
        "行程预估按 [到达, 离开) 区间与365天窗口的重叠整天数相加，不考虑时区。"
    )


if __name__ == "__main__":
    main()

from __future__ import annotations

import logging
from pathlib import Path

import streamlit as st

from territory_claim.config import DEFAULT_PARAMS, EngineParams
from territory_claim.csv_io import load_fixes, load_roster_json
from territory_claim.logbook import SessionLogbook
from territory_claim.models import DEFAULT_TZ, Fix, Territory
from territory_claim.replay import ReplayReport, replay_fixes
from territory_claim.timeutils import dt_from_epoch_ms, format_distance, format_duration


@st.cache_data(show_spinner=False)
def _load_fixes(path_csv: str, mtime: float) -> list[Fix]:
    _ = mtime  # part of cache key so updated files reload automatically
    fixes, _summary = load_fixes(path_csv)
    return fixes


@st.cache_data(show_spinner=False)
def _load_roster(roster_json: str, mtime: float) -> list[Territory]:
    _ = mtime
    return load_roster_json(roster_json)


def _params_sidebar() -> EngineParams:
    d = DEFAULT_PARAMS
    with st.expander("高级参数（通常不用改）", expanded=False):
        min_dist = st.number_input("采样最小间距（米）", value=d.min_distance_for_new_point_m, step=1.0)
        closure = st.number_input("闭环距离（米）", value=d.closure_distance_m, step=5.0)
        min_points = st.number_input("最少点数", value=d.minimum_path_points, step=1)
        min_area = st.number_input("最小面积（平方米）", value=d.minimum_enclosed_area_sqm, step=50.0)
        warn_kmh = st.number_input("超速警告（km/h）", value=d.warning_speed_kmh, step=1.0)
        stop_kmh = st.number_input("超速停止（km/h）", value=d.stop_speed_kmh, step=1.0)
        drift_kmh = st.number_input("GPS漂移判定（km/h）", value=d.gps_drift_kmh, step=5.0)
        noise = st.number_input("自相交噪声距离（米）", value=d.intersection_noise_m, step=1.0)
        require_closure = st.checkbox("要求闭环", value=d.require_closure)
    return d.with_overrides(
        min_distance_for_new_point_m=float(min_dist),
        closure_distance_m=float(closure),
        minimum_path_points=int(min_points),
        minimum_enclosed_area_sqm=float(min_area),
        warning_speed_kmh=float(warn_kmh),
        stop_speed_kmh=float(stop_kmh),
        gps_drift_kmh=float(drift_kmh),
        intersection_noise_m=float(noise),
        require_closure=bool(require_closure),
    )


def _run(fixes: list[Fix], params: EngineParams, owner: str, roster: list[Territory]) -> tuple[ReplayReport, str]:
    logbook = SessionLogbook(max_entries=500, level=logging.INFO).attach()
    try:
        report = replay_fixes(fixes, params, owner_id=owner, roster=roster)
    finally:
        logbook.detach()
    return report, logbook.text()


def main() -> None:
    st.set_page_config(page_title="圈地回放", layout="wide")
    st.title("圈地回放：用定位日志复现一次圈地")

    with st.sidebar:
        st.subheader("数据")
        tz_name = st.text_input("时区（IANA）", value=DEFAULT_TZ)
        path_csv = st.text_input("Path.csv 路径", value="Path.csv")
        roster_json = st.text_input("他人领地名单 JSON（可选）", value="")
        owner = st.text_input("本人用户ID", value="replay")

        st.subheader("阈值")
        try:
            params = _params_sidebar()
        except ValueError as exc:
            st.error(f"参数无效：{exc}")
            return

    p = Path(path_csv)
    if not p.exists():
        st.error(f"找不到文件：{path_csv!r}。可用 scripts/generate_sample_path_csv.py 生成示例数据。")
        return

    try:
        fixes = _load_fixes(path_csv, p.stat().st_mtime)
        roster: list[Territory] = []
        if roster_json.strip():
            rp = Path(roster_json)
            if not rp.exists():
                st.error(f"找不到文件：{roster_json!r}")
                return
            roster = _load_roster(roster_json, rp.stat().st_mtime)
    except (KeyError, ValueError) as exc:
        st.exception(exc)
        return

    if not fixes:
        st.warning("CSV中没有可用的定位点。")
        return

    report, log_text = _run(fixes, params, owner, roster)
    final = report.final
    validation = report.validation

    st.subheader("汇总")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("距离", format_distance(final.total_distance_m if final else 0.0))
    c2.metric("时长", format_duration(final.duration_s if final else 0.0))
    c3.metric("顶点数", str(len(report.path)))
    c4.metric("面积（平方米）", f"{validation.computed_area_sqm:.0f}" if validation else "-")

    if validation is not None and validation.is_valid:
        st.success("圈地成功")
    elif validation is not None:
        reason = validation.failure_reason.value if validation.failure_reason else "unknown"
        st.error(f"圈地失败：{reason}")
    if report.forced_stop:
        st.warning("因持续超速被强制停止")
    if final is not None and final.proximity_message:
        st.info(final.proximity_message)

    st.subheader("事件")
    events: list[dict[str, object]] = []
    for ev in report.speed_events:
        events.append(
            {
                "time": dt_from_epoch_ms(ev.timestamp_ms, tz_name).strftime("%H:%M:%S"),
                "fix": ev.fix_index,
                "event": ev.kind.value,
                "detail": "" if ev.speed_kmh is None else f"{ev.speed_kmh:.1f} km/h",
            }
        )
    for ch in report.level_changes:
        events.append(
            {
                "time": dt_from_epoch_ms(ch.timestamp_ms, tz_name).strftime("%H:%M:%S"),
                "fix": ch.fix_index,
                "event": f"level:{ch.level.name}",
                "detail": "" if ch.nearest_distance_m is None else f"{ch.nearest_distance_m:.0f} m",
            }
        )
    if report.closed_at_fix is not None:
        events.append({"time": "", "fix": report.closed_at_fix, "event": "closed", "detail": ""})
    if report.self_intersection_at_fix is not None:
        events.append({"time": "", "fix": report.self_intersection_at_fix, "event": "self_intersection", "detail": ""})
    events.sort(key=lambda r: int(r["fix"]))
    st.dataframe(events, use_container_width=True, height=320)

    with st.expander("采样顶点", expanded=False):
        st.dataframe(
            [{"index": i, "latitude": c.latitude, "longitude": c.longitude} for i, c in enumerate(report.path)],
            use_container_width=True,
            height=360,
        )

    with st.expander("日志", expanded=False):
        st.code(log_text or "（无日志）", language="text")

    st.caption("说明：回放按定位日志的时间戳驱动会话时钟；他人领地名单可能滞后，最终以服务端校验为准。")


if __name__ == "__main__":
    main()

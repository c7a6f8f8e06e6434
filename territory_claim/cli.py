"""Command-line interface for territory_claim.

Run:
    python -m territory_claim replay --csv Path.csv --roster roster.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from typing import Sequence

from territory_claim.area import polygon_area_sqm
from territory_claim.collision import CollisionDetector
from territory_claim.config import EngineParams, load_params
from territory_claim.csv_io import load_fixes, load_roster_json, write_path_csv, write_record_json
from territory_claim.inspect import inspect_fixes
from territory_claim.models import DEFAULT_TZ, Fix
from territory_claim.replay import replay_fixes
from territory_claim.sampler import PathSampler
from territory_claim.timeutils import dt_from_epoch_ms, epoch_ms_from_dt, format_distance, format_duration, parse_dt

logger = logging.getLogger(__name__)


def _load_window(args: argparse.Namespace) -> list[Fix]:
    fixes, summary = load_fixes(args.csv)
    if summary.rows_parsed == 0:
        print(f"CSV中没有可用的定位点：{args.csv}", file=sys.stderr)
    if args.since:
        lo = epoch_ms_from_dt(parse_dt(args.since, args.tz))
        fixes = [fx for fx in fixes if fx.timestamp_ms >= lo]
    if args.until:
        hi = epoch_ms_from_dt(parse_dt(args.until, args.tz))
        fixes = [fx for fx in fixes if fx.timestamp_ms <= hi]
    return fixes


def _params(args: argparse.Namespace) -> EngineParams:
    return load_params(args.config)


def _cmd_inspect(args: argparse.Namespace) -> int:
    fixes, summary = load_fixes(args.csv)
    res = inspect_fixes(fixes, _params(args))

    print("### CSV字段")
    print(", ".join(summary.fieldnames))
    print()

    print("### 行数")
    print(f"total_rows={summary.rows_total}, parsed={summary.rows_parsed}, skipped={summary.rows_skipped}")
    print()

    if res.min_time_ms is not None and res.max_time_ms is not None:
        print("### 时间范围（本地时区）")
        start = dt_from_epoch_ms(res.min_time_ms, args.tz)
        end = dt_from_epoch_ms(res.max_time_ms, args.tz)
        print(f"start={start.isoformat(sep=' ')}, end={end.isoformat(sep=' ')}")
        print()

    if res.delta is not None:
        print("### 定位间隔（秒）")
        print(
            f"count={res.delta.count}, min={res.delta.min_s:.3f}, median={res.delta.median_s:.3f}, "
            f"p95={res.delta.p95_s:.3f}, max={res.delta.max_s:.3f}"
        )
        print()

    if res.bounding_box is not None:
        bb = res.bounding_box
        print("### 经纬度范围")
        print(f"lat=[{bb.min_lat}, {bb.max_lat}], lon=[{bb.min_lon}, {bb.max_lon}]")
        print()

    print("### 原始轨迹")
    max_speed = "n/a" if res.max_speed_kmh is None else f"{res.max_speed_kmh:.1f} km/h"
    print(f"length={format_distance(res.raw_length_m)}, max_speed={max_speed}, drift_jumps={res.drift_jumps}")
    print(f"duplicate_timestamps={res.duplicate_timestamps}")
    print()

    if args.json:
        payload = asdict(res) | {
            "rows_total": summary.rows_total,
            "rows_parsed": summary.rows_parsed,
            "rows_skipped": summary.rows_skipped,
            "fieldnames": list(summary.fieldnames),
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _cmd_replay(args: argparse.Namespace) -> int:
    params = _params(args)
    fixes = _load_window(args)
    roster = load_roster_json(args.roster) if args.roster else []
    report = replay_fixes(fixes, params, owner_id=args.owner, roster=roster, tick_every=args.tick_every)
    final = report.final

    print("### 回放")
    print(f"fixes={report.fixes_delivered}/{len(fixes)}, points={len(report.path)}, forced_stop={report.forced_stop}")
    if final is not None:
        print(
            f"distance={format_distance(final.total_distance_m)}, duration={format_duration(final.duration_s)}, "
            f"closed={final.is_closed}"
        )
    print()

    if report.speed_events:
        print("### 速度事件")
        for ev in report.speed_events:
            t = dt_from_epoch_ms(ev.timestamp_ms, args.tz).strftime("%H:%M:%S")
            speed = "n/a" if ev.speed_kmh is None else f"{ev.speed_kmh:.1f}"
            print(f"[{t}] #{ev.fix_index} {ev.kind.value} {speed} km/h {ev.message}".rstrip())
        print()

    if report.level_changes:
        print("### 距离预警变化")
        for ch in report.level_changes:
            t = dt_from_epoch_ms(ch.timestamp_ms, args.tz).strftime("%H:%M:%S")
            dist = "n/a" if ch.nearest_distance_m is None else f"{ch.nearest_distance_m:.0f} m"
            print(f"[{t}] #{ch.fix_index} {ch.level.label} ({dist})")
        print()

    print("### 结果")
    validation = report.validation
    if validation is None:
        print("未完成验证")
    elif validation.is_valid:
        print(f"VALID area={validation.computed_area_sqm:.0f} m²")
    else:
        reason = validation.failure_reason.value if validation.failure_reason else "unknown"
        print(f"INVALID reason={reason} area={validation.computed_area_sqm:.0f} m²")

    if args.out_path:
        write_path_csv(report.path, args.out_path)
        print(f"已导出顶点：{args.out_path}")
    if args.out_record and report.record is not None:
        write_record_json(report.record, args.out_record)
        print(f"已导出领地记录：{args.out_record}")

    if args.json:
        payload = {
            "valid": report.is_valid,
            "reason": validation.failure_reason.value if validation and validation.failure_reason else None,
            "area_sqm": validation.computed_area_sqm if validation else 0.0,
            "points": len(report.path),
            "forced_stop": report.forced_stop,
            "closed_at_fix": report.closed_at_fix,
            "self_intersection_at_fix": report.self_intersection_at_fix,
            "speed_events": [
                {"fix": ev.fix_index, "kind": ev.kind.value, "speed_kmh": ev.speed_kmh} for ev in report.speed_events
            ],
            "level_changes": [
                {"fix": ch.fix_index, "level": ch.level.name, "distance_m": ch.nearest_distance_m}
                for ch in report.level_changes
            ],
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0 if report.is_valid else 1


def _sample(fixes: Sequence[Fix], params: EngineParams) -> PathSampler:
    sampler = PathSampler(params)
    for fx in fixes:
        sampler.offer(fx.coordinate)
    return sampler


def _cmd_check(args: argparse.Namespace) -> int:
    params = _params(args)
    fixes = _load_window(args)
    detector = CollisionDetector(params, roster=load_roster_json(args.roster), owner_id=args.owner)
    sampler = _sample(fixes, params)
    result = detector.check(sampler.points)

    print(f"foreign_territories={len(detector.foreign_territories)}, points={len(sampler)}")
    dist = "n/a" if result.nearest_distance_m is None else f"{result.nearest_distance_m:.0f} m"
    print(f"level={result.warning_level.label}, collision={result.has_collision}, nearest={dist}")
    if result.message:
        print(result.message)
    return 1 if result.is_blocking else 0


def _cmd_area(args: argparse.Namespace) -> int:
    params = _params(args)
    fixes = _load_window(args)
    coords = [fx.coordinate for fx in fixes]
    sampler = _sample(fixes, params)
    print(f"raw_points={len(coords)}, raw_area={polygon_area_sqm(coords, params.earth_radius_m):.1f} m²")
    print(f"sampled_points={len(sampler)}, sampled_area={polygon_area_sqm(sampler.points, params.earth_radius_m):.1f} m²")
    return 0


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--csv", type=str, default="Path.csv", help="输入CSV路径（geoTime, latitude, longitude）")
    p.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA），默认 Asia/Shanghai")
    p.add_argument("--config", type=str, default=None, help="阈值配置JSON文件")


def _add_window(p: argparse.ArgumentParser) -> None:
    p.add_argument("--since", type=str, default=None, help="仅使用该时间之后的定位点（例如 2025-12-18 09:30:00）")
    p.add_argument("--until", type=str, default=None, help="仅使用该时间之前的定位点")


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="territory_claim")
    p.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_ins = sub.add_parser("inspect", help="分析定位日志的时间范围/间隔/速度等")
    _add_common(p_ins)
    p_ins.add_argument("--json", action="store_true", help="额外输出JSON（便于后处理）")
    p_ins.set_defaults(func=_cmd_inspect)

    p_rep = sub.add_parser("replay", help="用定位日志回放一次圈地并输出验证结果")
    _add_common(p_rep)
    _add_window(p_rep)
    p_rep.add_argument("--roster", type=str, default=None, help="他人领地名单JSON")
    p_rep.add_argument("--owner", type=str, default="replay", help="本次圈地的用户ID")
    p_rep.add_argument(
        "--tick-every",
        type=int,
        default=None,
        help="每N个定位点额外触发一次采样tick（配合 sample_on_delivery=false）",
    )
    p_rep.add_argument("--out-record", type=str, default=None, help="圈地成功时导出领地记录JSON")
    p_rep.add_argument("--out-path", type=str, default=None, help="导出采样后的顶点CSV")
    p_rep.add_argument("--json", action="store_true", help="额外输出JSON（便于后处理）")
    p_rep.set_defaults(func=_cmd_replay)

    p_chk = sub.add_parser("check", help="检查轨迹与他人领地的碰撞/距离")
    _add_common(p_chk)
    _add_window(p_chk)
    p_chk.add_argument("--roster", type=str, required=True, help="他人领地名单JSON")
    p_chk.add_argument("--owner", type=str, default=None, help="本人用户ID（名单中本人领地将被忽略）")
    p_chk.set_defaults(func=_cmd_check)

    p_area = sub.add_parser("area", help="计算轨迹围成的面积")
    _add_common(p_area)
    _add_window(p_area)
    p_area.set_defaults(func=_cmd_area)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        return int(args.func(args))
    except (KeyError, ValueError) as exc:
        print(f"错误：{exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
